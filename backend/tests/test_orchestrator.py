from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import ValidationError

from agent.edit_orchestrator import (
    CancellationToken,
    EditOrchestrator,
    PlanStep,
    StepResult,
    StepState,
    VerificationResult,
    VerifierAgent,
)
from models.timeline_models import Clip, ClipType
from operators.timeline_store import TimelineStore


class _FakeResolver:
    """Returns queued answers in order; an Exception instance is raised."""

    def __init__(self, answers: list):
        self.answers = list(answers)
        self.summaries: list[str] = []

    async def resolve(self, step, timeline_summary):
        self.summaries.append(timeline_summary)
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


class _HangingResolver:
    def __init__(self):
        self.started = asyncio.Event()

    async def resolve(self, step, timeline_summary):
        self.started.set()
        await asyncio.sleep(3600)


class _FakeJudge:
    def __init__(self, passed: bool = True):
        self.passed = passed
        self.requests = []

    async def judge(self, request):
        self.requests.append(request)
        return VerificationResult(passed=self.passed)


def _clip(clip_id: str, start: float, duration: float, track: int = 1) -> Clip:
    return Clip(
        id=clip_id,
        type=ClipType.VIDEO,
        start_time=start,
        duration=duration,
        track_id=track,
    )


def _store() -> TimelineStore:
    return TimelineStore([
        _clip("A", 0, 5),
        _clip("B", 5, 3),
        _clip("C", 5, 3, track=2),
    ])


def _steps(count: int) -> list[PlanStep]:
    return [PlanStep(id=f"s{i}", intent=f"step {i}") for i in range(1, count + 1)]


def _trim(clip_id: str, duration: float) -> dict:
    return {"tool_id": "smart_trim", "parameters": {"clip_id": clip_id, "new_duration": duration}}


@pytest.mark.asyncio
async def test_unresolved_step_does_not_stop_the_plan() -> None:
    store = _store()
    resolver = _FakeResolver([_trim("A", 2), None, _trim("B", 1)])
    orchestrator = EditOrchestrator(store, resolver)

    report = await orchestrator.execute_plan_with_verification(_steps(3))

    assert [r.step_id for r in report.results] == ["s1", "s2", "s3"]
    assert [r.state for r in report.results] == [
        StepState.SUCCEEDED,
        StepState.RESOLUTION_FAILED,
        StepState.SUCCEEDED,
    ]
    assert store.get_clip("A").duration == 2.0
    assert store.get_clip("B").duration == 1.0
    assert report.succeeded == 2
    assert report.failed == 1


@pytest.mark.asyncio
async def test_execution_failure_is_isolated() -> None:
    store = _store()
    resolver = _FakeResolver([
        {"tool_id": "explode_clip", "parameters": {}},
        {"tool_id": "ripple_delete", "parameters": {"clip_id": "A"}},
    ])
    orchestrator = EditOrchestrator(store, resolver)

    report = await orchestrator.execute_plan_with_verification(_steps(2))

    first, second = report.results
    assert first.state == StepState.FAILED
    assert first.action is None
    assert first.error == "Unknown action: explode_clip"
    assert second.state == StepState.SUCCEEDED
    assert second.action.tool_id == "ripple_delete"
    assert store.get_clip("A") is None


@pytest.mark.asyncio
async def test_stale_target_fails_only_that_step() -> None:
    store = _store()
    resolver = _FakeResolver([
        {"tool_id": "ripple_delete", "parameters": {"clip_id": "A"}},
        _trim("A", 1),
    ])

    report = await EditOrchestrator(store, resolver).execute_plan_with_verification(_steps(2))

    assert report.results[0].succeeded
    assert report.results[1].state == StepState.FAILED
    assert "A" in report.results[1].error


@pytest.mark.asyncio
async def test_resolver_error_is_resolution_failed() -> None:
    resolver = _FakeResolver([RuntimeError("rate limited"), _trim("C", 1)])
    report = await EditOrchestrator(_store(), resolver).execute_plan_with_verification(_steps(2))

    assert report.results[0].state == StepState.RESOLUTION_FAILED
    assert "rate limited" in report.results[0].error
    assert report.results[1].succeeded


@pytest.mark.asyncio
async def test_resolver_sees_current_state_each_step() -> None:
    store = _store()
    resolver = _FakeResolver([
        {"tool_id": "ripple_delete", "parameters": {"clip_id": "A"}},
        None,
    ])

    await EditOrchestrator(store, resolver).execute_plan_with_verification(_steps(2))

    first = {c["id"] for c in json.loads(resolver.summaries[0])["clips"]}
    second = {c["id"] for c in json.loads(resolver.summaries[1])["clips"]}
    assert first == {"A", "B", "C"}
    assert second == {"B", "C"}


@pytest.mark.asyncio
async def test_progress_messages() -> None:
    messages: list[str] = []
    resolver = _FakeResolver([_trim("A", 2), None])

    await EditOrchestrator(_store(), resolver).execute_plan_with_verification(
        _steps(2), on_progress=messages.append
    )

    assert messages == [
        "Executing step 1/2: step 1",
        "Executing step 2/2: step 2",
        "Plan complete: 1 succeeded, 1 failed",
    ]


@pytest.mark.asyncio
async def test_async_and_failing_progress_callbacks() -> None:
    seen: list[str] = []

    async def on_progress(message: str) -> None:
        seen.append(message)
        raise RuntimeError("ui went away")

    report = await EditOrchestrator(_store(), _FakeResolver([None])).execute_plan_with_verification(
        _steps(1), on_progress=on_progress
    )

    assert len(report.results) == 1
    assert seen[-1] == "Plan complete: 0 succeeded, 1 failed"


@pytest.mark.asyncio
async def test_empty_plan() -> None:
    report = await EditOrchestrator(_store(), _FakeResolver([])).execute_plan_with_verification([])
    assert report.results == []


@pytest.mark.asyncio
async def test_cancel_marks_current_and_remaining_steps() -> None:
    store = _store()
    resolver = _HangingResolver()
    token = CancellationToken()
    orchestrator = EditOrchestrator(store, resolver)

    task = asyncio.create_task(
        orchestrator.execute_plan_with_verification(_steps(3), cancel_token=token)
    )
    await resolver.started.wait()
    token.cancel("user stopped the plan")
    report = await asyncio.wait_for(task, timeout=1)

    assert len(report.results) == 3
    assert all(r.state == StepState.CANCELLED for r in report.results)
    assert report.cancelled == 3
    assert report.results[2].error == "user stopped the plan"
    assert set(orchestrator.step_states.values()) == {StepState.CANCELLED}
    assert not store.can_undo()


@pytest.mark.asyncio
async def test_per_step_verification() -> None:
    judge = _FakeJudge(passed=False)
    orchestrator = EditOrchestrator(
        _store(),
        _FakeResolver([_trim("A", 2)]),
        verifier=VerifierAgent(judge),
        verify_steps=True,
    )

    report = await orchestrator.execute_plan_with_verification(_steps(1))

    result = report.results[0]
    assert result.succeeded
    assert result.verification.passed is False
    assert judge.requests[0].operation == "smart_trim"
    assert "Dur: 5.00s" in judge.requests[0].before
    assert "Dur: 2.00s" in judge.requests[0].after


@pytest.mark.asyncio
async def test_run_and_verify_judges_whole_plan() -> None:
    store = _store()
    judge = _FakeJudge(passed=True)
    orchestrator = EditOrchestrator(
        store,
        _FakeResolver([_trim("A", 2), {"tool_id": "ripple_delete", "parameters": {"clip_id": "C"}}]),
        verifier=VerifierAgent(judge),
    )

    report, verification = await orchestrator.run_and_verify(_steps(2), goal="tighten the intro")

    assert report.succeeded == 2
    assert verification.passed
    assert len(judge.requests) == 1
    assert judge.requests[0].intent == "tighten the intro"
    assert "[C]" in judge.requests[0].before
    assert "[C]" not in judge.requests[0].after


@pytest.mark.asyncio
async def test_run_and_verify_without_verifier() -> None:
    report, verification = await EditOrchestrator(
        _store(), _FakeResolver([None])
    ).run_and_verify(_steps(1), goal="anything")

    assert len(report.results) == 1
    assert verification is None


@pytest.mark.asyncio
async def test_summary_lists_focus_clips_around_step_timestamp() -> None:
    store = TimelineStore([
        _clip("A", 0, 5),
        _clip("B", 5, 3),
        _clip("C", 5, 3, track=2),
        _clip("D", 30, 2),
    ])
    resolver = _FakeResolver([None, None])
    steps = [
        PlanStep(id="s1", intent="tighten the cut", timestamp=6.0),
        PlanStep(id="s2", intent="anywhere"),
    ]

    await EditOrchestrator(store, resolver).execute_plan_with_verification(steps)

    focused = json.loads(resolver.summaries[0])
    assert focused["duration"] == 32.0
    assert focused["focus"]["start"] == 1.0
    assert focused["focus"]["end"] == 11.0
    assert focused["focus"]["tracks"] == {"1": ["A", "B"], "2": ["C"]}
    assert "focus" not in json.loads(resolver.summaries[1])


@pytest.mark.asyncio
async def test_step_states_follow_the_lifecycle() -> None:
    store = _store()
    resolver = _FakeResolver([_trim("A", 2), None])
    orchestrator = EditOrchestrator(store, resolver)
    while_resolving: list[dict] = []
    while_executing: list[dict] = []

    original_resolve = resolver.resolve

    async def recording_resolve(step, timeline_summary):
        while_resolving.append(dict(orchestrator.step_states))
        return await original_resolve(step, timeline_summary)

    resolver.resolve = recording_resolve
    store.subscribe(lambda clips: while_executing.append(dict(orchestrator.step_states)))

    await orchestrator.execute_plan_with_verification(_steps(2))

    assert while_resolving[0] == {"s1": StepState.RESOLVING, "s2": StepState.PENDING}
    assert while_resolving[1]["s1"] == StepState.SUCCEEDED
    assert while_executing[-1] == {"s1": StepState.EXECUTING, "s2": StepState.PENDING}
    assert orchestrator.step_states == {
        "s1": StepState.SUCCEEDED,
        "s2": StepState.RESOLUTION_FAILED,
    }


def test_step_result_requires_a_finished_state() -> None:
    with pytest.raises(ValidationError):
        StepResult(step_id="s1", intent="trim", state=StepState.EXECUTING)

    assert StepResult(step_id="s1", intent="trim", state=StepState.CANCELLED).state == StepState.CANCELLED
