"""Main orchestrator loop.

This module turns a reviewed edit plan into timeline changes:
1. Resolves each plan step into one concrete tool action
2. Executes the action against the shared timeline store
3. Optionally asks the verifier whether the change did what was intended
4. Returns a report with one entry per plan step
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Sequence

from models.timeline_models import Clip
from operators.timeline_editor import clips_in_range, summarize_clips, timeline_duration
from operators.timeline_store import TimelineStore

from .actions import action_label, parse_tool_action
from .cancellation import CancellationToken, PlanCancelledError, run_cancellable
from .executor import ExecutorAgent
from .oracles import IntentResolver, MediaGenerator
from .types import (
    PlanExecutionReport,
    PlanStep,
    StepResult,
    StepState,
    VerificationResult,
)
from .verifier import VerifierAgent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], "Awaitable[None] | None"]

# Seconds either side of a step's timestamp listed as its focus window.
FOCUS_WINDOW_SECONDS = 5.0


def serialize_timeline(clips: list[Clip], timestamp: float | None = None) -> str:
    """Compact JSON summary of the clips, as handed to the resolver.

    When the step names a timeline position, the summary also lists the ids of
    the clips near it, per track, so the resolver can pick a target.
    """
    if not clips:
        return "Empty Timeline"

    payload: dict[str, Any] = {
        "duration": round(timeline_duration(clips), 3),
        "clips": [s.model_dump() for s in summarize_clips(clips)],
    }
    if timestamp is not None:
        focus = clips_in_range(
            clips,
            max(0.0, timestamp - FOCUS_WINDOW_SECONDS),
            timestamp + FOCUS_WINDOW_SECONDS,
        )
        payload["focus"] = {
            "start": focus.start,
            "end": focus.end,
            "tracks": {
                str(track.track_id): [c.id for c in track.clips]
                for track in focus.tracks
            },
        }
    return json.dumps(payload)


class EditOrchestrator:
    """Runs plans step by step against one TimelineStore.

    Steps are resolved and executed strictly in order. A step that cannot be
    resolved or executed is recorded and the plan moves on; the only thing
    that stops a plan early is the cancellation token.

    step_states holds the lifecycle state of each step of the current plan,
    from pending through resolving, resolved and executing to a terminal state.

    Concurrency hazard: the clip state is re-read when each step's resolution
    request is built, but nothing checks that it is still the same when the
    resolved action is applied. If another actor edits the store while a
    resolver or generator call is in flight, the action may target a clip
    that has since moved or disappeared. A vanished target fails the step;
    a moved one is edited as-is.
    """

    def __init__(
        self,
        store: TimelineStore,
        resolver: IntentResolver,
        executor: ExecutorAgent | None = None,
        verifier: VerifierAgent | None = None,
        generator: MediaGenerator | None = None,
        verify_steps: bool = False,
    ):
        self.store = store
        self.resolver = resolver
        self.executor = executor or ExecutorAgent(store, generator)
        self.verifier = verifier
        self.verify_steps = verify_steps
        self.step_states: dict[str, StepState] = {}

    async def execute_plan_with_verification(
        self,
        steps: Sequence[PlanStep],
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> PlanExecutionReport:
        """Execute every step of a plan and report on each one.

        Args:
            steps: Plan steps, executed in order regardless of their review status
            on_progress: Called with human-readable progress messages
            cancel_token: Cancelling it interrupts the in-flight oracle call and
                marks the current and remaining steps as cancelled

        Returns:
            PlanExecutionReport whose results map 1:1 onto `steps`
        """
        total = len(steps)
        results: list[StepResult] = []
        self.step_states = {step.id: StepState.PENDING for step in steps}

        for index, step in enumerate(steps, start=1):
            if cancel_token is not None and cancel_token.cancelled:
                results.append(self._cancelled(step, cancel_token))
                self._set_state(step, StepState.CANCELLED)
                continue

            await self._emit(on_progress, f"Executing step {index}/{total}: {step.intent}")
            logger.info(f"Step {index}/{total} ({step.id}): {step.intent[:100]}")

            try:
                result = await self._run_step(step, cancel_token)
            except PlanCancelledError as e:
                logger.info(f"Plan cancelled during step {step.id}: {e}")
                result = StepResult(
                    step_id=step.id,
                    intent=step.intent,
                    state=StepState.CANCELLED,
                    error=str(e),
                )
            except Exception as e:
                logger.exception(f"Step {step.id} failed unexpectedly")
                result = StepResult(
                    step_id=step.id,
                    intent=step.intent,
                    state=StepState.FAILED,
                    error=f"Unexpected error: {str(e)}",
                )
            results.append(result)
            self._set_state(step, result.state)

        report = PlanExecutionReport(results=results)
        summary = f"Plan complete: {report.succeeded} succeeded, {report.failed} failed"
        if report.cancelled:
            summary += f", {report.cancelled} cancelled"
        logger.info(summary)
        await self._emit(on_progress, summary)
        return report

    async def run_and_verify(
        self,
        steps: Sequence[PlanStep],
        goal: str,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> tuple[PlanExecutionReport, VerificationResult | None]:
        """Execute a plan, then judge the whole before/after against `goal`.

        Verification is skipped (None) when no verifier is configured or the
        plan was cancelled.
        """
        pre_state = self.store.get_clips()
        report = await self.execute_plan_with_verification(
            steps, on_progress=on_progress, cancel_token=cancel_token
        )

        if self.verifier is None:
            logger.warning("No verifier configured, skipping plan verification")
            return report, None
        if report.cancelled:
            return report, None

        try:
            verification = await self.verifier.verify(
                goal,
                f"plan of {len(steps)} steps ({report.succeeded} succeeded, "
                f"{report.failed} failed)",
                pre_state,
                self.store.get_clips(),
                cancel_token=cancel_token,
            )
        except PlanCancelledError:
            return report, None
        return report, verification

    async def _run_step(
        self,
        step: PlanStep,
        cancel_token: CancellationToken | None,
    ) -> StepResult:
        self._set_state(step, StepState.RESOLVING)
        timeline_summary = serialize_timeline(self.store.get_clips(), step.timestamp)

        try:
            raw_action = await run_cancellable(
                self.resolver.resolve(step, timeline_summary), cancel_token
            )
        except PlanCancelledError:
            raise
        except Exception as e:
            logger.warning(f"Resolution failed for step {step.id}: {e}")
            return StepResult(
                step_id=step.id,
                intent=step.intent,
                state=StepState.RESOLUTION_FAILED,
                error=f"Resolution failed: {str(e)}",
            )

        if raw_action is None:
            logger.info(f"No action resolved for step {step.id}")
            return StepResult(
                step_id=step.id,
                intent=step.intent,
                state=StepState.RESOLUTION_FAILED,
                error="No action could be resolved for this step",
            )

        self._set_state(step, StepState.RESOLVED)

        try:
            action = parse_tool_action(raw_action)
        except Exception:
            # The executor reports why; keep the audit entry without a typed action.
            action = None

        self._set_state(step, StepState.EXECUTING)
        pre_state = self.store.get_clips()
        execution = await self.executor.execute(
            action if action is not None else raw_action,
            cancel_token=cancel_token,
        )
        state = StepState.SUCCEEDED if execution.success else StepState.FAILED

        verification = None
        if execution.success and self.verify_steps and self.verifier is not None:
            try:
                verification = await self.verifier.verify(
                    step.intent,
                    action_label(raw_action),
                    pre_state,
                    self.store.get_clips(),
                    cancel_token=cancel_token,
                )
            except PlanCancelledError:
                # The edit already landed; only its verdict is lost.
                logger.info(f"Verification of step {step.id} cancelled")

        return StepResult(
            step_id=step.id,
            intent=step.intent,
            state=state,
            action=action,
            result=execution,
            verification=verification,
            error=execution.error,
        )

    def _set_state(self, step: PlanStep, state: StepState) -> None:
        logger.debug(f"Step {step.id}: {state.value}")
        self.step_states[step.id] = state

    @staticmethod
    def _cancelled(step: PlanStep, cancel_token: CancellationToken) -> StepResult:
        return StepResult(
            step_id=step.id,
            intent=step.intent,
            state=StepState.CANCELLED,
            error=cancel_token.reason or "Plan execution cancelled",
        )

    @staticmethod
    async def _emit(on_progress: ProgressCallback | None, message: str) -> None:
        if on_progress is None:
            return
        try:
            outcome: Any = on_progress(message)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Progress callback failed")
