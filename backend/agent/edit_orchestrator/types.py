"""Types for the Edit Orchestrator pipeline.

This module defines the contracts between planning, resolution, execution and
verification: plan steps in, per-step results and a plan report out.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .actions import ToolAction


class PlanCategory(str, Enum):
    """Broad area of the edit a plan step is about."""

    VISUAL = "visual"
    AUDIO = "audio"
    PACING = "pacing"
    STYLE = "style"


class PlanStepStatus(str, Enum):
    """Review status assigned to a plan step by the user or director."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class StepState(str, Enum):
    """Lifecycle of a plan step inside the orchestrator."""

    PENDING = "pending"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RESOLUTION_FAILED = "resolution_failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {
        StepState.SUCCEEDED,
        StepState.FAILED,
        StepState.RESOLUTION_FAILED,
        StepState.CANCELLED,
    }
)


class PlanStep(BaseModel):
    """One semantically described edit, before it is made concrete."""
    model_config = ConfigDict(allow_inf_nan=False)

    id: str = Field(description="Unique step identifier")
    intent: str = Field(description="Free-form description of the desired change")
    category: PlanCategory | None = None
    reasoning: str = Field(default="", description="Why the planner wants this")
    timestamp: float | None = Field(
        default=None,
        description="Timeline position the step refers to (seconds)",
    )
    status: PlanStepStatus = PlanStepStatus.PENDING


class JudgmentRequest(BaseModel):
    """What the judgment oracle is asked to evaluate."""

    intent: str
    operation: str
    before: str = Field(description="Serialized clips before the operation")
    after: str = Field(description="Serialized clips after the operation")


class VerificationResult(BaseModel):
    """Verdict on whether an operation satisfied its intent."""

    passed: bool
    issues: list[str] | None = None
    suggestion: str | None = None


class GeneratedMedia(BaseModel):
    """Handle to a generated asset."""

    uri: str
    content_type: str
    duration: float | None = Field(
        default=None,
        description="Media length in seconds, if it could be determined",
    )


class ExecutionResult(BaseModel):
    """Outcome of applying one tool action."""

    success: bool
    operation: str = Field(description="Tool id that was executed")
    clip_id: str | None = Field(
        default=None,
        description="Clip targeted or created by the action",
    )
    error: str | None = None


class StepResult(BaseModel):
    """Audit record for one plan step."""

    step_id: str
    intent: str
    state: StepState
    action: ToolAction | None = Field(
        default=None,
        description="Resolved action (None if resolution failed or was skipped)",
    )
    result: ExecutionResult | None = None
    verification: VerificationResult | None = Field(
        default=None,
        description="Advisory verdict, present when a verifier is configured",
    )
    error: str | None = None

    @model_validator(mode="after")
    def _require_terminal_state(self) -> StepResult:
        if self.state not in TERMINAL_STATES:
            raise ValueError(f"Step {self.step_id} has not finished: {self.state.value}")
        return self

    @property
    def succeeded(self) -> bool:
        return self.state == StepState.SUCCEEDED


class PlanExecutionReport(BaseModel):
    """Final report of a plan run; results map 1:1 onto the input steps."""

    results: list[StepResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.state == StepState.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(
            1
            for r in self.results
            if r.state in (StepState.FAILED, StepState.RESOLUTION_FAILED)
        )

    @property
    def cancelled(self) -> int:
        return sum(1 for r in self.results if r.state == StepState.CANCELLED)
