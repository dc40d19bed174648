"""Edit Orchestrator Agent.

This agent turns a reviewed edit plan into timeline changes by:
1. Resolving each plan step into one concrete tool action
2. Executing the action against a TimelineStore
3. Verifying the result with a judgment oracle (advisory, fail-open)
4. Reporting the outcome of every step

Usage:
    from agent.edit_orchestrator import EditOrchestrator, PlanStep

    store = TimelineStore(clips)
    orchestrator = EditOrchestrator(
        store,
        resolver=OpenRouterIntentResolver(),
        generator=ProviderMediaGenerator(),
    )
    report = await orchestrator.execute_plan_with_verification(steps)
"""

from .agent import EditOrchestrator, serialize_timeline
from .actions import (
    ACTION_TYPES,
    TOOL_IDS,
    EditTimelineBatchAction,
    GenerateImageAction,
    GenerateTransitionAction,
    GenerateVoiceoverAction,
    MoveClipAction,
    RippleDeleteAction,
    SmartTrimAction,
    ToolAction,
    UnknownToolError,
    UpdatePropertyAction,
    parse_tool_action,
)
from .cancellation import CancellationToken, PlanCancelledError
from .executor import (
    ExecutorAgent,
    OperationExecutionError,
    get_supported_operations,
)
from .oracles import (
    IntentResolver,
    Judge,
    MediaGenerator,
    OpenRouterIntentResolver,
    OpenRouterJudge,
    ProviderMediaGenerator,
)
from .types import (
    ExecutionResult,
    GeneratedMedia,
    JudgmentRequest,
    PlanCategory,
    PlanExecutionReport,
    PlanStep,
    PlanStepStatus,
    StepResult,
    StepState,
    VerificationResult,
)
from .verifier import VerifierAgent


__all__ = [
    # Main entry point
    "EditOrchestrator",
    "serialize_timeline",
    # Plan types
    "PlanStep",
    "PlanCategory",
    "PlanStepStatus",
    "StepState",
    "StepResult",
    "PlanExecutionReport",
    # Actions
    "ToolAction",
    "ACTION_TYPES",
    "TOOL_IDS",
    "UpdatePropertyAction",
    "RippleDeleteAction",
    "SmartTrimAction",
    "MoveClipAction",
    "GenerateVoiceoverAction",
    "GenerateImageAction",
    "GenerateTransitionAction",
    "EditTimelineBatchAction",
    "UnknownToolError",
    "parse_tool_action",
    # Executor
    "ExecutorAgent",
    "ExecutionResult",
    "OperationExecutionError",
    "get_supported_operations",
    # Verifier
    "VerifierAgent",
    "VerificationResult",
    "JudgmentRequest",
    # Oracles
    "IntentResolver",
    "MediaGenerator",
    "Judge",
    "GeneratedMedia",
    "OpenRouterIntentResolver",
    "OpenRouterJudge",
    "ProviderMediaGenerator",
    # Cancellation
    "CancellationToken",
    "PlanCancelledError",
]
