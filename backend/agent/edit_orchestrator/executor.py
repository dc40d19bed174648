"""Execution agent: applies resolved tool actions to the timeline store.

Each tool id maps to one handler in ACTION_HANDLERS. Handlers either call the
timeline_editor operations directly or, for generative tools, ask the media
generator for an asset and insert a new clip for it. Every failure is turned
into a failed ExecutionResult; nothing but cancellation escapes execute().
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from models.timeline_models import Clip, ClipType
from operators import timeline_editor
from operators.timeline_store import TimelineError, TimelineStore

from .actions import (
    BatchDelete,
    BatchMove,
    BatchTrim,
    BatchVolume,
    EditTimelineBatchAction,
    GenerateImageAction,
    GenerateTransitionAction,
    GenerateVoiceoverAction,
    MoveClipAction,
    Placement,
    RippleDeleteAction,
    SmartTrimAction,
    UnknownToolError,
    UpdatePropertyAction,
    action_label,
    parse_tool_action,
)
from .cancellation import CancellationToken, PlanCancelledError, run_cancellable
from .oracles import MediaGenerator
from .types import ExecutionResult, GeneratedMedia

logger = logging.getLogger(__name__)

# Used when a generated asset's length cannot be determined.
DEFAULT_GENERATED_DURATION = 5.0


class OperationExecutionError(Exception):
    """Raised when an operation cannot be executed."""

    def __init__(self, operation_type: str, message: str, details: dict | None = None):
        self.operation_type = operation_type
        self.message = message
        self.details = details or {}
        super().__init__(f"{operation_type}: {message}")


# Handlers return the id of the clip they targeted or created.
ActionHandler = Callable[
    ["ExecutorAgent", Any, "CancellationToken | None"], Awaitable[str | None]
]


def _require_clip(store: TimelineStore, clip_id: str, operation: str) -> Clip:
    clip = store.get_clip(clip_id)
    if clip is None:
        raise OperationExecutionError(
            operation, f"Clip {clip_id} not found", {"clip_id": clip_id}
        )
    return clip


def _new_clip_id(store: TimelineStore, prefix: str) -> str:
    while True:
        clip_id = f"{prefix}-{uuid4().hex[:8]}"
        if store.get_clip(clip_id) is None:
            return clip_id


def _title(label: str, text: str, limit: int = 40) -> str:
    text = " ".join(text.split())
    if len(text) > limit:
        text = text[: limit - 3].rstrip() + "..."
    return f"{label}: {text}"


def _place(store: TimelineStore, clip: Clip, placement: Placement) -> None:
    if placement == "ripple":
        timeline_editor.ripple_insert(store, clip)
    else:
        timeline_editor.add_clip(store, clip)


# =============================================================================
# EDIT HANDLERS
# =============================================================================


async def _execute_update_property(
    executor: ExecutorAgent,
    action: UpdatePropertyAction,
    cancel_token: CancellationToken | None = None,
) -> str:
    """Execute update_clip_property."""
    params = action.parameters
    _require_clip(executor.store, params.clip_id, action.tool_id)
    timeline_editor.update_clip_property(
        executor.store, params.clip_id, params.property, params.value
    )
    return params.clip_id


async def _execute_ripple_delete(
    executor: ExecutorAgent,
    action: RippleDeleteAction,
    cancel_token: CancellationToken | None = None,
) -> str:
    """Execute ripple_delete."""
    clip_id = action.parameters.clip_id
    _require_clip(executor.store, clip_id, action.tool_id)
    timeline_editor.ripple_delete(executor.store, clip_id)
    return clip_id


async def _execute_smart_trim(
    executor: ExecutorAgent,
    action: SmartTrimAction,
    cancel_token: CancellationToken | None = None,
) -> str:
    """Execute smart_trim."""
    params = action.parameters
    _require_clip(executor.store, params.clip_id, action.tool_id)
    timeline_editor.trim_clip(executor.store, params.clip_id, params.new_duration)
    return params.clip_id


async def _execute_move_clip(
    executor: ExecutorAgent,
    action: MoveClipAction,
    cancel_token: CancellationToken | None = None,
) -> str:
    """Execute move_clip."""
    params = action.parameters
    _require_clip(executor.store, params.clip_id, action.tool_id)
    timeline_editor.move_clip(
        executor.store, params.clip_id, params.start_time, params.track_id
    )
    return params.clip_id


async def _execute_batch(
    executor: ExecutorAgent,
    action: EditTimelineBatchAction,
    cancel_token: CancellationToken | None = None,
) -> str | None:
    """Execute edit_timeline_batch as one all-or-nothing transaction."""
    operations = action.parameters.operations
    if not operations:
        raise OperationExecutionError(action.tool_id, "operations must not be empty")

    # Check every target before touching the store, accounting for clips
    # deleted earlier in the same batch.
    live_ids = {c.id for c in executor.store.get_clips()}
    for index, op in enumerate(operations):
        if op.clip_id not in live_ids:
            raise OperationExecutionError(
                action.tool_id,
                f"Operation {index} ({op.type}) targets missing clip {op.clip_id}",
                {"index": index, "clip_id": op.clip_id},
            )
        if isinstance(op, BatchDelete):
            live_ids.discard(op.clip_id)

    store = executor.store
    with store.transaction():
        for op in operations:
            if isinstance(op, BatchMove):
                timeline_editor.move_clip(store, op.clip_id, op.start_time, op.track_id)
            elif isinstance(op, BatchTrim):
                timeline_editor.trim_clip(store, op.clip_id, op.duration)
            elif isinstance(op, BatchVolume):
                timeline_editor.update_clip_property(store, op.clip_id, "volume", op.volume)
            elif isinstance(op, BatchDelete):
                if op.ripple:
                    timeline_editor.ripple_delete(store, op.clip_id)
                else:
                    store.remove_clip(op.clip_id)

    logger.info(f"Applied batch of {len(operations)} operations")
    return operations[0].clip_id if len(operations) == 1 else None


# =============================================================================
# GENERATION HANDLERS
# =============================================================================


async def _execute_generate_voiceover(
    executor: ExecutorAgent,
    action: GenerateVoiceoverAction,
    cancel_token: CancellationToken | None = None,
) -> str:
    """Execute generate_voiceover."""
    params = action.parameters
    text = (params.text or action.action_content or "").strip()
    if not text:
        raise OperationExecutionError(action.tool_id, "text is required")

    media = await executor.generate(
        executor.generator_for(action.tool_id).generate_speech(text, params.voice),
        cancel_token,
    )
    duration = media.duration or DEFAULT_GENERATED_DURATION

    clip = Clip(
        id=_new_clip_id(executor.store, "vo"),
        type=ClipType.AUDIO,
        title=_title("Voiceover", text),
        start_time=params.insert_time,
        duration=duration,
        total_duration=duration,
        track_id=params.track_id,
        text=text,
        source_url=media.uri,
    )
    _place(executor.store, clip, params.placement)
    return clip.id


async def _execute_generate_image(
    executor: ExecutorAgent,
    action: GenerateImageAction,
    cancel_token: CancellationToken | None = None,
) -> str:
    """Execute generate_image."""
    params = action.parameters
    prompt = (params.prompt or action.action_content or "").strip()
    if not prompt:
        raise OperationExecutionError(action.tool_id, "prompt is required")

    media = await executor.generate(
        executor.generator_for(action.tool_id).generate_image(prompt, params.aspect_ratio),
        cancel_token,
    )

    clip = Clip(
        id=_new_clip_id(executor.store, "img"),
        type=ClipType.IMAGE,
        title=_title("Image", prompt),
        start_time=params.insert_time,
        duration=params.duration,
        track_id=params.track_id,
        source_url=media.uri,
    )
    _place(executor.store, clip, params.placement)
    return clip.id


async def _execute_generate_transition(
    executor: ExecutorAgent,
    action: GenerateTransitionAction,
    cancel_token: CancellationToken | None = None,
) -> str:
    """Execute generate_transition."""
    params = action.parameters
    prompt = (params.prompt or action.action_content or "").strip()
    if not prompt:
        raise OperationExecutionError(action.tool_id, "prompt is required")

    media = await executor.generate(
        executor.generator_for(action.tool_id).generate_video(
            prompt, params.aspect_ratio, params.duration_seconds
        ),
        cancel_token,
    )
    duration = media.duration or DEFAULT_GENERATED_DURATION

    clip = Clip(
        id=_new_clip_id(executor.store, "tr"),
        type=ClipType.VIDEO,
        title=_title("Transition", prompt),
        start_time=params.insert_time,
        duration=duration,
        total_duration=duration,
        track_id=params.track_id,
        source_url=media.uri,
    )
    _place(executor.store, clip, params.placement)
    return clip.id


# Registry of action handlers
ACTION_HANDLERS: dict[str, ActionHandler] = {
    "update_clip_property": _execute_update_property,
    "ripple_delete": _execute_ripple_delete,
    "smart_trim": _execute_smart_trim,
    "move_clip": _execute_move_clip,
    "generate_voiceover": _execute_generate_voiceover,
    "generate_image": _execute_generate_image,
    "generate_transition": _execute_generate_transition,
    "edit_timeline_batch": _execute_batch,
}


class ExecutorAgent:
    """Applies tool actions to one injected TimelineStore."""

    def __init__(
        self,
        store: TimelineStore,
        generator: MediaGenerator | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        self.store = store
        self.generator = generator
        self.cancel_token = cancel_token

    def generator_for(self, operation: str) -> MediaGenerator:
        if self.generator is None:
            raise OperationExecutionError(operation, "No media generator configured")
        return self.generator

    async def generate(
        self,
        call: Awaitable[GeneratedMedia],
        cancel_token: CancellationToken | None = None,
    ) -> GeneratedMedia:
        """Await a generation oracle call, racing the given or default token."""
        if cancel_token is None:
            cancel_token = self.cancel_token
        return await run_cancellable(call, cancel_token)

    async def execute(
        self,
        action: BaseModel | Mapping[str, Any],
        cancel_token: CancellationToken | None = None,
    ) -> ExecutionResult:
        """Execute a single tool action.

        Args:
            action: ToolAction variant, or a raw mapping from an oracle
            cancel_token: Overrides the executor's token for this call

        Returns:
            ExecutionResult with success/failure status

        Raises:
            PlanCancelledError: if the token was cancelled while a
                generation call was in flight
        """
        label = action_label(action)

        try:
            parsed = parse_tool_action(action)
        except UnknownToolError as e:
            logger.warning(f"Operation execution error: {e}")
            return ExecutionResult(success=False, operation=label, error=str(e))
        except ValidationError as e:
            logger.warning(f"Invalid parameters for {label}: {e}")
            return ExecutionResult(
                success=False,
                operation=label,
                error=f"Invalid parameters for {label}: {e.error_count()} validation error(s)",
            )

        op_type = parsed.tool_id
        if cancel_token is None:
            cancel_token = self.cancel_token
        handler = ACTION_HANDLERS.get(op_type)
        if handler is None:
            return ExecutionResult(
                success=False,
                operation=op_type,
                error=f"Unknown action: {op_type}",
            )

        logger.info(f"Executing {op_type}")
        try:
            clip_id = await handler(self, parsed, cancel_token)
            return ExecutionResult(success=True, operation=op_type, clip_id=clip_id)
        except PlanCancelledError:
            raise
        except OperationExecutionError as e:
            logger.warning(f"Operation execution error: {e}")
            return ExecutionResult(
                success=False,
                operation=op_type,
                clip_id=e.details.get("clip_id"),
                error=e.message,
            )
        except (TimelineError, ValidationError) as e:
            logger.warning(f"Invalid operation: {e}")
            return ExecutionResult(success=False, operation=op_type, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error executing {op_type}")
            return ExecutionResult(
                success=False,
                operation=op_type,
                error=f"Unexpected error: {str(e)}",
            )


def get_supported_operations() -> list[str]:
    """Return list of supported tool ids."""
    return list(ACTION_HANDLERS.keys())
