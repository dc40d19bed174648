"""Tool actions: the concrete, executable unit produced by intent resolution.

Each tool id has its own parameter model, and ToolAction is a discriminated
union over them. Oracle output arrives as loosely typed JSON, so numeric
fields rely on pydantic's lax coercion ("5" -> 5.0).
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from models.timeline_models import EditableProperty


Placement = Literal["overlay", "ripple"]


# =============================================================================
# PARAMETER RECORDS
# =============================================================================


class _FiniteModel(BaseModel):
    """Oracle JSON may carry Infinity or NaN; neither is a valid timeline value."""
    model_config = ConfigDict(allow_inf_nan=False)


class UpdatePropertyParams(_FiniteModel):
    clip_id: str = Field(description="Target clip ID")
    property: EditableProperty = Field(description="Clip property to modify")
    value: float = Field(description="New value")


class ClipTargetParams(_FiniteModel):
    clip_id: str = Field(description="Target clip ID")


class SmartTrimParams(_FiniteModel):
    clip_id: str = Field(description="Target clip ID")
    new_duration: float = Field(gt=0, description="New clip duration (seconds)")


class MoveClipParams(_FiniteModel):
    clip_id: str = Field(description="Target clip ID")
    start_time: float = Field(ge=0, description="New timeline position (seconds)")
    track_id: int | None = Field(
        default=None,
        description="Destination track (None = keep current track)",
    )


class VoiceoverParams(_FiniteModel):
    text: str | None = Field(
        default=None,
        description="Script to speak (falls back to action_content)",
    )
    insert_time: float = Field(default=0.0, ge=0, description="Timeline position")
    track_id: int = Field(default=2, description="Audio track")
    voice: str | None = Field(default=None, description="Voice name")
    placement: Placement = "overlay"


class ImageParams(_FiniteModel):
    prompt: str | None = Field(
        default=None,
        description="Image prompt (falls back to action_content)",
    )
    insert_time: float = Field(default=0.0, ge=0)
    track_id: int = 3
    duration: float = Field(default=5.0, gt=0, description="Display duration")
    aspect_ratio: str = "16:9"
    placement: Placement = "overlay"


class TransitionParams(_FiniteModel):
    prompt: str | None = Field(
        default=None,
        description="Visual prompt (falls back to action_content)",
    )
    insert_time: float = Field(default=0.0, ge=0)
    track_id: int = 1
    duration_seconds: int = Field(default=4, gt=0)
    aspect_ratio: str = "16:9"
    placement: Placement = "ripple"


# Batch primitives


class BatchMove(_FiniteModel):
    type: Literal["move"] = "move"
    clip_id: str
    start_time: float = Field(ge=0)
    track_id: int | None = None


class BatchTrim(_FiniteModel):
    type: Literal["trim"] = "trim"
    clip_id: str
    duration: float = Field(gt=0)


class BatchVolume(_FiniteModel):
    type: Literal["volume"] = "volume"
    clip_id: str
    volume: float = Field(ge=0, le=1)


class BatchDelete(_FiniteModel):
    type: Literal["delete"] = "delete"
    clip_id: str
    ripple: bool = False


BatchOperation = Annotated[
    Union[BatchMove, BatchTrim, BatchVolume, BatchDelete],
    Field(discriminator="type"),
]


class BatchEditParams(_FiniteModel):
    operations: list[BatchOperation] = Field(
        default_factory=list,
        description="Ordered primitive operations, applied as one undo step",
    )


# =============================================================================
# ACTIONS
# =============================================================================


class _ActionBase(_FiniteModel):
    reasoning: str = ""
    action_content: str | None = Field(
        default=None,
        description="Generated payload such as a script or visual prompt",
    )
    timestamp: float | None = None


class UpdatePropertyAction(_ActionBase):
    tool_id: Literal["update_clip_property"] = "update_clip_property"
    parameters: UpdatePropertyParams


class RippleDeleteAction(_ActionBase):
    tool_id: Literal["ripple_delete"] = "ripple_delete"
    parameters: ClipTargetParams


class SmartTrimAction(_ActionBase):
    tool_id: Literal["smart_trim"] = "smart_trim"
    parameters: SmartTrimParams


class MoveClipAction(_ActionBase):
    tool_id: Literal["move_clip"] = "move_clip"
    parameters: MoveClipParams


class GenerateVoiceoverAction(_ActionBase):
    tool_id: Literal["generate_voiceover"] = "generate_voiceover"
    parameters: VoiceoverParams = Field(default_factory=VoiceoverParams)


class GenerateImageAction(_ActionBase):
    tool_id: Literal["generate_image"] = "generate_image"
    parameters: ImageParams = Field(default_factory=ImageParams)


class GenerateTransitionAction(_ActionBase):
    tool_id: Literal["generate_transition"] = "generate_transition"
    parameters: TransitionParams = Field(default_factory=TransitionParams)


class EditTimelineBatchAction(_ActionBase):
    tool_id: Literal["edit_timeline_batch"] = "edit_timeline_batch"
    parameters: BatchEditParams


ToolAction = Annotated[
    Union[
        UpdatePropertyAction,
        RippleDeleteAction,
        SmartTrimAction,
        MoveClipAction,
        GenerateVoiceoverAction,
        GenerateImageAction,
        GenerateTransitionAction,
        EditTimelineBatchAction,
    ],
    Field(discriminator="tool_id"),
]

ACTION_TYPES: tuple[type[_ActionBase], ...] = (
    UpdatePropertyAction,
    RippleDeleteAction,
    SmartTrimAction,
    MoveClipAction,
    GenerateVoiceoverAction,
    GenerateImageAction,
    GenerateTransitionAction,
    EditTimelineBatchAction,
)

TOOL_IDS: tuple[str, ...] = tuple(
    cls.model_fields["tool_id"].default for cls in ACTION_TYPES
)

_ACTION_ADAPTER: TypeAdapter[ToolAction] = TypeAdapter(ToolAction)


class UnknownToolError(ValueError):
    """Raised when an action names a tool outside the supported set."""

    def __init__(self, tool_id: Any):
        self.tool_id = tool_id
        super().__init__(f"Unknown action: {tool_id}")


def parse_tool_action(data: Mapping[str, Any] | BaseModel) -> ToolAction:
    """Validate a loosely typed action payload into a ToolAction variant.

    Raises:
        UnknownToolError: if tool_id is missing or not a supported tool
        pydantic.ValidationError: if the parameters do not fit the tool
    """
    if isinstance(data, ACTION_TYPES):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    if not isinstance(data, Mapping):
        raise UnknownToolError(type(data).__name__)

    tool_id = data.get("tool_id")
    if tool_id not in TOOL_IDS:
        raise UnknownToolError(tool_id)

    payload = dict(data)
    if payload.get("parameters") is None:
        payload.pop("parameters", None)
    return _ACTION_ADAPTER.validate_python(payload)


def action_label(action: Mapping[str, Any] | BaseModel) -> str:
    """Best-effort tool id for logging, even for payloads that fail validation."""
    if isinstance(action, BaseModel):
        return str(getattr(action, "tool_id", type(action).__name__))
    if not isinstance(action, Mapping):
        return "unknown"
    return str(action.get("tool_id") or "unknown")
