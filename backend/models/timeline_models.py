"""
Pydantic models for the editable clip timeline.

The timeline is a flat collection of clips. Each clip knows where it sits
(start_time, track_id), how much of its source it plays (source_start_time,
duration) and how it is presented (transform, text_style, speed, volume).

Clips are immutable: every edit produces a new Clip instance, which lets the
store hand out its list without the risk of callers mutating history.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class ClipType(str, Enum):
    """Kind of media a clip carries."""
    VIDEO = "video"
    IMAGE = "image"
    AUDIO = "audio"
    TEXT = "text"


# Fields an editing agent may set directly through update_clip_property.
EditableProperty = Literal["start_time", "duration", "volume", "speed", "track_id"]


# =============================================================================
# PRESENTATION
# =============================================================================


class Transform(BaseModel):
    """
    Placement of a visual clip on the canvas.

    x and y are offsets relative to the canvas size (0 is center),
    scale 1 is 100%, rotation is in degrees.
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    x: float = 0.0
    y: float = 0.0
    scale: float = Field(default=1.0, gt=0)
    rotation: float = 0.0


class TextStyle(BaseModel):
    """Styling for text clips (captions, titles, lower thirds)."""
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    font_family: str = "Plus Jakarta Sans"
    font_size: float = Field(default=40.0, gt=0)
    is_bold: bool = True
    is_italic: bool = False
    is_underline: bool = False
    color: str = "#ffffff"
    background_color: str = "#000000"
    background_opacity: float = Field(default=0.0, ge=0, le=1)
    align: Literal["left", "center", "right"] = "center"


DEFAULT_TEXT_STYLE = TextStyle()


# =============================================================================
# CLIP
# =============================================================================


class Clip(BaseModel):
    """
    One placed unit of timeline content.

    Clips on the same track may overlap; resolving overlap is a rendering
    concern, not something the model enforces.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    id: str = Field(min_length=1, description="Unique, immutable clip identifier")
    type: ClipType | None = Field(
        default=None,
        description="Media kind (None = generic media)"
    )
    title: str = Field(default="", description="Display name")
    start_time: float = Field(ge=0, description="Position on the timeline (seconds)")
    duration: float = Field(gt=0, description="Length on the timeline (seconds)")
    source_start_time: float = Field(
        default=0.0,
        ge=0,
        description="Offset into the originating media (seconds)"
    )
    total_duration: float | None = Field(
        default=None,
        gt=0,
        description="Full length of the source media, if known"
    )
    track_id: int = Field(description="Track index (lower = visually bottom)")
    transform: Transform | None = None
    text_style: TextStyle | None = None
    text: str | None = None
    speed: float = Field(default=1.0, gt=0, description="Playback speed multiplier")
    volume: float = Field(default=1.0, ge=0, le=1, description="Audio volume")
    source_url: str | None = None

    @property
    def end_time(self) -> float:
        """Timeline position where this clip stops playing."""
        return self.start_time + self.duration

    def overlaps(self, start: float, end: float) -> bool:
        """True if the clip intersects the half-open range [start, end)."""
        return self.start_time < end and self.end_time > start

    def with_updates(self, updates: dict[str, Any]) -> Clip:
        """Return a validated copy with `updates` shallow-merged in."""
        data = self.model_dump()
        data.update(updates)
        return Clip.model_validate(data)


CLIP_FIELDS = frozenset(Clip.model_fields)


class ClipSummary(BaseModel):
    """Compact view of a clip handed to oracles instead of the full model."""

    id: str
    type: str
    title: str = ""
    start: float
    duration: float
    end: float
    track: int

    @classmethod
    def from_clip(cls, clip: Clip) -> ClipSummary:
        return cls(
            id=clip.id,
            type=clip.type.value if clip.type else "media",
            title=clip.title,
            start=round(clip.start_time, 3),
            duration=round(clip.duration, 3),
            end=round(clip.end_time, 3),
            track=clip.track_id,
        )


class TrackSlice(BaseModel):
    """Clips on one track that intersect a time range."""

    track_id: int
    clips: list[Clip] = Field(default_factory=list)


class TimelineRange(BaseModel):
    """A time window over the timeline with the clips it touches, per track."""

    start: float
    end: float
    tracks: list[TrackSlice] = Field(default_factory=list)
