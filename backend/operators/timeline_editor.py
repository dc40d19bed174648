from typing import Any

from models.timeline_models import (
    Clip,
    ClipSummary,
    EditableProperty,
    TimelineRange,
    TrackSlice,
)
from operators.timeline_store import TimelineStore


def update_clip_property(
    store: TimelineStore,
    clip_id: str,
    prop: EditableProperty | str,
    value: Any,
) -> None:
    store.update_clip(clip_id, {prop: value})


def trim_clip(store: TimelineStore, clip_id: str, new_duration: float) -> None:
    store.update_clip(clip_id, duration=new_duration)


def move_clip(
    store: TimelineStore,
    clip_id: str,
    start_time: float,
    track_id: int | None = None,
) -> None:
    clip = store.get_clip(clip_id)
    if clip is None:
        return
    store.move_clip(
        clip_id,
        start_time,
        clip.track_id if track_id is None else track_id,
    )


def ripple_delete(store: TimelineStore, clip_id: str) -> None:
    """Delete a clip and pull later clips on its track left to close the gap.

    Only clips on the same track that started after the deleted clip move,
    each by exactly the deleted clip's duration and never below zero.
    """
    clip = store.get_clip(clip_id)
    if clip is None:
        return

    with store.transaction():
        store.remove_clip(clip_id)
        to_shift = [
            c
            for c in store.get_clips()
            if c.track_id == clip.track_id and c.start_time > clip.start_time
        ]
        for c in to_shift:
            store.update_clip(
                c.id, start_time=max(0.0, c.start_time - clip.duration)
            )


def add_clip(store: TimelineStore, clip: Clip) -> None:
    store.add_clip(clip)


def ripple_insert(store: TimelineStore, clip: Clip) -> None:
    """Insert a clip and push same-track clips at or after it to the right."""
    with store.transaction():
        to_shift = [
            c
            for c in store.get_clips()
            if c.track_id == clip.track_id and c.start_time >= clip.start_time
        ]
        for c in to_shift:
            store.update_clip(c.id, start_time=c.start_time + clip.duration)
        store.add_clip(clip)


# =============================================================================
# READ HELPERS
# =============================================================================


def timeline_duration(clips: list[Clip]) -> float:
    return max((c.end_time for c in clips), default=0.0)


def clips_in_range(clips: list[Clip], start: float, end: float) -> TimelineRange:
    """Group clips intersecting [start, end) by track, bottom track first."""
    by_track: dict[int, list[Clip]] = {}
    for clip in clips:
        if clip.overlaps(start, end):
            by_track.setdefault(clip.track_id, []).append(clip)

    return TimelineRange(
        start=start,
        end=end,
        tracks=[
            TrackSlice(
                track_id=track_id,
                clips=sorted(by_track[track_id], key=lambda c: c.start_time),
            )
            for track_id in sorted(by_track)
        ],
    )


def summarize_clips(clips: list[Clip]) -> list[ClipSummary]:
    summaries = [ClipSummary.from_clip(c) for c in clips]
    return sorted(summaries, key=lambda s: (s.start, s.track))


def format_clips(clips: list[Clip]) -> str:
    """One line per clip, used when asking an oracle to compare states."""
    if not clips:
        return "Empty Timeline"
    return "\n".join(
        f"[{c.id}] {c.type.value if c.type else 'media'} | "
        f"Start: {c.start_time:.2f}s | Dur: {c.duration:.2f}s | "
        f"Track {c.track_id} | Vol: {c.volume:.2f} | Speed: {c.speed:.2f} | "
        f'"{c.title}"'
        for c in clips
    )
