"""
Timeline Store - the authoritative clip collection with undo/redo history.

This module provides the single writer for timeline state:
- Atomic mutation primitives (set/add/remove/update/move)
- Snapshot-based undo/redo history
- Transactions that collapse several primitives into one history entry
- A subscription channel that replays the full clip list on every change

Lookups that miss are tolerated silently: removing, updating or moving an
unknown clip id leaves the timeline untouched and records no history. Values
that would break a clip invariant (non-positive duration, negative start,
duplicate ids) raise InvalidOperationError.

The store is an ordinary object. Construct one per editing session and pass it
to whatever needs to read or change the timeline.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator

from pydantic import ValidationError

from models.timeline_models import CLIP_FIELDS, Clip

logger = logging.getLogger(__name__)

ClipListener = Callable[[list[Clip]], None]


# =============================================================================
# EXCEPTIONS
# =============================================================================


class TimelineError(Exception):
    """Base exception for timeline store operations."""
    pass


class InvalidOperationError(TimelineError):
    """Raised when a mutation would violate a clip invariant."""
    pass


class TransactionError(TimelineError):
    """Raised on commit/abort without an open transaction."""
    pass


def _copy_clips(clips: Iterable[Clip]) -> list[Clip]:
    return [clip.model_copy(deep=True) for clip in clips]


def _ensure_unique_ids(clips: list[Clip]) -> None:
    seen: set[str] = set()
    for clip in clips:
        if clip.id in seen:
            raise InvalidOperationError(f"Duplicate clip id: {clip.id}")
        seen.add(clip.id)


class TimelineHistory:
    """Two stacks of full clip snapshots."""

    def __init__(self) -> None:
        self.past: list[list[Clip]] = []
        self.future: list[list[Clip]] = []

    def record(self, snapshot: list[Clip]) -> None:
        self.past.append(snapshot)
        self.future.clear()

    def clear(self) -> None:
        self.past.clear()
        self.future.clear()


class TimelineStore:
    """
    Owns the live clip list and its history.

    Every mutating primitive pushes the pre-mutation snapshot onto the undo
    stack, clears the redo stack and notifies subscribers, unless it runs
    inside a transaction, in which case the outermost commit does all three
    exactly once.
    """

    def __init__(self, initial_clips: Iterable[Clip] | None = None) -> None:
        clips = _copy_clips(initial_clips or [])
        _ensure_unique_ids(clips)
        self._clips: list[Clip] = clips
        self.history = TimelineHistory()
        self._listeners: list[ClipListener] = []
        self._tx_depth = 0
        self._tx_snapshot: list[Clip] | None = None
        self._tx_dirty = False

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    def get_clips(self) -> list[Clip]:
        """Current clips. The list is fresh and the clips are frozen."""
        return list(self._clips)

    def get_clip(self, clip_id: str) -> Clip | None:
        for clip in self._clips:
            if clip.id == clip_id:
                return clip
        return None

    def subscribe(self, listener: ClipListener) -> Callable[[], None]:
        """
        Register a listener for clip changes.

        The listener is called immediately with the current clips and then
        once after every mutation. Returns a callable that unsubscribes.
        """
        self._listeners.append(listener)
        listener(self.get_clips())

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.get_clips())
            except Exception:
                logger.exception("Timeline listener failed")

    def can_undo(self) -> bool:
        return bool(self.history.past)

    def can_redo(self) -> bool:
        return bool(self.history.future)

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0

    # -------------------------------------------------------------------------
    # Core mutations
    # -------------------------------------------------------------------------

    def _apply(self, new_clips: list[Clip], description: str) -> None:
        if self._tx_depth > 0:
            self._clips = new_clips
            self._tx_dirty = True
            logger.debug(f"Staged in transaction: {description}")
            return

        self.history.record(_copy_clips(self._clips))
        self._clips = new_clips
        logger.debug(f"Applied: {description}")
        self._notify()

    def set_clips(self, clips: Iterable[Clip]) -> None:
        new_clips = _copy_clips(clips)
        _ensure_unique_ids(new_clips)
        self._apply(new_clips, f"set {len(new_clips)} clips")

    def add_clip(self, clip: Clip) -> None:
        if self.get_clip(clip.id) is not None:
            raise InvalidOperationError(f"Duplicate clip id: {clip.id}")
        self._apply([*self._clips, clip.model_copy(deep=True)], f"add {clip.id}")

    def remove_clip(self, clip_id: str) -> None:
        if self.get_clip(clip_id) is None:
            return
        self._apply(
            [clip for clip in self._clips if clip.id != clip_id],
            f"remove {clip_id}",
        )

    def update_clip(
        self,
        clip_id: str,
        updates: dict[str, Any] | None = None,
        **fields: Any,
    ) -> None:
        """Shallow-merge fields into a clip. Unknown ids are ignored."""
        changes = {**(updates or {}), **fields}
        target = self.get_clip(clip_id)
        if target is None:
            return

        unknown = set(changes) - CLIP_FIELDS
        if unknown:
            raise InvalidOperationError(
                f"Unknown clip field(s): {', '.join(sorted(unknown))}"
            )
        if "id" in changes and changes["id"] != clip_id:
            raise InvalidOperationError("Clip id is immutable")

        try:
            updated = target.with_updates(changes)
        except ValidationError as e:
            raise InvalidOperationError(
                f"Invalid update for clip {clip_id}: {e.errors()[0]['msg']}"
            ) from e

        self._apply(
            [updated if clip.id == clip_id else clip for clip in self._clips],
            f"update {clip_id} {sorted(changes)}",
        )

    def move_clip(self, clip_id: str, start_time: float, track_id: int) -> None:
        self.update_clip(clip_id, start_time=start_time, track_id=track_id)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def begin(self) -> None:
        """Open a transaction. Nested calls only bump the depth."""
        if self._tx_depth == 0:
            self._tx_snapshot = _copy_clips(self._clips)
            self._tx_dirty = False
        self._tx_depth += 1

    def commit(self) -> None:
        """Close a transaction level; the outermost one records history."""
        if self._tx_depth == 0:
            raise TransactionError("commit() without an open transaction")
        self._tx_depth -= 1
        if self._tx_depth > 0:
            return

        snapshot = self._tx_snapshot
        dirty = self._tx_dirty
        self._tx_snapshot = None
        self._tx_dirty = False
        if dirty and snapshot is not None:
            self.history.record(snapshot)
            logger.debug("Committed transaction")
            self._notify()

    def abort(self) -> None:
        """
        Roll back to the state before the outermost begin().

        Aborting an inner level discards everything staged so far, including
        the outer levels' changes; the outer levels still have to be closed.
        """
        if self._tx_depth == 0:
            raise TransactionError("abort() without an open transaction")
        if self._tx_snapshot is not None:
            self._clips = _copy_clips(self._tx_snapshot)
        self._tx_dirty = False
        self._tx_depth -= 1
        if self._tx_depth == 0:
            self._tx_snapshot = None
        logger.debug("Aborted transaction")

    @contextmanager
    def transaction(self) -> Iterator[TimelineStore]:
        """Group mutations into one undo step; abort on exception."""
        self.begin()
        try:
            yield self
        except BaseException:
            self.abort()
            raise
        self.commit()

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def undo(self) -> None:
        if self._tx_depth > 0:
            raise TransactionError("Cannot undo inside a transaction")
        if not self.history.past:
            return
        previous = self.history.past.pop()
        self.history.future.append(_copy_clips(self._clips))
        self._clips = previous
        self._notify()

    def redo(self) -> None:
        if self._tx_depth > 0:
            raise TransactionError("Cannot redo inside a transaction")
        if not self.history.future:
            return
        following = self.history.future.pop()
        self.history.past.append(_copy_clips(self._clips))
        self._clips = following
        self._notify()
