"""Prompts for the intent-resolution and verification oracles.

Resolution turns one semantic plan step into exactly one concrete tool call
against the current timeline. Verification judges a before/after pair of clip
snapshots against the intent that produced it.
"""

from __future__ import annotations

from typing import Any

RESOLVER_SYSTEM_PROMPT = """You are the execution layer of a video editor. A director has already planned the edit; your job is to turn ONE plan step into ONE concrete tool call against the current timeline.

## Rules

- Call exactly one tool. If the step cannot be made concrete (ambiguous target, nothing on the timeline fits), call no tool and explain why in one sentence.
- Only use clip IDs that appear in the timeline summary. Never invent IDs.
- When the summary has a "focus" entry, it lists, per track, the clips near the position the step refers to. Prefer those as targets.
- Times are in seconds. Tracks are integers; higher tracks draw on top.
- Prefer `edit_timeline_batch` when the step needs more than one existing clip touched, so the change is a single undo step.
- Use the `generate_*` tools only for NEW content. Put the full script or visual prompt in `action_content` as well as in `text`/`prompt`.
- Use placement "ripple" only when later clips should make room; otherwise use "overlay".

## Tools

- `update_clip_property`: change start_time, duration, volume (0-1), speed or track_id of a clip.
- `smart_trim`: set a clip's duration without moving it.
- `move_clip`: move a clip in time and optionally to another track.
- `ripple_delete`: remove a clip and close the gap on its track.
- `edit_timeline_batch`: several move/trim/volume/delete operations applied together.
- `generate_voiceover`: narration (text-to-speech), default audio track 2.
- `generate_image`: still image, default visual track 3.
- `generate_transition`: short generated video, default video track 1.
"""

VERIFIER_SYSTEM_PROMPT = """You review edits made to a video timeline.

Given the intent, the operation that was applied and the clip list before and after, decide:
1. Did the operation satisfy the intent?
2. Is the resulting timeline structurally sound (no negative start times, no zero or negative durations, volumes within 0-1, no duplicate IDs)?

Respond with JSON only:
{"passed": true|false, "issues": ["..."] or null, "suggestion": "..." or null}

Keep issues short and concrete. Only give a suggestion when the edit failed.
"""


def build_resolution_prompt(
    step: Any,
    timeline_summary: str,
) -> str:
    """Build the user message for resolving one plan step.

    Args:
        step: PlanStep (or anything with intent/reasoning/category/timestamp)
        timeline_summary: Serialized summary of the current clips

    Returns:
        Prompt text
    """
    category = getattr(step, "category", None)
    timestamp = getattr(step, "timestamp", None)

    parts = [f"## Plan Step\nIntent: {step.intent}"]
    if getattr(step, "reasoning", ""):
        parts.append(f"Reasoning: {step.reasoning}")
    if category is not None:
        parts.append(f"Category: {getattr(category, 'value', category)}")
    if timestamp is not None:
        parts.append(f"Around timeline position: {timestamp:.2f}s")

    parts.append(f"## Current Timeline\n{timeline_summary or 'Empty Timeline'}")
    return "\n".join(parts)


def build_verification_prompt(
    intent: str,
    operation: str,
    before: str,
    after: str,
) -> str:
    """Build the user message for judging an applied operation."""
    return (
        f"## Intent\n{intent}\n\n"
        f"## Operation\n{operation}\n\n"
        f"## Before\n{before}\n\n"
        f"## After\n{after}"
    )
