"""Tool definitions offered to the intent-resolution model.

Each function maps 1:1 onto a ToolAction variant: the function name is the
tool_id and the arguments become the action's parameters. The model is asked
to call exactly one of them per plan step.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


_CLIP_ID = {"type": "string", "description": "Target clip ID (must exist on the timeline)"}
_INSERT_TIME = {"type": "number", "description": "Timeline position in seconds"}
_PLACEMENT = {
    "type": "string",
    "enum": ["overlay", "ripple"],
    "description": (
        "'overlay' places the new clip without moving anything; "
        "'ripple' pushes later clips on the same track to the right"
    ),
}
_ACTION_CONTENT = {
    "type": "string",
    "description": "The fully written script or visual prompt for generative actions",
}


TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "update_clip_property",
            "description": (
                "Modify one clip property: position, duration, volume, speed or track. "
                "Use this for small adjustments to an existing clip."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "clip_id": _CLIP_ID,
                    "property": {
                        "type": "string",
                        "enum": ["start_time", "duration", "volume", "speed", "track_id"],
                        "description": "Property to modify",
                    },
                    "value": {"type": "number", "description": "New value"},
                    "action_content": _ACTION_CONTENT,
                },
                "required": ["clip_id", "property", "value"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "ripple_delete",
            "description": (
                "Delete a clip and shift later clips on the same track left to close the gap."
            ),
            "parameters": {
                "type": "object",
                "properties": {"clip_id": _CLIP_ID, "action_content": _ACTION_CONTENT},
                "required": ["clip_id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "smart_trim",
            "description": "Trim a clip to a specific duration to tighten pacing.",
            "parameters": {
                "type": "object",
                "properties": {
                    "clip_id": _CLIP_ID,
                    "new_duration": {
                        "type": "number",
                        "description": "New duration in seconds (> 0)",
                    },
                    "action_content": _ACTION_CONTENT,
                },
                "required": ["clip_id", "new_duration"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "move_clip",
            "description": "Move a clip to a new start time, optionally onto another track.",
            "parameters": {
                "type": "object",
                "properties": {
                    "clip_id": _CLIP_ID,
                    "start_time": {"type": "number", "description": "New start time (seconds)"},
                    "track_id": {
                        "type": "integer",
                        "description": "Destination track (omit to keep the current track)",
                    },
                    "action_content": _ACTION_CONTENT,
                },
                "required": ["clip_id", "start_time"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "generate_voiceover",
            "description": (
                "Create NEW narration audio (text-to-speech) and place it on the timeline. "
                "Use update_clip_property for existing audio."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "text": {"type": "string", "description": "Script to speak"},
                    "insert_time": _INSERT_TIME,
                    "track_id": {"type": "integer", "description": "Audio track (default: 2)"},
                    "voice": {"type": "string", "description": "Voice name (optional)"},
                    "placement": _PLACEMENT,
                    "action_content": _ACTION_CONTENT,
                },
                "required": ["text", "insert_time"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "generate_image",
            "description": "Create a NEW still image (title card, overlay, b-roll still).",
            "parameters": {
                "type": "object",
                "properties": {
                    "prompt": {"type": "string", "description": "Detailed image prompt"},
                    "insert_time": _INSERT_TIME,
                    "track_id": {"type": "integer", "description": "Visual track (default: 3)"},
                    "duration": {"type": "number", "description": "Display duration (default: 5)"},
                    "aspect_ratio": {"type": "string", "description": "e.g. 16:9"},
                    "placement": _PLACEMENT,
                    "action_content": _ACTION_CONTENT,
                },
                "required": ["prompt", "insert_time"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "generate_transition",
            "description": (
                "Create a NEW short generated video used as a transition between shots."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "prompt": {"type": "string", "description": "Detailed visual prompt"},
                    "insert_time": _INSERT_TIME,
                    "track_id": {"type": "integer", "description": "Video track (default: 1)"},
                    "duration_seconds": {
                        "type": "integer",
                        "enum": [4, 6, 8],
                        "description": "Generated clip length",
                    },
                    "placement": _PLACEMENT,
                    "action_content": _ACTION_CONTENT,
                },
                "required": ["prompt", "insert_time"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "edit_timeline_batch",
            "description": (
                "Apply several primitive edits (move, trim, volume, delete) as ONE undoable "
                "change. Use this when a step needs more than one clip touched."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "operations": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "type": {
                                    "type": "string",
                                    "enum": ["move", "trim", "volume", "delete"],
                                },
                                "clip_id": _CLIP_ID,
                                "start_time": {"type": "number", "description": "move: new start"},
                                "track_id": {"type": "integer", "description": "move: new track"},
                                "duration": {"type": "number", "description": "trim: new duration"},
                                "volume": {"type": "number", "description": "volume: 0-1"},
                                "ripple": {
                                    "type": "boolean",
                                    "description": "delete: close the gap",
                                },
                            },
                            "required": ["type", "clip_id"],
                        },
                    },
                    "action_content": _ACTION_CONTENT,
                },
                "required": ["operations"],
            },
        },
    },
]


def tool_call_to_action(
    name: str,
    arguments: str | dict[str, Any] | None,
    reasoning: str = "",
    timestamp: float | None = None,
) -> dict[str, Any]:
    """Turn a model function call into a raw action payload.

    The payload is left unvalidated on purpose: the executor validates it and
    reports unknown tools or bad parameters as a failed step.
    """
    if isinstance(arguments, str):
        try:
            args = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError:
            logger.warning(f"Could not decode arguments for {name}: {arguments[:200]}")
            args = {}
    else:
        args = dict(arguments or {})

    if not isinstance(args, dict):
        args = {}

    action_content = args.pop("action_content", None)
    return {
        "tool_id": name,
        "parameters": args,
        "reasoning": reasoning,
        "action_content": action_content,
        "timestamp": timestamp,
    }
