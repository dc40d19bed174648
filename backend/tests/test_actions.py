from __future__ import annotations

import pytest
from pydantic import ValidationError

from agent.edit_orchestrator.actions import (
    BatchDelete,
    BatchMove,
    EditTimelineBatchAction,
    GenerateVoiceoverAction,
    SmartTrimAction,
    TOOL_IDS,
    UnknownToolError,
    UpdatePropertyAction,
    action_label,
    parse_tool_action,
)
from agent.edit_orchestrator.tools import TOOLS, tool_call_to_action


def test_parse_tool_action_selects_variant_and_coerces_numbers() -> None:
    action = parse_tool_action(
        {
            "tool_id": "update_clip_property",
            "parameters": {"clip_id": "c1", "property": "volume", "value": "0.5"},
        }
    )

    assert isinstance(action, UpdatePropertyAction)
    assert action.parameters.value == 0.5


def test_parse_tool_action_passes_variants_through() -> None:
    action = SmartTrimAction(parameters={"clip_id": "c1", "new_duration": 2})
    assert parse_tool_action(action) is action


def test_parse_tool_action_rejects_unknown_tool() -> None:
    with pytest.raises(UnknownToolError, match="Unknown action: explode_clip"):
        parse_tool_action({"tool_id": "explode_clip", "parameters": {}})


def test_parse_tool_action_rejects_bad_parameters() -> None:
    with pytest.raises(ValidationError):
        parse_tool_action(
            {"tool_id": "smart_trim", "parameters": {"clip_id": "c1", "new_duration": 0}}
        )


def test_generation_actions_accept_missing_parameters() -> None:
    action = parse_tool_action(
        {"tool_id": "generate_voiceover", "parameters": None, "action_content": "Hello"}
    )

    assert isinstance(action, GenerateVoiceoverAction)
    assert action.parameters.track_id == 2
    assert action.parameters.placement == "overlay"


def test_batch_operations_are_discriminated_by_type() -> None:
    action = parse_tool_action(
        {
            "tool_id": "edit_timeline_batch",
            "parameters": {
                "operations": [
                    {"type": "move", "clip_id": "a", "start_time": 2},
                    {"type": "delete", "clip_id": "b", "ripple": True},
                ]
            },
        }
    )

    assert isinstance(action, EditTimelineBatchAction)
    first, second = action.parameters.operations
    assert isinstance(first, BatchMove)
    assert isinstance(second, BatchDelete) and second.ripple


def test_action_label_handles_raw_and_typed_actions() -> None:
    assert action_label({"tool_id": "nope"}) == "nope"
    assert action_label({}) == "unknown"
    assert action_label(SmartTrimAction(parameters={"clip_id": "c", "new_duration": 1})) == "smart_trim"


def test_every_tool_schema_has_a_variant() -> None:
    assert [t["function"]["name"] for t in TOOLS] == list(TOOL_IDS)
    for tool in TOOLS:
        assert "action_content" in tool["function"]["parameters"]["properties"]


def test_tool_call_to_action_splits_action_content() -> None:
    payload = tool_call_to_action(
        "generate_image",
        '{"prompt": "sunset", "insert_time": 3, "action_content": "a warm sunset"}',
        reasoning="needs a title card",
    )

    assert payload["tool_id"] == "generate_image"
    assert payload["parameters"] == {"prompt": "sunset", "insert_time": 3}
    assert payload["action_content"] == "a warm sunset"
    assert payload["reasoning"] == "needs a title card"


def test_tool_call_to_action_tolerates_bad_json() -> None:
    payload = tool_call_to_action("ripple_delete", "{not json")
    assert payload["parameters"] == {}
