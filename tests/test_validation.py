"""Tests for tool argument validation."""

import pytest

from zephyr_mcp.errors import ToolValidationError
from zephyr_mcp.validation import validate_arguments

SCHEMA = {
    "type": "object",
    "properties": {
        "key": {"type": "string"},
        "count": {"type": "number"},
        "mode": {"type": "string", "enum": ["OVERWRITE", "APPEND"]},
        "steps": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"description": {"type": "string"}},
                "required": ["description"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["key"],
}


def _problems(arguments, schema=SCHEMA):
    with pytest.raises(ToolValidationError) as exc_info:
        validate_arguments("some_tool", schema, arguments)
    assert exc_info.value.message == "Invalid arguments for some_tool"
    return exc_info.value.details["problems"]


def test_valid_arguments_drop_none_values():
    result = validate_arguments("some_tool", SCHEMA, {"key": "PROJ-T1", "count": None, "extra": 1})
    assert result == {"key": "PROJ-T1", "extra": 1}


def test_missing_and_null_required():
    assert _problems({}) == ["'key' is required"]
    assert _problems({"key": None}) == ["'key' is required"]


def test_none_arguments_are_treated_as_empty():
    assert _problems(None) == ["'key' is required"]


def test_non_object_arguments():
    assert _problems("PROJ-T1") == ["arguments must be an object"]


@pytest.mark.parametrize("count", [True, "3", [3]])
def test_number_rejects_other_types(count):
    problems = _problems({"key": "K", "count": count})
    assert problems[0].startswith("'count' must be of type number")


def test_enum():
    assert _problems({"key": "K", "mode": "REPLACE"}) == ["'mode' must be one of: OVERWRITE, APPEND"]


def test_array_items_are_checked():
    problems = _problems({"key": "K", "steps": [{"description": "ok"}, {"inline": {}}]})
    assert "'steps[1].description' is required" in problems
    assert "'steps[1].inline' is not an allowed property" in problems


def test_min_properties():
    schema = dict(SCHEMA, minProperties=2)
    assert _problems({"key": "K", "count": None}, schema) == [
        "at least 2 non-empty properties are required"
    ]
    assert validate_arguments("some_tool", schema, {"key": "K", "count": 1}) == {"key": "K", "count": 1}
