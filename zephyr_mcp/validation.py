"""
Tool argument validation.

Arguments are checked against the tool's declared input schema at the MCP
boundary only: required fields present, primitive types, enumerations and
the shape of array items. Deeper schema semantics are left to the Zephyr API.
Code behind the dispatcher trusts the validated shape.
"""

from typing import Any, Dict, List

from .errors import ToolValidationError


def _is_number(value: Any) -> bool:
    # bool is a subclass of int but never a valid number argument
    return isinstance(value, (int, float)) and not isinstance(value, bool)


TYPE_CHECKS = {
    "string": lambda value: isinstance(value, str),
    "number": _is_number,
    "integer": lambda value: _is_number(value) and float(value).is_integer(),
    "boolean": lambda value: isinstance(value, bool),
    "array": lambda value: isinstance(value, list),
    "object": lambda value: isinstance(value, dict),
}


def _check_value(value: Any, schema: dict, field: str, problems: List[str]) -> None:
    expected = schema.get("type")
    check = TYPE_CHECKS.get(expected)
    if check is not None and not check(value):
        problems.append(f"'{field}' must be of type {expected}, got {type(value).__name__}")
        return

    if "enum" in schema and value not in schema["enum"]:
        allowed = ", ".join(str(option) for option in schema["enum"])
        problems.append(f"'{field}' must be one of: {allowed}")
        return

    if expected == "array" and "items" in schema:
        for index, item in enumerate(value):
            _check_value(item, schema["items"], f"{field}[{index}]", problems)

    if expected == "object" and "properties" in schema:
        _check_object(value, schema, f"{field}.", problems)


def _check_object(value: dict, schema: dict, prefix: str, problems: List[str]) -> None:
    properties = schema.get("properties", {})

    for name in schema.get("required", []):
        if value.get(name) is None:
            problems.append(f"'{prefix}{name}' is required")

    for name, item in value.items():
        if name in properties:
            if item is not None:
                _check_value(item, properties[name], f"{prefix}{name}", problems)
        elif schema.get("additionalProperties") is False:
            problems.append(f"'{prefix}{name}' is not an allowed property")

    min_properties = schema.get("minProperties")
    if min_properties is not None:
        present = [name for name, item in value.items() if item is not None]
        if len(present) < min_properties:
            problems.append(f"at least {min_properties} non-empty properties are required")


def validate_arguments(tool_name: str, schema: dict, arguments: Any) -> Dict[str, Any]:
    """
    Validate tool arguments against a declared input schema.

    Args:
        tool_name: Name of the tool (for error messages)
        schema: JSON-schema-like dict with type/properties/required
        arguments: The raw arguments received from the MCP host

    Returns:
        dict: The arguments with None-valued entries removed

    Raises:
        ToolValidationError: If the arguments do not match the schema
    """
    if arguments is None:
        arguments = {}

    if not isinstance(arguments, dict):
        raise ToolValidationError(
            f"Invalid arguments for {tool_name}",
            {"problems": ["arguments must be an object"], "arguments": arguments},
        )

    problems: List[str] = []
    _check_object(arguments, schema, "", problems)

    if problems:
        raise ToolValidationError(
            f"Invalid arguments for {tool_name}",
            {"problems": problems, "arguments": arguments},
        )

    return {name: value for name, value in arguments.items() if value is not None}
