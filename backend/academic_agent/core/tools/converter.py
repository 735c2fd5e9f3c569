"""
Tool catalog converters - turn internal tool specs into provider function-calling formats
"""

import json
from typing import Any, Dict, List, Optional, Sequence, Union

from .base import ToolResult, ToolSpec


def tools_to_openai_functions(tools: Sequence[ToolSpec]) -> List[Dict[str, Any]]:
    """
    OpenAI Chat Completions format:
    {
        "type": "function",
        "function": {
            "name": "createProgram",
            "description": "...",
            "parameters": {"type": "object", "properties": {...}, "required": [...]}
        }
    }
    """
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": _object_schema(tool.input_schema),
            },
        }
        for tool in tools
    ]


def tools_to_anthropic_tools(tools: Sequence[ToolSpec]) -> List[Dict[str, Any]]:
    """Anthropic Messages API format: name, description, input_schema"""
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "input_schema": _object_schema(tool.input_schema),
        }
        for tool in tools
    ]


def tools_to_gemini_declarations(tools: Sequence[ToolSpec]) -> List[Dict[str, Any]]:
    """Gemini function declarations, wrapped in a single tool entry

    Gemini only understands a subset of JSON Schema, so titles, defaults and
    ``anyOf`` nullables are folded away. Tools without parameters omit the
    ``parameters`` key because Gemini rejects empty object schemas.
    """
    declarations = []
    for tool in tools:
        declaration: Dict[str, Any] = {
            "name": tool.name,
            "description": tool.description,
        }
        if tool.input_schema.get("properties"):
            declaration["parameters"] = to_gemini_schema(tool.input_schema)
        declarations.append(declaration)

    if not declarations:
        return []
    return [{"function_declarations": declarations}]


def to_gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a pydantic JSON schema to what Gemini accepts"""
    nullable = False

    if "anyOf" in schema:
        options = [option for option in schema["anyOf"] if option.get("type") != "null"]
        nullable = len(options) != len(schema["anyOf"])
        merged = dict(options[0]) if options else {"type": "string"}
        if "description" in schema:
            merged.setdefault("description", schema["description"])
        schema = merged

    result: Dict[str, Any] = {"type": str(schema.get("type", "string")).upper()}

    if schema.get("description"):
        result["description"] = schema["description"]
    if schema.get("enum"):
        result["enum"] = [str(value) for value in schema["enum"]]
        result.setdefault("format", "enum")
    if nullable:
        result["nullable"] = True

    if result["type"] == "OBJECT":
        properties = schema.get("properties", {})
        result["properties"] = {
            name: to_gemini_schema(value) for name, value in properties.items()
        }
        if schema.get("required"):
            result["required"] = list(schema["required"])
    elif result["type"] == "ARRAY":
        result["items"] = to_gemini_schema(schema.get("items", {"type": "string"}))

    return result


def parse_tool_call_arguments(arguments: Union[str, Dict[str, Any], None]) -> Any:
    """
    Parse the arguments a provider returned for a tool call

    Providers that send JSON text (OpenAI) are decoded here. Text that is not valid
    JSON is passed through unchanged: the registry reports it as a validation error
    so the model can see and fix it.

    Args:
        arguments: JSON string, already-decoded object, or None

    Returns:
        Decoded arguments
    """
    if arguments is None:
        return {}
    if not isinstance(arguments, str):
        return arguments
    if not arguments.strip():
        return {}

    try:
        return json.loads(arguments)
    except json.JSONDecodeError:
        return arguments


def dump_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def format_tool_result_for_model(result: ToolResult) -> Dict[str, Any]:
    """Result payload fed back to the model on the next iteration"""
    return result.to_dict()


def _object_schema(schema: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not schema:
        return {"type": "object", "properties": {}}

    parameters = dict(schema)
    parameters.pop("title", None)
    parameters.setdefault("type", "object")
    parameters.setdefault("properties", {})
    return parameters
