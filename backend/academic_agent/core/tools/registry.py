"""
Tool registry

Static catalog of tool name -> input schema + async handler. Registration happens at
startup; once frozen the registry is read-only and shared by every query.
"""

import inspect
import logging
from typing import Any, Dict, List, Tuple, Union

from pydantic import BaseModel, ValidationError

from .base import (
    ErrOutcome,
    FieldIssue,
    OkOutcome,
    ToolCallRequest,
    ToolDefinition,
    ToolErrorType,
    ToolOutcome,
    ToolResult,
    ToolSpec,
    ToolValidationError,
)
from .handler import BaseToolHandler


logger = logging.getLogger(__name__)


class DuplicateToolNameError(ValueError):
    """A tool with the same name is already registered"""

    def __init__(self, name: str):
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class UnknownToolError(KeyError):
    """No tool with the requested name"""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown tool: {self.name}"


class RegistryFrozenError(RuntimeError):
    """Registration attempted after the registry was frozen"""


def _format_loc(loc: Tuple[Union[int, str], ...]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def _issues_from_pydantic(exc: ValidationError) -> Tuple[FieldIssue, ...]:
    return tuple(
        FieldIssue(path=_format_loc(error.get("loc", ())), reason=error.get("msg", "invalid value"))
        for error in exc.errors()
    )


class ToolRegistry:
    """Tool registry - registration, validation and dispatch"""

    def __init__(self):
        self._definitions: Dict[str, ToolDefinition] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, definition: Union[ToolDefinition, BaseToolHandler]) -> ToolDefinition:
        """Register a tool

        Args:
            definition: tool definition, or a handler that provides one

        Returns:
            The registered definition

        Raises:
            DuplicateToolNameError: the name is taken
            RegistryFrozenError: the registry no longer accepts tools
        """
        if self._frozen:
            raise RegistryFrozenError("Tool registry is frozen")

        if isinstance(definition, BaseToolHandler):
            definition = definition.get_definition()

        if definition.name in self._definitions:
            raise DuplicateToolNameError(definition.name)

        self._definitions[definition.name] = definition
        logger.info(f"Registered tool: {definition.name}")
        return definition

    def freeze(self) -> "ToolRegistry":
        self._frozen = True
        return self

    def has(self, name: str) -> bool:
        return name in self._definitions

    def resolve(self, name: str) -> ToolDefinition:
        """Look up a tool definition

        Raises:
            UnknownToolError: no such tool
        """
        try:
            return self._definitions[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def validate(self, name: str, raw_args: Any) -> Union[BaseModel, ToolValidationError]:
        """Validate raw model arguments against the tool's input model

        Never raises: an unknown tool, bad input or a failing input model all come back
        as a ToolValidationError value.
        """
        try:
            definition = self.resolve(name)
        except UnknownToolError as e:
            return ToolValidationError(tool_name=name, issues=(FieldIssue(path="", reason=str(e)),))

        if raw_args is None:
            raw_args = {}

        if not isinstance(raw_args, dict):
            return ToolValidationError(
                tool_name=name,
                issues=(FieldIssue(
                    path="",
                    reason=f"arguments must be a JSON object, got {type(raw_args).__name__}",
                ),),
            )

        try:
            return definition.input_model.model_validate(raw_args)
        except ValidationError as e:
            return ToolValidationError(tool_name=name, issues=_issues_from_pydantic(e))
        except Exception as e:
            # validators raising anything but ValueError/AssertionError bypass pydantic
            logger.warning(f"Input model of tool {name} failed: {type(e).__name__}: {e}")
            return ToolValidationError(
                tool_name=name,
                issues=(FieldIssue(path="", reason=f"{type(e).__name__}: {e}"),),
            )

    async def invoke(self, name: str, raw_args: Any) -> ToolOutcome:
        """Resolve, validate and run a tool. Always returns an outcome.

        Args:
            name: tool name requested by the model
            raw_args: untyped arguments from the model

        Returns:
            OkOutcome with the handler's value, or ErrOutcome describing the failure
        """
        try:
            definition = self.resolve(name)
        except UnknownToolError as e:
            logger.warning(str(e))
            return ErrOutcome(reason=str(e), error_type=ToolErrorType.UNKNOWN_TOOL)

        validated = self.validate(name, raw_args)
        if isinstance(validated, ToolValidationError):
            logger.warning(validated.message)
            return ErrOutcome(
                reason=validated.message,
                error_type=ToolErrorType.VALIDATION_ERROR,
                issues=validated.issues,
            )

        try:
            logger.info(f"Executing tool: {name}")
            value = definition.handler(validated)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            return ErrOutcome(reason=str(e) or type(e).__name__, error_type=ToolErrorType.EXECUTION_ERROR)

        logger.info(f"Tool {name} succeeded")
        return OkOutcome(value=value)

    async def invoke_call(self, call: ToolCallRequest) -> ToolResult:
        """Invoke a model request and wrap the outcome with its call id"""
        outcome = await self.invoke(call.tool_name, call.arguments)
        return ToolResult(call_id=call.call_id, tool_name=call.tool_name, outcome=outcome)

    def list_tools(self) -> List[ToolSpec]:
        """Catalog in registration order"""
        return [definition.get_spec() for definition in self._definitions.values()]

    def list_tools_by_category(self, category: str) -> List[ToolSpec]:
        return [spec for spec in self.list_tools() if spec.category == category]

    def get_tools_description(self) -> str:
        """Plain-text tool listing for the system directive"""
        descriptions = []

        for spec in self.list_tools():
            descriptions.append(f"- {spec.name}: {spec.description}")

            properties = spec.input_schema.get("properties", {})
            required = set(spec.input_schema.get("required", []))
            for param_name, param_schema in properties.items():
                kind = "required" if param_name in required else "optional"
                param_description = param_schema.get("description", "")
                descriptions.append(f"  - {param_name} ({kind}): {param_description}".rstrip())

        return "\n".join(descriptions)

    def __len__(self) -> int:
        return len(self._definitions)

