"""
Tool system base types

Value objects shared by the tool registry, the conversation history and the task engine.
Tool arguments stay untyped until dispatch; the registry validates them against the
tool's input model and produces an outcome that is always data, never an exception.
"""

from enum import Enum
from typing import Annotated, Any, Awaitable, Callable, Dict, Literal, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field


class ToolErrorType(str, Enum):
    """Why a tool call produced an error outcome"""
    UNKNOWN_TOOL = "unknown_tool"
    VALIDATION_ERROR = "validation_error"
    EXECUTION_ERROR = "execution_error"


class FieldIssue(BaseModel):
    """One argument validation problem"""
    model_config = ConfigDict(frozen=True)

    path: str
    reason: str


class ToolValidationError(BaseModel):
    """Structured result of a failed argument validation.

    Returned (not raised) by ``ToolRegistry.validate``.
    """
    model_config = ConfigDict(frozen=True)

    tool_name: str
    issues: Tuple[FieldIssue, ...]

    @property
    def message(self) -> str:
        details = "; ".join(
            f"{issue.path}: {issue.reason}" if issue.path else issue.reason
            for issue in self.issues
        )
        return f"Invalid arguments for tool '{self.tool_name}': {details}"


class OkOutcome(BaseModel):
    """Successful tool execution"""
    model_config = ConfigDict(frozen=True)

    status: Literal["ok"] = "ok"
    value: Any = None


class ErrOutcome(BaseModel):
    """Failed tool execution, fed back to the model as data"""
    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    reason: str
    error_type: ToolErrorType = ToolErrorType.EXECUTION_ERROR
    issues: Tuple[FieldIssue, ...] = ()


ToolOutcome = Annotated[Union[OkOutcome, ErrOutcome], Field(discriminator="status")]


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the model"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_call"] = "tool_call"
    call_id: str = Field(min_length=1)
    tool_name: str
    arguments: Any = None


class ToolResult(BaseModel):
    """The settled outcome of one ToolCallRequest, matched by call_id"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_result"] = "tool_result"
    call_id: str
    tool_name: str
    outcome: ToolOutcome

    @property
    def success(self) -> bool:
        return isinstance(self.outcome, OkOutcome)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict form used when feeding the result back to a model"""
        if isinstance(self.outcome, OkOutcome):
            return {"success": True, "data": self.outcome.value}

        result: Dict[str, Any] = {
            "success": False,
            "error": self.outcome.reason,
            "error_type": self.outcome.error_type.value,
        }
        if self.outcome.issues:
            result["issues"] = [issue.model_dump() for issue in self.outcome.issues]
        return result


class ToolSpec(BaseModel):
    """Catalog entry handed to the model gateway"""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: Dict[str, Any]
    category: str = "general"  # program, level, semester, lookup ...


ToolHandlerFn = Callable[[BaseModel], Awaitable[Any]]


class ToolDefinition(BaseModel):
    """A registered tool: unique name, input schema and async handler"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    description: str
    input_model: Type[BaseModel]
    handler: ToolHandlerFn
    category: str = "general"

    def get_spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            input_schema=self.input_model.model_json_schema(),
            category=self.category,
        )
