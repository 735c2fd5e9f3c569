"""
Tool system

Uniform registration, validation and dispatch of the operations the model may request.
"""

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

from .registry import (
    DuplicateToolNameError,
    RegistryFrozenError,
    ToolRegistry,
    UnknownToolError,
)


__all__ = [
    # base types
    "ErrOutcome",
    "FieldIssue",
    "OkOutcome",
    "ToolCallRequest",
    "ToolDefinition",
    "ToolErrorType",
    "ToolOutcome",
    "ToolResult",
    "ToolSpec",
    "ToolValidationError",

    # handlers
    "BaseToolHandler",

    # registry
    "DuplicateToolNameError",
    "RegistryFrozenError",
    "ToolRegistry",
    "UnknownToolError",
]
