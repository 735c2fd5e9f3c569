"""
Orchestration loop, loop state and streaming events
"""

from .emitter import EventEmitter, NdjsonEncoder, decode_event, encode_event, stream_ndjson
from .engine import DEFAULT_MAX_ITERATIONS, QueryContext, TaskEngine
from .events import (
    AgentEvent,
    ErrorEvent,
    FinalAnswerEvent,
    QueryResult,
    StatusEvent,
    ToolInvokedEvent,
    ToolSettledEvent,
    is_terminal,
)
from .prompt_builder import PromptBuilder
from .task_state import AbortReason, ErrorInfo, LoopPhase, LoopState


__all__ = [
    "AbortReason",
    "AgentEvent",
    "DEFAULT_MAX_ITERATIONS",
    "ErrorEvent",
    "ErrorInfo",
    "EventEmitter",
    "FinalAnswerEvent",
    "LoopPhase",
    "LoopState",
    "NdjsonEncoder",
    "PromptBuilder",
    "QueryContext",
    "QueryResult",
    "StatusEvent",
    "TaskEngine",
    "ToolInvokedEvent",
    "ToolSettledEvent",
    "decode_event",
    "encode_event",
    "is_terminal",
    "stream_ndjson",
]
