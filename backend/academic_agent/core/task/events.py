"""
Loop events

Closed union of everything the orchestration loop reports while it runs. These are the
internal event types; the NDJSON wire form lives in emitter.py.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from academic_agent.core.tools.base import ToolOutcome

from .task_state import AbortReason, ErrorInfo


class StatusEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["status"] = "status"
    message: str
    iteration: int = 0


class ToolInvokedEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_invoked"] = "tool_invoked"
    call_id: str
    tool_name: str
    arguments: Any = None
    iteration: int = 0


class ToolSettledEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_settled"] = "tool_settled"
    call_id: str
    tool_name: str
    outcome: ToolOutcome
    iteration: int = 0


class FinalAnswerEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["final_answer"] = "final_answer"
    text: str


class ErrorEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    reason: AbortReason
    message: str


AgentEvent = Annotated[
    Union[StatusEvent, ToolInvokedEvent, ToolSettledEvent, FinalAnswerEvent, ErrorEvent],
    Field(discriminator="kind"),
]

TERMINAL_EVENTS = (FinalAnswerEvent, ErrorEvent)


def is_terminal(event: Any) -> bool:
    return isinstance(event, TERMINAL_EVENTS)


@dataclass(frozen=True)
class QueryResult:
    """Return value of a synchronous query"""

    ok: bool
    text: Optional[str] = None
    error: Optional[ErrorInfo] = None

    @classmethod
    def from_terminal_event(cls, event: Any) -> "QueryResult":
        """Build the result from the last event of a query stream

        Raises:
            ValueError: the event is not terminal
        """
        if isinstance(event, FinalAnswerEvent):
            return cls(ok=True, text=event.text)
        if isinstance(event, ErrorEvent):
            return cls(ok=False, error=ErrorInfo(reason=event.reason, message=event.message))
        raise ValueError(f"Query stream ended without a terminal event: {event!r}")

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "text": self.text}
        return {"ok": False, "error": self.error.to_dict()}
