"""
Streaming event emitter

EventEmitter projects loop transitions onto AgentEvent values and holds no decision
state. The NDJSON encoder turns those values into the wire format: one JSON object per
line, numbered in emission order, so a consumer can rebuild the whole interaction by
reading the stream once.
"""

import json
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Sequence

from pydantic import TypeAdapter

from academic_agent.core.tools.base import (
    ErrOutcome,
    FieldIssue,
    OkOutcome,
    ToolCallRequest,
    ToolErrorType,
    ToolOutcome,
    ToolResult,
)

from .events import (
    AgentEvent,
    ErrorEvent,
    FinalAnswerEvent,
    StatusEvent,
    ToolInvokedEvent,
    ToolSettledEvent,
)
from .task_state import AbortReason, LoopPhase, LoopState


logger = logging.getLogger(__name__)

_event_adapter = TypeAdapter(AgentEvent)


class EventEmitter:
    """Maps loop transitions to events"""

    def __init__(self, agent_name: str = "AcademicAgent"):
        self.agent_name = agent_name

    def awaiting_model(self, state: LoopState) -> StatusEvent:
        step = state.iteration_count + 1
        return StatusEvent(
            message=f"{self.agent_name} is thinking (step {step} of {state.max_iterations})",
            iteration=step,
        )

    def tools_requested(self, state: LoopState, calls: Sequence[ToolCallRequest]) -> StatusEvent:
        names = ", ".join(call.tool_name for call in calls)
        return StatusEvent(
            message=f"{self.agent_name} is running {len(calls)} tool(s): {names}",
            iteration=state.iteration_count + 1,
        )

    def tool_invoked(self, state: LoopState, call: ToolCallRequest) -> ToolInvokedEvent:
        return ToolInvokedEvent(
            call_id=call.call_id,
            tool_name=call.tool_name,
            arguments=call.arguments,
            iteration=state.iteration_count + 1,
        )

    def tool_settled(self, state: LoopState, result: ToolResult) -> ToolSettledEvent:
        return ToolSettledEvent(
            call_id=result.call_id,
            tool_name=result.tool_name,
            outcome=result.outcome,
            iteration=state.iteration_count + 1,
        )

    def terminal(self, state: LoopState) -> AgentEvent:
        """Final event for a terminated loop

        Raises:
            RuntimeError: the loop has not terminated
        """
        if state.phase == LoopPhase.FINALIZED:
            return FinalAnswerEvent(text=state.result or "")
        if state.phase == LoopPhase.ABORTED and state.error is not None:
            return ErrorEvent(reason=state.error.reason, message=state.error.message)
        raise RuntimeError(f"Loop has not terminated (phase={state.phase.value})")


# ============================================================================
# Wire encoding
# ============================================================================

def encode_outcome(outcome: ToolOutcome) -> Dict[str, Any]:
    if isinstance(outcome, OkOutcome):
        return {"ok": True, "value": outcome.value}
    return {
        "ok": False,
        "error": outcome.reason,
        "error_type": outcome.error_type.value,
        "issues": [issue.model_dump() for issue in outcome.issues],
    }


def decode_outcome(data: Dict[str, Any]) -> ToolOutcome:
    if data.get("ok"):
        return OkOutcome(value=data.get("value"))
    return ErrOutcome(
        reason=data.get("error", ""),
        error_type=ToolErrorType(data.get("error_type", ToolErrorType.EXECUTION_ERROR.value)),
        issues=tuple(FieldIssue(**issue) for issue in data.get("issues", [])),
    )


def encode_event(event: AgentEvent, index: int) -> Dict[str, Any]:
    """Wire object for one event"""
    payload: Dict[str, Any] = {
        "type": event.kind,
        "index": index,
        "timestamp": datetime.now().isoformat(),
    }

    if isinstance(event, StatusEvent):
        payload.update(message=event.message, iteration=event.iteration)
    elif isinstance(event, ToolInvokedEvent):
        payload.update(
            call_id=event.call_id,
            tool_name=event.tool_name,
            arguments=event.arguments,
            iteration=event.iteration,
        )
    elif isinstance(event, ToolSettledEvent):
        payload.update(
            call_id=event.call_id,
            tool_name=event.tool_name,
            outcome=encode_outcome(event.outcome),
            iteration=event.iteration,
        )
    elif isinstance(event, FinalAnswerEvent):
        payload.update(text=event.text)
    elif isinstance(event, ErrorEvent):
        payload.update(reason=event.reason.value, message=event.message)
    else:
        raise TypeError(f"Unsupported event type: {type(event).__name__}")

    return payload


def decode_event(data: Dict[str, Any]) -> AgentEvent:
    """Rebuild an event from its wire object"""
    fields = {key: value for key, value in data.items() if key not in ("type", "index", "timestamp")}
    fields["kind"] = data["type"]

    if data["type"] == "tool_settled":
        fields["outcome"] = decode_outcome(fields["outcome"])
    elif data["type"] == "error":
        fields["reason"] = AbortReason(fields["reason"])

    return _event_adapter.validate_python(fields)


class NdjsonEncoder:
    """Encodes the events of one stream, numbering them from 0"""

    def __init__(self):
        self.count = 0

    def encode(self, event: AgentEvent) -> str:
        payload = encode_event(event, self.count)
        self.count += 1
        return json.dumps(payload, ensure_ascii=False, default=str) + "\n"


async def stream_ndjson(events: AsyncIterator[AgentEvent]) -> AsyncIterator[str]:
    """Encode an event stream as NDJSON lines"""
    encoder = NdjsonEncoder()
    try:
        async for event in events:
            yield encoder.encode(event)
    finally:
        # closes the loop generator when the client goes away mid-stream
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
    logger.debug(f"NDJSON stream finished after {encoder.count} events")
