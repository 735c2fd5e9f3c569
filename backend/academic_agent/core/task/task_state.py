"""
Per-query loop state

One LoopState belongs to exactly one query; it is created when the query starts and
dropped when the loop terminates.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from academic_agent.core.context.conversation_history import ConversationHistory


class LoopPhase(str, Enum):
    """Loop state machine phases"""
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    FINALIZED = "finalized"
    ABORTED = "aborted"


class AbortReason(str, Enum):
    """Why a query terminated without a final answer"""
    ITERATION_LIMIT_EXCEEDED = "iteration_limit_exceeded"
    NO_USABLE_RESPONSE = "no_usable_response"
    GATEWAY_ERROR = "gateway_error"
    CANCELLED = "cancelled"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class ErrorInfo:
    reason: AbortReason
    message: str

    def to_dict(self) -> dict:
        return {"reason": self.reason.value, "message": self.message}


@dataclass
class LoopState:
    """State of one orchestration loop invocation"""

    history: ConversationHistory
    max_iterations: int

    # completed tool iterations
    iteration_count: int = 0
    gateway_calls: int = 0

    phase: LoopPhase = LoopPhase.AWAITING_MODEL
    result: Optional[str] = None
    error: Optional[ErrorInfo] = None

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

    @property
    def terminated(self) -> bool:
        return self.phase in (LoopPhase.FINALIZED, LoopPhase.ABORTED)

    @property
    def cap_reached(self) -> bool:
        return self.iteration_count >= self.max_iterations

    def finalize(self, text: str) -> None:
        self._check_open()
        self.phase = LoopPhase.FINALIZED
        self.result = text

    def abort(self, reason: AbortReason, message: str) -> None:
        self._check_open()
        self.phase = LoopPhase.ABORTED
        self.error = ErrorInfo(reason=reason, message=message)

    def _check_open(self) -> None:
        if self.terminated:
            raise RuntimeError(f"Loop already terminated ({self.phase.value})")
