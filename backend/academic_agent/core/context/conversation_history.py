"""
Conversation history

Append-only log of turns for one query. The exact snapshot sent to the model on every
iteration can be replayed later because turns are frozen once appended; corrections are
new turns, never edits.
"""

import logging
from typing import Annotated, Iterable, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from academic_agent.core.tools.base import ToolCallRequest, ToolResult


logger = logging.getLogger(__name__)


Role = Literal["user", "model", "tool"]


class TextBlock(BaseModel):
    """Plain text contribution"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


Part = Annotated[Union[TextBlock, ToolCallRequest, ToolResult], Field(discriminator="kind")]


class Turn(BaseModel):
    """One atomic contribution to the conversation"""
    model_config = ConfigDict(frozen=True)

    role: Role
    parts: Tuple[Part, ...]
    sequence: int = Field(ge=0)

    @property
    def tool_calls(self) -> Tuple[ToolCallRequest, ...]:
        return tuple(part for part in self.parts if isinstance(part, ToolCallRequest))

    @property
    def tool_results(self) -> Tuple[ToolResult, ...]:
        return tuple(part for part in self.parts if isinstance(part, ToolResult))

    @property
    def text(self) -> str:
        return "\n".join(part.text for part in self.parts if isinstance(part, TextBlock))


class HistoryError(ValueError):
    """A turn would break the history invariants"""


class ConversationHistory:
    """
    Append-only conversation history for a single query

    Invariants checked on append:
    - sequence numbers are contiguous from 0
    - user turns carry text only
    - model turns carry either text or a non-empty set of tool calls with unique call ids
    - a tool turn follows a model turn with tool calls, and its results match those
      calls one to one, in request order
    - a model turn with tool calls is followed by its tool turn before anything else
    """

    def __init__(self, turns: Iterable[Turn] = ()):
        self._turns: List[Turn] = []
        for turn in turns:
            self.append(turn)

    def append(self, turn: Turn) -> Turn:
        """Append a turn

        Args:
            turn: turn whose sequence equals the current length

        Returns:
            The appended turn

        Raises:
            HistoryError: the turn breaks an invariant
        """
        if turn.sequence != len(self._turns):
            raise HistoryError(
                f"Out of order turn: expected sequence {len(self._turns)}, got {turn.sequence}"
            )

        self._check_turn(turn)
        self._turns.append(turn)
        logger.debug(f"Appended turn: role={turn.role}, sequence={turn.sequence}, parts={len(turn.parts)}")
        return turn

    def add(self, role: Role, parts: Sequence[Part]) -> Turn:
        """Build the next turn and append it"""
        return self.append(Turn(role=role, parts=tuple(parts), sequence=len(self._turns)))

    def add_user_text(self, text: str) -> Turn:
        return self.add("user", [TextBlock(text=text)])

    def add_model_text(self, text: str) -> Turn:
        return self.add("model", [TextBlock(text=text)])

    def add_tool_calls(self, calls: Sequence[ToolCallRequest]) -> Turn:
        return self.add("model", calls)

    def add_tool_results(self, results: Sequence[ToolResult]) -> Turn:
        return self.add("tool", results)

    def snapshot(self) -> Tuple[Turn, ...]:
        """Immutable view of the history as it is right now"""
        return tuple(self._turns)

    def last_role(self) -> Optional[Role]:
        if not self._turns:
            return None
        return self._turns[-1].role

    def last_turn(self) -> Optional[Turn]:
        if not self._turns:
            return None
        return self._turns[-1]

    def turns_since(self, sequence: int) -> Tuple[Turn, ...]:
        """Turns appended at or after ``sequence``"""
        return tuple(self._turns[sequence:])

    def get_stats(self) -> dict:
        return {
            "total_turns": len(self._turns),
            "user_turns": sum(1 for turn in self._turns if turn.role == "user"),
            "model_turns": sum(1 for turn in self._turns if turn.role == "model"),
            "tool_turns": sum(1 for turn in self._turns if turn.role == "tool"),
        }

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self):
        return iter(tuple(self._turns))

    def _check_turn(self, turn: Turn) -> None:
        if not turn.parts:
            raise HistoryError(f"{turn.role} turn has no parts")

        previous = self.last_turn()
        pending_calls = previous.tool_calls if previous is not None and previous.role == "model" else ()

        if turn.role != "tool" and pending_calls:
            raise HistoryError(
                f"{turn.role} turn cannot follow a model turn with unanswered tool calls"
            )

        if turn.role == "user":
            if not all(isinstance(part, TextBlock) for part in turn.parts):
                raise HistoryError("user turns may only contain text")

        elif turn.role == "model":
            calls = turn.tool_calls
            if calls:
                if len(calls) != len(turn.parts):
                    raise HistoryError("model turn mixes tool calls with other parts")
                call_ids = [call.call_id for call in calls]
                if len(set(call_ids)) != len(call_ids):
                    raise HistoryError(f"duplicate call ids in model turn: {call_ids}")
            elif not all(isinstance(part, TextBlock) for part in turn.parts):
                raise HistoryError("model turns may only contain text or tool calls")

        else:
            if not pending_calls:
                raise HistoryError("tool turn must follow a model turn with tool calls")

            results = turn.tool_results
            if len(results) != len(turn.parts):
                raise HistoryError("tool turns may only contain tool results")

            expected = [call.call_id for call in pending_calls]
            actual = [result.call_id for result in results]
            if expected != actual:
                raise HistoryError(
                    f"tool results {actual} do not match requested calls {expected}"
                )
