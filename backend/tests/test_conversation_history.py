"""
Conversation history invariants
"""

import pytest

from academic_agent.core.context import ConversationHistory, HistoryError, TextBlock, Turn
from academic_agent.core.tools import OkOutcome, ToolCallRequest, ToolResult


def call(call_id: str, name: str = "getPrograms") -> ToolCallRequest:
    return ToolCallRequest(call_id=call_id, tool_name=name, arguments={})


def result(call_id: str, name: str = "getPrograms") -> ToolResult:
    return ToolResult(call_id=call_id, tool_name=name, outcome=OkOutcome(value=[]))


class TestConversationHistory:

    def setup_method(self):
        self.history = ConversationHistory()
        self.history.add_user_text("List all programs")

    def test_sequence_and_last_role(self):
        self.history.add_tool_calls([call("1")])
        self.history.add_tool_results([result("1")])
        self.history.add_model_text("There are no programs yet.")

        assert [turn.sequence for turn in self.history] == [0, 1, 2, 3]
        assert self.history.last_role() == "model"
        assert self.history.get_stats() == {
            "total_turns": 4,
            "user_turns": 1,
            "model_turns": 2,
            "tool_turns": 1,
        }

    def test_snapshot_is_not_affected_by_later_appends(self):
        before = self.history.snapshot()
        self.history.add_model_text("Hello")

        assert len(before) == 1
        assert self.history.snapshot()[:1] == before

    def test_turns_are_immutable(self):
        turn = self.history.last_turn()
        with pytest.raises(Exception):
            turn.role = "model"

    def test_out_of_order_sequence_rejected(self):
        with pytest.raises(HistoryError):
            self.history.append(Turn(role="model", parts=(TextBlock(text="x"),), sequence=5))

    def test_tool_turn_must_follow_tool_calls(self):
        with pytest.raises(HistoryError):
            self.history.add_tool_results([result("1")])

    def test_results_must_match_requests_in_order(self):
        self.history.add_tool_calls([call("a"), call("b")])

        with pytest.raises(HistoryError):
            self.history.add_tool_results([result("b"), result("a")])
        with pytest.raises(HistoryError):
            self.history.add_tool_results([result("a")])

        self.history.add_tool_results([result("a"), result("b")])
        assert self.history.last_role() == "tool"

    def test_pending_calls_block_other_turns(self):
        self.history.add_tool_calls([call("1")])

        with pytest.raises(HistoryError):
            self.history.add_model_text("Done")

    def test_duplicate_call_ids_rejected(self):
        with pytest.raises(HistoryError):
            self.history.add_tool_calls([call("1"), call("1")])

    def test_user_turn_text_only(self):
        with pytest.raises(HistoryError):
            self.history.add("user", [call("1")])

    def test_seed_from_prior_turns(self):
        self.history.add_model_text("Hi, I am Idriss.")
        seeded = ConversationHistory(self.history.snapshot())
        seeded.add_user_text("Create a program")

        assert len(seeded) == 3
        assert seeded.turns_since(2)[0].text == "Create a program"
