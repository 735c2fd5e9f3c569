"""
Conversation context

Append-only per-query conversation history.
"""

from academic_agent.core.context.conversation_history import (
    ConversationHistory,
    HistoryError,
    Part,
    Role,
    TextBlock,
    Turn,
)

__all__ = [
    "ConversationHistory",
    "HistoryError",
    "Part",
    "Role",
    "TextBlock",
    "Turn",
]
