"""
Chat session persistence

Stores the turns of finished queries so a later query in the same session starts from
them. Only finalized queries are saved; an aborted loop state is discarded as a whole.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import TypeAdapter
from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from academic_agent.core.context.conversation_history import Part, Turn
from academic_agent.models.chat_models import ChatMessage, ChatSession


logger = logging.getLogger(__name__)

_parts_adapter = TypeAdapter(List[Part])

MAX_TITLE_LENGTH = 80


class SessionNotFoundError(KeyError):
    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


def clean_title(raw: str) -> str:
    """Strip quotes and newlines from a generated title"""
    title = re.sub(r"[\r\n]+", " ", raw or "")
    title = title.replace('"', "").replace("'", "").replace("`", "")
    title = re.sub(r"\s+", " ", title).strip()
    return title[:MAX_TITLE_LENGTH].strip()


def _session_dict(session: ChatSession, message_count: int = 0) -> Dict[str, Any]:
    return {
        "id": session.id,
        "title": session.title,
        "created_at": session.created_at.isoformat() if session.created_at else None,
        "updated_at": session.updated_at.isoformat() if session.updated_at else None,
        "message_count": message_count,
    }


class SessionStore:
    """Chat sessions and their turns"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_session(self, title: Optional[str] = None) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            session = ChatSession(title=title or "New chat")
            db.add(session)
            db.commit()
            db.refresh(session)
            logger.info(f"Created chat session {session.id}")
            return _session_dict(session)
        finally:
            db.close()

    def list_sessions(self) -> List[Dict[str, Any]]:
        db = self.session_factory()
        try:
            counts = dict(
                db.query(ChatMessage.session_id, func.count(ChatMessage.id))
                .group_by(ChatMessage.session_id)
                .all()
            )
            sessions = db.query(ChatSession).order_by(ChatSession.updated_at.desc()).all()
            return [_session_dict(s, counts.get(s.id, 0)) for s in sessions]
        finally:
            db.close()

    def get_session(self, session_id: str) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            session = db.get(ChatSession, session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            return _session_dict(session, len(session.messages))
        finally:
            db.close()

    def delete_session(self, session_id: str) -> None:
        db = self.session_factory()
        try:
            session = db.get(ChatSession, session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            db.delete(session)
            db.commit()
            logger.info(f"Deleted chat session {session_id}")
        finally:
            db.close()

    def load_turns(self, session_id: str) -> List[Turn]:
        db = self.session_factory()
        try:
            session = db.get(ChatSession, session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            return [
                Turn(
                    role=message.role,
                    parts=tuple(_parts_adapter.validate_json(message.parts)),
                    sequence=message.sequence,
                )
                for message in session.messages
            ]
        finally:
            db.close()

    def append_turns(self, session_id: str, turns: Sequence[Turn]) -> int:
        """Persist new turns after the ones already stored; returns how many were written

        Turns are numbered from the stored count, not from the sequence they had in
        the query, so two queries that started from the same prior turns both fit.
        """
        db = self.session_factory()
        try:
            session = db.get(ChatSession, session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

            next_sequence = (
                db.query(func.max(ChatMessage.sequence))
                .filter(ChatMessage.session_id == session_id)
                .scalar()
            )
            next_sequence = 0 if next_sequence is None else next_sequence + 1

            for offset, turn in enumerate(turns):
                db.add(ChatMessage(
                    session_id=session_id,
                    sequence=next_sequence + offset,
                    role=turn.role,
                    parts=json.dumps(
                        [part.model_dump(mode="json") for part in turn.parts],
                        ensure_ascii=False,
                    ),
                ))
            session.updated_at = datetime.utcnow()
            db.commit()
            logger.info(f"Saved {len(turns)} turn(s) to session {session_id}")
            return len(turns)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def set_title(self, session_id: str, title: str) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            session = db.get(ChatSession, session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            session.title = title
            db.commit()
            db.refresh(session)
            return _session_dict(session, len(session.messages))
        finally:
            db.close()

    def first_user_text(self, session_id: str) -> Optional[str]:
        for turn in self.load_turns(session_id):
            if turn.role == "user":
                return turn.text
        return None
