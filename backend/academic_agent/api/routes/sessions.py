"""
Chat session routes
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from academic_agent.core.model_gateway import GatewayError
from academic_agent.core.session_store import SessionNotFoundError, clean_title


logger = logging.getLogger(__name__)

router = APIRouter()

TITLE_PROMPT = (
    'Generate a concise and descriptive name for a chat session about the following: "{message}". '
    "The name should be short, ideally 3-7 words, and reflect the main topic. "
    "Avoid conversational phrases."
)


class CreateSessionRequest(BaseModel):
    title: Optional[str] = Field(None, description="Initial title")


class GenerateTitleRequest(BaseModel):
    prompt: Optional[str] = Field(None, description="Text to name the session after; defaults to the first user message")


@router.post("/sessions")
async def create_session(request: Request, payload: Optional[CreateSessionRequest] = None) -> Dict[str, Any]:
    title = payload.title if payload else None
    return await asyncio.to_thread(request.app.state.session_store.create_session, title)


@router.get("/sessions")
async def list_sessions(request: Request) -> List[Dict[str, Any]]:
    return await asyncio.to_thread(request.app.state.session_store.list_sessions)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, request: Request) -> Dict[str, Any]:
    try:
        return await asyncio.to_thread(request.app.state.session_store.get_session, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, request: Request) -> Dict[str, Any]:
    app_state = request.app.state
    try:
        async with app_state.session_locks[session_id]:
            await asyncio.to_thread(app_state.session_store.delete_session, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    finally:
        app_state.session_locks.pop(session_id, None)
    return {"success": True, "session_id": session_id}


@router.get("/sessions/{session_id}/turns")
async def get_session_turns(session_id: str, request: Request) -> Dict[str, Any]:
    try:
        turns = await asyncio.to_thread(request.app.state.session_store.load_turns, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "session_id": session_id,
        "turns": [turn.model_dump(mode="json") for turn in turns],
    }


@router.post("/sessions/{session_id}/title")
async def generate_session_title(
    session_id: str,
    request: Request,
    payload: Optional[GenerateTitleRequest] = None,
) -> Dict[str, Any]:
    """Ask the model for a short session title and store it"""
    store = request.app.state.session_store

    try:
        if payload and payload.prompt:
            message = payload.prompt
        else:
            message = await asyncio.to_thread(store.first_user_text, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if not message:
        raise HTTPException(status_code=400, detail="Session has no message to name it after")

    try:
        raw_title = await request.app.state.engine.gateway.complete_text(TITLE_PROMPT.format(message=message))
    except GatewayError as e:
        logger.error(f"Title generation failed for session {session_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    title = clean_title(raw_title)
    if not title:
        raise HTTPException(status_code=502, detail="The model returned an empty title")

    try:
        return await asyncio.to_thread(store.set_title, session_id, title)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
