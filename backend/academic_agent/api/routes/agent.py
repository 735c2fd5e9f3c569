"""
Agent query routes - streaming (NDJSON) and synchronous
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from academic_agent.core.context.conversation_history import Turn
from academic_agent.core.session_store import SessionNotFoundError
from academic_agent.core.task import LoopPhase, QueryContext, stream_ndjson


logger = logging.getLogger(__name__)

router = APIRouter()


class QueryRequest(BaseModel):
    prompt: str = Field(..., min_length=1, description="User request")
    session_id: Optional[str] = Field(None, description="Chat session to continue")


async def _prior_turns(app_state: Any, session_id: Optional[str]) -> List[Turn]:
    if not session_id:
        return []
    try:
        return await asyncio.to_thread(app_state.session_store.load_turns, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


async def _persist_if_finalized(app_state: Any, session_id: Optional[str], context: QueryContext) -> None:
    """Save the turns this query added; aborted queries leave the session untouched

    A failed save is logged and never replaces the answer the query already produced.
    """
    state = context.state
    if not session_id or state is None or state.phase != LoopPhase.FINALIZED:
        return

    turns = state.history.turns_since(len(context.prior_turns))
    try:
        async with app_state.session_locks[session_id]:
            await asyncio.to_thread(app_state.session_store.append_turns, session_id, turns)
    except SessionNotFoundError as e:
        logger.warning(f"Query {context.query_id}: turns not saved, {e}")
    except SQLAlchemyError as e:
        logger.error(f"Query {context.query_id}: failed to save turns to session {session_id}: {e}", exc_info=True)


@router.post("/agent/query/stream")
async def stream_agent_query(payload: QueryRequest, request: Request) -> StreamingResponse:
    """Run a query and stream every loop event as one JSON object per line"""
    app_state = request.app.state
    engine = app_state.engine

    context = QueryContext(prior_turns=await _prior_turns(app_state, payload.session_id))
    app_state.active_queries[context.query_id] = context

    async def events():
        stream = engine.stream_query(payload.prompt, context)
        try:
            async for event in stream:
                yield event
        finally:
            await stream.aclose()
            app_state.active_queries.pop(context.query_id, None)
        await _persist_if_finalized(app_state, payload.session_id, context)

    return StreamingResponse(
        stream_ndjson(events()),
        media_type="application/x-ndjson",
        headers={"X-Query-Id": context.query_id},
    )


@router.post("/agent/query")
async def run_agent_query(payload: QueryRequest, request: Request) -> Dict[str, Any]:
    """Run a query and return only its final answer or error"""
    app_state = request.app.state

    context = QueryContext(prior_turns=await _prior_turns(app_state, payload.session_id))
    app_state.active_queries[context.query_id] = context
    try:
        result = await app_state.engine.run_query(payload.prompt, context)
    finally:
        app_state.active_queries.pop(context.query_id, None)

    await _persist_if_finalized(app_state, payload.session_id, context)

    response = result.to_dict()
    response["query_id"] = context.query_id
    return response


@router.post("/agent/queries/{query_id}/cancel")
async def cancel_agent_query(query_id: str, request: Request) -> Dict[str, Any]:
    context = request.app.state.active_queries.get(query_id)
    if context is None:
        raise HTTPException(status_code=404, detail=f"No running query with id {query_id}")

    context.cancel()
    logger.info(f"Cancellation requested for query {query_id}")
    return {"success": True, "query_id": query_id}


@router.get("/agent/tools")
async def list_agent_tools(request: Request) -> Dict[str, Any]:
    tools = request.app.state.registry.list_tools()
    return {
        "count": len(tools),
        "tools": [tool.model_dump() for tool in tools],
    }
