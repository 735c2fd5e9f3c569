import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from academic_agent.api.dependencies import build_engine
from academic_agent.core.ai_config_manager import AgentConfig, AIConfigError
from academic_agent.core.model_gateway import PROVIDER_CONFIGS

logger = logging.getLogger(__name__)

router = APIRouter()


def _mask_key(api_key: str) -> str:
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


@router.get("/config/providers")
async def get_providers() -> Dict[str, Any]:
    return PROVIDER_CONFIGS


@router.get("/config/ai")
async def get_ai_config(request: Request) -> Dict[str, Any]:
    """Current provider configuration with the API key masked"""
    try:
        config = request.app.state.config_manager.load()
    except AIConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if config is None:
        return {"exists": False, "config": {}}

    data = config.model_dump()
    data["ai_api_key"] = _mask_key(config.ai_api_key)
    return {"exists": True, "config": data}


@router.post("/config/ai")
async def save_ai_config(config: AgentConfig, request: Request) -> Dict[str, Any]:
    """Save the provider configuration; new queries use it immediately"""
    if config.ai_provider not in PROVIDER_CONFIGS:
        raise HTTPException(status_code=400, detail=f"Unsupported provider: {config.ai_provider}")

    app_state = request.app.state
    try:
        engine = build_engine(app_state, config)
        app_state.config_manager.save(config)
    except (ValueError, OSError) as e:
        logger.error(f"Failed to apply AI config: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save config: {e}")

    app_state.engine = engine
    return {"success": True, "message": "AI config saved"}


@router.delete("/config/ai")
async def delete_ai_config(request: Request) -> Dict[str, Any]:
    app_state = request.app.state
    deleted = app_state.config_manager.delete()
    app_state.engine = build_engine(app_state, None)
    return {"success": True, "deleted": deleted}
