import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from academic_agent.api.dependencies import build_engine
from academic_agent.api.routes import agent, config, sessions
from academic_agent.core.academic_service import AcademicService
from academic_agent.core.ai_config_manager import AIConfigError, AIConfigManager
from academic_agent.core.config import Settings, get_settings
from academic_agent.core.database import create_db_engine, create_session_factory, init_db
from academic_agent.core.model_gateway import ModelGateway
from academic_agent.core.session_store import SessionStore
from academic_agent.core.tools.handlers import create_default_registry

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, gateway: Optional[ModelGateway] = None) -> FastAPI:
    """
    Build the application

    Args:
        settings: runtime settings; read from the environment when omitted
        gateway: model gateway to use instead of the configured provider
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting {settings.app_name}...")

        db_engine = create_db_engine(settings.database_url)
        init_db(db_engine)
        session_factory = create_session_factory(db_engine)

        state = app.state
        state.settings = settings
        state.gateway_override = gateway
        state.service = AcademicService(session_factory)
        state.session_store = SessionStore(session_factory)
        state.registry = create_default_registry(state.service)
        state.config_manager = AIConfigManager(settings.ai_config_path)
        state.active_queries = {}
        state.session_locks = defaultdict(asyncio.Lock)
        state.detached_tools = set()

        try:
            agent_config = state.config_manager.load()
        except AIConfigError as e:
            logger.warning(f"Ignoring AI config: {e}")
            agent_config = None
        if agent_config is None and gateway is None:
            logger.warning("No AI provider configured; queries will fail until one is saved")
        state.engine = build_engine(state, agent_config)

        yield

        # Shutdown
        logger.info(f"Shutting down {settings.app_name}...")
        for context in list(state.active_queries.values()):
            context.cancel()
        await state.engine.wait_detached()
        db_engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Tool-calling assistant for university academic structure administration",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Query-Id"],
    )

    app.include_router(agent.router, prefix="/api", tags=["agent"])
    app.include_router(sessions.router, prefix="/api", tags=["sessions"])
    app.include_router(config.router, prefix="/api", tags=["config"])

    @app.get("/")
    async def root():
        return {"message": f"{settings.app_name} API", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()
