"""
Engine construction shared by startup and the config routes
"""

import logging
from typing import Any, Optional

from academic_agent.core.ai_config_manager import AgentConfig
from academic_agent.core.model_gateway import ModelGateway, create_gateway
from academic_agent.core.task import TaskEngine


logger = logging.getLogger(__name__)


def build_engine(app_state: Any, agent_config: Optional[AgentConfig]) -> TaskEngine:
    """Build the task engine new queries will use

    A gateway injected at app creation (``app_state.gateway_override``) wins over the
    provider configuration. Queries already running keep the engine they started with;
    every engine shares ``app_state.detached_tools`` so shutdown waits for all of them.

    Raises:
        ValueError: unsupported provider
    """
    settings = app_state.settings

    gateway: Optional[ModelGateway] = getattr(app_state, "gateway_override", None)
    if gateway is None:
        gateway = create_gateway(agent_config)

    max_iterations = settings.max_iterations
    if agent_config is not None and agent_config.max_iterations:
        max_iterations = agent_config.max_iterations

    logger.info(f"Task engine ready: gateway={gateway.provider}, max_iterations={max_iterations}")
    return TaskEngine(
        gateway=gateway,
        registry=app_state.registry,
        max_iterations=max_iterations,
        persona=settings.persona,
        agent_name=settings.agent_name,
        detached=app_state.detached_tools,
    )
