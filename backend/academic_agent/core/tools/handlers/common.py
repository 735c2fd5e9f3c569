"""
Shared pieces for the academic structure tools
"""

import asyncio
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from academic_agent.core.academic_service import AcademicService

from ..handler import BaseToolHandler


class ToolInput(BaseModel):
    """Base input model: camelCase names for the model, snake_case in Python"""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class AcademicToolHandler(BaseToolHandler):
    """Tool backed by the academic service

    Service calls are blocking database work, so they run in a worker thread and
    concurrent tool calls of one turn do not serialize on the event loop.
    """

    def __init__(self, service: AcademicService):
        self.service = service

    async def call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(func, *args, **kwargs)
