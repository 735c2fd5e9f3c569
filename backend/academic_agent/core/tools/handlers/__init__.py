"""
Academic structure tool handlers
"""

import logging

from academic_agent.core.academic_service import AcademicService

from ..registry import ToolRegistry
from .level_handler import (
    CreateLevelToolHandler,
    DeleteLevelToolHandler,
    FindLevelIdByNameToolHandler,
    GetLevelsToolHandler,
    UpdateLevelToolHandler,
)
from .lookup_handler import FindIdByCodeToolHandler, RetrieveFieldToolHandler
from .program_handler import (
    CreateProgramToolHandler,
    DeleteProgramToolHandler,
    FindProgramIdByNameToolHandler,
    GetProgramsToolHandler,
    UpdateProgramToolHandler,
)
from .semester_handler import (
    CreateSemesterToolHandler,
    DeleteSemesterToolHandler,
    FindSemesterIdByNameToolHandler,
    GetSemestersToolHandler,
    UpdateSemesterToolHandler,
)

logger = logging.getLogger(__name__)


ACADEMIC_TOOL_HANDLERS = [
    CreateProgramToolHandler,
    GetProgramsToolHandler,
    UpdateProgramToolHandler,
    DeleteProgramToolHandler,
    FindProgramIdByNameToolHandler,
    CreateLevelToolHandler,
    GetLevelsToolHandler,
    UpdateLevelToolHandler,
    DeleteLevelToolHandler,
    FindLevelIdByNameToolHandler,
    CreateSemesterToolHandler,
    GetSemestersToolHandler,
    UpdateSemesterToolHandler,
    DeleteSemesterToolHandler,
    FindSemesterIdByNameToolHandler,
    FindIdByCodeToolHandler,
    RetrieveFieldToolHandler,
]


def create_default_registry(service: AcademicService) -> ToolRegistry:
    """Register every academic tool and freeze the registry"""
    registry = ToolRegistry()
    for handler_class in ACADEMIC_TOOL_HANDLERS:
        registry.register(handler_class(service))

    logger.info(f"Tool registry ready with {len(registry)} tools")
    return registry.freeze()


__all__ = [
    "ACADEMIC_TOOL_HANDLERS",
    "create_default_registry",
]
