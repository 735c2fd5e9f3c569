"""
Level tools
"""

from typing import Any, Optional

from pydantic import Field

from .common import AcademicToolHandler, ToolInput


class CreateLevelInput(ToolInput):
    name: str = Field(..., min_length=1, description="Level name.")
    code: str = Field(..., min_length=1, description="Level code. Must be unique.")
    program_id: str = Field(..., alias="programId", min_length=1, description="ID of the parent program.")
    description: Optional[str] = Field(None, description="Optional description.")


class GetLevelsInput(ToolInput):
    program_id: Optional[str] = Field(None, alias="programId", description="Program ID to filter by.")


class UpdateLevelInput(ToolInput):
    id: str = Field(..., min_length=1, description="Level ID.")
    name: Optional[str] = Field(None, description="New name.")
    description: Optional[str] = Field(None, description="New description.")
    code: Optional[str] = Field(None, description="New code. Must be unique.")


class DeleteLevelInput(ToolInput):
    id: str = Field(..., min_length=1, description="Level ID.")


class FindLevelIdByNameInput(ToolInput):
    level_name: str = Field(..., alias="levelName", min_length=1, description="The name of the level to find.")
    program_id: Optional[str] = Field(
        None,
        alias="programId",
        description="Optional: the ID of the program the level belongs to, to narrow the search.",
    )


class CreateLevelToolHandler(AcademicToolHandler):
    description = "Creates a new level under a program."
    category = "level"
    input_model = CreateLevelInput

    @property
    def name(self) -> str:
        return "createLevel"

    async def execute(self, parameters: CreateLevelInput) -> Any:
        return await self.call(
            self.service.create_level,
            name=parameters.name,
            code=parameters.code,
            program_id=parameters.program_id,
            description=parameters.description,
        )


class GetLevelsToolHandler(AcademicToolHandler):
    description = "Retrieves levels, optionally filtered by program ID."
    category = "level"
    input_model = GetLevelsInput

    @property
    def name(self) -> str:
        return "getLevels"

    async def execute(self, parameters: GetLevelsInput) -> Any:
        return await self.call(self.service.get_levels, parameters.program_id)


class UpdateLevelToolHandler(AcademicToolHandler):
    description = "Updates a level by ID."
    category = "level"
    input_model = UpdateLevelInput

    @property
    def name(self) -> str:
        return "updateLevel"

    async def execute(self, parameters: UpdateLevelInput) -> Any:
        return await self.call(
            self.service.update_level,
            parameters.id,
            name=parameters.name,
            description=parameters.description,
            code=parameters.code,
        )


class DeleteLevelToolHandler(AcademicToolHandler):
    description = "Deletes a level by ID, together with its semesters."
    category = "level"
    input_model = DeleteLevelInput

    @property
    def name(self) -> str:
        return "deleteLevel"

    async def execute(self, parameters: DeleteLevelInput) -> Any:
        return await self.call(self.service.delete_level, parameters.id)


class FindLevelIdByNameToolHandler(AcademicToolHandler):
    description = "Finds the IDs of levels matching a name, optionally within a specific program."
    category = "lookup"
    input_model = FindLevelIdByNameInput

    @property
    def name(self) -> str:
        return "findLevelIdByName"

    async def execute(self, parameters: FindLevelIdByNameInput) -> Any:
        return await self.call(
            self.service.find_level_id_by_name, parameters.level_name, parameters.program_id
        )
