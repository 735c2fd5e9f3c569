"""
Semester tools
"""

from typing import Any, Optional

from pydantic import Field

from .common import AcademicToolHandler, ToolInput


class CreateSemesterInput(ToolInput):
    name: str = Field(..., min_length=1, description="Semester name.")
    code: str = Field(..., min_length=1, description="Semester code. Must be unique.")
    level_id: str = Field(..., alias="levelId", min_length=1, description="ID of the parent level.")
    description: Optional[str] = Field(None, description="Optional description.")


class GetSemestersInput(ToolInput):
    level_id: Optional[str] = Field(None, alias="levelId", description="Level ID to filter by.")


class UpdateSemesterInput(ToolInput):
    id: str = Field(..., min_length=1, description="Semester ID.")
    name: Optional[str] = Field(None, description="New name.")
    description: Optional[str] = Field(None, description="New description.")
    code: Optional[str] = Field(None, description="New code. Must be unique.")


class DeleteSemesterInput(ToolInput):
    id: str = Field(..., min_length=1, description="Semester ID.")


class FindSemesterIdByNameInput(ToolInput):
    semester_name: str = Field(
        ..., alias="semesterName", min_length=1, description="The name of the semester to find."
    )
    level_id: Optional[str] = Field(
        None,
        alias="levelId",
        description="Optional: the ID of the level the semester belongs to, to narrow the search.",
    )


class CreateSemesterToolHandler(AcademicToolHandler):
    description = "Creates a new semester under a level."
    category = "semester"
    input_model = CreateSemesterInput

    @property
    def name(self) -> str:
        return "createSemester"

    async def execute(self, parameters: CreateSemesterInput) -> Any:
        return await self.call(
            self.service.create_semester,
            name=parameters.name,
            code=parameters.code,
            level_id=parameters.level_id,
            description=parameters.description,
        )


class GetSemestersToolHandler(AcademicToolHandler):
    description = "Retrieves semesters, optionally filtered by level ID."
    category = "semester"
    input_model = GetSemestersInput

    @property
    def name(self) -> str:
        return "getSemesters"

    async def execute(self, parameters: GetSemestersInput) -> Any:
        return await self.call(self.service.get_semesters, parameters.level_id)


class UpdateSemesterToolHandler(AcademicToolHandler):
    description = "Updates a semester by ID."
    category = "semester"
    input_model = UpdateSemesterInput

    @property
    def name(self) -> str:
        return "updateSemester"

    async def execute(self, parameters: UpdateSemesterInput) -> Any:
        return await self.call(
            self.service.update_semester,
            parameters.id,
            name=parameters.name,
            description=parameters.description,
            code=parameters.code,
        )


class DeleteSemesterToolHandler(AcademicToolHandler):
    description = "Deletes a semester by ID."
    category = "semester"
    input_model = DeleteSemesterInput

    @property
    def name(self) -> str:
        return "deleteSemester"

    async def execute(self, parameters: DeleteSemesterInput) -> Any:
        return await self.call(self.service.delete_semester, parameters.id)


class FindSemesterIdByNameToolHandler(AcademicToolHandler):
    description = "Finds the IDs of semesters matching a name, optionally within a specific level."
    category = "lookup"
    input_model = FindSemesterIdByNameInput

    @property
    def name(self) -> str:
        return "findSemesterIdByName"

    async def execute(self, parameters: FindSemesterIdByNameInput) -> Any:
        return await self.call(
            self.service.find_semester_id_by_name, parameters.semester_name, parameters.level_id
        )
