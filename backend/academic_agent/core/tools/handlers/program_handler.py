"""
Program tools
"""

from typing import Any, Optional

from pydantic import Field

from .common import AcademicToolHandler, ToolInput


class CreateProgramInput(ToolInput):
    name: str = Field(..., min_length=1, description="Name of the program.")
    code: str = Field(..., min_length=1, description="Program code. Must be unique.")
    description: Optional[str] = Field(None, description="Optional description.")
    status: Optional[str] = Field(None, description="Program status.")


class GetProgramsInput(ToolInput):
    pass


class UpdateProgramInput(ToolInput):
    id: str = Field(..., min_length=1, description="Program ID.")
    name: Optional[str] = Field(None, description="New name.")
    description: Optional[str] = Field(None, description="New description.")
    code: Optional[str] = Field(None, description="New code. Must be unique.")
    status: Optional[str] = Field(None, description="New status.")


class DeleteProgramInput(ToolInput):
    id: str = Field(..., min_length=1, description="Program ID.")


class FindProgramIdByNameInput(ToolInput):
    program_name: str = Field(
        ..., alias="programName", min_length=1, description="The name of the program to find."
    )


class CreateProgramToolHandler(AcademicToolHandler):
    """Create a program"""

    description = "Creates a new program in the university portal."
    category = "program"
    input_model = CreateProgramInput

    @property
    def name(self) -> str:
        return "createProgram"

    async def execute(self, parameters: CreateProgramInput) -> Any:
        return await self.call(
            self.service.create_program,
            name=parameters.name,
            code=parameters.code,
            description=parameters.description,
            status=parameters.status,
        )


class GetProgramsToolHandler(AcademicToolHandler):
    description = "Retrieves all programs."
    category = "program"
    input_model = GetProgramsInput

    @property
    def name(self) -> str:
        return "getPrograms"

    async def execute(self, parameters: GetProgramsInput) -> Any:
        return await self.call(self.service.get_programs)


class UpdateProgramToolHandler(AcademicToolHandler):
    description = "Updates an existing program by ID."
    category = "program"
    input_model = UpdateProgramInput

    @property
    def name(self) -> str:
        return "updateProgram"

    async def execute(self, parameters: UpdateProgramInput) -> Any:
        return await self.call(
            self.service.update_program,
            parameters.id,
            name=parameters.name,
            description=parameters.description,
            code=parameters.code,
            status=parameters.status,
        )


class DeleteProgramToolHandler(AcademicToolHandler):
    description = "Deletes a program by ID, together with its levels and semesters."
    category = "program"
    input_model = DeleteProgramInput

    @property
    def name(self) -> str:
        return "deleteProgram"

    async def execute(self, parameters: DeleteProgramInput) -> Any:
        return await self.call(self.service.delete_program, parameters.id)


class FindProgramIdByNameToolHandler(AcademicToolHandler):
    description = "Finds the ID of a program by its name."
    category = "lookup"
    input_model = FindProgramIdByNameInput

    @property
    def name(self) -> str:
        return "findProgramIdByName"

    async def execute(self, parameters: FindProgramIdByNameInput) -> Any:
        return await self.call(self.service.find_program_id_by_name, parameters.program_name)
