"""
Generic lookup tools across programs, levels and semesters
"""

from typing import Any, Literal, Optional

from pydantic import Field

from .common import AcademicToolHandler, ToolInput


EntityType = Literal["program", "level", "semester"]


class FindIdByCodeInput(ToolInput):
    entity: EntityType = Field(..., description="The kind of entity: program, level or semester.")
    code: str = Field(..., min_length=1, description="The unique code of the entity.")


class RetrieveFieldInput(ToolInput):
    entity_type: EntityType = Field(
        ..., alias="entityType", description='The type of entity ("program", "level", "semester").'
    )
    field_name: str = Field(
        ...,
        alias="fieldName",
        min_length=1,
        description='The name of the field to retrieve (e.g. "name", "code", "description").',
    )
    entity_id: Optional[str] = Field(
        None,
        alias="entityId",
        description="The ID of the entity. When omitted the field is returned for every record.",
    )


class FindIdByCodeToolHandler(AcademicToolHandler):
    description = "Finds the ID of a program, level or semester by its code."
    category = "lookup"
    input_model = FindIdByCodeInput

    @property
    def name(self) -> str:
        return "findIdByCode"

    async def execute(self, parameters: FindIdByCodeInput) -> Any:
        return await self.call(self.service.find_id_by_code, parameters.entity, parameters.code)


class RetrieveFieldToolHandler(AcademicToolHandler):
    description = (
        "Retrieves a specific field value (e.g. name, code, description) for a given "
        "entity (program, level or semester) by its ID."
    )
    category = "lookup"
    input_model = RetrieveFieldInput

    @property
    def name(self) -> str:
        return "retrieveField"

    async def execute(self, parameters: RetrieveFieldInput) -> Any:
        return await self.call(
            self.service.retrieve_field,
            parameters.entity_type,
            parameters.field_name,
            parameters.entity_id,
        )
