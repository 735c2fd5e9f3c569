"""
Tool catalog converter tests
"""

from academic_agent.core.tools.converter import (
    parse_tool_call_arguments,
    to_gemini_schema,
    tools_to_anthropic_tools,
    tools_to_gemini_declarations,
    tools_to_openai_functions,
)
from academic_agent.core.tools.handlers.level_handler import CreateLevelToolHandler, GetLevelsInput
from academic_agent.core.tools.handlers.program_handler import GetProgramsToolHandler


def level_spec():
    return CreateLevelToolHandler(service=None).get_definition().get_spec()


class TestConverters:

    def test_openai_format(self):
        (tool,) = tools_to_openai_functions([level_spec()])

        assert tool["type"] == "function"
        assert tool["function"]["name"] == "createLevel"
        parameters = tool["function"]["parameters"]
        assert parameters["type"] == "object"
        assert "programId" in parameters["properties"]
        assert set(parameters["required"]) == {"name", "code", "programId"}
        assert "title" not in parameters

    def test_anthropic_format(self):
        (tool,) = tools_to_anthropic_tools([level_spec()])

        assert tool["name"] == "createLevel"
        assert tool["input_schema"]["properties"]["code"]["type"] == "string"

    def test_gemini_declarations(self):
        no_args = GetProgramsToolHandler(service=None).get_definition().get_spec()
        (wrapper,) = tools_to_gemini_declarations([level_spec(), no_args])

        create_level, get_programs = wrapper["function_declarations"]
        assert create_level["parameters"]["type"] == "OBJECT"
        assert create_level["parameters"]["properties"]["name"]["type"] == "STRING"
        assert "parameters" not in get_programs

    def test_gemini_schema_folds_nullable(self):
        schema = to_gemini_schema(GetLevelsInput.model_json_schema())

        program_id = schema["properties"]["programId"]
        assert program_id["type"] == "STRING"
        assert program_id["nullable"] is True
        assert "required" not in schema

    def test_gemini_no_tools(self):
        assert tools_to_gemini_declarations([]) == []


class TestParseArguments:

    def test_json_string(self):
        assert parse_tool_call_arguments('{"code": "BSC"}') == {"code": "BSC"}

    def test_empty_values(self):
        assert parse_tool_call_arguments(None) == {}
        assert parse_tool_call_arguments("  ") == {}

    def test_invalid_json_passed_through(self):
        assert parse_tool_call_arguments("{code: BSC") == "{code: BSC"

    def test_dict_passed_through(self):
        assert parse_tool_call_arguments({"id": "1"}) == {"id": "1"}
