"""
Model gateway adapter tests with fake provider clients
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import anthropic
import httpx
import openai
import pytest
from google.api_core import exceptions as google_exceptions

from academic_agent.core.ai_config_manager import AgentConfig
from academic_agent.core.context import ConversationHistory
from academic_agent.core.model_gateway import (
    AnthropicGateway,
    EmptyResponse,
    FinalAnswer,
    GatewayError,
    GeminiGateway,
    OpenAIGateway,
    ToolCallsRequested,
    UnconfiguredGateway,
    build_model_response,
    create_gateway,
)
from academic_agent.core.tools import ErrOutcome, OkOutcome, ToolCallRequest, ToolResult


REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat")


def sample_history():
    history = ConversationHistory()
    history.add_user_text("Create the BSC program")
    history.add_tool_calls([
        ToolCallRequest(call_id="c1", tool_name="createProgram", arguments={"name": "BSc", "code": "BSC"}),
        ToolCallRequest(call_id="c2", tool_name="getPrograms", arguments={}),
    ])
    history.add_tool_results([
        ToolResult(call_id="c1", tool_name="createProgram", outcome=OkOutcome(value={"id": "p1"})),
        ToolResult(call_id="c2", tool_name="getPrograms", outcome=ErrOutcome(reason="db down")),
    ])
    return history.snapshot()


def openai_completion(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def openai_tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def openai_client(result=None, error=None):
    create = AsyncMock(return_value=result, side_effect=error)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


class TestBuildModelResponse:

    def test_tool_calls_win_over_text(self):
        response = build_model_response([("1", "getPrograms", {})], "Let me check")
        assert isinstance(response, ToolCallsRequested)

    def test_text_only(self):
        assert build_model_response([], "  Done.  ") == FinalAnswer(text="Done.")

    def test_blank_is_empty(self):
        assert isinstance(build_model_response([], "   "), EmptyResponse)
        assert isinstance(build_model_response([], None), EmptyResponse)

    def test_missing_and_duplicate_ids_replaced(self):
        response = build_model_response(
            [(None, "getPrograms", {}), ("x", "getLevels", {}), ("x", "getSemesters", {})],
            None,
        )

        ids = [call.call_id for call in response.calls]
        assert len(set(ids)) == 3
        assert ids[1] == "x"


class TestOpenAIGateway:

    @pytest.mark.asyncio
    async def test_tool_call_response(self):
        client, create = openai_client(openai_completion(
            tool_calls=[openai_tool_call("call_1", "createProgram", '{"name": "BSc", "code": "BSC"}')]
        ))
        gateway = OpenAIGateway(api_key="k", model="gpt-4o-mini", client=client)

        response = await gateway.ask(sample_history(), [], persona="You are Idriss")

        assert isinstance(response, ToolCallsRequested)
        assert response.calls[0].arguments == {"name": "BSc", "code": "BSC"}
        request = create.call_args.kwargs
        assert request["messages"][0] == {"role": "system", "content": "You are Idriss"}
        assert "tools" not in request

    def test_messages_for_tool_turns(self):
        gateway = OpenAIGateway(api_key="k", model="gpt-4o-mini", client=object())

        messages = gateway.build_messages(sample_history(), None)

        assert [m["role"] for m in messages] == ["user", "assistant", "tool", "tool"]
        assert [c["id"] for c in messages[1]["tool_calls"]] == ["c1", "c2"]
        assert messages[2]["tool_call_id"] == "c1"
        assert '"success": false' in messages[3]["content"]

    @pytest.mark.asyncio
    async def test_final_answer(self):
        client, _ = openai_client(openai_completion(content="Created program BSC."))
        gateway = OpenAIGateway(api_key="k", model="gpt-4o-mini", client=client)

        assert await gateway.ask(sample_history(), []) == FinalAnswer(text="Created program BSC.")

    @pytest.mark.asyncio
    async def test_connection_error_is_retryable(self):
        client, _ = openai_client(error=openai.APIConnectionError(request=REQUEST))
        gateway = OpenAIGateway(api_key="k", model="gpt-4o-mini", client=client)

        with pytest.raises(GatewayError) as exc_info:
            await gateway.ask(sample_history(), [])
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_bad_request_is_not_retryable(self):
        error = openai.BadRequestError("bad", response=httpx.Response(400, request=REQUEST), body=None)
        client, _ = openai_client(error=error)
        gateway = OpenAIGateway(api_key="k", model="gpt-4o-mini", client=client)

        with pytest.raises(GatewayError) as exc_info:
            await gateway.ask(sample_history(), [])
        assert not exc_info.value.retryable


class TestAnthropicGateway:

    def test_messages_use_tool_blocks(self):
        gateway = AnthropicGateway(api_key="k", model="claude", client=object())

        messages = gateway.build_messages(sample_history())

        assert messages[1]["content"][0]["type"] == "tool_use"
        results = messages[2]["content"]
        assert messages[2]["role"] == "user"
        assert [block["tool_use_id"] for block in results] == ["c1", "c2"]
        assert [block["is_error"] for block in results] == [False, True]

    @pytest.mark.asyncio
    async def test_parse_tool_use(self):
        content = [
            SimpleNamespace(type="text", text="Creating it"),
            SimpleNamespace(type="tool_use", id="tu_1", name="createProgram", input={"name": "BSc", "code": "BSC"}),
        ]
        create = AsyncMock(return_value=SimpleNamespace(content=content))
        gateway = AnthropicGateway(api_key="k", model="claude", client=SimpleNamespace(messages=SimpleNamespace(create=create)))

        response = await gateway.ask(sample_history(), [], persona="You are Idriss")

        assert response.calls[0].call_id == "tu_1"
        assert create.call_args.kwargs["system"] == "You are Idriss"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        create = AsyncMock(side_effect=anthropic.APIConnectionError(request=REQUEST))
        gateway = AnthropicGateway(api_key="k", model="claude", client=SimpleNamespace(messages=SimpleNamespace(create=create)))

        with pytest.raises(GatewayError) as exc_info:
            await gateway.ask(sample_history(), [])
        assert exc_info.value.retryable


class FakeGeminiModel:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.contents = None
        self.init_kwargs = None

    def factory(self, model_name, **kwargs):
        self.init_kwargs = kwargs
        return self

    async def generate_content_async(self, contents, **kwargs):
        self.contents = contents
        if self.error:
            raise self.error
        return self.response


def gemini_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


class TestGeminiGateway:

    @pytest.mark.asyncio
    async def test_function_calls_get_ids(self):
        fake = FakeGeminiModel(gemini_response(
            SimpleNamespace(function_call=SimpleNamespace(name="getLevels", args={"programId": "p1"}), text=""),
            SimpleNamespace(function_call=SimpleNamespace(name="getPrograms", args=None), text=""),
        ))
        gateway = GeminiGateway(api_key="k", model="gemini-2.0-flash", model_factory=fake.factory)

        response = await gateway.ask(sample_history(), [], persona="You are Idriss")

        assert [call.tool_name for call in response.calls] == ["getLevels", "getPrograms"]
        assert response.calls[0].arguments == {"programId": "p1"}
        assert response.calls[1].arguments == {}
        assert len({call.call_id for call in response.calls}) == 2
        assert fake.init_kwargs["system_instruction"] == "You are Idriss"
        assert [content["role"] for content in fake.contents] == ["user", "model", "function"]

    @pytest.mark.asyncio
    async def test_no_candidates_is_empty(self):
        fake = FakeGeminiModel(SimpleNamespace(candidates=[]))
        gateway = GeminiGateway(api_key="k", model="gemini-2.0-flash", model_factory=fake.factory)

        assert isinstance(await gateway.ask(sample_history(), []), EmptyResponse)

    @pytest.mark.asyncio
    async def test_service_unavailable_is_retryable(self):
        fake = FakeGeminiModel(error=google_exceptions.ServiceUnavailable("overloaded"))
        gateway = GeminiGateway(api_key="k", model="gemini-2.0-flash", model_factory=fake.factory)

        with pytest.raises(GatewayError) as exc_info:
            await gateway.ask(sample_history(), [])
        assert exc_info.value.retryable


class TestCreateGateway:

    def test_unconfigured(self):
        assert isinstance(create_gateway(None), UnconfiguredGateway)

    def test_openai_compatible_provider_uses_default_base_url(self):
        config = AgentConfig(ai_provider="deepseek", ai_model="deepseek-chat", ai_api_key="k")
        gateway = create_gateway(config)

        assert isinstance(gateway, OpenAIGateway)
        assert gateway.provider == "deepseek"
        assert str(gateway.client.base_url).startswith("https://api.deepseek.com")

    def test_unsupported_provider(self):
        config = AgentConfig(ai_provider="nope", ai_model="m", ai_api_key="k")
        with pytest.raises(ValueError):
            create_gateway(config)

    @pytest.mark.asyncio
    async def test_unconfigured_gateway_fails(self):
        with pytest.raises(GatewayError):
            await UnconfiguredGateway().ask([], [])
