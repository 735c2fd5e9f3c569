"""
Model gateway - asks a language model for the next step of a query

The task engine depends only on ModelGateway.ask: given the history snapshot, the tool
catalog and the persona, return tool-call requests, a final answer, or nothing usable.
Provider adapters translate the history into each API's message format.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Tuple, Union

import anthropic
import google.generativeai as genai
import openai
from google.api_core import exceptions as google_exceptions
from pydantic import BaseModel, ConfigDict, Field

from academic_agent.core.ai_config_manager import AgentConfig
from academic_agent.core.context.conversation_history import Turn
from academic_agent.core.tools.base import ToolCallRequest, ToolSpec
from academic_agent.core.tools.converter import (
    dump_json,
    format_tool_result_for_model,
    parse_tool_call_arguments,
    tools_to_anthropic_tools,
    tools_to_gemini_declarations,
    tools_to_openai_functions,
)


logger = logging.getLogger(__name__)


# ============================================================================
# Responses
# ============================================================================

class ToolCallsRequested(BaseModel):
    """The model wants one or more tools run as a single turn"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_calls"] = "tool_calls"
    calls: Tuple[ToolCallRequest, ...] = Field(min_length=1)


class FinalAnswer(BaseModel):
    """The model produced its final text"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["final_answer"] = "final_answer"
    text: str


class EmptyResponse(BaseModel):
    """Nothing usable came back; terminal, never retried"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["empty"] = "empty"
    detail: str = ""


ModelResponse = Union[ToolCallsRequested, FinalAnswer, EmptyResponse]


class GatewayError(Exception):
    """Provider or network failure

    ``retryable`` hints that the same request may succeed later; whether to retry is
    the caller's decision.
    """

    def __init__(self, message: str, provider: Optional[str] = None, retryable: bool = False):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable


def build_model_response(calls: Sequence[Tuple[Optional[str], str, Any]], text: Optional[str]) -> ModelResponse:
    """
    Normalise a provider reply

    Tool calls take precedence over text. Missing or repeated call ids are replaced so
    ids are unique within the turn.

    Args:
        calls: (call_id, tool_name, arguments) triples in the order the model emitted them
        text: concatenated text content, if any
    """
    if calls:
        seen = set()
        requests = []
        for call_id, tool_name, arguments in calls:
            if not call_id or call_id in seen:
                call_id = f"call_{uuid.uuid4().hex[:12]}"
            seen.add(call_id)
            requests.append(ToolCallRequest(call_id=call_id, tool_name=tool_name, arguments=arguments))
        return ToolCallsRequested(calls=tuple(requests))

    if text and text.strip():
        return FinalAnswer(text=text.strip())

    return EmptyResponse(detail="model returned no tool calls and no text")


# ============================================================================
# Gateways
# ============================================================================

class ModelGateway(ABC):
    """Abstract model gateway"""

    provider: str = "abstract"

    @abstractmethod
    async def ask(
        self,
        history: Sequence[Turn],
        tools: Sequence[ToolSpec],
        persona: Optional[str] = None,
    ) -> ModelResponse:
        """Ask the model for the next step

        Raises:
            GatewayError: the provider could not be reached or rejected the request
        """
        pass

    @abstractmethod
    async def complete_text(self, prompt: str) -> str:
        """Single-shot text completion without tools

        Raises:
            GatewayError: the provider could not be reached or rejected the request
        """
        pass


class UnconfiguredGateway(ModelGateway):
    """Stands in until a provider is configured; every call fails as a gateway error"""

    provider = "unconfigured"

    def __init__(self, reason: str = "AI provider is not configured"):
        self.reason = reason

    async def ask(self, history, tools, persona=None) -> ModelResponse:
        raise GatewayError(self.reason, provider=self.provider)

    async def complete_text(self, prompt: str) -> str:
        raise GatewayError(self.reason, provider=self.provider)


class OpenAIGateway(ModelGateway):
    """OpenAI Chat Completions (and OpenAI-compatible providers)"""

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        provider: str = "openai",
        client: Any = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.provider = provider
        self.client = client or openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    def build_messages(self, history: Sequence[Turn], persona: Optional[str]) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if persona:
            messages.append({"role": "system", "content": persona})

        for turn in history:
            if turn.role == "user":
                messages.append({"role": "user", "content": turn.text})
            elif turn.role == "model" and turn.tool_calls:
                messages.append({
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call.call_id,
                            "type": "function",
                            "function": {
                                "name": call.tool_name,
                                "arguments": dump_json(call.arguments),
                            },
                        }
                        for call in turn.tool_calls
                    ],
                })
            elif turn.role == "model":
                messages.append({"role": "assistant", "content": turn.text})
            else:
                for result in turn.tool_results:
                    messages.append({
                        "role": "tool",
                        "tool_call_id": result.call_id,
                        "content": dump_json(format_tool_result_for_model(result)),
                    })

        return messages

    def parse_response(self, response: Any) -> ModelResponse:
        if not getattr(response, "choices", None):
            return EmptyResponse(detail="no choices in completion")

        message = response.choices[0].message
        calls = [
            (
                tool_call.id,
                tool_call.function.name,
                parse_tool_call_arguments(tool_call.function.arguments),
            )
            for tool_call in (message.tool_calls or [])
        ]
        return build_model_response(calls, message.content)

    async def ask(self, history, tools, persona=None) -> ModelResponse:
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": self.build_messages(history, persona),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            request["tools"] = tools_to_openai_functions(tools)
            request["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            raise self._gateway_error(e) from e

        return self.parse_response(response)

    async def complete_text(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            raise self._gateway_error(e) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def _gateway_error(self, e: Exception) -> GatewayError:
        retryable = isinstance(
            e, (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)
        )
        logger.error(f"{self.provider} request failed: {e}")
        return GatewayError(f"{self.provider} request failed: {e}", provider=self.provider, retryable=retryable)


class AnthropicGateway(ModelGateway):
    """Anthropic Messages API with tool_use blocks"""

    provider = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        client: Any = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key, base_url=base_url)

    def build_messages(self, history: Sequence[Turn]) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []

        for turn in history:
            if turn.role == "user":
                messages.append({"role": "user", "content": turn.text})
            elif turn.role == "model" and turn.tool_calls:
                messages.append({
                    "role": "assistant",
                    "content": [
                        {
                            "type": "tool_use",
                            "id": call.call_id,
                            "name": call.tool_name,
                            "input": call.arguments if isinstance(call.arguments, dict) else {},
                        }
                        for call in turn.tool_calls
                    ],
                })
            elif turn.role == "model":
                messages.append({"role": "assistant", "content": turn.text})
            else:
                messages.append({
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": result.call_id,
                            "content": dump_json(format_tool_result_for_model(result)),
                            "is_error": not result.success,
                        }
                        for result in turn.tool_results
                    ],
                })

        return messages

    def parse_response(self, response: Any) -> ModelResponse:
        calls = []
        texts = []
        for block in getattr(response, "content", None) or []:
            if block.type == "tool_use":
                calls.append((block.id, block.name, block.input))
            elif block.type == "text":
                texts.append(block.text)
        return build_model_response(calls, "\n".join(texts))

    async def ask(self, history, tools, persona=None) -> ModelResponse:
        request: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": self.build_messages(history),
        }
        if persona:
            request["system"] = persona
        if tools:
            request["tools"] = tools_to_anthropic_tools(tools)

        try:
            response = await self.client.messages.create(**request)
        except anthropic.AnthropicError as e:
            raise self._gateway_error(e) from e

        return self.parse_response(response)

    async def complete_text(self, prompt: str) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AnthropicError as e:
            raise self._gateway_error(e) from e

        return "\n".join(block.text for block in response.content if block.type == "text")

    def _gateway_error(self, e: Exception) -> GatewayError:
        retryable = isinstance(
            e, (anthropic.APIConnectionError, anthropic.RateLimitError, anthropic.InternalServerError)
        )
        logger.error(f"anthropic request failed: {e}")
        return GatewayError(f"anthropic request failed: {e}", provider=self.provider, retryable=retryable)


def _to_plain(value: Any) -> Any:
    """Convert protobuf map/list composites returned by Gemini into plain Python values"""
    if isinstance(value, Mapping):
        return {key: _to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)) or (
        hasattr(value, "__iter__") and not isinstance(value, (str, bytes)) and hasattr(value, "__len__")
    ):
        return [_to_plain(item) for item in value]
    return value


class GeminiGateway(ModelGateway):
    """Google Gemini function calling"""

    provider = "gemini"

    _RETRYABLE = (
        google_exceptions.ServiceUnavailable,
        google_exceptions.TooManyRequests,
        google_exceptions.InternalServerError,
        google_exceptions.DeadlineExceeded,
    )

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        model_factory: Optional[Callable[..., Any]] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if model_factory is None:
            genai.configure(api_key=api_key)
            model_factory = genai.GenerativeModel
        self.model_factory = model_factory

    def build_contents(self, history: Sequence[Turn]) -> List[Dict[str, Any]]:
        contents: List[Dict[str, Any]] = []

        for turn in history:
            if turn.role == "user":
                contents.append({"role": "user", "parts": [{"text": turn.text}]})
            elif turn.role == "model" and turn.tool_calls:
                contents.append({
                    "role": "model",
                    "parts": [
                        {
                            "function_call": {
                                "name": call.tool_name,
                                "args": call.arguments if isinstance(call.arguments, dict) else {},
                            }
                        }
                        for call in turn.tool_calls
                    ],
                })
            elif turn.role == "model":
                contents.append({"role": "model", "parts": [{"text": turn.text}]})
            else:
                contents.append({
                    "role": "function",
                    "parts": [
                        {
                            "function_response": {
                                "name": result.tool_name,
                                "response": format_tool_result_for_model(result),
                            }
                        }
                        for result in turn.tool_results
                    ],
                })

        return contents

    def parse_response(self, response: Any) -> ModelResponse:
        candidates = getattr(response, "candidates", None)
        if not candidates:
            return EmptyResponse(detail="no candidates in response")

        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []

        calls = []
        texts = []
        for part in parts:
            function_call = getattr(part, "function_call", None)
            if function_call is not None and getattr(function_call, "name", ""):
                # Gemini does not assign call ids
                calls.append((None, function_call.name, _to_plain(function_call.args or {})))
            elif getattr(part, "text", ""):
                texts.append(part.text)

        return build_model_response(calls, "\n".join(texts))

    async def ask(self, history, tools, persona=None) -> ModelResponse:
        declarations = tools_to_gemini_declarations(tools)
        model = self.model_factory(
            self.model,
            tools=declarations or None,
            system_instruction=persona,
        )

        try:
            response = await model.generate_content_async(
                self.build_contents(history),
                generation_config={
                    "temperature": self.temperature,
                    "max_output_tokens": self.max_tokens,
                },
            )
        except google_exceptions.GoogleAPIError as e:
            raise self._gateway_error(e) from e

        return self.parse_response(response)

    async def complete_text(self, prompt: str) -> str:
        model = self.model_factory(self.model)
        try:
            response = await model.generate_content_async(prompt)
        except google_exceptions.GoogleAPIError as e:
            raise self._gateway_error(e) from e

        parsed = self.parse_response(response)
        return parsed.text if isinstance(parsed, FinalAnswer) else ""

    def _gateway_error(self, e: Exception) -> GatewayError:
        logger.error(f"gemini request failed: {e}")
        return GatewayError(
            f"gemini request failed: {e}",
            provider=self.provider,
            retryable=isinstance(e, self._RETRYABLE),
        )


# ============================================================================
# Provider selection
# ============================================================================

PROVIDER_CONFIGS: Dict[str, Dict[str, Any]] = {
    "openai": {
        "name": "OpenAI",
        "description": "GPT models",
        "models": ["gpt-4o", "gpt-4o-mini", "gpt-4.1"],
        "default_base_url": None,
        "compatible_with": "openai",
    },
    "anthropic": {
        "name": "Anthropic",
        "description": "Claude models",
        "models": ["claude-3-5-sonnet-latest", "claude-3-5-haiku-latest"],
        "default_base_url": None,
        "compatible_with": "anthropic",
    },
    "gemini": {
        "name": "Google Gemini",
        "description": "Gemini models",
        "models": ["gemini-2.0-flash", "gemini-1.5-pro"],
        "default_base_url": None,
        "compatible_with": "gemini",
    },
    "deepseek": {
        "name": "DeepSeek",
        "description": "DeepSeek models",
        "models": ["deepseek-chat"],
        "default_base_url": "https://api.deepseek.com/v1",
        "compatible_with": "openai",
    },
    "moonshot": {
        "name": "Moonshot",
        "description": "Moonshot AI models",
        "models": ["kimi-k2-turbo-preview", "moonshot-v1-128k"],
        "default_base_url": "https://api.moonshot.ai/v1",
        "compatible_with": "openai",
    },
    "glm": {
        "name": "GLM",
        "description": "Zhipu GLM general chat API",
        "models": ["glm-4-plus", "glm-4-air", "glm-4-flash"],
        "default_base_url": "https://open.bigmodel.cn/api/paas/v4",
        "compatible_with": "openai",
    },
    "openrouter": {
        "name": "OpenRouter",
        "description": "Unified access to many hosted models",
        "models": ["openai/gpt-4o", "anthropic/claude-3.5-sonnet", "google/gemini-2.0-flash"],
        "default_base_url": "https://openrouter.ai/api/v1",
        "compatible_with": "openai",
    },
}


def create_gateway(config: Optional[AgentConfig]) -> ModelGateway:
    """Build the gateway for a provider configuration

    Args:
        config: provider configuration, or None when nothing is configured

    Raises:
        ValueError: unsupported provider
    """
    if config is None:
        return UnconfiguredGateway()

    provider_config = PROVIDER_CONFIGS.get(config.ai_provider)
    if provider_config is None:
        raise ValueError(f"Unsupported provider: {config.ai_provider}")

    family = provider_config["compatible_with"]
    logger.info(f"Using model gateway: provider={config.ai_provider}, model={config.ai_model}")

    if family == "anthropic":
        return AnthropicGateway(
            api_key=config.ai_api_key,
            model=config.ai_model,
            base_url=config.ai_base_url,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )

    if family == "gemini":
        return GeminiGateway(
            api_key=config.ai_api_key,
            model=config.ai_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )

    return OpenAIGateway(
        api_key=config.ai_api_key,
        model=config.ai_model,
        base_url=config.ai_base_url or provider_config["default_base_url"],
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        provider=config.ai_provider,
    )
