"""
Test doubles for the model gateway and tools
"""

import asyncio
from typing import Any, Callable, List, Optional, Sequence, Union

from pydantic import BaseModel

from academic_agent.core.context.conversation_history import Turn
from academic_agent.core.model_gateway import (
    FinalAnswer,
    ModelGateway,
    ModelResponse,
    ToolCallsRequested,
)
from academic_agent.core.tools import ToolCallRequest, ToolDefinition, ToolSpec


Step = Union[ModelResponse, Exception, Callable[[Sequence[Turn]], ModelResponse]]


class ScriptedGateway(ModelGateway):
    """Replays a fixed list of responses and records what it was asked"""

    provider = "scripted"

    def __init__(self, steps: Sequence[Step], repeat_last: bool = False, title: str = "Program setup"):
        self.steps = list(steps)
        self.repeat_last = repeat_last
        self.title = title
        self.calls = 0
        self.snapshots: List[Sequence[Turn]] = []
        self.personas: List[Optional[str]] = []
        self.tool_catalogs: List[Sequence[ToolSpec]] = []
        self.prompts: List[str] = []

    async def ask(self, history, tools, persona=None) -> ModelResponse:
        self.calls += 1
        self.snapshots.append(history)
        self.personas.append(persona)
        self.tool_catalogs.append(tools)

        if self.steps and (len(self.steps) > 1 or not self.repeat_last):
            step = self.steps.pop(0)
        elif self.steps:
            step = self.steps[0]
        else:
            raise AssertionError("ScriptedGateway ran out of responses")

        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(history)
        return step

    async def complete_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.title


class BlockingGateway(ModelGateway):
    """Never answers until released; used for cancellation tests"""

    provider = "blocking"

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def ask(self, history, tools, persona=None) -> ModelResponse:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return FinalAnswer(text="too late")

    async def complete_text(self, prompt: str) -> str:
        return ""


def tool_calls(*calls: tuple) -> ToolCallsRequested:
    """Build a ToolCallsRequested from (call_id, tool_name, arguments) triples"""
    return ToolCallsRequested(calls=tuple(
        ToolCallRequest(call_id=call_id, tool_name=name, arguments=arguments)
        for call_id, name, arguments in calls
    ))


def final(text: str) -> FinalAnswer:
    return FinalAnswer(text=text)


class EmptyInput(BaseModel):
    pass


def make_tool(name: str, handler: Callable[[Any], Any], input_model=EmptyInput) -> ToolDefinition:
    return ToolDefinition(name=name, description=f"{name} tool", input_model=input_model, handler=handler)
