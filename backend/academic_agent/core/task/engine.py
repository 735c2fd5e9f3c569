"""
Task engine - the tool-calling orchestration loop

Each query runs as its own async generator with its own LoopState and history:

    AwaitingModel -> ExecutingTools -> AwaitingModel ... -> Finalized | Aborted

Tool calls of one model turn are dispatched concurrently and joined before the tool
turn is appended; results keep the order of the requests. Tool failures come back from
the registry as error outcomes and the loop continues. Gateway failures, empty model
responses, the iteration cap and cancellation end the query with a single terminal event.

The synchronous entry point (run_query) consumes the same event stream.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from functools import partial
from typing import AsyncIterator, List, Optional, Sequence, Set

from academic_agent.core.context.conversation_history import ConversationHistory, Turn
from academic_agent.core.model_gateway import (
    EmptyResponse,
    FinalAnswer,
    GatewayError,
    ModelGateway,
    ModelResponse,
)
from academic_agent.core.tools import ToolRegistry, ToolResult, ToolSpec

from .emitter import EventEmitter
from .events import AgentEvent, QueryResult
from .prompt_builder import PromptBuilder
from .task_state import AbortReason, LoopPhase, LoopState


logger = logging.getLogger(__name__)


DEFAULT_MAX_ITERATIONS = 7


@dataclass
class QueryContext:
    """Everything one query owns; created per query and never shared"""

    query_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    prior_turns: Sequence[Turn] = ()
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    state: Optional[LoopState] = None

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


class TaskEngine:
    """
    Orchestration loop

    The engine itself is stateless across queries: gateway, registry and persona are
    read-only, everything mutable lives in the QueryContext.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        registry: ToolRegistry,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        persona: Optional[str] = None,
        agent_name: str = "AcademicAgent",
        detached: Optional[Set[asyncio.Task]] = None,
    ):
        """
        Args:
            detached: set that collects tool calls left running by cancelled queries;
                pass the same set to every engine that should be awaited together
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.gateway = gateway
        self.registry = registry
        self.max_iterations = max_iterations
        self.persona = persona if persona is not None else PromptBuilder(registry).build_prompt()
        self.emitter = EventEmitter(agent_name)
        self.tools: List[ToolSpec] = registry.list_tools()

        # tool calls left running by cancelled queries
        self._detached: Set[asyncio.Task] = detached if detached is not None else set()

    async def stream_query(
        self,
        prompt: str,
        context: Optional[QueryContext] = None,
    ) -> AsyncIterator[AgentEvent]:
        """
        Run one query, yielding every loop transition

        Args:
            prompt: user request
            context: per-query context; prior turns seed the history

        Yields:
            Status, ToolInvoked and ToolSettled events, then exactly one FinalAnswer
            or Error event
        """
        context = context or QueryContext()
        history = ConversationHistory(context.prior_turns)
        history.add_user_text(prompt)
        state = LoopState(history=history, max_iterations=self.max_iterations)
        context.state = state

        logger.info(f"=== Query {context.query_id} started ===")
        logger.info(f"User input: {prompt[:100]}")

        try:
            while not state.terminated:
                if context.cancelled:
                    state.abort(AbortReason.CANCELLED, "Query cancelled by the caller")
                    break

                if state.cap_reached:
                    state.abort(
                        AbortReason.ITERATION_LIMIT_EXCEEDED,
                        f"No final answer after {state.max_iterations} iterations",
                    )
                    break

                state.phase = LoopPhase.AWAITING_MODEL
                yield self.emitter.awaiting_model(state)

                try:
                    response = await self._ask_model(state, context)
                except GatewayError as e:
                    state.abort(AbortReason.GATEWAY_ERROR, str(e))
                    break

                if response is None:
                    state.abort(AbortReason.CANCELLED, "Query cancelled while waiting for the model")
                    break

                if isinstance(response, EmptyResponse):
                    state.abort(
                        AbortReason.NO_USABLE_RESPONSE,
                        f"The model returned no usable content: {response.detail}",
                    )
                    break

                if isinstance(response, FinalAnswer):
                    history.add_model_text(response.text)
                    state.finalize(response.text)
                    break

                # tool calls: the request turn is recorded before anything runs
                calls = response.calls
                history.add_tool_calls(calls)
                state.phase = LoopPhase.EXECUTING_TOOLS

                yield self.emitter.tools_requested(state, calls)
                for call in calls:
                    yield self.emitter.tool_invoked(state, call)

                tasks = {
                    asyncio.create_task(self.registry.invoke_call(call)): index
                    for index, call in enumerate(calls)
                }
                results: List[Optional[ToolResult]] = [None] * len(calls)
                cancel_waiter = asyncio.create_task(context.cancel_event.wait())

                try:
                    pending = set(tasks)
                    while pending and not context.cancelled:
                        done, _ = await asyncio.wait(
                            pending | {cancel_waiter},
                            return_when=asyncio.FIRST_COMPLETED,
                        )
                        for task in sorted((t for t in done if t in tasks), key=tasks.get):
                            pending.discard(task)
                            result = task.result()
                            results[tasks[task]] = result
                            yield self.emitter.tool_settled(state, result)
                finally:
                    cancel_waiter.cancel()
                    self._detach([task for task in tasks if not task.done()], context.query_id)

                if context.cancelled:
                    state.abort(AbortReason.CANCELLED, "Query cancelled while tools were running")
                    break

                history.add_tool_results(results)
                state.iteration_count += 1
                logger.info(
                    f"Query {context.query_id}: iteration {state.iteration_count} done, "
                    f"{sum(1 for r in results if r.success)}/{len(results)} tool calls succeeded"
                )

        except (GeneratorExit, asyncio.CancelledError):
            if not state.terminated:
                state.abort(AbortReason.CANCELLED, "Query stream closed by the caller")
            logger.info(f"Query {context.query_id} cancelled")
            raise

        except Exception as e:
            logger.error(f"Query {context.query_id} failed: {e}", exc_info=True)
            if not state.terminated:
                state.abort(AbortReason.INTERNAL_ERROR, f"Query failed: {e}")

        if state.phase == LoopPhase.FINALIZED:
            logger.info(f"=== Query {context.query_id} finalized after {state.gateway_calls} model calls ===")
        else:
            logger.warning(
                f"=== Query {context.query_id} aborted: {state.error.reason.value} - {state.error.message} ==="
            )

        yield self.emitter.terminal(state)

    async def run_query(self, prompt: str, context: Optional[QueryContext] = None) -> QueryResult:
        """Run one query to completion and return only its terminal value"""
        terminal = None
        async for event in self.stream_query(prompt, context):
            terminal = event
        return QueryResult.from_terminal_event(terminal)

    @property
    def detached(self) -> Set[asyncio.Task]:
        return self._detached

    async def wait_detached(self) -> None:
        """Wait for tool calls left running by cancelled queries, including ones detached meanwhile"""
        while self._detached:
            await asyncio.gather(*list(self._detached), return_exceptions=True)

    async def _ask_model(self, state: LoopState, context: QueryContext) -> Optional[ModelResponse]:
        """One gateway call, abandoned if the query is cancelled first

        Returns:
            The model response, or None when the query was cancelled

        Raises:
            GatewayError: provider failure
        """
        snapshot = state.history.snapshot()
        state.gateway_calls += 1
        logger.info(f"Query {context.query_id}: model call {state.gateway_calls} with {len(snapshot)} turns")

        ask = asyncio.create_task(self.gateway.ask(snapshot, self.tools, self.persona))
        cancel_waiter = asyncio.create_task(context.cancel_event.wait())
        try:
            done, _ = await asyncio.wait({ask, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_waiter.cancel()
            if not ask.done():
                ask.cancel()

        if ask in done:
            return ask.result()
        return None

    def _detach(self, tasks: List[asyncio.Task], query_id: str) -> None:
        """Let unsettled tool calls finish on their own; their results are discarded"""
        for task in tasks:
            self._detached.add(task)
            task.add_done_callback(partial(self._on_detached_done, query_id))
        if tasks:
            logger.info(f"Query {query_id}: {len(tasks)} tool call(s) left to settle after cancellation")

    def _on_detached_done(self, query_id: str, task: asyncio.Task) -> None:
        self._detached.discard(task)
        if task.cancelled():
            return
        result = task.result()
        logger.info(
            f"Query {query_id}: discarded result of {result.tool_name} "
            f"({'ok' if result.success else 'error'}) settled after cancellation"
        )
