"""
LangGraph agent: query_or_respond → (tools inline) → grade_documents → generate | rewrite → loop.

Routers are pure functions of graph state. The Orchestrator owns the conversation
log for a run, enforces the rewrite cap and run timeout, and reports how the run ended.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable

from langgraph.graph import END, StateGraph

from agentic_rag.agent.conversation import ConversationLog, Role, Turn
from agentic_rag.agent.llm import LLMGateway
from agentic_rag.agent.nodes import AgentNodes
from agentic_rag.agent.state import AgentState, GradeVerdict, Node
from agentic_rag.agent.tools import ToolRegistry
from agentic_rag.core.config import MAX_REWRITES, RUN_TIMEOUT_SECONDS, TOOL_TIMEOUT_SECONDS
from agentic_rag.core.errors import GatewayError, RunAbortedError

logger = logging.getLogger(__name__)

EventCallback = Callable[[dict[str, Any]], Awaitable[None]]


def route_after_query(state: AgentState) -> Node:
    """Grade when the latest query_or_respond pass requested tools, else terminate."""
    current = ConversationLog(state["turns"]).current_pass()
    requested = any(t.tool_calls for t in current if t.role == Role.ASSISTANT)
    next_node = Node.GRADE_DOCUMENTS if requested else Node.TERMINATED
    logger.info("[graph:route_after_query] tools_requested=%s -> %s", requested, next_node.value)
    return next_node


def route_after_grade(state: AgentState) -> Node:
    """relevant -> generate, irrelevant -> rewrite; raises RunAbortedError once the rewrite cap is spent."""
    verdict = state.get("verdict")
    it = state.get("iteration") or 0
    max_rewrites = state["max_rewrites"]
    if verdict == GradeVerdict.RELEVANT:
        next_node = Node.GENERATE
    elif verdict == GradeVerdict.IRRELEVANT:
        if it >= max_rewrites:
            logger.warning("[graph:route_after_grade] irrelevant after %d rewrite(s), cap=%d", it, max_rewrites)
            raise RunAbortedError(it, max_rewrites)
        next_node = Node.REWRITE
    else:
        raise ValueError(f"grade_documents produced no verdict: {verdict!r}")
    logger.info("[graph:route_after_grade] verdict=%s iteration=%d max=%d -> %s", verdict.value, it, max_rewrites, next_node.value)
    return next_node


def _tag_failures(node: Node, fn: Callable[[AgentState], Awaitable[dict]]) -> Callable[[AgentState], Awaitable[dict]]:
    """Record the originating node on gateway errors."""

    @functools.wraps(fn)
    async def wrapper(state: AgentState) -> dict:
        try:
            return await fn(state)
        except GatewayError as e:
            if e.node is None:
                e.node = node.value
            raise

    return wrapper


def build_graph(nodes: AgentNodes):
    """
    Build and compile the agent graph.
    query_or_respond → grade_documents | END; grade_documents → generate | rewrite;
    rewrite → query_or_respond; generate → END.
    """
    graph = StateGraph(AgentState)

    graph.add_node(Node.QUERY_OR_RESPOND.value, _tag_failures(Node.QUERY_OR_RESPOND, nodes.query_or_respond))
    graph.add_node(Node.GRADE_DOCUMENTS.value, _tag_failures(Node.GRADE_DOCUMENTS, nodes.grade_documents))
    graph.add_node(Node.REWRITE.value, _tag_failures(Node.REWRITE, nodes.rewrite))
    graph.add_node(Node.GENERATE.value, _tag_failures(Node.GENERATE, nodes.generate))

    graph.set_entry_point(Node.QUERY_OR_RESPOND.value)
    graph.add_conditional_edges(
        Node.QUERY_OR_RESPOND.value,
        route_after_query,
        {Node.GRADE_DOCUMENTS: Node.GRADE_DOCUMENTS.value, Node.TERMINATED: END},
    )
    graph.add_conditional_edges(
        Node.GRADE_DOCUMENTS.value,
        route_after_grade,
        {Node.GENERATE: Node.GENERATE.value, Node.REWRITE: Node.REWRITE.value},
    )
    graph.add_edge(Node.REWRITE.value, Node.QUERY_OR_RESPOND.value)
    graph.add_edge(Node.GENERATE.value, END)

    return graph.compile()


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


@dataclass
class RunResult:
    """How a run ended. turns holds every turn appended by nodes that completed."""

    status: RunStatus
    turns: list[Turn] = field(default_factory=list)
    iterations: int = 0
    error: str | None = None
    failed_node: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def answer(self) -> str:
        if not self.ok or not self.turns:
            return ""
        last = self.turns[-1]
        return last.content if last.role == Role.ASSISTANT else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "answer": self.answer,
            "iterations": self.iterations,
            "error": self.error,
            "failed_node": self.failed_node,
            "turns": [t.to_dict() for t in self.turns],
        }


class Orchestrator:
    """
    Drives one compiled graph for any number of runs.

    Gateway and registry are injected and shared read-only; each run gets its own
    conversation log.
    """

    def __init__(
        self,
        gateway: LLMGateway,
        registry: ToolRegistry,
        max_rewrites: int = MAX_REWRITES,
        timeout: float | None = RUN_TIMEOUT_SECONDS,
        tool_timeout: float | None = TOOL_TIMEOUT_SECONDS,
    ) -> None:
        if max_rewrites < 0:
            raise ValueError("max_rewrites must be >= 0")
        self.gateway = gateway
        self.registry = registry
        self.max_rewrites = max_rewrites
        self.timeout = timeout
        self._graph = build_graph(AgentNodes(gateway, registry, tool_timeout=tool_timeout))
        # query_or_respond, grade_documents, rewrite per cycle, plus the final generate
        self._recursion_limit = 3 * (max_rewrites + 1) + 2

    async def run(
        self,
        question: str,
        system_prompt: str | None = None,
        timeout: float | None = None,
        on_event: EventCallback | None = None,
    ) -> RunResult:
        """
        Run the agent for one question. Returns a RunResult; gateway failures, the
        rewrite cap and the run timeout end the run with a non-succeeded status.
        """
        if not question or not str(question).strip():
            raise ValueError("question is required")
        q = str(question).strip()
        timeout = timeout if timeout is not None else self.timeout
        seed = [Turn(role=Role.SYSTEM, content=system_prompt)] if system_prompt else []
        seed.append(Turn.user(q))
        log = ConversationLog(seed)
        progress = {"iteration": 0}
        logger.info("[orchestrator:run] START question=%r max_rewrites=%d timeout=%s", q, self.max_rewrites, timeout)

        initial: AgentState = {
            "turns": list(seed),
            "iteration": 0,
            "max_rewrites": self.max_rewrites,
            "verdict": None,
        }

        async def _drive() -> None:
            async for update in self._graph.astream(
                initial,
                config={"recursion_limit": self._recursion_limit},
                stream_mode="updates",
            ):
                for node_name, output in update.items():
                    output = output or {}
                    new_turns = output.get("turns") or []
                    log.append(new_turns)
                    if "iteration" in output:
                        progress["iteration"] = output["iteration"]
                    verdict = output.get("verdict")
                    logger.info(
                        "[orchestrator:run] node=%s new_turns=%d verdict=%s log_len=%d",
                        node_name,
                        len(new_turns),
                        verdict.value if verdict else None,
                        len(log),
                    )
                    if on_event is not None:
                        last = new_turns[-1].to_dict() if new_turns else {}
                        await on_event(
                            {
                                "event": "node",
                                "node": node_name,
                                "role": last.get("role"),
                                "content": last.get("content"),
                                "tool_calls": last.get("tool_calls", []),
                                "turns": [t.to_dict() for t in new_turns],
                                "verdict": verdict.value if verdict else None,
                                "iteration": progress["iteration"],
                            }
                        )

        def _result(status: RunStatus, error: str | None = None, failed_node: str | None = None) -> RunResult:
            return RunResult(
                status=status,
                turns=list(log.turns),
                iterations=progress["iteration"],
                error=error,
                failed_node=failed_node,
            )

        try:
            await asyncio.wait_for(_drive(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("[orchestrator:run] END cancelled after %ss, stable_turns=%d", timeout, len(log))
            return _result(RunStatus.CANCELLED, error=f"run timed out after {timeout}s")
        except RunAbortedError as e:
            logger.warning("[orchestrator:run] END aborted: %s", e)
            return _result(RunStatus.ABORTED, error=str(e), failed_node=Node.GRADE_DOCUMENTS.value)
        except GatewayError as e:
            logger.error("[orchestrator:run] END failed node=%s: %s", e.node, e)
            return _result(RunStatus.FAILED, error=str(e), failed_node=e.node)

        result = _result(RunStatus.SUCCEEDED)
        logger.info("[orchestrator:run] END iterations=%d turns=%d answer_len=%d", result.iterations, len(result.turns), len(result.answer))
        return result

    async def run_stream(
        self,
        question: str,
        system_prompt: str | None = None,
        timeout: float | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Run the agent and yield one {"event": "node", ...} per completed node, then
        {"event": "done", ...} with the run result, or {"event": "error", "message": str}.
        """
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self.run(question, system_prompt, timeout=timeout, on_event=queue.put))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while (evt := await queue.get()) is not None:
                yield evt
            try:
                result = task.result()
            except Exception as e:
                logger.exception("[orchestrator:run_stream] Agent stream failed")
                yield {"event": "error", "message": str(e)}
                return
        finally:
            if not task.done():
                task.cancel()
        yield {"event": "done", **result.to_dict()}
