"""
Agent tools: registry, argument validation, and concurrent execution for tool-calling.

Tools are resolved by name. Every call yields a ToolResult: unknown tools, invalid
arguments, timeouts and exceptions become error text instead of failing the run.
"""

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from pydantic import BaseModel, ValidationError

from agentic_rag.agent.conversation import ToolCall, ToolResult
from agentic_rag.core.config import TOOL_TIMEOUT_SECONDS
from agentic_rag.core.errors import ToolInvocationError

logger = logging.getLogger(__name__)

ToolFunction = Callable[..., Any] | Callable[..., Awaitable[Any]]


def _to_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


@dataclass(frozen=True)
class Tool:
    """A named capability with a pydantic model describing its arguments."""

    name: str
    description: str
    args_model: type[BaseModel]
    func: ToolFunction

    def spec(self) -> dict[str, Any]:
        """OpenAI function-calling definition."""
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }

    async def invoke(self, arguments: dict[str, Any] | None) -> str:
        """Validate arguments, run the tool, return its output as text."""
        try:
            args = self.args_model.model_validate(arguments or {})
        except ValidationError as e:
            raise ToolInvocationError(self.name, f"invalid arguments: {e.errors(include_url=False)}") from e
        kwargs = args.model_dump()
        if inspect.iscoroutinefunction(self.func):
            result = await self.func(**kwargs)
        else:
            result = await asyncio.to_thread(self.func, **kwargs)
        return _to_text(result)


class ToolRegistry:
    """
    Name -> Tool mapping. Read-only once built, so one registry can serve
    concurrent runs.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.info("[tools] registered tool=%s", tool.name)

    def get(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolInvocationError(name, "unknown tool")
        return tool

    def specs(self) -> list[dict[str, Any]]:
        return [t.spec() for t in self._tools.values()]

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


async def _run_tool_call(registry: ToolRegistry, call: ToolCall, timeout: float | None) -> ToolResult:
    logger.info("[tools:execute] IN  call_id=%s name=%r arguments=%r", call.call_id, call.name, call.arguments)
    try:
        tool = registry.get(call.name)
        task = asyncio.ensure_future(tool.invoke(call.arguments))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        finally:
            if not task.done():
                task.cancel()
        if not done:
            logger.warning("[tools:execute] call_id=%s name=%s timed out after %ss", call.call_id, call.name, timeout)
            return ToolResult(
                call_id=call.call_id,
                content=f"Error: {call.name}: timed out after {timeout}s",
                is_error=True,
            )
        content = task.result()
    except ToolInvocationError as e:
        logger.warning("[tools:execute] call_id=%s failed: %s", call.call_id, e)
        return ToolResult(call_id=call.call_id, content=f"Error: {e}", is_error=True)
    except Exception as e:
        logger.warning("[tools:execute] call_id=%s name=%s raised %s: %s", call.call_id, call.name, type(e).__name__, e)
        return ToolResult(
            call_id=call.call_id,
            content=f"Error: {call.name}: {type(e).__name__}: {e}",
            is_error=True,
        )
    logger.info("[tools:execute] OUT call_id=%s content_len=%d", call.call_id, len(content))
    return ToolResult(call_id=call.call_id, content=content)


async def execute_tool_calls(
    registry: ToolRegistry,
    calls: Iterable[ToolCall],
    timeout: float | None = TOOL_TIMEOUT_SECONDS,
) -> list[ToolResult]:
    """
    Invoke all calls concurrently and wait for every one of them.

    Results come back in call order, not completion order. A failing call never
    cancels its siblings; it produces an error ToolResult. A tool that raises
    CancelledError on its own is reported the same way, while cancelling the
    caller still cancels every call.
    """
    calls = list(calls)
    outcomes = await asyncio.gather(*(_run_tool_call(registry, c, timeout) for c in calls), return_exceptions=True)
    results: list[ToolResult] = []
    for call, outcome in zip(calls, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            logger.warning("[tools:execute] call_id=%s name=%s was cancelled by the tool", call.call_id, call.name)
            outcome = ToolResult(call_id=call.call_id, content=f"Error: {call.name}: cancelled", is_error=True)
        elif isinstance(outcome, BaseException):
            raise outcome
        results.append(outcome)
    logger.info(
        "[tools:execute] OUT calls=%d errors=%d",
        len(results),
        sum(1 for r in results if r.is_error),
    )
    return results
