"""
Shared fixtures: a scripted LLM gateway and a small tool registry.

No network: the gateway replays canned replies and records every call.
"""

import asyncio
from typing import Any

import pytest
from pydantic import BaseModel, Field

from agentic_rag.agent.conversation import ToolCall, Turn
from agentic_rag.agent.tools import Tool, ToolRegistry

QUESTION = "What does Lilian Weng say about types of reward hacking?"
RELEVANT_PASSAGE = (
    "Reward hacking can be categorized into two types: environment or goal misspecification, "
    "and reward tampering."
)


class ScriptedGateway:
    """
    LLMGateway double. Each mode pops from its own queue; an Exception in a
    queue is raised instead of returned. calls records (mode, turns).
    """

    def __init__(self, tool_replies=(), replies=(), grades=()) -> None:
        self.tool_replies: list[Any] = list(tool_replies)
        self.replies: list[Any] = list(replies)
        self.grades: list[Any] = list(grades)
        self.calls: list[tuple[str, list[Turn]]] = []

    @staticmethod
    def _pop(queue: list[Any], mode: str) -> Any:
        if not queue:
            raise AssertionError(f"unexpected {mode} call")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def generate_with_tools(self, turns, tool_specs) -> Turn:
        self.calls.append(("tools", list(turns)))
        item = self._pop(self.tool_replies, "generate_with_tools")
        return item if isinstance(item, Turn) else Turn.assistant(item)

    async def generate(self, turns) -> Turn:
        self.calls.append(("generate", list(turns)))
        item = self._pop(self.replies, "generate")
        return item if isinstance(item, Turn) else Turn.assistant(item)

    async def generate_structured(self, turns, schema):
        self.calls.append(("structured", list(turns)))
        return schema.model_validate({"binary_score": self._pop(self.grades, "generate_structured")})

    def modes(self) -> list[str]:
        return [mode for mode, _ in self.calls]


def retrieve_call(call_id: str = "1", query: str = "types of reward hacking") -> Turn:
    """Assistant turn requesting one retriever call."""
    return Turn.assistant(tool_calls=[ToolCall(name="retrieve_blog_posts", arguments={"query": query}, call_id=call_id)])


class QueryArgs(BaseModel):
    query: str = Field(..., min_length=1)


def make_registry(result: str = RELEVANT_PASSAGE, delay: float = 0.0) -> ToolRegistry:
    async def retrieve(query: str) -> str:
        if delay:
            await asyncio.sleep(delay)
        return result

    return ToolRegistry([Tool(name="retrieve_blog_posts", description="Search blog posts.", args_model=QueryArgs, func=retrieve)])


@pytest.fixture
def registry() -> ToolRegistry:
    return make_registry()
