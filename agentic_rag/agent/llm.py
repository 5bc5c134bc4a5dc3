"""
Agent LLM gateway: free-form, tool-calling, and structured (JSON schema) generation.

OpenAIGateway talks to any OpenAI-compatible chat completions endpoint (OpenAI or a
local LM Studio server). Failures surface as GatewayError; nothing retries here.
"""

import json
import logging
from typing import Any, Protocol, Sequence, TypeVar

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from agentic_rag.agent.conversation import ToolCall, Turn
from agentic_rag.core.config import (
    AGENT_MAX_TOKENS,
    HEALTH_CHECK_TIMEOUT,
    LLM_API_TIMEOUT,
    LLM_TEMPERATURE,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_LLM_MODEL,
)
from agentic_rag.core.errors import GatewayError, SchemaViolation, ServiceUnavailableError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMGateway(Protocol):
    async def generate(self, turns: Sequence[Turn]) -> Turn: ...

    async def generate_with_tools(self, turns: Sequence[Turn], tool_specs: list[dict[str, Any]]) -> Turn: ...

    async def generate_structured(self, turns: Sequence[Turn], schema: type[SchemaT]) -> SchemaT: ...


def _parse_tool_calls(raw_tool_calls: list[Any]) -> list[ToolCall]:
    """Convert SDK tool_call objects into ToolCalls. Bad argument JSON is a malformed response."""
    tool_calls: list[ToolCall] = []
    for i, tc in enumerate(raw_tool_calls):
        fn = getattr(tc, "function", None)
        if not fn:
            continue
        fname = getattr(fn, "name", None) or ""
        fargs = getattr(fn, "arguments", None) or "{}"
        try:
            args = json.loads(fargs) if isinstance(fargs, str) else dict(fargs)
        except json.JSONDecodeError as e:
            raise GatewayError(f"tool call {fname!r} has malformed arguments: {fargs!r}") from e
        if not isinstance(args, dict):
            raise GatewayError(f"tool call {fname!r} arguments are not an object: {fargs!r}")
        # Some local servers omit ids; call ids must still be unique within the batch
        fid = getattr(tc, "id", None) or f"call_{i}"
        tool_calls.append(ToolCall(name=fname, arguments=args, call_id=fid))
    return tool_calls


class OpenAIGateway:
    """LLMGateway backed by the openai SDK's async chat completions client."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = OPENAI_LLM_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = AGENT_MAX_TOKENS,
    ) -> None:
        self._client = client or AsyncOpenAI(
            api_key=OPENAI_API_KEY,
            base_url=OPENAI_BASE_URL,
            timeout=LLM_API_TIMEOUT,
            max_retries=0,
        )
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def _complete(self, turns: Sequence[Turn], **kwargs: Any) -> Any:
        messages = [t.to_openai() for t in turns]
        logger.info("[llm:openai] IN  model=%s messages=%d extra=%s", self.model, len(messages), sorted(kwargs))
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise GatewayError(f"chat completion failed: {e}") from e
        msg = response.choices[0].message if response.choices else None
        if msg is None:
            raise GatewayError("chat completion returned no choices")
        return msg

    async def generate(self, turns: Sequence[Turn]) -> Turn:
        msg = await self._complete(turns)
        out = (getattr(msg, "content", None) or "").strip()
        logger.info("[llm:generate] OUT content_len=%d", len(out))
        return Turn.assistant(out)

    async def generate_with_tools(self, turns: Sequence[Turn], tool_specs: list[dict[str, Any]]) -> Turn:
        msg = await self._complete(turns, tools=tool_specs)
        content = (getattr(msg, "content", None) or "").strip()
        tool_calls = _parse_tool_calls(getattr(msg, "tool_calls", None) or [])
        if tool_calls:
            logger.info("[llm:generate_with_tools] OUT tool_calls=%s", [t.name for t in tool_calls])
        else:
            logger.info("[llm:generate_with_tools] OUT content_len=%d (no tool calls)", len(content))
        return Turn.assistant(content, tool_calls)

    async def generate_structured(self, turns: Sequence[Turn], schema: type[SchemaT]) -> SchemaT:
        msg = await self._complete(
            turns,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema.__name__, "schema": schema.model_json_schema()},
            },
        )
        raw = (getattr(msg, "content", None) or "").strip()
        logger.info("[llm:generate_structured] OUT schema=%s raw=%r", schema.__name__, raw[:200])
        try:
            return schema.model_validate_json(raw)
        except ValidationError as e:
            raise SchemaViolation(f"{schema.__name__} validation failed for {raw[:200]!r}: {e}") from e


async def check_connection(base_url: str = OPENAI_BASE_URL, api_key: str = OPENAI_API_KEY) -> list[str]:
    """
    Check the OpenAI-compatible endpoint is reachable. Returns available model ids.
    Raises ServiceUnavailableError when the server cannot be reached or answers with an error.
    """
    url = base_url.rstrip("/") + "/models"
    headers = {"Authorization": f"Bearer {api_key}"}
    try:
        async with httpx.AsyncClient(timeout=HEALTH_CHECK_TIMEOUT) as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as e:
        raise ServiceUnavailableError(f"Cannot connect to LLM endpoint at {base_url}: {e}") from e
    if response.status_code != 200:
        raise ServiceUnavailableError(
            f"LLM endpoint {url} returned {response.status_code}: {response.text[:200]}"
        )
    models = [m.get("id", "") for m in (response.json().get("data") or []) if isinstance(m, dict)]
    logger.info("[llm:check_connection] OUT models=%s", models)
    return models
