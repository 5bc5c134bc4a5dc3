"""
Unit tests for OpenAIGateway and check_connection.

Uses a fake chat-completions client and httpx.MockTransport; no network.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import patch

import httpx
import openai
import pytest

from agentic_rag.agent.conversation import Turn
from agentic_rag.agent.llm import OpenAIGateway, check_connection
from agentic_rag.agent.nodes import GradeDocuments
from agentic_rag.core.errors import GatewayError, SchemaViolation, ServiceUnavailableError


class FakeCompletions:
    def __init__(self, message=None, error: Exception | None = None) -> None:
        self.message = message
        self.error = error
        self.kwargs: dict = {}

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return SimpleNamespace(choices=[SimpleNamespace(message=self.message)] if self.message else [])


def _gateway(message=None, error=None) -> tuple[OpenAIGateway, FakeCompletions]:
    completions = FakeCompletions(message, error)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIGateway(client=client, model="test-model"), completions


def _tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


class TestOpenAIGateway:
    """Tests for OpenAIGateway."""

    def test_generate_returns_assistant_turn(self) -> None:
        gateway, completions = _gateway(SimpleNamespace(content="  hello  ", tool_calls=None))
        turn = asyncio.run(gateway.generate([Turn.user("hi")]))
        assert turn == Turn.assistant("hello")
        assert completions.kwargs["model"] == "test-model"
        assert completions.kwargs["messages"] == [{"role": "user", "content": "hi"}]

    def test_generate_with_tools_parses_calls(self) -> None:
        message = SimpleNamespace(
            content=None,
            tool_calls=[
                _tool_call("a", "retrieve_blog_posts", '{"query": "reward hacking"}'),
                _tool_call(None, "retrieve_blog_posts", '{"query": "prompting"}'),
            ],
        )
        gateway, completions = _gateway(message)
        turn = asyncio.run(gateway.generate_with_tools([Turn.user("q")], [{"type": "function"}]))
        assert [tc.call_id for tc in turn.tool_calls] == ["a", "call_1"]
        assert turn.tool_calls[0].arguments == {"query": "reward hacking"}
        assert completions.kwargs["tools"] == [{"type": "function"}]

    def test_malformed_tool_arguments_raise_gateway_error(self) -> None:
        gateway, _ = _gateway(SimpleNamespace(content="", tool_calls=[_tool_call("a", "x", "{not json")]))
        with pytest.raises(GatewayError):
            asyncio.run(gateway.generate_with_tools([Turn.user("q")], []))

    def test_structured_output_validates(self) -> None:
        gateway, completions = _gateway(SimpleNamespace(content='{"binary_score": "Yes"}', tool_calls=None))
        score = asyncio.run(gateway.generate_structured([Turn.user("q")], GradeDocuments))
        assert score.binary_score == "yes"
        assert completions.kwargs["response_format"]["json_schema"]["name"] == "GradeDocuments"

    def test_structured_output_schema_violation(self) -> None:
        gateway, _ = _gateway(SimpleNamespace(content='{"binary_score": "maybe"}', tool_calls=None))
        with pytest.raises(SchemaViolation):
            asyncio.run(gateway.generate_structured([Turn.user("q")], GradeDocuments))

    def test_non_json_structured_output_is_schema_violation(self) -> None:
        gateway, _ = _gateway(SimpleNamespace(content="yes", tool_calls=None))
        with pytest.raises(SchemaViolation):
            asyncio.run(gateway.generate_structured([Turn.user("q")], GradeDocuments))

    def test_transport_error_becomes_gateway_error(self) -> None:
        error = openai.APIConnectionError(request=httpx.Request("POST", "http://127.0.0.1:1234/v1/chat/completions"))
        gateway, _ = _gateway(error=error)
        with pytest.raises(GatewayError):
            asyncio.run(gateway.generate([Turn.user("q")]))

    def test_empty_choices_raise_gateway_error(self) -> None:
        gateway, _ = _gateway(None)
        with pytest.raises(GatewayError):
            asyncio.run(gateway.generate([Turn.user("q")]))


_RealAsyncClient = httpx.AsyncClient


def _client_with(handler):
    transport = httpx.MockTransport(handler)
    return lambda **kwargs: _RealAsyncClient(transport=transport, **kwargs)


class TestCheckConnection:
    """Tests for check_connection()."""

    def test_returns_model_ids(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/models"
            return httpx.Response(200, json={"data": [{"id": "granite-4.0-h-tiny"}, {"id": "nomic-embed"}]})

        with patch("agentic_rag.agent.llm.httpx.AsyncClient", _client_with(handler)):
            models = asyncio.run(check_connection("http://127.0.0.1:1234/v1"))
        assert models == ["granite-4.0-h-tiny", "nomic-embed"]

    def test_unreachable_raises_service_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with patch("agentic_rag.agent.llm.httpx.AsyncClient", _client_with(handler)):
            with pytest.raises(ServiceUnavailableError):
                asyncio.run(check_connection("http://127.0.0.1:1234/v1"))

    def test_error_status_raises_service_unavailable(self) -> None:
        with patch("agentic_rag.agent.llm.httpx.AsyncClient", _client_with(lambda r: httpx.Response(500, text="boom"))):
            with pytest.raises(ServiceUnavailableError):
                asyncio.run(check_connection("http://127.0.0.1:1234/v1"))
