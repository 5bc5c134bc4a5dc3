"""
Integration tests for the HTTP API.

The orchestrator is built with a scripted gateway and installed on app.state, so
tests need neither an LLM endpoint nor document ingestion.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from agentic_rag.agent.graph import Orchestrator
from agentic_rag.core.errors import GatewayError, ServiceUnavailableError
from agentic_rag.main import app

from conftest import QUESTION, ScriptedGateway, make_registry, retrieve_call


@pytest.fixture
def install():
    """Install an orchestrator for the given gateway; removed after the test."""

    def _install(gateway: ScriptedGateway, **kwargs) -> TestClient:
        app.state.orchestrator = Orchestrator(gateway, make_registry(), **kwargs)
        return TestClient(app)

    yield _install
    app.state.orchestrator = None


def test_health() -> None:
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_health_llm_lists_models() -> None:
    with patch("agentic_rag.api.routes.check_connection", AsyncMock(return_value=["granite-4.0-h-tiny"])):
        response = TestClient(app).get("/health/llm")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "models": ["granite-4.0-h-tiny"]}


def test_health_llm_unreachable_returns_503() -> None:
    error = ServiceUnavailableError("Cannot connect to LLM endpoint")
    with patch("agentic_rag.api.routes.check_connection", AsyncMock(side_effect=error)):
        response = TestClient(app).get("/health/llm")
    assert response.status_code == 503


def test_query_without_orchestrator_returns_503() -> None:
    app.state.orchestrator = None
    response = TestClient(app).post("/query", json={"question": QUESTION})
    assert response.status_code == 503


def test_query_returns_answer(install) -> None:
    client = install(ScriptedGateway(tool_replies=[retrieve_call("1")], replies=["summary", "Two types."], grades=["yes"]))
    response = client.post("/query", json={"question": QUESTION})
    assert response.status_code == 200
    data = response.json()
    assert data["answer"] == "Two types."
    assert data["status"] == "succeeded"
    assert data["iterations"] == 0
    assert [t["role"] for t in data["turns"]] == ["user", "assistant", "tool", "assistant", "assistant"]


def test_query_empty_question_returns_422(install) -> None:
    client = install(ScriptedGateway())
    assert client.post("/query", json={"question": ""}).status_code == 422


def test_query_blank_question_returns_400(install) -> None:
    client = install(ScriptedGateway())
    assert client.post("/query", json={"question": "   "}).status_code == 400


def test_query_gateway_failure_returns_500_with_turns(install) -> None:
    client = install(ScriptedGateway(tool_replies=[GatewayError("model crashed")]))
    response = client.post("/query", json={"question": QUESTION})
    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["status"] == "failed"
    assert detail["failed_node"] == "query_or_respond"
    assert detail["turns"] == [{"role": "user", "content": QUESTION}]


def test_query_stream_emits_node_and_done_events(install) -> None:
    client = install(ScriptedGateway(tool_replies=["4"]))
    response = client.post("/query/stream", json={"question": "What is 2+2?"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    blocks = [b for b in response.text.split("\n\n") if b.strip()]
    events = [(b.split("\n")[0].removeprefix("event: "), json.loads(b.split("\n")[1].removeprefix("data: "))) for b in blocks]
    assert [name for name, _ in events] == ["node", "done"]
    node = events[0][1]
    assert set(node) == {"event", "node", "role", "content", "tool_calls", "turns", "verdict", "iteration"}
    assert node["node"] == "query_or_respond"
    assert (node["role"], node["content"], node["tool_calls"]) == ("assistant", "4", [])
    assert node["turns"] == [{"role": "assistant", "content": "4"}]
    assert node["verdict"] is None and node["iteration"] == 0
    assert events[1][1]["answer"] == "4"
