"""
API routes: register endpoints; delegate to the orchestrator held in app.state.
"""

import json
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from agentic_rag.agent.graph import Orchestrator, RunStatus
from agentic_rag.agent.llm import check_connection
from agentic_rag.core.errors import ServiceUnavailableError
from agentic_rag.schemas.query import LLMHealthResponse, QueryRequest, QueryResponse

logger = logging.getLogger(__name__)
router = APIRouter()

_FAILURE_CODES = {
    RunStatus.FAILED: 500,
    RunStatus.ABORTED: 500,
    RunStatus.CANCELLED: 504,
}


def _get_orchestrator(request: Request) -> Orchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Agent is not initialized.")
    return orchestrator


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Agentic RAG backend running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


@router.get("/health/llm", response_model=LLMHealthResponse, tags=["system"], summary="Check the LLM endpoint")
async def health_llm() -> LLMHealthResponse:
    try:
        models = await check_connection()
    except ServiceUnavailableError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    return LLMHealthResponse(ok=True, models=models)


# --- Query ---

@router.post(
    "/query",
    response_model=QueryResponse,
    tags=["query"],
    summary="Query the RAG agent",
    description="Send a question; receive answer, status, iterations and the run's turns. "
    "400 on invalid input, 500 on failed or aborted runs, 504 when the run times out.",
)
async def post_query(body: QueryRequest, request: Request) -> QueryResponse:
    logger.info("[api:post_query] IN  question=%r", body.question)
    orchestrator = _get_orchestrator(request)
    try:
        result = await orchestrator.run(body.question, system_prompt=body.system_prompt)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if not result.ok:
        logger.warning("[api:post_query] run %s at node=%s: %s", result.status.value, result.failed_node, result.error)
        raise HTTPException(status_code=_FAILURE_CODES[result.status], detail=result.to_dict())
    logger.info("[api:post_query] OUT iterations=%d answer_len=%d", result.iterations, len(result.answer))
    return QueryResponse(
        answer=result.answer,
        status=result.status.value,
        iterations=result.iterations,
        turns=[t.to_dict() for t in result.turns],
    )


async def _sse_generator(orchestrator: Orchestrator, question: str, system_prompt: str | None):
    """Yield Server-Sent Events for each completed node, then done or error."""
    async for evt in orchestrator.run_stream(question, system_prompt=system_prompt):
        event_type = evt.pop("event", "")
        yield f"event: {event_type}\ndata: {json.dumps(evt)}\n\n"


@router.post(
    "/query/stream",
    tags=["query"],
    summary="Query the RAG agent (SSE stream)",
    description="Stream node outputs via Server-Sent Events. Events: node, done, error.",
)
async def post_query_stream(body: QueryRequest, request: Request) -> StreamingResponse:
    logger.info("[api:post_query_stream] IN  question=%r", body.question)
    orchestrator = _get_orchestrator(request)
    return StreamingResponse(
        _sse_generator(orchestrator, body.question, body.system_prompt),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
