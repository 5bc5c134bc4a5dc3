"""Schemas for the query endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """Request body for POST /query and POST /query/stream."""

    question: str = Field(..., min_length=1, description="User question for the agent.")
    system_prompt: str | None = Field(None, description="Optional system priming turn; kept in the log, not sent to the tool-calling step.")


class QueryResponse(BaseModel):
    """Response for POST /query."""

    answer: str = Field(..., description="Final answer from the agent.")
    status: str = Field(..., description="succeeded, failed, aborted or cancelled.")
    iterations: int = Field(0, description="Number of rewrite cycles the run went through.")
    turns: list[dict[str, Any]] = Field(default_factory=list, description="Full conversation log of the run.")


class LLMHealthResponse(BaseModel):
    ok: bool
    models: list[str] = Field(default_factory=list)
