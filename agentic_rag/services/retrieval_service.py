"""
Retrieval: wraps vector search as the text-returning retriever tool the agent calls.
"""

import logging

from pydantic import BaseModel, Field

from agentic_rag.agent.tools import Tool
from agentic_rag.core.config import RETRIEVER_TOOL_DESCRIPTION, RETRIEVER_TOOL_NAME, SEARCH_TOP_K
from agentic_rag.services.vector_store import InMemoryVectorStore, ScoredChunk

logger = logging.getLogger(__name__)


class RetrieveArgs(BaseModel):
    query: str = Field(..., min_length=1, description="Search query (keywords or natural language question)")


def format_passages(hits: list[ScoredChunk]) -> str:
    """Ranked passages joined into one text block, best first."""
    return "\n\n".join(h.chunk.text for h in hits)


def build_retriever_tool(
    store: InMemoryVectorStore,
    k: int = SEARCH_TOP_K,
    name: str = RETRIEVER_TOOL_NAME,
    description: str = RETRIEVER_TOOL_DESCRIPTION,
) -> Tool:
    async def retrieve(query: str) -> str:
        hits = await store.search(query, k=k)
        if not hits:
            logger.info("[retrieval:%s] no hits for query=%r", name, query)
            return "No matching passages found."
        return format_passages(hits)

    return Tool(name=name, description=description, args_model=RetrieveArgs, func=retrieve)
