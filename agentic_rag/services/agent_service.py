"""
Agent wiring: ingest the knowledge source and assemble an Orchestrator.

Responsibility: Compose ingestion, vector store, retriever tool and LLM gateway.
Called by the API lifespan and the CLI; no HTTP here.
"""

import logging
from typing import Iterable

from agentic_rag.agent.graph import Orchestrator
from agentic_rag.agent.llm import LLMGateway, OpenAIGateway
from agentic_rag.agent.tools import ToolRegistry
from agentic_rag.core.config import (
    CHUNK_OVERLAP,
    CHUNK_SIZE,
    MAX_REWRITES,
    RUN_TIMEOUT_SECONDS,
    SOURCE_URLS,
)
from agentic_rag.services.ingestion_service import load_and_split
from agentic_rag.services.retrieval_service import build_retriever_tool
from agentic_rag.services.vector_store import Embedder, InMemoryVectorStore, OpenAIEmbedder

logger = logging.getLogger(__name__)


async def build_vector_store(
    urls: Iterable[str] = SOURCE_URLS,
    embedder: Embedder | None = None,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> InMemoryVectorStore:
    chunks = await load_and_split(urls, chunk_size=chunk_size, overlap=overlap)
    store = InMemoryVectorStore(embedder or OpenAIEmbedder())
    await store.add(chunks)
    return store


async def build_orchestrator(
    urls: Iterable[str] = SOURCE_URLS,
    gateway: LLMGateway | None = None,
    embedder: Embedder | None = None,
    max_rewrites: int = MAX_REWRITES,
    timeout: float | None = RUN_TIMEOUT_SECONDS,
) -> Orchestrator:
    """Ingest urls into a fresh vector store and return an Orchestrator using it as the retriever tool."""
    urls = list(urls)
    logger.info("[agent_service:build_orchestrator] IN  urls=%d max_rewrites=%d", len(urls), max_rewrites)
    store = await build_vector_store(urls, embedder=embedder)
    registry = ToolRegistry([build_retriever_tool(store)])
    orchestrator = Orchestrator(
        gateway or OpenAIGateway(),
        registry,
        max_rewrites=max_rewrites,
        timeout=timeout,
    )
    logger.info("[agent_service:build_orchestrator] OUT chunks=%d tools=%s", len(store), registry.names)
    return orchestrator
