"""
Vector store: in-memory chunk index with embeddings from an OpenAI-compatible API.

Responsibility: Embed chunks in batches, keep them in memory, rank by cosine
similarity for a query.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

import numpy as np
import openai
from openai import AsyncOpenAI

from agentic_rag.core.config import (
    EMBED_BATCH_SIZE,
    LLM_API_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_EMBED_MODEL,
    SEARCH_TOP_K,
)
from agentic_rag.core.errors import ServiceUnavailableError
from agentic_rag.services.ingestion_service import Chunk

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed(self, texts: Sequence[str]) -> list[list[float]]: ...


class OpenAIEmbedder:
    """Batch embeddings through the openai SDK (works against LM Studio too)."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = OPENAI_EMBED_MODEL,
        batch_size: int = EMBED_BATCH_SIZE,
    ) -> None:
        self._client = client or AsyncOpenAI(
            api_key=OPENAI_API_KEY,
            base_url=OPENAI_BASE_URL,
            timeout=LLM_API_TIMEOUT,
            max_retries=0,
        )
        self.model = model
        self.batch_size = batch_size

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors: list[list[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = list(texts[i : i + self.batch_size])
            try:
                response = await self._client.embeddings.create(model=self.model, input=batch)
            except openai.OpenAIError as e:
                raise ServiceUnavailableError(f"Embedding request failed ({self.model}): {e}") from e
            vectors.extend(item.embedding for item in sorted(response.data, key=lambda d: d.index))
        logger.info("[vector_store:embed] OUT texts=%d vectors=%d", len(texts), len(vectors))
        return vectors


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"dimension mismatch: {va.shape[0]} != {vb.shape[0]}")
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    return float(np.dot(va, vb) / norm) if norm else 0.0


@dataclass(frozen=True)
class ScoredChunk:
    chunk: Chunk
    score: float


class InMemoryVectorStore:
    """Chunks held in process memory, vectors as one row-normalized numpy matrix."""

    def __init__(self, embedder: Embedder) -> None:
        self._embedder = embedder
        self._chunks: list[Chunk] = []
        self._matrix: np.ndarray | None = None

    @staticmethod
    def _normalize(vectors: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
        return np.divide(vectors, norms, out=np.zeros_like(vectors), where=norms > 0)

    async def add(self, chunks: Iterable[Chunk]) -> int:
        chunks = list(chunks)
        if not chunks:
            return 0
        vectors = await self._embedder.embed([c.text for c in chunks])
        if len(vectors) != len(chunks):
            raise ServiceUnavailableError(f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks")
        rows = self._normalize(np.asarray(vectors, dtype=np.float64))
        if self._matrix is not None and rows.shape[1] != self._matrix.shape[1]:
            raise ValueError(f"dimension mismatch: {rows.shape[1]} != {self._matrix.shape[1]}")
        self._matrix = rows if self._matrix is None else np.vstack([self._matrix, rows])
        self._chunks.extend(chunks)
        logger.info("[vector_store:add] OUT added=%d total=%d dim=%d", len(chunks), len(self._chunks), rows.shape[1])
        return len(chunks)

    async def search(self, query: str, k: int = SEARCH_TOP_K) -> list[ScoredChunk]:
        """Top-k chunks by cosine similarity to the query, best first."""
        logger.info("[vector_store:search] IN  query=%r k=%d", query, k)
        if not query or not query.strip() or self._matrix is None or k <= 0:
            return []
        (query_vec,) = await self._embedder.embed([query.strip()])
        q = self._normalize(np.asarray(query_vec, dtype=np.float64))
        if q.shape[0] != self._matrix.shape[1]:
            raise ValueError(f"dimension mismatch: {q.shape[0]} != {self._matrix.shape[1]}")
        scores = self._matrix @ q
        order = np.argsort(-scores, kind="stable")[:k]
        top = [ScoredChunk(chunk=self._chunks[i], score=float(scores[i])) for i in order]
        logger.info(
            "[vector_store:search] OUT hits=%d sources=%s scores=%s",
            len(top),
            [s.chunk.source for s in top],
            [round(s.score, 4) for s in top],
        )
        return top

    def __len__(self) -> int:
        return len(self._chunks)
