"""
Document ingestion: fetch web pages and split them into chunks for the vector store.

Responsibility: Download sources concurrently, extract and clean text, chunk it.
Called at startup by the API and the CLI; no FastAPI here.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable

import httpx

from agentic_rag.core.config import CHUNK_OVERLAP, CHUNK_SIZE, FETCH_TIMEOUT
from agentic_rag.services.text_processing import chunk_text, clean_text, html_to_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Chunk:
    """One indexable piece of a source document."""

    text: str
    source: str
    chunk_id: int


@dataclass
class FetchedDocument:
    source: str
    text: str


async def _fetch_one(client: httpx.AsyncClient, url: str) -> FetchedDocument | None:
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("[ingestion:fetch] skipping url=%s: %s", url, e)
        return None
    text = clean_text(html_to_text(response.text))
    logger.info("[ingestion:fetch] OUT url=%s text_len=%d", url, len(text))
    return FetchedDocument(source=url, text=text)


async def fetch_documents(urls: Iterable[str], client: httpx.AsyncClient | None = None) -> list[FetchedDocument]:
    """Fetch all URLs concurrently. Unreachable URLs are logged and skipped."""
    urls = list(urls)
    logger.info("[ingestion:fetch_documents] IN  urls=%d", len(urls))
    if client is None:
        async with httpx.AsyncClient(timeout=FETCH_TIMEOUT, follow_redirects=True) as own_client:
            results = await asyncio.gather(*(_fetch_one(own_client, u) for u in urls))
    else:
        results = await asyncio.gather(*(_fetch_one(client, u) for u in urls))
    docs = [d for d in results if d is not None and d.text]
    logger.info("[ingestion:fetch_documents] OUT documents=%d", len(docs))
    return docs


def split_documents(
    docs: Iterable[FetchedDocument],
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> list[Chunk]:
    chunks: list[Chunk] = []
    for doc in docs:
        pieces = chunk_text(doc.text, chunk_size=chunk_size, overlap=overlap)
        chunks.extend(Chunk(text=p, source=doc.source, chunk_id=i) for i, p in enumerate(pieces))
    logger.info("[ingestion:split_documents] OUT chunks=%d", len(chunks))
    return chunks


async def load_and_split(
    urls: Iterable[str],
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
    client: httpx.AsyncClient | None = None,
) -> list[Chunk]:
    """Pipeline: fetch → extract/clean → chunk."""
    docs = await fetch_documents(urls, client=client)
    return split_documents(docs, chunk_size=chunk_size, overlap=overlap)
