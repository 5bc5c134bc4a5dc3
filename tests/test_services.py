"""
Tests for ingestion, the in-memory vector store and the retriever tool.

Uses httpx.MockTransport for page fetches and a keyword embedder instead of an
embeddings API.
"""

import asyncio

import httpx
import pytest

from agentic_rag.services.ingestion_service import Chunk, FetchedDocument, fetch_documents, split_documents
from agentic_rag.services.retrieval_service import build_retriever_tool
from agentic_rag.services.vector_store import InMemoryVectorStore, cosine_similarity

VOCAB = ("reward", "hacking", "prompt", "attack", "agent")


class KeywordEmbedder:
    """One dimension per vocabulary word: the word's count in the text."""

    def __init__(self) -> None:
        self.batches: list[list[str]] = []

    async def embed(self, texts):
        self.batches.append(list(texts))
        return [[float(t.lower().count(w)) for w in VOCAB] for t in texts]


def _store_with(chunks: list[Chunk]) -> InMemoryVectorStore:
    store = InMemoryVectorStore(KeywordEmbedder())
    asyncio.run(store.add(chunks))
    return store


CHUNKS = [
    Chunk(text="Reward hacking happens when an agent exploits its reward.", source="a", chunk_id=0),
    Chunk(text="Prompt engineering steers the model.", source="b", chunk_id=0),
    Chunk(text="Adversarial attack examples against LLMs.", source="c", chunk_id=0),
]


class TestFetchDocuments:
    """Tests for fetch_documents()."""

    def test_fetches_and_skips_failures(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/ok":
                return httpx.Response(200, text="<html><body><article><p>Reward hacking.</p></article></body></html>")
            return httpx.Response(404, text="missing")

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await fetch_documents(["https://blog.test/ok", "https://blog.test/gone"], client=client)

        docs = asyncio.run(run())
        assert docs == [FetchedDocument(source="https://blog.test/ok", text="Reward hacking.")]

    def test_split_documents_numbers_chunks_per_source(self) -> None:
        doc = FetchedDocument(source="s", text=" ".join(f"Sentence {i} is here." for i in range(20)))
        chunks = split_documents([doc], chunk_size=60, overlap=0)
        assert len(chunks) > 1
        assert [c.chunk_id for c in chunks] == list(range(len(chunks)))
        assert {c.source for c in chunks} == {"s"}


class TestInMemoryVectorStore:
    """Tests for InMemoryVectorStore."""

    def test_search_ranks_by_similarity(self) -> None:
        store = _store_with(CHUNKS)
        hits = asyncio.run(store.search("reward hacking", k=2))
        assert [h.chunk.source for h in hits][0] == "a"
        assert len(hits) == 2
        assert hits[0].score >= hits[1].score

    def test_empty_query_or_store_returns_nothing(self) -> None:
        assert asyncio.run(_store_with(CHUNKS).search("  ")) == []
        assert asyncio.run(InMemoryVectorStore(KeywordEmbedder()).search("reward")) == []

    def test_scores_are_cosine_and_ties_keep_insertion_order(self) -> None:
        twins = [Chunk(text="reward agent", source=s, chunk_id=0) for s in ("first", "second")]
        store = _store_with([*twins, CHUNKS[1]])
        hits = asyncio.run(store.search("reward agent", k=3))
        assert [h.chunk.source for h in hits] == ["first", "second", "b"]
        assert hits[0].score == pytest.approx(1.0)
        assert hits[2].score == pytest.approx(0.0)
        assert all(isinstance(h.score, float) for h in hits)

    def test_incremental_add_grows_the_index(self) -> None:
        store = _store_with(CHUNKS[:1])
        asyncio.run(store.add(CHUNKS[1:]))
        assert len(store) == 3
        hits = asyncio.run(store.search("prompt", k=1))
        assert hits[0].chunk.source == "b"

    def test_cosine_similarity(self) -> None:
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 2.0])


class TestRetrieverTool:
    """Tests for build_retriever_tool()."""

    def test_returns_ranked_passages_as_text(self) -> None:
        tool = build_retriever_tool(_store_with(CHUNKS), k=1)
        text = asyncio.run(tool.invoke({"query": "reward hacking"}))
        assert text == CHUNKS[0].text

    def test_no_hits_message(self) -> None:
        tool = build_retriever_tool(InMemoryVectorStore(KeywordEmbedder()))
        assert asyncio.run(tool.invoke({"query": "anything"})) == "No matching passages found."

    def test_spec_uses_configured_name(self) -> None:
        spec = build_retriever_tool(InMemoryVectorStore(KeywordEmbedder())).spec()
        assert spec["function"]["name"] == "retrieve_blog_posts"
        assert spec["function"]["parameters"]["properties"]["query"]["type"] == "string"
