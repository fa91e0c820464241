"""
Shared fixtures: in-memory stand-ins for the embedding model, the vector
store and the chat model.
"""

import math
import uuid

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from app.embedding.embedder import EmbeddingProvider
from app.generation.reranker import ReasoningProvider, Reranker
from app.ingestion.pipeline import IngestionPipeline
from app.models import Candidate, StorageRow, StoredRef
from app.retrieval.retriever import RecommendationRetriever

KEYWORDS = ["sci-fi", "romance", "comedy", "horror"]
DIM = len(KEYWORDS) + 1


class KeywordEmbeddings(Embeddings):
    """One axis per keyword plus a small constant axis so no vector is zero."""

    def embed_query(self, text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(k)) for k in KEYWORDS] + [0.1]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(t) for t in texts]


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorStore:
    """Exact cosine search over a dict, with the same contract as VectorStoreManager."""

    def __init__(self):
        self.rows: dict[str, StorageRow] = {}
        self.upsert_calls = 0
        self.search_calls: list[dict] = []

    async def upsert(self, rows: list[StorageRow]) -> list[StoredRef]:
        self.upsert_calls += 1
        refs = []
        for row in rows:
            identifier = row.id or str(uuid.uuid4())
            self.rows[identifier] = row.model_copy(update={"id": identifier})
            refs.append(StoredRef(identifier=identifier, title=row.title))
        return refs

    async def similarity_search(self, query_vector, limit, sim_threshold):
        self.search_calls.append({"limit": limit, "sim_threshold": sim_threshold})
        scored = [
            Candidate(
                id=identifier,
                title=row.title,
                year=row.year,
                categories=row.categories,
                description=row.description,
                attributes=row.attributes,
                score=cosine(query_vector, row.embedding),
            )
            for identifier, row in self.rows.items()
        ]
        scored = [c for c in scored if c.score >= sim_threshold]
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored[:limit]

    async def get_collection_stats(self) -> dict:
        return {"collection_name": "memory", "item_count": len(self.rows)}

    def add(self, title: str, embedding: list[float], **fields) -> str:
        identifier = fields.pop("id", None) or str(uuid.uuid4())
        self.rows[identifier] = StorageRow(id=identifier, title=title, embedding=embedding, **fields)
        return identifier


@pytest.fixture
def embedder():
    return EmbeddingProvider(embedding_model=KeywordEmbeddings(), dimensions=DIM)


@pytest.fixture
def store():
    return InMemoryVectorStore()


@pytest.fixture
def ingestion(embedder, store):
    return IngestionPipeline(embedder, store)


@pytest.fixture
def retriever(embedder, store):
    return RecommendationRetriever(embedder, store)


@pytest.fixture
def make_reranker():
    """Build a Reranker whose chat model replies with the given texts in turn."""

    def _make(*responses: str) -> Reranker:
        return Reranker(ReasoningProvider(llm=FakeListChatModel(responses=list(responses))))

    return _make
