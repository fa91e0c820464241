"""
FastAPI entry point for the preference recommender.
Provides REST API for item ingestion and preference-based recommendations.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.config import settings
from app.embedding.embedder import EmbeddingProvider
from app.embedding.vector_store import VectorStoreManager
from app.errors import RecommenderError, ValidationError
from app.generation.reranker import ReasoningProvider, Reranker
from app.ingestion.pipeline import IngestionPipeline
from app.models import Candidate, ItemRecord
from app.retrieval.retriever import MAX_ANSWERS, MAX_OFFSET, MAX_TOP_N, RecommendationRetriever

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
)
logger = logging.getLogger(__name__)

# ── Global State ─────────────────────────────────────────────────────
vector_store_manager: VectorStoreManager | None = None
ingestion_pipeline: IngestionPipeline | None = None
retriever: RecommendationRetriever | None = None
reranker: Reranker | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup, clean up on shutdown."""
    global vector_store_manager, ingestion_pipeline, retriever, reranker

    settings.ensure_directories()

    embedder = EmbeddingProvider()
    vector_store_manager = VectorStoreManager()
    ingestion_pipeline = IngestionPipeline(embedder, vector_store_manager)
    retriever = RecommendationRetriever(embedder, vector_store_manager)
    reranker = Reranker(ReasoningProvider())
    logger.info("🚀 Preference Recommender started")

    yield

    logger.info("👋 Preference Recommender shutting down")


# ── App ──────────────────────────────────────────────────────────────
app = FastAPI(
    title="Preference Recommender",
    description=(
        "Embeds an item catalog and recommends items whose embeddings are closest "
        "to a preference profile built from questionnaire answers."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error Handling ───────────────────────────────────────────────────
@app.exception_handler(RecommenderError)
async def recommender_error_handler(request: Request, exc: RecommenderError):
    status_code = 400 if isinstance(exc, ValidationError) else 500
    if status_code == 500:
        logger.error(f"{request.url.path} failed: {exc}", exc_info=exc)
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": {"kind": ValidationError.kind, "detail": problems}},
    )


# ── Request / Response Models ────────────────────────────────────────
class IngestRequest(BaseModel):
    items: list[ItemRecord] = Field(..., min_length=1)


class IngestResponse(BaseModel):
    inserted: int
    ids: list[str]


class RecommendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answers: list[str] = Field(..., min_length=1, max_length=MAX_ANSWERS)
    top_n: Optional[int] = Field(None, alias="topN", ge=1, le=MAX_TOP_N)
    offset: int = Field(0, ge=0, le=MAX_OFFSET)
    threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    rerank: bool = False


class RecommendResponse(BaseModel):
    results: list[Candidate]


# ── Endpoints ────────────────────────────────────────────────────────

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"ok": True}


@app.post("/ingest", response_model=IngestResponse)
async def ingest_items(request: IngestRequest):
    """
    Embed and upsert a batch of item records.

    Pipeline: Canonical Text → Embed (sequential) → Upsert (single batch)
    """
    result = await ingestion_pipeline.ingest(request.items)
    return IngestResponse(inserted=result.inserted, ids=result.ids)


@app.post("/recommend", response_model=RecommendResponse)
async def recommend(request: RecommendRequest):
    """
    Recommend items for a set of questionnaire answers.

    Pipeline: Profile → Embed → Thresholded Vector Search → Page → (optional) Rerank
    """
    result = await retriever.recommend(
        request.answers,
        top_n=request.top_n,
        offset=request.offset,
        threshold=request.threshold,
    )

    candidates = result.candidates
    if request.rerank:
        candidates = await reranker.rerank(result.profile, candidates)

    return RecommendResponse(results=candidates)


@app.get("/items/stats")
async def item_stats():
    """Get statistics about ingested items."""
    return await vector_store_manager.get_collection_stats()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.app_host, port=settings.app_port)
