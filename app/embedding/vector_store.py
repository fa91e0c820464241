"""
Vector Store Operations
ChromaDB-based vector store holding one embedding per item record, searched
by cosine distance.

Chroma metadata only holds scalar values, so list and mapping fields are
stored JSON-encoded and decoded again on the way out. The item description is
kept as the document text.
"""

import json
import logging
import threading
import uuid
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from langchain_chroma import Chroma
from langchain_core.documents import Document

from app.config import settings
from app.errors import StoreError
from app.models import Candidate, StorageRow, StoredRef

logger = logging.getLogger(__name__)


def _encode_metadata(row: StorageRow) -> dict:
    metadata = {
        "title": row.title,
        "categories": json.dumps(row.categories, ensure_ascii=False),
        "participants": json.dumps(row.participants, ensure_ascii=False),
        "attributes": json.dumps(row.attributes, sort_keys=True, ensure_ascii=False),
    }
    if row.year is not None:
        metadata["year"] = row.year
    return metadata


def _decode_candidate(doc: Document, score: float) -> Candidate:
    metadata = doc.metadata or {}
    return Candidate(
        id=doc.id,
        title=metadata.get("title", ""),
        year=metadata.get("year"),
        categories=json.loads(metadata.get("categories") or "[]"),
        description=doc.page_content or "",
        attributes=json.loads(metadata.get("attributes") or "{}"),
        score=score,
    )


class VectorStoreManager:
    """Manages ChromaDB vector store operations."""

    def __init__(
        self,
        persist_directory: Optional[str] = None,
        collection_name: Optional[str] = None,
    ):
        """
        Initialize the vector store manager.

        Args:
            persist_directory: Path for ChromaDB persistence.
            collection_name: Name of the ChromaDB collection.
        """
        self.persist_directory = persist_directory or settings.chroma_persist_dir
        self.collection_name = collection_name or settings.chroma_collection_name
        self._vector_store: Optional[Chroma] = None
        self._init_lock = threading.Lock()

    @property
    def vector_store(self) -> Chroma:
        """Lazy-initialize and return the ChromaDB vector store."""
        if self._vector_store is None:
            with self._init_lock:
                if self._vector_store is None:
                    # Embeddings are computed upstream, so no embedding function here.
                    self._vector_store = Chroma(
                        collection_name=self.collection_name,
                        persist_directory=self.persist_directory,
                        collection_metadata={"hnsw:space": "cosine"},
                    )
                    logger.info(
                        f"Initialized ChromaDB: collection='{self.collection_name}', "
                        f"persist_dir='{self.persist_directory}'"
                    )
        return self._vector_store

    def _upsert(self, rows: list[StorageRow]) -> list[StoredRef]:
        ids = [row.id or str(uuid.uuid4()) for row in rows]
        self.vector_store._collection.upsert(
            ids=ids,
            embeddings=[row.embedding for row in rows],
            metadatas=[_encode_metadata(row) for row in rows],
            documents=[row.description for row in rows],
        )
        return [StoredRef(identifier=i, title=row.title) for i, row in zip(ids, rows)]

    async def upsert(self, rows: list[StorageRow]) -> list[StoredRef]:
        """
        Insert or replace rows in a single batch.

        Rows without an identifier get a fresh UUID; rows with one replace
        whatever was stored under it, embedding included.

        Args:
            rows: Storage rows with computed embeddings.

        Returns:
            Identifier and title of every affected row.

        Raises:
            StoreError: If the batch could not be written.
        """
        if not rows:
            return []

        logger.info(f"Upserting {len(rows)} rows into '{self.collection_name}'")
        try:
            refs = await run_in_threadpool(self._upsert, rows)
        except Exception as e:
            logger.error(f"Upsert failed: {e}")
            raise StoreError(f"Vector store upsert failed: {e}") from e

        logger.info(f"Successfully upserted {len(refs)} rows")
        return refs

    def _search(self, query_vector: list[float], limit: int) -> list[tuple[Document, float]]:
        if self.vector_store._collection.count() == 0:
            return []
        return self.vector_store.similarity_search_by_vector_with_relevance_scores(
            embedding=query_vector, k=limit
        )

    async def similarity_search(
        self,
        query_vector: list[float],
        limit: int,
        sim_threshold: float,
    ) -> list[Candidate]:
        """
        Return up to ``limit`` nearest items with similarity >= ``sim_threshold``.

        Chroma reports cosine distance; similarity is ``1 - distance``. Results
        come back nearest first, so the output is ordered by descending score.

        Raises:
            StoreError: If the query fails.
        """
        try:
            results = await run_in_threadpool(self._search, query_vector, limit)
            candidates = [
                _decode_candidate(doc, min(1.0, 1.0 - float(distance))) for doc, distance in results
            ]
        except Exception as e:
            logger.error(f"Similarity search failed: {e}")
            raise StoreError(f"Vector store query failed: {e}") from e

        matches = [c for c in candidates if c.score >= sim_threshold]
        logger.info(
            f"Similarity search (limit={limit}, threshold={sim_threshold}) "
            f"returned {len(matches)} of {len(candidates)} results"
        )
        return matches

    async def get_collection_stats(self) -> dict:
        """
        Get statistics about the current collection.

        Returns:
            Dictionary with collection name and item count.
        """
        try:
            count = await run_in_threadpool(lambda: self.vector_store._collection.count())
        except Exception as e:
            raise StoreError(f"Vector store unavailable: {e}") from e
        return {
            "collection_name": self.collection_name,
            "item_count": count,
        }
