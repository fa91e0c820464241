"""
Ingestion Pipeline
Item records → canonical text → embedding → single upsert batch.
"""

import logging
import time

from app.embedding.embedder import EmbeddingProvider
from app.embedding.vector_store import VectorStoreManager
from app.errors import ValidationError
from app.ingestion.canonical import item_to_text
from app.models import IngestResult, ItemRecord, StorageRow

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Embeds item records and writes them to the vector store."""

    def __init__(self, embedder: EmbeddingProvider, vector_store: VectorStoreManager):
        self.embedder = embedder
        self.vector_store = vector_store

    async def ingest(self, records: list[ItemRecord]) -> IngestResult:
        """
        Embed and upsert a batch of item records.

        Records are embedded one at a time in input order. Nothing is written
        until every record has an embedding, so a provider failure leaves the
        store untouched.

        Args:
            records: At least one validated item record.

        Returns:
            Number of affected rows and their identifiers, in store order.

        Raises:
            ValidationError: If no records were given.
            ProviderError: If any embedding request fails.
            StoreError: If the upsert fails.
        """
        if not records:
            raise ValidationError("at least one item record is required")

        start = time.perf_counter()
        rows: list[StorageRow] = []
        for record in records:
            vector = await self.embedder.embed(item_to_text(record))
            rows.append(StorageRow(**record.model_dump(), embedding=vector))

        refs = await self.vector_store.upsert(rows)
        ids = [ref.identifier for ref in refs]

        logger.info(
            f"Ingested {len(ids)} items in {time.perf_counter() - start:.2f}s"
        )
        return IngestResult(inserted=len(ids), ids=ids)
