"""
Embedding Model Wrapper
Provides a unified interface for creating embedding models and turning
canonical text into fixed-dimension vectors.
"""

import logging
from typing import Optional

from langchain_core.embeddings import Embeddings
from langchain_openai import OpenAIEmbeddings

from app.config import settings
from app.errors import ProviderError

logger = logging.getLogger(__name__)


def get_embedding_model(
    model: str | None = None,
    dimensions: int | None = None,
) -> OpenAIEmbeddings:
    """
    Create and return an OpenAI embedding model instance.

    Uses text-embedding-3-small by default for cost efficiency.
    The model supports dimensionality reduction (e.g., 768 instead of 1536),
    which keeps every stored vector at the configured dimension.

    Args:
        model: Embedding model name (defaults to settings.embedding_model).
        dimensions: Embedding dimensions (defaults to settings.embedding_dimensions).

    Returns:
        Configured OpenAIEmbeddings instance.
    """
    model = model or settings.embedding_model
    dimensions = dimensions or settings.embedding_dimensions

    logger.info(f"Initializing embedding model: {model} (dims={dimensions})")

    return OpenAIEmbeddings(
        model=model,
        dimensions=dimensions,
        openai_api_key=settings.openai_api_key,
    )


class EmbeddingProvider:
    """Maps one text to one vector of exactly ``dimensions`` floats."""

    def __init__(
        self,
        embedding_model: Optional[Embeddings] = None,
        dimensions: Optional[int] = None,
    ):
        """
        Args:
            embedding_model: Any LangChain embeddings instance (auto-created if None).
            dimensions: Expected vector length (defaults to settings.embedding_dimensions).
        """
        self.dimensions = dimensions or settings.embedding_dimensions
        self.embedding_model = embedding_model or get_embedding_model(dimensions=self.dimensions)

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Raises:
            ProviderError: If the provider call fails or returns a vector of
                the wrong length.
        """
        try:
            vector = await self.embedding_model.aembed_query(text)
        except Exception as e:
            logger.error(f"Embedding request failed: {e}")
            raise ProviderError(f"Embedding provider failed: {e}") from e

        if len(vector) != self.dimensions:
            raise ProviderError(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}"
            )
        return [float(v) for v in vector]
