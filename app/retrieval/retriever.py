"""
Recommendation Retriever
=========================
Pipeline:
    Answers → Preference Profile → Embedding → Thresholded Vector Search → Page

The store has no offset parameter, so it is asked for ``top_n + offset``
leading results and the window is sliced here. A window past the end of the
matches is empty, not an error.
"""

import logging
from typing import Optional, Sequence

from app.config import settings
from app.embedding.embedder import EmbeddingProvider
from app.embedding.vector_store import VectorStoreManager
from app.errors import ValidationError
from app.ingestion.canonical import profile_to_text
from app.models import RetrievalResult

logger = logging.getLogger(__name__)

MAX_ANSWERS = 10
MAX_TOP_N = 50
MAX_OFFSET = 500


def _check_params(answers: Sequence[str], top_n: int, offset: int, threshold: float) -> None:
    problems: list[str] = []
    if not 1 <= len(answers) <= MAX_ANSWERS:
        problems.append(f"answers must contain 1..{MAX_ANSWERS} entries")
    if not 1 <= top_n <= MAX_TOP_N:
        problems.append(f"topN must be within 1..{MAX_TOP_N}")
    if not 0 <= offset <= MAX_OFFSET:
        problems.append(f"offset must be within 0..{MAX_OFFSET}")
    if not 0.0 <= threshold <= 1.0:
        problems.append("threshold must be within 0..1")
    if problems:
        raise ValidationError(problems)


class RecommendationRetriever:
    """Turns questionnaire answers into a similarity-ranked page of items."""

    def __init__(self, embedder: EmbeddingProvider, vector_store: VectorStoreManager):
        self.embedder = embedder
        self.vector_store = vector_store
        logger.info("RecommendationRetriever initialized")

    async def recommend(
        self,
        answers: Sequence[str],
        top_n: Optional[int] = None,
        offset: int = 0,
        threshold: Optional[float] = None,
    ) -> RetrievalResult:
        """
        Retrieve one page of candidates for a set of answers.

        Args:
            answers: 1..MAX_ANSWERS free-text answers, in questionnaire order.
            top_n: Page size (defaults to settings.top_n).
            offset: Number of leading matches to skip.
            threshold: Minimum cosine similarity (defaults to settings.sim_threshold).

        Returns:
            The profile text and the candidates, highest score first.

        Raises:
            ValidationError: If any parameter is out of range.
            ProviderError: If the profile could not be embedded.
            StoreError: If the similarity query fails.
        """
        top_n = settings.top_n if top_n is None else top_n
        threshold = settings.sim_threshold if threshold is None else threshold
        _check_params(answers, top_n, offset, threshold)

        profile = profile_to_text(answers)
        query_vector = await self.embedder.embed(profile)

        matches = await self.vector_store.similarity_search(
            query_vector, limit=top_n + offset, sim_threshold=threshold
        )
        page = matches[offset:offset + top_n]

        logger.info(
            f"Retrieved {len(page)} candidates (topN={top_n}, offset={offset}, "
            f"threshold={threshold}) from {len(matches)} matches"
        )
        return RetrievalResult(profile=profile, candidates=page)
