"""
Rerank-Merge
Asks a chat model to explain a similarity-ranked short-list and attaches its
reasons to the candidates.

The model's ordering is never used: candidates keep the order and scores that
retrieval produced, and only ``why`` is filled in where a title matches.
"""

import json
import logging
import re
from typing import Any, Optional

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from app.config import settings
from app.errors import ParseError, ProviderError
from app.generation.prompts import RERANK_PROMPT
from app.models import Candidate, RankedReason

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


class ReasoningProvider:
    """Sends a prompt to a chat model and returns its text completion."""

    def __init__(
        self,
        llm: Optional[BaseChatModel] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ):
        """
        Args:
            llm: Chat model instance (a ChatOpenAI is created if None).
            model: LLM model name (defaults to settings.llm_model).
            temperature: Generation temperature (defaults to settings.llm_temperature).
        """
        self.llm = llm or ChatOpenAI(
            model=model or settings.llm_model,
            temperature=temperature if temperature is not None else settings.llm_temperature,
            openai_api_key=settings.openai_api_key,
        )
        logger.info(f"ReasoningProvider initialized with model: {model or settings.llm_model}")

    async def complete(self, prompt: str) -> str:
        try:
            response = await self.llm.ainvoke(prompt)
        except Exception as e:
            logger.error(f"Reasoning request failed: {e}")
            raise ProviderError(f"Reasoning provider failed: {e}") from e

        content = response.content
        if isinstance(content, str):
            return content
        # Content blocks
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )


def build_candidate_listing(candidates: list[Candidate]) -> str:
    """Numbered one-line-per-candidate listing, in retrieval order."""
    return "\n".join(
        f"{i}. {c.title} ({c.year}) | categories={', '.join(c.categories)}"
        for i, c in enumerate(candidates, 1)
    )


def build_rerank_prompt(profile: str, candidates: list[Candidate]) -> str:
    return RERANK_PROMPT.format(
        profile=profile,
        candidates=build_candidate_listing(candidates),
    )


def parse_ranked_reasons(text: Optional[str]) -> list[RankedReason]:
    """
    Parse a reasoning response into ``{title, reason}`` entries.

    A Markdown code fence around the JSON is tolerated. Entries that are not
    objects or have no string title are skipped.

    Raises:
        ParseError: If the text is not a JSON array.
    """
    text = (text or "").strip() or "[]"
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"response is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ParseError(f"expected a JSON array, got {type(data).__name__}")

    reasons: list[RankedReason] = []
    for entry in data:
        if not isinstance(entry, dict) or not isinstance(entry.get("title"), str):
            continue
        reason = entry.get("reason")
        reasons.append(
            RankedReason(
                title=entry["title"],
                reason=reason if reason is None or isinstance(reason, str) else str(reason),
            )
        )
    return reasons


def safe_parse_ranked_reasons(text: Optional[str]) -> list[RankedReason]:
    """Like ``parse_ranked_reasons`` but degrades to an empty list."""
    try:
        return parse_ranked_reasons(text)
    except ParseError as e:
        logger.warning(f"Ignoring unparsable rerank response: {e}")
        return []


def merge_reasons(
    candidates: list[Candidate],
    reasons: list[RankedReason],
) -> list[Candidate]:
    """
    Attach reasons to candidates by case-insensitive title match.

    The first matching entry wins. Order and scores are untouched; candidates
    without a match keep ``why=None``.
    """
    merged: list[Candidate] = []
    for candidate in candidates:
        title = candidate.title.lower()
        found = next((r for r in reasons if r.title.lower() == title), None)
        merged.append(
            candidate.model_copy(update={"why": found.reason if found else None})
        )
    return merged


class Reranker:
    """Annotates a page of candidates with model-written reasons."""

    def __init__(self, reasoner: ReasoningProvider):
        self.reasoner = reasoner

    async def rerank(self, profile: str, candidates: list[Candidate]) -> list[Candidate]:
        """
        Explain the candidates against the profile.

        Raises:
            ProviderError: If the reasoning call itself fails. A malformed
                response never raises.
        """
        if not candidates:
            return []

        prompt = build_rerank_prompt(profile, candidates)
        text = await self.reasoner.complete(prompt)
        reasons = safe_parse_ranked_reasons(text)

        merged = merge_reasons(candidates, reasons)
        matched = sum(1 for c in merged if c.why is not None)
        logger.info(f"Rerank matched {matched}/{len(merged)} candidates")
        return merged
