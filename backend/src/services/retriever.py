"""Tiered retrieval: strict hybrid search, relaxed hybrid search, keyword fallback."""

from __future__ import annotations

import logging

from src.models.pipeline import StepResult
from src.models.rag import RetrievalResult
from src.services.errors import RetrievalError
from src.services.query_normalizer import NormalizedQuery
from src.services.rag_service import KnowledgeStore

logger = logging.getLogger(__name__)


class HybridRetriever:
    """Runs the tiers in order and stops at the first one that returns anything."""

    def __init__(
        self,
        store: KnowledgeStore,
        *,
        threshold: float = 0.05,
        relaxed_threshold: float = 0.0,
        match_count: int = 5,
        fallback_keywords: int = 3,
        per_keyword_limit: int = 2,
    ) -> None:
        self.store = store
        self.threshold = threshold
        self.relaxed_threshold = relaxed_threshold
        self.match_count = match_count
        self.fallback_keywords = fallback_keywords
        self.per_keyword_limit = per_keyword_limit

    async def _hybrid_tier(
        self,
        tier: int,
        embedding: list[float] | None,
        search_text: str,
        threshold: float,
    ) -> list[RetrievalResult] | None:
        """Results of one hybrid tier, or None when the store failed."""
        try:
            results = await self.store.hybrid_search(
                embedding, search_text, threshold, self.match_count
            )
        except RetrievalError as e:
            logger.warning("Tier %d failed (%s): %s", tier, e.code, e.message)
            return None
        logger.info(
            "Tier %d (threshold=%.2f) returned %d results", tier, threshold, len(results)
        )
        return results

    async def _keyword_tier(self, keywords: tuple[str, ...]) -> list[RetrievalResult] | None:
        merged: dict[str, RetrievalResult] = {}
        failures = 0
        attempted = keywords[: self.fallback_keywords]
        for keyword in attempted:
            try:
                hits = await self.store.keyword_search(keyword, self.per_keyword_limit)
            except RetrievalError as e:
                failures += 1
                logger.warning(
                    "Keyword fallback %r failed (%s): %s", keyword, e.code, e.message
                )
                continue
            logger.debug("Keyword fallback %r -> %d hits", keyword, len(hits))
            for hit in hits:
                merged.setdefault(hit.record_id, hit)

        if attempted and failures == len(attempted):
            return None
        logger.info(
            "Tier 3 (keywords=%s) returned %d results", list(attempted), len(merged)
        )
        return list(merged.values())

    async def retrieve(
        self,
        embedding: list[float] | None,
        query: NormalizedQuery,
    ) -> StepResult[list[RetrievalResult]]:
        """Tier 1, then Tier 2 only if Tier 1 is empty, then Tier 3 only if both are.

        A failed tier counts as empty. The step is an error only when every
        attempted tier failed.
        """
        attempts = 0
        failures = 0

        hybrid_tiers = ((1, self.threshold), (2, self.relaxed_threshold))
        for tier, threshold in hybrid_tiers:
            attempts += 1
            results = await self._hybrid_tier(
                tier, embedding, query.search_text, threshold
            )
            if results is None:
                failures += 1
            elif results:
                return StepResult.ok(results)

        attempts += 1
        results = await self._keyword_tier(query.keywords)
        if results is None:
            failures += 1
        elif results:
            return StepResult.ok(results)

        if failures == attempts:
            return StepResult.error("knowledge store unavailable", value=[])
        return StepResult.empty([], reason="no tier returned results")
