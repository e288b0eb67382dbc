"""Unit tests for the tiered HybridRetriever."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from src.models.pipeline import StepStatus
from src.models.rag import RecordSource, RetrievalResult
from src.services.errors import RetrievalError
from src.services.query_normalizer import normalize_query
from src.services.rag_service import KnowledgeStore
from src.services.retriever import HybridRetriever

VECTOR = [1.0, 0.0, 0.0, 0.0]
ZERO = [0.0, 0.0, 0.0, 0.0]


def _hit(record_id: str, content: str = "content") -> RetrievalResult:
    return RetrievalResult(
        record_id=record_id, source=RecordSource.PRODUCT, content=content, score=0.5
    )


def _mock_store(
    hybrid: list | None = None, keyword: list | None = None
) -> MagicMock:
    store = MagicMock()
    store.hybrid_search = AsyncMock(side_effect=hybrid or [[], []])
    store.keyword_search = AsyncMock(side_effect=keyword or [[], [], []])
    return store


QUERY = normalize_query("amoxicillin regimen abscess child")


class TestTierOrder:
    async def test_tier_one_hit_stops(self) -> None:
        store = _mock_store(hybrid=[[_hit("a")]])
        result = await HybridRetriever(store).retrieve(VECTOR, QUERY)

        assert result.status is StepStatus.OK
        assert [r.record_id for r in result.value] == ["a"]
        store.hybrid_search.assert_awaited_once_with(VECTOR, QUERY.search_text, 0.05, 5)
        store.keyword_search.assert_not_awaited()

    async def test_tier_two_only_after_empty_tier_one(self) -> None:
        store = _mock_store(hybrid=[[], [_hit("b")]])
        result = await HybridRetriever(store).retrieve(VECTOR, QUERY)

        assert [r.record_id for r in result.value] == ["b"]
        assert store.hybrid_search.await_count == 2
        second = store.hybrid_search.await_args_list[1]
        assert second.args == (VECTOR, QUERY.search_text, 0.0, 5)
        store.keyword_search.assert_not_awaited()

    async def test_tier_three_after_both_empty(self) -> None:
        store = _mock_store(
            keyword=[[_hit("x"), _hit("y")], [_hit("y"), _hit("z")], []]
        )
        retriever = HybridRetriever(store, fallback_keywords=3, per_keyword_limit=2)
        result = await retriever.retrieve(ZERO, QUERY)

        assert result.status is StepStatus.OK
        assert [r.record_id for r in result.value] == ["x", "y", "z"]
        assert store.hybrid_search.await_count == 2
        keywords = [c.args for c in store.keyword_search.await_args_list]
        assert keywords == [("amoxicillin", 2), ("regimen", 2), ("abscess", 2)]

    async def test_everything_empty(self) -> None:
        store = _mock_store()
        result = await HybridRetriever(store).retrieve(ZERO, QUERY)
        assert result.status is StepStatus.EMPTY
        assert result.value == []


class TestStoreFailures:
    async def test_failed_tier_counts_as_empty(self) -> None:
        store = _mock_store(
            hybrid=[RetrievalError("STORE_UNAVAILABLE", "down"), [_hit("b")]]
        )
        result = await HybridRetriever(store).retrieve(VECTOR, QUERY)
        assert result.status is StepStatus.OK
        assert [r.record_id for r in result.value] == ["b"]

    async def test_keyword_failure_skips_that_keyword(self) -> None:
        store = _mock_store(
            keyword=[RetrievalError("STORE_UNAVAILABLE", "down"), [_hit("y")], []]
        )
        result = await HybridRetriever(store).retrieve(ZERO, QUERY)
        assert [r.record_id for r in result.value] == ["y"]

    async def test_all_tiers_failing_is_an_error(self) -> None:
        down = RetrievalError("STORE_UNAVAILABLE", "down")
        store = _mock_store(hybrid=[down, down], keyword=[down, down, down])
        result = await HybridRetriever(store).retrieve(VECTOR, QUERY)
        assert result.status is StepStatus.ERROR
        assert result.value == []


class TestAgainstQdrant:
    async def test_product_name_found_in_tier_one(
        self, knowledge_store: KnowledgeStore
    ) -> None:
        query = normalize_query("What ppm concentration does Dentaid Xeros Spray contain?")
        result = await HybridRetriever(knowledge_store).retrieve(ZERO, query)
        assert [r.record_id for r in result.value] == ["3012345"]

    async def test_keyword_fallback_finds_rule(
        self, knowledge_store: KnowledgeStore
    ) -> None:
        # "regimen" is in no record, so the all-terms lexical tiers miss
        query = normalize_query("amoxicillin regimen")
        result = await HybridRetriever(knowledge_store).retrieve(ZERO, query)
        assert [r.record_id for r in result.value] == ["R3"]

    async def test_no_overlap_and_zero_vector(
        self, knowledge_store: KnowledgeStore
    ) -> None:
        query = normalize_query("Explain quantum chromodynamics gluon confinement")
        result = await HybridRetriever(knowledge_store).retrieve(ZERO, query)
        assert result.status is StepStatus.EMPTY
