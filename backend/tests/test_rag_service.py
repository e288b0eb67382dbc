"""Unit tests for rag_service: collection management, hybrid and keyword search."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from qdrant_client import AsyncQdrantClient

from src.models.rag import RecordSource
from src.services.errors import RetrievalError
from src.services.ingestion import product_record
from src.services.rag_service import KnowledgeStore, has_signal

DIMENSIONS = 4
ZERO = [0.0] * DIMENSIONS


class TestHasSignal:
    def test_zero_and_missing_vectors(self) -> None:
        assert has_signal(None) is False
        assert has_signal([]) is False
        assert has_signal(ZERO) is False

    def test_non_zero_vector(self) -> None:
        assert has_signal([0.0, 0.2, 0.0, 0.0]) is True


class TestEnsureCollection:
    async def test_creates_collection(self) -> None:
        qdrant = AsyncQdrantClient(":memory:")
        store = KnowledgeStore(qdrant, "clinical_records")
        await store.ensure_collection(DIMENSIONS)
        assert await qdrant.collection_exists("clinical_records")

    async def test_idempotent(self, knowledge_store: KnowledgeStore) -> None:
        await knowledge_store.ensure_collection(DIMENSIONS)  # should not raise
        info = await knowledge_store.client.get_collection("clinical_records")
        assert info.points_count == 3


class TestUpsertRecords:
    async def test_upsert_idempotent(
        self, knowledge_store: KnowledgeStore, xeros_spray: dict
    ) -> None:
        """Same record_id -> same point id -> no duplicates."""
        await knowledge_store.upsert_records(
            [product_record(xeros_spray, [1.0, 0.0, 0.0, 0.0])]
        )
        info = await knowledge_store.client.get_collection("clinical_records")
        assert info.points_count == 3

    async def test_payload_fields_stored(self, knowledge_store: KnowledgeStore) -> None:
        points, _ = await knowledge_store.client.scroll(
            collection_name="clinical_records", limit=10, with_payload=True
        )
        payload = next(p.payload for p in points if p.payload["record_id"] == "3012345")
        assert payload["source"] == "product"
        assert payload["content"].startswith("Product: Dentaid Xeros Spray")
        assert payload["search_text"] == payload["content"].lower()
        assert payload["metadata"]["name"] == "Dentaid Xeros Spray"


class TestHybridSearch:
    async def test_vector_hit_above_threshold(
        self, knowledge_store: KnowledgeStore
    ) -> None:
        results = await knowledge_store.hybrid_search(
            [0.9, 0.1, 0.0, 0.0], "", threshold=0.5, count=5
        )
        assert [r.record_id for r in results] == ["3012345"]
        assert results[0].source is RecordSource.PRODUCT

    async def test_zero_threshold_accepts_any_similarity(
        self, knowledge_store: KnowledgeStore
    ) -> None:
        results = await knowledge_store.hybrid_search(
            [0.9, 0.1, 0.0, 0.0], "", threshold=0.0, count=5
        )
        assert len(results) == 3
        assert results[0].record_id == "3012345"

    async def test_lexical_match_requires_every_term(
        self, knowledge_store: KnowledgeStore
    ) -> None:
        hits = await knowledge_store.hybrid_search(
            ZERO, "dentaid xeros spray", threshold=0.05, count=5
        )
        assert [r.record_id for r in hits] == ["3012345"]

        misses = await knowledge_store.hybrid_search(
            ZERO, "dentaid toothpaste", threshold=0.05, count=5
        )
        assert misses == []

    async def test_zero_vector_without_text_returns_nothing(
        self, knowledge_store: KnowledgeStore
    ) -> None:
        assert await knowledge_store.hybrid_search(ZERO, "", 0.0, 5) == []

    async def test_keyword_overlap_ranks_higher(
        self, knowledge_store: KnowledgeStore
    ) -> None:
        results = await knowledge_store.hybrid_search(
            [0.5, 0.5, 0.0, 0.0], "elmex", threshold=0.0, count=5
        )
        assert results[0].record_id == "3098765"

    async def test_respects_count(self, knowledge_store: KnowledgeStore) -> None:
        results = await knowledge_store.hybrid_search(
            [0.5, 0.5, 0.5, 0.0], "", threshold=0.0, count=2
        )
        assert len(results) == 2

    async def test_store_failure_raises_retrieval_error(self) -> None:
        qdrant = MagicMock()
        qdrant.query_points = AsyncMock(side_effect=ConnectionError("refused"))
        store = KnowledgeStore(qdrant, "clinical_records")
        with pytest.raises(RetrievalError) as exc_info:
            await store.hybrid_search([1.0, 0.0, 0.0, 0.0], "", 0.05, 5)
        assert exc_info.value.code == "STORE_UNAVAILABLE"

    async def test_vector_failure_keeps_lexical_hits(self) -> None:
        record = MagicMock(
            payload={
                "record_id": "3012345",
                "source": "product",
                "content": "Product: Dentaid Xeros Spray",
                "search_text": "product: dentaid xeros spray",
            }
        )
        qdrant = MagicMock()
        qdrant.query_points = AsyncMock(side_effect=ValueError("wrong vector size"))
        qdrant.scroll = AsyncMock(return_value=([record], None))
        store = KnowledgeStore(qdrant, "clinical_records")

        results = await store.hybrid_search([1.0, 0.0], "xeros spray", 0.05, 5)

        assert [r.record_id for r in results] == ["3012345"]
        assert results[0].score == pytest.approx(0.3)

    async def test_malformed_payload_raises_retrieval_error(self) -> None:
        point = MagicMock(payload={"content": "no id"}, score=0.9)
        qdrant = MagicMock()
        qdrant.query_points = AsyncMock(return_value=MagicMock(points=[point]))
        store = KnowledgeStore(qdrant, "clinical_records")
        with pytest.raises(RetrievalError) as exc_info:
            await store.hybrid_search([1.0, 0.0, 0.0, 0.0], "", 0.05, 5)
        assert exc_info.value.code == "MALFORMED_POINT"


class TestKeywordSearch:
    async def test_substring_match(self, knowledge_store: KnowledgeStore) -> None:
        results = await knowledge_store.keyword_search("amoxicillin", 2)
        assert [r.record_id for r in results] == ["R3"]
        assert results[0].source is RecordSource.RULE

    async def test_matches_inside_words(self, knowledge_store: KnowledgeStore) -> None:
        results = await knowledge_store.keyword_search("fluor", 5)
        assert {r.record_id for r in results} == {"3012345", "3098765"}

    async def test_case_insensitive(self, knowledge_store: KnowledgeStore) -> None:
        results = await knowledge_store.keyword_search("XEROSTOMIA", 2)
        assert [r.record_id for r in results] == ["3012345"]

    async def test_per_keyword_cap(self, knowledge_store: KnowledgeStore) -> None:
        assert len(await knowledge_store.keyword_search("fluor", 1)) == 1
