"""Knowledge store: Qdrant storage, hybrid similarity + lexical search, substring match."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchText,
    PayloadSchemaType,
    PointStruct,
    Record,
    ScoredPoint,
    VectorParams,
)

from src.config import Settings
from src.models.rag import ClinicalRecord, RecordSource, RetrievalResult
from src.services.errors import RetrievalError

logger = logging.getLogger(__name__)


def qdrant_kwargs(settings: Settings) -> dict:
    """Build kwargs for Qdrant client, including api_key if set."""
    kwargs: dict = {"url": settings.qdrant_url}
    if settings.qdrant_api_key:
        kwargs["api_key"] = settings.qdrant_api_key
    return kwargs


def has_signal(embedding: Sequence[float] | None) -> bool:
    """False for a missing or all-zero vector (client-side embedding failed)."""
    return bool(embedding) and any(v != 0 for v in embedding)


def _point_id(record_id: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, f"clinical-record:{record_id}"))


def _coverage(search_text: str, terms: list[str]) -> float:
    """Fraction of terms occurring as substrings of the record text."""
    if not terms:
        return 0.0
    return sum(1 for t in terms if t in search_text) / len(terms)


def _to_result(payload: dict | None, score: float) -> RetrievalResult:
    if not payload:
        raise RetrievalError("MALFORMED_POINT", "Point returned without payload")
    try:
        return RetrievalResult(
            record_id=str(payload["record_id"]),
            source=RecordSource(payload["source"]),
            content=payload["content"],
            score=score,
        )
    except (KeyError, ValueError) as e:
        raise RetrievalError("MALFORMED_POINT", f"Unusable point payload: {e}") from e


class KnowledgeStore:
    """Product and rule records with their embeddings, held in one Qdrant collection."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        collection: str,
        *,
        vector_weight: float = 0.7,
        text_weight: float = 0.3,
    ) -> None:
        self.client = client
        self.collection = collection
        self.vector_weight = vector_weight
        self.text_weight = text_weight

    # --- Collection management ---

    async def ensure_collection(self, dimensions: int) -> None:
        """Create the collection if it doesn't exist."""
        if await self.client.collection_exists(self.collection):
            logger.info("Qdrant collection '%s' already exists", self.collection)
            return
        await self.client.create_collection(
            collection_name=self.collection,
            vectors_config=VectorParams(size=dimensions, distance=Distance.COSINE),
        )
        # No full-text index on search_text: MatchText stays a substring match.
        for field in ("record_id", "source"):
            await self.client.create_payload_index(
                collection_name=self.collection,
                field_name=field,
                field_schema=PayloadSchemaType.KEYWORD,
            )
        logger.info("Created Qdrant collection '%s'", self.collection)

    async def upsert_records(self, records: list[ClinicalRecord]) -> None:
        """Upsert records keyed by record_id; re-ingesting a record replaces it."""
        points = [
            PointStruct(
                id=_point_id(record.record_id),
                vector=record.embedding,
                payload={
                    "record_id": record.record_id,
                    "source": record.source.value,
                    "content": record.content,
                    "search_text": record.content.lower(),
                    "metadata": record.metadata.model_dump(),
                },
            )
            for record in records
        ]
        await self.client.upsert(collection_name=self.collection, points=points)
        logger.info("Upserted %d records into '%s'", len(points), self.collection)

    # --- Search ---

    async def _vector_hits(
        self, embedding: list[float], threshold: float, count: int
    ) -> list[ScoredPoint]:
        response = await self.client.query_points(
            collection_name=self.collection,
            query=embedding,
            score_threshold=threshold if threshold > 0 else None,
            limit=count,
            with_payload=True,
        )
        return list(response.points)

    async def _lexical_hits(self, terms: list[str], count: int) -> list[Record]:
        points, _ = await self.client.scroll(
            collection_name=self.collection,
            scroll_filter=Filter(
                must=[
                    FieldCondition(key="search_text", match=MatchText(text=term))
                    for term in terms
                ]
            ),
            limit=count,
            with_payload=True,
        )
        return list(points)

    async def hybrid_search(
        self,
        embedding: list[float] | None,
        text: str,
        threshold: float,
        count: int,
    ) -> list[RetrievalResult]:
        """Similarity search united with a lexical match on every term of ``text``.

        Vector hits must reach ``threshold`` (0 accepts any similarity); lexical
        hits qualify on term presence alone. Results are ranked by
        ``vector_weight * similarity + text_weight * term coverage``.
        """
        terms = text.split()
        vector_hits: list[ScoredPoint] = []
        if has_signal(embedding):
            try:
                vector_hits = await self._vector_hits(embedding, threshold, count)
            except Exception as e:
                if not terms:
                    raise RetrievalError(
                        "STORE_UNAVAILABLE", f"Vector search failed: {e}"
                    ) from e
                logger.warning(
                    "Vector search failed, keeping lexical candidates only: %s", e
                )
        try:
            lexical_hits = await self._lexical_hits(terms, count) if terms else []
        except Exception as e:
            raise RetrievalError(
                "STORE_UNAVAILABLE", f"Lexical search failed: {e}"
            ) from e

        similarity: dict[str, float] = {}
        payloads: dict[str, dict] = {}
        for point in vector_hits:
            record_id = _to_result(point.payload, point.score).record_id
            similarity[record_id] = point.score
            payloads[record_id] = point.payload
        for point in lexical_hits:
            record_id = _to_result(point.payload, 0.0).record_id
            payloads.setdefault(record_id, point.payload)

        ranked = []
        for record_id, payload in payloads.items():
            sim = similarity.get(record_id, 0.0)
            lex = _coverage(payload.get("search_text", ""), terms)
            score = self.vector_weight * sim + self.text_weight * lex
            ranked.append(_to_result(payload, score))
        ranked.sort(key=lambda r: r.score, reverse=True)

        logger.debug(
            "Hybrid search threshold=%.2f: %d vector hits, %d lexical hits -> %d results",
            threshold,
            len(vector_hits),
            len(lexical_hits),
            min(len(ranked), count),
        )
        return ranked[:count]

    async def keyword_search(self, keyword: str, count: int) -> list[RetrievalResult]:
        """Plain substring match of one keyword against record content."""
        try:
            points = await self._lexical_hits([keyword.lower()], count)
        except Exception as e:
            raise RetrievalError(
                "STORE_UNAVAILABLE", f"Keyword search failed: {e}"
            ) from e
        return [_to_result(p.payload, 1.0) for p in points]
