"""Pydantic models for RAG: clinical records, retrieval results, grounding context."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class RecordSource(StrEnum):
    PRODUCT = "product"
    RULE = "rule"


class ProductMetadata(BaseModel):
    name: str
    code: str
    ingredients: str | None = None
    indications: list[str] = []
    mechanism: str | None = None
    usage_notes: str | None = None


class RuleMetadata(BaseModel):
    rule_id: str
    condition: dict | list | str | None = None
    recommendation: dict | list | str | None = None


class ClinicalRecord(BaseModel):
    """A product or rule record with its embedding, as stored in Qdrant."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    source: RecordSource
    content: str
    metadata: ProductMetadata | RuleMetadata
    embedding: list[float]


class RetrievalResult(BaseModel):
    """A search hit, scoped to a single request."""

    record_id: str
    source: RecordSource
    content: str
    score: float


class GroundingContext(BaseModel):
    """Retrieved evidence, quoted verbatim into the system prompt."""

    results: list[RetrievalResult]

    @property
    def record_ids(self) -> list[str]:
        return [r.record_id for r in self.results]

    def render(self) -> str:
        blocks = [
            f"[{r.source.value}:{r.record_id}]\n{r.content}"
            for r in self.results
            if r.content.strip()
        ]
        return "\n\n".join(blocks)
