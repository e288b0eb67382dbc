"""Build ClinicalRecords from the dental product and antibiotic rule collections."""

from __future__ import annotations

import json
from pathlib import Path

from src.models.rag import (
    ClinicalRecord,
    ProductMetadata,
    RecordSource,
    RuleMetadata,
)


def _as_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def product_metadata(product: dict) -> ProductMetadata:
    """Map a product entry (nom, cnk, nci, indications, ...) to structured fields."""
    return ProductMetadata(
        name=product["nom"],
        code=str(product["cnk"]),
        ingredients=product.get("nci"),
        indications=_as_list(product.get("indications")),
        mechanism=product.get("mecanisme_action"),
        usage_notes=product.get("conseil_usage"),
    )


def product_content(meta: ProductMetadata) -> str:
    uses = ", ".join(meta.indications) if meta.indications else "N/A"
    description = " ".join(p for p in (meta.mechanism, meta.usage_notes) if p)
    lines = [f"Product: {meta.name}"]
    if meta.ingredients:
        lines.append(f"Ingredients: {meta.ingredients}")
    lines.append(f"Uses: {uses}")
    lines.append(f"Description: {description}")
    return "\n".join(lines).strip()


def rule_metadata(rule: dict) -> RuleMetadata:
    return RuleMetadata(
        rule_id=str(rule["id"]),
        condition=rule.get("condition"),
        recommendation=rule.get("recommendation"),
    )


def rule_content(meta: RuleMetadata) -> str:
    condition = json.dumps(meta.condition, ensure_ascii=False)
    recommendation = json.dumps(meta.recommendation, ensure_ascii=False)
    return (
        f"Rule: {meta.rule_id}\n"
        f"Condition/Uses: {condition}\n"
        f"Recommendation/Description: {recommendation}"
    )


def product_record(product: dict, embedding: list[float]) -> ClinicalRecord:
    meta = product_metadata(product)
    return ClinicalRecord(
        record_id=meta.code,
        source=RecordSource.PRODUCT,
        content=product_content(meta),
        metadata=meta,
        embedding=embedding,
    )


def rule_record(rule: dict, embedding: list[float]) -> ClinicalRecord:
    meta = rule_metadata(rule)
    return ClinicalRecord(
        record_id=meta.rule_id,
        source=RecordSource.RULE,
        content=rule_content(meta),
        metadata=meta,
        embedding=embedding,
    )


def load_products(path: Path) -> list[dict]:
    """Dental products file: a JSON list of product entries."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path.name}: expected a list of products")
    return data


def load_rules(path: Path) -> list[dict]:
    """Antibiotic rules file: a JSON object with a "rules" list."""
    data = json.loads(path.read_text(encoding="utf-8"))
    return list(data.get("rules", []))
