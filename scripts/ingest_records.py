"""CLI script to ingest dental products and antibiotic rules into Qdrant.

Usage:
    cd backend
    uv run python ../scripts/ingest_records.py --products ../data/dentaire_ia_ready.json
    uv run python ../scripts/ingest_records.py --rules ../data/antibiotiques_dentaires.json
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend/src to path so imports work when run from backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from src.config import settings
from src.dependencies import get_embedder, get_knowledge_store, get_qdrant_client
from src.services.ingestion import (
    load_products,
    load_rules,
    product_content,
    product_metadata,
    product_record,
    rule_content,
    rule_metadata,
    rule_record,
)


async def ingest_products(path: Path) -> int:
    """Ingest a dental products file. Returns number of records upserted."""
    products = load_products(path)
    if not products:
        print(f"  Skipped {path.name} (no products)")
        return 0

    contents = [product_content(product_metadata(p)) for p in products]
    print(f"  Embedding {len(contents)} products...")
    vectors = await get_embedder().embed_batch(contents)

    print("  Upserting to Qdrant...")
    records = [product_record(p, v) for p, v in zip(products, vectors, strict=True)]
    await get_knowledge_store().upsert_records(records)
    return len(records)


async def ingest_rules(path: Path) -> int:
    """Ingest an antibiotic rules file. Returns number of records upserted."""
    rules = load_rules(path)
    if not rules:
        print(f"  Skipped {path.name} (no rules)")
        return 0

    contents = [rule_content(rule_metadata(r)) for r in rules]
    print(f"  Embedding {len(contents)} rules...")
    vectors = await get_embedder().embed_batch(contents)

    print("  Upserting to Qdrant...")
    records = [rule_record(r, v) for r, v in zip(rules, vectors, strict=True)]
    await get_knowledge_store().upsert_records(records)
    return len(records)


async def run(products: Path | None, rules: Path | None) -> int:
    print("Ensuring Qdrant collection exists...")
    await get_knowledge_store().ensure_collection(settings.embedding_dimensions)

    total = 0
    if products:
        print(f"Ingesting {products.name}...")
        total += await ingest_products(products)
    if rules:
        print(f"Ingesting {rules.name}...")
        total += await ingest_rules(rules)
    await get_qdrant_client().close()
    return total


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Ingest dental products and antibiotic rules into Qdrant"
    )
    parser.add_argument("--products", type=Path, help="Dental products JSON file")
    parser.add_argument("--rules", type=Path, help="Antibiotic rules JSON file")
    args = parser.parse_args()

    if not args.products and not args.rules:
        parser.error("give --products and/or --rules")
    for path in (args.products, args.rules):
        if path and not path.exists():
            print(f"Error: File not found: {path}")
            sys.exit(1)

    total = asyncio.run(run(args.products, args.rules))
    print(f"\nDone! Ingested {total} total records.")


if __name__ == "__main__":
    main()
