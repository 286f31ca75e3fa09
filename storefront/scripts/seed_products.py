#!/usr/bin/env python
"""Seed catalog products from a JSONL file.

Each line is a JSON object with ``name``, ``description``, ``price``,
``category`` and optionally ``id``, ``image`` (already hosted URL) and
``isFeatured``.  Rows are merged by id so re-running the seed is idempotent.
The featured products cache is rebuilt afterwards because the seed writes
straight to the database.

Usage:
    python -m storefront.scripts.seed_products ./data/fixtures/products.jsonl
    python -m storefront.scripts.seed_products products.jsonl --limit 20 --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterable
from pathlib import Path

from pydantic import ConfigDict, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.cache import close_redis, get_cache_client
from storefront.db.connection import get_async_session_context, get_database_type
from storefront.db.models import Product, generate_product_id
from storefront.db.repositories import ProductRepository
from storefront.schemas.product import ProductBase
from storefront.services.featured_cache import FeaturedProductsCache


class ProductSeed(ProductBase):
    """Seed row; images must already be hosted."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    image: str = ""
    is_featured: bool = Field(False, alias="isFeatured")


async def load_products(
    session: AsyncSession,
    lines: Iterable[str],
    *,
    limit: int | None = None,
    dry_run: bool = False,
) -> tuple[int, int]:
    """Merge products parsed from ``lines`` into the database.

    Returns:
        Tuple of (loaded_count, skipped_count)
    """
    loaded_count = 0
    skipped_count = 0

    for line_num, line in enumerate(lines, 1):
        if limit and loaded_count >= limit:
            break
        if not line.strip():
            continue

        try:
            seed = ProductSeed.model_validate(json.loads(line))
        except json.JSONDecodeError as e:
            print(f"Line {line_num}: Invalid JSON: {e}", file=sys.stderr)
            skipped_count += 1
            continue
        except ValidationError as e:
            print(
                f"Line {line_num}: Invalid product: {e.error_count()} error(s)",
                file=sys.stderr,
            )
            skipped_count += 1
            continue

        if dry_run:
            print(f"Would load: {seed.name} ({seed.category})")
            loaded_count += 1
            continue

        await session.merge(
            Product(
                id=seed.id or generate_product_id(),
                name=seed.name,
                description=seed.description,
                price=seed.price,
                category=seed.category,
                image=seed.image,
                is_featured=seed.is_featured,
            )
        )
        loaded_count += 1

        # Commit in batches of 100 for performance
        if loaded_count % 100 == 0:
            await session.commit()
            print(f"Committed {loaded_count} products...")

    if not dry_run:
        await session.commit()

    return loaded_count, skipped_count


async def seed_products(
    jsonl_path: Path, *, limit: int | None = None, dry_run: bool = False
) -> tuple[int, int]:
    if not jsonl_path.exists():
        print(f"File not found: {jsonl_path}", file=sys.stderr)
        return 0, 0

    async with get_async_session_context() as session:
        with open(jsonl_path, encoding="utf-8") as f:
            counts = await load_products(session, f, limit=limit, dry_run=dry_run)

        if not dry_run:
            featured = FeaturedProductsCache(
                ProductRepository(session), await get_cache_client()
            )
            result = await featured.refresh()
            if result.ok:
                print(f"Featured cache refreshed ({len(result.value)} products)")
            else:
                print("Featured cache refresh failed; it will refill on the next read")

    await close_redis()
    return counts


async def main() -> int:
    """CLI entry point."""
    from storefront.main import validate_environment

    validate_environment()

    parser = argparse.ArgumentParser(description="Seed catalog products from a JSONL file")
    parser.add_argument(
        "jsonl_path",
        nargs="?",
        type=Path,
        default=Path("./data/fixtures/products.jsonl"),
        help="Path to JSONL file (default: ./data/fixtures/products.jsonl)",
    )
    parser.add_argument("--limit", type=int, help="Maximum number of products to load")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate data without inserting into database",
    )
    args = parser.parse_args()

    print(f"Database type detected: {get_database_type().upper()}")
    print(f"Seed source: {args.jsonl_path}")

    loaded, skipped = await seed_products(
        args.jsonl_path, limit=args.limit, dry_run=args.dry_run
    )
    print(f"Loaded {loaded} products, skipped {skipped}")
    return 0 if loaded or not skipped else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
