#!/usr/bin/env python3
"""
Load reference data into the database.
Populates categories, coupons and the prompt_cost config from a JSON file.

Usage:
    python scripts/seed_catalog.py

Or from another file / without writing:
    python scripts/seed_catalog.py --file data/catalog.json --dry-run
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from dollarprompt.core import GatewayError, configure_logging, get_settings
from dollarprompt.db import execute, get_admin_client

DEFAULT_FILE = Path(__file__).parent.parent / "data" / "catalog.json"


def load_catalog_from_file(filepath: Path) -> dict:
    """Load the catalog seed from a JSON file."""
    with open(filepath, "r") as f:
        return json.load(f)


async def upsert_categories(client, categories: list) -> int:
    """Insert or rename categories by slug. Returns count written."""
    records = [{"name": c["name"], "slug": c["slug"]} for c in categories]
    if not records:
        return 0
    result = await execute(client.table("categories").upsert(records, on_conflict="slug"))
    return len(result.data) if result.data else 0


async def upsert_coupons(client, coupons: list) -> int:
    records = [
        {
            "code": c["code"].strip().upper(),
            "credits": int(c["credits"]),
            "is_active": c.get("is_active", True),
        }
        for c in coupons
    ]
    if not records:
        return 0
    result = await execute(client.table("coupons").upsert(records, on_conflict="code"))
    return len(result.data) if result.data else 0


async def set_prompt_cost(client, cost: int):
    if cost <= 0:
        raise ValueError("prompt_cost must be positive")
    await execute(
        client.table("app_config").upsert(
            {"config_key": "prompt_cost", "config_value": str(cost)}, on_conflict="config_key"
        )
    )


async def seed(catalog: dict):
    print("\nConnecting to database...")
    client = await get_admin_client()

    print("Writing categories...")
    categories = await upsert_categories(client, catalog.get("categories", []))
    print(f"  {categories} categories")

    print("Writing coupons...")
    coupons = await upsert_coupons(client, catalog.get("coupons", []))
    print(f"  {coupons} coupons")

    if "prompt_cost" in catalog:
        await set_prompt_cost(client, int(catalog["prompt_cost"]))
        print(f"  prompt_cost = {catalog['prompt_cost']}")


def main():
    parser = argparse.ArgumentParser(description="Load catalog reference data into database")
    parser.add_argument("--file", type=Path, default=DEFAULT_FILE, help="Catalog JSON file")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be loaded without inserting"
    )

    args = parser.parse_args()
    configure_logging(get_settings().log_level)

    if not args.file.exists():
        print(f"Error: {args.file} not found")
        sys.exit(1)

    catalog = load_catalog_from_file(args.file)
    print(f"Loaded {args.file.name}:")
    print(f"  categories: {len(catalog.get('categories', []))}")
    print(f"  coupons: {len(catalog.get('coupons', []))}")
    print(f"  prompt_cost: {catalog.get('prompt_cost', '(unchanged)')}")

    if args.dry_run:
        print("\n[DRY RUN] No changes made to database")
        return

    try:
        asyncio.run(seed(catalog))
    except GatewayError as e:
        print(f"\nFailed: {e.message}")
        sys.exit(1)

    print("\nDone!")


if __name__ == "__main__":
    main()
