#!/usr/bin/env python3
"""
Set up the database schema.
Prints all the SQL needed to create tables, RPCs, seed config and indexes.

Usage:
    python scripts/setup_database.py
    python scripts/setup_database.py --section rpc

Note: For safety this never runs the SQL itself. Paste it into the
Supabase SQL editor.
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dollarprompt.db import INDEXES_SQL, RPC_SQL, SCHEMA_SQL, SEED_SQL

SECTIONS = {
    "schema": ("TABLES + ROW LEVEL SECURITY", SCHEMA_SQL),
    "rpc": ("RPC FUNCTIONS + ADMIN POLICIES", RPC_SQL),
    "seed": ("SEED CONFIG", SEED_SQL),
    "indexes": ("INDEXES", INDEXES_SQL),
}


def print_section(title: str, sql: str):
    print("-" * 60)
    print(title)
    print("-" * 60)
    print(sql)


def print_schema(only: str = None):
    """Print the SQL for manual execution, in the order it must run."""
    print("=" * 60)
    print("DATABASE SCHEMA")
    print("=" * 60)
    print("\nCopy and paste this SQL into Supabase SQL Editor:\n")
    for name, (title, sql) in SECTIONS.items():
        if only and name != only:
            continue
        print_section(title, sql)


def main():
    parser = argparse.ArgumentParser(description="Print the database setup SQL")
    parser.add_argument("--section", choices=list(SECTIONS), help="Only print one section")
    args = parser.parse_args()

    print("DollarPrompt - Database Setup")
    print("=" * 40)
    print()
    print("This script outputs the SQL schema for your database.")
    print("For safety, please run the SQL manually in Supabase.")
    print()

    print_schema(args.section)

    print()
    print("Next steps:")
    print("1. Go to your Supabase project dashboard")
    print("2. Open the SQL Editor")
    print("3. Paste the SQL above and run it (schema, rpc, seed, indexes)")
    print("4. Create a public storage bucket named 'prompt-images'")
    print("5. Then run: python scripts/seed_catalog.py")


if __name__ == "__main__":
    main()
