#!/usr/bin/env python3
"""
Create the fuel ledger schema.

Usage:
    python3 scripts/init_db.py
    python3 scripts/init_db.py --drop --database-url sqlite:///fuel_ledger.db
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create the fuel ledger tables.")
    parser.add_argument("--database-url", help="Override the configured database URL")
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing tables first (destroys all ledger data)",
    )
    args = parser.parse_args(argv)

    from fuel_config import engine_kwargs, get_active_config
    from fuel_kernel.db.engine import create_tables, drop_tables, init_engine_from_url, reset_engine

    kwargs = engine_kwargs(get_active_config())
    if args.database_url:
        kwargs["database_url"] = args.database_url
    init_engine_from_url(**kwargs)
    try:
        if args.drop:
            drop_tables()
        create_tables()
    finally:
        reset_engine()
    print("Fuel ledger schema ready.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
