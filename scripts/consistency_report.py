#!/usr/bin/env python3
"""
Daily consistency report: compare every active tank's physical reading with
the sum of its MRN lots.  Report only; nothing is corrected.

Exit status is 0 when every tank is consistent, 1 when any tank drifts.

Usage:
    python3 scripts/consistency_report.py
    python3 scripts/consistency_report.py --json
    python3 scripts/consistency_report.py --database-url sqlite:///fuel_ledger.db
"""

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _format_row(result) -> str:
    return (
        f"{result.tank_name:<24} {result.status.value:<10} "
        f"{result.physical_quantity:>14} {result.ledger_quantity:>14} "
        f"{result.difference:>12}"
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Report fuel tanks whose physical quantity and MRN lots disagree.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database-url",
        help="Override the configured database URL",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Settings YAML file (defaults to FUEL_CONFIG_FILE or the packaged defaults)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit results as JSON",
    )
    args = parser.parse_args(argv)

    from fuel_config import engine_kwargs, get_active_config, to_ledger_policy
    from fuel_kernel.db.engine import get_session_factory, init_engine_from_url, reset_engine
    from fuel_kernel.domain.values import ConsistencySummary
    from fuel_kernel.logging_config import configure_logging
    from fuel_kernel.services.fuel_operations import FuelOperationService

    settings = get_active_config(args.config)
    configure_logging(level=getattr(logging, settings.logging.level))

    kwargs = engine_kwargs(settings)
    if args.database_url:
        kwargs["database_url"] = args.database_url
    init_engine_from_url(**kwargs)

    try:
        operations = FuelOperationService(
            get_session_factory(), policy=to_ledger_policy(settings)
        )
        results = operations.check_all()
    finally:
        reset_engine()

    summary = ConsistencySummary.of(results)

    if args.json:
        print(json.dumps(
            {
                "total": summary.total,
                "consistent": summary.consistent,
                "minor": summary.minor,
                "major": summary.major,
                "tanks": [r.to_dict() for r in results],
            },
            indent=2,
        ))
    else:
        print(f"{'TANK':<24} {'STATUS':<10} {'PHYSICAL':>14} {'MRN LOTS':>14} {'DIFF':>12}")
        for result in results:
            print(_format_row(result))
        print(
            f"\n{summary.total} tanks: {summary.consistent} consistent, "
            f"{summary.minor} minor, {summary.major} major"
        )

    return 0 if summary.inconsistent == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
