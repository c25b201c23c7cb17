#!/usr/bin/env python3
"""
Recompute every player's derived overall rating.

Normal usage (after a manual rating fix):
    python scripts/recompute_overall_elo.py

Also rebuild matches-played counters from confirmed matches:
    python scripts/recompute_overall_elo.py --recount

Dry run (report what would change without writing anything):
    python scripts/recompute_overall_elo.py --dry-run
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from time import perf_counter

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rallyrank.config import settings
from rallyrank.db import get_session
from rallyrank.ratings.recompute import recompute_overall_ratings

logger = logging.getLogger("recompute_overall_elo")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recompute derived overall ratings.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--recount",
        action="store_true",
        help="Reset matches-played counters from confirmed matches first.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute changes but do not write to the database.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(level=settings.log_level, format=settings.log_format)

    logger.info("Recomputing overall ratings (recount=%s, dry_run=%s)", args.recount, args.dry_run)
    t_start = perf_counter()

    with get_session() as session:
        result = recompute_overall_ratings(session, recount=args.recount)
        if args.dry_run:
            session.rollback()
            logger.info("Dry run, changes rolled back")

    elapsed = perf_counter() - t_start

    print("-" * 60)
    print(f"Players checked:        {result.checked}")
    print(f"Counters fixed:         {result.counters_fixed}")
    print(f"Overall ratings changed: {result.overall_changed}")
    print(f"Elapsed:                {elapsed:.2f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
