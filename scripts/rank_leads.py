"""
CLI Entry Point: Rank a CSV of Leads Against a Persona

Usage:
    python scripts/rank_leads.py leads.csv --persona "Target: Head of Sales. Avoid: HR."
    python scripts/rank_leads.py leads.csv --example --top-n 25 --json
"""

import argparse
import asyncio
import csv
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from leadrank.common.config import Config
from leadrank.common.exceptions import LeadRankError
from leadrank.common.field_aliases import lead_label
from leadrank.common.logger import get_logger, setup_logging
from leadrank.ranking.example_profile import EXAMPLE_PERSONA
from leadrank.services.ranking_service import LeadRankingService

logger = get_logger(__name__, layer="cli")


def load_leads(csv_path: str) -> list:
    """Read leads as dicts, skipping blank rows."""
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"Leads CSV not found: {csv_path}")
    with path.open(newline="", encoding="utf-8-sig") as f:
        return [
            {k: (v or "") for k, v in row.items() if k}
            for row in csv.DictReader(f)
            if any((v or "").strip() for v in row.values() if isinstance(v, str))
        ]


async def run(args: argparse.Namespace) -> int:
    leads = load_leads(args.csv)
    if not leads:
        print("CSV file contains no leads", file=sys.stderr)
        return 1

    persona = EXAMPLE_PERSONA if args.example else args.persona
    result = await LeadRankingService().rank_leads(
        persona,
        leads,
        top_n=args.top_n,
        max_leads=args.max_leads,
    )

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    print(f"Processed {result.total_processed} leads, {result.total_matched} matched\n")
    for ranked in result.ranked_leads:
        label = lead_label(ranked.lead) or "(unnamed lead)"
        print(f"  #{ranked.rank:<3} {ranked.score:.3f}  {label}")
    return 0


def main():
    """Main CLI function."""
    parser = argparse.ArgumentParser(description="Rank leads from a CSV against an ideal-lead persona")
    parser.add_argument("csv", help="Path to the leads CSV")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--persona", help="Persona text (free-form or Target/Avoid/Prefer)")
    source.add_argument("--example", action="store_true", help="Use the bundled example persona")
    parser.add_argument("--top-n", type=int, default=None, help=f"Results to keep (default {Config.SCORE_TOP_N})")
    parser.add_argument("--max-leads", type=int, default=None, help="Only score the first N leads")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--log-level", default="WARNING", help="DEBUG, INFO, WARNING or ERROR")

    args = parser.parse_args()
    setup_logging(args.log_level)

    try:
        Config.validate()
        logger.debug(f"Configuration:\n{Config.summary()}")
        sys.exit(asyncio.run(run(args)))
    except (LeadRankError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
