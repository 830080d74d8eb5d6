"""
CLI Entry Point: Optimize a Persona Against the Evaluation Set

Usage:
    python scripts/optimize_persona.py --persona "Target: VP Sales at B2B SaaS"
    python scripts/optimize_persona.py --persona-file persona.txt --iterations 6
    python scripts/optimize_persona.py --example --json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from leadrank.common.config import Config
from leadrank.common.exceptions import LeadRankError
from leadrank.common.logger import get_logger, setup_logging
from leadrank.optimizer.loop import DEFAULT_MAX_ITERATIONS
from leadrank.ranking.example_profile import EXAMPLE_PERSONA
from leadrank.services.eval_set import load_eval_set
from leadrank.services.ranking_service import LeadRankingService

logger = get_logger(__name__, layer="cli")


def read_persona(args: argparse.Namespace) -> str:
    """Persona text from --persona, --persona-file or --example."""
    if args.example:
        return EXAMPLE_PERSONA
    if args.persona_file:
        path = Path(args.persona_file)
        if not path.exists():
            raise FileNotFoundError(f"Persona file not found: {args.persona_file}")
        return path.read_text(encoding="utf-8")
    return args.persona or ""


async def run(args: argparse.Namespace) -> int:
    persona = read_persona(args)
    eval_leads = load_eval_set(args.eval_csv) if args.eval_csv else None

    service = LeadRankingService()
    result = await service.optimize_prompt(
        persona,
        max_iterations=args.iterations,
        eval_leads=eval_leads,
    )

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    print("\n" + "=" * 70)
    print("PERSONA OPTIMIZATION")
    print("=" * 70)
    for index, entry in enumerate(result.history, start=1):
        print(f"  Iteration {index}: spearman={entry.score:.3f}")
    if result.errors:
        print(f"\n  Recovered from {len(result.errors)} error(s):")
        for error in result.errors:
            print(f"    - [{error['operation']}] {error['message']}")
    print(f"\nBest score: {result.best_score:.3f} after {result.iterations} evaluation(s)\n")
    print(result.best_prompt)
    return 0


def main():
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Refine an ideal-lead persona against the gold-ranked evaluation set"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--persona", help="Persona text")
    source.add_argument("--persona-file", help="Path to a file holding the persona text")
    source.add_argument("--example", action="store_true", help="Start from the bundled example persona")
    parser.add_argument(
        "--iterations",
        type=int,
        default=DEFAULT_MAX_ITERATIONS,
        help="Evaluations to run (1-10, default 4)",
    )
    parser.add_argument("--eval-csv", help=f"Evaluation set CSV (default: {Config.EVAL_CSV_PATH})")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR")

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
