"""
Single Configuration Run
========================

Runs one corruption fraction and reports how the success probability
evolves round by round, followed by the summary line used by the sweep.
"""

import argparse
import logging
import sys
from typing import List, Optional, Sequence, Tuple

from tabulate import tabulate

from .config import format_float
from .sweep import add_simulation_arguments, configure_logging, params_from_args
from .trials import InvariantViolation, run_trials


LOG = logging.getLogger(__name__)

DEFAULT_FRACTION = 0.25


def generate_curve_table(curve: List[Tuple[int, float]]) -> str:
    """Success probability per round, one row per change."""
    rows = [[round_number, f"{probability:.3f}"] for round_number, probability in curve]
    return tabulate(rows, headers=["Round", "P(hidden)"], tablefmt="simple")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run a single corruption fraction with a per-round report."""
    parser = argparse.ArgumentParser(
        description="Shuffle rounds needed to hide a cup, for one corruption fraction"
    )
    add_simulation_arguments(parser)
    parser.add_argument(
        "--fraction", "-f",
        type=float,
        default=DEFAULT_FRACTION,
        help=f"Fraction of corrupted cups (default: {DEFAULT_FRACTION})"
    )

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    params = params_from_args(parser, args)
    if args.workers <= 0:
        parser.error("--workers must be > 0")
    if not 0.0 <= args.fraction < 1.0:
        parser.error("--fraction must be in [0, 1)")

    print(f"Shuffle Simulation")
    print(f"==================")
    print(f"Cups: {params.num_slots:,} (shuffle size {params.batch_size})")
    print(f"Corrupted: {format_float(args.fraction)} ({params.corruption_count(args.fraction):,} cups)")
    print(f"Target water level: {format_float(params.target_threshold(args.fraction))}")
    print(f"Trials: {params.num_trials:,}, max rounds: {params.max_rounds:,}")
    print(f"Seed: {args.seed}")
    print()

    try:
        result = run_trials(params, args.fraction, seed=args.seed, workers=args.workers)
    except InvariantViolation as exc:
        LOG.error("Aborting simulation: %s", exc)
        return 1

    print("Success probability after rounds")
    print("=" * 40)
    print(generate_curve_table(result.success_curve(changes_only=True)))
    print()
    if result.degenerate_rounds:
        print(f"Degenerate rounds: {result.degenerate_rounds}")
    print(result.summary_line())

    return 0


if __name__ == "__main__":
    sys.exit(main())
