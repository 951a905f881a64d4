"""
Corruption Sweep
================

Batch sweep over corruption fractions from 1% to 49%.

For every fraction this runs the full set of trials and prints one line

    Simulation parameters: [<N> <batch>] [<fraction> <target>]: <round>

where <round> is the first shuffle round by which every trial hid the
tracked cup (0 if that never happened within the round budget).
"""

import argparse
import logging
import sys
from typing import List, Optional, Sequence

from tabulate import tabulate

from .config import (
    RANDOM_SEED,
    DEFAULT_PARAMS,
    SWEEP_MIN_PERCENT,
    SWEEP_MAX_PERCENT,
    SimulationParams,
    sweep_fractions,
)
from .trials import InvariantViolation, SimulationResult, run_trials


LOG = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def add_simulation_arguments(parser: argparse.ArgumentParser) -> None:
    """Arguments shared by the sweep and the single run."""
    parser.add_argument(
        "--slots", "-N",
        type=int,
        default=DEFAULT_PARAMS.num_slots,
        help=f"Number of cups in the slot universe (default: {DEFAULT_PARAMS.num_slots:,})"
    )
    parser.add_argument(
        "--batch-size", "-b",
        type=int,
        default=DEFAULT_PARAMS.batch_size,
        help=f"Cups per local shuffle (default: {DEFAULT_PARAMS.batch_size})"
    )
    parser.add_argument(
        "--max-rounds", "-r",
        type=int,
        default=DEFAULT_PARAMS.max_rounds,
        help=f"Upper bound on shuffle rounds per trial (default: {DEFAULT_PARAMS.max_rounds:,})"
    )
    parser.add_argument(
        "--trials", "-n",
        type=int,
        default=DEFAULT_PARAMS.num_trials,
        help=f"Trials per corruption fraction (default: {DEFAULT_PARAMS.num_trials:,})"
    )
    parser.add_argument(
        "--seed", "-s",
        type=int,
        default=RANDOM_SEED,
        help=f"Random seed for reproducibility (default: {RANDOM_SEED})"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=1,
        help="Worker processes for running trials (default: 1)"
    )
    parser.add_argument(
        "--early-exit",
        action="store_true",
        help="Stop a trial once the tracked cup is hidden (the fullest cup never rises, so the tally is unchanged)"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level for diagnostics on stderr (default: WARNING)"
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.WARNING),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def params_from_args(
    parser: argparse.ArgumentParser,
    args: argparse.Namespace,
) -> SimulationParams:
    """Build validated parameters, reporting bad values as usage errors."""
    try:
        return SimulationParams(
            num_slots=args.slots,
            batch_size=args.batch_size,
            max_rounds=args.max_rounds,
            num_trials=args.trials,
            early_exit=args.early_exit,
        )
    except ValueError as exc:
        parser.error(str(exc))


def generate_sweep_table(results: List[SimulationResult]) -> str:
    """Summary of all configurations of a sweep."""
    headers = [
        "Corrupted",
        "Cups",
        "Target",
        "Median first hit",
        "Universal round",
        "Never hidden",
        "Degenerate",
    ]

    rows = [r.to_table_row() for r in results]
    return tabulate(rows, headers=headers, tablefmt="simple")


def run_sweep(
    params: SimulationParams,
    fractions: Sequence[float],
    seed: Optional[int] = RANDOM_SEED,
    workers: int = 1,
) -> List[SimulationResult]:
    """Run every corruption fraction in turn, printing one line per fraction."""
    results = []
    for fraction in fractions:
        result = run_trials(params, fraction, seed=seed, workers=workers)
        print(result.summary_line(), flush=True)
        results.append(result)
    return results


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the corruption sweep."""
    parser = argparse.ArgumentParser(
        description="Shuffle rounds needed to hide a cup, swept over corruption fractions"
    )
    add_simulation_arguments(parser)
    parser.add_argument(
        "--min-percent",
        type=int,
        default=SWEEP_MIN_PERCENT,
        help=f"Lowest corruption percentage (default: {SWEEP_MIN_PERCENT})"
    )
    parser.add_argument(
        "--max-percent",
        type=int,
        default=SWEEP_MAX_PERCENT,
        help=f"Highest corruption percentage (default: {SWEEP_MAX_PERCENT})"
    )
    parser.add_argument(
        "--table",
        action="store_true",
        help="Print a summary table after the sweep"
    )

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    params = params_from_args(parser, args)
    if args.workers <= 0:
        parser.error("--workers must be > 0")
    try:
        fractions = sweep_fractions(args.min_percent, args.max_percent)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        results = run_sweep(params, fractions, seed=args.seed, workers=args.workers)
    except InvariantViolation as exc:
        LOG.error("Aborting simulation: %s", exc)
        return 1

    if args.table:
        print()
        print(f"Sweep summary ({params.num_trials:,} trials, {params.max_rounds:,} max rounds)")
        print("=" * 70)
        print(generate_sweep_table(results))

    return 0


if __name__ == "__main__":
    sys.exit(main())
