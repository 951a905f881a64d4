"""
Shuffle Trial Runner
====================

Monte Carlo estimate of how many shuffle rounds are needed to hide a cup.

Each trial corrupts a fresh random set of cups, puts all the water into the
tracked cup and runs the round operator up to the round budget, recording
after every round whether the fullest cup is below the target level. The
per-round success counts of all trials are summed into a tally, and the
aggregator reports the first round by which every trial had succeeded.
"""

import logging
import multiprocessing
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple, Union
import numpy as np

from .config import (
    NEVER,
    RANDOM_SEED,
    TRACKED_SLOT,
    SimulationParams,
    format_float,
    get_rng,
)
from .redistribution import draw_excluded, excluded_mask, redistribute


LOG = logging.getLogger(__name__)

Tally = Union[np.ndarray, Sequence[float], Mapping[int, float]]


class InvariantViolation(RuntimeError):
    """Water was found in a corrupted cup; the round operator is broken."""

    def __init__(self, trial: int, round_index: int, slot: int, mass: float):
        super().__init__(trial, round_index, slot, mass)
        self.trial = trial
        self.round_index = round_index
        self.slot = slot
        self.mass = mass

    def __str__(self) -> str:
        return (
            f"corrupted cup {self.slot} holds water {self.mass!r} "
            f"(trial {self.trial}, round {self.round_index})"
        )


@dataclass
class TrialOutcome:
    """Per-round record of one trial."""

    trial: int
    successes: np.ndarray  # bool per round: fullest cup below target
    degenerate_rounds: int = 0

    @property
    def first_success_round(self) -> int:
        """1-based round of the first success, NEVER if the trial never succeeded."""
        hits = np.flatnonzero(self.successes)
        return int(hits[0]) + 1 if hits.size else NEVER


@dataclass
class SimulationResult:
    """Aggregated outcome of all trials of one corruption fraction."""

    params: SimulationParams
    corruption_fraction: float
    corrupted_count: int
    target_threshold: float
    tally: np.ndarray
    degenerate_rounds: int = 0
    first_success_rounds: List[int] = field(default_factory=list)

    @property
    def num_trials(self) -> int:
        return self.params.num_trials

    @property
    def success_round(self) -> int:
        """First round by which every trial succeeded (1-based), NEVER otherwise."""
        return first_universal_success_round(self.tally, self.num_trials)

    def success_curve(self, changes_only: bool = False) -> List[Tuple[int, float]]:
        return success_curve(self.tally, self.num_trials, changes_only=changes_only)

    def summary_line(self) -> str:
        """Single report line shared by the sweep and the single run."""
        return (
            f"Simulation parameters: "
            f"[{self.params.num_slots} {self.params.batch_size}] "
            f"[{format_float(self.corruption_fraction)} {format_float(self.target_threshold)}]: "
            f"{self.success_round}"
        )

    def to_table_row(self) -> List:
        never = [r for r in self.first_success_rounds if r == NEVER]
        reached = [r for r in self.first_success_rounds if r != NEVER]
        return [
            f"{self.corruption_fraction * 100:.0f}%",
            f"{self.corrupted_count:,}",
            f"{self.target_threshold:.3e}",
            f"{np.median(reached):.0f}" if reached else "-",
            self.success_round if self.success_round != NEVER else "never",
            len(never),
            self.degenerate_rounds,
        ]


# =============================================================================
# AGGREGATION
# =============================================================================

def _round_counts(tally: Tally) -> Sequence[float]:
    if isinstance(tally, Mapping):
        if not tally:
            return []
        return [tally.get(t, 0) for t in range(max(tally) + 1)]
    return tally


def first_universal_success_round(tally: Tally, num_trials: int) -> int:
    """
    Return the first round where we managed to perfectly hide the cup.

    Args:
        tally: Successful trials per 0-based round (array or round -> count)
        num_trials: Number of trials summed into the tally

    Returns:
        1-based round at which every trial had succeeded, or NEVER (0).
    """
    if num_trials <= 0:
        raise ValueError("num_trials must be > 0")

    for t, successes in enumerate(_round_counts(tally)):
        if successes / num_trials == 1.0:
            return t + 1

    return NEVER


def success_curve(
    tally: Tally,
    num_trials: int,
    changes_only: bool = False,
) -> List[Tuple[int, float]]:
    """
    Success probability after each round as (1-based round, probability).

    With changes_only, keep the first and last rounds and every round whose
    probability differs from the previous one.
    """
    if num_trials <= 0:
        raise ValueError("num_trials must be > 0")

    counts = _round_counts(tally)
    last = len(counts) - 1
    curve = []
    previous = None
    for t, successes in enumerate(counts):
        probability = successes / num_trials
        if not changes_only or t == 0 or t == last or probability != previous:
            curve.append((t + 1, float(probability)))
        previous = probability
    return curve


# =============================================================================
# TRIALS
# =============================================================================

def _check_corrupted_cups_dry(
    masses: np.ndarray,
    excluded: np.ndarray,
    trial: int,
    round_index: int,
) -> None:
    water = masses[excluded]
    wet = np.flatnonzero(water != 0.0)
    if wet.size:
        raise InvariantViolation(trial, round_index, int(excluded[wet[0]]), float(water[wet[0]]))


def run_trial(
    params: SimulationParams,
    corrupted_count: int,
    target_eps: float,
    rng: np.random.Generator,
    trial_index: int = 0,
) -> TrialOutcome:
    """
    Run one trial: fresh corruption, all water in the tracked cup, then shuffle.

    Args:
        params: Slot universe, batch size and round budget
        corrupted_count: Number of corrupted cups to draw
        target_eps: Water level below which the tracked cup counts as hidden
        rng: Random stream for this trial
        trial_index: Trial number, reported on invariant violations

    Returns:
        TrialOutcome with the per-round success indicators

    Raises:
        InvariantViolation: if a corrupted cup ever holds water
    """
    excluded = draw_excluded(rng, params.num_slots, corrupted_count)
    corrupted = excluded_mask(params.num_slots, excluded)

    # Initially all cups are empty apart from the one we track
    masses = np.zeros(params.num_slots, dtype=np.float64)
    masses[TRACKED_SLOT] = 1.0

    successes = np.zeros(params.max_rounds, dtype=bool)
    degenerate = 0

    for t in range(params.max_rounds):
        if redistribute(masses, corrupted, rng, params.batch_size) == 0:
            degenerate += 1

        # Recomputed every round from the current fullest cup
        hidden = masses.max() < target_eps
        successes[t] = hidden

        _check_corrupted_cups_dry(masses, excluded, trial_index, t)

        # Averaging is capped at the batch maximum, so later rounds stay hidden
        if hidden and params.early_exit:
            successes[t + 1:] = True
            break

    outcome = TrialOutcome(trial=trial_index, successes=successes, degenerate_rounds=degenerate)
    LOG.debug("Trial %d: first success at round %d", trial_index, outcome.first_success_round)
    return outcome


def _run_chunk(
    args: Tuple[SimulationParams, int, float, List[int], List[np.random.SeedSequence]],
) -> Tuple[np.ndarray, int, List[int]]:
    """
    Module-level worker (must be picklable for multiprocessing).

    Runs a chunk of trials and returns its partial tally.
    """
    params, corrupted_count, target_eps, trial_indices, seeds = args

    tally = np.zeros(params.max_rounds, dtype=np.int64)
    degenerate = 0
    first_rounds = []
    for trial_index, seed_seq in zip(trial_indices, seeds):
        outcome = run_trial(
            params,
            corrupted_count,
            target_eps,
            get_rng(seed_seq),
            trial_index=trial_index,
        )
        tally += outcome.successes
        degenerate += outcome.degenerate_rounds
        first_rounds.append(outcome.first_success_round)

    return tally, degenerate, first_rounds


def run_trials(
    params: SimulationParams,
    corruption_fraction: float,
    seed: Optional[int] = RANDOM_SEED,
    workers: int = 1,
) -> SimulationResult:
    """
    Run all trials of one corruption fraction and sum their success tallies.

    Every trial gets its own random stream spawned from `seed`, so the
    result does not depend on the number of workers.

    Args:
        params: Simulation parameters (slots, batch, rounds, trials)
        corruption_fraction: Fraction of corrupted cups, in [0, 1)
        seed: Base seed; None draws fresh OS entropy
        workers: Number of worker processes (1 = run in-process)

    Returns:
        SimulationResult for this configuration
    """
    if workers <= 0:
        raise ValueError("workers must be > 0")

    corrupted_count = params.corruption_count(corruption_fraction)
    target_eps = params.target_threshold(corruption_fraction)
    LOG.debug(
        "Running %d trials: fraction=%s corrupted=%d target=%s",
        params.num_trials,
        corruption_fraction,
        corrupted_count,
        target_eps,
    )

    seeds = np.random.SeedSequence(seed).spawn(params.num_trials)

    n_chunks = min(workers, params.num_trials)
    chunks = []
    for part in np.array_split(np.arange(params.num_trials), n_chunks):
        trial_indices = [int(i) for i in part]
        chunks.append(
            (params, corrupted_count, target_eps, trial_indices, [seeds[i] for i in trial_indices])
        )

    if n_chunks == 1:
        partials = [_run_chunk(chunks[0])]
    else:
        with multiprocessing.Pool(n_chunks) as pool:
            partials = pool.map(_run_chunk, chunks)

    # Merge the per-chunk tallies
    tally = np.zeros(params.max_rounds, dtype=np.int64)
    degenerate = 0
    first_rounds: List[int] = []
    for partial_tally, partial_degenerate, partial_rounds in partials:
        tally += partial_tally
        degenerate += partial_degenerate
        first_rounds.extend(partial_rounds)

    result = SimulationResult(
        params=params,
        corruption_fraction=corruption_fraction,
        corrupted_count=corrupted_count,
        target_threshold=target_eps,
        tally=tally,
        degenerate_rounds=degenerate,
        first_success_rounds=first_rounds,
    )
    LOG.info(
        "Fraction %s done: universal success round %d (%d degenerate rounds)",
        corruption_fraction,
        result.success_round,
        degenerate,
    )
    return result
