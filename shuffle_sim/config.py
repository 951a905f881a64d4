"""
Shuffle Simulation Configuration
================================

Central configuration for the batched-averaging shuffle simulation.

All compiled-in defaults live here so that the sweep and the single-run
entry points agree on the slot universe, batch size, round budget and
number of repetitions.
"""

from dataclasses import dataclass, replace
from typing import List
import numpy as np


# =============================================================================
# REPRODUCIBILITY
# =============================================================================

RANDOM_SEED = 42  # Fixed seed for reproducibility


# =============================================================================
# SIMULATION PARAMETERS
# =============================================================================

VECTOR_LENGTH = 2 ** 14        # Slot universe size (N)
SHUFFLE_SIZE = 128             # Slots touched by one local shuffle
MAX_SHUFFLES = 4000            # Upper bound on shuffles per protocol execution
NUMBER_OF_REPETITIONS = 1000   # Trials per corruption fraction

TRACKED_SLOT = 0               # Cup whose water we follow
TARGET_FACTOR = 4.0            # Numerator of the target water level

# Corruption sweep, in percent (1% .. 49%)
SWEEP_MIN_PERCENT = 1
SWEEP_MAX_PERCENT = 49

# Returned by the aggregator when no round reaches universal success
NEVER = 0


@dataclass(frozen=True)
class SimulationParams:
    """Fixed parameters of one simulation configuration."""

    num_slots: int = VECTOR_LENGTH
    batch_size: int = SHUFFLE_SIZE
    max_rounds: int = MAX_SHUFFLES
    num_trials: int = NUMBER_OF_REPETITIONS
    early_exit: bool = False

    def __post_init__(self) -> None:
        if self.num_slots <= 1:
            raise ValueError("num_slots must be > 1")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if self.batch_size > self.num_slots:
            raise ValueError(
                f"batch_size ({self.batch_size}) cannot exceed num_slots ({self.num_slots})"
            )
        if self.max_rounds <= 0:
            raise ValueError("max_rounds must be > 0")
        if self.num_trials <= 0:
            raise ValueError("num_trials must be > 0")

    def with_overrides(self, **changes) -> "SimulationParams":
        """Return a copy with the given fields replaced (None values are ignored)."""
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes)

    def corruption_count(self, fraction: float) -> int:
        return corruption_count(self.num_slots, fraction)

    def target_threshold(self, fraction: float) -> float:
        return target_threshold(self.num_slots, fraction)


DEFAULT_PARAMS = SimulationParams()


# =============================================================================
# DERIVED QUANTITIES
# =============================================================================

def _check_fraction(fraction: float) -> None:
    if not 0.0 <= fraction < 1.0:
        raise ValueError(f"corruption fraction must be in [0, 1), got {fraction}")


def corruption_count(num_slots: int, fraction: float) -> int:
    """Number of corrupted cups, floor(N * fraction)."""
    _check_fraction(fraction)
    return int(num_slots * fraction)


def target_threshold(num_slots: int, fraction: float) -> float:
    """
    Target water level below which the tracked cup counts as hidden.

    4 / (N * (1 - fraction)): four times the level of perfectly even
    mixing over the honest cups.
    """
    _check_fraction(fraction)
    return TARGET_FACTOR / (num_slots * (1.0 - fraction))


def sweep_fractions(
    min_percent: int = SWEEP_MIN_PERCENT,
    max_percent: int = SWEEP_MAX_PERCENT,
) -> List[float]:
    """Corruption fractions of the sweep, in 1% steps (inclusive bounds)."""
    if not 0 <= min_percent <= max_percent < 100:
        raise ValueError(
            f"percent range must satisfy 0 <= min <= max < 100, got {min_percent}..{max_percent}"
        )
    return [p / 100.0 for p in range(min_percent, max_percent + 1)]


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def get_rng(seed=RANDOM_SEED) -> np.random.Generator:
    """Get a reproducible random number generator."""
    return np.random.default_rng(seed)


def format_float(value: float) -> str:
    """Shortest positional rendering of a float (0.01, 0.00024660912453760125, 1)."""
    return np.format_float_positional(value, trim="-")


def validate_all_params() -> bool:
    """Validate the compiled-in defaults."""
    params = SimulationParams()
    assert params.batch_size <= params.num_slots, "batch larger than slot universe"
    assert TRACKED_SLOT == 0, "excluded sampling assumes the tracked cup is slot 0"
    for fraction in sweep_fractions():
        assert params.corruption_count(fraction) < params.num_slots - 1, "no honest cup left"
    return True


if __name__ == "__main__":
    validate_all_params()
    print("✓ All parameters validated successfully")
    print(f"  - Slots: {VECTOR_LENGTH:,}")
    print(f"  - Shuffle size: {SHUFFLE_SIZE}")
    print(f"  - Max shuffles: {MAX_SHUFFLES:,}")
    print(f"  - Target at 1%: {format_float(target_threshold(VECTOR_LENGTH, 0.01))}")
