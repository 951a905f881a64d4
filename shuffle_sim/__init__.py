"""
Shuffle Mixing Simulation Package
=================================

Monte Carlo estimate of how many rounds of a batched-averaging shuffle are
needed before a tracked value is hidden among N slots, when a fraction of
the slots is corrupted.

Modules:
- config: Compiled-in parameters, target level and corruption derivations
- redistribution: One round of water redistribution among honest cups
- trials: Trial runner and first-universal-success aggregation
- sweep: Corruption sweep from 1% to 49%
- single_run: One corruption fraction with a per-round success report
"""

from .config import (
    RANDOM_SEED,
    NEVER,
    SimulationParams,
    corruption_count,
    target_threshold,
    get_rng,
)
from .redistribution import redistribute
from .trials import (
    InvariantViolation,
    SimulationResult,
    first_universal_success_round,
    run_trial,
    run_trials,
)

__version__ = "1.0.0"
