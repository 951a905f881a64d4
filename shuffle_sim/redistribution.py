"""
Water Redistribution (Round Operator)
=====================================

One round of the batched-averaging shuffle.

Each cup holds some water (probability mass). A round picks a random batch
of cups, drops the corrupted ones, and pours the water of the remaining
honest cups together so that each of them ends up with the batch average.
Corrupted cups are never written and keep their initial zero level.
"""

import logging

import numpy as np

from .config import SHUFFLE_SIZE, TRACKED_SLOT


LOG = logging.getLogger(__name__)

DEGENERATE_ROUND_MESSAGE = "no honest commitment selected!"


def draw_excluded(rng: np.random.Generator, num_slots: int, count: int) -> np.ndarray:
    """
    Select `count` distinct corrupted cups uniformly from [1, num_slots).

    The tracked cup (index 0) is never corrupted.
    """
    # Offset by one so the tracked cup cannot be drawn
    return rng.choice(num_slots - 1, size=count, replace=False) + (TRACKED_SLOT + 1)


def excluded_mask(num_slots: int, excluded: np.ndarray) -> np.ndarray:
    """Boolean membership mask for a set of excluded cup indices."""
    mask = np.zeros(num_slots, dtype=bool)
    mask[excluded] = True
    return mask


def redistribute(
    masses: np.ndarray,
    excluded: np.ndarray,
    rng: np.random.Generator,
    batch_size: int = SHUFFLE_SIZE,
) -> int:
    """
    Distribute water among the uncorrupted cups of one random batch.

    Args:
        masses: Water level per cup, updated in place
        excluded: Boolean mask of corrupted cups (same length as masses)
        rng: Random number generator used to draw the batch
        batch_size: Number of distinct cups in the batch

    Returns:
        Number of honest cups that were averaged; 0 means no cup moved.
    """
    batch = rng.choice(masses.shape[0], size=batch_size, replace=False)

    # Cups that actually take part in the shuffle
    honest = batch[~excluded[batch]]
    if honest.size == 0:
        print(DEGENERATE_ROUND_MESSAGE)
        LOG.debug("Degenerate round: all %d batch cups corrupted", batch_size)
        return 0

    water = masses[honest]
    # Rounding must not lift the average above the fullest cup of the batch
    masses[honest] = min(water.sum() / honest.size, water.max())
    return int(honest.size)
