"""Tests for the round operator and corrupted-cup sampling."""

import numpy as np
import pytest

from shuffle_sim.redistribution import (
    DEGENERATE_ROUND_MESSAGE,
    draw_excluded,
    excluded_mask,
    redistribute,
)


class TestDrawExcluded:
    """Tests for draw_excluded."""

    def test_count_and_distinct(self):
        rng = np.random.default_rng(1)
        excluded = draw_excluded(rng, 1024, 300)

        assert excluded.size == 300
        assert np.unique(excluded).size == 300

    def test_tracked_cup_never_corrupted(self):
        rng = np.random.default_rng(2)
        for _ in range(50):
            excluded = draw_excluded(rng, 64, 63)
            assert 0 not in excluded
            assert excluded.min() >= 1
            assert excluded.max() < 64

    def test_zero_corruption(self):
        excluded = draw_excluded(np.random.default_rng(3), 128, 0)
        assert excluded.size == 0

    def test_mask(self):
        mask = excluded_mask(8, np.array([1, 5, 7]))

        assert mask.dtype == bool
        assert mask.tolist() == [False, True, False, False, False, True, False, True]


class TestRedistribute:
    """Tests for redistribute."""

    N = 256
    BATCH = 32

    @pytest.fixture
    def masses(self):
        rng = np.random.default_rng(11)
        masses = rng.random(self.N)
        masses[self.excluded_indices()] = 0.0
        return masses

    def excluded_indices(self):
        return np.arange(1, self.N, 4)

    @pytest.fixture
    def mask(self):
        return excluded_mask(self.N, self.excluded_indices())

    def _honest_batch(self, seed, mask):
        # Same draw redistribute makes with an identically seeded generator
        batch = np.random.default_rng(seed).choice(self.N, size=self.BATCH, replace=False)
        return batch[~mask[batch]]

    def test_mass_conserved_within_honest_subset(self, masses, mask):
        honest = self._honest_batch(5, mask)
        before = masses[honest].sum()

        redistribute(masses, mask, np.random.default_rng(5), self.BATCH)

        assert masses[honest].sum() == pytest.approx(before, rel=1e-9)

    def test_honest_cups_share_one_value(self, masses, mask):
        honest = self._honest_batch(6, mask)
        expected = masses[honest].sum() / honest.size

        moved = redistribute(masses, mask, np.random.default_rng(6), self.BATCH)

        assert moved == honest.size
        assert np.all(masses[honest] == masses[honest][0])
        assert masses[honest][0] == pytest.approx(expected)

    def test_cups_outside_batch_untouched(self, masses, mask):
        honest = self._honest_batch(7, mask)
        original = masses.copy()

        redistribute(masses, mask, np.random.default_rng(7), self.BATCH)

        untouched = np.ones(self.N, dtype=bool)
        untouched[honest] = False
        assert np.array_equal(masses[untouched], original[untouched])

    def test_corrupted_cups_stay_dry(self, masses, mask):
        rng = np.random.default_rng(8)
        for _ in range(200):
            redistribute(masses, mask, rng, self.BATCH)

        assert np.all(masses[mask] == 0.0)

    def test_degenerate_round_is_noop(self, capsys):
        masses = np.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
        mask = np.ones(8, dtype=bool)
        before = masses.tobytes()

        moved = redistribute(masses, mask, np.random.default_rng(9), batch_size=4)

        assert moved == 0
        assert masses.tobytes() == before
        assert capsys.readouterr().out.strip() == DEGENERATE_ROUND_MESSAGE

    def test_overwrites_instead_of_accumulating(self):
        masses = np.array([1.0, 0.0, 0.0, 0.0])
        mask = np.zeros(4, dtype=bool)

        redistribute(masses, mask, np.random.default_rng(10), batch_size=4)

        assert masses.tolist() == [0.25, 0.25, 0.25, 0.25]

    def test_rounding_never_lifts_fullest_cup(self):
        masses = np.array([0.1, 0.1, 0.1])
        mask = np.zeros(3, dtype=bool)

        redistribute(masses, mask, np.random.default_rng(12), batch_size=3)

        assert masses.max() <= 0.1
        assert masses.tolist() == [0.1, 0.1, 0.1]

    def test_fullest_cup_never_rises(self, masses, mask):
        rng = np.random.default_rng(13)
        for _ in range(500):
            before = masses.max()
            redistribute(masses, mask, rng, self.BATCH)
            assert masses.max() <= before
