"""Tests for simulation configuration."""

import numpy as np
import pytest

from shuffle_sim.config import (
    SimulationParams,
    corruption_count,
    format_float,
    get_rng,
    sweep_fractions,
    target_threshold,
    validate_all_params,
)


class TestSimulationParams:
    """Tests for SimulationParams."""

    def test_defaults(self):
        params = SimulationParams()

        assert params.num_slots == 16384
        assert params.batch_size == 128
        assert params.max_rounds == 4000
        assert params.num_trials == 1000
        assert not params.early_exit

    @pytest.mark.parametrize("field,value", [
        ("num_slots", 1),
        ("batch_size", 0),
        ("max_rounds", 0),
        ("num_trials", 0),
    ])
    def test_rejects_non_positive(self, field, value):
        with pytest.raises(ValueError):
            SimulationParams(**{field: value})

    def test_rejects_batch_larger_than_universe(self):
        with pytest.raises(ValueError):
            SimulationParams(num_slots=16, batch_size=17)

    def test_with_overrides_ignores_none(self):
        params = SimulationParams().with_overrides(num_trials=5, batch_size=None)

        assert params.num_trials == 5
        assert params.batch_size == 128

    def test_validate_all_params(self):
        assert validate_all_params()


class TestDerivedQuantities:
    """Tests for corruption count, target level and sweep fractions."""

    def test_corruption_count_floors(self):
        assert corruption_count(16384, 0.01) == 163
        assert corruption_count(1024, 0.25) == 256

    def test_threshold_formula(self):
        assert target_threshold(1024, 0.25) == pytest.approx(4 / 768)

    def test_threshold_increases_with_corruption(self):
        thresholds = [target_threshold(16384, f) for f in sweep_fractions()]
        assert all(a < b for a, b in zip(thresholds, thresholds[1:]))

    @pytest.mark.parametrize("fraction", [-0.1, 1.0, 1.5])
    def test_rejects_fraction_out_of_range(self, fraction):
        with pytest.raises(ValueError):
            target_threshold(1024, fraction)
        with pytest.raises(ValueError):
            corruption_count(1024, fraction)

    def test_sweep_fractions(self):
        fractions = sweep_fractions()

        assert len(fractions) == 49
        assert fractions[0] == 0.01
        assert fractions[-1] == 0.49

    def test_sweep_rejects_bad_range(self):
        with pytest.raises(ValueError):
            sweep_fractions(10, 5)

    def test_format_float(self):
        assert format_float(0.01) == "0.01"
        assert format_float(0.49) == "0.49"
        assert format_float(1.0) == "1"
        assert format_float(4 / (16384 * 0.99)) == repr(4 / (16384 * 0.99))


class TestGetRng:
    """Tests for get_rng."""

    def test_default_seed_reproducible(self):
        assert get_rng().random(4).tolist() == get_rng().random(4).tolist()

    def test_accepts_seed_sequence(self):
        a = get_rng(np.random.SeedSequence(5).spawn(2)[1])
        b = get_rng(np.random.SeedSequence(5).spawn(2)[1])

        assert isinstance(a, np.random.Generator)
        assert np.array_equal(a.integers(0, 1000, 8), b.integers(0, 1000, 8))
