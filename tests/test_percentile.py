"""Tests for cubestats.percentile module."""

from __future__ import annotations

import copy
import logging
import math

import numpy as np
import pytest
from scipy.optimize import OptimizeResult

import cubestats.percentile as percentile_module
from cubestats.numeric import SUPPORTED_DTYPES
from cubestats.percentile import (
    EmptySampleError,
    Percentile,
    QuantileConvergenceError,
    quantile,
)

NEGATIVE = [-2.0, -4.0, -1.0, -3.0]
SIGNED = [1, 4, -3, -1, 0, -5, -2, 3, -4, 5]
UNSIGNED = [1, 4, 6, 9, 0, 8, 7, 3, 10, 5]


class TestConstruction:
    """Tests for building a Percentile."""

    def test_values_are_sorted_float64(self) -> None:
        p = Percentile(np.array([3, 1, 2], dtype=np.int16))
        assert p.values.dtype == np.float64
        np.testing.assert_array_equal(p.values, [1.0, 2.0, 3.0])

    def test_values_are_read_only(self) -> None:
        p = Percentile([3.0, 1.0, 2.0])
        with pytest.raises(ValueError):
            p.values[0] = 10.0

    def test_input_is_not_modified(self) -> None:
        data = np.array([3.0, 1.0, 2.0])
        Percentile(data)
        np.testing.assert_array_equal(data, [3.0, 1.0, 2.0])

    def test_total_is_cached(self) -> None:
        p = Percentile(UNSIGNED)
        assert p.total == pytest.approx(53.0)

    def test_size_and_len(self) -> None:
        p = Percentile(np.arange(24, dtype=np.uint8).reshape(2, 3, 4))
        assert p.size == len(p) == 24

    def test_default_fraction_is_median(self) -> None:
        assert Percentile([1.0]).fraction == 0.5

    @pytest.mark.parametrize("fraction", [-0.1, 1.5, float("nan")])
    def test_invalid_fraction_rejected(self, fraction: float) -> None:
        with pytest.raises(ValueError, match="range"):
            Percentile([1.0, 2.0], fraction)

    def test_nan_samples_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="cubestats.percentile"):
            p = Percentile([1.0, float("nan"), 3.0])
        assert p.size == 2
        assert "NaN" in caplog.text

    def test_repr(self) -> None:
        assert repr(Percentile([1.0, 2.0], 0.25)) == "Percentile(size=2, fraction=0.25)"


class TestEvaluate:
    """Tests for Percentile.evaluate."""

    @pytest.mark.parametrize(
        "threshold, expected",
        [(-2.5, 0.5), (-3.25, 0.25), (-1.75, 0.75), (-1.0, 1.0), (-4.0, 0.0), (-5.0, 0.0), (0.0, 1.0)],
    )
    def test_interpolates_between_ranks(self, threshold: float, expected: float) -> None:
        assert Percentile(NEGATIVE).evaluate(threshold) == pytest.approx(expected)

    def test_exact_sample_uses_its_rank(self) -> None:
        assert Percentile(NEGATIVE).evaluate(-3.0) == pytest.approx(1.0 / 3.0)

    def test_tie_band_midpoint(self) -> None:
        assert Percentile([1, 2, 2, 2, 3]).evaluate(2) == pytest.approx(0.5)

    def test_two_samples_midpoint(self) -> None:
        assert Percentile([1, 3]).evaluate(2) == pytest.approx(0.5)

    def test_single_sample(self) -> None:
        p = Percentile([4.0])
        assert p.evaluate(4.0) == 0.5
        assert p.evaluate(3.0) == 0.0
        assert p.evaluate(5.0) == 1.0

    def test_all_equal_samples(self) -> None:
        p = Percentile([7, 7, 7, 7])
        assert p.evaluate(7) == 0.5
        assert p.evaluate(6.9) == 0.0
        assert p.evaluate(7.1) == 1.0

    def test_min_and_max_bounds(self) -> None:
        p = Percentile(SIGNED)
        assert p.evaluate(-5) == 0.0
        assert p.evaluate(5) == 1.0

    def test_monotone(self) -> None:
        p = Percentile(np.random.default_rng(3).normal(size=50))
        grid = np.linspace(-4, 4, 200)
        results = [p.evaluate(t) for t in grid]
        assert all(a <= b for a, b in zip(results, results[1:]))
        assert all(0.0 <= r <= 1.0 for r in results)

    def test_nan_threshold(self) -> None:
        assert math.isnan(Percentile([1.0, 2.0]).evaluate(float("nan")))

    def test_empty_raises(self) -> None:
        with pytest.raises(EmptySampleError):
            Percentile([]).evaluate(0.0)

    def test_repeatable(self) -> None:
        p = Percentile(UNSIGNED)
        assert p.evaluate(5.5) == p.evaluate(5.5) == pytest.approx(0.5)

    @pytest.mark.parametrize("dtype", SUPPORTED_DTYPES, ids=lambda d: d.name)
    def test_every_element_type(self, dtype: np.dtype) -> None:
        p = Percentile(np.array(UNSIGNED, dtype=dtype))
        assert p.evaluate(5.5) == pytest.approx(0.5)

    def test_signed_samples(self) -> None:
        assert Percentile(np.array(SIGNED, dtype=np.int32)).evaluate(-0.5) == pytest.approx(0.5)


class TestObjective:
    """Tests for the squared residual objective."""

    def test_zero_at_target(self) -> None:
        p = Percentile(NEGATIVE)
        p.set_fraction(0.25)
        assert p.squared_residual([-3.25]) == pytest.approx(0.0)

    def test_positive_away_from_target(self) -> None:
        p = Percentile(NEGATIVE, 0.5)
        assert p.squared_residual([-1.0]) == pytest.approx(0.25)

    def test_accepts_scalar(self) -> None:
        p = Percentile(NEGATIVE, 0.75)
        assert p.squared_residual(-1.75) == pytest.approx(0.0)

    def test_call_alias(self) -> None:
        p = Percentile(NEGATIVE, 0.5)
        assert p([-2.5]) == p.squared_residual([-2.5])

    def test_wrong_parameter_count(self) -> None:
        with pytest.raises(ValueError, match="one parameter"):
            Percentile(NEGATIVE).squared_residual([1.0, 2.0])

    def test_error_definition(self) -> None:
        assert Percentile.ERROR_DEF == 4.0

    def test_set_fraction_keeps_samples(self, monkeypatch: pytest.MonkeyPatch) -> None:
        p = Percentile(UNSIGNED)
        values = p.values
        monkeypatch.setattr(percentile_module, "parallel_sum", _fail_sum)
        p.set_fraction(0.9)
        assert p.fraction == 0.9
        assert p.values is values

    def test_set_fraction_validates(self) -> None:
        p = Percentile(UNSIGNED)
        with pytest.raises(ValueError):
            p.set_fraction(1.01)
        assert p.fraction == 0.5


def _fail_sum(*args, **kwargs) -> float:
    raise AssertionError("samples were summed again")


class TestCopy:
    """Tests for deep-copying a Percentile."""

    def test_copy_does_not_resum(self, monkeypatch: pytest.MonkeyPatch) -> None:
        p = Percentile(UNSIGNED, 0.25)
        monkeypatch.setattr(percentile_module, "parallel_sum", _fail_sum)
        clone = copy.deepcopy(p)
        assert clone.total == p.total
        assert clone.fraction == 0.25
        np.testing.assert_array_equal(clone.values, p.values)

    def test_copy_is_independent(self) -> None:
        p = Percentile(UNSIGNED)
        clone = copy.deepcopy(p)
        clone.set_fraction(0.75)
        assert p.fraction == 0.5
        assert clone.values is not p.values
        assert not clone.values.flags.writeable


class TestSolve:
    """Tests for extracting quantiles."""

    @pytest.mark.parametrize("fraction, expected", [(0.5, -2.5), (0.25, -3.25), (0.75, -1.75)])
    def test_negative_samples(self, fraction: float, expected: float) -> None:
        assert Percentile(NEGATIVE, fraction).solve() == pytest.approx(expected, abs=1e-6)

    @pytest.mark.parametrize("fraction, expected", [(0.5, -0.5), (0.25, -2.75), (0.75, 2.5)])
    def test_signed_samples(self, fraction: float, expected: float) -> None:
        p = Percentile(np.array(SIGNED, dtype=np.int16), fraction)
        assert p.solve() == pytest.approx(expected, abs=1e-6)

    @pytest.mark.parametrize("fraction, expected", [(0.5, 5.5), (0.25, 3.25), (0.75, 7.75)])
    def test_unsigned_samples(self, fraction: float, expected: float) -> None:
        p = Percentile(np.array(UNSIGNED, dtype=np.uint16), fraction)
        assert p.solve() == pytest.approx(expected, abs=1e-6)

    @pytest.mark.parametrize("fraction", [0.1, 0.33, 0.5, 0.9])
    def test_matches_linear_quantile(self, fraction: float) -> None:
        values = np.random.default_rng(11).normal(loc=3.0, size=101)
        assert quantile(values, fraction) == pytest.approx(np.quantile(values, fraction), abs=1e-6)

    def test_all_equal_returns_value(self) -> None:
        assert Percentile([2.0, 2.0, 2.0], 0.9).solve() == 2.0

    def test_empty_raises(self) -> None:
        with pytest.raises(EmptySampleError):
            Percentile([]).solve()

    def test_non_convergence_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_minimize(*args, **kwargs) -> OptimizeResult:
            return OptimizeResult(x=0.0, fun=1.0, nfev=500, success=False, message="Maximum iterations")

        monkeypatch.setattr(percentile_module, "minimize_scalar", fake_minimize)
        with pytest.raises(QuantileConvergenceError, match="did not converge"):
            Percentile(NEGATIVE).solve()

    def test_quantile_forwards_options(self) -> None:
        result = quantile(NEGATIVE, 0.25, max_workers=2, xatol=1e-12, maxiter=200)
        assert result == pytest.approx(-3.25, abs=1e-6)
