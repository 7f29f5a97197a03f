"""
Statistics over the unmasked samples of an image or cube.
"""

import numpy as np
from scipy.stats import kurtosis as scipy_kurtosis
from scipy.stats import moment

from cubestats.metrics.base import Statistic
from cubestats.numeric import to_float64
from cubestats.summation import parallel_sum


def pixel_count(values: np.ndarray) -> int:
    """Number of unmasked samples."""
    return int(np.size(values))


def total(values: np.ndarray) -> float:
    """Sum of the samples, accumulated in float64 on the summation worker pool.

    Parameters
    ----------
    values : np.ndarray
        The unmasked samples.

    Returns
    -------
    float
        The sum; 0.0 for an empty input.
    """
    return parallel_sum(values)


def mean(values: np.ndarray) -> float:
    """Arithmetic mean; 0.0 for an empty input."""
    n = pixel_count(values)
    if n == 0:
        return 0.0
    return total(values) / n


def quadratic_mean(values: np.ndarray) -> float:
    """Root of the mean of squares (RMS).

    Parameters
    ----------
    values : np.ndarray
        The unmasked samples.

    Returns
    -------
    float
        ``sqrt(sum(x**2) / n)``; 0.0 for an empty input.

    Notes
    -----
    Squares are taken after widening to float64 so integer samples cannot
    overflow.
    """
    n = pixel_count(values)
    if n == 0:
        return 0.0
    samples = to_float64(values)
    return float(np.sqrt(np.dot(samples, samples) / n))


def variance(values: np.ndarray) -> float:
    """Sample variance with Bessel's correction (``ddof=1``).

    Parameters
    ----------
    values : np.ndarray
        The unmasked samples.

    Returns
    -------
    float
        The variance; 0.0 when fewer than two samples are given.
    """
    if pixel_count(values) < 2:
        return 0.0
    return float(np.var(to_float64(values), ddof=1))


def std(values: np.ndarray) -> float:
    """Sample standard deviation, the square root of :func:`variance`."""
    return float(np.sqrt(variance(values)))


def rmse(values: np.ndarray) -> float:
    """Root mean square error around the mean (population standard deviation).

    Parameters
    ----------
    values : np.ndarray
        The unmasked samples.

    Returns
    -------
    float
        ``sqrt(variance * (n - 1) / n)``; 0.0 for an empty input.
    """
    n = pixel_count(values)
    if n == 0:
        return 0.0
    return float(np.sqrt(variance(values) * (n - 1) / n))


def skewness(values):
    """
    Skewness (third central moment over the cubed sample standard deviation).

    Parameters
    ----------
    values : array-like
        Unmasked samples

    Returns
    -------
    float
        Skewness value. 0 = symmetric, >0 = right tail, <0 = left tail.

    Notes
    -----
    The third moment is the biased ``sum(d**3) / n`` while the variance uses
    ``ddof=1``. Returns 0.0 for fewer than three samples or zero variance.
    """
    var = variance(values)
    if pixel_count(values) < 3 or var <= 0:
        return 0.0
    return float(moment(to_float64(values), 3) / (var * np.sqrt(var)))


def excess_kurtosis(values):
    """
    Bias-corrected sample excess kurtosis.

    Parameters
    ----------
    values : array-like
        Unmasked samples

    Returns
    -------
    float
        Excess kurtosis. 0 = normal, >0 = heavy tails, <0 = light tails.

    Notes
    -----
    Equivalent to ``n(n+1) sum(d**4) / ((n-1)(n-2)(n-3) s**4)
    - 3 (n-1)**2 / ((n-2)(n-3))``. Returns 0.0 for fewer than four samples
    or zero variance.
    """
    if pixel_count(values) < 4 or variance(values) <= 0:
        return 0.0
    return float(scipy_kurtosis(to_float64(values), fisher=True, bias=False))


def minimum(values: np.ndarray) -> float:
    """Smallest sample; NaN for an empty input."""
    if pixel_count(values) == 0:
        return float("nan")
    return float(np.min(values))


def maximum(values: np.ndarray) -> float:
    """Largest sample; NaN for an empty input."""
    if pixel_count(values) == 0:
        return float("nan")
    return float(np.max(values))


def percentile(values: np.ndarray, fraction: float) -> float:
    """Value at *fraction* of the sorted samples.

    Parameters
    ----------
    values : np.ndarray
        The unmasked samples.
    fraction : float
        Target fraction in ``[0, 1]``.

    Returns
    -------
    float
        Linear interpolation between the two closest ranks at position
        ``fraction * (n - 1)``; NaN for an empty input.

    Raises
    ------
    ValueError
        If *fraction* lies outside ``[0, 1]``.
    """
    if not 0.0 <= fraction <= 1.0:
        raise ValueError(f"fraction should be in the range [0, 1], got {fraction}")
    if pixel_count(values) == 0:
        return float("nan")
    return float(np.quantile(to_float64(values), fraction))


def median(values: np.ndarray) -> float:
    """50th percentile."""
    return percentile(values, 0.5)


def percentile_5(values):
    """5th percentile."""
    return percentile(values, 0.05)


def percentile_25(values):
    """25th percentile (Q1)."""
    return percentile(values, 0.25)


def percentile_75(values):
    """75th percentile (Q3)."""
    return percentile(values, 0.75)


def percentile_95(values):
    """95th percentile."""
    return percentile(values, 0.95)


# ---------------------------------------------------------------------------
# Tier definitions
# ---------------------------------------------------------------------------

#: Names of statistics in the *core* tier: count, location and range.
CORE_STATISTIC_NAMES: frozenset[str] = frozenset({
    "pixel_count",
    "sum",
    "mean",
    "std",
    "median",
    "min",
    "max",
})

#: Names of statistics in the *extended* tier: core plus dispersion, shape
#: and quartile descriptors. RMS and RMSE are only in *all*.
EXTENDED_STATISTIC_NAMES: frozenset[str] = CORE_STATISTIC_NAMES | frozenset({
    "variance",
    "skewness",
    "excess_kurtosis",
    "percentile_5",
    "percentile_25",
    "percentile_75",
    "percentile_95",
})

# define builtin statistics
BUILTIN_STATISTICS: list[Statistic] = [
    Statistic(name="pixel_count", function=pixel_count),
    Statistic(name="sum", function=total),
    Statistic(name="mean", function=mean),
    Statistic(name="rms", function=quadratic_mean),
    Statistic(name="variance", function=variance),
    Statistic(name="std", function=std),
    Statistic(name="rmse", function=rmse),
    Statistic(name="skewness", function=skewness),
    Statistic(name="excess_kurtosis", function=excess_kurtosis),
    Statistic(name="min", function=minimum),
    Statistic(name="max", function=maximum),
    Statistic(name="median", function=median),
    Statistic(name="percentile_5", function=percentile_5),
    Statistic(name="percentile_25", function=percentile_25),
    Statistic(name="percentile_75", function=percentile_75),
    Statistic(name="percentile_95", function=percentile_95),
]

#: *Core* statistics, in BUILTIN_STATISTICS order.
CORE_STATISTICS: list[Statistic] = [s for s in BUILTIN_STATISTICS if s.name in CORE_STATISTIC_NAMES]

#: *Extended* statistics, in BUILTIN_STATISTICS order.
EXTENDED_STATISTICS: list[Statistic] = [s for s in BUILTIN_STATISTICS if s.name in EXTENDED_STATISTIC_NAMES]

#: Mapping from tier name to the corresponding list of statistics.
#: Used by :class:`~cubestats.cube.CubeStatistics` when a ``stat_tier``
#: string is supplied instead of explicit functions.
#:
#: Valid keys: ``"core"``, ``"extended"``, ``"all"``.
STATISTIC_TIERS: dict[str, list[Statistic]] = {
    "core": CORE_STATISTICS,
    "extended": EXTENDED_STATISTICS,
    "all": BUILTIN_STATISTICS,
}
