"""Statistics for summarizing the unmasked samples of an image or cube.

Provides the usual image statistics (sum, mean, RMS,
variance, standard deviation, RMSE, skewness, kurtosis, extrema and
percentiles), grouped into named tiers.

Tier system
-----------
- ``"core"``: count, sum, mean, standard deviation, median, min and max.
- ``"extended"``: core + variance, shape descriptors and quartiles.
- ``"all"``: every built-in statistic.

Pass a tier name to :class:`~cubestats.cube.CubeStatistics` via
``stat_tier="extended"`` to compute only that subset.
"""

from cubestats.metrics.base import Statistic
from cubestats.metrics.sample import (
    BUILTIN_STATISTICS,
    CORE_STATISTICS,
    EXTENDED_STATISTICS,
    STATISTIC_TIERS,
    excess_kurtosis,
    maximum,
    mean,
    median,
    minimum,
    percentile,
    pixel_count,
    quadratic_mean,
    rmse,
    skewness,
    std,
    total,
    variance,
)

__all__ = [
    "BUILTIN_STATISTICS",
    "CORE_STATISTICS",
    "EXTENDED_STATISTICS",
    "STATISTIC_TIERS",
    "Statistic",
    "excess_kurtosis",
    "maximum",
    "mean",
    "median",
    "minimum",
    "percentile",
    "pixel_count",
    "quadratic_mean",
    "rmse",
    "skewness",
    "std",
    "total",
    "variance",
]
