from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

import numpy as np
import pandas as pd

from cubestats.config import StatisticsConfig
from cubestats.metrics import STATISTIC_TIERS
from cubestats.overlay import Reducer, overlay, prepare_cube
from cubestats.percentile import Percentile

logger = logging.getLogger(__name__)

StatFunction = Callable[[np.ndarray], float]


class CubeStatistics:
    """Masked statistics over a data cube.

    The cube is indexed ``cube[x, y, z]``; the optional boolean mask has the
    same shape and flags samples to exclude. The object offers the masked
    depth-axis collapse (:meth:`overlay`), a percentile estimator over every
    unmasked sample (:meth:`percentile`), and tabular summaries of the whole
    cube or of each depth layer. Neither the cube nor the mask is modified.
    """

    def __init__(
        self,
        cube: Any,
        mask: Any = None,
        *,
        stat_tier: str = "core",
        stat_functions: Mapping[str, StatFunction] | None = None,
        n_jobs: int = 1,
        max_workers: int | None = None,
        empty: str = "fill",
        fill_value: float | int | None = None,
        xatol: float = 1e-10,
        fraction: float = 0.5,
    ) -> None:
        """
        Initialize the cube statistics

        Parameters
        ----------
        cube : array-like
            3-D cube of any supported element type.
        mask : array-like | None, optional
            Boolean exclusion mask of the cube's shape, by default None
        stat_tier : str, optional
            Tier of built-in statistics used by the summaries, by default "core"
        stat_functions : Mapping[str, StatFunction] | None, optional
            Explicit statistics overriding the tier, by default None
        n_jobs : int, optional
            Worker threads for :meth:`overlay`, by default 1
        max_workers : int | None, optional
            Upper bound on the summation worker pool, by default None
        empty : str, optional
            Policy for fully masked pixels in :meth:`overlay`, by default "fill"
        fill_value : float | int | None, optional
            Value for fully masked pixels, by default the element type's blank
        xatol : float, optional
            Absolute tolerance of :meth:`quantile`, by default 1e-10
        fraction : float, optional
            Default target fraction of :meth:`percentile` and :meth:`quantile`,
            by default 0.5
        """
        self._data, self._mask = prepare_cube(cube, mask)
        self.n_jobs = int(n_jobs)
        self.max_workers = max_workers
        self.empty = empty
        self.fill_value = fill_value
        self.xatol = xatol
        if not 0.0 <= float(fraction) <= 1.0:
            raise ValueError(f"fraction must be in the range [0, 1], got {fraction}")
        self.fraction = float(fraction)
        self._stat_functions = self._prepare_stat_functions(stat_functions, stat_tier=stat_tier)

    @classmethod
    def from_config(cls, cube: Any, mask: Any = None, config: StatisticsConfig | None = None) -> CubeStatistics:
        """Build an instance whose options come from a :class:`StatisticsConfig`."""
        config = config or StatisticsConfig()
        return cls(
            cube,
            mask,
            stat_tier=config.stat_tier,
            n_jobs=config.n_jobs,
            max_workers=config.max_workers,
            empty=config.empty,
            fill_value=config.fill_value,
            xatol=config.xatol,
            fraction=config.fraction,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self.shape}, dtype={self.dtype}, masked={int(self._mask.sum())})"

    @property
    def shape(self) -> tuple[int, int, int]:
        """Cube shape ``(nx, ny, nz)``."""
        return self._data.shape

    @property
    def dtype(self) -> np.dtype:
        """Element type of the cube."""
        return self._data.dtype

    @property
    def mask(self) -> np.ndarray:
        """Boolean exclusion mask (``True`` = excluded)."""
        return self._mask

    @property
    def statistics(self) -> tuple[str, ...]:
        """Names of the statistics used by the summaries."""
        return tuple(self._stat_functions)

    def layer(self, z: int) -> np.ndarray:
        """Return the ``(nx, ny)`` plane at depth *z*."""
        nz = self._data.shape[2]
        if not 0 <= z < nz:
            raise IndexError(f"Cube only contains {nz} layers, got layer {z}.")
        return self._data[:, :, z]

    def unmasked_values(self) -> np.ndarray:
        """Return every unmasked sample as a 1-D array of the cube's element type."""
        return self._data[~self._mask]

    def overlay(self, reducer: Reducer | str = Reducer.MEAN) -> np.ndarray:
        """Collapse the depth axis with *reducer*; see :func:`cubestats.overlay.overlay`."""
        return overlay(
            self._data,
            self._mask,
            reducer,
            empty=self.empty,
            fill_value=self.fill_value,
            n_jobs=self.n_jobs,
        )

    def percentile(self, fraction: float | None = None) -> Percentile:
        """Return a :class:`~cubestats.percentile.Percentile` over the unmasked samples.

        *fraction* defaults to the instance's configured fraction.
        """
        target = self.fraction if fraction is None else fraction
        return Percentile(self.unmasked_values(), target, max_workers=self.max_workers)

    def quantile(self, fraction: float | None = None) -> float:
        """Return the value at *fraction* of the unmasked samples."""
        return self.percentile(fraction).solve(xatol=self.xatol)

    def summarize(self, stat_functions: Mapping[str, StatFunction] | None = None) -> pd.Series:
        """Compute the statistics over every unmasked sample of the cube.

        Args:
            stat_functions: Optional mapping of statistics to compute. Defaults
                to the statistics selected at initialization.

        Returns:
            Series indexed by statistic name.
        """
        stats = self._prepare_stat_functions(stat_functions, fallback=self._stat_functions)
        values = self.unmasked_values()
        return pd.Series({name: float(func(values)) for name, func in stats.items()}, name="summary")

    def summarize_layers(self, stat_functions: Mapping[str, StatFunction] | None = None) -> pd.DataFrame:
        """Compute the statistics for each depth layer.

        Args:
            stat_functions: Optional mapping of statistics to compute. Defaults
                to the statistics selected at initialization.

        Returns:
            DataFrame with one row per layer holding at least one unmasked
            pixel. Columns are ``layer``, ``pixel_count`` and one column per
            statistic.
        """
        stats = self._prepare_stat_functions(stat_functions, fallback=self._stat_functions)
        columns = [name for name in stats if name != "pixel_count"]

        rows: list[dict[str, float | int]] = []
        for z in range(self._data.shape[2]):
            keep = ~self._mask[:, :, z]
            if not keep.any():
                logger.debug("Skipping fully masked layer %d", z)
                continue

            values = self._data[:, :, z][keep]
            layer_stats: dict[str, float | int] = {
                "layer": z,
                "pixel_count": int(keep.sum()),
            }
            for name in columns:
                layer_stats[name] = float(stats[name](values))

            rows.append(layer_stats)

        return pd.DataFrame(rows, columns=["layer", "pixel_count", *columns])

    def _prepare_stat_functions(
        self,
        stat_functions: Mapping[str, StatFunction] | None,
        *,
        stat_tier: str | None = None,
        fallback: Mapping[str, StatFunction] | None = None,
    ) -> Mapping[str, StatFunction]:
        if stat_functions is None:
            if fallback is not None:
                return fallback
            if stat_tier not in STATISTIC_TIERS:
                raise ValueError(f"Unknown stat_tier {stat_tier!r}; expected one of {sorted(STATISTIC_TIERS)}")
            return {stat.name: stat.function for stat in STATISTIC_TIERS[stat_tier]}

        prepared = {str(name): func for name, func in stat_functions.items()}
        if not prepared:
            raise ValueError("At least one statistic function must be provided.")
        return prepared
