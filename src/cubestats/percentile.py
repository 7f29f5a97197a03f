"""Percentile / quantile estimation over a sorted sample set.

:class:`Percentile` keeps a sorted float64 copy of the samples and answers
empirical CDF queries with a binary search. Extracting the value at a target
fraction is framed as minimising ``(CDF(theta) - fraction) ** 2``; the
estimator exposes that objective so any scalar minimiser can drive it, and
:meth:`Percentile.solve` drives it with :func:`scipy.optimize.minimize_scalar`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, ClassVar

import numpy as np
from scipy.optimize import minimize_scalar

from cubestats.numeric import as_samples, to_float64
from cubestats.summation import parallel_sum

logger = logging.getLogger(__name__)


class EmptySampleError(ValueError):
    """Raised when a CDF or quantile query is made against an empty sample set."""

    def __init__(self) -> None:
        """Initialize the error."""
        super().__init__("Cannot evaluate a percentile on an empty sample set.")


class QuantileConvergenceError(RuntimeError):
    """Raised when the minimiser fails to locate the requested quantile."""

    def __init__(self, fraction: float, message: str):
        """Initialize the error."""
        super().__init__(f"Quantile search for fraction {fraction} did not converge: {message}")


def _check_fraction(fraction: float) -> float:
    value = float(fraction)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"Target fraction must be in the range [0, 1], got {fraction}")
    return value


class Percentile:
    """Empirical CDF and quantile objective over a fixed sample set.

    The samples are widened to float64, sorted once at construction and
    stored read-only; their total is computed once with
    :func:`~cubestats.summation.parallel_sum` and cached. Only the target
    fraction may change afterwards.

    Parameters
    ----------
    values
        Any supported sample set (numpy array of any shape, list, tuple).
        NaN samples are ignored.
    fraction
        Target fraction in ``[0, 1]``, by default 0.5 (the median).
    max_workers
        Upper bound on the summation worker pool, by default the hardware
        parallelism.

    Examples
    --------
    >>> p = Percentile([-2.0, -4.0, -1.0, -3.0])
    >>> p.evaluate(-2.5)
    0.5
    >>> p.set_fraction(0.25)
    >>> p.squared_residual([-3.25])
    0.0
    """

    #: Error definition ("up" value) reported to minimisers that use one.
    ERROR_DEF: ClassVar[float] = 4.0

    def __init__(
        self,
        values: Any,
        fraction: float = 0.5,
        *,
        max_workers: int | None = None,
    ) -> None:
        samples = to_float64(as_samples(values))
        nan = np.isnan(samples)
        if nan.any():
            logger.warning("Ignoring %d NaN samples out of %d", int(nan.sum()), samples.size)
            samples = samples[~nan]
        else:
            samples = samples.copy()
        if samples.size > 1:
            samples.sort()
        samples.flags.writeable = False

        self._values = samples
        self._fraction = _check_fraction(fraction)
        self._total = parallel_sum(samples, max_workers=max_workers)
        logger.debug("Built percentile estimator over %d samples (total=%g)", samples.size, self._total)

    def __len__(self) -> int:
        return int(self._values.size)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(size={self.size}, fraction={self._fraction})"

    def __deepcopy__(self, memo: dict) -> Percentile:
        clone = type(self).__new__(type(self))
        clone.__dict__.update(self.__dict__)
        clone._values = self._values.copy()
        clone._values.flags.writeable = False
        return clone

    @property
    def values(self) -> np.ndarray:
        """Sorted, read-only float64 samples."""
        return self._values

    @property
    def size(self) -> int:
        """Number of samples."""
        return int(self._values.size)

    @property
    def total(self) -> float:
        """Cached sum of all samples."""
        return self._total

    @property
    def fraction(self) -> float:
        """Target fraction used by :meth:`squared_residual` and :meth:`solve`."""
        return self._fraction

    def set_fraction(self, fraction: float) -> None:
        """Replace the target fraction; the samples are not re-sorted or re-summed."""
        self._fraction = _check_fraction(fraction)

    def evaluate(self, threshold: float) -> float:
        """Return the fraction of samples at or below *threshold*.

        Ties are resolved by the midpoint rank of the run of equal values, and
        thresholds falling between two samples interpolate linearly between
        their ranks. When every sample is equal, the common value maps to 0.5.

        Parameters
        ----------
        threshold
            Value at which the empirical CDF is evaluated. NaN yields NaN.

        Returns
        -------
        float
            Fraction in ``[0, 1]``.

        Raises
        ------
        EmptySampleError
            If the sample set is empty.
        """
        values = self._values
        n = values.size
        if n == 0:
            raise EmptySampleError()

        th = float(threshold)
        if np.isnan(th):
            return float("nan")

        first = values[0]
        last = values[-1]
        if first == last:
            if th == first:
                return 0.5
            return 0.0 if th < first else 1.0

        if th <= first:
            return 0.0
        if th >= last:
            return 1.0

        j = int(np.searchsorted(values, th, side="left"))
        if values[j] == th:
            end = int(np.searchsorted(values, th, side="right")) - 1
            return 0.5 * (j + end) / (n - 1)

        x0 = values[j - 1]
        x1 = values[j]
        frac = (th - x0) / (x1 - x0)
        return float((j - 1 + frac) / (n - 1))

    def squared_residual(self, params: float | Sequence[float] | np.ndarray) -> float:
        """Return ``(evaluate(theta) - fraction) ** 2`` for ``params = [theta]``.

        A bare scalar is accepted as well, which is what
        :func:`scipy.optimize.minimize_scalar` passes.
        """
        flat = np.atleast_1d(np.asarray(params, dtype=np.float64)).ravel()
        if flat.size != 1:
            raise ValueError(f"Expected exactly one parameter, got {flat.size}")
        residual = self.evaluate(flat[0]) - self._fraction
        return float(residual * residual)

    __call__ = squared_residual

    def solve(self, *, xatol: float = 1e-10, maxiter: int = 500) -> float:
        """Return the threshold whose CDF equals the target fraction.

        Minimises :meth:`squared_residual` over ``[min, max]`` with bounded
        Brent search.

        Parameters
        ----------
        xatol
            Absolute tolerance on the returned threshold.
        maxiter
            Maximum number of objective evaluations.

        Returns
        -------
        float
            The estimated quantile.

        Raises
        ------
        EmptySampleError
            If the sample set is empty.
        QuantileConvergenceError
            If the minimiser does not converge.
        """
        values = self._values
        if values.size == 0:
            raise EmptySampleError()
        low = float(values[0])
        high = float(values[-1])
        if low == high:
            return low

        result = minimize_scalar(
            self.squared_residual,
            bounds=(low, high),
            method="bounded",
            options={"xatol": xatol, "maxiter": maxiter},
        )
        if not result.success:
            raise QuantileConvergenceError(self._fraction, str(result.message))
        logger.debug(
            "Solved fraction %g -> %g after %d evaluations (residual=%g)",
            self._fraction,
            result.x,
            result.nfev,
            result.fun,
        )
        return float(result.x)


def quantile(values: Any, fraction: float = 0.5, **kwargs: Any) -> float:
    """Return the value at *fraction* of *values* via :meth:`Percentile.solve`.

    Keyword arguments ``max_workers``, ``xatol`` and ``maxiter`` are forwarded.
    """
    solve_kwargs = {key: kwargs.pop(key) for key in ("xatol", "maxiter") if key in kwargs}
    return Percentile(values, fraction, **kwargs).solve(**solve_kwargs)
