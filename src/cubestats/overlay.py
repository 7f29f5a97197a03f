"""Masked per-pixel collapse of a cube's depth axis.

Given a cube indexed ``cube[x, y, z]`` and a boolean mask of the same shape
(``True`` = excluded), every ``(x, y)`` position is reduced over the unmasked
samples along ``z`` with one of the :class:`Reducer` methods. The result is a
``(nx, ny)`` plane with the cube's element type.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Any

import numpy as np

from cubestats.numeric import as_array, as_samples, blank_value, cast_to, is_floating, to_float64
from cubestats.summation import chunk_bounds, resolve_workers

logger = logging.getLogger(__name__)

#: Accepted values for the ``empty`` argument of :func:`overlay`.
EMPTY_POLICIES: frozenset[str] = frozenset({"fill", "raise"})


class Reducer(str, Enum):
    """Statistic applied to the unmasked samples of each pixel."""

    MEAN = "mean"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    MEDIAN = "median"


class MaskShapeMismatchError(ValueError):
    """Raised when a mask does not line up element-for-element with its cube."""

    def __init__(self, mask_shape: tuple[int, ...], cube_shape: tuple[int, ...]):
        """Initialize the error."""
        super().__init__(f"Mask shape {mask_shape} does not match cube shape {cube_shape}")


class FullyMaskedPixelError(ValueError):
    """Raised when a pixel has no unmasked sample and the empty policy is ``"raise"``."""

    def __init__(self, count: int, first: tuple[int, int]):
        """Initialize the error."""
        super().__init__(f"{count} pixel(s) have every sample masked; first at (x, y) = {first}")


def prepare_cube(cube: Any, mask: Any = None) -> tuple[np.ndarray, np.ndarray]:
    """Validate a cube and its mask, returning them as ndarrays."""
    data = as_array(cube)
    if data.ndim != 3:
        raise ValueError(f"Cube must be a 3D volume, got {data.ndim} dimension(s).")
    if mask is None:
        return data, np.zeros(data.shape, dtype=bool)
    excluded = np.asarray(mask, dtype=bool)
    if excluded.shape != data.shape:
        raise MaskShapeMismatchError(excluded.shape, data.shape)
    return data, excluded


def _high_fill(dtype: np.dtype) -> float | int:
    """Value that sorts after every sample of *dtype*."""
    if dtype.kind == "f":
        return np.inf
    return np.iinfo(dtype).max


def _take_depth(ordered: np.ndarray, index: np.ndarray) -> np.ndarray:
    return np.take_along_axis(ordered, index[..., np.newaxis], axis=2)[..., 0]


def _reduce_median(data: np.ndarray, mask: np.ndarray, counts: np.ndarray) -> np.ndarray:
    # masked samples sort to the end of each depth column
    ordered = np.sort(np.where(mask, _high_fill(data.dtype), data).astype(data.dtype), axis=2)
    k = np.maximum(counts, 1)
    low = _take_depth(ordered, (k - 1) // 2)
    high = _take_depth(ordered, k // 2)

    plane = low.copy()
    even = counts % 2 == 0
    plane[even] = cast_to((to_float64(low[even]) + to_float64(high[even])) / 2.0, data.dtype)
    return plane


def _reduce_block(data: np.ndarray, mask: np.ndarray, reducer: Reducer) -> np.ndarray:
    """Reduce one contiguous block of rows; fully masked pixels hold arbitrary values."""
    counts = np.count_nonzero(~mask, axis=2)

    if reducer in (Reducer.MEAN, Reducer.SUM):
        totals = np.where(mask, 0.0, to_float64(data)).sum(axis=2)
        if reducer is Reducer.SUM:
            return cast_to(totals, data.dtype)
        with np.errstate(invalid="ignore", divide="ignore"):
            return cast_to(totals / counts, data.dtype)

    if reducer in (Reducer.MIN, Reducer.MAX):
        masked = np.ma.masked_array(data, mask=mask)
        extremum = masked.min(axis=2) if reducer is Reducer.MIN else masked.max(axis=2)
        return np.ma.filled(extremum, 0).astype(data.dtype)

    return _reduce_median(data, mask, counts)


def overlay(
    cube: Any,
    mask: Any = None,
    reducer: Reducer | str = Reducer.MEAN,
    *,
    empty: str = "fill",
    fill_value: float | int | None = None,
    n_jobs: int = 1,
) -> np.ndarray:
    """Collapse the depth axis of *cube* pixel by pixel, ignoring masked samples.

    Parameters
    ----------
    cube
        3-D array indexed ``cube[x, y, z]`` of any supported element type.
    mask
        Boolean array of the cube's shape; ``True`` excludes the sample.
        ``None`` excludes nothing. The mask is never modified.
    reducer
        One of ``"mean"``, ``"sum"``, ``"min"``, ``"max"``, ``"median"``.
    empty
        What to do with pixels whose samples are all masked: ``"fill"`` writes
        *fill_value*, ``"raise"`` raises :class:`FullyMaskedPixelError`.
    fill_value
        Value written to fully masked pixels, by default
        :func:`~cubestats.numeric.blank_value` of the element type.
    n_jobs
        Number of worker threads; rows along ``x`` are split into contiguous
        blocks, one per worker.

    Returns
    -------
    np.ndarray
        ``(nx, ny)`` plane with the cube's element type.

    Notes
    -----
    NaN samples of a floating cube are excluded like masked samples by every
    reducer, so a pixel holding only NaN or masked samples is fully masked.
    Mean and sum accumulate in float64 and are cast back to the element type
    (integers truncate toward zero and saturate at the type limits). Min and
    max compare in the native type. The median of an even count is the
    float64 mean of the two middle samples, cast back.
    """
    data, excluded = prepare_cube(cube, mask)
    method = Reducer(reducer)
    if empty not in EMPTY_POLICIES:
        raise ValueError(f"empty must be one of {sorted(EMPTY_POLICIES)}, got {empty!r}")
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be at least 1, got {n_jobs}")

    if is_floating(data.dtype):
        nan = np.isnan(data)
        if nan.any():
            logger.debug("Excluding %d NaN samples", int(nan.sum()))
            excluded = excluded | nan

    nx, ny, nz = data.shape
    empty_pixels = ~np.any(~excluded, axis=2)
    n_empty = int(np.count_nonzero(empty_pixels))
    if n_empty and empty == "raise":
        first = tuple(int(i) for i in np.argwhere(empty_pixels)[0])
        raise FullyMaskedPixelError(n_empty, first)

    plane = np.empty((nx, ny), dtype=data.dtype)
    bounds = chunk_bounds(nx, resolve_workers(nx, n_jobs))
    logger.debug("Reducing %s cube with %s over %d row block(s)", data.shape, method.value, len(bounds))
    if nz and len(bounds) <= 1:
        plane[...] = _reduce_block(data, excluded, method)
    elif nz:
        with ThreadPoolExecutor(max_workers=len(bounds)) as executor:
            future_to_rows = {
                executor.submit(_reduce_block, data[start:stop], excluded[start:stop], method): (start, stop)
                for start, stop in bounds
            }
            for future in as_completed(future_to_rows):
                start, stop = future_to_rows[future]
                plane[start:stop] = future.result()

    if n_empty:
        fill = blank_value(data.dtype) if fill_value is None else fill_value
        plane[empty_pixels] = cast_to(fill, data.dtype)
        logger.warning(
            "%d of %d pixels have no unmasked sample; filled with %s",
            n_empty,
            nx * ny,
            fill,
        )
    return plane


def overlay_buffer(
    buffer: Any,
    mask: Any,
    shape: Sequence[int],
    reducer: Reducer | str = Reducer.MEAN,
    **kwargs: Any,
) -> np.ndarray:
    """Collapse a flat cube buffer stored with ``x`` varying fastest.

    Parameters
    ----------
    buffer
        Contiguous samples where element ``x + nx * (y + ny * z)`` holds
        ``cube[x, y, z]``.
    mask
        Flat boolean buffer in the same order, or ``None``.
    shape
        ``(nx, ny, nz)``.
    reducer
        Reduction method, see :func:`overlay`.
    **kwargs
        Forwarded to :func:`overlay`.

    Returns
    -------
    np.ndarray
        Flat plane of ``nx * ny`` samples, element ``x + nx * y`` holding
        pixel ``(x, y)``.
    """
    dims = tuple(int(size) for size in shape)
    if len(dims) != 3:
        raise ValueError(f"Shape must have three axes (nx, ny, nz), got {dims}")
    expected = dims[0] * dims[1] * dims[2]

    samples = as_samples(buffer)
    if samples.size != expected:
        raise ValueError(f"Buffer holds {samples.size} samples but shape {dims} needs {expected}")
    cube = samples.reshape(dims, order="F")

    excluded = None
    if mask is not None:
        flat_mask = np.asarray(mask, dtype=bool).ravel()
        if flat_mask.size != expected:
            raise MaskShapeMismatchError(flat_mask.shape, (expected,))
        excluded = flat_mask.reshape(dims, order="F")

    return overlay(cube, excluded, reducer, **kwargs).ravel(order="F")
