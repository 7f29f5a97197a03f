"""Element types accepted by the statistics engines.

Every algorithm in the package is written once against numpy arrays; this
module is the single place that knows which element types are supported, how
samples are widened to float64 for arithmetic, and how floating results are
narrowed back to the caller's element type.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

#: The ten element types a sample set or cube may carry.
SUPPORTED_DTYPES: tuple[np.dtype, ...] = tuple(
    np.dtype(name)
    for name in (
        "int8",
        "uint8",
        "int16",
        "uint16",
        "int32",
        "uint32",
        "int64",
        "uint64",
        "float32",
        "float64",
    )
)


class UnsupportedDtypeError(TypeError):
    """Raised when an array carries an element type outside SUPPORTED_DTYPES."""

    def __init__(self, dtype: Any):
        """Initialize the error."""
        names = ", ".join(d.name for d in SUPPORTED_DTYPES)
        super().__init__(f"Unsupported element type {dtype!s}; expected one of: {names}")


def check_dtype(dtype: Any) -> np.dtype:
    """Return *dtype* as a native-endian numpy dtype, validating support.

    Parameters
    ----------
    dtype
        Anything :class:`numpy.dtype` accepts.

    Returns
    -------
    np.dtype
        The validated dtype in native byte order.

    Raises
    ------
    UnsupportedDtypeError
        If the element type is not one of :data:`SUPPORTED_DTYPES`.
    """
    resolved = np.dtype(dtype)
    if not resolved.isnative:
        resolved = resolved.newbyteorder("=")
    if resolved not in SUPPORTED_DTYPES:
        raise UnsupportedDtypeError(resolved)
    return resolved


def as_array(values: Any) -> np.ndarray:
    """Return *values* as a native-endian ndarray of a supported type, keeping its shape."""
    arr = np.asarray(values)
    dtype = check_dtype(arr.dtype)
    if arr.dtype != dtype:
        # FITS buffers arrive big-endian
        arr = arr.astype(dtype)
    return arr


def as_samples(values: Any) -> np.ndarray:
    """Normalize any array-like into a contiguous 1-D sample set.

    Parameters
    ----------
    values
        A numpy array of any shape, a list, a tuple or any other buffer numpy
        can read.

    Returns
    -------
    np.ndarray
        Contiguous 1-D array keeping the input element type.

    Raises
    ------
    UnsupportedDtypeError
        If the element type is not supported.
    """
    return np.ascontiguousarray(as_array(values).ravel())


def to_float64(values: Any) -> np.ndarray:
    """Widen *values* to float64; no copy is made for float64 input."""
    return np.asarray(values, dtype=np.float64)


def is_floating(dtype: Any) -> bool:
    """Return whether *dtype* is one of the floating point element types."""
    return np.dtype(dtype).kind == "f"


def blank_value(dtype: Any) -> float | int:
    """Return the "no data" value for an element type.

    Follows the FITS ``BLANK`` convention: NaN for floating types and the
    smallest representable value for integer types (0 for unsigned ones).

    Examples
    --------
    >>> blank_value("float32")
    nan
    >>> blank_value("int16")
    -32768
    >>> blank_value("uint8")
    0
    """
    resolved = check_dtype(dtype)
    if is_floating(resolved):
        return float("nan")
    return int(np.iinfo(resolved).min)


def cast_to(values: Any, dtype: Any) -> np.ndarray:
    """Narrow floating point *values* to *dtype*.

    Integer targets truncate toward zero like a C cast. Values beyond the
    target range saturate at the range limits, and NaN becomes the target's
    :func:`blank_value`. Floating targets use ordinary IEEE rounding.

    Parameters
    ----------
    values
        Scalar or array of floating point results.
    dtype
        Target element type.

    Returns
    -------
    np.ndarray
        Array of the target type with the shape of *values* (0-d for scalars).
    """
    target = check_dtype(dtype)
    arr = to_float64(values)
    if is_floating(target):
        return arr.astype(target)

    info = np.iinfo(target)
    nan = np.isnan(arr)
    truncated = np.trunc(np.where(nan, 0.0, arr))
    too_low = truncated < info.min
    # float(info.max) rounds up for 64-bit types, so >= catches the overflow edge
    too_high = truncated >= float(info.max)
    in_range = ~(nan | too_low | too_high)

    out = np.zeros(arr.shape, dtype=target)
    out[in_range] = truncated[in_range].astype(target)
    out[too_low] = info.min
    out[too_high] = info.max
    out[nan] = info.min
    if np.any(too_low | too_high):
        logger.debug("Saturated %d values while casting to %s", int(np.sum(too_low | too_high)), target)
    return out
