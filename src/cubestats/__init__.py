"""Masked statistics over numeric sample sets and data cubes.

This package provides a percentile / quantile estimator over arbitrarily
large flat sample sets and a masked per-pixel reduction that collapses the
depth axis of a 3-D cube into a 2-D plane, both generic over the ten integer
and floating point element types.
"""

from cubestats.cube import CubeStatistics
from cubestats.overlay import Reducer, overlay, overlay_buffer
from cubestats.percentile import Percentile, quantile

__all__ = ["CubeStatistics", "Percentile", "Reducer", "overlay", "overlay_buffer", "quantile"]
