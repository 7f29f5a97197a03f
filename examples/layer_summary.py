"""Example: collapse a masked spectral cube and summarize its layers."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import numpy as np

from cubestats import CubeStatistics
from cubestats.config import configure_logging, load_config

logger = logging.getLogger(__name__)


def _synthetic_cube(shape: tuple[int, int, int] = (64, 64, 16), seed: int = 0) -> tuple[np.ndarray, np.ndarray]:
    """Build a noisy int16 cube with a bright source and a flagged channel.

    Args:
        shape: Cube shape ``(nx, ny, nz)``
        seed: Random seed for the noise

    Returns:
        The cube and its exclusion mask
    """
    rng = np.random.default_rng(seed)
    nx, ny, nz = shape
    x, y = np.meshgrid(np.arange(nx), np.arange(ny), indexing="ij")
    source = 500.0 * np.exp(-((x - nx / 2) ** 2 + (y - ny / 2) ** 2) / 50.0)
    cube = source[:, :, np.newaxis] + rng.normal(0.0, 20.0, size=shape)

    mask = np.zeros(shape, dtype=bool)
    # channel 3 is flagged as radio interference
    mask[:, :, 3] = True
    mask[cube < -40.0] = True
    return cube.astype(np.int16), mask


def main(config_path: str | None = None) -> None:
    config = load_config(Path(config_path) if config_path else None)
    configure_logging(config.log_level)

    cube, mask = _synthetic_cube()
    stats = CubeStatistics.from_config(cube, mask, config)
    logger.info("Loaded %r", stats)

    for reducer in ("mean", "median", "max"):
        plane = stats.overlay(reducer)
        logger.info("%s plane: peak %d at %s", reducer, plane.max(), np.unravel_index(plane.argmax(), plane.shape))

    logger.info("Quantile at %.2f: %.3f", stats.fraction, stats.quantile())
    print(stats.summarize().to_string())
    print(stats.summarize_layers().to_string(index=False))


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
