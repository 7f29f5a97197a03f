"""Configuration for the statistics engines.

Settings live in a :class:`StatisticsConfig` dataclass, optionally loaded from
a TOML file and overridden by keyword arguments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for older environments
    import tomli as tomllib  # type: ignore[import]

from cubestats.metrics import STATISTIC_TIERS
from cubestats.overlay import EMPTY_POLICIES

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class StatisticsConfig:
    """Tunable settings shared by the percentile, overlay and summary engines."""

    fraction: float = 0.5
    max_workers: int | None = None
    n_jobs: int = 1
    stat_tier: str = "core"
    empty: str = "fill"
    fill_value: float | None = None
    xatol: float = 1e-10
    log_level: int = logging.INFO

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.fraction) <= 1.0:
            raise ValueError(f"fraction must be in the range [0, 1], got {self.fraction}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.n_jobs < 1:
            raise ValueError(f"n_jobs must be at least 1, got {self.n_jobs}")
        if self.stat_tier not in STATISTIC_TIERS:
            raise ValueError(f"Unknown stat_tier {self.stat_tier!r}; expected one of {sorted(STATISTIC_TIERS)}")
        if self.empty not in EMPTY_POLICIES:
            raise ValueError(f"empty must be one of {sorted(EMPTY_POLICIES)}, got {self.empty!r}")
        if self.xatol <= 0:
            raise ValueError(f"xatol must be positive, got {self.xatol}")


def _parse_log_level(value: str | int | None) -> int:
    """Return a logging level from common string/int inputs.

    Parameters
    ----------
    value
        The value to parse.

    Returns
    -------
    int
        The logging level.

    Examples
    --------
    >>> _parse_log_level("INFO")
    20
    >>> _parse_log_level("DEBUG")
    10
    >>> _parse_log_level(logging.WARNING)
    30
    >>> _parse_log_level(None)
    20
    """
    if value is None:
        return logging.INFO
    if isinstance(value, int):
        return value
    return getattr(logging, str(value).upper(), logging.INFO)


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def load_config(path: Path | str | None = None, **overrides: Any) -> StatisticsConfig:
    """Parse a TOML configuration file and override it with keyword arguments.

    Parameters
    ----------
    path
        Optional TOML file. Keys match the :class:`StatisticsConfig` fields;
        a ``[cubestats]`` table is used when present, otherwise the top level.
    **overrides
        Field values that take precedence over the file. ``None`` values are
        ignored so unset command-line options do not mask the file.

    Returns
    -------
    StatisticsConfig
        The validated configuration.

    Raises
    ------
    ValueError
        If a setting is out of range or a key is unknown.
    """
    data: dict[str, Any] = {}
    if path is not None:
        with Path(path).expanduser().open("rb") as f:
            data = tomllib.load(f)
        data = dict(data.get("cubestats", data))
        logger.debug("Loaded configuration from %s", path)

    data.update({key: value for key, value in overrides.items() if value is not None})

    known = set(StatisticsConfig.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    return StatisticsConfig(
        fraction=float(data.get("fraction", 0.5)),
        max_workers=_optional_int(data.get("max_workers")),
        n_jobs=int(data.get("n_jobs", 1)),
        stat_tier=str(data.get("stat_tier", "core")),
        empty=str(data.get("empty", "fill")),
        fill_value=_optional_float(data.get("fill_value")),
        xatol=float(data.get("xatol", 1e-10)),
        log_level=_parse_log_level(data.get("log_level")),
    )


def configure_logging(level: str | int | None = None) -> None:
    """Attach a stream handler to the root logger at *level*.

    The library itself never installs handlers; applications call this once.
    """
    logging.basicConfig(level=_parse_log_level(level), format=_LOG_FORMAT)
