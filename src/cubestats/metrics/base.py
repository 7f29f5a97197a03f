from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Statistic:
    """Container for a sample statistic."""

    name: str
    function: Callable[..., Any]
