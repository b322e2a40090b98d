"""Wall-clock helper. Components take a clock callable so tests can pin time."""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time as ms epoch."""
    return int(time.time() * 1000)
