"""Wall-clock helpers shared by the token codec and the rate limiters."""

from __future__ import annotations

import time
from typing import Callable

# Returns UNIX time in whole milliseconds.
Clock = Callable[[], int]


def now_ms() -> int:
    """Return the current UNIX time in milliseconds."""

    return time.time_ns() // 1_000_000
