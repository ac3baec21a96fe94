"""Wall-clock source.

All simulation time is integer milliseconds since the epoch.  Services
never read the clock themselves; the scheduler and the REST layer sample
it once and pass ``now`` down.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def wall_clock_ms() -> int:
    return int(time.time() * 1000)
