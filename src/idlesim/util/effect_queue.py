"""Deferred side effects.

Combat resolution queues ledger mutations (XP, gold, veterancy) while the
primary state transition is computed and flushes them afterwards, so no
calculation observes a half-updated player.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

log = logging.getLogger(__name__)


class EffectQueue:
    """FIFO of callables applied by :meth:`flush`.

    Usage:
        effects = EffectQueue()
        effects.defer(add_gold, player, 25)
        ...
        effects.flush()
    """

    def __init__(self) -> None:
        self._pending: list[tuple[Callable[..., Any], tuple, dict]] = []

    def defer(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._pending.append((fn, args, kwargs))

    def flush(self) -> int:
        """Apply every queued effect in order.  Returns how many ran.

        Effects queued while flushing run in the same flush.
        """
        count = 0
        while self._pending:
            fn, args, kwargs = self._pending.pop(0)
            fn(*args, **kwargs)
            count += 1
        if count:
            log.debug("Flushed %d deferred effects", count)
        return count

    def __len__(self) -> int:
        return len(self._pending)
