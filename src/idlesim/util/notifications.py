"""Per-player outbound notification queue.

Human-readable events for presentation layers.  Order of pushes is the
order of delivery.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Notification:
    message: str
    kind: str = "info"  # info | reward | warning | combat
    time_ms: int = 0


class NotificationQueue:
    """FIFO of notifications waiting to be drained."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def push(self, message: str, kind: str = "info", time_ms: int = 0) -> None:
        self._items.append(Notification(message=message, kind=kind, time_ms=time_ms))

    def drain(self) -> list[Notification]:
        """Return and clear all pending notifications."""
        items, self._items = self._items, []
        return items

    def peek(self) -> list[Notification]:
        return list(self._items)

    def messages(self) -> list[str]:
        return [n.message for n in self._items]

    def __len__(self) -> int:
        return len(self._items)
