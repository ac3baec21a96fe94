"""Typed event bus: decoupled inter-service communication.

Services emit frozen-dataclass events; anything interested (autosave,
logging, tests) subscribes by event type.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, TypeVar, Type

T = TypeVar("T")


# -- Task events ---------------------------------------------------------

@dataclass(frozen=True)
class TaskCompleted:
    """A timed task reached its deadline and paid out."""
    uid: int
    activity: str
    subject_id: str


@dataclass(frozen=True)
class TaskCancelled:
    """A due task was dropped without reward (materials or definition gone)."""
    uid: int
    activity: str
    subject_id: str
    reason: str


# -- Village events ------------------------------------------------------

@dataclass(frozen=True)
class BuildingCompleted:
    """A building left the construction queue."""
    uid: int
    building_id: str
    building_type: str


# -- Combat events -------------------------------------------------------

@dataclass(frozen=True)
class CombatTurnResolved:
    """One combat action was resolved (emitted while the combat lock is held)."""
    uid: int
    actor: str
    damage: int


@dataclass(frozen=True)
class EnemyDefeated:
    uid: int
    enemy_id: str


@dataclass(frozen=True)
class PlayerDied:
    uid: int
    enemy_id: str


# -- Event Bus -----------------------------------------------------------

class EventBus:
    """Simple synchronous event bus with typed events.

    Usage:
        bus = EventBus()
        bus.on(PlayerDied, lambda e: print(e.uid))
        bus.emit(PlayerDied(uid=1, enemy_id="chaos-cultist"))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Unregister a handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers."""
        for handler in list(self._handlers.get(type(event), [])):
            handler(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
