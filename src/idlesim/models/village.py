"""Village (colony) model: buildings, villagers and village storage.

Production buildings accrue their output continuously; see
engine.production_service for the accrual rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

VILLAGE_RESOURCES = ("wood", "stone", "food", "herbs")
VILLAGE_PREFIX = "village-"
CITY_HALL = "city-hall"


@dataclass
class Villager:
    """A recruited worker.

    Attributes:
        vid: Unique villager id within the village.
        villager_type: VillagerType id.
        assigned_building: Building id the villager works at, or None.
        efficiency: Production multiplier contributed by this worker.
    """

    vid: str
    name: str = ""
    villager_type: str = "worker"
    assigned_building: Optional[str] = None
    efficiency: float = 1.0


@dataclass
class Building:
    """A constructed (or queued) building.

    Attributes:
        bid: Unique building id within the village.
        building_type: BuildingDefinition id.
        assigned_workers: Villager ids in assignment order.
        completed: False while the building sits in the construction queue.
        xp_reward: Colony XP granted when construction completes.
        last_accrual_time: Wall-clock ms of the last production accrual
            (None until the building first produces).
        accumulated: Produced but uncollected output.
    """

    bid: str
    building_type: str
    level: int = 1
    assigned_workers: list[str] = field(default_factory=list)
    completed: bool = True
    xp_reward: int = 0
    last_accrual_time: Optional[int] = None
    accumulated: float = 0.0


@dataclass
class Village:
    """Complete colony state of a player."""

    resources: dict[str, float] = field(default_factory=lambda: {
        "wood": 0.0, "stone": 0.0, "food": 0.0, "herbs": 0.0,
    })
    storage_capacity: dict[str, float] = field(default_factory=lambda: {
        "wood": 200.0, "stone": 100.0, "food": 150.0, "herbs": 100.0,
    })
    buildings: list[Building] = field(default_factory=list)
    villagers: list[Villager] = field(default_factory=list)
    construction_queue: list[Building] = field(default_factory=list)
    next_id: int = 1

    # -- Helpers ---------------------------------------------------------

    def new_id(self, prefix: str) -> str:
        """Return a fresh id such as ``hut-7``."""
        nid = f"{prefix}-{self.next_id}"
        self.next_id += 1
        return nid

    def building(self, bid: str) -> Optional[Building]:
        for b in self.buildings:
            if b.bid == bid:
                return b
        return None

    def villager(self, vid: str) -> Optional[Villager]:
        for v in self.villagers:
            if v.vid == vid:
                return v
        return None

    def count_of(self, building_type: str, include_queued: bool = True) -> int:
        """Number of buildings of a type (optionally counting the queue)."""
        n = sum(1 for b in self.buildings if b.building_type == building_type)
        if include_queued:
            n += sum(1 for b in self.construction_queue if b.building_type == building_type)
        return n

    def city_hall_level(self) -> int:
        for b in self.buildings:
            if b.building_type == CITY_HALL:
                return b.level
        return 1

    def add_resource(self, key: str, amount: float) -> float:
        """Add to village storage, capped at capacity.  Returns amount stored."""
        current = self.resources.get(key, 0.0)
        cap = self.storage_capacity.get(key, float("inf"))
        new_value = min(cap, current + amount)
        stored = max(0.0, new_value - current)
        self.resources[key] = max(current, new_value)
        return stored
