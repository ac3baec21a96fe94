"""Production service: village construction, workers and accrual.

Responsibilities:
- Construction queue (colonize tasks) with cost escalation, City Hall
  building limit and queue limit
- Continuous production accrual for staffed buildings, computed purely
  from elapsed wall-clock time and capped by storage
- Collecting accrued output into village storage or the inventory
- Worker assignment, villager recruitment and building upgrades

Accrual is settled at the old rate before anything that changes a
building's rate (workers, level), so results do not depend on how often
the scheduler reconciles.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Optional

from idlesim.engine.progression import add_xp
from idlesim.loaders.game_config_loader import GameConfig
from idlesim.models.skills import COLONY
from idlesim.models.tasks import ActivityClass
from idlesim.models.village import CITY_HALL, VILLAGE_PREFIX, Building, Villager
from idlesim.util.constants import (
    EXTRA_WORKER_BONUS,
    LEVEL_PRODUCTION_BONUS,
    MS_PER_HOUR,
    UPGRADE_COST_GROWTH,
)
from idlesim.util.events import BuildingCompleted, TaskCancelled

if TYPE_CHECKING:
    from idlesim.engine.catalog import Catalog
    from idlesim.models.items import BuildingDefinition
    from idlesim.models.player import PlayerState
    from idlesim.models.village import Village
    from idlesim.util.events import EventBus

log = logging.getLogger(__name__)

_ESCALATION_BY_TIER = {1: 0.1, 2: 0.15}
_DEFAULT_ESCALATION = 0.2


# -- Formulas ------------------------------------------------------------

def level_multiplier(level: int) -> float:
    return 1 + LEVEL_PRODUCTION_BONUS * (level - 1)


def worker_scaling(workers: int) -> float:
    if workers <= 0:
        return 0.0
    return 1 + EXTRA_WORKER_BONUS * (workers - 1)


def max_workers_for_level(base_max: int, level: int) -> int:
    return base_max + (level - 1) // 2


def storage_capacity(definition: BuildingDefinition, level: int) -> float:
    """Accrual cap of a production building (level independent)."""
    if definition.production is None:
        return 0.0
    return definition.production.storage_capacity


def effective_rate(definition: BuildingDefinition, building: Building,
                   workers: list[Villager]) -> float:
    """Output per hour of a staffed production building."""
    if definition.production is None or not workers:
        return 0.0
    efficiency = sum(v.efficiency for v in workers)
    return (definition.production.rate * level_multiplier(building.level)
            * worker_scaling(len(workers)) * efficiency)


def construction_cost(definition: BuildingDefinition, existing: int) -> dict[str, int]:
    """Cost of one more building of a type when *existing* already stand."""
    rate = _ESCALATION_BY_TIER.get(definition.tier, _DEFAULT_ESCALATION)
    multiplier = 1 + rate * existing
    return {
        "wood": math.ceil(definition.base_cost.get("wood", 0) * multiplier),
        "stone": math.ceil(definition.base_cost.get("stone", 0) * multiplier),
    }


def upgrade_cost(definition: BuildingDefinition, level: int) -> dict[str, int]:
    growth = UPGRADE_COST_GROWTH ** (level - 1)
    return {
        "wood": math.ceil(definition.base_cost.get("wood", 0) * growth),
        "stone": math.ceil(definition.base_cost.get("stone", 0) * growth),
    }


def building_xp(cost: dict[str, int], tier: int, upgrade: bool = False) -> int:
    if tier == 1:
        xp = cost.get("wood", 0) * 0.5
    else:
        xp = (cost.get("wood", 0) + cost.get("stone", 0)) * 0.75
    if upgrade:
        xp *= 1.5
    return math.floor(xp)


class ProductionService:
    """Service for the village economy.

    Args:
        catalog: Building and villager definitions.
        event_bus: Event bus for inter-service communication.
        game_config: Queue, housing and building-limit tunables.
    """

    def __init__(self, catalog: Catalog, event_bus: EventBus,
                 game_config: GameConfig | None = None) -> None:
        self._catalog = catalog
        self._events = event_bus
        cfg = game_config or GameConfig()
        self._queue_limit = cfg.construction_queue_limit
        self._base_housing = cfg.base_housing
        self._base_building_limit = cfg.base_building_limit
        self._building_limit_per_level = cfg.building_limit_per_level
        self._hall_wood = cfg.city_hall_wood_per_level
        self._hall_stone = cfg.city_hall_stone_per_level
        self._hall_stone_from = cfg.city_hall_stone_from_level

    @staticmethod
    def _reject(player: PlayerState, reason: str, now: int) -> str:
        player.notifications.push(reason, "warning", now)
        return reason

    @staticmethod
    def _can_afford(village: Village, cost: dict[str, int]) -> bool:
        return all(village.resources.get(k, 0) >= v for k, v in cost.items())

    @staticmethod
    def _pay(village: Village, cost: dict[str, int]) -> None:
        for key, amount in cost.items():
            village.resources[key] = max(0.0, village.resources.get(key, 0) - amount)

    def building_limit(self, village: Village) -> int:
        return (self._base_building_limit
                + self._building_limit_per_level * (village.city_hall_level() - 1))

    def housing_capacity(self, village: Village) -> int:
        capacity = self._base_housing
        for b in village.buildings:
            definition = self._catalog.building(b.building_type)
            if b.completed and definition is not None:
                capacity += definition.housing_capacity
        return capacity

    # -- Tick ------------------------------------------------------------

    def reconcile(self, player: PlayerState, now: int) -> None:
        """Finish due constructions, then accrue production."""
        self.reconcile_construction(player, now)
        self.accrue(player, now)

    def accrue(self, player: PlayerState, now: int) -> None:
        for building in player.village.buildings:
            self._accrue_building(player, building, now)

    def _accrue_building(self, player: PlayerState, building: Building, now: int) -> None:
        if not building.completed:
            return
        definition = self._catalog.building(building.building_type)
        if definition is None or definition.production is None:
            return
        last = building.last_accrual_time
        building.last_accrual_time = now
        if last is None:
            return
        workers = self._workers_of(player.village, building)
        if not workers:
            return
        elapsed_hours = max(0, now - last) / MS_PER_HOUR
        produced = effective_rate(definition, building, workers) * elapsed_hours
        building.accumulated = min(storage_capacity(definition, building.level),
                                   building.accumulated + produced)

    @staticmethod
    def _workers_of(village: Village, building: Building) -> list[Villager]:
        workers = []
        for vid in building.assigned_workers:
            villager = village.villager(vid)
            if villager is not None:
                workers.append(villager)
        return workers

    # ===================================================================
    # Construction
    # ===================================================================

    def start_construction(self, player: PlayerState, building_type: str,
                           now: int) -> Optional[str]:
        """Queue a new building.

        Returns:
            None on success, or a reason string if the build was rejected.
        """
        village = player.village
        definition = self._catalog.building(building_type)
        if definition is None:
            return self._reject(player, f"Unknown building: {building_type}", now)
        if player.skill_level(COLONY) < definition.level_required:
            return self._reject(
                player, f"Cannot build {definition.name}: Level "
                        f"{definition.level_required} required", now)
        base = definition.requires_base_building
        if base is not None and not any(
                b.building_type == base and b.completed for b in village.buildings):
            base_def = self._catalog.building(base)
            base_name = base_def.name if base_def is not None else base
            return self._reject(
                player, f"Cannot build {definition.name}: Requires {base_name} "
                        f"to be built first", now)
        if definition.unique and village.count_of(building_type) > 0:
            return self._reject(
                player, f"You can only build one {definition.name}. Upgrade it instead!", now)

        cost = construction_cost(definition, village.count_of(building_type, include_queued=False))
        if not self._can_afford(village, cost):
            return self._reject(
                player, f"Insufficient resources! Need {cost['wood']} wood, "
                        f"{cost['stone']} stone", now)
        total = len(village.buildings) + len(village.construction_queue)
        limit = self.building_limit(village)
        if total >= limit:
            return self._reject(
                player, f"Building limit reached! ({total}/{limit}). "
                        f"Upgrade City Hall to increase limit.", now)
        if len(village.construction_queue) >= self._queue_limit:
            return self._reject(
                player, f"Construction queue is full! (max {self._queue_limit} "
                        f"buildings at once)", now)

        self._pay(village, cost)
        building = Building(
            bid=village.new_id(building_type),
            building_type=building_type,
            completed=False,
            xp_reward=building_xp(cost, definition.tier),
        )
        village.construction_queue.append(building)
        player.ledger(ActivityClass.COLONIZE).start(
            building.bid, int(definition.construction_time * 1000), now)
        player.notifications.push(f"Started building {definition.name}", "info", now)
        log.info("Player %d: construction of %s started (%s)", player.uid,
                 building_type, building.bid)
        return None

    def reconcile_construction(self, player: PlayerState, now: int) -> None:
        village = player.village
        ledger = player.ledger(ActivityClass.COLONIZE)
        for task in ledger.due(now):
            ledger.stop(task.subject_id)
            building = next(
                (b for b in village.construction_queue if b.bid == task.subject_id), None)
            if building is None:
                log.warning("Player %d: construction task %s has no queued building",
                            player.uid, task.subject_id)
                self._events.emit(TaskCancelled(player.uid, "colonize", task.subject_id,
                                                "no queued building"))
                continue
            village.construction_queue.remove(building)
            building.completed = True
            building.last_accrual_time = task.deadline
            building.accumulated = 0.0
            village.buildings.append(building)
            task.completed = True

            definition = self._catalog.building(building.building_type)
            name = definition.name if definition is not None else building.building_type
            add_xp(player, COLONY, building.xp_reward, now)
            player.notifications.push(f"{name} construction complete!", "reward", now)
            log.info("Player %d: %s completed", player.uid, building.bid)
            self._events.emit(BuildingCompleted(player.uid, building.bid, building.building_type))

    # ===================================================================
    # Villagers
    # ===================================================================

    def recruit_villager(self, player: PlayerState, villager_type: str,
                         now: int) -> Optional[str]:
        village = player.village
        vtype = self._catalog.villager_type(villager_type)
        if vtype is None:
            return self._reject(player, f"Unknown villager type: {villager_type}", now)
        if village.resources.get("food", 0) < vtype.recruitment_cost:
            return self._reject(
                player, f"Insufficient food! Need {vtype.recruitment_cost} food", now)
        if len(village.villagers) >= self.housing_capacity(village):
            return self._reject(player, "Not enough housing! Build more huts or houses", now)

        self._pay(village, {"food": vtype.recruitment_cost})
        villager = Villager(
            vid=village.new_id("villager"),
            name=f"{vtype.name} {len(village.villagers) + 1}",
            villager_type=villager_type,
            efficiency=vtype.efficiency,
        )
        village.villagers.append(villager)
        add_xp(player, COLONY, vtype.xp_reward, now)
        player.notifications.push(f"Recruited {vtype.name}!", "reward", now)
        return None

    def assign_worker(self, player: PlayerState, villager_id: str,
                      building_id: str | None, now: int) -> Optional[str]:
        """Assign a villager to a building, or unassign with ``building_id=None``."""
        village = player.village
        villager = village.villager(villager_id)
        if villager is None:
            return self._reject(player, f"Unknown villager: {villager_id}", now)

        target = None
        if building_id is not None:
            if villager.assigned_building == building_id:
                return None
            target = village.building(building_id)
            if target is None or not target.completed:
                return self._reject(player, "Building not found or not completed", now)
            definition = self._catalog.building(target.building_type)
            if definition is None or definition.max_workers <= 0:
                return self._reject(player, "This building cannot employ workers", now)
            cap = max_workers_for_level(definition.max_workers, target.level)
            if len(target.assigned_workers) >= cap:
                return self._reject(player, f"Building is full! (max {cap} workers)", now)

        previous = village.building(villager.assigned_building) \
            if villager.assigned_building else None
        if previous is not None:
            self._accrue_building(player, previous, now)
            if villager_id in previous.assigned_workers:
                previous.assigned_workers.remove(villager_id)
        villager.assigned_building = None

        if target is not None:
            self._accrue_building(player, target, now)
            target.assigned_workers.append(villager_id)
            villager.assigned_building = target.bid
        return None

    def enforce_worker_cap(self, player: PlayerState, building: Building) -> list[str]:
        """Unassign workers above the building's cap, most recent first."""
        definition = self._catalog.building(building.building_type)
        if definition is None:
            return []
        cap = max_workers_for_level(definition.max_workers, building.level)
        removed: list[str] = []
        while len(building.assigned_workers) > cap:
            vid = building.assigned_workers.pop()
            villager = player.village.villager(vid)
            if villager is not None:
                villager.assigned_building = None
            removed.append(vid)
        return removed

    # ===================================================================
    # Collect & upgrade
    # ===================================================================

    def collect(self, player: PlayerState, building_id: str, now: int) -> Optional[str]:
        """Move a building's accrued output into storage or the inventory."""
        village = player.village
        building = village.building(building_id)
        if building is None or not building.completed:
            return self._reject(player, "Building not found or not completed", now)
        definition = self._catalog.building(building.building_type)
        if definition is None or definition.production is None:
            return self._reject(player, "This building does not produce anything", now)
        if not building.assigned_workers:
            return self._reject(
                player, "Assign workers to this building before collecting", now)

        self._accrue_building(player, building, now)
        amount = math.floor(building.accumulated)
        if amount <= 0:
            return self._reject(player, "No resources ready to collect yet", now)

        resource = definition.production.resource
        if resource.startswith(VILLAGE_PREFIX):
            stored = village.add_resource(resource[len(VILLAGE_PREFIX):], amount)
            label = resource[len(VILLAGE_PREFIX):]
            if stored < amount:
                player.notifications.push(
                    f"Village {label} storage full, {amount - math.floor(stored)} lost",
                    "warning", now)
        else:
            player.add_item(resource, amount)
            label = self._catalog.item_name(resource)

        building.accumulated = 0.0
        building.last_accrual_time = now
        add_xp(player, COLONY, max(1, amount), now)
        player.notifications.push(f"Collected {amount} {label}", "reward", now)
        return None

    def upgrade(self, player: PlayerState, building_id: str, now: int) -> Optional[str]:
        village = player.village
        building = village.building(building_id)
        if building is None or not building.completed:
            return self._reject(player, "Building not found or not completed", now)
        definition = self._catalog.building(building.building_type)
        if definition is None:
            return self._reject(player, "Unknown building type", now)

        if building.building_type == CITY_HALL:
            cost = {"wood": building.level * self._hall_wood, "stone": 0}
            if building.level >= self._hall_stone_from:
                cost["stone"] = building.level * self._hall_stone
            if not self._can_afford(village, cost):
                return self._reject(
                    player, f"Insufficient resources! Need {cost['wood']} wood, "
                            f"{cost['stone']} stone", now)
            self._pay(village, cost)
            building.level += 1
            add_xp(player, COLONY, math.floor((cost["wood"] + cost["stone"]) * 0.5), now)
            player.notifications.push(
                f"City Hall upgraded to Level {building.level}! Building limit "
                f"increased to {self.building_limit(village)}.", "reward", now)
            return None

        if definition.production is None:
            return self._reject(player, "This building cannot be upgraded", now)

        cost = upgrade_cost(definition, building.level)
        if not self._can_afford(village, cost):
            return self._reject(
                player, f"Insufficient resources! Need {cost['wood']} wood, "
                        f"{cost['stone']} stone", now)
        self._accrue_building(player, building, now)
        self._pay(village, cost)
        building.level += 1
        self.enforce_worker_cap(player, building)
        add_xp(player, COLONY, building_xp(cost, definition.tier, upgrade=True), now)
        cap = max_workers_for_level(definition.max_workers, building.level)
        player.notifications.push(
            f"{definition.name} upgraded to Level {building.level}! Production: "
            f"+{round((level_multiplier(building.level) - 1) * 100)}%, Max Workers: {cap}",
            "reward", now)
        return None
