"""Task service: the idle task ledger for gathering, crafting and contacts.

Responsibilities:
- Starting and stopping timed tasks, enforcing single-activity focus
  across gathering, smelting, engineering and combat
- Reconciling due tasks: rewards, veterancy, auto-resume chains
- Gather cycles: per-resource counters, respawn cooldowns and the
  auto-resume watcher that restarts a resource once it has respawned
- Ingredient re-validation and material-save rolls for crafts
- Planet contact tasks

Auto-resume chains are anchored at the previous deadline, so a long gap
between reconciliations (the player was away) yields every cycle that
fits into it.

All methods operate on PlayerState objects. No network I/O.
"""

from __future__ import annotations

import logging
import math
import random
from typing import TYPE_CHECKING, Optional

from idlesim.engine.progression import add_gold, add_xp
from idlesim.engine.veterancy_service import gather_limit_bonus
from idlesim.loaders.game_config_loader import GameConfig
from idlesim.models.items import RecipeKind
from idlesim.models.skills import COMMUNICATION, ENGINEERING, GATHERING, SMELTING
from idlesim.models.tasks import PRODUCTIVE_CLASSES, ActivityClass, TimedTask
from idlesim.util.events import TaskCancelled, TaskCompleted

if TYPE_CHECKING:
    from idlesim.engine.catalog import Catalog
    from idlesim.engine.veterancy_service import VeterancyService
    from idlesim.models.items import GatherResource, Recipe
    from idlesim.models.player import PlayerState
    from idlesim.util.events import EventBus

log = logging.getLogger(__name__)

_CRAFT_ACTIVITY = {
    RecipeKind.SMELT: ActivityClass.SMELT,
    RecipeKind.ENGINEER: ActivityClass.ENGINEER,
}
_CRAFT_SKILL = {
    ActivityClass.SMELT: SMELTING,
    ActivityClass.ENGINEER: ENGINEERING,
}


class TaskService:
    """Service for timed gather, craft and contact tasks.

    Args:
        catalog: Reference data lookups.
        veterancy: Veterancy awards and bonuses.
        event_bus: Event bus for inter-service communication.
        game_config: Gather limit and catch-up bound.
        rng: Random source for material-save rolls.
    """

    def __init__(self, catalog: Catalog, veterancy: VeterancyService, event_bus: EventBus,
                 game_config: GameConfig | None = None,
                 rng: random.Random | None = None) -> None:
        self._catalog = catalog
        self._veterancy = veterancy
        self._events = event_bus
        self._rng = rng or random.Random()
        cfg = game_config or GameConfig()
        self._base_gather_limit = cfg.base_gather_limit
        self._max_catchup = max(1, cfg.max_catchup_cycles)

    # -- Helpers ---------------------------------------------------------

    @staticmethod
    def _reject(player: PlayerState, reason: str, now: int) -> str:
        player.notifications.push(reason, "warning", now)
        return reason

    def _enter(self, player: PlayerState, activity: ActivityClass, subject_id: str,
               now: int) -> None:
        """Make *subject_id* the only running productive task and stop combat."""
        self.stop_productive(player, now, keep=activity)
        ledger = player.ledger(activity)
        for sid in list(ledger.tasks):
            if sid != subject_id:
                ledger.stop(sid)
        if activity is ActivityClass.GATHER:
            for rid, cycle in player.gather_cycles.items():
                if rid != subject_id:
                    cycle.auto_resume = False
        if player.combat.in_combat:
            player.combat.stop()
            player.notifications.push("Combat stopped", "info", now)

    def stop_productive(self, player: PlayerState, now: int,
                        keep: ActivityClass | None = None) -> None:
        """Stop every gather/craft activity except *keep*.

        Tasks already past their deadline are paid out first.
        """
        self._settle(player, now)
        for activity in PRODUCTIVE_CLASSES:
            if activity is keep:
                continue
            removed = player.ledger(activity).stop_all()
            if activity is ActivityClass.GATHER:
                for cycle in player.gather_cycles.values():
                    cycle.auto_resume = False
            if removed:
                log.debug("Player %d: stopped %s %s", player.uid, activity.value, removed)

    def _settle(self, player: PlayerState, now: int) -> None:
        self._reconcile_gathering(player, now)
        for activity in (ActivityClass.SMELT, ActivityClass.ENGINEER):
            self._reconcile_crafting(player, activity, now)

    # -- Reconciliation --------------------------------------------------

    def reconcile(self, player: PlayerState, now: int) -> None:
        """Apply every task of *player* that is due at *now*."""
        self._settle(player, now)
        self._reconcile_contacts(player, now)

    # ===================================================================
    # Gathering
    # ===================================================================

    def start_gathering(self, player: PlayerState, resource_id: str, now: int,
                        auto_resume: bool = True) -> Optional[str]:
        """Start gathering a resource.

        Returns:
            None on success, or a reason string if the start was rejected.
        """
        self._settle(player, now)
        res = self._catalog.resource(resource_id)
        if res is None:
            return self._reject(player, f"Unknown resource: {resource_id}", now)
        if player.skill_level(GATHERING) < res.level_required:
            return self._reject(
                player, f"Requires Salvaging level {res.level_required}", now)
        cycle = player.gather_cycles.get(resource_id)
        if cycle is not None and cycle.on_cooldown(now):
            remaining = math.ceil((cycle.respawn_deadline - now) / 1000)
            return self._reject(
                player, f"{res.name} is respawning ({remaining}s remaining)", now)

        self._enter(player, ActivityClass.GATHER, resource_id, now)
        cycle = player.gather_cycle(resource_id)
        cycle.respawn_deadline = None
        cycle.auto_resume = auto_resume
        player.ledger(ActivityClass.GATHER).start(
            resource_id, self._gather_duration(player, res), now, auto_resume)
        log.debug("Player %d: gathering %s", player.uid, resource_id)
        return None

    def stop_gathering(self, player: PlayerState, now: int,
                       resource_id: str | None = None) -> None:
        """Stop gathering one resource (or all when *resource_id* is None)."""
        self._reconcile_gathering(player, now)
        ledger = player.ledger(ActivityClass.GATHER)
        targets = [resource_id] if resource_id is not None else list(player.gather_cycles)
        for rid in targets:
            cycle = player.gather_cycles.get(rid)
            if cycle is not None:
                cycle.auto_resume = False
        if resource_id is None:
            ledger.stop_all()
        else:
            ledger.stop(resource_id)

    def _gather_duration(self, player: PlayerState, res: GatherResource) -> int:
        return self._veterancy.task_duration(player, GATHERING, res.base_time)

    def _reconcile_gathering(self, player: PlayerState, now: int) -> None:
        ledger = player.ledger(ActivityClass.GATHER)
        for _ in range(self._max_catchup):
            progressed = False
            for task in ledger.due(now):
                self._complete_gather(player, task, now)
                progressed = True
            if self._resume_respawned(player, now):
                progressed = True
            if not progressed:
                break

    def _complete_gather(self, player: PlayerState, task: TimedTask, now: int) -> None:
        ledger = player.ledger(ActivityClass.GATHER)
        rid = task.subject_id
        res = self._catalog.resource(rid)
        if res is None:
            log.warning("Player %d: dropping gather task for unknown resource %s",
                        player.uid, rid)
            ledger.stop(rid)
            self._events.emit(TaskCancelled(player.uid, "gather", rid, "unknown resource"))
            return

        finished_at = task.deadline
        vet_level = player.resource_veterancy_level(rid)
        extra = self._veterancy.roll_extra_yield(vet_level)
        total = 1 + extra
        player.add_item(rid, total)

        bonus = self._veterancy.bonuses(player, GATHERING)
        xp = math.floor(res.xp_reward * (1 + bonus.get("xp_bonus", 0.0) / 100))
        add_xp(player, GATHERING, xp, now)
        self._veterancy.award(player, GATHERING, rid, xp)

        if extra:
            player.notifications.push(f"{res.name} +{total} ({extra} bonus)", "reward", now)
        else:
            player.notifications.push(f"{res.name} +1", "reward", now)
        task.completed = True
        self._events.emit(TaskCompleted(player.uid, "gather", rid))

        cycle = player.gather_cycle(rid)
        limit = self._base_gather_limit + gather_limit_bonus(vet_level)
        if cycle.count + 1 >= limit:
            cycle.count = 0
            if res.respawn_time > 0:
                ledger.stop(rid)
                delay = math.floor(
                    res.respawn_time * 1000 * (1 - bonus.get("respawn_speed", 0.0) / 100))
                cycle.respawn_deadline = finished_at + delay
                player.notifications.push(
                    f"{res.name} depleted, respawning in {math.ceil(delay / 1000)}s", "info", now)
                log.debug("Player %d: %s depleted until %d", player.uid, rid,
                          cycle.respawn_deadline)
                return
        else:
            cycle.count += 1

        if cycle.auto_resume:
            ledger.start(rid, self._gather_duration(player, res), finished_at, True)
        else:
            ledger.stop(rid)

    def _resume_respawned(self, player: PlayerState, now: int) -> bool:
        """Restart auto-resuming resources whose respawn deadline has passed."""
        ledger = player.ledger(ActivityClass.GATHER)
        resumed = False
        for rid, cycle in player.gather_cycles.items():
            if cycle.respawn_deadline is None or now < cycle.respawn_deadline:
                continue
            respawned_at = cycle.respawn_deadline
            cycle.respawn_deadline = None
            if not cycle.auto_resume or ledger.get(rid) is not None:
                continue
            res = self._catalog.resource(rid)
            if res is None:
                continue
            ledger.start(rid, self._gather_duration(player, res), respawned_at, True)
            resumed = True
        return resumed

    # ===================================================================
    # Smelting & engineering
    # ===================================================================

    def start_crafting(self, player: PlayerState, kind: RecipeKind, recipe_id: str,
                       now: int, auto_resume: bool = True) -> Optional[str]:
        """Start a smelting or engineering recipe.

        Returns:
            None on success, or a reason string if the start was rejected.
        """
        self._settle(player, now)
        activity = _CRAFT_ACTIVITY[kind]
        skill = _CRAFT_SKILL[activity]
        recipe = self._catalog.recipe(recipe_id, kind)
        if recipe is None:
            return self._reject(player, f"Unknown recipe: {recipe_id}", now)
        if player.skill_level(skill) < recipe.level_required:
            return self._reject(
                player, f"Requires {skill.capitalize()} level {recipe.level_required}", now)
        missing = player.missing_items(recipe.ingredients)
        if missing is not None:
            return self._reject(
                player, f"Not enough {self._catalog.item_name(missing)}", now)

        self._enter(player, activity, recipe_id, now)
        player.ledger(activity).start(
            recipe_id, self._veterancy.task_duration(player, skill, recipe.time),
            now, auto_resume)
        log.debug("Player %d: %s %s", player.uid, activity.value, recipe_id)
        return None

    def stop_crafting(self, player: PlayerState, kind: RecipeKind, now: int,
                      recipe_id: str | None = None) -> None:
        activity = _CRAFT_ACTIVITY[kind]
        self._reconcile_crafting(player, activity, now)
        ledger = player.ledger(activity)
        if recipe_id is None:
            ledger.stop_all()
        else:
            ledger.stop(recipe_id)

    def _reconcile_crafting(self, player: PlayerState, activity: ActivityClass,
                            now: int) -> None:
        ledger = player.ledger(activity)
        for _ in range(self._max_catchup):
            due = ledger.due(now)
            if not due:
                break
            for task in due:
                self._complete_craft(player, activity, task, now)

    def _complete_craft(self, player: PlayerState, activity: ActivityClass,
                        task: TimedTask, now: int) -> None:
        ledger = player.ledger(activity)
        skill = _CRAFT_SKILL[activity]
        rid = task.subject_id
        recipe = self._catalog.recipe(rid)
        if recipe is None:
            log.warning("Player %d: dropping %s task for unknown recipe %s",
                        player.uid, activity.value, rid)
            ledger.stop(rid)
            self._events.emit(TaskCancelled(player.uid, activity.value, rid, "unknown recipe"))
            return

        if not player.has_items(recipe.ingredients):
            ledger.stop(rid)
            player.notifications.push(
                f"{recipe.name} cancelled: missing materials", "warning", now)
            self._events.emit(TaskCancelled(player.uid, activity.value, rid, "missing materials"))
            return

        bonus = self._veterancy.bonuses(player, skill)
        saved = self._rng.random() * 100 < bonus.get("material_save", 0.0)
        if not saved:
            for iid, amount in recipe.ingredients.items():
                player.remove_item(iid, amount)
        player.add_item(rid, 1)

        xp = math.floor(recipe.xp_reward * (1 + bonus.get("xp_bonus", 0.0) / 100))
        add_xp(player, skill, xp, now)
        self._veterancy.award(player, skill, rid, xp)

        suffix = " (materials saved!)" if saved else ""
        player.notifications.push(f"{recipe.name} +1{suffix}", "reward", now)
        task.completed = True
        self._events.emit(TaskCompleted(player.uid, activity.value, rid))

        if task.auto_resume and player.has_items(recipe.ingredients):
            ledger.start(rid, self._veterancy.task_duration(player, skill, recipe.time),
                         task.deadline, True)
            return
        ledger.stop(rid)
        if task.auto_resume:
            player.notifications.push(f"Out of materials for {recipe.name}", "info", now)

    # ===================================================================
    # Planet contact
    # ===================================================================

    def start_contact(self, player: PlayerState, planet_id: str, now: int) -> Optional[str]:
        """Pay the contact cost and start establishing contact with a planet."""
        planet = self._catalog.planet(planet_id)
        if planet is None:
            return self._reject(player, f"Unknown planet: {planet_id}", now)
        if planet_id in player.discovered_planets:
            return self._reject(player, f"{planet.name} has already been contacted", now)
        ledger = player.ledger(ActivityClass.CONTACT)
        if ledger.get(planet_id) is not None:
            return self._reject(player, f"Contact with {planet.name} already in progress", now)
        if player.gold < planet.contact_cost_gold:
            return self._reject(
                player, f"Not enough gold! Need {planet.contact_cost_gold}", now)

        add_gold(player, -planet.contact_cost_gold)
        ledger.start(planet_id, int(planet.contact_duration * 1000), now)
        log.info("Player %d: contacting planet %s", player.uid, planet_id)
        return None

    def _reconcile_contacts(self, player: PlayerState, now: int) -> None:
        ledger = player.ledger(ActivityClass.CONTACT)
        for task in ledger.due(now):
            pid = task.subject_id
            ledger.stop(pid)
            planet = self._catalog.planet(pid)
            if planet is None:
                log.warning("Player %d: dropping contact with unknown planet %s",
                            player.uid, pid)
                self._events.emit(TaskCancelled(player.uid, "contact", pid, "unknown planet"))
                continue
            task.completed = True
            if pid not in player.discovered_planets:
                player.discovered_planets.append(pid)
            add_xp(player, COMMUNICATION, planet.xp_reward, now)
            player.notifications.push(f"Contact established with {planet.name}!", "reward", now)
            self._events.emit(TaskCompleted(player.uid, "contact", pid))
