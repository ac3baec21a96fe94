"""Farming service: plots, planting and harvesting.

Growth is a ``grow`` task per plot.  A ripe crop stays in its plot (the
task is kept, flagged completed) until the player harvests it.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Optional

from idlesim.engine.progression import add_gold, add_xp
from idlesim.loaders.game_config_loader import GameConfig
from idlesim.models.farming import FarmingPlot
from idlesim.models.skills import FARMING
from idlesim.models.tasks import ActivityClass
from idlesim.util.events import TaskCancelled, TaskCompleted

if TYPE_CHECKING:
    from idlesim.engine.catalog import Catalog
    from idlesim.models.player import PlayerState
    from idlesim.util.events import EventBus

log = logging.getLogger(__name__)


class FarmingService:
    """Service for farming plots.

    Args:
        catalog: Seed definitions.
        event_bus: Event bus for inter-service communication.
        game_config: Plot pricing.
    """

    def __init__(self, catalog: Catalog, event_bus: EventBus,
                 game_config: GameConfig | None = None) -> None:
        self._catalog = catalog
        self._events = event_bus
        cfg = game_config or GameConfig()
        self._plot_base_cost = cfg.plot_base_cost

    @staticmethod
    def _reject(player: PlayerState, reason: str, now: int) -> str:
        player.notifications.push(reason, "warning", now)
        return reason

    def plot_cost(self, player: PlayerState) -> int:
        return self._plot_base_cost * (len(player.plots) + 1)

    def purchase_plot(self, player: PlayerState, now: int) -> Optional[str]:
        cost = self.plot_cost(player)
        if player.gold < cost:
            return self._reject(player, f"Not enough gold! Need {cost}", now)
        add_gold(player, -cost)
        pid = f"plot-{len(player.plots) + 1}"
        player.plots[pid] = FarmingPlot(pid)
        player.notifications.push(f"Purchased a new farming plot for {cost} gold", "info", now)
        return None

    def plant(self, player: PlayerState, plot_id: str, seed_id: str,
              now: int) -> Optional[str]:
        plot = player.plots.get(plot_id)
        if plot is None:
            return self._reject(player, f"Unknown plot: {plot_id}", now)
        if not plot.is_empty:
            return self._reject(player, "This plot is already planted", now)
        seed = self._catalog.seed(seed_id)
        if seed is None:
            return self._reject(player, f"Unknown seed: {seed_id}", now)
        if player.skill_level(FARMING) < seed.level_required:
            return self._reject(player, f"Requires Farming level {seed.level_required}", now)
        if player.count(seed_id) < 1:
            return self._reject(player, f"You don't have any {seed.name}", now)

        player.remove_item(seed_id, 1)
        plot.seed_id = seed_id
        player.ledger(ActivityClass.GROW).start(plot_id, int(seed.grow_time * 1000), now)
        player.notifications.push(f"Planted {seed.name}", "info", now)
        return None

    def reconcile(self, player: PlayerState, now: int) -> None:
        """Flag ripe crops (once each) and notify the player."""
        ledger = player.ledger(ActivityClass.GROW)
        for task in ledger.due(now):
            plot = player.plots.get(task.subject_id)
            seed = self._catalog.seed(plot.seed_id) if plot and plot.seed_id else None
            if plot is None or seed is None:
                log.warning("Player %d: dropping grow task for %s", player.uid, task.subject_id)
                ledger.stop(task.subject_id)
                if plot is not None:
                    plot.seed_id = None
                self._events.emit(TaskCancelled(player.uid, "grow", task.subject_id,
                                                "unknown plot or seed"))
                continue
            task.completed = True
            crop = self._catalog.item_name(seed.crop_id)
            player.notifications.push(f"{crop} is ready to harvest", "reward", now)
            self._events.emit(TaskCompleted(player.uid, "grow", task.subject_id))

    def harvest(self, player: PlayerState, plot_id: str, now: int) -> Optional[str]:
        plot = player.plots.get(plot_id)
        if plot is None:
            return self._reject(player, f"Unknown plot: {plot_id}", now)
        ledger = player.ledger(ActivityClass.GROW)
        task = ledger.get(plot_id)
        if plot.is_empty or task is None:
            return self._reject(player, "Nothing is growing here", now)
        self.reconcile(player, now)
        if ledger.get(plot_id) is None:
            return self._reject(player, "Nothing is growing here", now)
        if not task.completed:
            remaining = math.ceil(task.remaining_ms(now) / 1000)
            return self._reject(player, f"Crop not ready yet! {remaining}s remaining", now)

        seed = self._catalog.seed(plot.seed_id)
        ledger.stop(plot_id)
        plot.seed_id = None
        if seed is None:
            log.warning("Player %d: harvest on %s with unknown seed", player.uid, plot_id)
            return self._reject(player, "This crop can no longer be harvested", now)
        player.add_item(seed.crop_id, seed.crop_yield)
        add_xp(player, FARMING, seed.xp_reward, now)
        player.notifications.push(
            f"Harvested {seed.crop_yield} {self._catalog.item_name(seed.crop_id)}", "reward", now)
        return None
