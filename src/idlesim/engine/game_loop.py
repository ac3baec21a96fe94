"""Main game loop: asyncio-based reconciliation scheduler.

Responsibilities:
- Reconcile idle tasks (gather, craft, contact, construction, growth)
- Accrue village production
- Resolve combat ticks
- Periodic and on-demand state save

Each pass samples ``now`` once from the injected clock and hands the same
value to every job that is due.  Cadences only tune precision: every
ledger is defined in terms of elapsed wall-clock time, so a slow or
skipped pass catches up on the next one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from idlesim.util.clock import wall_clock_ms

if TYPE_CHECKING:
    from idlesim.engine.combat_service import CombatService
    from idlesim.engine.farming_service import FarmingService
    from idlesim.engine.player_service import PlayerService
    from idlesim.engine.production_service import ProductionService
    from idlesim.engine.task_service import TaskService
    from idlesim.loaders.game_config_loader import GameConfig
    from idlesim.models.player import PlayerState
    from idlesim.util.clock import Clock

log = logging.getLogger(__name__)

SaveCallback = Callable[[], Awaitable[None]]


@dataclass
class ScheduledJob:
    """A per-player reconciliation run every *interval_ms*."""

    name: str
    interval_ms: int
    fn: Callable[[PlayerState, int], object]
    next_due: int = 0


class GameLoop:
    """The central reconciliation loop.

    Args:
        players: Registry of players to reconcile.
        task_service: Gather, craft and contact tasks.
        production_service: Construction and production accrual.
        farming_service: Crop growth.
        combat_service: Combat ticks.
        game_config: Cadences and autosave interval.
        clock: Wall-clock source in ms (injected by tests).
        save_callback: Coroutine persisting all players.
    """

    def __init__(
        self,
        players: PlayerService,
        task_service: TaskService,
        production_service: ProductionService,
        farming_service: FarmingService,
        combat_service: CombatService,
        game_config: GameConfig | None = None,
        clock: Clock | None = None,
        save_callback: SaveCallback | None = None,
    ) -> None:
        self._players = players
        self._tasks = task_service
        self._production = production_service
        self._farming = farming_service
        self._combat = combat_service
        self._clock = clock or wall_clock_ms
        self._save_callback = save_callback
        self._running = False

        task_ms = game_config.task_tick_ms if game_config else 100
        production_ms = game_config.production_tick_ms if game_config else 1000
        combat_ms = game_config.combat_tick_ms if game_config else 100
        self._autosave_ms = game_config.autosave_interval_ms if game_config else 60_000
        self._jobs: list[ScheduledJob] = [
            ScheduledJob("tasks", task_ms, self._reconcile_tasks),
            ScheduledJob("production", production_ms, self._production.accrue),
            ScheduledJob("combat", combat_ms, self._combat.tick),
        ]
        self._interval = min(j.interval_ms for j in self._jobs) / 1000.0
        self._next_save: Optional[int] = None
        self._save_requested = False

        # --- Monitoring counters ---
        self.tick_count: int = 0
        self.started_at: float = 0.0
        self.last_tick_duration_ms: float = 0.0
        self.avg_tick_duration_ms: float = 0.0
        self._tick_duration_sum: float = 0.0
        self.save_count: int = 0

    # -- Jobs ------------------------------------------------------------

    def _reconcile_tasks(self, player: PlayerState, now: int) -> None:
        self._tasks.reconcile(player, now)
        self._production.reconcile_construction(player, now)
        self._farming.reconcile(player, now)

    @property
    def jobs(self) -> list[ScheduledJob]:
        return self._jobs

    def step(self, now: int | None = None) -> list[str]:
        """Run every job due at *now*.  Returns the names of the jobs run."""
        if now is None:
            now = self._clock()
        ran: list[str] = []
        for job in self._jobs:
            if now < job.next_due:
                continue
            job.next_due = now + job.interval_ms
            ran.append(job.name)
            for player in list(self._players.all_players.values()):
                try:
                    job.fn(player, now)
                except Exception:
                    log.exception("Job %s failed for player %d", job.name, player.uid)
        self.tick_count += 1
        return ran

    # -- Saving ----------------------------------------------------------

    def request_save(self) -> None:
        """Save at the end of the current pass instead of waiting for autosave."""
        self._save_requested = True

    def save_due(self, now: int) -> bool:
        if self._save_callback is None:
            return False
        if self._save_requested:
            return True
        if self._next_save is None:
            self._next_save = now + self._autosave_ms
            return False
        return now >= self._next_save

    async def save(self, now: int | None = None) -> None:
        if self._save_callback is None:
            return
        if now is None:
            now = self._clock()
        self._save_requested = False
        self._next_save = now + self._autosave_ms
        try:
            await self._save_callback()
            self.save_count += 1
        except Exception:
            log.exception("Autosave failed")

    # -- Run -------------------------------------------------------------

    async def run(self) -> None:
        """Start the loop. Runs until stop() is called."""
        self._running = True
        self.started_at = time.monotonic()
        while self._running:
            t0 = time.monotonic()
            now = self._clock()
            self.step(now)
            if self.save_due(now):
                await self.save(now)
            elapsed_ms = (time.monotonic() - t0) * 1000

            self.last_tick_duration_ms = elapsed_ms
            self._tick_duration_sum += elapsed_ms
            self.avg_tick_duration_ms = self._tick_duration_sum / self.tick_count

            await asyncio.sleep(self._interval)

    @property
    def uptime_seconds(self) -> float:
        """Seconds since the loop started."""
        if self.started_at == 0.0:
            return 0.0
        return time.monotonic() - self.started_at

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Signal the game loop to stop."""
        self._running = False
