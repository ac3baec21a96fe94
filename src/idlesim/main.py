"""Simulation server entry point.

Initializes all components and starts the asyncio event loop:
1. Load configuration (game tunables, reference data)
2. Restore previous state
3. Create engine services
4. Create event bus and wire up services
5. Start network server (REST)
6. Start game loop (reconciliation scheduler)

Usage:
    python -m idlesim.main
    # or via entry point:
    idlesim
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass, field
from typing import Optional

from idlesim.engine.catalog import Catalog
from idlesim.engine.combat_service import CombatService
from idlesim.engine.farming_service import FarmingService
from idlesim.engine.game_loop import GameLoop
from idlesim.engine.player_service import PlayerService
from idlesim.engine.production_service import ProductionService
from idlesim.engine.task_service import TaskService
from idlesim.engine.veterancy_service import VeterancyService
from idlesim.loaders.catalog_loader import CatalogData, load_catalog
from idlesim.loaders.game_config_loader import GameConfig, load_game_config
from idlesim.persistence.state_load import RestoredState, load_state
from idlesim.persistence.state_save import DEFAULT_STATE_PATH, save_state
from idlesim.util.clock import Clock, wall_clock_ms
from idlesim.util.events import BuildingCompleted, EventBus, PlayerDied

log = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = "config"


# ---------------------------------------------------------------------------
# Container for all loaded configuration
# ---------------------------------------------------------------------------


@dataclass
class Configuration:
    """Holds all data loaded from config files."""

    catalog: CatalogData = field(default_factory=CatalogData)
    game: GameConfig = field(default_factory=GameConfig)


# ---------------------------------------------------------------------------
# Container for all services (makes passing around easier)
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Holds references to all engine services."""

    game_config: GameConfig = field(default_factory=GameConfig)
    clock: Clock = wall_clock_ms
    event_bus: Optional[EventBus] = None
    catalog: Optional[Catalog] = None
    players: Optional[PlayerService] = None
    veterancy: Optional[VeterancyService] = None
    tasks: Optional[TaskService] = None
    production: Optional[ProductionService] = None
    farming: Optional[FarmingService] = None
    combat: Optional[CombatService] = None
    game_loop: Optional[GameLoop] = None
    state_file: str = DEFAULT_STATE_PATH
    rest_server: Optional[object] = None


# ===================================================================
# 1. Load configuration
# ===================================================================


def load_configuration(config_dir: str = DEFAULT_CONFIG_DIR) -> Configuration:
    """Load game tunables and reference data from YAML files.

    Args:
        config_dir: Directory holding game.yaml and the reference-data files.
    """
    log.info("Loading configuration …")
    game_cfg = load_game_config(os.path.join(config_dir, "game.yaml"))
    log.info("  game_config:  loaded")
    catalog = load_catalog(config_dir)
    log.info("  catalog:      %d resources, %d recipes, %d buildings, %d enemies",
             len(catalog.resources), len(catalog.recipes), len(catalog.buildings),
             len(catalog.enemies))
    return Configuration(catalog=catalog, game=game_cfg)


# ===================================================================
# 2. Restore state
# ===================================================================


async def init_persistence(state_file: str = DEFAULT_STATE_PATH) -> Optional[RestoredState]:
    log.info("Initializing persistence …")
    restored = await load_state(path=state_file)
    if restored is not None:
        log.info("  state:        restored from disk (%d players)", len(restored.players))
    else:
        log.info("  state:        no previous state found, fresh start")
    return restored


# ===================================================================
# 3. Create engine services
# ===================================================================


def create_services(config: Configuration, clock: Clock = wall_clock_ms,
                    state_file: str = DEFAULT_STATE_PATH) -> Services:
    """Instantiate all services with proper dependency injection.

    Wiring order matters: services that are injected into others are created first.
    """
    log.info("Creating services …")

    gc = config.game
    event_bus = EventBus()
    catalog = Catalog()
    catalog.load(config.catalog)
    log.info("  catalog: %d definitions registered", len(catalog))

    players = PlayerService(gc)
    veterancy = VeterancyService(gc)
    tasks = TaskService(catalog, veterancy, event_bus, gc)
    production = ProductionService(catalog, event_bus, gc)
    farming = FarmingService(catalog, event_bus, gc)
    combat = CombatService(catalog, veterancy, tasks, event_bus, gc)

    async def _save() -> None:
        await save_state(players.all_players, path=state_file)

    game_loop = GameLoop(players, tasks, production, farming, combat, gc,
                         clock=clock, save_callback=_save)
    log.info("  all services created")

    return Services(
        game_config=gc,
        clock=clock,
        event_bus=event_bus,
        catalog=catalog,
        players=players,
        veterancy=veterancy,
        tasks=tasks,
        production=production,
        farming=farming,
        combat=combat,
        game_loop=game_loop,
        state_file=state_file,
    )


# ===================================================================
# 4. Wire up event handlers
# ===================================================================


def wire_events(services: Services) -> None:
    """Register event handlers that connect services via the EventBus."""
    log.info("Wiring event handlers …")
    bus = services.event_bus

    # Milestones → early save
    bus.on(BuildingCompleted, lambda evt: services.game_loop.request_save())
    bus.on(PlayerDied, lambda evt: services.game_loop.request_save())

    log.info("  event handlers registered")


# ===================================================================
# 5. Start network server
# ===================================================================


async def start_network(services: Services) -> None:
    """Start the REST API on the game loop's asyncio loop via uvicorn."""
    log.info("Starting network server …")

    from idlesim.network.rest_api import create_app
    import uvicorn

    rest_app = create_app(services)
    config = uvicorn.Config(
        rest_app,
        host=services.game_config.rest_host,
        port=services.game_config.rest_port,
        log_level="info",
        access_log=False,
    )
    rest_server = uvicorn.Server(config)
    services.rest_server = rest_server
    # Start as background task (non-blocking)
    asyncio.create_task(rest_server.serve())
    log.info("  REST API listening on http://%s:%d",
             services.game_config.rest_host, services.game_config.rest_port)


# ===================================================================
# 6. Start game loop
# ===================================================================


async def start_game_loop(services: Services) -> None:
    """Run the scheduler until a shutdown signal, then save and stop."""
    log.info("Starting game loop …")
    loop = asyncio.get_running_loop()

    def _request_shutdown() -> None:
        log.info("Shutdown signal received, stopping …")
        services.game_loop.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown)

    await services.game_loop.run()

    # --- Cleanup after loop exits ---
    log.info("Shutting down …")
    try:
        await save_state(services.players.all_players, path=services.state_file)
    except Exception:
        log.exception("State save failed, continuing shutdown")

    if services.rest_server is not None:
        services.rest_server.should_exit = True
        log.info("  REST API server stopped")
    log.info("  goodbye")


# ===================================================================
# Entry points
# ===================================================================


def register_players(services: Services, restored: Optional[RestoredState]) -> None:
    """Register restored players, or a default player on a fresh start.

    Restored players catch up on everything that fell due while the
    server was down on the first reconciliation pass.
    """
    if restored is not None and restored.players:
        for player in restored.players.values():
            player.combat.player_max_health = services.game_config.player_max_health
            player.combat.player_health = services.game_config.player_max_health
            services.players.register(player)
        log.info("Restored %d players from saved state", len(restored.players))
        return
    gc = services.game_config
    services.players.create_player(gc.default_player_uid, gc.default_player_name)


async def _start(config_dir: str = DEFAULT_CONFIG_DIR,
                 state_file: str = DEFAULT_STATE_PATH) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    log.info("=== Idle simulation server starting ===")

    config = load_configuration(config_dir=config_dir)
    restored = await init_persistence(state_file=state_file)
    services = create_services(config, state_file=state_file)
    wire_events(services)
    register_players(services, restored)

    await start_network(services)
    await start_game_loop(services)


def main() -> None:
    """Entry point for the simulation server.

    Supports command-line arguments:
        --state_file <path>  Use custom state file for restoration (default: state.yaml)
        --config_dir <path>  Directory with game.yaml and reference data (default: config)
    """
    config_dir = DEFAULT_CONFIG_DIR
    state_file = DEFAULT_STATE_PATH

    for flag in ("--state_file", "--config_dir"):
        if flag in sys.argv:
            idx = sys.argv.index(flag)
            if idx + 1 >= len(sys.argv):
                print(f"Error: {flag} requires an argument", file=sys.stderr)
                sys.exit(1)
            if flag == "--state_file":
                state_file = sys.argv[idx + 1]
            else:
                config_dir = sys.argv[idx + 1]

    asyncio.run(_start(config_dir=config_dir, state_file=state_file))


if __name__ == "__main__":
    main()
