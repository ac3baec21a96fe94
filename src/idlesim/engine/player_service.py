"""Player service: the player registry and new-player factory.

All methods operate on PlayerState objects. No network I/O.
"""

from __future__ import annotations

import logging
from typing import Optional

from idlesim.loaders.game_config_loader import GameConfig
from idlesim.models.player import PlayerState
from idlesim.models.village import CITY_HALL, Building, Village, Villager

log = logging.getLogger(__name__)


def new_village(game_config: GameConfig | None = None) -> Village:
    """Starting colony: a level-1 City Hall and the configured workers."""
    start = (game_config or GameConfig()).starting_village
    village = Village(
        resources=dict(start.resources),
        storage_capacity=dict(start.storage_capacity),
    )
    village.buildings.append(Building(bid=village.new_id(CITY_HALL), building_type=CITY_HALL))
    for i in range(start.workers):
        village.villagers.append(Villager(
            vid=village.new_id("villager"),
            name=f"Worker {i + 1}",
            efficiency=start.worker_efficiency,
        ))
    return village


class PlayerService:
    """Registry of the players the scheduler reconciles.

    Args:
        game_config: Starting gold and village for new players.
    """

    def __init__(self, game_config: GameConfig | None = None) -> None:
        self._cfg = game_config or GameConfig()
        self._players: dict[int, PlayerState] = {}  # uid → PlayerState

    # -- Registry --------------------------------------------------------

    def register(self, player: PlayerState) -> None:
        """Add a player to the managed set."""
        self._players[player.uid] = player
        log.info("Player registered: uid=%d name=%r", player.uid, player.name)

    def unregister(self, uid: int) -> Optional[PlayerState]:
        """Remove and return a player from the managed set."""
        return self._players.pop(uid, None)

    def get(self, uid: int) -> Optional[PlayerState]:
        return self._players.get(uid)

    @property
    def all_players(self) -> dict[int, PlayerState]:
        """Read-only access to all managed players."""
        return self._players

    # -- Factory ---------------------------------------------------------

    def create_player(self, uid: int, name: str = "") -> PlayerState:
        """Create and register a fresh player."""
        player = PlayerState(
            uid=uid,
            name=name or self._cfg.default_player_name,
            gold=self._cfg.starting_gold,
            village=new_village(self._cfg),
        )
        player.combat.player_max_health = self._cfg.player_max_health
        player.combat.player_health = self._cfg.player_max_health
        self.register(player)
        return player
