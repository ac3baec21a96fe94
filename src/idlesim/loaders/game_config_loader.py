"""Game configuration: loads tunable constants from config/game.yaml.

Provides a single ``GameConfig`` dataclass that is loaded once at startup
and then passed (or injected) wherever constants are needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

log = logging.getLogger(__name__)

DEFAULT_GAME_CONFIG_PATH = "config/game.yaml"


def _default_skill_bonuses() -> Dict[str, List[Dict[str, Any]]]:
    crafting = [
        {"name": "material_save", "per": 10, "amount": 1.0},
        {"name": "xp_bonus", "per": 5, "amount": 0.5},
    ]
    return {
        "salvaging": [
            {"name": "xp_bonus", "per": 10, "amount": 1.0},
            {"name": "respawn_speed", "per": 5, "amount": 0.5},
        ],
        "smelting": [dict(b) for b in crafting],
        "engineering": [dict(b) for b in crafting],
    }


@dataclass
class StartingVillage:
    """Colony a new player starts with."""
    workers: int = 2
    worker_efficiency: float = 1.0
    resources: Dict[str, float] = field(default_factory=lambda: {
        "wood": 50.0, "stone": 0.0, "food": 0.0, "herbs": 0.0,
    })
    storage_capacity: Dict[str, float] = field(default_factory=lambda: {
        "wood": 200.0, "stone": 100.0, "food": 150.0, "herbs": 100.0,
    })


@dataclass
class GameConfig:
    """All tunable gameplay constants.

    Loaded from ``config/game.yaml``.  Every field has a sensible default
    so the server can start even without the file.
    """

    # -- Scheduler cadences ------------------------------------------
    task_tick_ms: int = 100
    production_tick_ms: int = 1000
    combat_tick_ms: int = 100
    autosave_interval_ms: int = 60_000
    max_catchup_cycles: int = 10_000

    # -- Gathering ---------------------------------------------------
    base_gather_limit: int = 10

    # -- Veterancy ---------------------------------------------------
    skill_veterancy_bonuses: Dict[str, List[Dict[str, Any]]] = field(
        default_factory=_default_skill_bonuses)

    # -- Village -----------------------------------------------------
    construction_queue_limit: int = 3
    base_housing: int = 2
    base_building_limit: int = 10
    building_limit_per_level: int = 5
    city_hall_wood_per_level: int = 50
    city_hall_stone_per_level: int = 30
    city_hall_stone_from_level: int = 3
    starting_village: StartingVillage = field(default_factory=StartingVillage)

    # -- Farming -----------------------------------------------------
    plot_base_cost: int = 100

    # -- Combat ------------------------------------------------------
    player_max_health: int = 100
    search_delay_ms: int = 3000
    death_xp_penalty: float = 0.05
    base_attack_speed_ms: float = 4000.0
    min_attack_speed_ms: float = 500.0
    agility_speed_per_level: float = 0.02
    base_accuracy: float = 50.0
    accuracy_per_attack_level: float = 5.0
    base_damage: float = 5.0
    base_crit_damage: float = 150.0

    # -- New player defaults -----------------------------------------
    starting_gold: int = 0
    default_player_uid: int = 1
    default_player_name: str = "Commander"

    # -- Network -----------------------------------------------------
    rest_host: str = "0.0.0.0"
    rest_port: int = 8080


def load_game_config(path: str = DEFAULT_GAME_CONFIG_PATH) -> GameConfig:
    """Load game configuration from a YAML file.

    Missing keys fall back to dataclass defaults.  If the file does not
    exist, a warning is logged and pure defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Game config not found at %s, using defaults", p)
        return GameConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded game config from %s (%d keys)", p, len(raw))

    # Nested starting_village
    village_raw = raw.pop("starting_village", None)
    village = StartingVillage()
    if isinstance(village_raw, dict):
        village = StartingVillage(**{
            k: v for k, v in village_raw.items()
            if k in StartingVillage.__dataclass_fields__
        })

    bonuses = raw.pop("skill_veterancy_bonuses", None)
    if not isinstance(bonuses, dict):
        bonuses = _default_skill_bonuses()

    return GameConfig(starting_village=village, skill_veterancy_bonuses=bonuses, **{
        k: v for k, v in raw.items()
        if k in GameConfig.__dataclass_fields__
    })
