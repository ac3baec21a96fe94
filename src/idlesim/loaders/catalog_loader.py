"""Catalog loader: parses reference-data YAML files into definitions.

Reads one file per category from a config directory:
resources.yaml, recipes.yaml, buildings.yaml, villagers.yaml,
enemies.yaml, seeds.yaml, planets.yaml.  Each file maps ids to attribute
dicts.  Missing files are skipped; malformed entries are logged and
skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

from idlesim.models.items import (
    BuildingDefinition,
    EnemyAttack,
    EnemyDefinition,
    EquipmentStats,
    GatherResource,
    PlanetDefinition,
    ProductionSpec,
    Recipe,
    RecipeKind,
    SeedDefinition,
    VillagerType,
)

log = logging.getLogger(__name__)


@dataclass
class CatalogData:
    """Everything parsed from a catalog directory."""

    resources: list[GatherResource] = field(default_factory=list)
    recipes: list[Recipe] = field(default_factory=list)
    buildings: list[BuildingDefinition] = field(default_factory=list)
    villager_types: list[VillagerType] = field(default_factory=list)
    enemies: list[EnemyDefinition] = field(default_factory=list)
    seeds: list[SeedDefinition] = field(default_factory=list)
    planets: list[PlanetDefinition] = field(default_factory=list)


# ===================================================================
# Per-category parsers
# ===================================================================

def _resource(rid: str, a: dict) -> GatherResource:
    return GatherResource(
        rid=rid,
        name=a.get("name", rid),
        level_required=int(a.get("level_required", 1)),
        base_time=float(a.get("base_time", 3)),
        xp_reward=int(a.get("xp_reward", 0)),
        respawn_time=float(a.get("respawn_time", 0)),
        value=int(a.get("value", 0)),
        description=a.get("description", ""),
    )


def _equipment(raw: Any) -> EquipmentStats | None:
    if not isinstance(raw, dict):
        return None
    return EquipmentStats(
        slot=raw.get("slot", "weapon"),
        attack_type=raw.get("attack_type"),
        attack_scale=float(raw.get("attack_scale", 1.0)),
        damage=float(raw.get("damage", 0)),
        armor=float(raw.get("armor", 0)),
        armor_style=raw.get("armor_style"),
        accuracy=float(raw.get("accuracy", 0)),
        crit_chance=float(raw.get("crit_chance", 0)),
    )


def _recipe(rid: str, a: dict) -> Recipe:
    return Recipe(
        rid=rid,
        kind=RecipeKind(a.get("kind", "smelt")),
        name=a.get("name", rid),
        level_required=int(a.get("level_required", 1)),
        xp_reward=int(a.get("xp_reward", 0)),
        time=float(a.get("time", 1)),
        ingredients={k: int(v) for k, v in (a.get("ingredients") or {}).items()},
        equipment=_equipment(a.get("equipment")),
        value=int(a.get("value", 0)),
        description=a.get("description", ""),
    )


def _building(bid: str, a: dict) -> BuildingDefinition:
    prod = a.get("production")
    production = None
    if isinstance(prod, dict):
        production = ProductionSpec(
            resource=prod["resource"],
            rate=float(prod.get("rate", 0)),
            storage_capacity=float(prod.get("storage_capacity", 0)),
        )
    return BuildingDefinition(
        bid=bid,
        name=a.get("name", bid),
        tier=int(a.get("tier", 1)),
        level_required=int(a.get("level_required", 1)),
        base_cost={k: int(v) for k, v in (a.get("base_cost") or {}).items()},
        construction_time=float(a.get("construction_time", 0)),
        max_workers=int(a.get("max_workers", 0)),
        production=production,
        housing_capacity=int(a.get("housing_capacity", 0)),
        requires_base_building=a.get("requires_base_building"),
        unique=bool(a.get("unique", False)),
        description=a.get("description", ""),
    )


def _villager(vid: str, a: dict) -> VillagerType:
    return VillagerType(
        vid=vid,
        name=a.get("name", vid),
        efficiency=float(a.get("efficiency", 1.0)),
        recruitment_cost=int(a.get("recruitment_cost", 0)),
        xp_reward=int(a.get("xp_reward", 0)),
    )


def _enemy(eid: str, a: dict) -> EnemyDefinition:
    attacks = tuple(
        EnemyAttack(name=atk.get("name", "Attack"), damage=float(atk.get("damage", 0)),
                    damage_type=atk.get("type", "physical"))
        for atk in (a.get("attacks") or [])
    )
    return EnemyDefinition(
        eid=eid,
        name=a.get("name", eid),
        level=int(a.get("level", 1)),
        health=int(a.get("health", 10)),
        attacks=attacks,
        takes_damage={k: float(v) for k, v in (a.get("takes_damage") or {}).items()},
        xp_reward=int(a.get("xp_reward", 0)),
        gold_reward=int(a.get("gold_reward", 0)),
        attack_speed=float(a.get("attack_speed", 4000)),
        affinity={k: float(v) for k, v in (a.get("affinity") or {}).items()},
        armor=float(a.get("armor", 0)),
    )


def _seed(sid: str, a: dict) -> SeedDefinition:
    level = int(a.get("level_required", 1))
    return SeedDefinition(
        sid=sid,
        crop_id=a["crop_id"],
        name=a.get("name", sid),
        level_required=level,
        grow_time=float(a.get("grow_time", max(30, level * 5))),
        xp_reward=int(a.get("xp_reward", max(5, level * 2))),
        crop_yield=int(a.get("yield", 1 + level // 20)),
    )


def _planet(pid: str, a: dict) -> PlanetDefinition:
    return PlanetDefinition(
        pid=pid,
        name=a.get("name", pid),
        planet_type=a.get("type", ""),
        contact_cost_gold=int(a.get("contact_cost_gold", 0)),
        contact_duration=float(a.get("contact_duration", 60)),
        xp_reward=int(a.get("xp_reward", 0)),
    )


_CATEGORIES: dict[str, tuple[str, Callable[[str, dict], Any]]] = {
    "resources": ("resources", _resource),
    "recipes": ("recipes", _recipe),
    "buildings": ("buildings", _building),
    "villagers": ("villager_types", _villager),
    "enemies": ("enemies", _enemy),
    "seeds": ("seeds", _seed),
    "planets": ("planets", _planet),
}


def _parse_section(category: str, section: dict) -> list[Any]:
    _, parser = _CATEGORIES[category]
    parsed: list[Any] = []
    for key, attrs in (section or {}).items():
        if not isinstance(attrs, dict):
            continue
        try:
            parsed.append(parser(str(key), attrs))
        except (KeyError, TypeError, ValueError):
            log.warning("Skipping malformed %s entry %r", category, key)
    return parsed


def load_catalog(path: str | Path = "config") -> CatalogData:
    """Load all reference data from a directory of per-category YAML files.

    Args:
        path: Directory containing resources.yaml, recipes.yaml, ...

    Returns:
        A populated :class:`CatalogData`.
    """
    path = Path(path)
    data = CatalogData()
    if not path.is_dir():
        log.warning("Catalog directory %s not found, no reference data loaded", path)
        return data

    for category, (attr, _) in _CATEGORIES.items():
        cat_file = path / f"{category}.yaml"
        if not cat_file.exists():
            continue
        with cat_file.open() as f:
            raw = yaml.safe_load(f) or {}
        getattr(data, attr).extend(_parse_section(category, raw))
    return data
