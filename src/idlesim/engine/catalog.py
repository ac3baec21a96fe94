"""Catalog: read-only reference data keyed by id.

Loaded once at startup from the catalog loader.  Lookups return None for
unknown ids; callers treat a miss as a non-fatal skip.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from idlesim.models.items import (
    BuildingDefinition,
    EnemyDefinition,
    EquipmentStats,
    GatherResource,
    PlanetDefinition,
    Recipe,
    RecipeKind,
    SeedDefinition,
    VillagerType,
)

if TYPE_CHECKING:
    from idlesim.loaders.catalog_loader import CatalogData


class Catalog:
    """Reference data database, read-only after initialization."""

    def __init__(self) -> None:
        self.resources: dict[str, GatherResource] = {}
        self.recipes: dict[str, Recipe] = {}
        self.buildings: dict[str, BuildingDefinition] = {}
        self.villager_types: dict[str, VillagerType] = {}
        self.enemies: dict[str, EnemyDefinition] = {}
        self.seeds: dict[str, SeedDefinition] = {}
        self.planets: dict[str, PlanetDefinition] = {}

    def load(self, data: CatalogData) -> None:
        """Replace all definitions with the loaded data."""
        self.resources = {r.rid: r for r in data.resources}
        self.recipes = {r.rid: r for r in data.recipes}
        self.buildings = {b.bid: b for b in data.buildings}
        self.villager_types = {v.vid: v for v in data.villager_types}
        self.enemies = {e.eid: e for e in data.enemies}
        self.seeds = {s.sid: s for s in data.seeds}
        self.planets = {p.pid: p for p in data.planets}

    def __len__(self) -> int:
        return (len(self.resources) + len(self.recipes) + len(self.buildings)
                + len(self.villager_types) + len(self.enemies) + len(self.seeds)
                + len(self.planets))

    # -- Lookups ---------------------------------------------------------

    def resource(self, rid: str) -> Optional[GatherResource]:
        return self.resources.get(rid)

    def recipe(self, rid: str, kind: RecipeKind | None = None) -> Optional[Recipe]:
        """Look up a recipe, optionally only of the given kind."""
        recipe = self.recipes.get(rid)
        if recipe is None or (kind is not None and recipe.kind != kind):
            return None
        return recipe

    def recipes_of(self, kind: RecipeKind) -> list[Recipe]:
        return [r for r in self.recipes.values() if r.kind == kind]

    def building(self, bid: str) -> Optional[BuildingDefinition]:
        return self.buildings.get(bid)

    def villager_type(self, vid: str) -> Optional[VillagerType]:
        return self.villager_types.get(vid)

    def enemy(self, eid: str) -> Optional[EnemyDefinition]:
        return self.enemies.get(eid)

    def seed(self, sid: str) -> Optional[SeedDefinition]:
        return self.seeds.get(sid)

    def planet(self, pid: str) -> Optional[PlanetDefinition]:
        return self.planets.get(pid)

    def equipment(self, item_id: str) -> Optional[EquipmentStats]:
        """Stat block of an equippable item, None if it cannot be equipped."""
        recipe = self.recipes.get(item_id)
        return recipe.equipment if recipe is not None else None

    def item_name(self, item_id: str) -> str:
        """Display name of any gatherable, craftable or growable item."""
        for table in (self.resources, self.recipes):
            entry = table.get(item_id)
            if entry is not None and entry.name:
                return entry.name
        for seed in self.seeds.values():
            if seed.sid == item_id and seed.name:
                return seed.name
            if seed.crop_id == item_id:
                return item_id.replace("-", " ").title()
        return item_id
