"""Reference-data models.

Read-only definitions for everything a player can gather, craft, build,
recruit, fight, plant or contact.  Loaded from the per-category YAML files
in ``config/`` via the catalog_loader and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class RecipeKind(Enum):
    """Which crafting activity a recipe belongs to."""

    SMELT = "smelt"
    ENGINEER = "engineer"


@dataclass(frozen=True)
class GatherResource:
    """A resource that can be gathered repeatedly.

    Attributes:
        rid: Resource identifier, also the inventory key of the output.
        name: Display name used in notifications.
        level_required: Gathering skill level needed to start.
        base_time: Seconds per gather before speed bonuses.
        xp_reward: Skill XP per successful gather.
        respawn_time: Seconds the resource stays depleted after the cycle
            cap is reached (0 = no respawn wait).
        value: Gold value of one unit.
    """

    rid: str
    name: str = ""
    level_required: int = 1
    base_time: float = 3.0
    xp_reward: int = 0
    respawn_time: float = 0.0
    value: int = 0
    description: str = ""


@dataclass(frozen=True)
class EquipmentStats:
    """Combat stat block of an equippable item.

    ``attack_type`` is the stance the weapon prefers; ``armor_style`` the
    style of attacks an armour piece is built to stop.
    """

    slot: str = "weapon"
    attack_type: Optional[str] = None
    attack_scale: float = 1.0
    damage: float = 0.0
    armor: float = 0.0
    armor_style: Optional[str] = None
    accuracy: float = 0.0
    crit_chance: float = 0.0


@dataclass(frozen=True)
class Recipe:
    """A smelting or engineering recipe producing one unit per craft.

    Attributes:
        rid: Recipe identifier, also the inventory key of the output.
        kind: Crafting activity this recipe belongs to.
        ingredients: Consumed inputs per craft. {resource_id: amount}
        time: Seconds per craft before speed bonuses.
        equipment: Stat block when the output can be equipped.
    """

    rid: str
    kind: RecipeKind = RecipeKind.SMELT
    name: str = ""
    level_required: int = 1
    xp_reward: int = 0
    time: float = 1.0
    ingredients: dict[str, int] = field(default_factory=dict)
    equipment: Optional[EquipmentStats] = None
    value: int = 0
    description: str = ""


@dataclass(frozen=True)
class ProductionSpec:
    """Continuous output of a production building (per hour)."""

    resource: str
    rate: float
    storage_capacity: float


@dataclass(frozen=True)
class BuildingDefinition:
    """A village building type.

    Attributes:
        bid: Building type identifier.
        tier: 1 = wood, 2 = stone, 3 = advanced.
        level_required: Colony skill level needed to construct.
        base_cost: Village resources for the first building of this type.
            {"wood": n, "stone": n}
        construction_time: Seconds to construct.
        max_workers: Worker slots at level 1.
        production: Output definition, None for non-producing buildings.
        housing_capacity: Villagers housed by one building of this type.
        requires_base_building: Type that must exist (completed) first.
        unique: Only one building of this type may exist.
    """

    bid: str
    name: str = ""
    tier: int = 1
    level_required: int = 1
    base_cost: dict[str, int] = field(default_factory=dict)
    construction_time: float = 0.0
    max_workers: int = 0
    production: Optional[ProductionSpec] = None
    housing_capacity: int = 0
    requires_base_building: Optional[str] = None
    unique: bool = False
    description: str = ""


@dataclass(frozen=True)
class VillagerType:
    """A recruitable villager archetype."""

    vid: str
    name: str = ""
    efficiency: float = 1.0
    recruitment_cost: int = 0
    xp_reward: int = 0


@dataclass(frozen=True)
class EnemyAttack:
    name: str
    damage: float
    damage_type: str = "physical"


@dataclass(frozen=True)
class EnemyDefinition:
    """An enemy the player can fight.

    Attributes:
        affinity: Hit-chance multiplier per player stance (0-100).
        takes_damage: Damage multiplier per incoming damage type.
        attack_speed: Milliseconds between the enemy's attacks.
    """

    eid: str
    name: str = ""
    level: int = 1
    health: int = 10
    attacks: tuple[EnemyAttack, ...] = ()
    takes_damage: dict[str, float] = field(default_factory=dict)
    xp_reward: int = 0
    gold_reward: int = 0
    attack_speed: float = 4000.0
    affinity: dict[str, float] = field(default_factory=dict)
    armor: float = 0.0


@dataclass(frozen=True)
class SeedDefinition:
    """A plantable seed and the crop it grows into."""

    sid: str
    crop_id: str
    name: str = ""
    level_required: int = 1
    grow_time: float = 30.0
    xp_reward: int = 5
    crop_yield: int = 1


@dataclass(frozen=True)
class PlanetDefinition:
    """A planet that can be contacted."""

    pid: str
    name: str = ""
    planet_type: str = ""
    contact_cost_gold: int = 0
    contact_duration: float = 60.0
    xp_reward: int = 0
