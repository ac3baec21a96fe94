"""Veterancy service: resource and skill veterancy ledgers.

Two secondary progression tracks run beside primary skill XP:

- **Resource veterancy** (per gathered / crafted id) is earned 1:1 with
  the skill XP of the action.  Its level drives the extra-yield roll and
  raises the gather cap before a resource needs to respawn.
- **Skill veterancy** (per skill) is earned at 0.5:1 into an unbounded
  pool.  Its level shortens task durations and unlocks the named bonuses
  configured per skill in ``GameConfig.skill_veterancy_bonuses``.

Pool XP can be converted into resource veterancy at 10:1.
"""

from __future__ import annotations

import logging
import math
import random
from typing import TYPE_CHECKING, Any, Optional

from idlesim.loaders.game_config_loader import GameConfig
from idlesim.models.veterancy import ResourceVeterancy, SkillVeterancy
from idlesim.util.constants import (
    GATHER_LIMIT_BONUS_LEVELS,
    MAX_GATHER_LIMIT_BONUS,
    MAX_SPEED_BONUS_PERCENT,
    RESOURCE_VETERANCY_MAX_LEVEL,
    SKILL_VETERANCY_LEVEL_COST,
    SKILL_VETERANCY_MAX_LEVEL,
    SKILL_VETERANCY_RATIO,
    SPEED_BONUS_PER_LEVEL,
    VETERANCY_CONVERSION_RATE,
)

if TYPE_CHECKING:
    from idlesim.models.player import PlayerState

log = logging.getLogger(__name__)


# -- Resource veterancy curve --------------------------------------------

_resource_cumulative: list[int] = [0, 0]


def resource_xp_for_level(level: int) -> int:
    """Veterancy XP needed to advance from ``level - 1`` to ``level``."""
    if level <= 1:
        return 0
    return math.floor(50 * level * (1 + level / 50))


def resource_cumulative_xp(level: int) -> int:
    if level <= 1:
        return 0
    level = min(level, RESOURCE_VETERANCY_MAX_LEVEL + 1)
    while len(_resource_cumulative) <= level:
        nxt = len(_resource_cumulative)
        _resource_cumulative.append(_resource_cumulative[-1] + resource_xp_for_level(nxt))
    return _resource_cumulative[level]


def resource_level_from_xp(xp: int) -> int:
    if xp <= 0:
        return 1
    level = 1
    while level < RESOURCE_VETERANCY_MAX_LEVEL and resource_cumulative_xp(level + 1) <= xp:
        level += 1
    return level


def resource_veterancy_from_xp(resource_id: str, xp: int) -> ResourceVeterancy:
    xp = max(0, int(xp))
    level = resource_level_from_xp(xp)
    base = resource_cumulative_xp(level)
    if level >= RESOURCE_VETERANCY_MAX_LEVEL:
        to_next = 1
    else:
        to_next = max(1, resource_cumulative_xp(level + 1) - base)
    return ResourceVeterancy(resource_id=resource_id, level=level,
                             experience=xp - base, experience_to_next=to_next)


# -- Skill veterancy curve -----------------------------------------------

def skill_cumulative_pool(level: int) -> int:
    """Pool needed for skill-veterancy *level* (100, 300, 600, ...)."""
    if level <= 0:
        return 0
    return SKILL_VETERANCY_LEVEL_COST * level * (level + 1) // 2


def skill_veterancy_from_pool(skill_id: str, pool: int) -> SkillVeterancy:
    pool = max(0, int(pool))
    level = 0
    while level < SKILL_VETERANCY_MAX_LEVEL and skill_cumulative_pool(level + 1) <= pool:
        level += 1
    if level >= SKILL_VETERANCY_MAX_LEVEL:
        to_next = 1
    else:
        to_next = (level + 1) * SKILL_VETERANCY_LEVEL_COST
    return SkillVeterancy(skill_id=skill_id, pool=pool, level=level,
                          experience=pool - skill_cumulative_pool(level),
                          experience_to_next=to_next)


# -- Level-driven effects ------------------------------------------------

def extra_yield_chance(level: int) -> float:
    """Percent chance of bonus units (may exceed 100)."""
    return float(min(max(0, level), RESOURCE_VETERANCY_MAX_LEVEL))


def gather_limit_bonus(level: int) -> int:
    return min(max(0, level) // GATHER_LIMIT_BONUS_LEVELS, MAX_GATHER_LIMIT_BONUS)


def speed_bonus(level: int) -> float:
    """Percent reduction of task duration."""
    return min(max(0, level) * SPEED_BONUS_PER_LEVEL, MAX_SPEED_BONUS_PERCENT)


def apply_speed_bonus(base_ms: float, level: int) -> int:
    return math.floor(base_ms * (1 - speed_bonus(level) / 100))


class VeterancyService:
    """Awards, bonuses and conversion for both veterancy tracks.

    Args:
        game_config: Source of the per-skill named bonus table.
        rng: Random source for extra-yield rolls.
    """

    def __init__(self, game_config: GameConfig | None = None,
                 rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        cfg = game_config or GameConfig()
        self._bonus_table: dict[str, list[dict[str, Any]]] = dict(cfg.skill_veterancy_bonuses)

    # -- Awards ----------------------------------------------------------

    def award(self, player: PlayerState, skill_id: str, resource_id: str,
              skill_xp: int) -> None:
        """Veterancy for one completed action worth *skill_xp* skill XP."""
        if skill_xp <= 0:
            return
        self.add_resource_xp(player, resource_id, skill_xp)
        self.add_skill_xp(player, skill_id, math.floor(skill_xp * SKILL_VETERANCY_RATIO))

    def add_resource_xp(self, player: PlayerState, resource_id: str,
                        amount: int) -> ResourceVeterancy:
        old = player.resource_veterancy.get(resource_id)
        old_total = 0
        if old is not None:
            old_total = resource_cumulative_xp(old.level) + old.experience
        new = resource_veterancy_from_xp(resource_id, old_total + max(0, int(amount)))
        player.resource_veterancy[resource_id] = new
        if old is not None and new.level > old.level:
            log.debug("Player %d: %s veterancy level %d", player.uid, resource_id, new.level)
        return new

    def add_skill_xp(self, player: PlayerState, skill_id: str, amount: int) -> SkillVeterancy:
        old = player.skill_veterancy.get(skill_id)
        pool = old.pool if old is not None else 0
        new = skill_veterancy_from_pool(skill_id, pool + max(0, int(amount)))
        player.skill_veterancy[skill_id] = new
        return new

    # -- Conversion ------------------------------------------------------

    def convert(self, player: PlayerState, skill_id: str, resource_id: str,
                amount: int) -> Optional[str]:
        """Move *amount* skill pool XP into a resource's veterancy at 10:1.

        A no-op (returning the reason) when the pool cannot cover *amount*.
        """
        vet = player.skill_veterancy.get(skill_id)
        if amount <= 0:
            return "Amount must be positive"
        if vet is None or vet.pool < amount:
            return "Not enough veterancy in pool"

        player.skill_veterancy[skill_id] = skill_veterancy_from_pool(skill_id, vet.pool - amount)
        gained = amount // VETERANCY_CONVERSION_RATE
        if gained > 0:
            self.add_resource_xp(player, resource_id, gained)
        log.info("Player %d: converted %d %s veterancy into %d %s veterancy",
                 player.uid, amount, skill_id, gained, resource_id)
        return None

    # -- Effects ---------------------------------------------------------

    def roll_extra_yield(self, level: int) -> int:
        """Bonus units (0, 1 or 2) from one draw against the level's chance."""
        chance = extra_yield_chance(level)
        roll = self._rng.random() * 100
        if roll < chance - 100:
            return 2
        if roll < chance:
            return 1
        return 0

    def gather_limit(self, player: PlayerState, resource_id: str, base_limit: int) -> int:
        return base_limit + gather_limit_bonus(player.resource_veterancy_level(resource_id))

    def bonuses(self, player: PlayerState, skill_id: str) -> dict[str, float]:
        """Named percentage bonuses of a skill at its current veterancy level."""
        return self.bonuses_for_level(skill_id, player.skill_veterancy_level(skill_id))

    def bonuses_for_level(self, skill_id: str, level: int) -> dict[str, float]:
        result: dict[str, float] = {}
        for entry in self._bonus_table.get(skill_id, []):
            per = int(entry.get("per", 1)) or 1
            result[entry["name"]] = (level // per) * float(entry.get("amount", 0))
        return result

    def task_duration(self, player: PlayerState, skill_id: str, base_seconds: float) -> int:
        """Duration in ms of a task after the skill's speed bonus."""
        return apply_speed_bonus(base_seconds * 1000, player.skill_veterancy_level(skill_id))
