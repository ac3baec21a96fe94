"""Skill progress model.

A skill's level and in-level experience are a projection of its
cumulative XP; engine.experience recomputes them on every change.
"""

from __future__ import annotations

from dataclasses import dataclass

# Primary skills
GATHERING = "salvaging"
SMELTING = "smelting"
ENGINEERING = "engineering"
COLONY = "colony"
FARMING = "farming"
COMMUNICATION = "communication"
MELEE = "melee"

# Combat sub-stats
STRENGTH = "strength"
ATTACK = "attack"
DEFENCE = "defence"
AGILITY = "agility"

COMBAT_STATS = (STRENGTH, ATTACK, DEFENCE, AGILITY)


@dataclass
class SkillProgress:
    """Level and progress within the level of one skill.

    Attributes:
        level: Current level (>= 1).
        experience: XP earned inside the current level.
        experience_to_next: XP span of the current level.
    """

    level: int = 1
    experience: int = 0
    experience_to_next: int = 83
