"""Veterancy models: secondary progression per resource and per skill."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ResourceVeterancy:
    """Veterancy on one gathered or crafted resource.

    Created lazily the first time the resource earns veterancy XP.
    """

    resource_id: str
    level: int = 1
    experience: int = 0
    experience_to_next: int = 1


@dataclass
class SkillVeterancy:
    """Veterancy pool of one skill.

    Attributes:
        skill_id: Skill this pool belongs to.
        pool: Unspent veterancy XP.  Grows with every award, shrinks
            only through conversion into resource veterancy.
        level: Derived from ``pool``, capped.
    """

    skill_id: str
    pool: int = 0
    level: int = 0
    experience: int = 0
    experience_to_next: int = 100
