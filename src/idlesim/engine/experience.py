"""Leveling curve: cumulative experience <-> level.

The XP needed to go from level L-1 to L is

    floor((L-1 + 300 * 2^((L-1)/7)) / 4)

which roughly doubles every 7 levels.  Cumulative requirements are the
running sum of those per-level amounts, so the level found for any XP
total is exact at every boundary.

A skill never stores its level independently: :func:`apply_delta`
recomputes (level, experience, experience_to_next) from the new total.
"""

from __future__ import annotations

import math

from idlesim.models.skills import SkillProgress
from idlesim.util.constants import (
    MAX_LEVEL_SEARCH,
    XP_CURVE_BASE,
    XP_CURVE_DIVISOR,
    XP_CURVE_DOUBLING_LEVELS,
)

# _cumulative[L] == cumulative_experience(L); index 0 is unused.
_cumulative: list[int] = [0, 0]


def experience_for_level(level: int) -> int:
    """XP needed to advance from ``level - 1`` to ``level``."""
    if level <= 1:
        return 0
    prev = level - 1
    return math.floor(
        (prev + XP_CURVE_BASE * 2 ** (prev / XP_CURVE_DOUBLING_LEVELS)) / XP_CURVE_DIVISOR
    )


def cumulative_experience(level: int) -> int:
    """Total XP needed to reach *level* from zero (0 for level <= 1)."""
    if level <= 1:
        return 0
    while len(_cumulative) <= level:
        next_level = len(_cumulative)
        _cumulative.append(_cumulative[-1] + experience_for_level(next_level))
    return _cumulative[level]


def level_from_experience(xp: int) -> int:
    """Highest level whose cumulative requirement is <= *xp*.

    Searches upward from level 1 and stops at MAX_LEVEL_SEARCH.
    """
    if xp <= 0:
        return 1
    level = 1
    while level < MAX_LEVEL_SEARCH and cumulative_experience(level + 1) <= xp:
        level += 1
    return level


def progress_for(xp: int) -> SkillProgress:
    """Project a cumulative XP total onto (level, experience, to-next)."""
    xp = max(0, int(xp))
    level = level_from_experience(xp)
    base = cumulative_experience(level)
    return SkillProgress(
        level=level,
        experience=xp - base,
        experience_to_next=cumulative_experience(level + 1) - base,
    )


def total_experience(progress: SkillProgress) -> int:
    """Cumulative XP represented by a progress record."""
    return cumulative_experience(progress.level) + progress.experience


def apply_delta(progress: SkillProgress, delta: int) -> SkillProgress:
    """Return the progress after adding a signed XP *delta*.

    The cumulative total is clamped at zero, so large negative deltas
    level the skill down to 1 but never below.
    """
    return progress_for(max(0, total_experience(progress) + int(delta)))
