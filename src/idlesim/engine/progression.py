"""Progression grants: XP and gold on a player.

Every XP change, positive or negative, goes through :func:`add_xp` so
the skill's level is always re-derived from its new cumulative total.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from idlesim.engine.experience import apply_delta
from idlesim.models.skills import SkillProgress

if TYPE_CHECKING:
    from idlesim.models.player import PlayerState

log = logging.getLogger(__name__)


def add_xp(player: PlayerState, skill_id: str, amount: int, now: int = 0) -> SkillProgress:
    """Apply a signed XP delta to a primary skill or combat sub-stat."""
    old = player.skill(skill_id)
    new = apply_delta(old, amount)
    if skill_id in player.combat_stats:
        player.combat_stats[skill_id] = new
    else:
        player.skills[skill_id] = new
    if new.level > old.level:
        log.info("Player %d: %s reached level %d", player.uid, skill_id, new.level)
        player.notifications.push(
            f"{skill_id.capitalize()} reached level {new.level}!", "reward", now)
    elif new.level < old.level:
        log.info("Player %d: %s dropped to level %d", player.uid, skill_id, new.level)
    return new


def add_gold(player: PlayerState, amount: int) -> int:
    """Change gold by a signed amount, clamping at zero.  Returns new gold."""
    player.gold = max(0, player.gold + int(amount))
    return player.gold
