"""Combat model: ephemeral state of a player's fight.

Nothing in here is persisted: a restored player always starts idle.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Stance(Enum):
    """Player attack styles and the sub-stat each one trains."""

    BASH = "bash"
    CUT = "cut"
    STAB = "stab"
    BLOCK = "block"


STANCE_STAT = {
    Stance.BASH: "strength",
    Stance.CUT: "attack",
    Stance.STAB: "agility",
    Stance.BLOCK: "defence",
}


class CombatPhase(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    SEARCHING = "searching"
    RESOLVED_DEATH = "resolved_death"


class Actor(Enum):
    PLAYER = "player"
    ENEMY = "enemy"

    @property
    def other(self) -> Actor:
        return Actor.ENEMY if self is Actor.PLAYER else Actor.PLAYER


@dataclass
class PlayerCombatStats:
    """Player combat numbers derived from equipment and sub-stats."""

    damage: float = 5.0
    armor: float = 0.0
    accuracy: float = 50.0
    crit_chance: float = 0.0
    crit_damage: float = 150.0
    attack_speed: float = 4000.0
    affinity: dict[str, float] = field(default_factory=lambda: {
        "melee": 55.0, "ranged": 55.0, "magic": 55.0,
    })
    weapon_damage: float = 0.0
    weapon_stance: Optional[str] = None
    attack_scale: float = 1.0


@dataclass
class CombatState:
    """State machine of one player's fight.

    Attributes:
        phase: idle / active / searching / resolved_death.
        enemy_id: Enemy being fought (kept while searching and after death).
        attacker_turn: Actor allowed to act next.
        last_attack_time: Wall-clock ms of each actor's last action.
        searching_until: End of the post-kill search pause.
        locked: Re-entrancy guard around one action's resolution.
        has_died: Death flag, cleared by resume.
        log: Recent per-swing messages, newest last.
    """

    phase: CombatPhase = CombatPhase.IDLE
    enemy_id: Optional[str] = None
    player_health: int = 100
    player_max_health: int = 100
    enemy_health: int = 0
    enemy_max_health: int = 0
    attacker_turn: Actor = Actor.PLAYER
    last_attack_time: dict[Actor, int] = field(default_factory=lambda: {
        Actor.PLAYER: 0, Actor.ENEMY: 0,
    })
    searching_until: Optional[int] = None
    locked: bool = False
    has_died: bool = False
    log: deque = field(default_factory=lambda: deque(maxlen=50))

    @property
    def in_combat(self) -> bool:
        return self.phase in (CombatPhase.ACTIVE, CombatPhase.SEARCHING)

    def reset_timers(self, now: int) -> None:
        self.attacker_turn = Actor.PLAYER
        self.last_attack_time[Actor.PLAYER] = now
        self.last_attack_time[Actor.ENEMY] = now

    def stop(self) -> None:
        """Leave combat without any reward or penalty."""
        self.phase = CombatPhase.IDLE
        self.enemy_id = None
        self.searching_until = None
        self.player_health = self.player_max_health
