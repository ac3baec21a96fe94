"""Combat service: turn-based fights resolved on wall-clock ticks.

Each tick compares the time since an actor's last action with its attack
speed.  Only the actor whose turn it is may act, and acting flips the
turn *before* the swing is resolved.  The whole resolution runs under a
re-entrancy lock; rewards and penalties are queued on an
:class:`EffectQueue` and flushed after the lock is released, so nothing
observes a half-applied swing.

Phases: idle -> active <-> searching, active -> resolved_death -> (resume).
"""

from __future__ import annotations

import logging
import math
import random
from typing import TYPE_CHECKING, Optional

from idlesim.engine.experience import total_experience
from idlesim.engine.progression import add_gold, add_xp
from idlesim.loaders.game_config_loader import GameConfig
from idlesim.models.combat import (
    STANCE_STAT,
    Actor,
    CombatPhase,
    PlayerCombatStats,
    Stance,
)
from idlesim.models.skills import AGILITY, ATTACK, DEFENCE, MELEE, STRENGTH
from idlesim.util.constants import (
    ARMOR_MITIGATION_PER_POINT,
    BLOCK_REDUCTION,
    BLOCK_XP_PER_MITIGATED,
    COMBAT_XP_PER_DAMAGE,
    DEFAULT_AFFINITY,
    DEFAULT_ARMOR,
    MAGIC_DAMAGE_TYPES,
    MAX_ARMOR_MITIGATION_PERCENT,
    MAX_CRIT_CHANCE,
    MAX_MITIGATION_PERCENT,
    SKILL_VETERANCY_RATIO,
)
from idlesim.util.effect_queue import EffectQueue
from idlesim.util.events import CombatTurnResolved, EnemyDefeated, PlayerDied

if TYPE_CHECKING:
    from idlesim.engine.catalog import Catalog
    from idlesim.engine.task_service import TaskService
    from idlesim.engine.veterancy_service import VeterancyService
    from idlesim.models.combat import CombatState
    from idlesim.models.items import EnemyDefinition
    from idlesim.models.player import PlayerState
    from idlesim.util.events import EventBus

log = logging.getLogger(__name__)

PLAYER_DAMAGE_TYPE = "physical"
WEAPON_SLOT = "weapon"

# Armour style -> affinity contribution per style of incoming attack.
_AFFINITY_WEIGHTS = {
    "melee": {"magic": 45, "ranged": 65, "melee": 55, "hybrid": 55},
    "ranged": {"melee": 45, "magic": 65, "ranged": 55, "hybrid": 55},
    "magic": {"ranged": 45, "melee": 65, "magic": 55, "hybrid": 55},
}


# -- Formulas ------------------------------------------------------------

def hit_chance(affinity: float, accuracy: float, armor: float) -> float:
    """Percent hit chance, capped at 100.  Values below 1 always miss."""
    if armor <= 0:
        armor = DEFAULT_ARMOR
    # single division keeps whole-number results exact at the 1% floor
    return max(0.0, min(100.0, affinity * accuracy / armor))


def style_bonus(stance: Stance, weapon_stance: str | None) -> int:
    if weapon_stance is None:
        return 0
    return 3 if stance.value == weapon_stance else -1


def max_hit(strength_level: int, weapon_damage: float, bonus: int = 0) -> int:
    effective = strength_level + bonus
    return max(1, math.floor(7 * (2.2 + effective / 10
                                  + (effective + 17) * weapon_damage / 640)))


def mitigation_percent(defence_level: int, armor: float) -> float:
    armor_part = min(MAX_ARMOR_MITIGATION_PERCENT, armor * ARMOR_MITIGATION_PER_POINT)
    return min(MAX_MITIGATION_PERCENT, defence_level + armor_part)


def enemy_attack_style(damage_type: str) -> str:
    return "magic" if damage_type in MAGIC_DAMAGE_TYPES else "melee"


class CombatService:
    """Service for player-versus-enemy combat.

    Args:
        catalog: Enemy and equipment lookups.
        veterancy: Skill veterancy awards on kills.
        tasks: Used to stop gathering and crafting when a fight starts.
        event_bus: Event bus for inter-service communication.
        game_config: Combat constants.
        rng: Random source for damage, crit and attack-choice rolls.
    """

    def __init__(self, catalog: Catalog, veterancy: VeterancyService, tasks: TaskService,
                 event_bus: EventBus, game_config: GameConfig | None = None,
                 rng: random.Random | None = None) -> None:
        self._catalog = catalog
        self._veterancy = veterancy
        self._tasks = tasks
        self._events = event_bus
        self._rng = rng or random.Random()
        self._cfg = game_config or GameConfig()

    @staticmethod
    def _reject(player: PlayerState, reason: str, now: int) -> str:
        player.notifications.push(reason, "warning", now)
        return reason

    # -- Stats -----------------------------------------------------------

    def player_stats(self, player: PlayerState) -> PlayerCombatStats:
        """Combat numbers from equipped items and combat sub-stat levels."""
        cfg = self._cfg
        stats = PlayerCombatStats()
        armor = 0.0
        accuracy = cfg.base_accuracy
        crit = 0.0
        damage = cfg.base_damage
        armor_by_style: dict[str, float] = {}

        for slot, item_id in player.equipment.items():
            eq = self._catalog.equipment(item_id)
            if eq is None:
                continue
            if eq.damage:
                damage += eq.damage
                stats.weapon_damage = eq.damage
                stats.weapon_stance = eq.attack_type
                stats.attack_scale = eq.attack_scale
            if eq.armor:
                armor += eq.armor
                style = eq.armor_style or "melee"
                armor_by_style[style] = armor_by_style.get(style, 0.0) + eq.armor
            accuracy += eq.accuracy
            crit += eq.crit_chance

        attack = player.skill_level(ATTACK)
        strength = player.skill_level(STRENGTH)
        stats.accuracy = accuracy + attack * cfg.accuracy_per_attack_level
        stats.crit_chance = min(MAX_CRIT_CHANCE, crit + attack * 0.5)
        stats.damage = damage + strength * 2
        stats.crit_damage = cfg.base_crit_damage + strength * 5
        stats.armor = armor + player.skill_level(DEFENCE)
        stats.attack_speed = max(
            cfg.min_attack_speed_ms,
            cfg.base_attack_speed_ms * (1 - player.skill_level(AGILITY) * cfg.agility_speed_per_level))

        worn = sum(armor_by_style.values())
        if worn > 0:
            for style, weights in _AFFINITY_WEIGHTS.items():
                total = sum(weights.get(s, DEFAULT_AFFINITY) * a for s, a in armor_by_style.items())
                stats.affinity[style] = float(math.trunc(total / worn))
        return stats

    # ===================================================================
    # Intents
    # ===================================================================

    def start_combat(self, player: PlayerState, enemy_id: str, now: int) -> Optional[str]:
        enemy = self._catalog.enemy(enemy_id)
        if enemy is None:
            return self._reject(player, f"Unknown enemy: {enemy_id}", now)
        combat = player.combat
        if combat.phase is CombatPhase.RESOLVED_DEATH:
            return self._reject(player, "You were defeated. Resume before fighting again", now)

        self._tasks.stop_productive(player, now)
        combat.player_max_health = self._cfg.player_max_health
        self._engage(combat, enemy, now)
        combat.log.clear()
        combat.log.append(f"You engage {enemy.name}")
        player.notifications.push(f"Started fighting {enemy.name}", "info", now)
        log.info("Player %d: combat started against %s", player.uid, enemy_id)
        return None

    @staticmethod
    def _engage(combat: CombatState, enemy: EnemyDefinition, now: int) -> None:
        combat.phase = CombatPhase.ACTIVE
        combat.enemy_id = enemy.eid
        combat.player_health = combat.player_max_health
        combat.enemy_max_health = enemy.health
        combat.enemy_health = enemy.health
        combat.searching_until = None
        combat.has_died = False
        combat.reset_timers(now)

    def stop_combat(self, player: PlayerState, now: int) -> Optional[str]:
        combat = player.combat
        if combat.phase is CombatPhase.IDLE:
            return self._reject(player, "You are not in combat", now)
        combat.stop()
        combat.has_died = False
        player.notifications.push("Combat stopped", "info", now)
        return None

    def set_stance(self, player: PlayerState, stance: str | Stance, now: int) -> Optional[str]:
        try:
            player.stance = Stance(stance)
        except ValueError:
            return self._reject(player, f"Unknown stance: {stance}", now)
        return None

    def equip(self, player: PlayerState, item_id: str, now: int) -> Optional[str]:
        eq = self._catalog.equipment(item_id)
        name = self._catalog.item_name(item_id)
        if eq is None:
            return self._reject(player, f"{name} cannot be equipped", now)
        if player.count(item_id) < 1:
            return self._reject(player, f"You don't have {name}", now)
        previous = player.equipment.get(eq.slot)
        if previous is not None:
            player.add_item(previous, 1)
        player.remove_item(item_id, 1)
        player.equipment[eq.slot] = item_id
        player.notifications.push(f"Equipped {name}", "info", now)
        return None

    def unequip(self, player: PlayerState, slot: str, now: int) -> Optional[str]:
        item_id = player.equipment.pop(slot, None)
        if item_id is None:
            return self._reject(player, f"Nothing equipped in {slot}", now)
        player.add_item(item_id, 1)
        return None

    def resume(self, player: PlayerState, now: int, restart: bool = False) -> Optional[str]:
        """Acknowledge a death; optionally restart against the same enemy."""
        combat = player.combat
        if combat.phase is not CombatPhase.RESOLVED_DEATH:
            return self._reject(player, "Nothing to resume", now)
        combat.has_died = False
        enemy = self._catalog.enemy(combat.enemy_id) if combat.enemy_id else None
        if restart and enemy is not None:
            self._tasks.stop_productive(player, now)
            self._engage(combat, enemy, now)
            combat.log.append(f"You engage {enemy.name}")
        else:
            combat.stop()
        return None

    # ===================================================================
    # Tick
    # ===================================================================

    def tick(self, player: PlayerState, now: int) -> bool:
        """Resolve at most one action.  Returns True if an actor acted."""
        combat = player.combat
        if combat.locked:
            return False

        if combat.phase is CombatPhase.SEARCHING:
            if combat.searching_until is not None and now >= combat.searching_until:
                enemy = self._catalog.enemy(combat.enemy_id) if combat.enemy_id else None
                if enemy is None:
                    log.warning("Player %d: enemy %s vanished while searching",
                                player.uid, combat.enemy_id)
                    combat.stop()
                    return False
                combat.phase = CombatPhase.ACTIVE
                combat.searching_until = None
                combat.enemy_max_health = enemy.health
                combat.enemy_health = enemy.health
                combat.reset_timers(now)
                combat.log.append(f"A new {enemy.name} appears")
            return False

        if combat.phase is not CombatPhase.ACTIVE:
            return False
        enemy = self._catalog.enemy(combat.enemy_id) if combat.enemy_id else None
        if enemy is None:
            log.warning("Player %d: unknown enemy %s, leaving combat", player.uid, combat.enemy_id)
            combat.stop()
            return False

        stats = self.player_stats(player)
        actor = combat.attacker_turn
        speed = stats.attack_speed if actor is Actor.PLAYER else enemy.attack_speed
        if now - combat.last_attack_time[actor] < speed:
            return False

        effects = EffectQueue()
        combat.locked = True
        try:
            combat.attacker_turn = actor.other
            combat.last_attack_time[actor] = now
            if actor is Actor.PLAYER:
                dealt = self._player_turn(player, enemy, stats, effects, now)
            else:
                dealt = self._enemy_turn(player, enemy, stats, effects, now)
            self._events.emit(CombatTurnResolved(player.uid, actor.value, dealt))
        finally:
            combat.locked = False
        effects.flush()
        return True

    # -- Player turn -----------------------------------------------------

    def _player_turn(self, player: PlayerState, enemy: EnemyDefinition,
                     stats: PlayerCombatStats, effects: EffectQueue, now: int) -> int:
        combat = player.combat
        stance = player.stance
        if stance is Stance.BLOCK:
            combat.log.append("You raise your guard")
            return 0

        chance = hit_chance(enemy.affinity.get(stance.value, DEFAULT_AFFINITY),
                            stats.accuracy, enemy.armor)
        if chance < 1:
            message = f"You miss {enemy.name}!"
            combat.log.append(message)
            player.notifications.push(message, "combat", now)
            return 0

        top = max_hit(player.skill_level(STRENGTH), stats.weapon_damage,
                      style_bonus(stance, stats.weapon_stance))
        rolled: float = self._rng.randint(1, top)
        critical = self._rng.random() * 100 < stats.crit_chance
        if critical:
            rolled = math.floor(rolled * stats.crit_damage / 100)
        scaled = math.floor(rolled * chance / 100)
        damage = math.floor(scaled * enemy.takes_damage.get(PLAYER_DAMAGE_TYPE, 1.0))

        xp = COMBAT_XP_PER_DAMAGE * damage
        if stats.weapon_stance == stance.value:
            xp *= stats.attack_scale
        xp = math.floor(xp)
        if xp > 0:
            effects.defer(add_xp, player, STANCE_STAT[stance], xp, now)

        dealt = min(damage, combat.enemy_health)
        combat.enemy_health -= dealt
        suffix = " (CRITICAL!)" if critical else ""
        combat.log.append(f"You {stance.value} {enemy.name} for {dealt} damage{suffix}")

        if combat.enemy_health <= 0:
            self._enemy_defeated(player, enemy, effects, now)
        return dealt

    def _enemy_defeated(self, player: PlayerState, enemy: EnemyDefinition,
                        effects: EffectQueue, now: int) -> None:
        combat = player.combat
        combat.enemy_health = 0
        combat.phase = CombatPhase.SEARCHING
        combat.searching_until = now + self._cfg.search_delay_ms
        combat.log.append(f"You defeated {enemy.name}!")
        effects.defer(self._grant_kill_rewards, player, enemy, now)
        self._events.emit(EnemyDefeated(player.uid, enemy.eid))

    def _grant_kill_rewards(self, player: PlayerState, enemy: EnemyDefinition, now: int) -> None:
        add_xp(player, MELEE, enemy.xp_reward, now)
        add_gold(player, enemy.gold_reward)
        self._veterancy.add_skill_xp(player, MELEE,
                                     math.floor(enemy.xp_reward * SKILL_VETERANCY_RATIO))
        player.notifications.push(
            f"Defeated {enemy.name}: +{enemy.xp_reward} XP, +{enemy.gold_reward} gold",
            "reward", now)

    # -- Enemy turn ------------------------------------------------------

    def _enemy_turn(self, player: PlayerState, enemy: EnemyDefinition,
                    stats: PlayerCombatStats, effects: EffectQueue, now: int) -> int:
        combat = player.combat
        if not enemy.attacks:
            combat.log.append(f"{enemy.name} hesitates")
            return 0
        attack = self._rng.choice(enemy.attacks)
        accuracy = enemy.level * 10 + 50
        style = enemy_attack_style(attack.damage_type)
        chance = hit_chance(stats.affinity.get(style, DEFAULT_AFFINITY), accuracy, stats.armor)
        if chance < 1:
            combat.log.append(f"{enemy.name} misses you!")
            return 0

        potential = math.floor(attack.damage * chance / 100)
        mitigation = mitigation_percent(player.skill_level(DEFENCE), stats.armor)
        mitigated = math.floor(potential * (1 - mitigation / 100))
        damage = mitigated
        if player.stance is Stance.BLOCK:
            damage = math.floor(mitigated * BLOCK_REDUCTION)
            block_xp = math.floor((mitigated - damage) * BLOCK_XP_PER_MITIGATED)
            if block_xp > 0:
                effects.defer(add_xp, player, DEFENCE, block_xp, now)

        dealt = min(damage, combat.player_health)
        combat.player_health -= dealt
        blocked = " (BLOCKED)" if player.stance is Stance.BLOCK else ""
        combat.log.append(
            f"{enemy.name} uses {attack.name}: {dealt} {attack.damage_type} damage{blocked}")

        if combat.player_health <= 0:
            self._player_died(player, enemy, effects, now)
        return dealt

    def _player_died(self, player: PlayerState, enemy: EnemyDefinition,
                     effects: EffectQueue, now: int) -> None:
        combat = player.combat
        if combat.has_died:
            return
        combat.has_died = True
        combat.player_health = combat.player_max_health
        combat.enemy_health = combat.enemy_max_health
        combat.phase = CombatPhase.RESOLVED_DEATH
        combat.log.append(f"You were defeated by {enemy.name}")
        effects.defer(self._apply_death_penalty, player, STANCE_STAT[player.stance], now)
        self._events.emit(PlayerDied(player.uid, enemy.eid))
        log.info("Player %d: died fighting %s", player.uid, enemy.eid)

    def _apply_death_penalty(self, player: PlayerState, sub_stat: str, now: int) -> None:
        rate = self._cfg.death_xp_penalty
        lost = {}
        for skill_id in (MELEE, sub_stat):
            amount = math.floor(total_experience(player.skill(skill_id)) * rate)
            if amount > 0:
                add_xp(player, skill_id, -amount, now)
            lost[skill_id] = amount
        player.notifications.push(
            f"You died! Lost {lost[MELEE]} melee XP and {lost[sub_stat]} {sub_stat} XP",
            "warning", now)
