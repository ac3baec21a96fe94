"""Player model: a player's complete simulation state.

A PlayerState owns every ledger of one player: skills, veterancy, task
ledgers, gather cycles, inventory, gold, village, farming plots and the
(ephemeral) combat state.  Only engine services mutate it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from idlesim.models.combat import CombatState, Stance
from idlesim.models.farming import FarmingPlot
from idlesim.models.skills import COMBAT_STATS, SkillProgress
from idlesim.models.tasks import ActivityClass, GatherCycleState, TaskLedger
from idlesim.models.veterancy import ResourceVeterancy, SkillVeterancy
from idlesim.models.village import Village
from idlesim.util.notifications import NotificationQueue


def _default_ledgers() -> dict[ActivityClass, TaskLedger]:
    return {activity: TaskLedger(activity) for activity in ActivityClass}


@dataclass
class PlayerState:
    """Complete state of one player.

    Attributes:
        uid: Player id.
        name: Display name.
        gold: Currency.
        inventory: Item counts {item_id: count}.  Never negative.
        skills: Primary skill progress by skill id.
        combat_stats: Combat sub-stat progress (strength, attack, ...).
        resource_veterancy: Veterancy per resource / recipe id.
        skill_veterancy: Veterancy pool per skill id.
        ledgers: One task ledger per activity class.
        gather_cycles: Gather counter and respawn state per resource id.
        village: Colony buildings, villagers and storage.
        plots: Farming plots by plot id.
        discovered_planets: Planet ids that were successfully contacted.
        equipment: Equipped item id per slot.
        stance: Selected combat stance.
        combat: Ephemeral combat state (not persisted).
        notifications: Ephemeral outbound notifications (not persisted).
    """

    uid: int
    name: str = ""
    gold: int = 0
    inventory: dict[str, int] = field(default_factory=dict)
    skills: dict[str, SkillProgress] = field(default_factory=dict)
    combat_stats: dict[str, SkillProgress] = field(
        default_factory=lambda: {s: SkillProgress() for s in COMBAT_STATS})
    resource_veterancy: dict[str, ResourceVeterancy] = field(default_factory=dict)
    skill_veterancy: dict[str, SkillVeterancy] = field(default_factory=dict)
    ledgers: dict[ActivityClass, TaskLedger] = field(default_factory=_default_ledgers)
    gather_cycles: dict[str, GatherCycleState] = field(default_factory=dict)
    village: Village = field(default_factory=Village)
    plots: dict[str, FarmingPlot] = field(default_factory=dict)
    discovered_planets: list[str] = field(default_factory=list)
    equipment: dict[str, str] = field(default_factory=dict)
    stance: Stance = Stance.BASH

    combat: CombatState = field(default_factory=CombatState)
    notifications: NotificationQueue = field(default_factory=NotificationQueue)

    # -- Skills ----------------------------------------------------------

    def skill(self, skill_id: str) -> SkillProgress:
        """Progress of a primary skill or sub-stat (created at level 1)."""
        if skill_id in self.combat_stats:
            return self.combat_stats[skill_id]
        progress = self.skills.get(skill_id)
        if progress is None:
            progress = self.skills[skill_id] = SkillProgress()
        return progress

    def skill_level(self, skill_id: str) -> int:
        return self.skill(skill_id).level

    def resource_veterancy_level(self, resource_id: str) -> int:
        """Veterancy level of a resource, 0 when it has none yet."""
        vet = self.resource_veterancy.get(resource_id)
        return vet.level if vet is not None else 0

    def skill_veterancy_level(self, skill_id: str) -> int:
        vet = self.skill_veterancy.get(skill_id)
        return vet.level if vet is not None else 0

    # -- Tasks -----------------------------------------------------------

    def ledger(self, activity: ActivityClass) -> TaskLedger:
        ledger = self.ledgers.get(activity)
        if ledger is None:
            ledger = self.ledgers[activity] = TaskLedger(activity)
        return ledger

    def gather_cycle(self, resource_id: str) -> GatherCycleState:
        cycle = self.gather_cycles.get(resource_id)
        if cycle is None:
            cycle = self.gather_cycles[resource_id] = GatherCycleState()
        return cycle

    # -- Inventory -------------------------------------------------------

    def count(self, item_id: str) -> int:
        return self.inventory.get(item_id, 0)

    def add_item(self, item_id: str, amount: int) -> None:
        if amount <= 0:
            return
        self.inventory[item_id] = self.inventory.get(item_id, 0) + amount

    def remove_item(self, item_id: str, amount: int) -> int:
        """Remove up to *amount* of an item, clamping at zero.

        Returns the amount actually removed.
        """
        have = self.inventory.get(item_id, 0)
        taken = min(have, max(0, amount))
        remaining = have - taken
        if remaining > 0:
            self.inventory[item_id] = remaining
        else:
            self.inventory.pop(item_id, None)
        return taken

    def has_items(self, items: dict[str, int]) -> bool:
        return all(self.count(iid) >= amount for iid, amount in items.items())

    def missing_items(self, items: dict[str, int]) -> Optional[str]:
        """Id of the first item short in the inventory, or None."""
        for iid, amount in items.items():
            if self.count(iid) < amount:
                return iid
        return None
