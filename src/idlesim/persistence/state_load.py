"""State load: restores players from a YAML dump.

Level and in-level progress are re-derived from the stored cumulative
position, so a snapshot written with a different curve still loads into
a consistent ledger.  One broken player record is logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from idlesim.engine.experience import cumulative_experience, progress_for
from idlesim.engine.veterancy_service import (
    resource_cumulative_xp,
    resource_veterancy_from_xp,
    skill_veterancy_from_pool,
)
from idlesim.models.combat import Stance
from idlesim.models.farming import FarmingPlot
from idlesim.models.player import PlayerState
from idlesim.models.skills import COMBAT_STATS, SkillProgress
from idlesim.models.tasks import ActivityClass, GatherCycleState, TimedTask
from idlesim.models.village import Building, Village, Villager
from idlesim.persistence.state_save import DEFAULT_STATE_PATH

log = logging.getLogger(__name__)


# ===================================================================
# Result container
# ===================================================================

@dataclass
class RestoredState:
    """Container for all data restored from a YAML state file.

    Attributes:
        players: Restored players keyed by uid.
        meta: Metadata from the save file (version, save timestamp).
    """

    players: dict[int, PlayerState] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)


# ===================================================================
# Public API
# ===================================================================


async def load_state(path: str = DEFAULT_STATE_PATH) -> Optional[RestoredState]:
    """Load game state from a YAML file.

    Returns None if the file does not exist or cannot be parsed.
    """
    state_file = Path(path)
    if not state_file.exists():
        log.info("No state file found at %s", path)
        return None

    try:
        raw = yaml.safe_load(state_file.read_text(encoding="utf-8"))
    except Exception:
        log.exception("Failed to parse state file %s", path)
        return None

    if not isinstance(raw, dict):
        log.warning("State file %s has unexpected format (not a dict)", path)
        return None

    result = RestoredState()
    result.meta = raw.get("meta") or {}
    log.info("Restoring state from %s (saved at %s, version %s)",
             path, result.meta.get("saved_at", "?"), result.meta.get("version", "?"))

    for player_dict in raw.get("players") or []:
        try:
            player = deserialize_player(player_dict)
            result.players[player.uid] = player
        except Exception:
            uid = player_dict.get("uid", "?") if isinstance(player_dict, dict) else "?"
            log.exception("Failed to restore player: %s", uid)

    log.info("Restored %d players", len(result.players))
    return result


# ===================================================================
# Player & sub-models
# ===================================================================

def _progress(d: dict[str, Any] | None) -> SkillProgress:
    d = d or {}
    level = max(1, int(d.get("level", 1)))
    return progress_for(cumulative_experience(level) + int(d.get("experience", 0)))


def deserialize_player(d: dict[str, Any]) -> PlayerState:
    player = PlayerState(
        uid=int(d["uid"]),
        name=d.get("name", ""),
        gold=max(0, int(d.get("gold", 0))),
        inventory={k: int(v) for k, v in (d.get("inventory") or {}).items() if int(v) > 0},
        skills={sid: _progress(p) for sid, p in (d.get("skills") or {}).items()},
        village=_deserialize_village(d.get("village") or {}),
        discovered_planets=list(d.get("discovered_planets") or []),
        equipment=dict(d.get("equipment") or {}),
        stance=Stance(d.get("stance", Stance.BASH.value)),
    )
    stats = d.get("combat_stats") or {}
    for stat in COMBAT_STATS:
        player.combat_stats[stat] = _progress(stats.get(stat))

    for rid, v in (d.get("resource_veterancy") or {}).items():
        level = max(1, int(v.get("level", 1)))
        xp = resource_cumulative_xp(level) + int(v.get("experience", 0))
        player.resource_veterancy[rid] = resource_veterancy_from_xp(rid, xp)
    for sid, pool in (d.get("skill_veterancy") or {}).items():
        player.skill_veterancy[sid] = skill_veterancy_from_pool(sid, int(pool))

    for activity_value, tasks in (d.get("tasks") or {}).items():
        ledger = player.ledger(ActivityClass(activity_value))
        for t in tasks:
            task = TimedTask(
                subject_id=t["subject_id"],
                start_time=int(t["start_time"]),
                duration=int(t["duration"]),
                completed=bool(t.get("completed", False)),
                auto_resume=bool(t.get("auto_resume", False)),
            )
            ledger.tasks[task.subject_id] = task

    for rid, c in (d.get("gather_cycles") or {}).items():
        deadline = c.get("respawn_deadline")
        player.gather_cycles[rid] = GatherCycleState(
            count=int(c.get("count", 0)),
            auto_resume=bool(c.get("auto_resume", False)),
            respawn_deadline=int(deadline) if deadline is not None else None,
        )

    for pid, seed_id in (d.get("plots") or {}).items():
        player.plots[pid] = FarmingPlot(pid, seed_id)
    return player


def _deserialize_building(d: dict[str, Any]) -> Building:
    last = d.get("last_accrual_time")
    return Building(
        bid=d["bid"],
        building_type=d["building_type"],
        level=int(d.get("level", 1)),
        assigned_workers=list(d.get("assigned_workers") or []),
        completed=bool(d.get("completed", True)),
        xp_reward=int(d.get("xp_reward", 0)),
        last_accrual_time=int(last) if last is not None else None,
        accumulated=max(0.0, float(d.get("accumulated", 0.0))),
    )


def _deserialize_village(d: dict[str, Any]) -> Village:
    village = Village()
    if "resources" in d:
        village.resources = {k: max(0.0, float(v)) for k, v in d["resources"].items()}
    if "storage_capacity" in d:
        village.storage_capacity = {k: float(v) for k, v in d["storage_capacity"].items()}
    village.buildings = [_deserialize_building(b) for b in d.get("buildings") or []]
    village.construction_queue = [
        _deserialize_building(b) for b in d.get("construction_queue") or []
    ]
    village.villagers = [
        Villager(
            vid=v["vid"],
            name=v.get("name", ""),
            villager_type=v.get("villager_type", "worker"),
            assigned_building=v.get("assigned_building"),
            efficiency=float(v.get("efficiency", 1.0)),
        )
        for v in d.get("villagers") or []
    ]
    village.next_id = int(d.get("next_id", len(village.buildings) + len(village.villagers) + 1))
    return village
