"""State save: serializes every player's ledgers to YAML.

The snapshot covers everything that survives a restart: skills,
veterancy, task ledgers, gather cycles, inventory, gold, village, plots,
planets, equipment and stance.  Combat state and notifications are
transient and are not written.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

import yaml

from idlesim.models.player import PlayerState
from idlesim.models.skills import SkillProgress
from idlesim.models.tasks import TaskLedger
from idlesim.models.village import Building, Village

log = logging.getLogger(__name__)

# Default path for the state file (relative to working directory)
DEFAULT_STATE_PATH = "state.yaml"
STATE_VERSION = 1


# ===================================================================
# Public API
# ===================================================================


async def save_state(players: dict[int, PlayerState], path: str = DEFAULT_STATE_PATH) -> None:
    """Serialize all players to a YAML file (atomically via a temp file).

    Args:
        players: All registered players keyed by uid.
        path: Output file path.
    """
    state: dict[str, Any] = {
        "meta": _serialize_meta(),
        "players": [serialize_player(p) for p in players.values()],
    }

    out = Path(path)
    tmp = out.with_suffix(".yaml.tmp")
    try:
        tmp.write_text(
            yaml.dump(state, default_flow_style=False, allow_unicode=True, sort_keys=False),
            encoding="utf-8",
        )
        tmp.replace(out)
        log.info("Game state saved to %s (%d players)", path, len(players))
    except Exception:
        log.exception("Failed to save game state to %s", path)
        if tmp.exists():
            tmp.unlink(missing_ok=True)
        raise


# ===================================================================
# Meta
# ===================================================================

def _serialize_meta() -> dict[str, Any]:
    return {
        "version": STATE_VERSION,
        "saved_at": time.strftime("%Y-%m-%dT%H:%M:%S"),
        "saved_at_ms": int(time.time() * 1000),
    }


# ===================================================================
# Player & sub-models
# ===================================================================

def serialize_player(player: PlayerState) -> dict[str, Any]:
    """Plain-data snapshot of one player (also used by the REST state view)."""
    return {
        "uid": player.uid,
        "name": player.name,
        "gold": player.gold,
        "inventory": dict(player.inventory),
        "skills": {sid: _progress(p) for sid, p in player.skills.items()},
        "combat_stats": {sid: _progress(p) for sid, p in player.combat_stats.items()},
        "resource_veterancy": {
            rid: {"level": v.level, "experience": v.experience}
            for rid, v in player.resource_veterancy.items()
        },
        "skill_veterancy": {sid: v.pool for sid, v in player.skill_veterancy.items()},
        "tasks": {
            activity.value: _serialize_ledger(ledger)
            for activity, ledger in player.ledgers.items()
            if len(ledger)
        },
        "gather_cycles": {
            rid: {
                "count": c.count,
                "auto_resume": c.auto_resume,
                "respawn_deadline": c.respawn_deadline,
            }
            for rid, c in player.gather_cycles.items()
        },
        "village": _serialize_village(player.village),
        "plots": {pid: plot.seed_id for pid, plot in player.plots.items()},
        "discovered_planets": list(player.discovered_planets),
        "equipment": dict(player.equipment),
        "stance": player.stance.value,
    }


def _progress(p: SkillProgress) -> dict[str, int]:
    return {"level": p.level, "experience": p.experience}


def _serialize_ledger(ledger: TaskLedger) -> list[dict[str, Any]]:
    return [
        {
            "subject_id": t.subject_id,
            "start_time": t.start_time,
            "duration": t.duration,
            "completed": t.completed,
            "auto_resume": t.auto_resume,
        }
        for t in ledger.tasks.values()
    ]


def _serialize_building(b: Building) -> dict[str, Any]:
    return {
        "bid": b.bid,
        "building_type": b.building_type,
        "level": b.level,
        "assigned_workers": list(b.assigned_workers),
        "completed": b.completed,
        "xp_reward": b.xp_reward,
        "last_accrual_time": b.last_accrual_time,
        "accumulated": b.accumulated,
    }


def _serialize_village(village: Village) -> dict[str, Any]:
    return {
        "resources": dict(village.resources),
        "storage_capacity": dict(village.storage_capacity),
        "buildings": [_serialize_building(b) for b in village.buildings],
        "construction_queue": [_serialize_building(b) for b in village.construction_queue],
        "villagers": [
            {
                "vid": v.vid,
                "name": v.name,
                "villager_type": v.villager_type,
                "assigned_building": v.assigned_building,
                "efficiency": v.efficiency,
            }
            for v in village.villagers
        ],
        "next_id": village.next_id,
    }
