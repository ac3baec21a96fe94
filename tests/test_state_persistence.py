"""Tests for state_save and state_load round-trip persistence."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from idlesim.engine.catalog import Catalog
from idlesim.engine.experience import total_experience
from idlesim.engine.player_service import PlayerService
from idlesim.engine.progression import add_xp
from idlesim.engine.task_service import TaskService
from idlesim.engine.veterancy_service import (
    VeterancyService,
    resource_veterancy_from_xp,
    skill_veterancy_from_pool,
)
from idlesim.loaders.catalog_loader import CatalogData
from idlesim.models.combat import CombatPhase, Stance
from idlesim.models.farming import FarmingPlot
from idlesim.models.items import GatherResource
from idlesim.models.player import PlayerState
from idlesim.models.skills import GATHERING, STRENGTH
from idlesim.models.tasks import ActivityClass
from idlesim.persistence.state_load import RestoredState, load_state
from idlesim.persistence.state_save import save_state, serialize_player
from idlesim.util.events import EventBus


class ScriptedRng:
    def random(self) -> float:
        return 0.99


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def _make_player(uid: int = 1, name: str = "Tester") -> PlayerState:
    """Create a fully populated test player."""
    player = PlayerService().create_player(uid, name)
    player.gold = 240
    player.inventory = {"ferrite-ore": 12, "ferrite-mace": 1}
    add_xp(player, GATHERING, 300)
    add_xp(player, STRENGTH, 90)
    player.resource_veterancy["ferrite-ore"] = resource_veterancy_from_xp("ferrite-ore", 150)
    player.skill_veterancy[GATHERING] = skill_veterancy_from_pool(GATHERING, 350)
    player.plots["plot-1"] = FarmingPlot("plot-1", "apples-seed")
    player.plots["plot-2"] = FarmingPlot("plot-2")
    player.ledger(ActivityClass.GROW).start("plot-1", 30_000, 5000)
    player.ledger(ActivityClass.GATHER).start("ferrite-ore", 3000, 1000, True)
    cycle = player.gather_cycle("ferrite-ore")
    cycle.count = 4
    cycle.auto_resume = True
    player.discovered_planets = ["agri-prime"]
    player.equipment = {"weapon": "ferrite-blade"}
    player.stance = Stance.CUT
    player.village.resources["wood"] = 75.5
    player.village.buildings[0].last_accrual_time = 1000
    return player


async def _round_trip(tmp_path: Path, *players: PlayerState) -> RestoredState:
    path = str(tmp_path / "state.yaml")
    await save_state({p.uid: p for p in players}, path)
    restored = await load_state(path)
    assert restored is not None
    return restored


# -------------------------------------------------------------------
# Save / load
# -------------------------------------------------------------------

class TestSaveLoad:
    async def test_save_creates_file(self, tmp_path: Path) -> None:
        path = tmp_path / "state.yaml"
        await save_state({1: _make_player()}, str(path))
        assert path.exists()
        assert not (tmp_path / "state.yaml.tmp").exists()

    async def test_load_nonexistent_returns_none(self, tmp_path: Path) -> None:
        assert await load_state(str(tmp_path / "nope.yaml")) is None

    async def test_unparsable_returns_none(self, tmp_path: Path) -> None:
        path = tmp_path / "state.yaml"
        path.write_text("players: [unclosed", encoding="utf-8")
        assert await load_state(str(path)) is None

    async def test_not_a_mapping_returns_none(self, tmp_path: Path) -> None:
        path = tmp_path / "state.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        assert await load_state(str(path)) is None

    async def test_meta(self, tmp_path: Path) -> None:
        restored = await _round_trip(tmp_path, _make_player())
        assert restored.meta["version"] == 1
        assert "saved_at" in restored.meta

    async def test_no_players(self, tmp_path: Path) -> None:
        path = str(tmp_path / "state.yaml")
        await save_state({}, path)
        restored = await load_state(path)
        assert restored is not None
        assert restored.players == {}


class TestRoundTrip:
    async def test_basics(self, tmp_path: Path) -> None:
        restored = (await _round_trip(tmp_path, _make_player())).players[1]
        assert restored.name == "Tester"
        assert restored.gold == 240
        assert restored.inventory == {"ferrite-ore": 12, "ferrite-mace": 1}
        assert restored.discovered_planets == ["agri-prime"]
        assert restored.equipment == {"weapon": "ferrite-blade"}
        assert restored.stance is Stance.CUT

    async def test_skills_and_stats(self, tmp_path: Path) -> None:
        original = _make_player()
        restored = (await _round_trip(tmp_path, original)).players[1]
        assert restored.skill(GATHERING) == original.skill(GATHERING)
        assert total_experience(restored.skill(GATHERING)) == 300
        assert total_experience(restored.skill(STRENGTH)) == 90
        assert restored.skill_level(STRENGTH) == 2

    async def test_veterancy(self, tmp_path: Path) -> None:
        original = _make_player()
        restored = (await _round_trip(tmp_path, original)).players[1]
        assert restored.resource_veterancy["ferrite-ore"] == original.resource_veterancy["ferrite-ore"]
        assert restored.skill_veterancy[GATHERING].pool == 350
        assert restored.skill_veterancy[GATHERING].level == 2

    async def test_tasks_and_cycles(self, tmp_path: Path) -> None:
        restored = (await _round_trip(tmp_path, _make_player())).players[1]
        task = restored.ledger(ActivityClass.GATHER).get("ferrite-ore")
        assert (task.start_time, task.duration, task.auto_resume) == (1000, 3000, True)
        grow = restored.ledger(ActivityClass.GROW).get("plot-1")
        assert (grow.start_time, grow.duration, grow.completed) == (5000, 30_000, False)
        cycle = restored.gather_cycles["ferrite-ore"]
        assert cycle.count == 4
        assert cycle.auto_resume is True
        assert cycle.respawn_deadline is None

    async def test_village_and_plots(self, tmp_path: Path) -> None:
        original = _make_player()
        restored = (await _round_trip(tmp_path, original)).players[1]
        assert restored.village == original.village
        assert restored.village.next_id == 4
        assert restored.plots["plot-1"].seed_id == "apples-seed"
        assert restored.plots["plot-2"].is_empty

    async def test_combat_not_persisted(self, tmp_path: Path) -> None:
        original = _make_player()
        original.combat.phase = CombatPhase.ACTIVE
        original.combat.enemy_id = "chaos-cultist"
        original.combat.player_health = 40
        original.notifications.push("Ferrite Ore +1")

        restored = (await _round_trip(tmp_path, original)).players[1]

        assert restored.combat.phase is CombatPhase.IDLE
        assert restored.combat.enemy_id is None
        assert restored.combat.player_health == 100
        assert len(restored.notifications) == 0

    async def test_multiple_players(self, tmp_path: Path) -> None:
        restored = await _round_trip(tmp_path, _make_player(1, "A"), _make_player(2, "B"))
        assert sorted(restored.players) == [1, 2]
        assert restored.players[2].name == "B"


class TestRestore:
    async def test_broken_record_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "state.yaml"
        good = serialize_player(_make_player(7, "Good"))
        path.write_text(yaml.dump({"meta": {}, "players": [{"name": "no uid"}, good]}),
                        encoding="utf-8")
        restored = await load_state(str(path))
        assert list(restored.players) == [7]

    async def test_progress_rederived_from_cumulative(self, tmp_path: Path) -> None:
        path = tmp_path / "state.yaml"
        record = {"uid": 3, "skills": {GATHERING: {"level": 2, "experience": 200}}}
        path.write_text(yaml.dump({"players": [record]}), encoding="utf-8")
        player = (await load_state(str(path))).players[3]
        # 83 + 200 = 283 -> level 4 (275) with 8 into the level
        assert player.skill_level(GATHERING) == 4
        assert player.skill(GATHERING).experience == 8

    async def test_restored_gathering_catches_up(self, tmp_path: Path) -> None:
        player = PlayerState(uid=1)
        player.ledger(ActivityClass.GATHER).start("ferrite-ore", 3000, 0, True)
        player.gather_cycle("ferrite-ore").auto_resume = True
        restored = (await _round_trip(tmp_path, player)).players[1]

        catalog = Catalog()
        catalog.load(CatalogData(resources=[
            GatherResource("ferrite-ore", name="Ferrite Ore", base_time=3, xp_reward=5),
        ]))
        tasks = TaskService(catalog, VeterancyService(rng=ScriptedRng()), EventBus(),
                            rng=ScriptedRng())
        tasks.reconcile(restored, 9000)

        assert restored.count("ferrite-ore") == 3
        assert restored.ledger(ActivityClass.GATHER).get("ferrite-ore").start_time == 9000

    @pytest.mark.parametrize("stance", ["bash", "stab", "block"])
    async def test_stance(self, tmp_path: Path, stance: str) -> None:
        player = PlayerState(uid=1, stance=Stance(stance))
        restored = (await _round_trip(tmp_path, player)).players[1]
        assert restored.stance.value == stance
