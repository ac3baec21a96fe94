"""Tests for gathering: cycles, respawn, auto-resume and catch-up."""

from __future__ import annotations

from idlesim.engine.catalog import Catalog
from idlesim.engine.experience import total_experience
from idlesim.engine.task_service import TaskService
from idlesim.engine.veterancy_service import VeterancyService, skill_veterancy_from_pool
from idlesim.loaders.catalog_loader import CatalogData
from idlesim.loaders.game_config_loader import GameConfig
from idlesim.models.items import GatherResource, Recipe, RecipeKind
from idlesim.models.player import PlayerState
from idlesim.models.skills import GATHERING
from idlesim.models.tasks import ActivityClass
from idlesim.util.events import EventBus, TaskCancelled, TaskCompleted


class ScriptedRng:
    def __init__(self, *values: float) -> None:
        self._values = list(values) or [0.99]

    def random(self) -> float:
        if len(self._values) > 1:
            return self._values.pop(0)
        return self._values[0]


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def _make_catalog() -> Catalog:
    catalog = Catalog()
    catalog.load(CatalogData(
        resources=[
            GatherResource("ferrite-ore", name="Ferrite Ore", base_time=3,
                           xp_reward=5, respawn_time=1),
            GatherResource("gunmetal-ore", name="Gunmetal Ore", base_time=3,
                           xp_reward=7, respawn_time=5),
            GatherResource("warp-cores", name="Warp Cores", base_time=3,
                           xp_reward=10, respawn_time=0),
            GatherResource("cobalt-fragments", name="Cobalt Fragments", level_required=15,
                           base_time=3, xp_reward=14, respawn_time=10),
        ],
        recipes=[
            Recipe("ferrite-ingot", kind=RecipeKind.SMELT, name="Ferrite Ingot",
                   xp_reward=5, time=2, ingredients={"ferrite-ore": 2}),
        ],
    ))
    return catalog


def _make_service(rng_value: float = 0.99, game_config: GameConfig | None = None,
                  bus: EventBus | None = None) -> TaskService:
    gc = game_config or GameConfig()
    veterancy = VeterancyService(gc, rng=ScriptedRng(rng_value))
    return TaskService(_make_catalog(), veterancy, bus or EventBus(), gc,
                       rng=ScriptedRng(rng_value))


def _gather_task(player: PlayerState, rid: str):
    return player.ledger(ActivityClass.GATHER).get(rid)


# -------------------------------------------------------------------
# Start / stop
# -------------------------------------------------------------------

class TestStartGathering:
    def test_start_creates_task(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        assert svc.start_gathering(player, "ferrite-ore", 0) is None
        task = _gather_task(player, "ferrite-ore")
        assert task.start_time == 0
        assert task.duration == 3000
        assert player.gather_cycles["ferrite-ore"].auto_resume is True

    def test_unknown_resource(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        assert svc.start_gathering(player, "nope", 0) == "Unknown resource: nope"
        note = player.notifications.peek()[-1]
        assert note.message == "Unknown resource: nope"
        assert note.kind == "warning"

    def test_level_requirement(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        err = svc.start_gathering(player, "cobalt-fragments", 0)
        assert err == "Requires Salvaging level 15"
        assert len(player.ledger(ActivityClass.GATHER)) == 0

    def test_only_one_resource_at_a_time(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.start_gathering(player, "gunmetal-ore", 1000)
        ledger = player.ledger(ActivityClass.GATHER)
        assert list(ledger.tasks) == ["gunmetal-ore"]
        assert player.gather_cycles["ferrite-ore"].auto_resume is False

    def test_switching_pays_out_due_task_first(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.start_gathering(player, "gunmetal-ore", 3500)
        assert player.count("ferrite-ore") == 1

    def test_stop_before_deadline_grants_nothing(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.stop_gathering(player, 2000)
        assert player.count("ferrite-ore") == 0
        assert len(player.ledger(ActivityClass.GATHER)) == 0
        svc.reconcile(player, 60_000)
        assert player.count("ferrite-ore") == 0

    def test_stop_settles_due_cycles(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.stop_gathering(player, 6500, "ferrite-ore")
        assert player.count("ferrite-ore") == 2
        assert _gather_task(player, "ferrite-ore") is None


# -------------------------------------------------------------------
# Completion
# -------------------------------------------------------------------

class TestCompletion:
    def test_single_completion_rewards(self):
        bus = EventBus()
        completed = []
        bus.on(TaskCompleted, lambda e: completed.append((e.activity, e.subject_id)))
        svc = _make_service(bus=bus)
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.reconcile(player, 2999)
        assert player.count("ferrite-ore") == 0
        svc.reconcile(player, 3000)
        assert player.count("ferrite-ore") == 1
        assert player.skill(GATHERING).experience == 5
        assert player.resource_veterancy["ferrite-ore"].experience == 5
        assert player.skill_veterancy["salvaging"].pool == 2
        assert "Ferrite Ore +1" in player.notifications.messages()
        assert completed == [("gather", "ferrite-ore")]

    def test_next_cycle_anchored_at_deadline(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.reconcile(player, 3700)
        assert _gather_task(player, "ferrite-ore").start_time == 3000

    def test_without_auto_resume_stops_after_one(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0, auto_resume=False)
        svc.reconcile(player, 9000)
        assert player.count("ferrite-ore") == 1
        assert _gather_task(player, "ferrite-ore") is None

    def test_extra_yield_uses_veterancy_level(self):
        svc = _make_service(rng_value=0.0)
        player = PlayerState(uid=1)
        svc._veterancy.add_resource_xp(player, "ferrite-ore", 104)
        assert player.resource_veterancy_level("ferrite-ore") == 2
        svc.start_gathering(player, "ferrite-ore", 0, auto_resume=False)
        svc.reconcile(player, 3000)
        assert player.count("ferrite-ore") == 2
        assert "Ferrite Ore +2 (1 bonus)" in player.notifications.messages()

    def test_xp_bonus_from_skill_veterancy(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        player.skill_veterancy[GATHERING] = skill_veterancy_from_pool(GATHERING, 5500)
        svc.start_gathering(player, "ferrite-ore", 0, auto_resume=False)
        task = _gather_task(player, "ferrite-ore")
        assert task.duration == 2850
        svc.reconcile(player, 2850)
        # floor(5 * 1.01)
        assert player.skill(GATHERING).experience == 5


# -------------------------------------------------------------------
# Gather limit and respawn
# -------------------------------------------------------------------

class TestRespawn:
    def test_ten_gathers_then_respawn(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        assert svc.start_gathering(player, "ferrite-ore", 0) is None

        svc.reconcile(player, 30_000)

        assert player.count("ferrite-ore") == 10
        assert total_experience(player.skill(GATHERING)) == 50
        cycle = player.gather_cycles["ferrite-ore"]
        assert cycle.count == 0
        assert cycle.respawn_deadline == 31_000
        assert _gather_task(player, "ferrite-ore") is None
        assert "Ferrite Ore depleted, respawning in 1s" in player.notifications.messages()

    def test_start_rejected_while_respawning(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.reconcile(player, 30_000)

        err = svc.start_gathering(player, "ferrite-ore", 30_500)

        assert err == "Ferrite Ore is respawning (1s remaining)"
        assert _gather_task(player, "ferrite-ore") is None

    def test_auto_resume_after_respawn(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.reconcile(player, 30_000)

        svc.reconcile(player, 31_000)

        task = _gather_task(player, "ferrite-ore")
        assert task is not None
        assert task.start_time == 31_000
        assert player.gather_cycles["ferrite-ore"].respawn_deadline is None

    def test_no_gather_completes_inside_respawn_window(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        for now in range(0, 33_900, 100):
            svc.reconcile(player, now)
        assert player.count("ferrite-ore") == 10
        svc.reconcile(player, 34_000)
        assert player.count("ferrite-ore") == 11

    def test_manual_restart_after_respawn_without_auto_resume(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.reconcile(player, 30_000)
        svc.stop_gathering(player, 30_200)

        svc.reconcile(player, 40_000)
        assert _gather_task(player, "ferrite-ore") is None
        assert svc.start_gathering(player, "ferrite-ore", 40_000) is None

    def test_zero_respawn_time_keeps_going(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "warp-cores", 0)
        svc.reconcile(player, 36_000)
        assert player.count("warp-cores") == 12
        cycle = player.gather_cycles["warp-cores"]
        assert cycle.respawn_deadline is None
        assert cycle.count == 2

    def test_limit_grows_with_veterancy(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc._veterancy.add_resource_xp(player, "ferrite-ore", 800)
        assert player.resource_veterancy_level("ferrite-ore") == 5
        svc.start_gathering(player, "ferrite-ore", 0)
        svc.reconcile(player, 30_000)
        assert player.gather_cycles["ferrite-ore"].respawn_deadline is None
        svc.reconcile(player, 33_000)
        assert player.gather_cycles["ferrite-ore"].respawn_deadline == 34_000


# -------------------------------------------------------------------
# Catch-up
# -------------------------------------------------------------------

class TestCatchUp:
    def test_result_independent_of_reconcile_frequency(self):
        svc_a = _make_service()
        svc_b = _make_service()
        a = PlayerState(uid=1)
        b = PlayerState(uid=2)
        svc_a.start_gathering(a, "gunmetal-ore", 0)
        svc_b.start_gathering(b, "gunmetal-ore", 0)

        for now in range(0, 75_001, 250):
            svc_a.reconcile(a, now)
        svc_b.reconcile(b, 75_000)

        assert a.count("gunmetal-ore") == b.count("gunmetal-ore")
        assert a.skill(GATHERING) == b.skill(GATHERING)
        assert a.gather_cycles["gunmetal-ore"] == b.gather_cycles["gunmetal-ore"]
        assert _gather_task(a, "gunmetal-ore") == _gather_task(b, "gunmetal-ore")

    def test_long_absence_runs_through_respawns(self):
        svc = _make_service()
        player = PlayerState(uid=1)
        svc.start_gathering(player, "ferrite-ore", 0)
        # two full cycles: 10 gathers, 1s respawn, 10 gathers
        svc.reconcile(player, 61_000)
        assert player.count("ferrite-ore") == 20
        assert player.gather_cycles["ferrite-ore"].respawn_deadline == 62_000

    def test_catchup_bounded_per_pass(self):
        svc = _make_service(game_config=GameConfig(max_catchup_cycles=3))
        player = PlayerState(uid=1)
        svc.start_gathering(player, "warp-cores", 0)
        svc.reconcile(player, 30_000)
        assert player.count("warp-cores") == 3
        svc.reconcile(player, 30_000)
        assert player.count("warp-cores") == 6


class TestUnknownResource:
    def test_stale_task_is_dropped(self):
        bus = EventBus()
        cancelled = []
        bus.on(TaskCancelled, lambda e: cancelled.append(e.subject_id))
        svc = _make_service(bus=bus)
        player = PlayerState(uid=1)
        player.ledger(ActivityClass.GATHER).start("removed-ore", 3000, 0, True)
        svc.reconcile(player, 5000)
        assert _gather_task(player, "removed-ore") is None
        assert player.count("removed-ore") == 0
        assert cancelled == ["removed-ore"]
