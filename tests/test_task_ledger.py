"""Tests for timed tasks, task ledgers and gather cycles."""

from idlesim.models.player import PlayerState
from idlesim.models.tasks import ActivityClass, GatherCycleState, TaskLedger, TimedTask


class TestTimedTask:
    def test_due_exactly_at_deadline(self):
        task = TimedTask(subject_id="ferrite-ore", start_time=1000, duration=3000)
        assert task.deadline == 4000
        assert not task.is_due(3999)
        assert task.is_due(4000)

    def test_remaining_never_negative(self):
        task = TimedTask(subject_id="x", start_time=0, duration=3000)
        assert task.remaining_ms(1000) == 2000
        assert task.remaining_ms(9000) == 0

    def test_zero_duration_is_due_immediately(self):
        task = TimedTask(subject_id="x", start_time=500, duration=0)
        assert task.is_due(500)


class TestTaskLedger:
    def test_start_replaces_same_subject(self):
        ledger = TaskLedger(ActivityClass.GATHER)
        ledger.start("ferrite-ore", 3000, 0)
        ledger.start("ferrite-ore", 3000, 1000)
        assert len(ledger) == 1
        assert ledger.get("ferrite-ore").start_time == 1000

    def test_negative_duration_clamped(self):
        ledger = TaskLedger(ActivityClass.GATHER)
        task = ledger.start("x", -50, 0)
        assert task.duration == 0

    def test_due_sorted_by_deadline_and_skips_completed(self):
        ledger = TaskLedger(ActivityClass.GROW)
        ledger.start("plot-2", 5000, 0)
        ledger.start("plot-1", 2000, 0)
        ledger.start("plot-3", 1000, 0).completed = True
        ledger.start("plot-4", 9000, 0)
        due = ledger.due(6000)
        assert [t.subject_id for t in due] == ["plot-1", "plot-2"]

    def test_active_excludes_completed(self):
        ledger = TaskLedger(ActivityClass.GROW)
        ledger.start("a", 10, 0).completed = True
        ledger.start("b", 10, 0)
        assert [t.subject_id for t in ledger.active()] == ["b"]

    def test_stop_and_stop_all(self):
        ledger = TaskLedger(ActivityClass.SMELT)
        ledger.start("a", 10, 0)
        ledger.start("b", 10, 0)
        assert ledger.stop("a").subject_id == "a"
        assert ledger.stop("a") is None
        assert ledger.stop_all() == ["b"]
        assert len(ledger) == 0


class TestGatherCycle:
    def test_cooldown_window(self):
        cycle = GatherCycleState(respawn_deadline=5000)
        assert cycle.on_cooldown(4999)
        assert not cycle.on_cooldown(5000)

    def test_no_deadline_is_available(self):
        assert not GatherCycleState().on_cooldown(0)


class TestPlayerLedgers:
    def test_one_ledger_per_activity(self):
        player = PlayerState(uid=1)
        assert set(player.ledgers) == set(ActivityClass)
        assert player.ledger(ActivityClass.CONTACT).activity is ActivityClass.CONTACT

    def test_gather_cycle_created_lazily(self):
        player = PlayerState(uid=1)
        assert "ferrite-ore" not in player.gather_cycles
        cycle = player.gather_cycle("ferrite-ore")
        assert player.gather_cycles["ferrite-ore"] is cycle

    def test_inventory_never_negative(self):
        player = PlayerState(uid=1)
        player.add_item("ferrite-ore", 3)
        player.add_item("ferrite-ore", 0)
        assert player.remove_item("ferrite-ore", 5) == 3
        assert player.count("ferrite-ore") == 0
        assert "ferrite-ore" not in player.inventory

    def test_missing_items(self):
        player = PlayerState(uid=1, inventory={"a": 2, "b": 1})
        assert player.missing_items({"a": 2, "b": 1}) is None
        assert player.missing_items({"a": 2, "b": 2}) == "b"
        assert player.has_items({"a": 1})
