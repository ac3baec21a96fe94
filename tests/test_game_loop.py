"""Tests for the reconciliation scheduler."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock

from idlesim.engine.game_loop import GameLoop
from idlesim.engine.player_service import PlayerService
from idlesim.loaders.game_config_loader import GameConfig
from idlesim.main import Configuration, create_services, register_players, wire_events
from idlesim.util.events import PlayerDied


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def _make_loop(n_players: int = 1, save_callback=None, clock=None):
    players = PlayerService()
    for uid in range(1, n_players + 1):
        players.create_player(uid, f"P{uid}")
    tasks, production, farming, combat = MagicMock(), MagicMock(), MagicMock(), MagicMock()
    loop = GameLoop(players, tasks, production, farming, combat, GameConfig(),
                    clock=clock or (lambda: 0), save_callback=save_callback)
    return loop, players, tasks, production, farming, combat


# -------------------------------------------------------------------
# Cadence
# -------------------------------------------------------------------

class TestStep:
    def test_first_pass_runs_every_job(self):
        loop, players, tasks, production, farming, combat = _make_loop()
        assert loop.step(0) == ["tasks", "production", "combat"]
        player = players.get(1)
        tasks.reconcile.assert_called_once_with(player, 0)
        production.reconcile_construction.assert_called_once_with(player, 0)
        farming.reconcile.assert_called_once_with(player, 0)
        production.accrue.assert_called_once_with(player, 0)
        combat.tick.assert_called_once_with(player, 0)

    def test_cadences(self):
        loop, *_ = _make_loop()
        loop.step(0)
        assert loop.step(50) == []
        assert loop.step(100) == ["tasks", "combat"]
        assert loop.step(150) == []
        assert loop.step(1000) == ["tasks", "production", "combat"]
        assert loop.tick_count == 5

    def test_same_now_for_every_job(self):
        loop, players, tasks, production, farming, combat = _make_loop()
        loop.step(12_345)
        for mock_fn in (tasks.reconcile, production.accrue, combat.tick):
            assert mock_fn.call_args.args[1] == 12_345

    def test_clock_sampled_when_now_omitted(self):
        loop, players, tasks, *_ = _make_loop(clock=lambda: 777)
        loop.step()
        tasks.reconcile.assert_called_once_with(players.get(1), 777)

    def test_failing_player_does_not_stop_others(self, caplog):
        loop, players, tasks, production, farming, combat = _make_loop(n_players=2)

        def explode(player, now):
            if player.uid == 1:
                raise RuntimeError("boom")

        tasks.reconcile.side_effect = explode
        with caplog.at_level(logging.ERROR, logger="idlesim.engine.game_loop"):
            assert loop.step(0) == ["tasks", "production", "combat"]

        assert tasks.reconcile.call_count == 2
        assert production.reconcile_construction.call_count == 1
        assert production.accrue.call_count == 2
        assert "Job tasks failed for player 1" in caplog.text


# -------------------------------------------------------------------
# Saving
# -------------------------------------------------------------------

class TestSave:
    def test_no_callback_never_due(self):
        loop, *_ = _make_loop()
        loop.request_save()
        assert loop.save_due(10**9) is False

    def test_autosave_interval(self):
        loop, *_ = _make_loop(save_callback=AsyncMock())
        assert loop.save_due(0) is False
        assert loop.save_due(59_999) is False
        assert loop.save_due(60_000) is True

    async def test_request_save(self):
        callback = AsyncMock()
        loop, *_ = _make_loop(save_callback=callback)
        loop.save_due(0)
        loop.request_save()
        assert loop.save_due(10) is True

        await loop.save(10)

        callback.assert_awaited_once()
        assert loop.save_count == 1
        assert loop.save_due(10) is False
        assert loop.save_due(60_010) is True

    async def test_failing_save_logged(self, caplog):
        callback = AsyncMock(side_effect=OSError("disk full"))
        loop, *_ = _make_loop(save_callback=callback)
        with caplog.at_level(logging.ERROR, logger="idlesim.engine.game_loop"):
            await loop.save(0)
        assert loop.save_count == 0
        assert "Autosave failed" in caplog.text

    async def test_run_until_stopped(self):
        loop = None

        async def _save():
            loop.stop()

        loop, players, tasks, *_ = _make_loop(save_callback=_save)
        loop.request_save()
        await loop.run()

        assert not loop.is_running
        assert loop.save_count == 1
        assert loop.tick_count == 1
        tasks.reconcile.assert_called_once()


# -------------------------------------------------------------------
# Wiring
# -------------------------------------------------------------------

class TestWiring:
    def test_fresh_start_creates_default_player(self, tmp_path):
        services = create_services(Configuration(), clock=lambda: 0,
                                   state_file=str(tmp_path / "state.yaml"))
        register_players(services, None)
        player = services.players.get(1)
        assert player.name == "Commander"
        assert player.village.city_hall_level() == 1

    def test_death_requests_save(self, tmp_path):
        services = create_services(Configuration(), clock=lambda: 0,
                                   state_file=str(tmp_path / "state.yaml"))
        wire_events(services)
        services.game_loop.save_due(0)
        services.event_bus.emit(PlayerDied(uid=1, enemy_id="chaos-cultist"))
        assert services.game_loop.save_due(1) is True

    async def test_save_writes_state_file(self, tmp_path):
        path = tmp_path / "state.yaml"
        services = create_services(Configuration(), clock=lambda: 0, state_file=str(path))
        register_players(services, None)
        await services.game_loop.save(0)
        assert path.exists()
