"""Tests for the leveling curve and XP grants."""

import pytest

from idlesim.engine.experience import (
    apply_delta,
    cumulative_experience,
    experience_for_level,
    level_from_experience,
    progress_for,
    total_experience,
)
from idlesim.engine.progression import add_gold, add_xp
from idlesim.models.player import PlayerState
from idlesim.models.skills import GATHERING, STRENGTH, SkillProgress


class TestCurve:
    def test_first_levels(self):
        assert experience_for_level(1) == 0
        assert experience_for_level(2) == 83
        assert experience_for_level(3) == 91

    def test_cumulative_is_sum_of_level_amounts(self):
        assert cumulative_experience(1) == 0
        assert cumulative_experience(2) == 83
        assert cumulative_experience(3) == 174
        assert cumulative_experience(4) == 275
        for level in range(2, 60):
            assert (cumulative_experience(level + 1) - cumulative_experience(level)
                    == experience_for_level(level + 1))

    def test_level_boundaries(self):
        assert level_from_experience(-5) == 1
        assert level_from_experience(0) == 1
        assert level_from_experience(82) == 1
        assert level_from_experience(83) == 2
        assert level_from_experience(173) == 2
        assert level_from_experience(174) == 3

    def test_level_is_monotonic(self):
        previous = 1
        for xp in range(0, 20_000, 37):
            level = level_from_experience(xp)
            assert level >= previous
            previous = level

    def test_exact_at_every_boundary(self):
        for level in range(2, 80):
            xp = cumulative_experience(level)
            assert level_from_experience(xp) == level
            assert level_from_experience(xp - 1) == level - 1


class TestProgress:
    def test_progress_projection(self):
        p = progress_for(100)
        assert p.level == 2
        assert p.experience == 17
        assert p.experience_to_next == 91

    def test_total_round_trips(self):
        for xp in (0, 1, 83, 500, 12_345):
            assert total_experience(progress_for(xp)) == xp

    @pytest.mark.parametrize("start,delta", [(0, 83), (100, 250), (274, 1), (5000, 4321)])
    def test_delta_then_inverse_restores(self, start, delta):
        p = progress_for(start)
        assert apply_delta(apply_delta(p, delta), -delta) == p

    def test_negative_delta_levels_down_but_not_below_one(self):
        p = progress_for(cumulative_experience(3))
        assert p.level == 3
        down = apply_delta(p, -50)
        assert down.level == 2
        floor = apply_delta(p, -10_000)
        assert floor.level == 1
        assert floor.experience == 0

    def test_default_progress_matches_curve(self):
        assert SkillProgress().experience_to_next == cumulative_experience(2)


class TestGrants:
    def test_add_xp_levels_up_and_notifies(self):
        player = PlayerState(uid=1)
        add_xp(player, GATHERING, 90, now=500)
        assert player.skill_level(GATHERING) == 2
        assert player.skill(GATHERING).experience == 7
        msgs = player.notifications.peek()
        assert msgs[-1].message == "Salvaging reached level 2!"
        assert msgs[-1].kind == "reward"

    def test_add_xp_to_sub_stat(self):
        player = PlayerState(uid=1)
        add_xp(player, STRENGTH, 200)
        assert player.combat_stats[STRENGTH].level == 3
        assert STRENGTH not in player.skills

    def test_add_gold_clamps_at_zero(self):
        player = PlayerState(uid=1, gold=10)
        assert add_gold(player, 15) == 25
        assert add_gold(player, -100) == 0
        assert player.gold == 0
