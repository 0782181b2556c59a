"""Tests for advantage award planning."""

from models import AwardSource
from services.award_service import (
    Sweep,
    can_use_after_week,
    cooldown_for_tier,
    detect_sweeps,
    plan_week_awards,
)

CATEGORIES = [
    {"id": "best", "title": "Best", "point_value": 3},
    {"id": "vibe", "title": "Vibe", "point_value": 1},
]


# ── Sweeps ────────────────────────────────────────────────────────────


class TestDetectSweeps:
    def test_all_eligible_votes_is_a_sweep(self):
        votes = [("best", "a")] * 3
        sweeps = detect_sweeps(votes, CATEGORIES, total_players=4)
        assert sweeps == {"a": [Sweep("a", "best", 3)]}

    def test_one_short_is_not_a_sweep(self):
        votes = [("best", "a")] * 2 + [("best", "b")]
        assert detect_sweeps(votes, CATEGORIES, total_players=4) == {}

    def test_sweeps_grouped_per_player(self):
        votes = [("best", "a")] * 3 + [("vibe", "a")] * 3
        sweeps = detect_sweeps(votes, CATEGORIES, total_players=4)
        assert [s.category_id for s in sweeps["a"]] == ["best", "vibe"]

    def test_single_player_season_has_no_sweeps(self):
        assert detect_sweeps([], CATEGORIES, total_players=1) == {}


# ── Cooldown ──────────────────────────────────────────────────────────


class TestCooldown:
    def test_default_table(self):
        assert can_use_after_week(3, 2) == 4
        assert can_use_after_week(3, 1) == 3

    def test_integer_keys_accepted(self):
        assert cooldown_for_tier(2, {2: 3}) == 3

    def test_missing_tier_has_no_cooldown(self):
        assert cooldown_for_tier(3, {"1": 2}) == 0


# ── Planning ──────────────────────────────────────────────────────────


class TestPlanWeekAwards:
    def test_placement_rewards(self):
        planned = plan_week_awards(2, {}, {"a": 1, "b": 2, "c": 3, "d": 4})
        assert [(p.season_player_id, p.tier, p.source) for p in planned] == [
            ("b", 1, AwardSource.PLACEMENT),
            ("c", 2, AwardSource.PLACEMENT),
        ]
        assert planned[1].can_use_after_week == 3
        assert planned[1].placement == 3

    def test_sweep_reward_tier_follows_point_value(self):
        sweeps = {"a": [Sweep("a", "best", 3)]}
        planned = plan_week_awards(1, sweeps, {})
        assert len(planned) == 1
        assert planned[0].tier == 3
        assert planned[0].source == AwardSource.SWEEP
        assert planned[0].sweep_category_id == "best"

    def test_sweeps_do_not_stack_by_default(self):
        sweeps = {"a": [Sweep("a", "best", 3), Sweep("a", "vibe", 1)]}
        planned = plan_week_awards(1, sweeps, {})
        assert len(planned) == 1

    def test_stacking_respects_cap(self):
        sweeps = {"a": [Sweep("a", "best", 3), Sweep("a", "vibe", 1)]}
        assert len(plan_week_awards(1, sweeps, {}, sweeps_stack=True)) == 2
        capped = plan_week_awards(1, sweeps, {}, sweeps_stack=True, max_sweep_advantages_per_week=1)
        assert len(capped) == 1

    def test_unmatched_sweep_value_gives_nothing(self):
        sweeps = {"a": [Sweep("a", "x", 7)]}
        assert plan_week_awards(1, sweeps, {}) == []

    def test_custom_rewards_and_count(self):
        planned = plan_week_awards(
            1, {}, {"a": 1},
            placement_rewards=[{"placement": 1, "tier": 2, "count": 2}],
            cooldown_by_tier={"2": 0},
        )
        assert len(planned) == 2
        assert all(p.can_use_after_week == 1 for p in planned)
