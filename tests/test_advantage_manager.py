"""Tests for starting advantages, weekly awards and inventory."""

import pytest

from conftest import COMMISSIONER
from core.advantage_manager import AdvantageManager
from core.exceptions import (
    AdvantageNotFound,
    AlreadyExists,
    CapacityExceeded,
    InvalidTransition,
    TierMismatch,
    Unauthorized,
)
from core.results_manager import ResultsManager
from core.season_manager import SeasonManager
from models import (
    AwardSource,
    EarnedVia,
    InventoryStatus,
    PendingSlot,
    SelectedSlot,
)


def _week_one_awards(db, season, run_voting, make_ranked_votes):
    ids = [p.id for p in SeasonManager.get_players(db, season.id)]
    run_voting(season, make_ranked_votes(ids))
    ResultsManager.calculate_week_results(db, season.id, 1, COMMISSIONER)
    return ids, AdvantageManager.get_week_awards(db, season.id, 1)


# ── Starting advantages ───────────────────────────────────────────────


class TestStartingAdvantages:
    def test_player_picks_own_advantage(self, db, drafted_season, players):
        item = AdvantageManager.assign_starting_advantage(
            db, drafted_season.id, players[0].id, "T1A", players[0].user_id
        )
        assert item.earned_via == EarnedVia.STARTING
        assert item.tier == 1
        assert item.can_use_after_week == 0

    def test_cannot_pick_for_someone_else(self, db, drafted_season, players):
        with pytest.raises(Unauthorized):
            AdvantageManager.assign_starting_advantage(
                db, drafted_season.id, players[0].id, "T1A", players[1].user_id
            )

    def test_tier_cap(self, db, drafted_season, players):
        SeasonManager.update_advantage_selection_config(db, drafted_season.id, COMMISSIONER, tier1_count=1)
        AdvantageManager.assign_starting_advantage(db, drafted_season.id, players[0].id, "T1A", COMMISSIONER)

        with pytest.raises(CapacityExceeded):
            AdvantageManager.assign_starting_advantage(db, drafted_season.id, players[0].id, "T1B", COMMISSIONER)

    def test_zero_cap_tier(self, db, drafted_season, players):
        with pytest.raises(CapacityExceeded):
            AdvantageManager.assign_starting_advantage(db, drafted_season.id, players[0].id, "T3A", COMMISSIONER)

    def test_duplicate_code(self, db, drafted_season, players):
        AdvantageManager.assign_starting_advantage(db, drafted_season.id, players[0].id, "T1A", COMMISSIONER)
        with pytest.raises(AlreadyExists):
            AdvantageManager.assign_starting_advantage(db, drafted_season.id, players[0].id, "T1A", COMMISSIONER)

    def test_unknown_code(self, db, drafted_season, players):
        with pytest.raises(AdvantageNotFound):
            AdvantageManager.assign_starting_advantage(db, drafted_season.id, players[0].id, "NOPE", COMMISSIONER)

    def test_only_during_advantage_selection(self, db, started_season, players):
        with pytest.raises(InvalidTransition):
            AdvantageManager.assign_starting_advantage(db, started_season.id, players[0].id, "T1A", COMMISSIONER)

    def test_reset(self, db, drafted_season, players):
        AdvantageManager.assign_starting_advantage(db, drafted_season.id, players[0].id, "T1A", COMMISSIONER)
        AdvantageManager.assign_starting_advantage(db, drafted_season.id, players[1].id, "T1A", COMMISSIONER)
        assert AdvantageManager.reset_starting_advantages(db, drafted_season.id, COMMISSIONER) == 2
        assert AdvantageManager.get_inventory(db, players[0].id) == []


# ── Weekly awards ─────────────────────────────────────────────────────


class TestWeeklyAwards:
    def test_results_issue_award_slots(self, db, started_season, run_voting, make_ranked_votes):
        ids, awards = _week_one_awards(db, started_season, run_voting, make_ranked_votes)

        summary = sorted((a.season_player_id, a.tier, a.awarded_via) for a in awards)
        assert summary == sorted([
            (ids[0], 3, AwardSource.SWEEP),
            (ids[1], 1, AwardSource.SWEEP),
            (ids[1], 1, AwardSource.PLACEMENT),
            (ids[2], 2, AwardSource.PLACEMENT),
        ])
        assert all(isinstance(a.slot, PendingSlot) for a in awards)

    def test_award_is_idempotent(self, db, started_season, run_voting, make_ranked_votes):
        _, awards = _week_one_awards(db, started_season, run_voting, make_ranked_votes)
        again = AdvantageManager.award_weekly_advantages(db, started_season.id, 1, COMMISSIONER)
        assert {a.id for a in again} == {a.id for a in awards}

    def test_not_before_voting(self, db, started_season):
        with pytest.raises(InvalidTransition):
            AdvantageManager.award_weekly_advantages(db, started_season.id, 1, COMMISSIONER)

    def test_assign_code(self, db, started_season, run_voting, make_ranked_votes):
        _, awards = _week_one_awards(db, started_season, run_voting, make_ranked_votes)
        tier_two = next(a for a in awards if a.tier == 2)

        item = AdvantageManager.assign_weekly_advantage(db, tier_two.id, "T2A", COMMISSIONER)
        db.refresh(tier_two)

        assert tier_two.slot == SelectedSlot("T2A")
        assert item.award_id == tier_two.id
        assert item.earned_week == 1
        assert item.can_use_after_week == 2
        assert item.earned_via == EarnedVia.PLACEMENT

    def test_reassign_updates_same_inventory(self, db, started_season, run_voting, make_ranked_votes):
        _, awards = _week_one_awards(db, started_season, run_voting, make_ranked_votes)
        tier_two = next(a for a in awards if a.tier == 2)

        first = AdvantageManager.assign_weekly_advantage(db, tier_two.id, "T2A", COMMISSIONER)
        second = AdvantageManager.assign_weekly_advantage(db, tier_two.id, "T2B", COMMISSIONER)

        assert first.id == second.id
        assert second.advantage_code == "T2B"

    def test_tier_mismatch(self, db, started_season, run_voting, make_ranked_votes):
        _, awards = _week_one_awards(db, started_season, run_voting, make_ranked_votes)
        tier_two = next(a for a in awards if a.tier == 2)
        with pytest.raises(TierMismatch):
            AdvantageManager.assign_weekly_advantage(db, tier_two.id, "T1A", COMMISSIONER)

    def test_player_cannot_hold_code_twice(self, db, started_season, run_voting, make_ranked_votes):
        ids, awards = _week_one_awards(db, started_season, run_voting, make_ranked_votes)
        tier_one = [a for a in awards if a.tier == 1 and a.season_player_id == ids[1]]
        AdvantageManager.assign_weekly_advantage(db, tier_one[0].id, "T1A", COMMISSIONER)

        with pytest.raises(AlreadyExists):
            AdvantageManager.assign_weekly_advantage(db, tier_one[1].id, "T1A", COMMISSIONER)

    def test_undo(self, db, started_season, run_voting, make_ranked_votes):
        ids, awards = _week_one_awards(db, started_season, run_voting, make_ranked_votes)
        tier_two = next(a for a in awards if a.tier == 2)
        AdvantageManager.assign_weekly_advantage(db, tier_two.id, "T2A", COMMISSIONER)

        assert AdvantageManager.undo_week_awards(db, started_season.id, 1, COMMISSIONER) == 4
        assert AdvantageManager.get_week_awards(db, started_season.id, 1) == []
        assert all(AdvantageManager.get_inventory(db, pid) == [] for pid in ids)


# ── Playing ───────────────────────────────────────────────────────────


class TestPlayAdvantage:
    def test_starting_advantage_playable_in_week_one(self, db, drafted_season, players):
        item = AdvantageManager.assign_starting_advantage(
            db, drafted_season.id, players[0].id, "T1A", COMMISSIONER
        )
        SeasonManager.start_season(db, drafted_season.id, COMMISSIONER)

        played = AdvantageManager.play_advantage(db, item.id, players[0].user_id)
        assert played.status == InventoryStatus.PLAYED
        assert played.played_at_week == 1

    def test_cooldown(self, db, started_season, run_voting, make_ranked_votes):
        _, awards = _week_one_awards(db, started_season, run_voting, make_ranked_votes)
        tier_two = next(a for a in awards if a.tier == 2)
        item = AdvantageManager.assign_weekly_advantage(db, tier_two.id, "T2A", COMMISSIONER)

        with pytest.raises(CapacityExceeded):
            AdvantageManager.play_advantage(db, item.id, COMMISSIONER)

    def test_cannot_play_twice(self, db, drafted_season, players):
        item = AdvantageManager.assign_starting_advantage(
            db, drafted_season.id, players[0].id, "T1A", COMMISSIONER
        )
        SeasonManager.start_season(db, drafted_season.id, COMMISSIONER)
        AdvantageManager.play_advantage(db, item.id, COMMISSIONER)

        with pytest.raises(InvalidTransition):
            AdvantageManager.play_advantage(db, item.id, COMMISSIONER)
