"""Tests for rolling a season back to a checkpoint."""

import pytest

from conftest import COMMISSIONER
from core.advantage_manager import AdvantageManager
from core.checkpoint_manager import CheckpointManager
from core.draft_manager import DraftManager
from core.exceptions import DraftNotInitialized, InvalidTransition, UnknownCheckpoint, Unauthorized
from core.results_manager import ResultsManager
from core.roster_evolution_manager import RosterEvolutionManager
from core.season_manager import SeasonManager
from models import (
    AcquiredVia,
    AdvantageAward,
    Artist,
    EventLog,
    PlayerInventory,
    PromptStatus,
    RosterEntry,
    RosterEvolutionState,
    RosterStatus,
    SeasonPhase,
    SeasonPlayer,
    SeasonStatus,
    VotingSession,
    WeeklyResult,
)


def _rollback(db, season, checkpoint_id):
    return CheckpointManager.rollback_to_checkpoint(db, season.id, checkpoint_id, COMMISSIONER)


def _count(db, model, season_id):
    return db.query(model).filter(model.season_id == season_id).count()


def _open_prompt_id(db, season_id):
    return next(p.id for p in DraftManager.get_prompts(db, season_id) if p.status == PromptStatus.OPEN)


def _play_week_one(db, season, run_voting, make_ranked_votes, advance_to):
    """Votes, results and a full roster evolution (cut + redraft) for week 1."""
    ids = [p.id for p in SeasonManager.get_players(db, season.id)]
    run_voting(season, make_ranked_votes(ids))
    ResultsManager.calculate_week_results(db, season.id, 1, COMMISSIONER)
    advance_to(season.id, SeasonPhase.ROSTER_EVOLUTION)

    RosterEvolutionManager.initialize(db, season.id, 1, COMMISSIONER)
    for player_id in ids:
        entry = db.query(RosterEntry).filter(
            RosterEntry.season_player_id == player_id,
            RosterEntry.status == RosterStatus.ACTIVE
        ).first()
        RosterEvolutionManager.cut_artist(db, season.id, 1, entry.id, COMMISSIONER)
    RosterEvolutionManager.select_prompt(db, season.id, 1, _open_prompt_id(db, season.id), COMMISSIONER)
    for index in range(len(ids)):
        RosterEvolutionManager.redraft_artist(db, season.id, 1, f"Week One Act {index}", COMMISSIONER)
    return ids


# ── Validation ────────────────────────────────────────────────────────


class TestValidation:
    def test_unknown_checkpoint(self, db, season):
        with pytest.raises(UnknownCheckpoint):
            _rollback(db, season, "WEEK_ZERO")

    def test_future_week(self, db, started_season):
        with pytest.raises(InvalidTransition):
            _rollback(db, started_season, "WEEK_2")

    def test_roster_evolution_checkpoint_needs_active_evolution(self, db, started_season):
        with pytest.raises(InvalidTransition):
            _rollback(db, started_season, "WEEK_1_ROSTER_EVOLUTION")

    def test_only_commissioner(self, db, season):
        with pytest.raises(Unauthorized):
            CheckpointManager.rollback_to_checkpoint(db, season.id, "DRAFT", "u1")

    def test_available(self, db, started_season):
        checkpoints = CheckpointManager.get_available_checkpoints(db, started_season.id)
        assert checkpoints == ["PRESEASON", "DRAFT", "ADVANTAGE_SELECTION", "START_OF_SEASON", "WEEK_1"]


# ── Preseason checkpoints ─────────────────────────────────────────────


class TestPreseasonCheckpoints:
    def test_preseason(self, db, started_season):
        season = _rollback(db, started_season, "PRESEASON")

        assert (season.current_phase, season.current_week, season.status) == (
            SeasonPhase.SEASON_SETUP, 0, SeasonStatus.PRESEASON
        )
        assert season.started_at is None
        assert _count(db, RosterEntry, season.id) == 0
        positions = [p.draft_position for p in db.query(SeasonPlayer).filter(SeasonPlayer.season_id == season.id)]
        assert positions == [None] * 4
        with pytest.raises(DraftNotInitialized):
            DraftManager.get_draft_state(db, season.id)

    def test_draft_rebuilds_state_from_positions(self, db, drafted_season, play_round):
        order = list(DraftManager.get_draft_state(db, drafted_season.id).draft_order)
        AdvantageManager.assign_starting_advantage(
            db, drafted_season.id, order[0], "T1A", COMMISSIONER
        )

        season = _rollback(db, drafted_season, "DRAFT")
        state = DraftManager.get_draft_state(db, season.id)

        assert season.current_phase == SeasonPhase.DRAFTING
        assert state.draft_order == order
        assert (state.current_round, state.current_picker_index, state.is_complete) == (1, 0, False)
        assert _count(db, RosterEntry, season.id) == 0
        assert _count(db, PlayerInventory, season.id) == 0
        assert all(p.status == PromptStatus.OPEN for p in DraftManager.get_prompts(db, season.id))

        assert play_round(season.id) == order

    def test_advantage_selection_keeps_roster(self, db, drafted_season):
        order = DraftManager.get_draft_state(db, drafted_season.id).draft_order
        AdvantageManager.assign_starting_advantage(db, drafted_season.id, order[0], "T1A", COMMISSIONER)
        SeasonManager.start_season(db, drafted_season.id, COMMISSIONER)

        season = _rollback(db, drafted_season, "ADVANTAGE_SELECTION")

        assert season.current_phase == SeasonPhase.ADVANTAGE_SELECTION
        assert season.status == SeasonStatus.PRESEASON
        assert season.current_week == 0
        assert _count(db, PlayerInventory, season.id) == 0
        assert _count(db, RosterEntry, season.id) == 32


# ── Week checkpoints ──────────────────────────────────────────────────


class TestWeekCheckpoints:
    def test_week_one_undoes_everything_after_draft(self, db, started_season, run_voting, make_ranked_votes, advance_to):
        order = DraftManager.get_draft_state(db, started_season.id).draft_order
        _play_week_one(db, started_season, run_voting, make_ranked_votes, advance_to)

        season = _rollback(db, started_season, "WEEK_1")

        assert (season.current_phase, season.current_week, season.status) == (
            SeasonPhase.IN_SEASON_CHALLENGE_SELECTION, 1, SeasonStatus.IN_PROGRESS
        )
        entries = db.query(RosterEntry).filter(RosterEntry.season_id == season.id).all()
        assert len(entries) == 32
        assert all(e.acquired_via == AcquiredVia.DRAFT and e.status == RosterStatus.ACTIVE for e in entries)
        assert _count(db, WeeklyResult, season.id) == 0
        assert _count(db, AdvantageAward, season.id) == 0
        assert _count(db, VotingSession, season.id) == 0
        assert _count(db, RosterEvolutionState, season.id) == 0
        assert RosterEvolutionManager.get_pool_count(db, season.id) == 0
        totals = {p.id: p.total_points for p in SeasonManager.get_players(db, season.id)}
        assert totals == {pid: 0 for pid in order}

    def test_later_week_keeps_earlier_changes(self, db, started_season, run_voting, make_ranked_votes, advance_to):
        _play_week_one(db, started_season, run_voting, make_ranked_votes, advance_to)
        RosterEvolutionManager.complete(db, started_season.id, 1, COMMISSIONER)
        advance_to(started_season.id, SeasonPhase.VOTING)

        season = _rollback(db, started_season, "WEEK_2")

        assert season.current_week == 2
        assert season.current_phase == SeasonPhase.IN_SEASON_CHALLENGE_SELECTION
        redrafted = db.query(RosterEntry).filter(
            RosterEntry.season_id == season.id,
            RosterEntry.acquired_at_week == 1
        ).count()
        cut = db.query(RosterEntry).filter(
            RosterEntry.season_id == season.id,
            RosterEntry.status == RosterStatus.CUT
        ).count()
        assert (redrafted, cut) == (4, 4)
        assert _count(db, WeeklyResult, season.id) == 4
        assert _count(db, AdvantageAward, season.id) == 4

    def test_start_of_season_is_week_one(self, db, started_season, advance_to):
        advance_to(started_season.id, SeasonPhase.PLAYLIST_SUBMISSION)
        season = _rollback(db, started_season, "START_OF_SEASON")
        assert (season.current_phase, season.current_week) == (SeasonPhase.IN_SEASON_CHALLENGE_SELECTION, 1)

    def test_presentation_clears_voting(self, db, started_season, run_voting):
        run_voting(started_season, [])

        season = _rollback(db, started_season, "WEEK_1_PRESENTATION")

        assert season.current_phase == SeasonPhase.PLAYLIST_PRESENTATION
        assert _count(db, VotingSession, season.id) == 0

    def test_roster_evolution_checkpoint(self, db, started_season, run_voting, make_ranked_votes, advance_to):
        ids = _play_week_one(db, started_season, run_voting, make_ranked_votes, advance_to)

        season = _rollback(db, started_season, "WEEK_1_ROSTER_EVOLUTION")

        assert season.current_phase == SeasonPhase.ROSTER_EVOLUTION
        state = RosterEvolutionManager.get_state(db, season.id, 1)
        assert state.redraft_picks_completed == {pid: 0 for pid in ids}
        assert _count(db, WeeklyResult, season.id) == 4

    def test_records_event(self, db, started_season, advance_to):
        advance_to(started_season.id, SeasonPhase.VOTING)
        _rollback(db, started_season, "WEEK_1")

        event = db.query(EventLog).filter(
            EventLog.season_id == started_season.id,
            EventLog.event_type == "ROLLBACK_TO_CHECKPOINT"
        ).one()
        assert event.data == {
            "checkpoint": "WEEK_1",
            "from_phase": "VOTING",
            "from_week": 1,
            "to_phase": "IN_SEASON_CHALLENGE_SELECTION",
            "to_week": 1,
        }


# ── Replaying after a rollback ────────────────────────────────────────


def _open_prompt_count(db, season_id):
    return sum(1 for p in DraftManager.get_prompts(db, season_id) if p.status == PromptStatus.OPEN)


def _replay_week_one(db, season, run_voting, make_ranked_votes):
    ids = [p.id for p in SeasonManager.get_players(db, season.id)]
    run_voting(season, make_ranked_votes(ids))
    return ResultsManager.calculate_week_results(db, season.id, 1, COMMISSIONER)


class TestReplay:
    def test_advantage_selection_clears_in_season_data(self, db, started_season, run_voting, make_ranked_votes, advance_to):
        open_before = _open_prompt_count(db, started_season.id)
        _play_week_one(db, started_season, run_voting, make_ranked_votes, advance_to)
        RosterEvolutionManager.complete(db, started_season.id, 1, COMMISSIONER)

        season = _rollback(db, started_season, "ADVANTAGE_SELECTION")

        assert (season.current_phase, season.current_week) == (SeasonPhase.ADVANTAGE_SELECTION, 0)
        assert _count(db, WeeklyResult, season.id) == 0
        assert _count(db, VotingSession, season.id) == 0
        assert _count(db, RosterEvolutionState, season.id) == 0
        assert RosterEvolutionManager.get_pool_count(db, season.id) == 0
        assert all(p.total_points == 0 for p in SeasonManager.get_players(db, season.id))
        entries = db.query(RosterEntry).filter(RosterEntry.season_id == season.id).all()
        assert len(entries) == 32
        assert all(e.acquired_via == AcquiredVia.DRAFT and e.status == RosterStatus.ACTIVE for e in entries)
        assert _open_prompt_count(db, season.id) == open_before

    def test_season_replays_after_advantage_selection(self, db, started_season, run_voting, make_ranked_votes, advance_to):
        _play_week_one(db, started_season, run_voting, make_ranked_votes, advance_to)
        _rollback(db, started_season, "ADVANTAGE_SELECTION")

        SeasonManager.start_season(db, started_season.id, COMMISSIONER)
        results = _replay_week_one(db, started_season, run_voting, make_ranked_votes)

        assert len(results) == 4
        assert _count(db, WeeklyResult, started_season.id) == 4
        assert sum(p.total_points for p in SeasonManager.get_players(db, started_season.id)) > 0

    def test_season_replays_after_preseason(self, db, started_season, play_round, run_voting, make_ranked_votes, advance_to):
        _play_week_one(db, started_season, run_voting, make_ranked_votes, advance_to)

        season = _rollback(db, started_season, "PRESEASON")

        assert _count(db, WeeklyResult, season.id) == 0
        assert _count(db, VotingSession, season.id) == 0
        assert _count(db, RosterEvolutionState, season.id) == 0
        assert all(p.total_points == 0 for p in SeasonManager.get_players(db, season.id))

        DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        for _ in range(season.roster_size):
            play_round(season.id)
        SeasonManager.start_season(db, season.id, COMMISSIONER)
        db.refresh(season)

        assert len(_replay_week_one(db, season, run_voting, make_ranked_votes)) == 4


# ── Preserved roster entries ──────────────────────────────────────────


def _add_entry(db, season, player_id, name, acquired_via, week):
    artist = Artist(season_id=season.id, name=name)
    db.add(artist)
    db.flush()
    entry = RosterEntry(
        season_id=season.id,
        season_player_id=player_id,
        artist_id=artist.id,
        acquired_via=acquired_via,
        acquired_at_week=week
    )
    db.add(entry)
    db.commit()
    return entry.id


class TestPreservedEntries:
    def test_week_zero_entry_survives_week_rollback(self, db, started_season, run_voting, make_ranked_votes, advance_to):
        ids = [p.id for p in SeasonManager.get_players(db, started_season.id)]
        kept = _add_entry(db, started_season, ids[0], "Preseason Trade", AcquiredVia.TRADED, 0)
        _play_week_one(db, started_season, run_voting, make_ranked_votes, advance_to)

        _rollback(db, started_season, "WEEK_1")

        entry = db.query(RosterEntry).filter(RosterEntry.id == kept).one()
        assert entry.status == RosterStatus.ACTIVE

    def test_draft_entry_from_later_week_survives(self, db, started_season, advance_to):
        for _ in range(2):
            advance_to(started_season.id, SeasonPhase.IN_SEASON_WEEK_END)
            SeasonManager.advance_week(db, started_season.id, COMMISSIONER)
        assert started_season.current_week == 3

        ids = [p.id for p in SeasonManager.get_players(db, started_season.id)]
        late_draft = _add_entry(db, started_season, ids[0], "Late Draft", AcquiredVia.DRAFT, 3)
        traded = _add_entry(db, started_season, ids[1], "Week Three Trade", AcquiredVia.TRADED, 3)

        _rollback(db, started_season, "WEEK_3")

        assert db.query(RosterEntry).filter(RosterEntry.id == late_draft).count() == 1
        assert db.query(RosterEntry).filter(RosterEntry.id == traded).count() == 0
