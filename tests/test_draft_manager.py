"""Tests for the snake draft."""

import pytest

from conftest import COMMISSIONER
from core.draft_manager import DraftManager
from core.exceptions import (
    DraftComplete,
    DraftNotInitialized,
    DuplicateArtist,
    InvalidArtistName,
    InvalidTransition,
    PromptNotFound,
    PromptUnavailable,
    Unauthorized,
    WrongTurn,
)
from models import (
    AcquiredVia,
    DraftSelection,
    PromptStatus,
    RosterEntry,
    SeasonPhase,
    SeasonPlayer,
    SeasonStatus,
)
from services.draft_history_service import get_draft_picks, get_player_roster


def _user_of(db, season_player_id):
    return db.query(SeasonPlayer).filter(SeasonPlayer.id == season_player_id).one().user_id


def _open_prompts(db, season_id):
    return [p for p in DraftManager.get_prompts(db, season_id) if p.status == PromptStatus.OPEN]


# ── Init ──────────────────────────────────────────────────────────────


class TestInitializeDraft:
    def test_creates_state_and_moves_to_drafting(self, db, season, players):
        state = DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        db.refresh(season)

        assert season.current_phase == SeasonPhase.DRAFTING
        assert state.current_round == 1
        assert state.current_picker_index == 0
        assert sorted(state.draft_order) == sorted(p.id for p in players)

    def test_writes_draft_positions(self, db, season):
        state = DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        positions = {
            p.id: p.draft_position
            for p in db.query(SeasonPlayer).filter(SeasonPlayer.season_id == season.id)
        }
        assert [positions[pid] for pid in state.draft_order] == [1, 2, 3, 4]

    def test_keeps_existing_order_when_not_randomized(self, db, season, players):
        ids = [p.id for p in players]
        state = DraftManager.initialize_draft(db, season.id, COMMISSIONER, randomize=False)
        assert state.draft_order == ids

    def test_idempotent(self, db, season):
        first = DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        second = DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        assert first.id == second.id
        assert first.draft_order == second.draft_order

    def test_only_commissioner(self, db, season):
        with pytest.raises(Unauthorized):
            DraftManager.initialize_draft(db, season.id, "u1")

    def test_state_missing(self, db, season):
        with pytest.raises(DraftNotInitialized):
            DraftManager.get_draft_state(db, season.id)


# ── Prompt ────────────────────────────────────────────────────────────


class TestSelectPrompt:
    def test_picker_selects(self, db, season):
        state = DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        picker = state.draft_order[0]
        prompt = _open_prompts(db, season.id)[0]

        selected = DraftManager.select_prompt(db, season.id, prompt.id, _user_of(db, picker))

        assert selected.status == PromptStatus.SELECTED
        assert selected.selected_by_player_id == picker
        assert selected.selected_at_round == 1
        assert db.query(DraftSelection).filter(DraftSelection.season_id == season.id).count() == 1

    def test_wrong_turn(self, db, season):
        state = DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        other = state.draft_order[1]
        prompt = _open_prompts(db, season.id)[0]

        with pytest.raises(WrongTurn):
            DraftManager.select_prompt(db, season.id, prompt.id, _user_of(db, other))

    def test_one_prompt_per_round(self, db, season):
        DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        first, second = _open_prompts(db, season.id)[:2]
        DraftManager.select_prompt(db, season.id, first.id, COMMISSIONER)

        with pytest.raises(PromptUnavailable):
            DraftManager.select_prompt(db, season.id, second.id, COMMISSIONER)

    def test_unknown_prompt(self, db, season):
        DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        with pytest.raises(PromptNotFound):
            DraftManager.select_prompt(db, season.id, "missing", COMMISSIONER)

    def test_requires_drafting(self, db, season):
        prompt = _open_prompts(db, season.id)[0]
        with pytest.raises(InvalidTransition):
            DraftManager.select_prompt(db, season.id, prompt.id, COMMISSIONER)


# ── Pick ──────────────────────────────────────────────────────────────


class TestDraftArtist:
    def _start(self, db, season):
        state = DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        prompt = _open_prompts(db, season.id)[0]
        DraftManager.select_prompt(db, season.id, prompt.id, COMMISSIONER)
        return state, prompt

    def test_pick_creates_draft_entry(self, db, season):
        state, prompt = self._start(db, season)
        picker = state.draft_order[0]

        entry = DraftManager.draft_artist(db, season.id, prompt.id, "  Nina   Simone ", _user_of(db, picker))

        assert entry.season_player_id == picker
        assert entry.acquired_via == AcquiredVia.DRAFT
        assert entry.acquired_at_week == 0
        assert entry.acquired_at_round == 1
        assert entry.artist.name == "Nina Simone"
        assert DraftManager.get_draft_state(db, season.id).current_picker_index == 1

    def test_wrong_turn(self, db, season):
        state, prompt = self._start(db, season)
        with pytest.raises(WrongTurn):
            DraftManager.draft_artist(db, season.id, prompt.id, "Bjork", _user_of(db, state.draft_order[2]))

    def test_duplicate_artist(self, db, season):
        _, prompt = self._start(db, season)
        DraftManager.draft_artist(db, season.id, prompt.id, "Bjork", COMMISSIONER)

        with pytest.raises(DuplicateArtist):
            DraftManager.draft_artist(db, season.id, prompt.id, "Bjork", COMMISSIONER)
        assert DraftManager.get_draft_state(db, season.id).current_picker_index == 1

    def test_empty_name(self, db, season):
        _, prompt = self._start(db, season)
        with pytest.raises(InvalidArtistName):
            DraftManager.draft_artist(db, season.id, prompt.id, "   ", COMMISSIONER)

    def test_prompt_must_be_selected_for_round(self, db, season):
        self._start(db, season)
        other = _open_prompts(db, season.id)[0]
        with pytest.raises(PromptUnavailable):
            DraftManager.draft_artist(db, season.id, other.id, "Bjork", COMMISSIONER)


# ── Rounds ────────────────────────────────────────────────────────────


class TestRounds:
    def test_round_two_reverses(self, db, season, play_round):
        state = DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        order = list(state.draft_order)

        first = play_round(season.id)
        second = play_round(season.id)
        third = play_round(season.id)

        assert first == order
        assert second == list(reversed(order))
        assert third == [order[1], order[2], order[3], order[0]]

    def test_round_completion_retires_prompt(self, db, season, play_round):
        DraftManager.initialize_draft(db, season.id, COMMISSIONER)
        play_round(season.id)

        prompts = DraftManager.get_prompts(db, season.id)
        retired = [p for p in prompts if p.status == PromptStatus.RETIRED]
        assert len(retired) == 1
        assert retired[0].selected_by_player_id is None
        assert DraftManager.get_draft_state(db, season.id).current_round == 2

    def test_full_draft(self, db, drafted_season, players):
        state = DraftManager.get_draft_state(db, drafted_season.id)

        assert state.is_complete
        assert state.current_picker_id is None
        assert drafted_season.current_phase == SeasonPhase.ADVANTAGE_SELECTION
        for player in players:
            count = db.query(RosterEntry).filter(RosterEntry.season_player_id == player.id).count()
            assert count == drafted_season.roster_size
        retired = [p for p in DraftManager.get_prompts(db, drafted_season.id) if p.status == PromptStatus.RETIRED]
        assert len(retired) == drafted_season.roster_size

    def test_no_picks_after_completion(self, db, drafted_season):
        prompt = _open_prompts(db, drafted_season.id)[0]
        db.refresh(drafted_season)
        drafted_season.current_phase = SeasonPhase.DRAFTING
        db.commit()
        with pytest.raises(DraftComplete):
            DraftManager.select_prompt(db, drafted_season.id, prompt.id, COMMISSIONER)


# ── Reset ─────────────────────────────────────────────────────────────


class TestResetDraft:
    def test_reset_keeps_order(self, db, drafted_season):
        order = list(DraftManager.get_draft_state(db, drafted_season.id).draft_order)

        state = DraftManager.reset_draft(db, drafted_season.id, COMMISSIONER)
        db.refresh(drafted_season)

        assert state.draft_order == order
        assert state.current_round == 1
        assert not state.is_complete
        assert drafted_season.current_phase == SeasonPhase.DRAFTING
        assert drafted_season.status == SeasonStatus.PRESEASON
        assert db.query(RosterEntry).filter(RosterEntry.season_id == drafted_season.id).count() == 0
        assert len(_open_prompts(db, drafted_season.id)) == 12

    def test_reset_after_start_rejected(self, db, started_season):
        with pytest.raises(InvalidTransition):
            DraftManager.reset_draft(db, started_season.id, COMMISSIONER)


# ── Views ─────────────────────────────────────────────────────────────


class TestDraftViews:
    def test_picks_in_round_order(self, db, drafted_season, players):
        picks = get_draft_picks(drafted_season.id, db)
        assert len(picks) == 32
        assert [p["acquired_at_round"] for p in picks] == sorted(p["acquired_at_round"] for p in picks)

    def test_player_roster(self, db, drafted_season, players):
        roster = get_player_roster(drafted_season.id, players[0].id, db)
        assert len(roster) == 8
        assert all(r["status"] == "ACTIVE" for r in roster)
        assert all(r["prompt_text"].startswith("Prompt") for r in roster)
