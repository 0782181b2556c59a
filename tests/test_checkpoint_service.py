"""Tests for checkpoint id parsing and availability."""

import pytest

from core.exceptions import UnknownCheckpoint
from models import SeasonPhase, SeasonStatus
from services.checkpoint_service import (
    WEEK,
    WEEK_PRESENTATION,
    WEEK_ROSTER_EVOLUTION,
    available_checkpoints,
    parse_checkpoint,
)


class TestParseCheckpoint:
    def test_draft(self):
        target = parse_checkpoint("DRAFT")
        assert (target.phase, target.week, target.status) == (
            SeasonPhase.DRAFTING, 0, SeasonStatus.PRESEASON
        )

    def test_start_of_season_is_week_one(self):
        target = parse_checkpoint("START_OF_SEASON")
        assert target.family == WEEK
        assert target.week == 1
        assert target.phase == SeasonPhase.IN_SEASON_CHALLENGE_SELECTION

    def test_week(self):
        target = parse_checkpoint("WEEK_3")
        assert (target.family, target.week) == (WEEK, 3)

    def test_presentation_is_not_plain_week(self):
        target = parse_checkpoint("WEEK_3_PRESENTATION")
        assert target.family == WEEK_PRESENTATION
        assert target.phase == SeasonPhase.PLAYLIST_PRESENTATION

    def test_roster_evolution(self):
        target = parse_checkpoint("WEEK_12_ROSTER_EVOLUTION")
        assert (target.family, target.week) == (WEEK_ROSTER_EVOLUTION, 12)
        assert target.status == SeasonStatus.IN_PROGRESS

    @pytest.mark.parametrize("checkpoint_id", ["WEEK_0", "WEEK_", "WEEK_X", "week_1", "LATER", "", None])
    def test_unknown(self, checkpoint_id):
        with pytest.raises(UnknownCheckpoint):
            parse_checkpoint(checkpoint_id)


class TestAvailableCheckpoints:
    def test_fresh_season(self):
        assert available_checkpoints(SeasonPhase.SEASON_SETUP, 0, SeasonStatus.PRESEASON) == [
            "DRAFT", "ADVANTAGE_SELECTION"
        ]

    def test_advantage_selection(self):
        assert available_checkpoints(SeasonPhase.ADVANTAGE_SELECTION, 0, SeasonStatus.PRESEASON) == [
            "PRESEASON", "DRAFT"
        ]

    def test_mid_week(self):
        checkpoints = available_checkpoints(SeasonPhase.VOTING, 2, SeasonStatus.IN_PROGRESS)
        assert "WEEK_2" in checkpoints
        assert "WEEK_2_PRESENTATION" in checkpoints
        assert "WEEK_2_ROSTER_EVOLUTION" not in checkpoints
        assert "START_OF_SEASON" in checkpoints

    def test_roster_evolution(self):
        checkpoints = available_checkpoints(SeasonPhase.ROSTER_EVOLUTION, 4, SeasonStatus.IN_PROGRESS)
        assert "WEEK_4_ROSTER_EVOLUTION" in checkpoints

    def test_before_presentation(self):
        checkpoints = available_checkpoints(
            SeasonPhase.IN_SEASON_CHALLENGE_SELECTION, 1, SeasonStatus.IN_PROGRESS
        )
        assert "WEEK_1_PRESENTATION" not in checkpoints
