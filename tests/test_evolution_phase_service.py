"""Tests for roster evolution phase helpers."""

from models import EvolutionPhase, WeekType
from services.evolution_phase_service import (
    default_week_types,
    get_week_type,
    includes_pool_draft,
    initial_phase,
    next_redraft_turn,
    phase_after_cuts,
)


class TestWeekSettings:
    def test_every_fourth_week_is_chaos(self):
        types = default_week_types(8)
        chaos = [t["week_number"] for t in types if t["type"] == WeekType.CHAOS.value]
        assert chaos == [4, 8]

    def test_unconfigured_week_is_growth(self):
        assert get_week_type(9, default_week_types(8)) == WeekType.GROWTH
        assert get_week_type(4, default_week_types(8)) == WeekType.CHAOS

    def test_pool_draft_weeks(self):
        assert includes_pool_draft(2, [2, 6])
        assert not includes_pool_draft(3, [2, 6])
        assert not includes_pool_draft(2, None)


class TestPhases:
    def test_initial_phase_skips_empty_steps(self):
        assert initial_phase(1, 1, False) == EvolutionPhase.SELF_CUT
        assert initial_phase(0, 1, False) == EvolutionPhase.PROMPT_SELECTION
        assert initial_phase(0, 0, True) == EvolutionPhase.POOL_DRAFT
        assert initial_phase(0, 0, False) == EvolutionPhase.COMPLETE

    def test_after_cuts(self):
        assert phase_after_cuts(0, True) == EvolutionPhase.POOL_DRAFT


class TestRedraftTurns:
    def test_linear_round_robin(self):
        order = ["a", "b", "c"]
        assert next_redraft_turn(order, 0, 1, {"a": 1}, 2) == (1, 1, False)
        assert next_redraft_turn(order, 2, 1, {"a": 1, "b": 1, "c": 1}, 2) == (0, 2, False)

    def test_done_when_everyone_reaches_quota(self):
        _, _, done = next_redraft_turn(["a", "b"], 1, 1, {"a": 1, "b": 1}, 1)
        assert done
