"""Tests for weekly standings helpers."""

from services.standings_service import (
    assign_placements,
    compute_voting_points,
    group_votes_by_category,
    reverse_standings,
    victory_points_for,
)

CATEGORIES = [
    {"id": "best", "title": "Best", "point_value": 3},
    {"id": "vibe", "title": "Vibe", "point_value": 1},
]


class TestVotingPoints:
    def test_points_are_votes_times_value(self):
        votes = [("best", "a"), ("best", "a"), ("vibe", "b"), ("vibe", "a")]
        points = compute_voting_points(votes, CATEGORIES, ["a", "b", "c"])
        assert points == {"a": 7, "b": 1, "c": 0}

    def test_unknown_category_ignored(self):
        points = compute_voting_points([("nope", "a")], CATEGORIES, ["a"])
        assert points == {"a": 0}

    def test_default_point_value_is_one(self):
        points = compute_voting_points([("x", "a")], [{"id": "x"}], ["a"])
        assert points == {"a": 1}


class TestPlacements:
    def test_ties_share_and_skip(self):
        placements = assign_placements({"a": 10, "b": 10, "c": 7, "d": 1})
        assert placements == {"a": 1, "b": 1, "c": 3, "d": 4}

    def test_all_tied(self):
        assert set(assign_placements({"a": 0, "b": 0}).values()) == {1}

    def test_victory_points(self):
        assert [victory_points_for(p) for p in (1, 2, 3, 4, 5)] == [5, 3, 2, 1, 0]


class TestReverseStandings:
    def test_worst_first(self):
        order = reverse_standings({"a": 1, "b": 3, "c": 2}, ["a", "b", "c"])
        assert order == ["b", "c", "a"]

    def test_missing_player_counts_as_last(self):
        order = reverse_standings({"a": 1, "b": 2}, ["a", "b", "c"])
        assert order[0] == "c"

    def test_ties_keep_fallback_order(self):
        order = reverse_standings({"a": 2, "b": 2, "c": 1}, ["b", "a", "c"])
        assert order == ["b", "a", "c"]

    def test_no_results_returns_fallback(self):
        assert reverse_standings({}, ["x", "y"]) == ["x", "y"]


def test_group_votes_by_category():
    grouped = group_votes_by_category([("best", "a"), ("best", "a"), ("vibe", "b")])
    assert grouped["best"]["a"] == 2
    assert grouped["vibe"]["b"] == 1
