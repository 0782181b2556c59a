"""Shared fixtures: in-memory database, a league of four labels and a season."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers every table on Base.metadata
from database import Base
from models import League, LeagueMember, DraftPrompt, AdvantageDefinition, SeasonPhase
from core.season_manager import SeasonManager
from core.draft_manager import DraftManager
from core.voting_manager import VotingManager

COMMISSIONER = "commish"
MEMBERS = [("u1", "Ada"), ("u2", "Bo"), ("u3", "Cy"), ("u4", "Di")]

ADVANTAGES = [
    ("T1A", "Encore", 1),
    ("T1B", "Remix", 1),
    ("T1C", "B-Side", 1),
    ("T2A", "Feature", 2),
    ("T2B", "Collab", 2),
    ("T3A", "Headliner", 3),
]

CATEGORIES = [
    {"id": "best", "title": "Best Playlist", "point_value": 3},
    {"id": "vibe", "title": "Best Vibe", "point_value": 1},
]


# ------------------------------------------------------------------
# Database
# ------------------------------------------------------------------

@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


# ------------------------------------------------------------------
# League / season
# ------------------------------------------------------------------

@pytest.fixture
def league(db):
    league = League(name="Test League", commissioner_id=COMMISSIONER)
    db.add(league)
    db.flush()
    for user_id, display_name in MEMBERS:
        db.add(LeagueMember(league_id=league.id, user_id=user_id, display_name=display_name))
    db.commit()
    return league


@pytest.fixture
def season(db, league):
    season = SeasonManager.create_season(db, league.id, "Season 1", COMMISSIONER)
    for index in range(12):
        db.add(DraftPrompt(season_id=season.id, text=f"Prompt {index + 1}", position=index))
    for code, name, tier in ADVANTAGES:
        db.add(AdvantageDefinition(season_id=season.id, code=code, name=name, tier=tier))
    db.commit()
    return season


@pytest.fixture
def players(db, season):
    return SeasonManager.get_players(db, season.id)


# ------------------------------------------------------------------
# Draft helpers
# ------------------------------------------------------------------

def _open_prompt(db, season_id):
    return next(
        prompt for prompt in DraftManager.get_prompts(db, season_id)
        if prompt.status.value == "OPEN"
    )


@pytest.fixture
def play_round(db):
    """Run one full draft round as the commissioner; returns the picker ids in order."""
    def _play_round(season_id):
        state = DraftManager.get_draft_state(db, season_id)
        current_round = state.current_round
        prompt = DraftManager.select_prompt(db, season_id, _open_prompt(db, season_id).id, COMMISSIONER)
        pickers = []
        for _ in range(len(state.draft_order)):
            state = DraftManager.get_draft_state(db, season_id)
            pickers.append(state.current_picker_id)
            DraftManager.draft_artist(
                db,
                season_id,
                prompt.id,
                f"Artist R{current_round} P{len(pickers)}",
                COMMISSIONER,
            )
        return pickers
    return _play_round


@pytest.fixture
def drafted_season(db, season, play_round):
    """Season after a complete 8-round draft (phase ADVANTAGE_SELECTION)."""
    DraftManager.initialize_draft(db, season.id, COMMISSIONER)
    for _ in range(season.roster_size):
        play_round(season.id)
    db.refresh(season)
    return season


@pytest.fixture
def started_season(db, drafted_season):
    """Season in week 1, IN_SEASON_CHALLENGE_SELECTION."""
    SeasonManager.start_season(db, drafted_season.id, COMMISSIONER)
    db.refresh(drafted_season)
    return drafted_season


# ------------------------------------------------------------------
# Week helpers
# ------------------------------------------------------------------

@pytest.fixture
def advance_to(db):
    def _advance_to(season_id, phase):
        return SeasonManager.advance_phase(db, season_id, phase, COMMISSIONER)
    return _advance_to


@pytest.fixture
def run_voting(db, advance_to):
    """
    Move the season to VOTING and record the given votes.

    `votes` is a list of (voter_id, category_id, nominee_id).
    """
    def _run_voting(season, votes):
        if season.current_phase != SeasonPhase.VOTING:
            advance_to(season.id, SeasonPhase.VOTING)
        session = VotingManager.open_session(db, season.id, season.current_week, CATEGORIES, COMMISSIONER)
        for voter_id, category_id, nominee_id in votes:
            VotingManager.cast_vote(db, session.id, voter_id, category_id, nominee_id, COMMISSIONER)
        VotingManager.close_session(db, session.id, COMMISSIONER)
        return session
    return _run_voting


def ranked_votes(player_ids):
    """
    Votes that rank players in the given order: everyone else votes the
    first player "best" (a sweep) and the second player "vibe" (a sweep,
    unless the voter is the second player).
    """
    first, second = player_ids[0], player_ids[1]
    votes = []
    for voter in player_ids:
        if voter != first:
            votes.append((voter, "best", first))
        votes.append((voter, "vibe", second if voter != second else player_ids[2]))
    return votes


@pytest.fixture
def make_ranked_votes():
    return ranked_votes
