"""
SQLAlchemy Models

資料結構優先：所有 engine 的狀態都在這裡，engine 本身不保存任何狀態
"""
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey, JSON, Enum as SQLEnum,
    UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from collections import namedtuple
import enum
import uuid

from database import Base


def _uuid():
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


# ============ Enums ============

class SeasonStatus(str, enum.Enum):
    PRESEASON = "PRESEASON"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class SeasonPhase(str, enum.Enum):
    """宣告順序就是 Phase Ledger 的全序（見 core.state_machine.PHASE_ORDER）"""
    SEASON_SETUP = "SEASON_SETUP"
    DRAFTING = "DRAFTING"
    ADVANTAGE_SELECTION = "ADVANTAGE_SELECTION"
    READY_FOR_WEEK_1 = "READY_FOR_WEEK_1"
    IN_SEASON_CHALLENGE_SELECTION = "IN_SEASON_CHALLENGE_SELECTION"
    PLAYLIST_SUBMISSION = "PLAYLIST_SUBMISSION"
    PLAYLIST_PRESENTATION = "PLAYLIST_PRESENTATION"
    VOTING = "VOTING"
    IN_SEASON_WEEK_END = "IN_SEASON_WEEK_END"
    ROSTER_EVOLUTION = "ROSTER_EVOLUTION"


class PromptStatus(str, enum.Enum):
    OPEN = "OPEN"
    SELECTED = "SELECTED"
    RETIRED = "RETIRED"


class RosterStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CUT = "CUT"
    BENCHED = "BENCHED"


class AcquiredVia(str, enum.Enum):
    DRAFT = "DRAFT"
    POOL = "POOL"
    TRADED = "TRADED"


class PoolStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    DRAFTED = "DRAFTED"
    BANISHED = "BANISHED"


class PoolEntryVia(str, enum.Enum):
    SELF_CUT = "SELF_CUT"
    OPPONENT_CUT = "OPPONENT_CUT"


class WeekType(str, enum.Enum):
    GROWTH = "GROWTH"
    CHAOS = "CHAOS"


class EvolutionPhase(str, enum.Enum):
    SELF_CUT = "SELF_CUT"
    PROMPT_SELECTION = "PROMPT_SELECTION"
    REDRAFT = "REDRAFT"
    POOL_DRAFT = "POOL_DRAFT"
    COMPLETE = "COMPLETE"


class AwardSource(str, enum.Enum):
    PLACEMENT = "PLACEMENT"
    SWEEP = "SWEEP"


class EarnedVia(str, enum.Enum):
    STARTING = "STARTING"
    PLACEMENT = "PLACEMENT"
    SWEEP = "SWEEP"


class InventoryStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    PLAYED = "PLAYED"
    EXPIRED = "EXPIRED"


class VotingStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


# ============ League / Season ============

class League(Base):
    __tablename__ = "leagues"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False)
    commissioner_id = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=_now)

    members = relationship("LeagueMember", back_populates="league")
    seasons = relationship("Season", back_populates="league")


class LeagueMember(Base):
    __tablename__ = "league_members"

    id = Column(String(36), primary_key=True, default=_uuid)
    league_id = Column(String(36), ForeignKey("leagues.id"), nullable=False)
    user_id = Column(String(64), nullable=False)
    display_name = Column(String(100), nullable=False)
    joined_at = Column(DateTime, default=_now)

    league = relationship("League", back_populates="members")


class Season(Base):
    __tablename__ = "seasons"

    id = Column(String(36), primary_key=True, default=_uuid)
    league_id = Column(String(36), ForeignKey("leagues.id"), nullable=False)
    name = Column(String(100), nullable=False)
    status = Column(SQLEnum(SeasonStatus), nullable=False, default=SeasonStatus.PRESEASON)
    current_week = Column(Integer, nullable=False, default=0)
    current_phase = Column(SQLEnum(SeasonPhase), nullable=False, default=SeasonPhase.SEASON_SETUP)

    # 賽季設定
    roster_size = Column(Integer, nullable=False, default=8)
    total_weeks = Column(Integer, nullable=False, default=8)
    tier1_count = Column(Integer, nullable=False, default=2)
    tier2_count = Column(Integer, nullable=False, default=1)
    tier3_count = Column(Integer, nullable=False, default=0)

    started_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now)

    league = relationship("League", back_populates="seasons")
    players = relationship("SeasonPlayer", back_populates="season", order_by="SeasonPlayer.created_at")

    def tier_cap(self, tier: int) -> int:
        return {1: self.tier1_count, 2: self.tier2_count, 3: self.tier3_count}.get(tier, 0)


class SeasonPlayer(Base):
    __tablename__ = "season_players"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    user_id = Column(String(64), nullable=False)
    label_name = Column(String(100), nullable=False)
    draft_position = Column(Integer, nullable=True)
    total_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=_now)

    season = relationship("Season", back_populates="players")

    __table_args__ = (UniqueConstraint("season_id", "user_id", name="uq_season_player_user"),)


# ============ Draft ============

class DraftPrompt(Base):
    __tablename__ = "draft_prompts"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    category_id = Column(String(64), nullable=True)
    text = Column(String(500), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(PromptStatus), nullable=False, default=PromptStatus.OPEN)
    selected_by_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=True)
    selected_at_round = Column(Integer, nullable=True)


class DraftState(Base):
    __tablename__ = "draft_states"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False, unique=True)
    current_round = Column(Integer, nullable=False, default=1)
    current_picker_index = Column(Integer, nullable=False, default=0)
    draft_order = Column(JSON, nullable=False, default=list)
    is_complete = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    @property
    def current_picker_id(self):
        if not self.draft_order or self.is_complete:
            return None
        return self.draft_order[self.current_picker_index]


class DraftSelection(Base):
    __tablename__ = "draft_selections"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    prompt_id = Column(String(36), ForeignKey("draft_prompts.id"), nullable=False)
    selected_by_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=False)
    round = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_now)


# ============ Roster / Pool ============

class Artist(Base):
    __tablename__ = "artists"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=_now)


class RosterEntry(Base):
    __tablename__ = "roster_entries"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    season_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=False)
    artist_id = Column(String(36), ForeignKey("artists.id"), nullable=False)
    prompt_id = Column(String(36), ForeignKey("draft_prompts.id"), nullable=True)
    status = Column(SQLEnum(RosterStatus), nullable=False, default=RosterStatus.ACTIVE)
    acquired_via = Column(SQLEnum(AcquiredVia), nullable=False)
    acquired_at_week = Column(Integer, nullable=False, default=0)
    acquired_at_round = Column(Integer, nullable=False, default=0)
    cut_at_week = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_now)

    artist = relationship("Artist")


class PoolEntry(Base):
    __tablename__ = "pool_entries"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    artist_id = Column(String(36), ForeignKey("artists.id"), nullable=False)
    status = Column(SQLEnum(PoolStatus), nullable=False, default=PoolStatus.AVAILABLE)
    entered_pool_week = Column(Integer, nullable=False)
    entered_via = Column(SQLEnum(PoolEntryVia), nullable=False)
    cut_by_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=True)
    cut_from_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=True)
    drafted_by_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=True)
    drafted_at_week = Column(Integer, nullable=True)
    banished_at_week = Column(Integer, nullable=True)

    artist = relationship("Artist")


# ============ Roster Evolution ============

class RosterEvolutionSettings(Base):
    __tablename__ = "roster_evolution_settings"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False, unique=True)
    week_types = Column(JSON, nullable=False, default=list)  # [{"week_number": 4, "type": "CHAOS"}]
    self_cut_count = Column(Integer, nullable=False, default=1)
    redraft_count = Column(Integer, nullable=False, default=1)
    pool_draft_weeks = Column(JSON, nullable=False, default=lambda: [2, 6])


class RosterEvolutionState(Base):
    __tablename__ = "roster_evolution_states"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    week_number = Column(Integer, nullable=False)
    week_type = Column(SQLEnum(WeekType), nullable=False, default=WeekType.GROWTH)
    current_phase = Column(SQLEnum(EvolutionPhase), nullable=False)

    # [{"season_player_id", "self_cut_count", "self_cuts_completed", "completed"}]
    cuts_required = Column(JSON, nullable=False, default=list)

    prompt_picker_id = Column(String(36), ForeignKey("season_players.id"), nullable=True)
    selected_prompt_id = Column(String(36), ForeignKey("draft_prompts.id"), nullable=True)

    redraft_order = Column(JSON, nullable=False, default=list)
    current_redraft_index = Column(Integer, nullable=False, default=0)
    redrafts_per_player = Column(Integer, nullable=False, default=1)
    redraft_round = Column(Integer, nullable=False, default=1)
    redraft_picks_completed = Column(JSON, nullable=False, default=dict)  # {season_player_id: n}

    includes_pool_draft = Column(Boolean, nullable=False, default=False)
    pool_draft_order = Column(JSON, nullable=False, default=list)
    current_pool_draft_index = Column(Integer, nullable=False, default=0)
    pool_draft_picks_completed = Column(JSON, nullable=False, default=dict)

    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now)

    __table_args__ = (UniqueConstraint("season_id", "week_number", name="uq_evolution_state_week"),)


# ============ Results / Voting ============

class VotingSession(Base):
    __tablename__ = "voting_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    week_number = Column(Integer, nullable=False)
    status = Column(SQLEnum(VotingStatus), nullable=False, default=VotingStatus.OPEN)
    categories = Column(JSON, nullable=False, default=list)  # [{"id", "title", "point_value"}]
    created_at = Column(DateTime, default=_now)

    votes = relationship("Vote", back_populates="session")


class Vote(Base):
    __tablename__ = "votes"

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(36), ForeignKey("voting_sessions.id"), nullable=False)
    category_id = Column(String(64), nullable=False)
    voter_id = Column(String(36), ForeignKey("season_players.id"), nullable=False)
    nominated_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=False)
    created_at = Column(DateTime, default=_now)

    session = relationship("VotingSession", back_populates="votes")

    __table_args__ = (UniqueConstraint("session_id", "category_id", "voter_id", name="uq_vote_per_category"),)


class WeeklyResult(Base):
    __tablename__ = "weekly_results"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    week_number = Column(Integer, nullable=False)
    season_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=False)
    voting_points = Column(Integer, nullable=False, default=0)
    placement = Column(Integer, nullable=False)
    victory_points = Column(Integer, nullable=False, default=0)


class PresentationState(Base):
    __tablename__ = "presentation_states"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    week_number = Column(Integer, nullable=False)
    current_presenter_id = Column(String(36), ForeignKey("season_players.id"), nullable=True)
    presented_player_ids = Column(JSON, nullable=False, default=list)
    is_complete = Column(Boolean, nullable=False, default=False)
    started_at = Column(DateTime, default=_now)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (UniqueConstraint("season_id", "week_number", name="uq_presentation_week"),)


class ChallengeSelection(Base):
    __tablename__ = "challenge_selections"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    week = Column(Integer, nullable=False)
    challenge_id = Column(String(64), nullable=False)
    selected_by_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=True)
    created_at = Column(DateTime, default=_now)

    __table_args__ = (UniqueConstraint("season_id", "week", name="uq_challenge_selection_week"),)


class ChallengeReveal(Base):
    __tablename__ = "challenge_reveals"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    challenge_id = Column(String(64), nullable=False)
    revealed_by_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=True)
    revealed_at_week = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_now)


# ============ Advantages ============

PendingSlot = namedtuple("PendingSlot", ["tier", "source"])
SelectedSlot = namedtuple("SelectedSlot", ["code"])


class AdvantageDefinition(Base):
    """賽季的 advantage 看板：code -> tier"""
    __tablename__ = "advantage_definitions"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    code = Column(String(64), nullable=False)
    name = Column(String(200), nullable=False)
    tier = Column(Integer, nullable=False)

    __table_args__ = (UniqueConstraint("season_id", "code", name="uq_advantage_code"),)


class AdvantageDistributionSettings(Base):
    __tablename__ = "advantage_distribution_settings"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False, unique=True)
    placement_rewards = Column(JSON, nullable=False, default=list)  # [{"placement", "tier", "count"}]
    sweep_rewards = Column(JSON, nullable=False, default=list)  # [{"category_point_value", "tier", "count"}]
    sweeps_stack = Column(Boolean, nullable=False, default=False)
    max_sweep_advantages_per_week = Column(Integer, nullable=True)
    cooldown_by_tier = Column(JSON, nullable=False, default=dict)  # {"1": 0, "2": 1, "3": 1}


class AdvantageAward(Base):
    __tablename__ = "advantage_awards"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    season_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=False)
    tier = Column(Integer, nullable=False)
    awarded_via = Column(SQLEnum(AwardSource), nullable=False)
    earned_week = Column(Integer, nullable=False)
    can_use_after_week = Column(Integer, nullable=False)
    placement = Column(Integer, nullable=True)
    sweep_category_id = Column(String(64), nullable=True)
    advantage_code = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=_now)

    @property
    def slot(self):
        """PendingSlot(tier, source) 直到 commissioner 指定 code，之後是 SelectedSlot(code)"""
        if self.advantage_code is None:
            return PendingSlot(self.tier, self.awarded_via)
        return SelectedSlot(self.advantage_code)


class PlayerInventory(Base):
    __tablename__ = "player_inventory"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    season_player_id = Column(String(36), ForeignKey("season_players.id"), nullable=False)
    advantage_code = Column(String(64), nullable=False)
    tier = Column(Integer, nullable=False)
    status = Column(SQLEnum(InventoryStatus), nullable=False, default=InventoryStatus.AVAILABLE)
    earned_week = Column(Integer, nullable=False, default=0)
    earned_via = Column(SQLEnum(EarnedVia), nullable=False)
    can_use_after_week = Column(Integer, nullable=False, default=0)
    award_id = Column(String(36), ForeignKey("advantage_awards.id"), nullable=True)
    played_at_week = Column(Integer, nullable=True)


# ============ Event Log ============

class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(String(36), primary_key=True, default=_uuid)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    week_number = Column(Integer, nullable=True)
    phase = Column(String(64), nullable=True)
    event_type = Column(String(64), nullable=False)
    actor_id = Column(String(64), nullable=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=_now)
