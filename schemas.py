"""
Pydantic Schemas：API request / response

每個會改變狀態的 request 都帶 requesting_user_id（身分驗證在本服務之外）
"""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Dict, List, Optional


class ActorRequest(BaseModel):
    requesting_user_id: str


# ============ Season ============

class SeasonCreate(ActorRequest):
    league_id: str
    name: str
    roster_size: int = 8
    total_weeks: int = 8


class PhaseAdvance(ActorRequest):
    target_phase: str


class PlayerReorder(ActorRequest):
    ordered_player_ids: List[str]


class AdvantageSelectionConfig(ActorRequest):
    tier1_count: Optional[int] = None
    tier2_count: Optional[int] = None
    tier3_count: Optional[int] = None


class SeasonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    league_id: str
    name: str
    status: str
    current_week: int
    current_phase: str
    roster_size: int
    total_weeks: int
    tier1_count: int
    tier2_count: int
    tier3_count: int
    started_at: Optional[datetime] = None


class SeasonPlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    label_name: str
    draft_position: Optional[int] = None
    total_points: int


class CheckpointRollback(ActorRequest):
    checkpoint_id: str


class CheckpointListResponse(BaseModel):
    checkpoints: List[str]


# ============ Draft ============

class DraftInitialize(ActorRequest):
    randomize: bool = True


class DraftReset(ActorRequest):
    keep_order: bool = True


class PromptSelect(ActorRequest):
    prompt_id: str


class ArtistDraft(ActorRequest):
    prompt_id: str
    artist_name: str


class DraftStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    season_id: str
    current_round: int
    current_picker_index: int
    current_picker_id: Optional[str] = None
    draft_order: List[str]
    is_complete: bool


class PromptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category_id: Optional[str] = None
    text: str
    position: int
    status: str
    selected_by_player_id: Optional[str] = None
    selected_at_round: Optional[int] = None


class RosterEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    season_player_id: str
    artist_id: str
    prompt_id: Optional[str] = None
    status: str
    acquired_via: str
    acquired_at_week: int
    acquired_at_round: int


class RosterViewEntry(BaseModel):
    roster_entry_id: str
    season_player_id: str
    artist_id: str
    artist_name: str
    prompt_id: Optional[str] = None
    prompt_text: Optional[str] = None
    status: str
    acquired_via: str
    acquired_at_week: int
    acquired_at_round: int


# ============ Roster Evolution ============

class EvolutionCut(ActorRequest):
    roster_entry_id: str


class EvolutionRedraft(ActorRequest):
    artist_name: str


class PoolDraft(ActorRequest):
    pool_entry_id: str


class PoolBanish(ActorRequest):
    pool_entry_ids: List[str]


class PoolEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    artist_id: str
    status: str
    entered_pool_week: int
    entered_via: str
    cut_by_player_id: Optional[str] = None
    drafted_by_player_id: Optional[str] = None
    drafted_at_week: Optional[int] = None


class EvolutionStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    season_id: str
    week_number: int
    week_type: str
    current_phase: str
    cuts_required: List[Dict]
    prompt_picker_id: Optional[str] = None
    selected_prompt_id: Optional[str] = None
    redraft_order: List[str]
    current_redraft_index: int
    redraft_round: int
    redraft_picks_completed: Dict[str, int]
    includes_pool_draft: bool
    pool_draft_order: List[str]
    current_pool_draft_index: int
    completed_at: Optional[datetime] = None


# ============ Advantages ============

class StartingAdvantageAssign(ActorRequest):
    season_player_id: str
    advantage_code: str


class WeeklyAdvantageAssign(ActorRequest):
    advantage_code: str


class AwardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    season_player_id: str
    tier: int
    awarded_via: str
    earned_week: int
    can_use_after_week: int
    placement: Optional[int] = None
    sweep_category_id: Optional[str] = None
    advantage_code: Optional[str] = None


class InventoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    season_player_id: str
    advantage_code: str
    tier: int
    status: str
    earned_week: int
    earned_via: str
    can_use_after_week: int


# ============ Voting / Results ============

class AwardCategory(BaseModel):
    id: str
    title: str
    point_value: int = Field(default=1, ge=1)


class VotingOpen(ActorRequest):
    categories: List[AwardCategory]


class VoteCast(ActorRequest):
    voter_id: str
    category_id: str
    nominated_player_id: str


class VotingSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    week_number: int
    status: str
    categories: List[Dict]


class WeeklyResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    season_player_id: str
    week_number: int
    voting_points: int
    placement: int
    victory_points: int


# ============ Challenges / Presentation ============

class ChallengeRequest(ActorRequest):
    challenge_id: str


class PresenterSelect(ActorRequest):
    season_player_id: str


class ChallengeRevealResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    challenge_id: str
    revealed_by_player_id: Optional[str] = None
    revealed_at_week: int


class ChallengeSelectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    week: int
    challenge_id: str
    selected_by_player_id: Optional[str] = None


class PickerResponse(BaseModel):
    season_player_id: str


class PresentationStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    week_number: int
    current_presenter_id: Optional[str] = None
    presented_player_ids: List[str]
    is_complete: bool
    completed_at: Optional[datetime] = None
