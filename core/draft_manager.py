"""
Draft Manager：snake draft 的完整流程

職責：
1. 初始化選秀（隨機順序、round 1）
2. 選 prompt（輪到的玩家或 commissioner）
3. 選 artist（推進輪次，回合結束時 retire prompt）
4. 重置選秀

每一次 pick 都是一個 transaction：先鎖 Season 與 DraftState，
在鎖內重新讀取輪次，所以同時送出的兩個 pick 只有一個會成功
"""
from sqlalchemy import func, distinct
from sqlalchemy.orm import Session
import random
import logging

from models import (
    Season, SeasonPhase, SeasonStatus, DraftState, DraftPrompt, DraftSelection,
    PromptStatus, Artist, RosterEntry, RosterStatus, AcquiredVia
)
from core.state_machine import SeasonStateMachine
from core.season_manager import SeasonManager, lock_season
from core.locks import with_draft_state_lock
from core.permissions import require_commissioner, acts_for
from core.exceptions import (
    DraftNotInitialized,
    DraftComplete,
    PromptNotFound,
    PromptUnavailable,
    WrongTurn,
    DuplicateArtist,
    InvalidTransition,
    InvalidPlayerCount
)
from core import compensations, event_log
from services.turn_order_service import TurnCursor, round_direction, start_cursor, next_turn
from services.naming_service import normalize_artist_name
from database import transactional

logger = logging.getLogger(__name__)


def _require_drafting(season: Season):
    if season.current_phase != SeasonPhase.DRAFTING:
        raise InvalidTransition(
            f"Draft picks are only allowed during DRAFTING, current phase: {season.current_phase.value}"
        )


def _lock_open_draft(db: Session, season_id: str) -> DraftState:
    state = with_draft_state_lock(season_id, db).first()
    if not state:
        raise DraftNotInitialized(season_id)
    if state.is_complete:
        raise DraftComplete(f"Draft for season {season_id} is already complete")
    return state


def _require_turn(db: Session, season: Season, state: DraftState, actor_id: str):
    picker_id = state.current_picker_id
    if not acts_for(db, season, actor_id, picker_id):
        raise WrongTurn(
            f"It is not {actor_id}'s turn (round {state.current_round}, picker {picker_id})"
        )


def _assign_draft_order(db: Session, season_id: str, randomize: bool):
    players = SeasonManager.get_players(db, season_id)
    if not players:
        raise InvalidPlayerCount("No players in season")

    if randomize:
        players = random.sample(players, len(players))

    for index, player in enumerate(players):
        player.draft_position = index + 1

    return [player.id for player in players]


class DraftManager:
    """Snake draft 管理器"""

    @staticmethod
    @transactional
    def initialize_draft(db: Session, season_id: str, actor_id: str, randomize: bool = True) -> DraftState:
        """
        初始化選秀

        前置條件：
        1. actor 是 commissioner
        2. 賽季在 SEASON_SETUP 或 DRAFTING
        3. 賽季至少有一位玩家

        流程：
        1. 已經初始化過：直接返回既有的 DraftState（idempotent）
        2. 決定選秀順序（預設隨機；randomize=False 時沿用 draft_position）
        3. 建立 DraftState（round 1，從 index 0 開始）
        4. SEASON_SETUP -> DRAFTING

        異常：
            Unauthorized: actor 不是 commissioner
            InvalidTransition: 賽季已經過了選秀階段
            InvalidPlayerCount: 賽季沒有玩家
        """
        # 1. 鎖定並檢查
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        existing = db.query(DraftState).filter(DraftState.season_id == season_id).first()
        if existing:
            return existing

        if season.current_phase not in (SeasonPhase.SEASON_SETUP, SeasonPhase.DRAFTING):
            raise InvalidTransition(
                f"Draft can only be initialized before it starts, current phase: {season.current_phase.value}"
            )

        # 2. 選秀順序
        order = _assign_draft_order(db, season_id, randomize)
        cursor = start_cursor(order)

        # 3. 建立 DraftState
        state = DraftState(
            season_id=season_id,
            current_round=cursor.round,
            current_picker_index=cursor.cursor,
            draft_order=list(cursor.order),
            is_complete=False
        )
        db.add(state)

        logger.info(f"Initialized draft for season {season_id} with {len(order)} players")

        # 4. Phase Ledger
        if season.current_phase == SeasonPhase.SEASON_SETUP:
            SeasonStateMachine.transition(season, SeasonPhase.DRAFTING, db, actor_id)

        event_log.record(db, season_id, "DRAFT_INITIALIZED", {"draft_order": list(order)}, actor_id)

        return state

    @staticmethod
    @transactional
    def select_prompt(db: Session, season_id: str, prompt_id: str, actor_id: str) -> DraftPrompt:
        """
        為本回合選一個 prompt

        前置條件：
        1. 賽季在 DRAFTING，選秀已初始化且未結束
        2. actor 是輪到的玩家或 commissioner
        3. Prompt 是 OPEN，且本回合還沒有選過 prompt

        流程：
        1. 驗證前置條件
        2. Prompt -> SELECTED（記錄 picker 與 round）
        3. 寫入 DraftSelection 與事件

        異常：
            DraftNotInitialized / DraftComplete
            WrongTurn: 不是輪到 actor
            PromptNotFound: prompt 不存在
            PromptUnavailable: prompt 不是 OPEN，或本回合已經選了別的 prompt
        """
        # 1. 驗證
        season = lock_season(db, season_id)
        _require_drafting(season)
        state = _lock_open_draft(db, season_id)

        prompt = db.query(DraftPrompt).filter(
            DraftPrompt.id == prompt_id,
            DraftPrompt.season_id == season_id
        ).first()
        if not prompt:
            raise PromptNotFound(prompt_id)

        _require_turn(db, season, state, actor_id)

        if prompt.status != PromptStatus.OPEN:
            raise PromptUnavailable(f"Prompt {prompt_id} is {prompt.status.value}, not OPEN")

        already_selected = db.query(DraftPrompt).filter(
            DraftPrompt.season_id == season_id,
            DraftPrompt.status == PromptStatus.SELECTED,
            DraftPrompt.selected_at_round == state.current_round
        ).first()
        if already_selected:
            raise PromptUnavailable(
                f"Prompt {already_selected.id} is already selected for round {state.current_round}"
            )

        # 2. 更新 prompt
        picker_id = state.current_picker_id
        prompt.status = PromptStatus.SELECTED
        prompt.selected_by_player_id = picker_id
        prompt.selected_at_round = state.current_round

        # 3. 紀錄
        db.add(DraftSelection(
            season_id=season_id,
            prompt_id=prompt_id,
            selected_by_player_id=picker_id,
            round=state.current_round
        ))

        logger.info(f"Season {season_id}: player {picker_id} selected prompt {prompt_id} for round {state.current_round}")

        event_log.record(db, season_id, "PROMPT_SELECTED", {
            "prompt_id": prompt_id,
            "round": state.current_round,
            "selected_by": picker_id
        }, actor_id)

        return prompt

    @staticmethod
    @transactional
    def draft_artist(db: Session, season_id: str, prompt_id: str, artist_name: str, actor_id: str) -> RosterEntry:
        """
        選一位 artist，並推進輪次

        前置條件：
        1. 賽季在 DRAFTING，選秀已初始化且未結束
        2. Prompt 是本回合選定的（SELECTED 且 selected_at_round == current_round）
        3. actor 是輪到的玩家或 commissioner（pick 一律算在輪到的玩家身上）
        4. 同名 artist 在賽季中沒有 ACTIVE 的 roster entry

        流程：
        1. 驗證前置條件
        2. 取得或建立 Artist，建立 RosterEntry（DRAFT、week 0、本回合）
        3. 判斷本回合是否每位玩家都 pick 過
           - 是：retire prompt，依 snake 規則決定下一回合的第一位
           - 否：奇數回合 index + 1，偶數回合 index - 1
        4. 最後一回合結束：選秀完成，Phase Ledger -> ADVANTAGE_SELECTION

        異常：
            WrongTurn / PromptNotFound / PromptUnavailable / DuplicateArtist
            InvalidArtistName: 名稱是空的
        """
        # 1. 驗證
        name = normalize_artist_name(artist_name)

        season = lock_season(db, season_id)
        _require_drafting(season)
        state = _lock_open_draft(db, season_id)

        prompt = db.query(DraftPrompt).filter(
            DraftPrompt.id == prompt_id,
            DraftPrompt.season_id == season_id
        ).first()
        if not prompt:
            raise PromptNotFound(prompt_id)
        if prompt.status != PromptStatus.SELECTED or prompt.selected_at_round != state.current_round:
            raise PromptUnavailable(f"Prompt {prompt_id} is not the selected prompt for round {state.current_round}")

        _require_turn(db, season, state, actor_id)

        active_holder = db.query(RosterEntry).join(
            Artist, RosterEntry.artist_id == Artist.id
        ).filter(
            Artist.season_id == season_id,
            Artist.name == name,
            RosterEntry.status == RosterStatus.ACTIVE
        ).first()
        if active_holder:
            raise DuplicateArtist(name)

        # 2. 寫入 pick
        picker_id = state.current_picker_id
        current_round = state.current_round

        artist = db.query(Artist).filter(Artist.season_id == season_id, Artist.name == name).first()
        if not artist:
            artist = Artist(season_id=season_id, name=name)
            db.add(artist)
            db.flush()

        entry = RosterEntry(
            season_id=season_id,
            season_player_id=picker_id,
            artist_id=artist.id,
            prompt_id=prompt_id,
            status=RosterStatus.ACTIVE,
            acquired_via=AcquiredVia.DRAFT,
            acquired_at_week=0,
            acquired_at_round=current_round
        )
        db.add(entry)
        db.flush()

        event_log.record(db, season_id, "DRAFT_PICK", {
            "artist_id": artist.id,
            "artist_name": name,
            "prompt_id": prompt_id,
            "round": current_round,
            "picked_by": picker_id
        }, actor_id)

        # 3. 推進輪次
        picked_count = db.query(func.count(distinct(RosterEntry.season_player_id))).filter(
            RosterEntry.season_id == season_id,
            RosterEntry.acquired_via == AcquiredVia.DRAFT,
            RosterEntry.acquired_at_round == current_round
        ).scalar()
        round_complete = picked_count >= len(state.draft_order)

        cursor = TurnCursor(
            order=tuple(state.draft_order),
            cursor=state.current_picker_index,
            direction=round_direction(current_round),
            round=current_round
        )
        cursor, draft_complete = next_turn(cursor, round_complete, season.roster_size)

        if round_complete:
            prompt.status = PromptStatus.RETIRED
            prompt.selected_by_player_id = None
            prompt.selected_at_round = None
            logger.info(f"Season {season_id}: round {current_round} complete, retired prompt {prompt_id}")

        state.current_round = cursor.round
        state.current_picker_index = cursor.cursor

        # 4. 選秀結束
        if draft_complete:
            state.is_complete = True
            logger.info(f"Season {season_id}: draft complete after round {current_round}")
            event_log.record(db, season_id, "DRAFT_COMPLETED", {"rounds": current_round}, actor_id)
            SeasonStateMachine.transition(season, SeasonPhase.ADVANTAGE_SELECTION, db, actor_id)

        return entry

    @staticmethod
    @transactional
    def reset_draft(db: Session, season_id: str, actor_id: str, keep_order: bool = True) -> DraftState:
        """
        重置選秀（回到 round 1）

        前置條件：
        1. actor 是 commissioner
        2. 賽季還沒開打（PRESEASON）

        流程：
        1. 刪除 draft selections、roster entries、pool entries、artists
        2. 所有 prompt 回到 OPEN
        3. 重新建立 DraftState（keep_order=True 沿用原順序，否則重新隨機）
        4. Phase Ledger 回到 DRAFTING

        異常：
            Unauthorized: actor 不是 commissioner
            InvalidTransition: 賽季已經開打（請改用 checkpoint rollback）
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        if season.status != SeasonStatus.PRESEASON:
            raise InvalidTransition("Draft can only be reset before the season starts")

        state = with_draft_state_lock(season_id, db).first()

        # 1. 決定順序（先於刪除，避免讀到已刪除的資料）
        if keep_order and state and state.draft_order:
            order = list(state.draft_order)
        else:
            order = _assign_draft_order(db, season_id, randomize=True)

        # 2. 清除選秀產生的資料
        compensations.delete_draft_selections(db, season)
        compensations.delete_all_roster_entries(db, season)
        compensations.delete_all_pool_entries(db, season)
        compensations.delete_all_artists(db, season)
        compensations.reopen_prompts(db, season)

        # 3. 重建 DraftState
        cursor = start_cursor(order)
        if not state:
            state = DraftState(season_id=season_id)
            db.add(state)
        state.current_round = cursor.round
        state.current_picker_index = cursor.cursor
        state.draft_order = list(cursor.order)
        state.is_complete = False

        # 4. Phase Ledger
        SeasonStateMachine.restore(season, SeasonPhase.DRAFTING, 0, SeasonStatus.PRESEASON)

        logger.info(f"Season {season_id}: draft reset (keep_order={keep_order})")

        event_log.record(db, season_id, "DRAFT_RESET", {
            "keep_order": keep_order,
            "draft_order": list(order)
        }, actor_id)

        return state

    @staticmethod
    def get_draft_state(db: Session, season_id: str) -> DraftState:
        """
        異常：
            DraftNotInitialized: 尚未初始化
        """
        state = db.query(DraftState).filter(DraftState.season_id == season_id).first()
        if not state:
            raise DraftNotInitialized(season_id)
        return state

    @staticmethod
    def get_prompts(db: Session, season_id: str):
        return db.query(DraftPrompt).filter(
            DraftPrompt.season_id == season_id
        ).order_by(DraftPrompt.position).all()
