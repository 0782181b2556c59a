"""
Roster Evolution Manager：每週陣容調整的子狀態機

    SELF_CUT -> PROMPT_SELECTION -> REDRAFT -> [POOL_DRAFT] -> COMPLETE

職責：
1. 初始化某一週的 RosterEvolutionState（順序 = 當週名次倒序）
2. 各階段的操作（cut / 選 prompt / redraft / pool draft）
3. 完成（推進到下一週）與 rollback（回到當週起點）
4. Pool 管理（banish、查詢）

所有操作都要求賽季正處於 ROSTER_EVOLUTION 且 week 是當週
"""
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import List, Optional
import logging

from models import (
    Season, SeasonPhase, DraftPrompt, PromptStatus, Artist, RosterEntry, RosterStatus,
    AcquiredVia, PoolEntry, PoolStatus, PoolEntryVia, RosterEvolutionSettings,
    RosterEvolutionState, EvolutionPhase, WeeklyResult
)
from core.state_machine import SeasonStateMachine
from core.season_manager import SeasonManager, lock_season
from core.locks import with_evolution_state_lock
from core.permissions import require_commissioner, acts_for
from core.exceptions import (
    EvolutionStateNotFound,
    PlayerNotFound,
    PromptNotFound,
    PromptUnavailable,
    RosterEntryNotFound,
    PoolEntryNotFound,
    InvalidTransition,
    InvalidPlayerCount,
    Unauthorized,
    WrongTurn,
    CapacityExceeded,
    DuplicateArtist
)
from core import compensations, event_log
from services.evolution_phase_service import (
    get_week_type,
    includes_pool_draft,
    initial_phase,
    phase_after_cuts,
    phase_after_redraft,
    next_redraft_turn,
    DEFAULT_SELF_CUT_COUNT,
    DEFAULT_REDRAFT_COUNT,
    DEFAULT_POOL_DRAFT_WEEKS
)
from services.standings_service import reverse_standings
from services.naming_service import normalize_artist_name
from database import transactional

logger = logging.getLogger(__name__)

EVOLUTION_EVENT_TYPES = (
    "ROSTER_EVOLUTION_STARTED",
    "ARTIST_CUT",
    "REDRAFT_PROMPT_SELECTED",
    "ARTIST_REDRAFTED",
    "POOL_DRAFT_PICK",
    "ROSTER_EVOLUTION_COMPLETE",
)


def get_evolution_settings(db: Session, season_id: str) -> RosterEvolutionSettings:
    """賽季設定；沒有設定時返回預設值（不寫入資料庫）"""
    settings = db.query(RosterEvolutionSettings).filter(
        RosterEvolutionSettings.season_id == season_id
    ).first()
    if settings:
        return settings
    return RosterEvolutionSettings(
        season_id=season_id,
        week_types=[],
        self_cut_count=DEFAULT_SELF_CUT_COUNT,
        redraft_count=DEFAULT_REDRAFT_COUNT,
        pool_draft_weeks=list(DEFAULT_POOL_DRAFT_WEEKS)
    )


def _require_evolution_week(season: Season, week_number: int):
    if season.current_phase != SeasonPhase.ROSTER_EVOLUTION or season.current_week != week_number:
        raise InvalidTransition(
            f"Roster evolution for week {week_number} is not active "
            f"(season is in {season.current_phase.value}, week {season.current_week})"
        )


def _lock_state(db: Session, season_id: str, week_number: int) -> RosterEvolutionState:
    state = with_evolution_state_lock(season_id, week_number, db).first()
    if not state:
        raise EvolutionStateNotFound(f"{season_id} (week {week_number})")
    return state


def _require_state_phase(state: RosterEvolutionState, phase: EvolutionPhase):
    if state.current_phase != phase:
        raise InvalidTransition(
            f"Roster evolution is in {state.current_phase.value}, expected {phase.value}"
        )


def _evolution_order(db: Session, season_id: str, week_number: int) -> List[str]:
    """當週名次倒序（最後一名第一個）；沒有成績時沿用選秀順序"""
    players = SeasonManager.get_players(db, season_id)
    if not players:
        raise InvalidPlayerCount("No players in season")

    placements = dict(
        db.query(WeeklyResult.season_player_id, WeeklyResult.placement).filter(
            WeeklyResult.season_id == season_id,
            WeeklyResult.week_number == week_number
        ).all()
    )
    return reverse_standings(placements, [player.id for player in players])


def _reset_progress(state: RosterEvolutionState, order: List[str], self_cut_count: int):
    state.cuts_required = [
        {
            "season_player_id": player_id,
            "self_cut_count": self_cut_count,
            "self_cuts_completed": 0,
            "completed": self_cut_count == 0
        }
        for player_id in order
    ]
    state.prompt_picker_id = order[0]
    state.selected_prompt_id = None
    state.redraft_order = list(order)
    state.current_redraft_index = 0
    state.redraft_round = 1
    state.redraft_picks_completed = {player_id: 0 for player_id in order}
    state.pool_draft_order = list(order)
    state.current_pool_draft_index = 0
    state.pool_draft_picks_completed = {player_id: 0 for player_id in order}
    state.completed_at = None
    state.current_phase = initial_phase(self_cut_count, state.redrafts_per_player, state.includes_pool_draft)


def _self_cut_count(state: RosterEvolutionState) -> int:
    if state.cuts_required:
        return int(state.cuts_required[0]["self_cut_count"])
    return 0


class RosterEvolutionManager:
    """Roster evolution 子狀態機管理器"""

    @staticmethod
    @transactional
    def initialize(db: Session, season_id: str, week_number: int, actor_id: str) -> RosterEvolutionState:
        """
        初始化某一週的 roster evolution

        前置條件：
        1. actor 是 commissioner
        2. 賽季在 ROSTER_EVOLUTION 且 week_number 是當週

        流程：
        1. 已經初始化過：直接返回既有的 state（idempotent）
        2. 讀取設定（週類型、cut / redraft 數量、是否有 pool draft）
        3. 順序 = 當週名次倒序，prompt picker = 最後一名
        4. 依設定決定起始階段（數量為 0 的階段跳過）

        異常：
            Unauthorized / InvalidTransition / InvalidPlayerCount
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        existing = with_evolution_state_lock(season_id, week_number, db).first()
        if existing:
            return existing

        _require_evolution_week(season, week_number)

        settings = get_evolution_settings(db, season_id)
        order = _evolution_order(db, season_id, week_number)

        state = RosterEvolutionState(
            season_id=season_id,
            week_number=week_number,
            week_type=get_week_type(week_number, settings.week_types),
            redrafts_per_player=settings.redraft_count,
            includes_pool_draft=includes_pool_draft(week_number, settings.pool_draft_weeks)
        )
        _reset_progress(state, order, settings.self_cut_count)
        db.add(state)
        db.flush()

        logger.info(
            f"Season {season_id}: roster evolution started for week {week_number} "
            f"({state.week_type.value}, phase {state.current_phase.value})"
        )

        event_log.record(db, season_id, "ROSTER_EVOLUTION_STARTED", {
            "week_number": week_number,
            "week_type": state.week_type.value,
            "phase": state.current_phase.value,
            "order": list(order)
        }, actor_id)

        return state

    @staticmethod
    @transactional
    def cut_artist(db: Session, season_id: str, week_number: int, roster_entry_id: str, actor_id: str) -> PoolEntry:
        """
        Self-cut：把自己陣容中的一位 artist 放進 pool

        前置條件：
        1. 子狀態機在 SELF_CUT
        2. Roster entry 是 ACTIVE，actor 是 entry 的玩家本人或 commissioner
        3. 該玩家本週的 cut 數量尚未達標

        流程：
        1. Entry -> CUT（cut_at_week = 本週）
        2. 建立 PoolEntry（AVAILABLE、SELF_CUT）
        3. 所有玩家都達標：進入下一階段

        異常：
            RosterEntryNotFound / Unauthorized / CapacityExceeded / InvalidTransition
        """
        season = lock_season(db, season_id)
        _require_evolution_week(season, week_number)
        state = _lock_state(db, season_id, week_number)
        _require_state_phase(state, EvolutionPhase.SELF_CUT)

        entry = db.query(RosterEntry).filter(
            RosterEntry.id == roster_entry_id,
            RosterEntry.season_id == season_id,
            RosterEntry.status == RosterStatus.ACTIVE
        ).first()
        if not entry:
            raise RosterEntryNotFound(roster_entry_id)

        player_id = entry.season_player_id
        if not acts_for(db, season, actor_id, player_id):
            raise Unauthorized(f"{actor_id} cannot cut artists from player {player_id}'s roster")

        progress = next((p for p in state.cuts_required if p["season_player_id"] == player_id), None)
        if progress is None:
            raise PlayerNotFound(player_id)
        if progress["completed"]:
            raise CapacityExceeded(
                f"Player {player_id} already made {progress['self_cuts_completed']} cut(s) this week"
            )

        # 1. Cut
        entry.status = RosterStatus.CUT
        entry.cut_at_week = week_number

        # 2. Pool
        pool_entry = PoolEntry(
            season_id=season_id,
            artist_id=entry.artist_id,
            status=PoolStatus.AVAILABLE,
            entered_pool_week=week_number,
            entered_via=PoolEntryVia.SELF_CUT,
            cut_by_player_id=player_id,
            cut_from_player_id=player_id
        )
        db.add(pool_entry)

        # 3. 進度
        cuts = []
        for item in state.cuts_required:
            item = dict(item)
            if item["season_player_id"] == player_id:
                item["self_cuts_completed"] += 1
                item["completed"] = item["self_cuts_completed"] >= item["self_cut_count"]
            cuts.append(item)
        state.cuts_required = cuts

        if all(item["completed"] for item in cuts):
            state.current_phase = phase_after_cuts(state.redrafts_per_player, state.includes_pool_draft)
            logger.info(f"Season {season_id} week {week_number}: all cuts done, moving to {state.current_phase.value}")

        event_log.record(db, season_id, "ARTIST_CUT", {
            "roster_entry_id": entry.id,
            "artist_id": entry.artist_id,
            "season_player_id": player_id
        }, actor_id)

        db.flush()
        return pool_entry

    @staticmethod
    @transactional
    def select_prompt(db: Session, season_id: str, week_number: int, prompt_id: str, actor_id: str) -> RosterEvolutionState:
        """
        Prompt picker（本週最後一名）為 redraft 選 prompt

        異常：
            WrongTurn: actor 不是 prompt picker 也不是 commissioner
            PromptNotFound / PromptUnavailable: prompt 不存在或不是 OPEN
        """
        season = lock_season(db, season_id)
        _require_evolution_week(season, week_number)
        state = _lock_state(db, season_id, week_number)
        _require_state_phase(state, EvolutionPhase.PROMPT_SELECTION)

        if not acts_for(db, season, actor_id, state.prompt_picker_id):
            raise WrongTurn(f"Only player {state.prompt_picker_id} can pick the redraft prompt")

        prompt = db.query(DraftPrompt).filter(
            DraftPrompt.id == prompt_id,
            DraftPrompt.season_id == season_id
        ).first()
        if not prompt:
            raise PromptNotFound(prompt_id)
        if prompt.status != PromptStatus.OPEN:
            raise PromptUnavailable(f"Prompt {prompt_id} is {prompt.status.value}, not OPEN")

        state.selected_prompt_id = prompt_id
        state.current_phase = EvolutionPhase.REDRAFT

        event_log.record(db, season_id, "REDRAFT_PROMPT_SELECTED", {
            "prompt_id": prompt_id,
            "selected_by": state.prompt_picker_id
        }, actor_id)

        return state

    @staticmethod
    @transactional
    def redraft_artist(db: Session, season_id: str, week_number: int, artist_name: str, actor_id: str) -> RosterEntry:
        """
        Redraft：輪到的玩家選一位全新的 artist

        流程：
        1. 驗證輪次（redraft_order[current_redraft_index]）與名稱不重複
        2. 建立 Artist 與 RosterEntry（POOL、本週、redraft_round）
        3. 線性輪流；每位玩家都達標時進入 POOL_DRAFT 或 COMPLETE

        異常：
            WrongTurn: 不是輪到 actor
            DuplicateArtist: 賽季中已有同名 artist
            CapacityExceeded: 玩家已達 redraft 數量
        """
        name = normalize_artist_name(artist_name)

        season = lock_season(db, season_id)
        _require_evolution_week(season, week_number)
        state = _lock_state(db, season_id, week_number)
        _require_state_phase(state, EvolutionPhase.REDRAFT)

        order = list(state.redraft_order)
        picker_id = order[state.current_redraft_index]
        if not acts_for(db, season, actor_id, picker_id):
            raise WrongTurn(f"It is player {picker_id}'s turn to redraft")

        picks = dict(state.redraft_picks_completed)
        if picks.get(picker_id, 0) >= state.redrafts_per_player:
            raise CapacityExceeded(f"Player {picker_id} already completed {state.redrafts_per_player} redraft(s)")

        if db.query(Artist).filter(Artist.season_id == season_id, Artist.name == name).first():
            raise DuplicateArtist(name)

        # 2. 寫入
        artist = Artist(season_id=season_id, name=name)
        db.add(artist)
        db.flush()

        entry = RosterEntry(
            season_id=season_id,
            season_player_id=picker_id,
            artist_id=artist.id,
            prompt_id=state.selected_prompt_id,
            status=RosterStatus.ACTIVE,
            acquired_via=AcquiredVia.POOL,
            acquired_at_week=week_number,
            acquired_at_round=state.redraft_round
        )
        db.add(entry)

        # 3. 推進
        picks[picker_id] = picks.get(picker_id, 0) + 1
        state.redraft_picks_completed = picks

        next_index, next_round, done = next_redraft_turn(
            order, state.current_redraft_index, state.redraft_round, picks, state.redrafts_per_player
        )
        state.current_redraft_index = next_index
        state.redraft_round = next_round
        if done:
            state.current_phase = phase_after_redraft(state.includes_pool_draft)
            logger.info(f"Season {season_id} week {week_number}: redraft done, moving to {state.current_phase.value}")

        event_log.record(db, season_id, "ARTIST_REDRAFTED", {
            "artist_id": artist.id,
            "artist_name": name,
            "season_player_id": picker_id,
            "round": entry.acquired_at_round
        }, actor_id)

        db.flush()
        return entry

    @staticmethod
    @transactional
    def pool_draft_artist(db: Session, season_id: str, week_number: int, pool_entry_id: str, actor_id: str) -> RosterEntry:
        """
        Pool draft：輪到的玩家從 pool 選一位 AVAILABLE 的 artist

        commissioner 代為操作時，pick 仍算在輪到的玩家身上

        異常：
            WrongTurn / PoolEntryNotFound / InvalidTransition
        """
        season = lock_season(db, season_id)
        _require_evolution_week(season, week_number)
        state = _lock_state(db, season_id, week_number)
        _require_state_phase(state, EvolutionPhase.POOL_DRAFT)

        order = list(state.pool_draft_order)
        picker_id = order[state.current_pool_draft_index]
        if not acts_for(db, season, actor_id, picker_id):
            raise WrongTurn(f"It is player {picker_id}'s turn to draft from the pool")

        pool_entry = db.query(PoolEntry).filter(
            PoolEntry.id == pool_entry_id,
            PoolEntry.season_id == season_id,
            PoolEntry.status == PoolStatus.AVAILABLE
        ).first()
        if not pool_entry:
            raise PoolEntryNotFound(pool_entry_id)

        pool_entry.status = PoolStatus.DRAFTED
        pool_entry.drafted_by_player_id = picker_id
        pool_entry.drafted_at_week = week_number

        entry = RosterEntry(
            season_id=season_id,
            season_player_id=picker_id,
            artist_id=pool_entry.artist_id,
            status=RosterStatus.ACTIVE,
            acquired_via=AcquiredVia.POOL,
            acquired_at_week=week_number,
            acquired_at_round=0
        )
        db.add(entry)

        picks = dict(state.pool_draft_picks_completed)
        picks[picker_id] = picks.get(picker_id, 0) + 1
        state.pool_draft_picks_completed = picks

        state.current_pool_draft_index += 1
        if state.current_pool_draft_index >= len(order):
            state.current_phase = EvolutionPhase.COMPLETE
            logger.info(f"Season {season_id} week {week_number}: pool draft done")

        event_log.record(db, season_id, "POOL_DRAFT_PICK", {
            "pool_entry_id": pool_entry.id,
            "artist_id": pool_entry.artist_id,
            "season_player_id": picker_id
        }, actor_id)

        db.flush()
        return entry

    @staticmethod
    @transactional
    def complete(db: Session, season_id: str, week_number: int, actor_id: str) -> Season:
        """
        完成本週的 roster evolution 並推進到下一週

        流程：
        1. Retire redraft prompt
        2. 記錄完成時間與事件
        3. Phase Ledger：week + 1，回到 IN_SEASON_CHALLENGE_SELECTION

        異常：
            Unauthorized: actor 不是 commissioner
            InvalidTransition: 子狀態機還沒到 COMPLETE
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)
        _require_evolution_week(season, week_number)
        state = _lock_state(db, season_id, week_number)
        _require_state_phase(state, EvolutionPhase.COMPLETE)

        # 1. Retire prompt
        if state.selected_prompt_id:
            prompt = db.query(DraftPrompt).filter(DraftPrompt.id == state.selected_prompt_id).first()
            if prompt:
                prompt.status = PromptStatus.RETIRED
                prompt.selected_by_player_id = None
                prompt.selected_at_round = None

        # 2. 完成
        state.completed_at = datetime.now(timezone.utc)

        event_log.record(db, season_id, "ROSTER_EVOLUTION_COMPLETE", {
            "week_number": week_number,
            "retired_prompt_id": state.selected_prompt_id
        }, actor_id)

        logger.info(f"Season {season_id}: roster evolution for week {week_number} complete")

        # 3. 下一週
        return SeasonStateMachine.advance_week(season, db, actor_id)

    @staticmethod
    def rollback_week(db: Session, season: Season, week_number: int, actor_id: Optional[str]) -> dict:
        """
        把某一週的 roster evolution 回到起點（不 commit，給 checkpoint rollback 共用）

        流程：
        1. 撤銷 pool draft、redraft、cut（見 compensations.revert_roster_changes）
        2. 重新計算順序與 prompt picker，清空所有計數
        3. 刪除本週的 roster evolution 事件

        返回：
            各步驟影響筆數
        """
        _require_evolution_week(season, week_number)

        state = _lock_state(db, season.id, week_number)

        # 1. 陣容
        counts = compensations.revert_roster_changes(db, season, week_number, only_this_week=True)

        # 2. 狀態
        order = _evolution_order(db, season.id, week_number)
        _reset_progress(state, order, _self_cut_count(state) or get_evolution_settings(db, season.id).self_cut_count)

        # 3. 事件
        counts["events_deleted"] = event_log.delete_week_events(db, season.id, week_number, EVOLUTION_EVENT_TYPES)

        logger.info(f"Season {season.id}: rolled back roster evolution for week {week_number}: {counts}")

        event_log.record(db, season.id, "ROSTER_EVOLUTION_ROLLBACK", dict(counts, week_number=week_number), actor_id)

        return counts

    @staticmethod
    @transactional
    def rollback(db: Session, season_id: str, week_number: int, actor_id: str) -> RosterEvolutionState:
        """
        Commissioner 把本週 roster evolution 回到起點

        異常：
            Unauthorized / InvalidTransition / EvolutionStateNotFound
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)
        RosterEvolutionManager.rollback_week(db, season, week_number, actor_id)
        return _lock_state(db, season_id, week_number)

    @staticmethod
    @transactional
    def banish_from_pool(db: Session, season_id: str, pool_entry_ids: List[str], actor_id: str) -> List[PoolEntry]:
        """
        把 pool 裡的 artist 永久移除（AVAILABLE -> BANISHED）

        異常：
            Unauthorized: actor 不是 commissioner
            PoolEntryNotFound: 任一 entry 不存在或不是 AVAILABLE
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        entries = []
        for pool_entry_id in pool_entry_ids:
            pool_entry = db.query(PoolEntry).filter(
                PoolEntry.id == pool_entry_id,
                PoolEntry.season_id == season_id,
                PoolEntry.status == PoolStatus.AVAILABLE
            ).first()
            if not pool_entry:
                raise PoolEntryNotFound(pool_entry_id)
            entries.append(pool_entry)

        for pool_entry in entries:
            pool_entry.status = PoolStatus.BANISHED
            pool_entry.banished_at_week = season.current_week

        event_log.record(db, season_id, "ARTISTS_BANISHED", {
            "pool_entry_ids": [pool_entry.id for pool_entry in entries]
        }, actor_id)

        return entries

    @staticmethod
    def get_state(db: Session, season_id: str, week_number: int) -> RosterEvolutionState:
        state = db.query(RosterEvolutionState).filter(
            RosterEvolutionState.season_id == season_id,
            RosterEvolutionState.week_number == week_number
        ).first()
        if not state:
            raise EvolutionStateNotFound(f"{season_id} (week {week_number})")
        return state

    @staticmethod
    def get_pool(db: Session, season_id: str, status: PoolStatus = PoolStatus.AVAILABLE) -> List[PoolEntry]:
        return db.query(PoolEntry).filter(
            PoolEntry.season_id == season_id,
            PoolEntry.status == status
        ).order_by(PoolEntry.entered_pool_week).all()

    @staticmethod
    def get_pool_count(db: Session, season_id: str) -> int:
        return db.query(PoolEntry).filter(
            PoolEntry.season_id == season_id,
            PoolEntry.status == PoolStatus.AVAILABLE
        ).count()
