"""
Presentation Manager：每週播放清單發表

Commissioner 逐一指定發表者；每位玩家都發表完後賽季進入 VOTING
"""
from sqlalchemy.orm import Session
from datetime import datetime, timezone
import logging

from models import Season, SeasonPhase, SeasonPlayer, PresentationState
from core.state_machine import SeasonStateMachine
from core.season_manager import SeasonManager, lock_season
from core.permissions import require_commissioner
from core.exceptions import (
    PresentationStateNotFound,
    PlayerNotFound,
    InvalidTransition,
    AlreadyExists
)
from core import event_log
from database import transactional

logger = logging.getLogger(__name__)


def _lock_state(db: Session, season_id: str, week_number: int) -> PresentationState:
    state = db.query(PresentationState).filter(
        PresentationState.season_id == season_id,
        PresentationState.week_number == week_number
    ).with_for_update(nowait=False).first()
    if not state:
        raise PresentationStateNotFound(f"{season_id} (week {week_number})")
    return state


def _require_presentation_week(season: Season, week_number: int):
    if season.current_phase != SeasonPhase.PLAYLIST_PRESENTATION or season.current_week != week_number:
        raise InvalidTransition(
            f"Presentation for week {week_number} is not active "
            f"(season is in {season.current_phase.value}, week {season.current_week})"
        )


class PresentationManager:
    """發表管理器"""

    @staticmethod
    @transactional
    def initialize(db: Session, season_id: str, week_number: int, actor_id: str) -> PresentationState:
        """
        開始本週發表

        前置條件：
        1. actor 是 commissioner
        2. week_number 是當週，賽季在 PLAYLIST_SUBMISSION 或 PLAYLIST_PRESENTATION

        流程：
        1. 已經開始過：直接返回既有的 state
        2. Phase Ledger -> PLAYLIST_PRESENTATION（需要時）
        3. 建立 PresentationState
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        if season.current_week != week_number or season.current_phase not in (
            SeasonPhase.PLAYLIST_SUBMISSION, SeasonPhase.PLAYLIST_PRESENTATION
        ):
            raise InvalidTransition(
                f"Presentation for week {week_number} cannot start in "
                f"{season.current_phase.value} (week {season.current_week})"
            )

        existing = db.query(PresentationState).filter(
            PresentationState.season_id == season_id,
            PresentationState.week_number == week_number
        ).first()
        if existing:
            return existing

        if season.current_phase == SeasonPhase.PLAYLIST_SUBMISSION:
            SeasonStateMachine.transition(season, SeasonPhase.PLAYLIST_PRESENTATION, db, actor_id)

        state = PresentationState(
            season_id=season_id,
            week_number=week_number,
            presented_player_ids=[]
        )
        db.add(state)
        db.flush()

        event_log.record(db, season_id, "PRESENTATION_STARTED", {"week_number": week_number}, actor_id)

        return state

    @staticmethod
    @transactional
    def select_presenter(db: Session, season_id: str, week_number: int, season_player_id: str, actor_id: str) -> PresentationState:
        """
        指定下一位發表者

        異常：
            Unauthorized / InvalidTransition / PresentationStateNotFound / PlayerNotFound
            AlreadyExists: 這位玩家本週已經發表過
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)
        _require_presentation_week(season, week_number)
        state = _lock_state(db, season_id, week_number)

        player = db.query(SeasonPlayer).filter(
            SeasonPlayer.id == season_player_id,
            SeasonPlayer.season_id == season_id
        ).first()
        if not player:
            raise PlayerNotFound(season_player_id)

        if season_player_id in (state.presented_player_ids or []):
            raise AlreadyExists(f"Player {season_player_id} already presented in week {week_number}")

        state.current_presenter_id = season_player_id

        event_log.record(db, season_id, "PRESENTER_SELECTED", {
            "season_player_id": season_player_id,
            "label_name": player.label_name
        }, actor_id)

        db.flush()
        return state

    @staticmethod
    @transactional
    def complete_presenter(db: Session, season_id: str, week_number: int, actor_id: str) -> PresentationState:
        """
        目前的發表者發表完畢

        流程：
        1. 發表者加入 presented_player_ids，清空 current_presenter_id
        2. 所有玩家都發表過：state 完成，Phase Ledger -> VOTING

        異常：
            InvalidTransition: 沒有正在發表的玩家
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)
        _require_presentation_week(season, week_number)
        state = _lock_state(db, season_id, week_number)

        presenter_id = state.current_presenter_id
        if presenter_id is None:
            raise InvalidTransition("No presenter currently selected")

        # JSON 欄位要整個重新指定才會被偵測到變更
        state.presented_player_ids = list(state.presented_player_ids or []) + [presenter_id]
        state.current_presenter_id = None

        event_log.record(db, season_id, "PRESENTER_COMPLETE", {"season_player_id": presenter_id}, actor_id)

        player_count = len(SeasonManager.get_players(db, season_id))
        if len(state.presented_player_ids) >= player_count:
            state.is_complete = True
            state.completed_at = datetime.now(timezone.utc)

            logger.info(f"Season {season_id}: week {week_number} presentation complete")

            event_log.record(db, season_id, "PRESENTATION_COMPLETED", {
                "presenter_count": len(state.presented_player_ids)
            }, actor_id)
            SeasonStateMachine.transition(season, SeasonPhase.VOTING, db, actor_id)

        db.flush()
        return state

    @staticmethod
    def get_state(db: Session, season_id: str, week_number: int) -> PresentationState:
        state = db.query(PresentationState).filter(
            PresentationState.season_id == season_id,
            PresentationState.week_number == week_number
        ).first()
        if not state:
            raise PresentationStateNotFound(f"{season_id} (week {week_number})")
        return state
