"""
Challenge Manager：每週挑戰的揭曉與選擇

每週有一位 picker（依 draft_position 輪流：第 N 週是第 (N - 1) % 人數 位），
picker 可以先揭曉最多 MAX_REVEALS_PER_WEEK 個挑戰，再選一個當週挑戰；
選定後賽季進入 PLAYLIST_SUBMISSION
"""
from sqlalchemy.orm import Session
from typing import Dict, Optional
import logging

from models import Season, SeasonPhase, SeasonStatus, ChallengeSelection, ChallengeReveal
from core.state_machine import SeasonStateMachine
from core.season_manager import SeasonManager, lock_season
from core.permissions import require_commissioner, is_commissioner, acts_for
from core.exceptions import (
    InvalidTransition,
    Unauthorized,
    AlreadyExists,
    CapacityExceeded,
    InvalidPlayerCount
)
from core import event_log
from database import transactional

logger = logging.getLogger(__name__)

MAX_REVEALS_PER_WEEK = 2


def get_picker_id(db: Session, season: Season) -> str:
    """本週的 picker（只有進行中的賽季才有）"""
    if season.status != SeasonStatus.IN_PROGRESS or season.current_week < 1:
        raise InvalidTransition(f"Season {season.id} has no challenge picker before week 1")

    players = SeasonManager.get_players(db, season.id)
    if not players:
        raise InvalidPlayerCount("No players in season")

    return players[(season.current_week - 1) % len(players)].id


def _require_challenge_selection(season: Season):
    if season.current_phase != SeasonPhase.IN_SEASON_CHALLENGE_SELECTION:
        raise InvalidTransition(
            f"Challenges can only be chosen during IN_SEASON_CHALLENGE_SELECTION, "
            f"current phase: {season.current_phase.value}"
        )


def _normalize_challenge_id(challenge_id: str) -> str:
    value = (challenge_id or "").strip()
    if not value:
        raise InvalidTransition("Challenge id is required")
    return value


class ChallengeManager:
    """每週挑戰管理器"""

    @staticmethod
    @transactional
    def reveal_challenge(db: Session, season_id: str, challenge_id: str, actor_id: str) -> ChallengeReveal:
        """
        揭曉一個挑戰

        前置條件：
        1. 賽季在 IN_SEASON_CHALLENGE_SELECTION
        2. actor 是本週 picker 或 commissioner
        3. picker 本週揭曉數 < MAX_REVEALS_PER_WEEK（commissioner 不受限）
        4. 這個挑戰在本賽季還沒被揭曉過

        揭曉紀錄一律算在 picker 身上

        異常：
            InvalidTransition / Unauthorized / CapacityExceeded / AlreadyExists
        """
        challenge_id = _normalize_challenge_id(challenge_id)

        season = lock_season(db, season_id)
        _require_challenge_selection(season)

        picker_id = get_picker_id(db, season)
        if not acts_for(db, season, actor_id, picker_id):
            raise Unauthorized(f"Only the week {season.current_week} picker or the commissioner can reveal challenges")

        if not is_commissioner(db, season, actor_id):
            revealed = db.query(ChallengeReveal).filter(
                ChallengeReveal.season_id == season_id,
                ChallengeReveal.revealed_at_week == season.current_week,
                ChallengeReveal.revealed_by_player_id == picker_id
            ).count()
            if revealed >= MAX_REVEALS_PER_WEEK:
                raise CapacityExceeded(f"Already revealed {MAX_REVEALS_PER_WEEK} challenges this week")

        existing = db.query(ChallengeReveal).filter(
            ChallengeReveal.season_id == season_id,
            ChallengeReveal.challenge_id == challenge_id
        ).first()
        if existing:
            raise AlreadyExists(f"Challenge {challenge_id} has already been revealed")

        reveal = ChallengeReveal(
            season_id=season_id,
            challenge_id=challenge_id,
            revealed_by_player_id=picker_id,
            revealed_at_week=season.current_week
        )
        db.add(reveal)
        db.flush()

        event_log.record(db, season_id, "CHALLENGE_REVEALED", {
            "challenge_id": challenge_id,
            "season_player_id": picker_id
        }, actor_id)

        return reveal

    @staticmethod
    @transactional
    def select_challenge(db: Session, season_id: str, challenge_id: str, actor_id: str) -> ChallengeSelection:
        """
        選定本週挑戰

        前置條件：
        1. 賽季在 IN_SEASON_CHALLENGE_SELECTION
        2. actor 是本週 picker 或 commissioner（選擇算在 picker 身上）
        3. 本週還沒有選過，且這個挑戰沒有在之前的週次被選過

        流程：
        1. 建立 ChallengeSelection
        2. Phase Ledger -> PLAYLIST_SUBMISSION

        異常：
            InvalidTransition / Unauthorized / AlreadyExists
        """
        challenge_id = _normalize_challenge_id(challenge_id)

        season = lock_season(db, season_id)
        _require_challenge_selection(season)

        picker_id = get_picker_id(db, season)
        if not acts_for(db, season, actor_id, picker_id):
            raise Unauthorized(f"Only the week {season.current_week} picker can select a challenge")

        selections = db.query(ChallengeSelection).filter(
            ChallengeSelection.season_id == season_id
        ).all()
        if any(selection.week == season.current_week for selection in selections):
            raise AlreadyExists(f"A challenge has already been selected for week {season.current_week}")
        if any(selection.challenge_id == challenge_id for selection in selections):
            raise AlreadyExists(f"Challenge {challenge_id} was selected in a previous week")

        selection = ChallengeSelection(
            season_id=season_id,
            week=season.current_week,
            challenge_id=challenge_id,
            selected_by_player_id=picker_id
        )
        db.add(selection)
        db.flush()

        logger.info(f"Season {season_id}: week {season.current_week} challenge is {challenge_id}")

        event_log.record(db, season_id, "CHALLENGE_SELECTED", {
            "challenge_id": challenge_id,
            "season_player_id": picker_id,
            "selected_by_commissioner": is_commissioner(db, season, actor_id)
        }, actor_id)

        SeasonStateMachine.transition(season, SeasonPhase.PLAYLIST_SUBMISSION, db, actor_id)

        return selection

    @staticmethod
    @transactional
    def reset_challenge_selection(db: Session, season_id: str, actor_id: str) -> Dict[str, int]:
        """
        Commissioner 清掉本週的揭曉與選擇

        賽季在 PLAYLIST_SUBMISSION 時回到 IN_SEASON_CHALLENGE_SELECTION，
        之後的 phase 不動（那時要用 checkpoint rollback）
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        if season.current_phase not in (SeasonPhase.IN_SEASON_CHALLENGE_SELECTION, SeasonPhase.PLAYLIST_SUBMISSION):
            raise InvalidTransition(
                f"Challenge selection cannot be reset in {season.current_phase.value}"
            )

        week = season.current_week
        deleted_reveals = db.query(ChallengeReveal).filter(
            ChallengeReveal.season_id == season_id,
            ChallengeReveal.revealed_at_week == week
        ).delete(synchronize_session="fetch")
        deleted_selections = db.query(ChallengeSelection).filter(
            ChallengeSelection.season_id == season_id,
            ChallengeSelection.week == week
        ).delete(synchronize_session="fetch")

        if season.current_phase == SeasonPhase.PLAYLIST_SUBMISSION:
            SeasonStateMachine.restore(season, SeasonPhase.IN_SEASON_CHALLENGE_SELECTION, week, season.status)

        counts = {"deleted_reveals": deleted_reveals, "deleted_selections": deleted_selections}
        logger.info(f"Season {season_id}: reset week {week} challenge selection {counts}")

        event_log.record(db, season_id, "CHALLENGE_SELECTION_RESET", dict(counts, week=week), actor_id)

        return counts

    @staticmethod
    def get_week_selection(db: Session, season_id: str, week_number: int) -> Optional[ChallengeSelection]:
        return db.query(ChallengeSelection).filter(
            ChallengeSelection.season_id == season_id,
            ChallengeSelection.week == week_number
        ).first()

    @staticmethod
    def get_current_picker(db: Session, season_id: str) -> str:
        return get_picker_id(db, SeasonManager.get_season(db, season_id))
