"""
Season State Machine（Phase Ledger）

賽季 phase 是一個全序：

    SEASON_SETUP < DRAFTING < ADVANTAGE_SELECTION < READY_FOR_WEEK_1
    < IN_SEASON_CHALLENGE_SELECTION < PLAYLIST_SUBMISSION < PLAYLIST_PRESENTATION
    < VOTING < IN_SEASON_WEEK_END < ROSTER_EVOLUTION

規則：
- transition 只能往前（order(target) > order(current)）
- 週循環（advance_week）回到 IN_SEASON_CHALLENGE_SELECTION，同時 week + 1
- 往回走只有 restore（draft reset 與 checkpoint rollback 使用）

所有修改 current_phase / current_week / status 的程式都必須經過這裡
"""
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import Optional
import logging

from models import Season, SeasonPhase, SeasonStatus
from core.exceptions import InvalidPhase, NotForward, InvalidTransition
from core import event_log

logger = logging.getLogger(__name__)

PHASE_ORDER = {phase: index for index, phase in enumerate(SeasonPhase)}


def parse_phase(value) -> SeasonPhase:
    """字串或 enum 轉成 SeasonPhase，未知的 phase 拋出 InvalidPhase"""
    if isinstance(value, SeasonPhase):
        return value
    try:
        return SeasonPhase(value)
    except ValueError:
        raise InvalidPhase(value)


def phase_order(phase) -> int:
    return PHASE_ORDER[parse_phase(phase)]


class SeasonStateMachine:
    """賽季 phase 的唯一寫入者"""

    @staticmethod
    def can_advance(current: SeasonPhase, target: SeasonPhase) -> bool:
        return PHASE_ORDER[target] > PHASE_ORDER[current]

    @staticmethod
    def transition(season: Season, target, db: Session, actor_id: Optional[str] = None) -> Season:
        """
        往前推進 phase

        前置條件：
        1. target 必須是已知的 phase
        2. order(target) > order(current)

        參數：
            season: 已鎖定的 Season
            target: 目標 phase（字串或 SeasonPhase）
            db: SQLAlchemy Session
            actor_id: 觸發者（系統觸發時為 None）

        返回：
            更新後的 Season

        異常：
            InvalidPhase: 未知的 phase
            NotForward: 沒有往前
        """
        target_phase = parse_phase(target)
        current_phase = season.current_phase

        if not SeasonStateMachine.can_advance(current_phase, target_phase):
            raise NotForward(current_phase.value, target_phase.value)

        season.current_phase = target_phase

        logger.info(f"Season {season.id}: {current_phase.value} -> {target_phase.value}")

        event_log.record(db, season.id, "PHASE_ADVANCED", {
            "from": current_phase.value,
            "to": target_phase.value
        }, actor_id)

        return season

    @staticmethod
    def start_season(season: Season, db: Session, actor_id: Optional[str] = None) -> Season:
        """
        開季：ADVANTAGE_SELECTION / READY_FOR_WEEK_1 -> IN_SEASON_CHALLENGE_SELECTION

        status 變成 IN_PROGRESS，current_week = 1
        """
        if season.current_phase not in (SeasonPhase.ADVANTAGE_SELECTION, SeasonPhase.READY_FOR_WEEK_1):
            raise InvalidTransition(
                f"Season can only start from ADVANTAGE_SELECTION or READY_FOR_WEEK_1, "
                f"current phase: {season.current_phase.value}"
            )

        previous_phase = season.current_phase
        season.current_phase = SeasonPhase.IN_SEASON_CHALLENGE_SELECTION
        season.status = SeasonStatus.IN_PROGRESS
        season.current_week = 1
        season.started_at = datetime.now(timezone.utc)

        logger.info(f"Season {season.id} started")

        event_log.record(db, season.id, "SEASON_STARTED", {
            "from": previous_phase.value,
            "to": season.current_phase.value
        }, actor_id)

        return season

    @staticmethod
    def advance_week(season: Season, db: Session, actor_id: Optional[str] = None) -> Season:
        """
        週循環：week + 1，phase 回到 IN_SEASON_CHALLENGE_SELECTION

        最後一週結束時改成 COMPLETED（不再增加 week）

        異常：
            InvalidTransition: 賽季不在 IN_SEASON_WEEK_END / ROSTER_EVOLUTION
        """
        if season.current_phase not in (SeasonPhase.IN_SEASON_WEEK_END, SeasonPhase.ROSTER_EVOLUTION):
            raise InvalidTransition(
                f"Week can only advance from IN_SEASON_WEEK_END or ROSTER_EVOLUTION, "
                f"current phase: {season.current_phase.value}"
            )

        from_week = season.current_week

        if season.current_week >= season.total_weeks:
            season.status = SeasonStatus.COMPLETED
            logger.info(f"Season {season.id} completed after week {from_week}")
            event_log.record(db, season.id, "SEASON_COMPLETED", {"final_week": from_week}, actor_id)
            return season

        season.current_week = from_week + 1
        season.current_phase = SeasonPhase.IN_SEASON_CHALLENGE_SELECTION

        logger.info(f"Season {season.id} advanced to week {season.current_week}")

        event_log.record(db, season.id, "WEEK_ADVANCED", {
            "from_week": from_week,
            "to_week": season.current_week
        }, actor_id)

        return season

    @staticmethod
    def restore(season: Season, phase: SeasonPhase, week: int, status: SeasonStatus) -> Season:
        """
        直接改寫 (phase, week, status)，不檢查順序

        只給 rollback 類操作使用，事件由呼叫者記錄
        """
        season.current_phase = phase
        season.current_week = week
        season.status = status
        if status != SeasonStatus.IN_PROGRESS:
            season.started_at = None
        return season
