"""
Event log helper

每一筆事件都會蓋上賽季「當下」的 week 與 phase，
所以必須在狀態變更之後才呼叫（例如 PHASE_ADVANCED 會記錄新的 phase）
"""
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
import logging

from models import Season, EventLog

logger = logging.getLogger(__name__)


def record(
    db: Session,
    season_id: str,
    event_type: str,
    payload: Optional[Dict[str, Any]] = None,
    actor_id: Optional[str] = None
) -> Optional[EventLog]:
    """
    寫入一筆 EventLog（和呼叫者在同一個 transaction）

    參數：
        db: SQLAlchemy Session
        season_id: Season id
        event_type: 事件類型，例如 "DRAFT_PICK"
        payload: 事件資料
        actor_id: 觸發事件的 user id（系統事件為 None）

    返回：
        EventLog，找不到賽季時返回 None（只記 warning，不讓呼叫者失敗）
    """
    season = db.query(Season).filter(Season.id == season_id).first()
    if not season:
        logger.warning(f"Skipping {event_type} event: season {season_id} not found")
        return None

    event = EventLog(
        season_id=season_id,
        week_number=season.current_week,
        phase=season.current_phase.value if season.current_phase else None,
        event_type=event_type,
        actor_id=actor_id,
        data=payload or {}
    )
    db.add(event)
    return event


def delete_week_events(db: Session, season_id: str, week_number: int, event_types) -> int:
    """刪除某一週指定類型的事件（rollback 使用），返回刪除筆數"""
    return db.query(EventLog).filter(
        EventLog.season_id == season_id,
        EventLog.week_number == week_number,
        EventLog.event_type.in_(list(event_types))
    ).delete(synchronize_session=False)
