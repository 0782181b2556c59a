"""
並發控制工具

提供 Database-level 的鎖定機制，確保 single-writer-per-mutation

使用 SELECT ... FOR UPDATE（悲觀鎖）：同一賽季的兩個選秀請求會被序列化，
第二個請求在鎖釋放後重新讀取 turn state，才會正確地得到 WrongTurn
"""
from sqlalchemy.orm import Session, Query

from models import Season, DraftState, RosterEvolutionState


def with_season_lock(season_id: str, db: Session) -> Query:
    """
    鎖定一個 Season（行級鎖）

    使用場景：
    - 修改 current_phase / current_week / status 時（Phase Ledger、Rollback）

    範例：
        season = with_season_lock(season_id, db).first()
        if not season:
            raise SeasonNotFound(season_id)

    參數：
        season_id: Season id
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - SQLite 不支援 FOR UPDATE，SQLAlchemy 會直接忽略（單一 writer）
    """
    return db.query(Season).filter(
        Season.id == season_id
    ).with_for_update(nowait=False)


def with_draft_state_lock(season_id: str, db: Session) -> Query:
    """
    鎖定賽季的 DraftState

    使用場景：
    - selectPrompt / draftArtist 讀取並推進 current_picker_index
    """
    return db.query(DraftState).filter(
        DraftState.season_id == season_id
    ).with_for_update(nowait=False)


def with_evolution_state_lock(season_id: str, week_number: int, db: Session) -> Query:
    """鎖定某一週的 RosterEvolutionState"""
    return db.query(RosterEvolutionState).filter(
        RosterEvolutionState.season_id == season_id,
        RosterEvolutionState.week_number == week_number
    ).with_for_update(nowait=False)
