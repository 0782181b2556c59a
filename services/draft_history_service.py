"""
選秀紀錄與陣容查詢（唯讀）

前端直接用這些 view 畫出選秀板
"""
from typing import List, Dict, Any, Optional

from sqlalchemy.orm import Session

from models import Artist, RosterEntry, RosterStatus, AcquiredVia, DraftPrompt


def _entry_view(entry: RosterEntry, artist: Artist, prompt_text: Optional[str]) -> Dict[str, Any]:
    return {
        "roster_entry_id": entry.id,
        "season_player_id": entry.season_player_id,
        "artist_id": artist.id,
        "artist_name": artist.name,
        "prompt_id": entry.prompt_id,
        "prompt_text": prompt_text,
        "status": entry.status.value,
        "acquired_via": entry.acquired_via.value,
        "acquired_at_week": entry.acquired_at_week,
        "acquired_at_round": entry.acquired_at_round,
    }


def get_draft_picks(season_id: str, db: Session) -> List[Dict[str, Any]]:
    """賽季所有選秀 pick，依 round、再依時間排序"""
    rows = (
        db.query(RosterEntry, Artist, DraftPrompt.text)
        .join(Artist, RosterEntry.artist_id == Artist.id)
        .outerjoin(DraftPrompt, RosterEntry.prompt_id == DraftPrompt.id)
        .filter(
            RosterEntry.season_id == season_id,
            RosterEntry.acquired_via == AcquiredVia.DRAFT
        )
        .order_by(RosterEntry.acquired_at_round, RosterEntry.created_at)
        .all()
    )
    return [_entry_view(entry, artist, prompt_text) for entry, artist, prompt_text in rows]


def get_player_roster(
    season_id: str,
    season_player_id: str,
    db: Session,
    include_cut: bool = False
) -> List[Dict[str, Any]]:
    """
    玩家陣容

    參數：
        include_cut: False 時只返回 ACTIVE entry
    """
    query = (
        db.query(RosterEntry, Artist, DraftPrompt.text)
        .join(Artist, RosterEntry.artist_id == Artist.id)
        .outerjoin(DraftPrompt, RosterEntry.prompt_id == DraftPrompt.id)
        .filter(
            RosterEntry.season_id == season_id,
            RosterEntry.season_player_id == season_player_id
        )
    )
    if not include_cut:
        query = query.filter(RosterEntry.status == RosterStatus.ACTIVE)

    rows = query.order_by(RosterEntry.acquired_at_week, RosterEntry.acquired_at_round).all()
    return [_entry_view(entry, artist, prompt_text) for entry, artist, prompt_text in rows]
