"""
權限檢查

Authority = 聯盟的 commissioner。身分驗證不在本服務內，actor 一律是 user id 字串
"""
from sqlalchemy.orm import Session
from typing import Optional

from models import Season, SeasonPlayer, League
from core.exceptions import Unauthorized


def is_commissioner(db: Session, season: Season, actor_id: Optional[str]) -> bool:
    if actor_id is None:
        return False
    league = db.query(League).filter(League.id == season.league_id).first()
    return league is not None and league.commissioner_id == actor_id


def require_commissioner(db: Session, season: Season, actor_id: Optional[str]) -> None:
    """非 commissioner 時拋出 Unauthorized"""
    if not is_commissioner(db, season, actor_id):
        raise Unauthorized(f"Only the league commissioner can do this (actor: {actor_id})")


def get_actor_player(db: Session, season_id: str, actor_id: Optional[str]) -> Optional[SeasonPlayer]:
    """actor 在此賽季的 SeasonPlayer（不是玩家時返回 None）"""
    if actor_id is None:
        return None
    return db.query(SeasonPlayer).filter(
        SeasonPlayer.season_id == season_id,
        SeasonPlayer.user_id == actor_id
    ).first()


def acts_for(db: Session, season: Season, actor_id: Optional[str], season_player_id: str) -> bool:
    """actor 是該玩家本人，或是 commissioner（代為操作）"""
    player = get_actor_player(db, season.id, actor_id)
    if player is not None and player.id == season_player_id:
        return True
    return is_commissioner(db, season, actor_id)
