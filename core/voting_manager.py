"""
Voting Manager：每週投票

一個賽季每週最多一個 VotingSession；每位玩家在每個類別投一票，不能投自己
"""
from sqlalchemy.orm import Session
from typing import List, Dict
import logging

from models import SeasonPhase, SeasonPlayer, VotingSession, VotingStatus, Vote
from core.season_manager import lock_season
from core.permissions import require_commissioner, acts_for
from core.exceptions import (
    VotingSessionNotFound,
    CategoryNotFound,
    PlayerNotFound,
    Unauthorized,
    InvalidTransition,
    AlreadyExists,
    SelfVoteNotAllowed
)
from core import event_log
from database import transactional

logger = logging.getLogger(__name__)


def _lock_session(db: Session, session_id: str) -> VotingSession:
    session = db.query(VotingSession).filter(
        VotingSession.id == session_id
    ).with_for_update(nowait=False).first()
    if not session:
        raise VotingSessionNotFound(session_id)
    return session


class VotingManager:
    """投票管理器"""

    @staticmethod
    @transactional
    def open_session(db: Session, season_id: str, week_number: int, categories: List[Dict], actor_id: str) -> VotingSession:
        """
        開啟本週投票

        參數：
            categories: [{"id", "title", "point_value"}, ...]

        異常：
            Unauthorized / AlreadyExists
            InvalidTransition: 賽季不在 VOTING 或不是當週；類別設定不合法
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        if season.current_phase != SeasonPhase.VOTING or season.current_week != week_number:
            raise InvalidTransition(
                f"Voting for week {week_number} cannot open in {season.current_phase.value} (week {season.current_week})"
            )

        existing = db.query(VotingSession).filter(
            VotingSession.season_id == season_id,
            VotingSession.week_number == week_number
        ).first()
        if existing:
            raise AlreadyExists(f"Voting session for week {week_number} already exists")

        normalized = []
        for category in categories:
            point_value = int(category.get("point_value", 1))
            if "id" not in category or point_value < 1:
                raise InvalidTransition(f"Invalid award category: {category}")
            normalized.append({
                "id": str(category["id"]),
                "title": category.get("title", str(category["id"])),
                "point_value": point_value
            })

        session = VotingSession(
            season_id=season_id,
            week_number=week_number,
            status=VotingStatus.OPEN,
            categories=normalized
        )
        db.add(session)
        db.flush()

        event_log.record(db, season_id, "VOTING_OPENED", {
            "session_id": session.id,
            "categories": [category["id"] for category in normalized]
        }, actor_id)

        return session

    @staticmethod
    @transactional
    def cast_vote(
        db: Session,
        session_id: str,
        voter_id: str,
        category_id: str,
        nominated_player_id: str,
        actor_id: str
    ) -> Vote:
        """
        投票

        異常：
            VotingSessionNotFound / CategoryNotFound / PlayerNotFound / Unauthorized
            InvalidTransition: 投票已關閉
            SelfVoteNotAllowed: 投給自己
            AlreadyExists: 這個類別已經投過
        """
        session = _lock_session(db, session_id)
        season = lock_season(db, session.season_id)

        if session.status != VotingStatus.OPEN:
            raise InvalidTransition(f"Voting session {session_id} is closed")

        if category_id not in {category["id"] for category in session.categories}:
            raise CategoryNotFound(category_id)

        for player_id in (voter_id, nominated_player_id):
            player = db.query(SeasonPlayer).filter(
                SeasonPlayer.id == player_id,
                SeasonPlayer.season_id == season.id
            ).first()
            if not player:
                raise PlayerNotFound(player_id)

        if not acts_for(db, season, actor_id, voter_id):
            raise Unauthorized(f"{actor_id} cannot vote for player {voter_id}")

        if voter_id == nominated_player_id:
            raise SelfVoteNotAllowed(f"Player {voter_id} cannot vote for themselves")

        existing = db.query(Vote).filter(
            Vote.session_id == session_id,
            Vote.category_id == category_id,
            Vote.voter_id == voter_id
        ).first()
        if existing:
            raise AlreadyExists(f"Player {voter_id} already voted in category {category_id}")

        vote = Vote(
            session_id=session_id,
            category_id=category_id,
            voter_id=voter_id,
            nominated_player_id=nominated_player_id
        )
        db.add(vote)
        db.flush()
        return vote

    @staticmethod
    @transactional
    def close_session(db: Session, session_id: str, actor_id: str) -> VotingSession:
        """關閉投票（之後才能計算成績）"""
        session = _lock_session(db, session_id)
        season = lock_season(db, session.season_id)
        require_commissioner(db, season, actor_id)

        if session.status == VotingStatus.CLOSED:
            return session

        session.status = VotingStatus.CLOSED
        vote_count = db.query(Vote).filter(Vote.session_id == session_id).count()

        logger.info(f"Season {season.id}: closed voting for week {session.week_number} with {vote_count} votes")

        event_log.record(db, season.id, "VOTING_CLOSED", {
            "session_id": session.id,
            "vote_count": vote_count
        }, actor_id)

        return session
