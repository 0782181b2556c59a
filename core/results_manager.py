"""
Results Manager：計算每週成績並觸發 advantage 發放

流程：
    投票關閉 -> 計算 voting points -> 名次（同分同名次）-> 勝利點數 -> 發放 advantage
"""
from sqlalchemy.orm import Session
from typing import List
import logging

from models import SeasonPlayer, VotingSession, VotingStatus, Vote, WeeklyResult
from core.season_manager import lock_season
from core.permissions import require_commissioner
from core.advantage_manager import issue_week_awards
from core.exceptions import VotingSessionNotFound, InvalidTransition
from core import event_log
from services.standings_service import compute_voting_points, assign_placements, victory_points_for
from database import transactional

logger = logging.getLogger(__name__)


class ResultsManager:
    """每週成績管理器"""

    @staticmethod
    @transactional
    def calculate_week_results(db: Session, season_id: str, week_number: int, actor_id: str) -> List[WeeklyResult]:
        """
        計算某一週的成績

        前置條件：
        1. actor 是 commissioner
        2. 當週的投票已關閉

        流程：
        1. 已經計算過：直接返回既有成績（idempotent）
        2. voting points = 票數 x 類別點數
        3. 名次（同分同名次，下一名跳號）與勝利點數（5/3/2/1）
        4. 勝利點數加到 total_points
        5. 發放本週 advantage

        異常：
            Unauthorized / VotingSessionNotFound
            InvalidTransition: 投票尚未關閉
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        # 1. Idempotent
        existing = db.query(WeeklyResult).filter(
            WeeklyResult.season_id == season_id,
            WeeklyResult.week_number == week_number
        ).order_by(WeeklyResult.placement).all()
        if existing:
            return existing

        session = db.query(VotingSession).filter(
            VotingSession.season_id == season_id,
            VotingSession.week_number == week_number
        ).first()
        if not session:
            raise VotingSessionNotFound(f"{season_id} (week {week_number})")
        if session.status != VotingStatus.CLOSED:
            raise InvalidTransition(f"Voting for week {week_number} is still open")

        # 2. Voting points
        players = db.query(SeasonPlayer).filter(SeasonPlayer.season_id == season_id).all()
        votes = [
            (vote.category_id, vote.nominated_player_id)
            for vote in db.query(Vote).filter(Vote.session_id == session.id).all()
        ]
        points = compute_voting_points(votes, session.categories, [player.id for player in players])

        # 3. 名次
        placements = assign_placements(points)

        # 4. 寫入
        results = []
        for player in players:
            placement = placements[player.id]
            victory_points = victory_points_for(placement)
            result = WeeklyResult(
                season_id=season_id,
                week_number=week_number,
                season_player_id=player.id,
                voting_points=points[player.id],
                placement=placement,
                victory_points=victory_points
            )
            db.add(result)
            results.append(result)
            player.total_points = (player.total_points or 0) + victory_points
        db.flush()

        logger.info(f"Season {season_id}: calculated results for week {week_number}")

        event_log.record(db, season_id, "RESULTS_CALCULATED", {
            "week_number": week_number,
            "placements": placements
        }, actor_id)

        # 5. Advantage
        issue_week_awards(db, season, week_number, actor_id)

        return sorted(results, key=lambda result: result.placement)
