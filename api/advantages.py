"""
Advantage / Voting / Results API Endpoints

職責：
1. 起始 advantage（ADVANTAGE_SELECTION）
2. 每週投票 -> 成績 -> award slots -> 指定 code
3. 使用 advantage、撤銷
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import (
    ActorRequest,
    StartingAdvantageAssign,
    WeeklyAdvantageAssign,
    AwardResponse,
    InventoryResponse,
    VotingOpen,
    VoteCast,
    VotingSessionResponse,
    WeeklyResultResponse
)
from core.advantage_manager import AdvantageManager
from core.voting_manager import VotingManager
from core.results_manager import ResultsManager
from core.exceptions import LeagueGameException
from api.errors import to_http_exception

router = APIRouter(prefix="/api", tags=["advantages"])
logger = logging.getLogger(__name__)


@router.post("/seasons/{season_id}/advantages/starting", response_model=InventoryResponse)
def assign_starting_advantage(season_id: str, body: StartingAdvantageAssign, db: Session = Depends(get_db)):
    """
    指定起始 advantage

    錯誤：
        400 CapacityExceeded（超過 tier 上限）
        409 AlreadyExists（已持有同一個 code）
    """
    try:
        return AdvantageManager.assign_starting_advantage(
            db, season_id, body.season_player_id, body.advantage_code, body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to assign starting advantage: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/seasons/{season_id}/advantages/starting/reset")
def reset_starting_advantages(season_id: str, body: ActorRequest, db: Session = Depends(get_db)):
    try:
        deleted = AdvantageManager.reset_starting_advantages(db, season_id, body.requesting_user_id)
        return {"deleted": deleted}
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to reset starting advantages: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/seasons/{season_id}/weeks/{week_number}/voting", response_model=VotingSessionResponse)
def open_voting(season_id: str, week_number: int, body: VotingOpen, db: Session = Depends(get_db)):
    try:
        return VotingManager.open_session(
            db,
            season_id,
            week_number,
            [category.model_dump() for category in body.categories],
            body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to open voting: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/voting/{session_id}/votes")
def cast_vote(session_id: str, body: VoteCast, db: Session = Depends(get_db)):
    try:
        vote = VotingManager.cast_vote(
            db, session_id, body.voter_id, body.category_id, body.nominated_player_id, body.requesting_user_id
        )
        return {"vote_id": vote.id}
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to cast vote: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/voting/{session_id}/close", response_model=VotingSessionResponse)
def close_voting(session_id: str, body: ActorRequest, db: Session = Depends(get_db)):
    try:
        return VotingManager.close_session(db, session_id, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to close voting: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/seasons/{season_id}/weeks/{week_number}/results", response_model=List[WeeklyResultResponse])
def calculate_results(season_id: str, week_number: int, body: ActorRequest, db: Session = Depends(get_db)):
    """計算成績並發放 advantage（idempotent）"""
    try:
        return ResultsManager.calculate_week_results(db, season_id, week_number, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to calculate results: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/seasons/{season_id}/weeks/{week_number}/awards", response_model=List[AwardResponse])
def award_weekly_advantages(season_id: str, week_number: int, body: ActorRequest, db: Session = Depends(get_db)):
    try:
        return AdvantageManager.award_weekly_advantages(db, season_id, week_number, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to award advantages: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/seasons/{season_id}/weeks/{week_number}/awards", response_model=List[AwardResponse])
def get_week_awards(season_id: str, week_number: int, db: Session = Depends(get_db)):
    return AdvantageManager.get_week_awards(db, season_id, week_number)


@router.post("/seasons/{season_id}/weeks/{week_number}/awards/undo")
def undo_week_awards(season_id: str, week_number: int, body: ActorRequest, db: Session = Depends(get_db)):
    try:
        deleted = AdvantageManager.undo_week_awards(db, season_id, week_number, body.requesting_user_id)
        return {"deleted": deleted}
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to undo awards: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/awards/{award_id}/assign", response_model=InventoryResponse)
def assign_weekly_advantage(award_id: str, body: WeeklyAdvantageAssign, db: Session = Depends(get_db)):
    """
    為 award slot 指定 code

    錯誤：
        400 TierMismatch
        409 AlreadyExists
    """
    try:
        return AdvantageManager.assign_weekly_advantage(db, award_id, body.advantage_code, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to assign weekly advantage: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/players/{season_player_id}/inventory", response_model=List[InventoryResponse])
def get_inventory(season_player_id: str, db: Session = Depends(get_db)):
    return AdvantageManager.get_inventory(db, season_player_id)


@router.post("/inventory/{inventory_id}/play", response_model=InventoryResponse)
def play_advantage(inventory_id: str, body: ActorRequest, db: Session = Depends(get_db)):
    try:
        return AdvantageManager.play_advantage(db, inventory_id, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to play advantage: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
