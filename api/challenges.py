"""
Challenge / Presentation API Endpoints

職責：
1. 每週挑戰：揭曉、選擇、重設
2. 播放清單發表：開始、指定發表者、完成
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    ActorRequest,
    ChallengeRequest,
    ChallengeRevealResponse,
    ChallengeSelectionResponse,
    PickerResponse,
    PresenterSelect,
    PresentationStateResponse
)
from core.challenge_manager import ChallengeManager
from core.presentation_manager import PresentationManager
from core.exceptions import LeagueGameException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/seasons", tags=["challenges"])
logger = logging.getLogger(__name__)


# ============ Challenges ============

@router.get("/{season_id}/challenge/picker", response_model=PickerResponse)
def get_picker(season_id: str, db: Session = Depends(get_db)):
    try:
        return PickerResponse(season_player_id=ChallengeManager.get_current_picker(db, season_id))
    except LeagueGameException as e:
        raise to_http_exception(e)


@router.post("/{season_id}/challenge/reveal", response_model=ChallengeRevealResponse)
def reveal_challenge(season_id: str, body: ChallengeRequest, db: Session = Depends(get_db)):
    """
    揭曉一個挑戰（本週 picker 或 commissioner）

    錯誤：
        400 CapacityExceeded（picker 本週已揭曉 2 個）
        403 不是 picker
        409 挑戰已經揭曉過
    """
    try:
        return ChallengeManager.reveal_challenge(db, season_id, body.challenge_id, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to reveal challenge: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/challenge/select", response_model=ChallengeSelectionResponse)
def select_challenge(season_id: str, body: ChallengeRequest, db: Session = Depends(get_db)):
    """選定本週挑戰，賽季進入 PLAYLIST_SUBMISSION"""
    try:
        return ChallengeManager.select_challenge(db, season_id, body.challenge_id, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to select challenge: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/challenge/reset")
def reset_challenge_selection(season_id: str, body: ActorRequest, db: Session = Depends(get_db)):
    try:
        return ChallengeManager.reset_challenge_selection(db, season_id, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to reset challenge selection: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{season_id}/weeks/{week_number}/challenge", response_model=ChallengeSelectionResponse)
def get_week_challenge(season_id: str, week_number: int, db: Session = Depends(get_db)):
    selection = ChallengeManager.get_week_selection(db, season_id, week_number)
    if selection is None:
        raise HTTPException(status_code=404, detail=f"No challenge selected for week {week_number}")
    return selection


# ============ Presentation ============

@router.post("/{season_id}/weeks/{week_number}/presentation", response_model=PresentationStateResponse)
def start_presentation(season_id: str, week_number: int, body: ActorRequest, db: Session = Depends(get_db)):
    """開始本週發表（commissioner），已經開始過時返回既有的 state"""
    try:
        return PresentationManager.initialize(db, season_id, week_number, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start presentation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{season_id}/weeks/{week_number}/presentation", response_model=PresentationStateResponse)
def get_presentation(season_id: str, week_number: int, db: Session = Depends(get_db)):
    try:
        return PresentationManager.get_state(db, season_id, week_number)
    except LeagueGameException as e:
        raise to_http_exception(e)


@router.post("/{season_id}/weeks/{week_number}/presentation/presenter", response_model=PresentationStateResponse)
def select_presenter(season_id: str, week_number: int, body: PresenterSelect, db: Session = Depends(get_db)):
    try:
        return PresentationManager.select_presenter(
            db, season_id, week_number, body.season_player_id, body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to select presenter: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/weeks/{week_number}/presentation/complete", response_model=PresentationStateResponse)
def complete_presenter(season_id: str, week_number: int, body: ActorRequest, db: Session = Depends(get_db)):
    """
    目前的發表者發表完畢

    最後一位發表完時賽季進入 VOTING
    """
    try:
        return PresentationManager.complete_presenter(db, season_id, week_number, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to complete presenter: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
