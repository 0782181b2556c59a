"""
Season API Endpoints

職責：
1. 建立賽季、查詢賽季與玩家
2. Phase Ledger 操作（推進 phase、開季、推進週次）
3. Checkpoint rollback
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import (
    SeasonCreate,
    SeasonResponse,
    SeasonPlayerResponse,
    PhaseAdvance,
    PlayerReorder,
    AdvantageSelectionConfig,
    ActorRequest,
    CheckpointRollback,
    CheckpointListResponse
)
from core.season_manager import SeasonManager
from core.checkpoint_manager import CheckpointManager
from core.exceptions import LeagueGameException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/seasons", tags=["seasons"])
logger = logging.getLogger(__name__)


@router.post("", response_model=SeasonResponse)
def create_season(body: SeasonCreate, db: Session = Depends(get_db)):
    """建立賽季（commissioner），每位聯盟成員自動成為賽季玩家"""
    try:
        return SeasonManager.create_season(
            db,
            body.league_id,
            body.name,
            body.requesting_user_id,
            roster_size=body.roster_size,
            total_weeks=body.total_weeks
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create season: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{season_id}", response_model=SeasonResponse)
def get_season(season_id: str, db: Session = Depends(get_db)):
    try:
        return SeasonManager.get_season(db, season_id)
    except LeagueGameException as e:
        raise to_http_exception(e)


@router.get("/{season_id}/players", response_model=List[SeasonPlayerResponse])
def get_players(season_id: str, db: Session = Depends(get_db)):
    try:
        SeasonManager.get_season(db, season_id)
        return SeasonManager.get_players(db, season_id)
    except LeagueGameException as e:
        raise to_http_exception(e)


@router.post("/{season_id}/players/order", response_model=List[SeasonPlayerResponse])
def reorder_players(season_id: str, body: PlayerReorder, db: Session = Depends(get_db)):
    """設定選秀順序（只在 SEASON_SETUP）"""
    try:
        return SeasonManager.reorder_season_players(
            db, season_id, body.ordered_player_ids, body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to reorder players: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/{season_id}/advantage-selection-config", response_model=SeasonResponse)
def update_advantage_selection_config(season_id: str, body: AdvantageSelectionConfig, db: Session = Depends(get_db)):
    try:
        return SeasonManager.update_advantage_selection_config(
            db,
            season_id,
            body.requesting_user_id,
            tier1_count=body.tier1_count,
            tier2_count=body.tier2_count,
            tier3_count=body.tier3_count
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to update advantage selection config: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/phase", response_model=SeasonResponse)
def advance_phase(season_id: str, body: PhaseAdvance, db: Session = Depends(get_db)):
    """
    推進 phase（commissioner）

    錯誤：
        400 InvalidPhase / NotForward
        403 Unauthorized
    """
    try:
        return SeasonManager.advance_phase(db, season_id, body.target_phase, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to advance phase: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/start", response_model=SeasonResponse)
def start_season(season_id: str, body: ActorRequest, db: Session = Depends(get_db)):
    try:
        return SeasonManager.start_season(db, season_id, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start season: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/weeks/advance", response_model=SeasonResponse)
def advance_week(season_id: str, body: ActorRequest, db: Session = Depends(get_db)):
    try:
        return SeasonManager.advance_week(db, season_id, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to advance week: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{season_id}/checkpoints", response_model=CheckpointListResponse)
def get_checkpoints(season_id: str, db: Session = Depends(get_db)):
    try:
        return CheckpointListResponse(
            checkpoints=CheckpointManager.get_available_checkpoints(db, season_id)
        )
    except LeagueGameException as e:
        raise to_http_exception(e)


@router.post("/{season_id}/rollback", response_model=SeasonResponse)
def rollback_to_checkpoint(season_id: str, body: CheckpointRollback, db: Session = Depends(get_db)):
    """回到 checkpoint（commissioner）"""
    try:
        return CheckpointManager.rollback_to_checkpoint(
            db, season_id, body.checkpoint_id, body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to roll back season {season_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
