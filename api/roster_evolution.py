"""
Roster Evolution API Endpoints

路徑都帶 week_number：每一週各有一個子狀態機
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import (
    ActorRequest,
    EvolutionStateResponse,
    EvolutionCut,
    PromptSelect,
    EvolutionRedraft,
    PoolDraft,
    PoolBanish,
    PoolEntryResponse,
    RosterEntryResponse,
    SeasonResponse
)
from core.roster_evolution_manager import RosterEvolutionManager
from core.exceptions import LeagueGameException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/seasons", tags=["roster-evolution"])
logger = logging.getLogger(__name__)


@router.post("/{season_id}/weeks/{week_number}/evolution", response_model=EvolutionStateResponse)
def initialize_evolution(season_id: str, week_number: int, body: ActorRequest, db: Session = Depends(get_db)):
    """
    開始本週 roster evolution（commissioner）

    已經開始過時返回既有的 state
    """
    try:
        return RosterEvolutionManager.initialize(db, season_id, week_number, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to initialize roster evolution: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{season_id}/weeks/{week_number}/evolution", response_model=EvolutionStateResponse)
def get_evolution_state(season_id: str, week_number: int, db: Session = Depends(get_db)):
    try:
        return RosterEvolutionManager.get_state(db, season_id, week_number)
    except LeagueGameException as e:
        raise to_http_exception(e)


@router.post("/{season_id}/weeks/{week_number}/evolution/cut", response_model=PoolEntryResponse)
def cut_artist(season_id: str, week_number: int, body: EvolutionCut, db: Session = Depends(get_db)):
    """
    Self-cut：把 artist 放進 pool（玩家本人或 commissioner）

    錯誤：
        400 InvalidTransition / CapacityExceeded（本週 cut 數已達標）
        403 Unauthorized
    """
    try:
        return RosterEvolutionManager.cut_artist(
            db, season_id, week_number, body.roster_entry_id, body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to cut artist: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/weeks/{week_number}/evolution/prompt", response_model=EvolutionStateResponse)
def select_redraft_prompt(season_id: str, week_number: int, body: PromptSelect, db: Session = Depends(get_db)):
    """最後一名（或 commissioner）選 redraft prompt"""
    try:
        return RosterEvolutionManager.select_prompt(
            db, season_id, week_number, body.prompt_id, body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to select redraft prompt: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/weeks/{week_number}/evolution/redraft", response_model=RosterEntryResponse)
def redraft_artist(season_id: str, week_number: int, body: EvolutionRedraft, db: Session = Depends(get_db)):
    """
    Redraft 一位全新的 artist

    錯誤：
        400 WrongTurn
        409 DuplicateArtist
    """
    try:
        return RosterEvolutionManager.redraft_artist(
            db, season_id, week_number, body.artist_name, body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to redraft artist: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/weeks/{week_number}/evolution/pool-draft", response_model=RosterEntryResponse)
def pool_draft_artist(season_id: str, week_number: int, body: PoolDraft, db: Session = Depends(get_db)):
    try:
        return RosterEvolutionManager.pool_draft_artist(
            db, season_id, week_number, body.pool_entry_id, body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to draft from pool: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/weeks/{week_number}/evolution/complete", response_model=SeasonResponse)
def complete_evolution(season_id: str, week_number: int, body: ActorRequest, db: Session = Depends(get_db)):
    """完成本週 roster evolution 並推進到下一週（commissioner）"""
    try:
        return RosterEvolutionManager.complete(db, season_id, week_number, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to complete roster evolution: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/weeks/{week_number}/evolution/rollback", response_model=EvolutionStateResponse)
def rollback_evolution(season_id: str, week_number: int, body: ActorRequest, db: Session = Depends(get_db)):
    """把本週 roster evolution 回到起點（commissioner，只能在當週）"""
    try:
        return RosterEvolutionManager.rollback(db, season_id, week_number, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to roll back roster evolution: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{season_id}/pool", response_model=List[PoolEntryResponse])
def get_pool(season_id: str, db: Session = Depends(get_db)):
    return RosterEvolutionManager.get_pool(db, season_id)


@router.post("/{season_id}/pool/banish", response_model=List[PoolEntryResponse])
def banish_from_pool(season_id: str, body: PoolBanish, db: Session = Depends(get_db)):
    try:
        return RosterEvolutionManager.banish_from_pool(db, season_id, body.pool_entry_ids, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to banish pool entries: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
