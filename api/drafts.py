"""
Draft API Endpoints

重點：
1. 所有業務邏輯集中在 DraftManager
2. 每個 pick 都是一個 transaction，失敗時不會留下部分寫入
3. 前端靠 GET /draft 取得目前輪次
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import (
    DraftInitialize,
    DraftReset,
    DraftStateResponse,
    PromptSelect,
    PromptResponse,
    ArtistDraft,
    RosterEntryResponse,
    RosterViewEntry
)
from core.draft_manager import DraftManager
from core.season_manager import SeasonManager
from core.exceptions import LeagueGameException
from services.draft_history_service import get_draft_picks, get_player_roster
from api.errors import to_http_exception

router = APIRouter(prefix="/api/seasons", tags=["drafts"])
logger = logging.getLogger(__name__)


@router.post("/{season_id}/draft", response_model=DraftStateResponse)
def initialize_draft(season_id: str, body: DraftInitialize, db: Session = Depends(get_db)):
    """初始化選秀（idempotent）"""
    try:
        return DraftManager.initialize_draft(db, season_id, body.requesting_user_id, randomize=body.randomize)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to initialize draft: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{season_id}/draft", response_model=DraftStateResponse)
def get_draft_state(season_id: str, db: Session = Depends(get_db)):
    try:
        return DraftManager.get_draft_state(db, season_id)
    except LeagueGameException as e:
        raise to_http_exception(e)


@router.get("/{season_id}/draft/prompts", response_model=List[PromptResponse])
def get_prompts(season_id: str, db: Session = Depends(get_db)):
    return DraftManager.get_prompts(db, season_id)


@router.post("/{season_id}/draft/prompt", response_model=PromptResponse)
def select_prompt(season_id: str, body: PromptSelect, db: Session = Depends(get_db)):
    """
    選本回合的 prompt

    錯誤：
        400 WrongTurn / PromptUnavailable
        404 PromptNotFound
    """
    try:
        return DraftManager.select_prompt(db, season_id, body.prompt_id, body.requesting_user_id)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to select prompt: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/draft/pick", response_model=RosterEntryResponse)
def draft_artist(season_id: str, body: ArtistDraft, db: Session = Depends(get_db)):
    """
    選 artist

    錯誤：
        400 WrongTurn / PromptUnavailable
        409 DuplicateArtist
    """
    try:
        return DraftManager.draft_artist(
            db, season_id, body.prompt_id, body.artist_name, body.requesting_user_id
        )
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to draft artist: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{season_id}/draft/reset", response_model=DraftStateResponse)
def reset_draft(season_id: str, body: DraftReset, db: Session = Depends(get_db)):
    try:
        return DraftManager.reset_draft(db, season_id, body.requesting_user_id, keep_order=body.keep_order)
    except LeagueGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to reset draft: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{season_id}/draft/picks", response_model=List[RosterViewEntry])
def get_picks(season_id: str, db: Session = Depends(get_db)):
    return get_draft_picks(season_id, db)


@router.get("/{season_id}/players/{season_player_id}/roster", response_model=List[RosterViewEntry])
def get_roster(season_id: str, season_player_id: str, include_cut: bool = False, db: Session = Depends(get_db)):
    try:
        SeasonManager.get_season(db, season_id)
        return get_player_roster(season_id, season_player_id, db, include_cut=include_cut)
    except LeagueGameException as e:
        raise to_http_exception(e)
