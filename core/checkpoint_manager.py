"""
Checkpoint Manager：把賽季回到某個 checkpoint

Checkpoint 對應到 (phase, week, status) 與一串 compensating actions（查表，不用 if/else 鏈）：

    PRESEASON            -> SEASON_SETUP, 0, PRESEASON
    DRAFT                -> DRAFTING, 0, PRESEASON
    ADVANTAGE_SELECTION  -> ADVANTAGE_SELECTION, 0, PRESEASON
    START_OF_SEASON      -> 等同 WEEK_1
    WEEK_N               -> IN_SEASON_CHALLENGE_SELECTION, N, IN_PROGRESS
    WEEK_N_PRESENTATION  -> PLAYLIST_PRESENTATION, N, IN_PROGRESS
    WEEK_N_ROSTER_EVOLUTION -> ROSTER_EVOLUTION, N, IN_PROGRESS

每個 action 都是 idempotent；全部在同一個 transaction 裡執行
"""
from sqlalchemy.orm import Session
from typing import Callable, Dict, List, Tuple
import logging

from models import Season, SeasonPhase
from core.state_machine import SeasonStateMachine
from core.season_manager import lock_season, SeasonManager
from core.roster_evolution_manager import RosterEvolutionManager
from core.permissions import require_commissioner
from core.exceptions import InvalidTransition
from core import compensations, event_log
from services import checkpoint_service
from services.checkpoint_service import CheckpointTarget, parse_checkpoint, available_checkpoints
from database import transactional

logger = logging.getLogger(__name__)

Compensation = Callable[[Session, Season, int], object]


def _rollback_roster_evolution(db: Session, season: Season, week: int):
    return RosterEvolutionManager.rollback_week(db, season, week, None)


_CLEAR_IN_SEASON: List[Tuple[str, Compensation]] = [
    ("delete_presentation_and_voting", compensations.delete_presentation_and_voting_from_week),
    ("delete_results", compensations.delete_results_from_week),
]

_RESET_PRESEASON: List[Tuple[str, Compensation]] = _CLEAR_IN_SEASON + [
    ("delete_draft_state", compensations.delete_draft_state),
    ("delete_draft_selections", compensations.delete_draft_selections),
    ("delete_advantages", compensations.delete_all_advantages),
    ("delete_evolution_states", compensations.delete_all_evolution_states),
    ("delete_roster_entries", compensations.delete_all_roster_entries),
    ("delete_pool_entries", compensations.delete_all_pool_entries),
    ("delete_artists", compensations.delete_all_artists),
    ("delete_challenge_data", compensations.delete_all_challenge_data),
    ("reopen_prompts", compensations.reopen_prompts),
]

COMPENSATIONS: Dict[str, List[Tuple[str, Compensation]]] = {
    checkpoint_service.PRESEASON: [
        ("clear_draft_positions", compensations.clear_draft_positions),
    ] + _RESET_PRESEASON,
    checkpoint_service.DRAFT: _RESET_PRESEASON + [
        ("rebuild_draft_state", compensations.rebuild_draft_state_from_positions),
    ],
    checkpoint_service.ADVANTAGE_SELECTION: _CLEAR_IN_SEASON + [
        ("delete_advantages", compensations.delete_all_advantages),
        ("delete_challenge_data", compensations.delete_all_challenge_data),
        ("revert_roster", compensations.revert_roster_from_week),
        ("reopen_evolution_prompts", compensations.reopen_evolution_prompts_from_week),
        ("delete_evolution_states", compensations.delete_evolution_states_from_week),
    ],
    checkpoint_service.WEEK: [
        ("delete_challenge_data", compensations.delete_challenge_data_from_week),
        ("delete_presentation_and_voting", compensations.delete_presentation_and_voting_from_week),
        ("delete_results", compensations.delete_results_from_week),
        ("delete_advantages", compensations.delete_advantages_from_week),
        ("revert_roster", compensations.revert_roster_from_week),
        ("reopen_evolution_prompts", compensations.reopen_evolution_prompts_from_week),
        ("delete_evolution_states", compensations.delete_evolution_states_from_week),
    ],
    checkpoint_service.WEEK_PRESENTATION: [
        ("delete_presentation_and_voting", compensations.delete_week_presentation_and_voting),
    ],
    checkpoint_service.WEEK_ROSTER_EVOLUTION: [
        ("rollback_roster_evolution", _rollback_roster_evolution),
    ],
}


def _validate_target(season: Season, target: CheckpointTarget):
    """週次 checkpoint 不能指向未來；roster evolution checkpoint 只能在當週使用"""
    if target.week > season.current_week:
        raise InvalidTransition(
            f"Cannot roll back to {target.checkpoint_id}: season is only at week {season.current_week}"
        )
    if target.family == checkpoint_service.WEEK_ROSTER_EVOLUTION and (
        season.current_phase != SeasonPhase.ROSTER_EVOLUTION or target.week != season.current_week
    ):
        raise InvalidTransition(
            f"{target.checkpoint_id} is only available during week {target.week} roster evolution"
        )


class CheckpointManager:
    """Checkpoint rollback 管理器"""

    @staticmethod
    @transactional
    def rollback_to_checkpoint(db: Session, season_id: str, checkpoint_id: str, actor_id: str) -> Season:
        """
        回到 checkpoint

        前置條件：
        1. actor 是 commissioner
        2. Checkpoint id 可以解析，且不指向未來的週次

        流程：
        1. 解析 checkpoint -> (family, phase, week, status)
        2. 依序執行 family 的 compensating actions
        3. Phase Ledger restore（IN_PROGRESS 以外的 status 會清掉 started_at）
        4. 記錄 ROLLBACK_TO_CHECKPOINT

        異常：
            Unauthorized / UnknownCheckpoint / InvalidTransition
        """
        # 1. 解析與驗證
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        target = parse_checkpoint(checkpoint_id)
        _validate_target(season, target)

        from_phase = season.current_phase
        from_week = season.current_week

        # 2. Compensating actions
        results = {}
        for name, action in COMPENSATIONS[target.family]:
            results[name] = action(db, season, target.week)
            db.flush()
        logger.debug(f"Compensations for {checkpoint_id}: {results}")

        # 3. Phase Ledger
        SeasonStateMachine.restore(season, target.phase, target.week, target.status)

        logger.info(
            f"Season {season_id}: rolled back to {checkpoint_id} "
            f"({from_phase.value} week {from_week} -> {target.phase.value} week {target.week})"
        )

        # 4. 事件
        event_log.record(db, season_id, "ROLLBACK_TO_CHECKPOINT", {
            "checkpoint": checkpoint_id,
            "from_phase": from_phase.value,
            "from_week": from_week,
            "to_phase": target.phase.value,
            "to_week": target.week
        }, actor_id)

        return season

    @staticmethod
    def get_available_checkpoints(db: Session, season_id: str) -> List[str]:
        season = SeasonManager.get_season(db, season_id)
        return available_checkpoints(season.current_phase, season.current_week, season.status)
