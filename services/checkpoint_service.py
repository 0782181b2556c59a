"""
Checkpoint 解析與可用清單（純函式）

Checkpoint id：
- PRESEASON / DRAFT / ADVANTAGE_SELECTION / START_OF_SEASON
- WEEK_{N}
- WEEK_{N}_PRESENTATION
- WEEK_{N}_ROSTER_EVOLUTION

每個 id 都用完整比對（fullmatch），WEEK_3_PRESENTATION 不會被當成 WEEK_3
"""
import re
from typing import List, NamedTuple

from models import SeasonPhase, SeasonStatus
from core.exceptions import UnknownCheckpoint

PRESEASON = "PRESEASON"
DRAFT = "DRAFT"
ADVANTAGE_SELECTION = "ADVANTAGE_SELECTION"
START_OF_SEASON = "START_OF_SEASON"
WEEK = "WEEK"
WEEK_PRESENTATION = "WEEK_PRESENTATION"
WEEK_ROSTER_EVOLUTION = "WEEK_ROSTER_EVOLUTION"

_WEEK_PATTERNS = [
    (re.compile(r"WEEK_(\d+)"), WEEK, SeasonPhase.IN_SEASON_CHALLENGE_SELECTION),
    (re.compile(r"WEEK_(\d+)_PRESENTATION"), WEEK_PRESENTATION, SeasonPhase.PLAYLIST_PRESENTATION),
    (re.compile(r"WEEK_(\d+)_ROSTER_EVOLUTION"), WEEK_ROSTER_EVOLUTION, SeasonPhase.ROSTER_EVOLUTION),
]

_PRESENTATION_OR_LATER = (
    SeasonPhase.PLAYLIST_PRESENTATION,
    SeasonPhase.VOTING,
    SeasonPhase.IN_SEASON_WEEK_END,
    SeasonPhase.ROSTER_EVOLUTION,
)


class CheckpointTarget(NamedTuple):
    checkpoint_id: str
    family: str
    phase: SeasonPhase
    week: int
    status: SeasonStatus


def parse_checkpoint(checkpoint_id: str) -> CheckpointTarget:
    """
    Checkpoint id -> (family, phase, week, status)

    範例：
        parse_checkpoint("DRAFT")
            -> (DRAFT, DRAFTING, 0, PRESEASON)
        parse_checkpoint("START_OF_SEASON")
            -> (WEEK, IN_SEASON_CHALLENGE_SELECTION, 1, IN_PROGRESS)
        parse_checkpoint("WEEK_3_PRESENTATION")
            -> (WEEK_PRESENTATION, PLAYLIST_PRESENTATION, 3, IN_PROGRESS)

    異常：
        UnknownCheckpoint: 無法解析，或 week < 1
    """
    if checkpoint_id == PRESEASON:
        return CheckpointTarget(checkpoint_id, PRESEASON, SeasonPhase.SEASON_SETUP, 0, SeasonStatus.PRESEASON)
    if checkpoint_id == DRAFT:
        return CheckpointTarget(checkpoint_id, DRAFT, SeasonPhase.DRAFTING, 0, SeasonStatus.PRESEASON)
    if checkpoint_id == ADVANTAGE_SELECTION:
        return CheckpointTarget(
            checkpoint_id, ADVANTAGE_SELECTION, SeasonPhase.ADVANTAGE_SELECTION, 0, SeasonStatus.PRESEASON
        )
    if checkpoint_id == START_OF_SEASON:
        return CheckpointTarget(
            checkpoint_id, WEEK, SeasonPhase.IN_SEASON_CHALLENGE_SELECTION, 1, SeasonStatus.IN_PROGRESS
        )

    for pattern, family, phase in _WEEK_PATTERNS:
        match = pattern.fullmatch(checkpoint_id or "")
        if match:
            week = int(match.group(1))
            if week < 1:
                break
            return CheckpointTarget(checkpoint_id, family, phase, week, SeasonStatus.IN_PROGRESS)

    raise UnknownCheckpoint(checkpoint_id)


def available_checkpoints(phase: SeasonPhase, week: int, status: SeasonStatus) -> List[str]:
    """
    目前狀態下可以回到的 checkpoint

    規則：
    - PRESEASON：不在 (SEASON_SETUP, week 0) 時
    - DRAFT：永遠可以
    - ADVANTAGE_SELECTION：不在 (ADVANTAGE_SELECTION, week 0) 時
    - START_OF_SEASON、WEEK_{current}：賽季 IN_PROGRESS 時
    - WEEK_{current}_PRESENTATION：已經到 presentation（含之後）時
    - WEEK_{current}_ROSTER_EVOLUTION：正在 ROSTER_EVOLUTION 時
    """
    checkpoints = []

    if not (phase == SeasonPhase.SEASON_SETUP and week == 0):
        checkpoints.append(PRESEASON)

    checkpoints.append(DRAFT)

    if not (phase == SeasonPhase.ADVANTAGE_SELECTION and week == 0):
        checkpoints.append(ADVANTAGE_SELECTION)

    if status == SeasonStatus.IN_PROGRESS and week >= 1:
        checkpoints.append(START_OF_SEASON)
        checkpoints.append(f"WEEK_{week}")

        if phase in _PRESENTATION_OR_LATER:
            checkpoints.append(f"WEEK_{week}_PRESENTATION")

        if phase == SeasonPhase.ROSTER_EVOLUTION:
            checkpoints.append(f"WEEK_{week}_ROSTER_EVOLUTION")

    return checkpoints
