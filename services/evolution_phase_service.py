"""
Roster evolution 階段服務：決定某一週的設定與子狀態機的下一步

子狀態機：
    SELF_CUT -> PROMPT_SELECTION -> REDRAFT -> [POOL_DRAFT] -> COMPLETE

- 數量為 0 的階段會被直接跳過（例如 self_cut_count = 0 時從 PROMPT_SELECTION 開始）
- POOL_DRAFT 只出現在 pool_draft_weeks 裡的週
"""
from typing import Dict, List, Sequence, Tuple

from models import EvolutionPhase, WeekType

DEFAULT_SELF_CUT_COUNT = 1
DEFAULT_REDRAFT_COUNT = 1
DEFAULT_POOL_DRAFT_WEEKS = [2, 6]


def default_week_types(total_weeks: int) -> List[Dict]:
    """
    預設的週類型：每 4 週一次 CHAOS，其餘 GROWTH

    範例：
        default_week_types(4) -> [{1, GROWTH}, {2, GROWTH}, {3, GROWTH}, {4, CHAOS}]
    """
    return [
        {
            "week_number": week,
            "type": (WeekType.CHAOS if week % 4 == 0 else WeekType.GROWTH).value
        }
        for week in range(1, total_weeks + 1)
    ]


def get_week_type(week_number: int, week_types: Sequence[Dict]) -> WeekType:
    """沒有設定的週一律是 GROWTH"""
    for entry in week_types or []:
        if entry.get("week_number") == week_number:
            return WeekType(entry.get("type", WeekType.GROWTH.value))
    return WeekType.GROWTH


def includes_pool_draft(week_number: int, pool_draft_weeks: Sequence[int]) -> bool:
    return week_number in (pool_draft_weeks or [])


def phase_after_redraft(has_pool_draft: bool) -> EvolutionPhase:
    return EvolutionPhase.POOL_DRAFT if has_pool_draft else EvolutionPhase.COMPLETE


def phase_after_cuts(redraft_count: int, has_pool_draft: bool) -> EvolutionPhase:
    if redraft_count > 0:
        return EvolutionPhase.PROMPT_SELECTION
    return phase_after_redraft(has_pool_draft)


def initial_phase(self_cut_count: int, redraft_count: int, has_pool_draft: bool) -> EvolutionPhase:
    """
    依設定決定子狀態機的起點

    範例：
        initial_phase(1, 1, False) -> SELF_CUT
        initial_phase(0, 1, False) -> PROMPT_SELECTION
        initial_phase(0, 0, True)  -> POOL_DRAFT
        initial_phase(0, 0, False) -> COMPLETE
    """
    if self_cut_count > 0:
        return EvolutionPhase.SELF_CUT
    return phase_after_cuts(redraft_count, has_pool_draft)


def next_redraft_turn(
    order: Sequence[str],
    index: int,
    redraft_round: int,
    picks_completed: Dict[str, int],
    per_player: int
) -> Tuple[int, int, bool]:
    """
    Redraft 是線性輪流（不是 snake）：每一輪從 order[0] 走到最後一位

    參數：
        order: redraft_order（最後一名先選）
        index: 剛完成 pick 的 index
        redraft_round: 目前輪次
        picks_completed: {season_player_id: 已完成數}（已包含剛剛那一次）
        per_player: 每位玩家要 redraft 的數量

    返回：
        (next_index, next_round, all_done)
    """
    if all(picks_completed.get(player_id, 0) >= per_player for player_id in order):
        return index, redraft_round, True

    next_index = index + 1
    if next_index >= len(order):
        return 0, redraft_round + 1, False
    return next_index, redraft_round, False
