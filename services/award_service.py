"""
Advantage 發放規劃（純函式）

輸入：本週投票、類別、名次、發放設定
輸出：要建立的 award slot 清單（尚未指定 advantage code）

Sweep 定義：
- 每位玩家不能投自己，所以一個類別的合格投票人數是 total_players - 1
- 某位被提名者拿到全部合格票 = sweep
"""
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from models import AwardSource
from services.standings_service import category_point_values, group_votes_by_category

DEFAULT_PLACEMENT_REWARDS = [
    {"placement": 2, "tier": 1, "count": 1},
    {"placement": 3, "tier": 2, "count": 1},
]
DEFAULT_SWEEP_REWARDS = [
    {"category_point_value": 1, "tier": 1, "count": 1},
    {"category_point_value": 2, "tier": 2, "count": 1},
    {"category_point_value": 3, "tier": 3, "count": 1},
]
DEFAULT_COOLDOWN_BY_TIER = {"1": 0, "2": 1, "3": 1}


class Sweep(NamedTuple):
    season_player_id: str
    category_id: str
    point_value: int


class PlannedAward(NamedTuple):
    season_player_id: str
    tier: int
    source: AwardSource
    can_use_after_week: int
    placement: Optional[int] = None
    sweep_category_id: Optional[str] = None


def cooldown_for_tier(tier: int, cooldown_by_tier: Optional[Mapping] = None) -> int:
    """JSON 欄位的 key 是字串，兩種都接受；未設定的 tier cooldown 為 0"""
    table = cooldown_by_tier if cooldown_by_tier is not None else DEFAULT_COOLDOWN_BY_TIER
    if str(tier) in table:
        return int(table[str(tier)])
    return int(table.get(tier, 0))


def can_use_after_week(earned_week: int, tier: int, cooldown_by_tier: Optional[Mapping] = None) -> int:
    """
    範例（預設 cooldown）：
        can_use_after_week(3, 2) -> 4
        can_use_after_week(3, 1) -> 3
    """
    return earned_week + cooldown_for_tier(tier, cooldown_by_tier)


def detect_sweeps(
    votes: Sequence[Tuple[str, str]],
    categories: Sequence[Mapping],
    total_players: int
) -> Dict[str, List[Sweep]]:
    """
    找出本週的 sweep，按玩家分組

    參數：
        votes: [(category_id, nominated_player_id), ...]
        categories: [{"id", "title", "point_value"}, ...]
        total_players: 賽季玩家數

    返回：
        {season_player_id: [Sweep, ...]}（依類別順序）
    """
    eligible_voters = total_players - 1
    if eligible_voters <= 0:
        return {}

    values = category_point_values(categories)
    grouped = group_votes_by_category(votes)
    sweeps: Dict[str, List[Sweep]] = {}

    for category in categories:
        category_id = str(category["id"])
        for nominee_id, count in grouped.get(category_id, {}).items():
            if count >= eligible_voters:
                sweeps.setdefault(nominee_id, []).append(
                    Sweep(nominee_id, category_id, values[category_id])
                )

    return sweeps


def _sweep_reward(point_value: int, sweep_rewards: Sequence[Mapping]) -> Optional[Mapping]:
    for reward in sweep_rewards:
        if int(reward["category_point_value"]) == point_value:
            return reward
    return None


def plan_week_awards(
    week_number: int,
    sweeps: Mapping[str, Sequence[Sweep]],
    placements: Mapping[str, int],
    placement_rewards: Optional[Sequence[Mapping]] = None,
    sweep_rewards: Optional[Sequence[Mapping]] = None,
    sweeps_stack: bool = False,
    max_sweep_advantages_per_week: Optional[int] = None,
    cooldown_by_tier: Optional[Mapping] = None
) -> List[PlannedAward]:
    """
    依設定規劃本週的 award slots

    規則：
    1. Sweep：每個 sweep 依類別點數對應 tier/count
       - sweeps_stack = False：每位玩家本週最多 1 個 sweep award
       - sweeps_stack = True：可以累加，但不超過 max_sweep_advantages_per_week（None = 不限）
    2. Placement：名次符合的規則各給 count 個
    3. can_use_after_week = week + cooldown_by_tier[tier]
    """
    placement_rewards = DEFAULT_PLACEMENT_REWARDS if placement_rewards is None else placement_rewards
    sweep_rewards = DEFAULT_SWEEP_REWARDS if sweep_rewards is None else sweep_rewards

    if sweeps_stack:
        sweep_cap = max_sweep_advantages_per_week
    else:
        sweep_cap = 1

    planned: List[PlannedAward] = []

    # 1. Sweep awards
    for player_id, player_sweeps in sweeps.items():
        granted = 0
        for sweep in player_sweeps:
            reward = _sweep_reward(sweep.point_value, sweep_rewards)
            if reward is None:
                continue
            tier = int(reward["tier"])
            for _ in range(int(reward.get("count", 1))):
                if sweep_cap is not None and granted >= sweep_cap:
                    break
                planned.append(PlannedAward(
                    season_player_id=player_id,
                    tier=tier,
                    source=AwardSource.SWEEP,
                    can_use_after_week=can_use_after_week(week_number, tier, cooldown_by_tier),
                    sweep_category_id=sweep.category_id
                ))
                granted += 1

    # 2. Placement awards
    for player_id, placement in placements.items():
        for reward in placement_rewards:
            if int(reward["placement"]) != placement:
                continue
            tier = int(reward["tier"])
            for _ in range(int(reward.get("count", 1))):
                planned.append(PlannedAward(
                    season_player_id=player_id,
                    tier=tier,
                    source=AwardSource.PLACEMENT,
                    can_use_after_week=can_use_after_week(week_number, tier, cooldown_by_tier),
                    placement=placement
                ))

    return planned
