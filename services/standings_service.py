"""
每週排名計算（純函式）

投票 -> voting points -> 名次（同分同名次）-> victory points，
以及 roster evolution 用的倒序排名
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

VICTORY_POINTS = {1: 5, 2: 3, 3: 2, 4: 1}


def category_point_values(categories: Sequence[Mapping]) -> Dict[str, int]:
    return {str(category["id"]): int(category.get("point_value", 1)) for category in categories}


def compute_voting_points(
    votes: Iterable[Tuple[str, str]],
    categories: Sequence[Mapping],
    player_ids: Sequence[str]
) -> Dict[str, int]:
    """
    每位被提名玩家的 voting points = 票數 x 類別分值

    參數：
        votes: (category_id, nominated_player_id) 的序列
        categories: [{"id", "point_value"}, ...]
        player_ids: 每位玩家都會出現在結果裡（沒有票時為 0）

    未知類別的票直接忽略
    """
    values = category_point_values(categories)
    points = {player_id: 0 for player_id in player_ids}
    for category_id, nominee_id in votes:
        if category_id not in values:
            continue
        points[nominee_id] = points.get(nominee_id, 0) + values[category_id]
    return points


def assign_placements(points: Mapping[str, int]) -> Dict[str, int]:
    """同分同名次，下一個名次跳號：10, 10, 7 -> 1, 1, 3"""
    ranked = sorted(points.items(), key=lambda item: item[1], reverse=True)
    placements: Dict[str, int] = {}
    previous_points = None
    previous_placement = 0
    for position, (player_id, player_points) in enumerate(ranked, start=1):
        if player_points == previous_points:
            placements[player_id] = previous_placement
        else:
            placements[player_id] = position
            previous_placement = position
            previous_points = player_points
    return placements


def victory_points_for(placement: int) -> int:
    return VICTORY_POINTS.get(placement, 0)


def reverse_standings(placements: Mapping[str, int], fallback_order: Sequence[str]) -> List[str]:
    """
    倒序排名（最後一名在前）

    沒有成績的玩家算最後一名；同名次依 fallback_order；
    完全沒有成績時直接返回 fallback_order
    """
    if not placements:
        return list(fallback_order)

    fallback_index = {player_id: index for index, player_id in enumerate(fallback_order)}
    worst = max(placements.values()) + 1
    return sorted(
        fallback_order,
        key=lambda player_id: (-placements.get(player_id, worst), fallback_index[player_id])
    )


def group_votes_by_category(votes: Iterable[Tuple[str, str]]) -> Dict[str, Dict[str, int]]:
    """{category_id: {nominee_id: vote_count}}"""
    grouped: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for category_id, nominee_id in votes:
        grouped[category_id][nominee_id] += 1
    return grouped
