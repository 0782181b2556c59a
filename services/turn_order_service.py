"""
Snake draft 輪次計算（純函式，不碰資料庫）

規則：
- 回合兩兩一組（pair = ceil(round / 2)），每一組的起始位置往後移一格
- 奇數回合往前走（index + 1），從 (pair - 1) % N 開始
- 偶數回合往回走（index - 1），從奇數回合的最後一位開始，也就是 (start + N - 1) % N

N = 4 時的順序：
    0,1,2,3 | 3,2,1,0 | 1,2,3,0 | 0,3,2,1 | 2,3,0,1 | 1,0,3,2 | ...
"""
from typing import List, NamedTuple, Sequence, Tuple

FORWARD = 1
BACKWARD = -1


class TurnCursor(NamedTuple):
    """目前輪到誰：draft_order[cursor]，direction 由回合決定"""
    order: Tuple[str, ...]
    cursor: int
    direction: int
    round: int

    @property
    def picker_id(self) -> str:
        return self.order[self.cursor]


def round_direction(round_number: int) -> int:
    return FORWARD if round_number % 2 == 1 else BACKWARD


def round_start_index(round_number: int, player_count: int) -> int:
    """
    回合的第一位 picker

    範例（N = 4）：
        round 1 -> 0, round 2 -> 3, round 3 -> 1, round 4 -> 0
    """
    pair = (round_number + 1) // 2
    start = (pair - 1) % player_count
    if round_direction(round_number) == FORWARD:
        return start
    return (start + player_count - 1) % player_count


def start_cursor(order: Sequence[str], round_number: int = 1) -> TurnCursor:
    return TurnCursor(
        order=tuple(order),
        cursor=round_start_index(round_number, len(order)),
        direction=round_direction(round_number),
        round=round_number
    )


def next_turn(cursor: TurnCursor, round_complete: bool, total_rounds: int) -> Tuple[TurnCursor, bool]:
    """
    一次 pick 之後的下一個 cursor

    參數：
        cursor: 目前的 TurnCursor
        round_complete: 本回合每位玩家都已經 pick
        total_rounds: 總回合數（預設 8）

    返回：
        (next_cursor, draft_complete)
        選秀結束時 cursor 停在 index 0、最後一個回合
    """
    player_count = len(cursor.order)

    if round_complete:
        new_round = cursor.round + 1
        if new_round > total_rounds:
            return cursor._replace(cursor=0, direction=FORWARD), True
        return start_cursor(cursor.order, new_round), False

    next_index = (cursor.cursor + cursor.direction + player_count) % player_count
    return cursor._replace(cursor=next_index), False


def pick_sequence(player_count: int, total_rounds: int) -> List[int]:
    """完整選秀的 picker index 序列（每回合 N 次 pick），用於預覽與測試"""
    order = tuple(str(i) for i in range(player_count))
    cursor = start_cursor(order)
    sequence = []
    complete = False
    picks_in_round = 0

    while not complete:
        sequence.append(cursor.cursor)
        picks_in_round += 1
        round_complete = picks_in_round == player_count
        if round_complete:
            picks_in_round = 0
        cursor, complete = next_turn(cursor, round_complete, total_rounds)

    return sequence
