"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理（見 api/errors.py）

分類（API 層依照基類決定 HTTP status）：
- NotFound: 資料不存在
- Unauthorized: 不是 commissioner / 不是本人
- InvalidTransition: 階段或狀態不允許這個操作
- WrongTurn: 不是輪到你
- PromptUnavailable: prompt 不是 OPEN（或不是本回合選的）
- AlreadyExists: 重複資料（例如同名 artist）
- CapacityExceeded: 數量 / tier / cooldown 限制
"""


class LeagueGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ NotFound ============

class NotFound(LeagueGameException):
    """資料不存在"""
    entity = "Resource"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class LeagueNotFound(NotFound):
    entity = "League"


class SeasonNotFound(NotFound):
    entity = "Season"


class PlayerNotFound(NotFound):
    entity = "Season player"


class PromptNotFound(NotFound):
    entity = "Prompt"


class DraftNotInitialized(NotFound):
    entity = "Draft state for season"


class RosterEntryNotFound(NotFound):
    entity = "Active roster entry"


class PoolEntryNotFound(NotFound):
    entity = "Available pool entry"


class EvolutionStateNotFound(NotFound):
    entity = "Roster evolution state"


class AdvantageNotFound(NotFound):
    entity = "Advantage"


class AwardNotFound(NotFound):
    entity = "Advantage award"


class VotingSessionNotFound(NotFound):
    entity = "Voting session"


class PresentationStateNotFound(NotFound):
    entity = "Presentation state for season"


class UnknownCheckpoint(NotFound):
    entity = "Checkpoint"


# ============ 權限 ============

class Unauthorized(LeagueGameException):
    """操作者沒有權限（通常需要 commissioner）"""
    pass


# ============ 狀態轉換異常 ============

class InvalidTransition(LeagueGameException):
    """非法的狀態轉換"""
    pass


class InvalidPhase(InvalidTransition):
    """未知的 phase"""
    def __init__(self, phase):
        self.phase = phase
        super().__init__(f"Invalid phase: {phase}")


class NotForward(InvalidTransition):
    """Phase Ledger 只能往前走"""
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move backwards or stay in the same phase: {current} -> {target}")


class InvalidPlayerCount(InvalidTransition):
    """玩家數量不符合要求"""
    pass


class DraftComplete(InvalidTransition):
    """選秀已經結束"""
    pass


# ============ 回合 / 輪次 ============

class WrongTurn(LeagueGameException):
    """不是輪到這位玩家"""
    pass


class PromptUnavailable(LeagueGameException):
    """Prompt 目前不能選"""
    pass


# ============ 重複 / 容量 ============

class AlreadyExists(LeagueGameException):
    """資料已存在"""
    pass


class DuplicateArtist(AlreadyExists):
    """Artist 已經在賽季中被選走"""
    def __init__(self, artist_name):
        self.artist_name = artist_name
        super().__init__(f"Artist '{artist_name}' has already been drafted this season")


class CapacityExceeded(LeagueGameException):
    """超過數量限制（tier cap、cut quota、cooldown）"""
    pass


class TierMismatch(CapacityExceeded):
    """Advantage 的 tier 和 award slot 不符"""
    def __init__(self, code, expected_tier, actual_tier):
        self.code = code
        super().__init__(
            f"Advantage {code} is tier {actual_tier}, award slot requires tier {expected_tier}"
        )


# ============ 輸入 ============

class InvalidArtistName(LeagueGameException):
    """Artist 名稱是空的"""
    pass


class CategoryNotFound(NotFound):
    entity = "Award category"


class SelfVoteNotAllowed(InvalidTransition):
    """玩家不能投給自己"""
    pass
