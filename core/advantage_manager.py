"""
Advantage Manager：advantage 的發放、指定、使用與撤銷

職責：
1. 每週發放 award slots（sweep + placement），code 之後由 commissioner 指定
2. 起始 advantage（ADVANTAGE_SELECTION 階段，受每個 tier 上限限制）
3. 指定每週 award 的 code（寫入 inventory）
4. 使用 advantage（cooldown 檢查）
5. 撤銷（起始 advantage 重置、某週 awards 撤銷）
"""
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from models import (
    Season, SeasonPlayer, SeasonPhase, AdvantageDefinition, AdvantageDistributionSettings,
    AdvantageAward, PlayerInventory, InventoryStatus, EarnedVia, VotingSession, Vote,
    VotingStatus, WeeklyResult
)
from core.state_machine import phase_order
from core.season_manager import lock_season
from core.permissions import require_commissioner, acts_for
from core.exceptions import (
    PlayerNotFound,
    AdvantageNotFound,
    AwardNotFound,
    Unauthorized,
    InvalidTransition,
    AlreadyExists,
    CapacityExceeded,
    TierMismatch
)
from core import event_log
from services.award_service import (
    detect_sweeps,
    plan_week_awards,
    DEFAULT_PLACEMENT_REWARDS,
    DEFAULT_SWEEP_REWARDS,
    DEFAULT_COOLDOWN_BY_TIER
)
from database import transactional

logger = logging.getLogger(__name__)


def get_distribution_settings(db: Session, season_id: str) -> AdvantageDistributionSettings:
    """賽季的發放設定；沒有設定時返回預設值（不寫入資料庫）"""
    settings = db.query(AdvantageDistributionSettings).filter(
        AdvantageDistributionSettings.season_id == season_id
    ).first()
    if settings:
        return settings
    return AdvantageDistributionSettings(
        season_id=season_id,
        placement_rewards=[dict(reward) for reward in DEFAULT_PLACEMENT_REWARDS],
        sweep_rewards=[dict(reward) for reward in DEFAULT_SWEEP_REWARDS],
        sweeps_stack=False,
        max_sweep_advantages_per_week=None,
        cooldown_by_tier=dict(DEFAULT_COOLDOWN_BY_TIER)
    )


def _get_definition(db: Session, season_id: str, advantage_code: str) -> AdvantageDefinition:
    definition = db.query(AdvantageDefinition).filter(
        AdvantageDefinition.season_id == season_id,
        AdvantageDefinition.code == advantage_code
    ).first()
    if not definition:
        raise AdvantageNotFound(advantage_code)
    return definition


def _get_player(db: Session, season_id: str, season_player_id: str) -> SeasonPlayer:
    player = db.query(SeasonPlayer).filter(
        SeasonPlayer.id == season_player_id,
        SeasonPlayer.season_id == season_id
    ).first()
    if not player:
        raise PlayerNotFound(season_player_id)
    return player


def _holds_code(db: Session, season_player_id: str, advantage_code: str, exclude_award_id: Optional[str] = None) -> bool:
    query = db.query(PlayerInventory).filter(
        PlayerInventory.season_player_id == season_player_id,
        PlayerInventory.advantage_code == advantage_code,
        PlayerInventory.status == InventoryStatus.AVAILABLE
    )
    if exclude_award_id is not None:
        query = query.filter(
            (PlayerInventory.award_id.is_(None)) | (PlayerInventory.award_id != exclude_award_id)
        )
    return query.first() is not None


def issue_week_awards(db: Session, season: Season, week_number: int, actor_id: Optional[str] = None) -> List[AdvantageAward]:
    """
    發放某一週的 award slots（不 commit，給 ResultsManager 共用）

    前置條件：
    1. 賽季已經到 VOTING（含之後），且 week_number 不超過當週

    流程：
    1. 已經發放過：直接返回既有的 awards（idempotent）
    2. 讀取已關閉的投票 -> 偵測 sweep
    3. 讀取本週名次
    4. 依發放設定規劃 slots，寫入 AdvantageAward（advantage_code 尚未指定）

    異常：
        InvalidTransition: 還沒到 VOTING，或 week 超過當週
    """
    # 1. Idempotent
    existing = db.query(AdvantageAward).filter(
        AdvantageAward.season_id == season.id,
        AdvantageAward.earned_week == week_number
    ).order_by(AdvantageAward.created_at).all()
    if existing:
        return existing

    if phase_order(season.current_phase) < phase_order(SeasonPhase.VOTING) or week_number > season.current_week:
        raise InvalidTransition(
            f"Advantages for week {week_number} cannot be awarded in {season.current_phase.value} "
            f"(week {season.current_week})"
        )

    settings = get_distribution_settings(db, season.id)

    # 2. Sweeps
    total_players = db.query(SeasonPlayer).filter(SeasonPlayer.season_id == season.id).count()
    session = db.query(VotingSession).filter(
        VotingSession.season_id == season.id,
        VotingSession.week_number == week_number,
        VotingSession.status == VotingStatus.CLOSED
    ).first()
    sweeps = {}
    if session:
        votes = [
            (vote.category_id, vote.nominated_player_id)
            for vote in db.query(Vote).filter(Vote.session_id == session.id).all()
        ]
        sweeps = detect_sweeps(votes, session.categories, total_players)

    # 3. Placements
    placements = dict(
        db.query(WeeklyResult.season_player_id, WeeklyResult.placement).filter(
            WeeklyResult.season_id == season.id,
            WeeklyResult.week_number == week_number
        ).all()
    )

    # 4. 規劃並寫入
    planned = plan_week_awards(
        week_number,
        sweeps,
        placements,
        placement_rewards=settings.placement_rewards,
        sweep_rewards=settings.sweep_rewards,
        sweeps_stack=settings.sweeps_stack,
        max_sweep_advantages_per_week=settings.max_sweep_advantages_per_week,
        cooldown_by_tier=settings.cooldown_by_tier
    )

    awards = []
    for plan in planned:
        award = AdvantageAward(
            season_id=season.id,
            season_player_id=plan.season_player_id,
            tier=plan.tier,
            awarded_via=plan.source,
            earned_week=week_number,
            can_use_after_week=plan.can_use_after_week,
            placement=plan.placement,
            sweep_category_id=plan.sweep_category_id
        )
        db.add(award)
        awards.append(award)
    db.flush()

    logger.info(f"Season {season.id}: issued {len(awards)} advantage award(s) for week {week_number}")

    event_log.record(db, season.id, "ADVANTAGES_AWARDED", {
        "week_number": week_number,
        "award_count": len(awards),
        "sweep_count": sum(len(player_sweeps) for player_sweeps in sweeps.values())
    }, actor_id)

    return awards


class AdvantageManager:
    """Advantage 管理器"""

    @staticmethod
    @transactional
    def award_weekly_advantages(db: Session, season_id: str, week_number: int, actor_id: str) -> List[AdvantageAward]:
        """
        Commissioner 手動觸發某週的發放（通常由 ResultsManager 自動觸發）

        異常：
            Unauthorized / InvalidTransition
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)
        return issue_week_awards(db, season, week_number, actor_id)

    @staticmethod
    @transactional
    def assign_starting_advantage(
        db: Session,
        season_id: str,
        season_player_id: str,
        advantage_code: str,
        actor_id: str
    ) -> PlayerInventory:
        """
        指定一個起始 advantage

        前置條件：
        1. 賽季在 ADVANTAGE_SELECTION
        2. actor 是玩家本人或 commissioner
        3. Advantage 在賽季看板上
        4. 玩家還沒有這個 code
        5. 玩家在這個 tier 的起始 advantage 數量 < 賽季上限

        異常：
            InvalidTransition / PlayerNotFound / Unauthorized / AdvantageNotFound
            AlreadyExists: 已持有同一個 code
            CapacityExceeded: 超過 tier 上限
        """
        season = lock_season(db, season_id)
        if season.current_phase != SeasonPhase.ADVANTAGE_SELECTION:
            raise InvalidTransition(
                f"Starting advantages can only be assigned during ADVANTAGE_SELECTION, "
                f"current phase: {season.current_phase.value}"
            )

        _get_player(db, season_id, season_player_id)
        if not acts_for(db, season, actor_id, season_player_id):
            raise Unauthorized(f"{actor_id} cannot pick advantages for player {season_player_id}")

        definition = _get_definition(db, season_id, advantage_code)

        if _holds_code(db, season_player_id, advantage_code):
            raise AlreadyExists(f"Player {season_player_id} already holds advantage {advantage_code}")

        held_in_tier = db.query(PlayerInventory).filter(
            PlayerInventory.season_player_id == season_player_id,
            PlayerInventory.earned_via == EarnedVia.STARTING,
            PlayerInventory.tier == definition.tier
        ).count()
        cap = season.tier_cap(definition.tier)
        if held_in_tier >= cap:
            raise CapacityExceeded(
                f"Player {season_player_id} already has {held_in_tier} tier {definition.tier} "
                f"starting advantage(s), limit is {cap}"
            )

        item = PlayerInventory(
            season_id=season_id,
            season_player_id=season_player_id,
            advantage_code=advantage_code,
            tier=definition.tier,
            status=InventoryStatus.AVAILABLE,
            earned_week=0,
            earned_via=EarnedVia.STARTING,
            can_use_after_week=0
        )
        db.add(item)
        db.flush()

        event_log.record(db, season_id, "ADVANTAGE_ASSIGNED", {
            "season_player_id": season_player_id,
            "advantage_code": advantage_code,
            "tier": definition.tier
        }, actor_id)

        return item

    @staticmethod
    @transactional
    def assign_weekly_advantage(db: Session, award_id: str, advantage_code: str, actor_id: str) -> PlayerInventory:
        """
        為每週 award slot 指定 code

        流程：
        1. 驗證 tier 相符、玩家沒有持有同一個 code
        2. Award 記錄 code（PendingSlot -> SelectedSlot）
        3. 更新或建立對應的 inventory（保留 award 的 cooldown）

        異常：
            AwardNotFound / Unauthorized / AdvantageNotFound / AlreadyExists
            TierMismatch: code 的 tier 和 slot 不同
        """
        award = db.query(AdvantageAward).filter(AdvantageAward.id == award_id).first()
        if not award:
            raise AwardNotFound(award_id)

        season = lock_season(db, award.season_id)
        require_commissioner(db, season, actor_id)

        definition = _get_definition(db, season.id, advantage_code)
        if definition.tier != award.tier:
            raise TierMismatch(advantage_code, award.tier, definition.tier)

        if _holds_code(db, award.season_player_id, advantage_code, exclude_award_id=award.id):
            raise AlreadyExists(f"Player {award.season_player_id} already holds advantage {advantage_code}")

        award.advantage_code = advantage_code

        item = db.query(PlayerInventory).filter(PlayerInventory.award_id == award.id).first()
        if item:
            item.advantage_code = advantage_code
            item.tier = award.tier
        else:
            item = PlayerInventory(
                season_id=season.id,
                season_player_id=award.season_player_id,
                advantage_code=advantage_code,
                tier=award.tier,
                status=InventoryStatus.AVAILABLE,
                earned_week=award.earned_week,
                earned_via=EarnedVia(award.awarded_via.value),
                can_use_after_week=award.can_use_after_week,
                award_id=award.id
            )
            db.add(item)
        db.flush()

        event_log.record(db, season.id, "WEEKLY_ADVANTAGE_ASSIGNED", {
            "award_id": award.id,
            "season_player_id": award.season_player_id,
            "advantage_code": advantage_code
        }, actor_id)

        return item

    @staticmethod
    @transactional
    def play_advantage(db: Session, inventory_id: str, actor_id: str) -> PlayerInventory:
        """
        使用 advantage

        條件：status 是 AVAILABLE，且 current_week > can_use_after_week

        異常：
            AdvantageNotFound / Unauthorized / InvalidTransition
            CapacityExceeded: 還在 cooldown
        """
        item = db.query(PlayerInventory).filter(PlayerInventory.id == inventory_id).first()
        if not item:
            raise AdvantageNotFound(inventory_id)

        season = lock_season(db, item.season_id)
        if not acts_for(db, season, actor_id, item.season_player_id):
            raise Unauthorized(f"{actor_id} cannot play advantages for player {item.season_player_id}")

        if item.status != InventoryStatus.AVAILABLE:
            raise InvalidTransition(f"Advantage {inventory_id} is {item.status.value}")

        if season.current_week <= item.can_use_after_week:
            raise CapacityExceeded(
                f"Advantage {item.advantage_code} is on cooldown until after week {item.can_use_after_week}"
            )

        item.status = InventoryStatus.PLAYED
        item.played_at_week = season.current_week

        event_log.record(db, season.id, "ADVANTAGE_PLAYED", {
            "inventory_id": item.id,
            "season_player_id": item.season_player_id,
            "advantage_code": item.advantage_code
        }, actor_id)

        return item

    @staticmethod
    @transactional
    def reset_starting_advantages(db: Session, season_id: str, actor_id: str) -> int:
        """刪除所有起始 advantage，返回刪除筆數"""
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        deleted = db.query(PlayerInventory).filter(
            PlayerInventory.season_id == season_id,
            PlayerInventory.earned_via == EarnedVia.STARTING
        ).delete(synchronize_session="fetch")

        event_log.record(db, season_id, "ADVANTAGES_RESET", {"deleted": deleted}, actor_id)

        return deleted

    @staticmethod
    @transactional
    def undo_week_awards(db: Session, season_id: str, week_number: int, actor_id: str) -> int:
        """撤銷某一週的 awards 與對應的 inventory，返回刪除的 award 數"""
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        award_ids = [
            award_id for (award_id,) in db.query(AdvantageAward.id).filter(
                AdvantageAward.season_id == season_id,
                AdvantageAward.earned_week == week_number
            ).all()
        ]
        if award_ids:
            db.query(PlayerInventory).filter(
                PlayerInventory.award_id.in_(award_ids)
            ).delete(synchronize_session="fetch")
            db.query(AdvantageAward).filter(
                AdvantageAward.id.in_(award_ids)
            ).delete(synchronize_session="fetch")

        event_log.record(db, season_id, "WEEKLY_ADVANTAGES_UNDONE", {
            "week_number": week_number,
            "deleted": len(award_ids)
        }, actor_id)

        return len(award_ids)

    @staticmethod
    def get_inventory(db: Session, season_player_id: str) -> List[PlayerInventory]:
        return db.query(PlayerInventory).filter(
            PlayerInventory.season_player_id == season_player_id
        ).order_by(PlayerInventory.earned_week, PlayerInventory.tier).all()

    @staticmethod
    def get_week_awards(db: Session, season_id: str, week_number: int) -> List[AdvantageAward]:
        return db.query(AdvantageAward).filter(
            AdvantageAward.season_id == season_id,
            AdvantageAward.earned_week == week_number
        ).order_by(AdvantageAward.created_at).all()
