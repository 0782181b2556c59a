"""
Season Manager：管理 Season 的生命週期與 Phase Ledger 的對外操作

職責：
1. 建立 Season（每位聯盟成員一個 SeasonPlayer）
2. 賽前設定（選秀順序、起始 advantage 數量）
3. 推進 phase / 開季 / 推進週次（全部經過 SeasonStateMachine）
4. 查詢 Season 資訊
"""
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from models import (
    League, LeagueMember, Season, SeasonPlayer, SeasonPhase,
    RosterEvolutionSettings, AdvantageDistributionSettings
)
from core.state_machine import SeasonStateMachine
from core.locks import with_season_lock
from core.permissions import require_commissioner
from core.exceptions import (
    LeagueNotFound,
    SeasonNotFound,
    PlayerNotFound,
    Unauthorized,
    InvalidTransition,
    InvalidPlayerCount,
    CapacityExceeded
)
from core import event_log
from services.naming_service import generate_label_name
from services.evolution_phase_service import (
    default_week_types,
    DEFAULT_SELF_CUT_COUNT,
    DEFAULT_REDRAFT_COUNT,
    DEFAULT_POOL_DRAFT_WEEKS
)
from services.award_service import (
    DEFAULT_PLACEMENT_REWARDS,
    DEFAULT_SWEEP_REWARDS,
    DEFAULT_COOLDOWN_BY_TIER
)
from database import transactional

logger = logging.getLogger(__name__)


def lock_season(db: Session, season_id: str) -> Season:
    """取得並鎖定 Season，不存在時拋出 SeasonNotFound"""
    season = with_season_lock(season_id, db).first()
    if not season:
        raise SeasonNotFound(season_id)
    return season


class SeasonManager:
    """Season 生命週期管理器"""

    @staticmethod
    @transactional
    def create_season(
        db: Session,
        league_id: str,
        name: str,
        actor_id: str,
        roster_size: int = 8,
        total_weeks: int = 8
    ) -> Season:
        """
        建立新賽季

        流程：
        1. 驗證聯盟存在、actor 是 commissioner
        2. 建立 Season（PRESEASON、week 0、SEASON_SETUP）
        3. 每位聯盟成員建立一個 SeasonPlayer（label 名稱預設為「<名字>'s Label」）
        4. 建立預設的 roster evolution 與 advantage 發放設定
        5. 記錄事件

        參數：
            db: SQLAlchemy Session
            league_id: League id
            name: 賽季名稱
            actor_id: 操作者 user id
            roster_size: 選秀回合數（每位玩家的陣容大小）
            total_weeks: 賽季週數

        返回：
            新的 Season

        異常：
            LeagueNotFound: 聯盟不存在
            Unauthorized: actor 不是 commissioner
            InvalidPlayerCount: roster_size 不是正偶數（snake 以兩回合為一組）
        """
        # 1. 驗證
        league = db.query(League).filter(League.id == league_id).first()
        if not league:
            raise LeagueNotFound(league_id)
        if league.commissioner_id != actor_id:
            raise Unauthorized(f"Only the league commissioner can create seasons (actor: {actor_id})")
        if roster_size < 2 or roster_size % 2 != 0:
            raise InvalidPlayerCount(f"Roster size must be a positive even number, got {roster_size}")

        # 2. 建立 Season
        season = Season(
            league_id=league_id,
            name=name,
            roster_size=roster_size,
            total_weeks=total_weeks
        )
        db.add(season)
        db.flush()  # 取得 season.id

        # 3. 建立 SeasonPlayers
        members = db.query(LeagueMember).filter(
            LeagueMember.league_id == league_id
        ).order_by(LeagueMember.joined_at).all()

        for member in members:
            db.add(SeasonPlayer(
                season_id=season.id,
                user_id=member.user_id,
                label_name=generate_label_name(member.display_name)
            ))

        # 4. 預設設定
        db.add(RosterEvolutionSettings(
            season_id=season.id,
            week_types=default_week_types(total_weeks),
            self_cut_count=DEFAULT_SELF_CUT_COUNT,
            redraft_count=DEFAULT_REDRAFT_COUNT,
            pool_draft_weeks=list(DEFAULT_POOL_DRAFT_WEEKS)
        ))
        db.add(AdvantageDistributionSettings(
            season_id=season.id,
            placement_rewards=[dict(reward) for reward in DEFAULT_PLACEMENT_REWARDS],
            sweep_rewards=[dict(reward) for reward in DEFAULT_SWEEP_REWARDS],
            sweeps_stack=False,
            max_sweep_advantages_per_week=None,
            cooldown_by_tier=dict(DEFAULT_COOLDOWN_BY_TIER)
        ))
        db.flush()

        logger.info(f"Created season {season.id} for league {league_id} with {len(members)} players")

        # 5. 記錄事件
        event_log.record(db, season.id, "SEASON_CREATED", {
            "name": name,
            "player_count": len(members)
        }, actor_id)

        return season

    @staticmethod
    @transactional
    def reorder_season_players(db: Session, season_id: str, ordered_player_ids: List[str], actor_id: str) -> List[SeasonPlayer]:
        """
        設定選秀順序（draft_position = index + 1）

        前置條件：
        1. actor 是 commissioner
        2. 賽季還在 SEASON_SETUP
        3. ordered_player_ids 剛好是賽季的全部玩家

        異常：
            InvalidTransition: 不在 SEASON_SETUP
            PlayerNotFound: id 不屬於此賽季
            InvalidPlayerCount: 數量不符或有重複
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        if season.current_phase != SeasonPhase.SEASON_SETUP:
            raise InvalidTransition(
                f"Players can only be reordered during SEASON_SETUP, current phase: {season.current_phase.value}"
            )

        players = {
            player.id: player
            for player in db.query(SeasonPlayer).filter(SeasonPlayer.season_id == season_id).all()
        }
        for player_id in ordered_player_ids:
            if player_id not in players:
                raise PlayerNotFound(player_id)
        if len(set(ordered_player_ids)) != len(ordered_player_ids) or len(ordered_player_ids) != len(players):
            raise InvalidPlayerCount(
                f"Expected each of the {len(players)} players exactly once, got {len(ordered_player_ids)} ids"
            )

        for index, player_id in enumerate(ordered_player_ids):
            players[player_id].draft_position = index + 1

        event_log.record(db, season_id, "PLAYERS_REORDERED", {"order": list(ordered_player_ids)}, actor_id)

        return [players[player_id] for player_id in ordered_player_ids]

    @staticmethod
    @transactional
    def update_advantage_selection_config(
        db: Session,
        season_id: str,
        actor_id: str,
        tier1_count: Optional[int] = None,
        tier2_count: Optional[int] = None,
        tier3_count: Optional[int] = None
    ) -> Season:
        """
        更新起始 advantage 的每個 tier 上限（None 表示不變）

        異常：
            Unauthorized: actor 不是 commissioner
            CapacityExceeded: 數量是負數
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        updates = {"tier1_count": tier1_count, "tier2_count": tier2_count, "tier3_count": tier3_count}
        for field, value in updates.items():
            if value is not None and value < 0:
                raise CapacityExceeded(f"{field} must be non-negative, got {value}")

        for field, value in updates.items():
            if value is not None:
                setattr(season, field, value)

        event_log.record(db, season_id, "ADVANTAGE_SELECTION_CONFIG_UPDATED", {
            "tier1_count": season.tier1_count,
            "tier2_count": season.tier2_count,
            "tier3_count": season.tier3_count
        }, actor_id)

        return season

    @staticmethod
    @transactional
    def advance_phase(db: Session, season_id: str, target_phase, actor_id: str) -> Season:
        """
        推進賽季 phase（只能往前）

        異常：
            SeasonNotFound: 賽季不存在
            Unauthorized: actor 不是 commissioner
            InvalidPhase: 未知的 phase
            NotForward: 沒有往前
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)
        return SeasonStateMachine.transition(season, target_phase, db, actor_id)

    @staticmethod
    @transactional
    def start_season(db: Session, season_id: str, actor_id: str) -> Season:
        """開季（week 1、IN_PROGRESS）"""
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)
        return SeasonStateMachine.start_season(season, db, actor_id)

    @staticmethod
    @transactional
    def advance_week(db: Session, season_id: str, actor_id: str) -> Season:
        """
        一般週的週末：進入下一週

        Roster evolution 週必須經過 RosterEvolutionManager.complete，不能在這裡跳過

        異常：
            InvalidTransition: 賽季不在 IN_SEASON_WEEK_END
        """
        season = lock_season(db, season_id)
        require_commissioner(db, season, actor_id)

        if season.current_phase != SeasonPhase.IN_SEASON_WEEK_END:
            raise InvalidTransition(
                f"Week can only be advanced from IN_SEASON_WEEK_END, current phase: {season.current_phase.value}"
            )

        return SeasonStateMachine.advance_week(season, db, actor_id)

    @staticmethod
    def get_season(db: Session, season_id: str) -> Season:
        """
        透過 id 取得 Season

        異常：
            SeasonNotFound: Season 不存在
        """
        season = db.query(Season).filter(Season.id == season_id).first()
        if not season:
            raise SeasonNotFound(season_id)
        return season

    @staticmethod
    def get_players(db: Session, season_id: str) -> List[SeasonPlayer]:
        """賽季玩家，依 draft_position 排序（未設定的排在後面）"""
        return db.query(SeasonPlayer).filter(
            SeasonPlayer.season_id == season_id
        ).order_by(
            SeasonPlayer.draft_position.is_(None),
            SeasonPlayer.draft_position,
            SeasonPlayer.created_at
        ).all()
