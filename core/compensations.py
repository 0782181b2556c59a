"""
Compensating actions：rollback 類操作共用的清除步驟

每個函式都是 idempotent（重複執行結果相同），不 commit，
由呼叫者的 @transactional 包成一個 unit of work

統一簽名：fn(db, season, week) -> int（影響筆數），不需要 week 的函式忽略它
"""
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Dict
import logging

from models import (
    Season, SeasonPlayer, DraftState, DraftSelection, DraftPrompt, PromptStatus,
    Artist, RosterEntry, RosterStatus, AcquiredVia, PoolEntry, PoolStatus,
    RosterEvolutionState, PlayerInventory, EarnedVia, AdvantageAward,
    ChallengeSelection, ChallengeReveal, PresentationState, VotingSession, Vote,
    WeeklyResult
)

logger = logging.getLogger(__name__)


def is_preserved_entry(entry: RosterEntry) -> bool:
    """選秀取得的 entry（或第 0 週取得的 entry）永遠不會被週次 rollback 刪除"""
    return entry.acquired_via == AcquiredVia.DRAFT or entry.acquired_at_week == 0


# ============ Draft ============

def clear_draft_positions(db: Session, season: Season, week: int = 0) -> int:
    return db.query(SeasonPlayer).filter(
        SeasonPlayer.season_id == season.id
    ).update({SeasonPlayer.draft_position: None}, synchronize_session="fetch")


def delete_draft_state(db: Session, season: Season, week: int = 0) -> int:
    return db.query(DraftState).filter(
        DraftState.season_id == season.id
    ).delete(synchronize_session="fetch")


def delete_draft_selections(db: Session, season: Season, week: int = 0) -> int:
    return db.query(DraftSelection).filter(
        DraftSelection.season_id == season.id
    ).delete(synchronize_session=False)


def reopen_prompts(db: Session, season: Season, week: int = 0) -> int:
    return db.query(DraftPrompt).filter(
        DraftPrompt.season_id == season.id
    ).update({
        DraftPrompt.status: PromptStatus.OPEN,
        DraftPrompt.selected_by_player_id: None,
        DraftPrompt.selected_at_round: None
    }, synchronize_session="fetch")


def rebuild_draft_state_from_positions(db: Session, season: Season, week: int = 0) -> int:
    """
    依 draft_position 重建 DraftState（round 1、index 0）

    沒有任何 draft_position 時不建立（之後由 initialize 重新隨機）
    """
    players = db.query(SeasonPlayer).filter(
        SeasonPlayer.season_id == season.id,
        SeasonPlayer.draft_position.isnot(None)
    ).order_by(SeasonPlayer.draft_position).all()

    if not players:
        return 0

    delete_draft_state(db, season)
    db.add(DraftState(
        season_id=season.id,
        current_round=1,
        current_picker_index=0,
        draft_order=[player.id for player in players],
        is_complete=False
    ))
    return 1


# ============ Roster / Pool ============

def delete_all_roster_entries(db: Session, season: Season, week: int = 0) -> int:
    return db.query(RosterEntry).filter(
        RosterEntry.season_id == season.id
    ).delete(synchronize_session="fetch")


def delete_all_pool_entries(db: Session, season: Season, week: int = 0) -> int:
    return db.query(PoolEntry).filter(
        PoolEntry.season_id == season.id
    ).delete(synchronize_session="fetch")


def delete_all_artists(db: Session, season: Season, week: int = 0) -> int:
    """必須在 roster / pool entries 之後執行"""
    return db.query(Artist).filter(
        Artist.season_id == season.id
    ).delete(synchronize_session="fetch")


def delete_all_evolution_states(db: Session, season: Season, week: int = 0) -> int:
    return db.query(RosterEvolutionState).filter(
        RosterEvolutionState.season_id == season.id
    ).delete(synchronize_session="fetch")


def delete_evolution_states_from_week(db: Session, season: Season, week: int) -> int:
    return db.query(RosterEvolutionState).filter(
        RosterEvolutionState.season_id == season.id,
        RosterEvolutionState.week_number >= week
    ).delete(synchronize_session="fetch")


def reopen_evolution_prompts_from_week(db: Session, season: Season, week: int) -> int:
    """Redraft 用過（RETIRED）的 prompt 回到 OPEN；必須在刪除 evolution states 之前執行"""
    prompt_ids = [
        prompt_id for (prompt_id,) in db.query(RosterEvolutionState.selected_prompt_id).filter(
            RosterEvolutionState.season_id == season.id,
            RosterEvolutionState.week_number >= week,
            RosterEvolutionState.selected_prompt_id.isnot(None)
        ).all()
    ]
    if not prompt_ids:
        return 0
    return db.query(DraftPrompt).filter(
        DraftPrompt.season_id == season.id,
        DraftPrompt.id.in_(prompt_ids),
        DraftPrompt.status == PromptStatus.RETIRED
    ).update({DraftPrompt.status: PromptStatus.OPEN}, synchronize_session="fetch")


def _delete_orphan_artists(db: Session, season: Season, artist_ids) -> int:
    deleted = 0
    for artist_id in set(artist_ids):
        in_roster = db.query(RosterEntry).filter(RosterEntry.artist_id == artist_id).count()
        in_pool = db.query(PoolEntry).filter(PoolEntry.artist_id == artist_id).count()
        if in_roster == 0 and in_pool == 0:
            deleted += db.query(Artist).filter(
                Artist.id == artist_id,
                Artist.season_id == season.id
            ).delete(synchronize_session="fetch")
    return deleted


def revert_roster_changes(db: Session, season: Season, week: int, only_this_week: bool = False) -> Dict[str, int]:
    """
    撤銷 week（或 week 之後）的陣容變動

    順序（不能調換）：
    1. Pool draft：DRAFTED -> AVAILABLE，刪除選走者的 roster entry
    2. 其他非選秀取得的 entry（redraft）：刪除 entry，沒有其他引用的 artist 一併刪除
    3. Cut：entry 回到 ACTIVE，刪除當週進入 pool 的 entry
    4. 當週 banish 的 pool entry 回到 AVAILABLE

    選秀 entry（is_preserved_entry）永遠保留

    參數：
        only_this_week: True 時只處理 week 當週（roster evolution rollback），
                        False 時處理 week 與之後（checkpoint rollback）

    返回：
        各步驟影響筆數
    """
    def in_range(column):
        return column == week if only_this_week else column >= week

    counts = {"pool_drafts_reverted": 0, "redrafts_deleted": 0, "cuts_restored": 0, "banishments_reverted": 0}

    # 1. Pool draft
    drafted = db.query(PoolEntry).filter(
        PoolEntry.season_id == season.id,
        PoolEntry.status == PoolStatus.DRAFTED,
        in_range(PoolEntry.drafted_at_week)
    ).all()
    for pool_entry in drafted:
        entries = db.query(RosterEntry).filter(
            RosterEntry.season_id == season.id,
            RosterEntry.artist_id == pool_entry.artist_id,
            RosterEntry.season_player_id == pool_entry.drafted_by_player_id,
            RosterEntry.acquired_via == AcquiredVia.POOL,
            RosterEntry.acquired_at_week == pool_entry.drafted_at_week
        ).all()
        for entry in entries:
            if not is_preserved_entry(entry):
                db.delete(entry)
        pool_entry.status = PoolStatus.AVAILABLE
        pool_entry.drafted_by_player_id = None
        pool_entry.drafted_at_week = None
        counts["pool_drafts_reverted"] += 1
    db.flush()

    # 2. Redraft（以及其他非選秀取得的 entry）
    acquired = db.query(RosterEntry).filter(
        RosterEntry.season_id == season.id,
        in_range(RosterEntry.acquired_at_week)
    ).all()
    orphan_candidates = []
    for entry in acquired:
        if is_preserved_entry(entry):
            continue
        orphan_candidates.append(entry.artist_id)
        db.delete(entry)
        counts["redrafts_deleted"] += 1
    db.flush()
    _delete_orphan_artists(db, season, orphan_candidates)

    # 3. Cut
    cut_entries = db.query(RosterEntry).filter(
        RosterEntry.season_id == season.id,
        RosterEntry.status == RosterStatus.CUT,
        in_range(RosterEntry.cut_at_week)
    ).all()
    for entry in cut_entries:
        entry.status = RosterStatus.ACTIVE
        entry.cut_at_week = None
        counts["cuts_restored"] += 1

    db.query(PoolEntry).filter(
        PoolEntry.season_id == season.id,
        in_range(PoolEntry.entered_pool_week)
    ).delete(synchronize_session="fetch")
    db.flush()
    _delete_orphan_artists(db, season, orphan_candidates)

    # 4. Banish
    counts["banishments_reverted"] = db.query(PoolEntry).filter(
        PoolEntry.season_id == season.id,
        PoolEntry.status == PoolStatus.BANISHED,
        in_range(PoolEntry.banished_at_week)
    ).update({
        PoolEntry.status: PoolStatus.AVAILABLE,
        PoolEntry.banished_at_week: None
    }, synchronize_session="fetch")

    db.flush()
    return counts


def revert_roster_from_week(db: Session, season: Season, week: int) -> int:
    counts = revert_roster_changes(db, season, week)
    return sum(counts.values())


# ============ Advantages ============

def delete_all_advantages(db: Session, season: Season, week: int = 0) -> int:
    """Inventory 先刪（award_id 外鍵），再刪 awards"""
    deleted = db.query(PlayerInventory).filter(
        PlayerInventory.season_id == season.id
    ).delete(synchronize_session="fetch")
    deleted += db.query(AdvantageAward).filter(
        AdvantageAward.season_id == season.id
    ).delete(synchronize_session="fetch")
    return deleted


def delete_advantages_from_week(db: Session, season: Season, week: int) -> int:
    """STARTING inventory 是第 0 週取得的，不會被刪除"""
    deleted = db.query(PlayerInventory).filter(
        PlayerInventory.season_id == season.id,
        PlayerInventory.earned_via != EarnedVia.STARTING,
        PlayerInventory.earned_week >= week
    ).delete(synchronize_session="fetch")
    deleted += db.query(AdvantageAward).filter(
        AdvantageAward.season_id == season.id,
        AdvantageAward.earned_week >= week
    ).delete(synchronize_session="fetch")
    return deleted


# ============ Challenges / Presentation / Voting ============

def delete_all_challenge_data(db: Session, season: Season, week: int = 0) -> int:
    deleted = db.query(ChallengeSelection).filter(
        ChallengeSelection.season_id == season.id
    ).delete(synchronize_session=False)
    deleted += db.query(ChallengeReveal).filter(
        ChallengeReveal.season_id == season.id
    ).delete(synchronize_session=False)
    return deleted


def delete_challenge_data_from_week(db: Session, season: Season, week: int) -> int:
    deleted = db.query(ChallengeSelection).filter(
        ChallengeSelection.season_id == season.id,
        ChallengeSelection.week >= week
    ).delete(synchronize_session=False)
    deleted += db.query(ChallengeReveal).filter(
        ChallengeReveal.season_id == season.id,
        ChallengeReveal.revealed_at_week >= week
    ).delete(synchronize_session=False)
    return deleted


def _delete_presentation_and_voting(db: Session, season: Season, week_filter) -> int:
    deleted = db.query(PresentationState).filter(
        PresentationState.season_id == season.id,
        week_filter(PresentationState.week_number)
    ).delete(synchronize_session=False)

    sessions = db.query(VotingSession).filter(
        VotingSession.season_id == season.id,
        week_filter(VotingSession.week_number)
    ).all()
    for session in sessions:
        deleted += db.query(Vote).filter(Vote.session_id == session.id).delete(synchronize_session=False)
        db.delete(session)
        deleted += 1
    db.flush()
    return deleted


def delete_week_presentation_and_voting(db: Session, season: Season, week: int) -> int:
    return _delete_presentation_and_voting(db, season, lambda column: column == week)


def delete_presentation_and_voting_from_week(db: Session, season: Season, week: int) -> int:
    return _delete_presentation_and_voting(db, season, lambda column: column >= week)


# ============ Results ============

def delete_results_from_week(db: Session, season: Season, week: int) -> int:
    """刪除 week 之後的週成績，並依剩下的成績重算 total_points"""
    deleted = db.query(WeeklyResult).filter(
        WeeklyResult.season_id == season.id,
        WeeklyResult.week_number >= week
    ).delete(synchronize_session=False)

    totals = dict(
        db.query(WeeklyResult.season_player_id, func.sum(WeeklyResult.victory_points))
        .filter(WeeklyResult.season_id == season.id)
        .group_by(WeeklyResult.season_player_id)
        .all()
    )
    for player in db.query(SeasonPlayer).filter(SeasonPlayer.season_id == season.id).all():
        player.total_points = int(totals.get(player.id) or 0)

    return deleted
