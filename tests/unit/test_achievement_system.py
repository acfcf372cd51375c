"""Unit tests for Achievement System (pet_progression/gamification/achievement_system.py)"""
import pytest

from pet_progression.exceptions import AchievementNotFoundError, StoreReadError, ValidationError
from pet_progression.gamification.achievement_system import (
    ACHIEVEMENT_CATALOG,
    AchievementManager,
    compute_progress,
    get_catalog_entry,
)
from pet_progression.models.achievement import (
    AchievementCategory,
    AchievementStorageData,
    RarityTier,
    UnlockConditionType,
)
from pet_progression.models.health import HealthMetrics


# ============================================================================
# Catalog Tests
# ============================================================================

def test_catalog_ids_unique():
    """Test every achievement id appears once"""
    ids = [a.id for a in ACHIEVEMENT_CATALOG]
    assert len(ids) == len(set(ids))
    assert len(ids) == 16


def test_catalog_covers_every_category():
    """Test all five categories have entries"""
    categories = {a.category for a in ACHIEVEMENT_CATALOG}
    assert categories == set(AchievementCategory)


def test_get_catalog_entry():
    """Test catalog lookup by id"""
    entry = get_catalog_entry("steps_10000")
    assert entry.cosmetic_rewards == ["hat_crown"]
    assert get_catalog_entry("nope") is None


def test_compute_progress_rounds_half_up_and_caps():
    """Test percentage rounding and clamping"""
    assert compute_progress(2500, 10000).percentage == 25
    assert compute_progress(1, 8).percentage == 13  # 12.5 rounds up
    assert compute_progress(25000, 10000).percentage == 100
    assert compute_progress(0, 0).percentage == 100


# ============================================================================
# Unlock Tests
# ============================================================================

@pytest.mark.asyncio
async def test_unlock_new_achievement(achievements, clock):
    """Test first unlock reports cosmetics and stamps the time"""
    result = await achievements.unlock_achievement("steps_10000")

    assert result.is_new_unlock is True
    assert result.cosmetics_unlocked == ["hat_crown"]
    assert result.achievement.unlocked_at == clock.now
    assert result.achievement.progress.percentage == 100


@pytest.mark.asyncio
async def test_unlock_twice_is_noop(achievements, clock):
    """Test re-unlocking keeps the first timestamp and reports no cosmetics"""
    first = await achievements.unlock_achievement("streak_7")
    clock.advance(days=1)

    second = await achievements.unlock_achievement("streak_7")

    assert second.is_new_unlock is False
    assert second.cosmetics_unlocked == []
    assert second.achievement.unlocked_at == first.achievement.unlocked_at


@pytest.mark.asyncio
async def test_unlock_unknown_achievement(achievements):
    """Test unknown ids raise AchievementNotFoundError"""
    with pytest.raises(AchievementNotFoundError):
        await achievements.unlock_achievement("does_not_exist")


@pytest.mark.asyncio
async def test_unlock_by_condition_threshold(achievements):
    """Test condition unlocks every satisfied achievement of that type"""
    unlocked = await achievements.unlock_by_condition(UnlockConditionType.STREAK, 14)

    assert [ua.id for ua in unlocked] == ["streak_7", "streak_14"]
    assert not await achievements.is_achievement_earned("streak_30")


@pytest.mark.asyncio
async def test_unlock_by_condition_skips_earned(achievements):
    """Test already earned achievements are not returned again"""
    await achievements.unlock_by_condition(UnlockConditionType.CHALLENGE, 1)

    unlocked = await achievements.unlock_by_condition(UnlockConditionType.CHALLENGE, 5)

    assert [ua.id for ua in unlocked] == ["challenge_5"]


@pytest.mark.asyncio
async def test_check_milestone_unlocks_step_achievements(achievements):
    """Test 12000 steps unlocks the 5k and 10k milestones"""
    unlocked = await achievements.check_milestone(HealthMetrics(steps=12000))

    assert [ua.id for ua in unlocked] == ["steps_5000", "steps_10000"]
    progress = await achievements.get_achievement_progress("steps_15000")
    assert progress.current == 12000
    assert progress.percentage == 80


@pytest.mark.asyncio
async def test_check_milestone_keeps_best_day(achievements):
    """Test progress keeps the best single day"""
    await achievements.check_milestone(HealthMetrics(steps=4000))
    await achievements.check_milestone(HealthMetrics(steps=1000))

    progress = await achievements.get_achievement_progress("steps_5000")
    assert progress.current == 4000
    assert progress.percentage == 80


@pytest.mark.asyncio
async def test_check_milestone_ignores_other_conditions(achievements):
    """Test metric checks only touch step achievements"""
    await achievements.check_milestone(HealthMetrics(steps=40000))

    assert not await achievements.is_achievement_earned("streak_7")
    assert not await achievements.is_achievement_earned("explore_evolution")


# ============================================================================
# Progress Tests
# ============================================================================

@pytest.mark.asyncio
async def test_update_progress(achievements):
    """Test manual progress updates"""
    progress = await achievements.update_progress("challenge_5", 2)

    assert progress.current == 2
    assert progress.target == 5
    assert progress.percentage == 40


@pytest.mark.asyncio
async def test_update_progress_rejects_negative(achievements):
    """Test negative progress raises ValidationError"""
    with pytest.raises(ValidationError):
        await achievements.update_progress("challenge_5", -1)


@pytest.mark.asyncio
async def test_update_progress_earned_stays_complete(achievements):
    """Test earned achievements stay at 100%"""
    await achievements.unlock_achievement("challenge_5")

    progress = await achievements.update_progress("challenge_5", 1)

    assert progress.percentage == 100


@pytest.mark.asyncio
async def test_get_progress_unknown(achievements):
    """Test progress lookup for unknown id raises"""
    with pytest.raises(AchievementNotFoundError):
        await achievements.get_achievement_progress("nope")


# ============================================================================
# Query & Filter Tests
# ============================================================================

@pytest.mark.asyncio
async def test_get_all_in_catalog_order(achievements):
    """Test full listing is in catalog order"""
    all_achievements = await achievements.get_all_achievements()

    assert [ua.id for ua in all_achievements] == [a.id for a in ACHIEVEMENT_CATALOG]
    assert not any(ua.is_earned for ua in all_achievements)


@pytest.mark.asyncio
async def test_get_achievement_by_id(achievements):
    """Test lookup by id returns None for unknown ids"""
    assert (await achievements.get_achievement_by_id("streak_7")).id == "streak_7"
    assert await achievements.get_achievement_by_id("nope") is None


@pytest.mark.asyncio
async def test_filter_by_status_and_category(achievements):
    """Test combined filters"""
    await achievements.unlock_achievement("streak_7")

    earned = await achievements.filter_achievements(status="earned")
    locked_streaks = await achievements.filter_achievements(
        category=AchievementCategory.STREAK_REWARDS, status="locked"
    )
    legendary = await achievements.filter_achievements(rarity=RarityTier.LEGENDARY)

    assert [ua.id for ua in earned] == ["streak_7"]
    assert [ua.id for ua in locked_streaks] == ["streak_14", "streak_30", "streak_60", "streak_90"]
    assert {ua.id for ua in legendary} == {"steps_30000", "streak_90"}


@pytest.mark.asyncio
async def test_filter_invalid_status(achievements):
    """Test unknown status raises ValidationError"""
    with pytest.raises(ValidationError):
        await achievements.filter_achievements(status="pending")


@pytest.mark.asyncio
async def test_get_by_category(achievements):
    """Test category listing"""
    exploration = await achievements.get_achievements_by_category(AchievementCategory.EXPLORATION)
    assert [ua.id for ua in exploration] == ["explore_customization", "explore_evolution"]


# ============================================================================
# Statistics Tests
# ============================================================================

@pytest.mark.asyncio
async def test_statistics_empty(achievements):
    """Test statistics with nothing earned"""
    stats = await achievements.get_statistics()

    assert stats.total_earned == 0
    assert stats.total_available == 16
    assert stats.completion_percentage == 0
    assert stats.rarest_badge is None
    assert stats.recent_unlocks == []


@pytest.mark.asyncio
async def test_statistics_rarest_and_recent(achievements, clock):
    """Test rarest badge and recent unlock ordering"""
    await achievements.unlock_achievement("steps_5000")
    clock.advance(hours=1)
    await achievements.unlock_achievement("streak_30")
    clock.advance(hours=1)
    await achievements.unlock_achievement("streak_14")

    stats = await achievements.get_statistics()

    assert stats.total_earned == 3
    assert stats.completion_percentage == 19  # 3/16 = 18.75
    assert stats.rarest_badge.id == "streak_30"
    assert [ua.id for ua in stats.recent_unlocks] == ["streak_14", "streak_30", "steps_5000"]


@pytest.mark.asyncio
async def test_rarest_badge_tie_goes_to_catalog_order(achievements):
    """Test equal rarity picks the earlier catalog entry"""
    await achievements.unlock_achievement("streak_60")
    await achievements.unlock_achievement("steps_20000")

    rarest = await achievements.get_rarest_badge()

    assert rarest.id == "steps_20000"


@pytest.mark.asyncio
async def test_recent_unlocks_limit(repository, clock):
    """Test recent unlocks honours the limit"""
    manager = AchievementManager(repository, clock=clock, recent_limit=2)
    for achievement_id in ["steps_5000", "steps_10000", "steps_15000"]:
        await manager.unlock_achievement(achievement_id)
        clock.advance(minutes=5)

    recent = await manager.get_recent_unlocks()

    assert [ua.id for ua in recent] == ["steps_15000", "steps_10000"]
    assert len(await manager.get_recent_unlocks(limit=3)) == 3


# ============================================================================
# Persistence Tests
# ============================================================================

@pytest.mark.asyncio
async def test_state_survives_reload(repository, clock):
    """Test earned achievements and progress are persisted"""
    manager = AchievementManager(repository, clock=clock)
    await manager.check_milestone(HealthMetrics(steps=12000))

    reloaded = AchievementManager(repository, clock=clock)

    assert await reloaded.is_achievement_earned("steps_10000")
    assert (await reloaded.get_achievement_progress("steps_15000")).current == 12000


@pytest.mark.asyncio
async def test_read_failure_keeps_earned_achievements(store, repository, clock):
    """Test an unreadable store never overwrites earned achievements"""
    manager = AchievementManager(repository, clock=clock)
    await manager.check_milestone(HealthMetrics(steps=12000))
    for achievement_id in ("streak_7", "challenge_first"):
        await manager.unlock_achievement(achievement_id)
    saved = await store.get("test:achievements")

    restarted = AchievementManager(repository, clock=clock)
    store.fail_next_reads(3)
    with pytest.raises(StoreReadError):
        await restarted.unlock_achievement("explore_customization")

    assert await store.get("test:achievements") == saved

    # The next call reads the stored state and keeps building on it
    result = await restarted.unlock_achievement("explore_customization")
    assert result.is_new_unlock is True
    earned = {ua.id for ua in await AchievementManager(repository, clock=clock).get_earned_achievements()}
    assert earned == {"steps_5000", "steps_10000", "streak_7", "challenge_first", "explore_customization"}


@pytest.mark.asyncio
async def test_invalid_blob_starts_empty(store, repository, clock):
    """Test a schema-invalid blob is ignored"""
    await store.set("test:achievements", {"achievements": "broken"})

    manager = AchievementManager(repository, clock=clock)

    assert await manager.get_earned_achievements() == []


@pytest.mark.asyncio
async def test_unknown_stored_ids_dropped(store, repository, clock):
    """Test state for ids outside the catalog is dropped on load"""
    data = AchievementStorageData(
        achievements=[{"id": "retired_badge", "unlocked_at": clock.now}],
        last_updated=clock.now
    )
    await store.set("test:achievements", data.model_dump(mode="json"))

    manager = AchievementManager(repository, clock=clock)

    assert (await manager.get_statistics()).total_earned == 0


@pytest.mark.asyncio
async def test_lost_write_keeps_memory_state(store, repository, clock):
    """Test a failed write does not roll back the in-memory unlock"""
    manager = AchievementManager(repository, clock=clock)
    await manager.initialize()
    store.fail_next_writes(10)

    result = await manager.unlock_achievement("steps_5000")

    assert result.is_new_unlock is True
    assert await manager.is_achievement_earned("steps_5000")
    assert await store.get("test:achievements") is None


@pytest.mark.asyncio
async def test_reset(achievements, clock):
    """Test reset forgets everything"""
    await achievements.unlock_achievement("steps_5000")
    clock.advance(days=1)

    await achievements.reset()

    assert await achievements.get_earned_achievements() == []
    assert (await achievements.unlock_achievement("steps_5000")).is_new_unlock is True
    assert (await achievements.get_recent_unlocks())[0].unlocked_at == clock.now
