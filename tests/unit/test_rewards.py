"""Unit tests for reward distribution and unlock notifications"""
import pytest
from unittest.mock import AsyncMock

from pet_progression.exceptions import AchievementNotFoundError
from pet_progression.gamification.achievement_system import get_catalog_entry
from pet_progression.gamification.cosmetics import get_catalog_cosmetic
from pet_progression.gamification.notifications import (
    CollectingNotifier,
    LoggingNotifier,
    UnlockNotifier,
    build_achievement_event,
    build_cosmetic_event,
    format_unlock_message,
)
from pet_progression.gamification.rewards import RewardDistributor, UnlockSink
from pet_progression.models.achievement import RarityTier, UnlockConditionType
from pet_progression.models.health import HealthMetrics
from pet_progression.models.progression import UnlockEventType


# ============================================================================
# Event Builder Tests
# ============================================================================

def test_streak_achievement_event(clock):
    """Test streak rewards are announced as streak milestones"""
    event = build_achievement_event(get_catalog_entry("streak_14"), clock.now)

    assert event.type == UnlockEventType.STREAK_MILESTONE
    assert event.title == "14-day streak!"
    assert event.subject_id == "streak_14"
    assert event.rarity == RarityTier.RARE


def test_regular_achievement_event(clock):
    """Test other achievements use the generic event"""
    event = build_achievement_event(get_catalog_entry("steps_10000"), clock.now)

    assert event.type == UnlockEventType.ACHIEVEMENT
    assert event.title == "Achievement unlocked!"
    assert "Step Champion" in event.message


def test_cosmetic_event(clock):
    """Test cosmetic unlock event payload"""
    event = build_cosmetic_event(get_catalog_cosmetic("hat_crown"), clock.now)

    assert event.type == UnlockEventType.COSMETIC_UNLOCK
    assert event.icon_url == "cosmetics/hat_crown.png"
    assert event.created_at == clock.now


def test_format_unlock_message(clock):
    """Test celebration text carries header and rarity"""
    streak = format_unlock_message(build_achievement_event(get_catalog_entry("streak_90"), clock.now))
    cosmetic = format_unlock_message(build_cosmetic_event(get_catalog_cosmetic("hat_crown"), clock.now))

    assert "STREAK MILESTONE" in streak
    assert "Legendary" in streak
    assert "NEW COSMETIC" in cosmetic
    assert "Common" in cosmetic


def test_notifiers_match_protocol():
    """Test bundled notifiers satisfy UnlockNotifier"""
    assert isinstance(LoggingNotifier(), UnlockNotifier)
    assert isinstance(CollectingNotifier(), UnlockNotifier)


@pytest.mark.asyncio
async def test_logging_notifier(clock):
    """Test logging notifier accepts events"""
    await LoggingNotifier().notify(build_cosmetic_event(get_catalog_cosmetic("hat_crown"), clock.now))


# ============================================================================
# Distributor Tests
# ============================================================================

def test_distributor_is_unlock_sink(distributor):
    """Test distributor satisfies the UnlockSink protocol"""
    assert isinstance(distributor, UnlockSink)


@pytest.mark.asyncio
async def test_unlock_grants_cosmetics_and_notifies(distributor, cosmetics, notifier):
    """Test a new unlock adds reward cosmetics and emits events"""
    result = await distributor.unlock_achievement("special_halloween")

    assert result.is_new_unlock is True
    assert await cosmetics.is_owned("hat_witch")
    assert await cosmetics.is_owned("background_haunted")
    assert [e.subject_id for e in notifier.events] == [
        "special_halloween", "hat_witch", "background_haunted"
    ]

    batch = distributor.collect()
    assert batch.achievements == ["special_halloween"]
    assert batch.cosmetics == ["hat_witch", "background_haunted"]
    assert len(batch.events) == 3


@pytest.mark.asyncio
async def test_repeat_unlock_emits_nothing(distributor, notifier):
    """Test re-unlocking does not grant or notify again"""
    await distributor.unlock_achievement("steps_10000")
    distributor.collect()
    notifier.events.clear()

    result = await distributor.unlock_achievement("steps_10000")

    assert result.is_new_unlock is False
    assert notifier.events == []
    assert distributor.collect().achievements == []


@pytest.mark.asyncio
async def test_unlock_unknown_propagates(distributor):
    """Test unknown achievement ids still raise"""
    with pytest.raises(AchievementNotFoundError):
        await distributor.unlock_achievement("nope")


@pytest.mark.asyncio
async def test_collect_starts_new_batch(distributor):
    """Test collect empties the pending batch"""
    await distributor.unlock_achievement("steps_5000")

    first = distributor.collect()
    second = distributor.collect()

    assert first.achievements == ["steps_5000"]
    assert second.achievements == []


@pytest.mark.asyncio
async def test_check_milestone_distributes(distributor, cosmetics):
    """Test metric unlocks grant their cosmetics"""
    unlocked = await distributor.check_milestone(HealthMetrics(steps=15500))

    assert [ua.id for ua in unlocked] == ["steps_5000", "steps_10000", "steps_15000"]
    batch = distributor.collect()
    assert batch.cosmetics == ["hat_crown", "accessory_medal"]
    assert await cosmetics.is_owned("accessory_medal")


@pytest.mark.asyncio
async def test_unlock_by_condition_distributes(distributor):
    """Test condition unlocks grant their cosmetics"""
    await distributor.unlock_by_condition(UnlockConditionType.EVOLUTION, 1)

    batch = distributor.collect()
    assert batch.achievements == ["explore_evolution"]
    assert batch.cosmetics == ["background_evolution"]


@pytest.mark.asyncio
async def test_already_owned_cosmetic_not_reported(distributor, cosmetics):
    """Test cosmetics already in the inventory are not reported again"""
    await cosmetics.add_to_inventory_by_id("hat_crown")

    await distributor.unlock_achievement("steps_10000")

    assert distributor.collect().cosmetics == []


@pytest.mark.asyncio
async def test_notifier_failure_is_logged(achievements, cosmetics, clock):
    """Test a failing notifier does not stop the unlock"""
    notifier = AsyncMock()
    notifier.notify.side_effect = RuntimeError("push service down")
    distributor = RewardDistributor(
        achievements, cosmetics, notifier=notifier, clock=clock, notifications_enabled=True
    )

    result = await distributor.unlock_achievement("steps_10000")

    assert result.is_new_unlock is True
    assert await cosmetics.is_owned("hat_crown")
    assert len(distributor.collect().events) == 2


@pytest.mark.asyncio
async def test_notifications_disabled(achievements, cosmetics, clock):
    """Test disabled notifications still record events"""
    notifier = CollectingNotifier()
    distributor = RewardDistributor(
        achievements, cosmetics, notifier=notifier, clock=clock, notifications_enabled=False
    )

    await distributor.unlock_achievement("steps_10000")

    assert notifier.events == []
    assert len(distributor.collect().events) == 2
