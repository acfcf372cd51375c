"""Unit tests for ProgressionService (pet_progression/services/progression_service.py)"""
import asyncio
import random
import pytest
from unittest.mock import AsyncMock, patch
from datetime import timedelta

from pet_progression.exceptions import AchievementNotFoundError, StoreReadError
from pet_progression.gamification.achievement_system import AchievementManager
from pet_progression.gamification.challenges import ChallengeTracker
from pet_progression.gamification.cosmetics import CosmeticInventory
from pet_progression.gamification.rewards import RewardDistributor
from pet_progression.gamification.streak_system import StreakTracker
from pet_progression.models.health import HealthMetrics
from pet_progression.services.container import ProgressionContainer, build_progression_service
from pet_progression.services.progression_service import EvolutionTracker, ProgressionService


@pytest.fixture
def service(container):
    return container.progression_service


# ============================================================================
# Pipeline Tests
# ============================================================================

@pytest.mark.asyncio
async def test_health_update_runs_all_steps(service, container, monday):
    """Test one update checks milestones, streak and challenges"""
    update = await service.handle_health_update(
        HealthMetrics(steps=12000, sleep_hours=7.5, hrv=45), True, day=monday
    )

    assert update.succeeded
    assert update.date == monday
    assert update.streak.new_streak == 1
    assert update.achievements_unlocked[:2] == ["steps_5000", "steps_10000"]
    assert "hat_crown" in update.cosmetics_unlocked
    assert len(await container.challenges.get_active_challenges()) == 3


@pytest.mark.asyncio
async def test_health_update_defaults_to_clock_day(service, clock):
    """Test the day defaults to the clock's UTC date"""
    update = await service.handle_health_update(HealthMetrics(steps=100), False)

    assert update.date == clock.now.date()


@pytest.mark.asyncio
async def test_health_update_accepts_date_key(service):
    """Test YYYY-MM-DD day keys are accepted"""
    update = await service.handle_health_update(HealthMetrics(steps=100), True, day="2024-01-16")

    assert str(update.date) == "2024-01-16"


@pytest.mark.asyncio
async def test_failed_step_does_not_stop_pipeline(service, container, monday):
    """Test a failing step is recorded and later steps still run"""
    with patch.object(
        container.distributor, "check_milestone", AsyncMock(side_effect=RuntimeError("boom"))
    ):
        update = await service.handle_health_update(HealthMetrics(steps=12000), True, day=monday)

    assert update.failed_steps == ["achievements"]
    assert update.succeeded is False
    assert update.streak.new_streak == 1
    assert len(await container.challenges.get_active_challenges()) == 3


@pytest.mark.asyncio
async def test_failed_challenge_step_recorded(service, container, monday):
    """Test challenge failures are isolated"""
    with patch.object(
        container.challenges, "ensure_weekly_challenges", AsyncMock(side_effect=RuntimeError("boom"))
    ):
        update = await service.handle_health_update(HealthMetrics(steps=100), True, day=monday)

    assert update.failed_steps == ["challenges"]
    assert update.streak.new_streak == 1


@pytest.mark.asyncio
async def test_evolution_tracker_called(store, notifier, clock, monday):
    """Test the optional evolution tracker receives each day"""
    tracker = AsyncMock(spec=EvolutionTracker)
    container = ProgressionContainer(store=store, notifier=notifier, clock=clock, evolution_tracker=tracker)
    metrics = HealthMetrics(steps=3000)

    await container.progression_service.handle_health_update(metrics, False, day=monday)

    tracker.track_daily_state.assert_awaited_once_with(monday, metrics, False)


@pytest.mark.asyncio
async def test_evolution_failure_recorded(store, notifier, clock, monday):
    """Test evolution failures are isolated"""
    tracker = AsyncMock(spec=EvolutionTracker)
    tracker.track_daily_state.side_effect = RuntimeError("evolution offline")
    container = ProgressionContainer(store=store, notifier=notifier, clock=clock, evolution_tracker=tracker)

    update = await container.progression_service.handle_health_update(
        HealthMetrics(steps=3000), True, day=monday
    )

    assert update.failed_steps == ["evolution"]


@pytest.mark.asyncio
async def test_week_data_drives_challenges(service, container, clock, monday, make_days):
    """Test week data and today's metrics both count toward challenges"""
    week = make_days(monday, steps=[9000, 9000], sleep=[8.0, 8.0], hrv=[50.0, 50.0])
    await service.handle_health_update(week[0], True, day=monday)

    clock.advance(days=2)
    today = HealthMetrics(steps=9000, sleep_hours=8.0, hrv=50.0)
    update = await service.handle_health_update(today, True, week_data=week, day=monday + timedelta(days=2))

    assert update.streak.new_streak == 1
    assert update.streak.was_reset is True
    for challenge in await container.challenges.get_active_challenges():
        assert challenge.start_date == monday


@pytest.mark.asyncio
async def test_concurrent_updates_are_serialized(service, container, monday):
    """Test concurrent deliveries do not interleave"""
    days = [monday + timedelta(days=i) for i in range(5)]

    await asyncio.gather(*[
        service.handle_health_update(HealthMetrics(steps=9000), True, day=day) for day in days
    ])

    # gather schedules in order, the lock keeps them in order
    assert await container.streaks.get_current_streak() == 5


# ============================================================================
# Trigger Tests
# ============================================================================

@pytest.mark.asyncio
async def test_first_equip_unlocks_customization(service, container):
    """Test equipping a cosmetic unlocks the customization achievement"""
    await container.cosmetics.add_to_inventory_by_id("hat_crown")

    assert await service.equip_cosmetic("hat_crown") is True
    assert await container.achievements.is_achievement_earned("explore_customization")


@pytest.mark.asyncio
async def test_equip_unowned_unlocks_nothing(service, container):
    """Test a failed equip does not unlock anything"""
    assert await service.equip_cosmetic("hat_crown") is False
    assert not await container.achievements.is_achievement_earned("explore_customization")


@pytest.mark.asyncio
async def test_unequip(service, container):
    """Test unequip through the service"""
    await container.cosmetics.add_to_inventory_by_id("hat_crown")
    await service.equip_cosmetic("hat_crown")

    assert await service.unequip_cosmetic("hat_crown") is True
    assert await container.cosmetics.get_equipped_cosmetics() == {}


@pytest.mark.asyncio
async def test_record_evolution(service, container):
    """Test evolution count unlocks exploration rewards"""
    assert await service.record_evolution(0) == []
    assert await service.record_evolution(1) == ["explore_evolution"]
    assert await container.cosmetics.is_owned("background_evolution")
    assert await service.record_evolution(2) == []


@pytest.mark.asyncio
async def test_trigger_special_event(service, container):
    """Test special events unlock by id"""
    result = await service.trigger_special_event("special_halloween")

    assert result.is_new_unlock is True
    assert await container.cosmetics.is_owned("hat_witch")

    with pytest.raises(AchievementNotFoundError):
        await service.trigger_special_event("special_unknown")


@pytest.mark.asyncio
async def test_reset_clears_everything(service, container, store, monday):
    """Test reset clears every subsystem"""
    await service.handle_health_update(HealthMetrics(steps=12000), True, day=monday)

    await service.reset()

    assert await container.streaks.get_current_streak() == 0
    assert await container.achievements.get_earned_achievements() == []
    assert (await container.cosmetics.get_inventory()).items == []
    assert await container.challenges.get_active_challenges() == []
    assert store.keys() == []


# ============================================================================
# Container Tests
# ============================================================================

def test_container_shares_components(container):
    """Test lazy components are created once"""
    assert container.achievements is container.achievements
    assert container.streaks.unlock_sink is container.distributor
    assert container.challenges.unlock_sink is container.distributor
    assert isinstance(container.progression_service, ProgressionService)


def test_build_progression_service(store, clock):
    """Test the factory wires a service around the given store"""
    service = build_progression_service(store=store, clock=clock)

    assert isinstance(service, ProgressionService)
    assert service.achievements.repository.store is store


@pytest.mark.asyncio
async def test_state_shared_through_store(store, clock, monday):
    """Test a second service on the same store sees persisted progress"""
    first = build_progression_service(store=store, clock=clock)
    await first.handle_health_update(HealthMetrics(steps=12000), True, day=monday)

    second = build_progression_service(store=store, clock=clock)
    await second.initialize()

    assert await second.streaks.get_current_streak() == 1
    assert await second.achievements.is_achievement_earned("steps_10000")
    assert await second.cosmetics.is_owned("hat_crown")


# ============================================================================
# Store Read Failure Tests
# ============================================================================

async def snapshot(store):
    return {key: await store.get(key) for key in store.keys()}


def service_on(repository, notifier, clock):
    """Service over fresh components that have not read the store yet"""
    achievements = AchievementManager(repository, clock=clock)
    cosmetics = CosmeticInventory(repository, clock=clock)
    distributor = RewardDistributor(
        achievements, cosmetics, notifier=notifier, clock=clock, notifications_enabled=True
    )
    streaks = StreakTracker(repository, unlock_sink=distributor, clock=clock)
    challenges = ChallengeTracker(repository, unlock_sink=distributor, clock=clock, rng=random.Random(7))
    return ProgressionService(achievements, streaks, challenges, cosmetics, distributor, clock=clock)


@pytest.mark.asyncio
async def test_unreadable_store_skips_update(repository, store, notifier, clock, monday):
    """Test an update is skipped without writes when state cannot be read"""
    await service_on(repository, notifier, clock).handle_health_update(
        HealthMetrics(steps=12000), True, day=monday
    )
    before = await snapshot(store)
    notifier.events.clear()

    restarted = service_on(repository, notifier, clock)
    store.fail_next_reads(3)
    update = await restarted.handle_health_update(
        HealthMetrics(steps=16000), True, day=monday + timedelta(days=1)
    )

    assert update.failed_steps == ["load"]
    assert update.streak is None
    assert update.achievements_unlocked == []
    assert notifier.events == []
    assert await snapshot(store) == before

    # The next update reads the stored progress and builds on it
    update = await restarted.handle_health_update(
        HealthMetrics(steps=16000), True, day=monday + timedelta(days=1)
    )
    assert update.succeeded
    assert update.streak.new_streak == 2
    assert "steps_15000" in update.achievements_unlocked
    assert "steps_10000" not in update.achievements_unlocked
    assert await restarted.cosmetics.is_owned("hat_crown")


@pytest.mark.asyncio
async def test_unreadable_store_fails_equip(repository, store, notifier, clock, monday):
    """Test equipping raises rather than overwriting unread rewards"""
    await service_on(repository, notifier, clock).handle_health_update(
        HealthMetrics(steps=12000), True, day=monday
    )
    before = await snapshot(store)

    restarted = service_on(repository, notifier, clock)
    store.fail_next_reads(3)
    with pytest.raises(StoreReadError):
        await restarted.equip_cosmetic("hat_crown")

    assert await snapshot(store) == before
    assert await restarted.equip_cosmetic("hat_crown") is True
    assert await restarted.achievements.is_achievement_earned("steps_10000")
    assert await restarted.achievements.is_achievement_earned("explore_customization")
