"""Global test fixtures and utilities for progression engine tests"""
import random
import pytest
from datetime import date, datetime, timedelta
from typing import List

from pet_progression.gamification.achievement_system import AchievementManager
from pet_progression.gamification.challenges import ChallengeTracker
from pet_progression.gamification.cosmetics import CosmeticInventory
from pet_progression.gamification.notifications import CollectingNotifier
from pet_progression.gamification.rewards import RewardDistributor
from pet_progression.gamification.streak_system import StreakTracker
from pet_progression.models.health import DailyHealthRecord
from pet_progression.services.container import ProgressionContainer
from pet_progression.storage.repository import StateRepository
from pet_progression.storage.store import InMemoryStore
from pet_progression.utils.datetime_helpers import UTC


# ============================================================================
# Clock Fixtures
# ============================================================================

class FakeClock:
    """Settable UTC clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)

    def set_day(self, day: date, hour: int = 12) -> None:
        self.now = datetime(day.year, day.month, day.day, hour, tzinfo=UTC)


@pytest.fixture
def monday():
    """A Monday used as the start of the test week"""
    return date(2024, 1, 15)


@pytest.fixture
def clock(monday):
    """Clock pinned to midday of the test Monday"""
    return FakeClock(datetime(2024, 1, 15, 12, 0, tzinfo=UTC))


# ============================================================================
# Storage Fixtures
# ============================================================================

@pytest.fixture
def store():
    """Fresh in-memory key-value store"""
    return InMemoryStore()


@pytest.fixture
def repository(store):
    """State repository without backoff delays"""
    return StateRepository(store, key_prefix="test", max_retries=2, base_delay=0)


# ============================================================================
# Component Fixtures
# ============================================================================

@pytest.fixture
def achievements(repository, clock):
    return AchievementManager(repository, clock=clock)


@pytest.fixture
def cosmetics(repository, clock):
    return CosmeticInventory(repository, clock=clock)


@pytest.fixture
def notifier():
    """Notifier that records every unlock event"""
    return CollectingNotifier()


@pytest.fixture
def distributor(achievements, cosmetics, notifier, clock):
    return RewardDistributor(
        achievements, cosmetics, notifier=notifier, clock=clock, notifications_enabled=True
    )


@pytest.fixture
def streaks(repository, distributor, clock):
    return StreakTracker(repository, unlock_sink=distributor, clock=clock)


@pytest.fixture
def challenges(repository, distributor, clock):
    return ChallengeTracker(repository, unlock_sink=distributor, clock=clock, rng=random.Random(7))


@pytest.fixture
def container(store, notifier, clock):
    """Fully wired container around the shared store"""
    return ProgressionContainer(
        store=store,
        notifier=notifier,
        clock=clock,
        rng=random.Random(7)
    )


# ============================================================================
# Health Data Fixtures
# ============================================================================

def build_days(start: date, steps: List[int], sleep=None, hrv=None) -> List[DailyHealthRecord]:
    """Consecutive daily records starting at start"""
    records = []
    for offset, day_steps in enumerate(steps):
        records.append(DailyHealthRecord(
            date=start + timedelta(days=offset),
            steps=day_steps,
            sleep_hours=sleep[offset] if sleep else None,
            hrv=hrv[offset] if hrv else None
        ))
    return records


@pytest.fixture
def make_days():
    """Builder for consecutive daily records"""
    return build_days


@pytest.fixture
def full_history(monday):
    """Two weeks of history with every metric present"""
    start = monday - timedelta(days=14)
    return build_days(
        start,
        steps=[10000] * 14,
        sleep=[7.5] * 14,
        hrv=[50.0] * 14
    )
