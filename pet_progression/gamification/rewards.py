"""
Reward distribution

Streaks and challenges unlock achievements without knowing about cosmetics or
notifications: they talk to an UnlockSink. RewardDistributor is the sink used
by the progression service. It forwards every new unlock to the achievement
manager, grants the reward cosmetics, emits unlock events and remembers what
was unlocked until the caller collects it.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, runtime_checkable
from datetime import datetime
import logging

from pet_progression.config import ENABLE_UNLOCK_NOTIFICATIONS
from pet_progression.exceptions import CosmeticNotFoundError
from pet_progression.gamification.achievement_system import AchievementManager
from pet_progression.gamification.cosmetics import CosmeticInventory
from pet_progression.gamification.notifications import (
    UnlockNotifier,
    build_achievement_event,
    build_cosmetic_event,
)
from pet_progression.models.achievement import (
    AchievementUnlockResult,
    UnlockConditionType,
    UserAchievement,
)
from pet_progression.models.health import HealthMetrics
from pet_progression.models.progression import UnlockEvent
from pet_progression.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


@runtime_checkable
class UnlockSink(Protocol):
    """Where streak and challenge components send achievement unlocks"""

    async def unlock_achievement(self, achievement_id: str) -> AchievementUnlockResult:
        ...

    async def unlock_by_condition(
        self,
        condition_type: UnlockConditionType,
        value: float
    ) -> List[UserAchievement]:
        ...


@dataclass
class UnlockBatch:
    """Unlocks gathered since the last collect()"""
    achievements: List[str] = field(default_factory=list)
    cosmetics: List[str] = field(default_factory=list)
    events: List[UnlockEvent] = field(default_factory=list)


class RewardDistributor:
    """
    UnlockSink that also grants cosmetics and emits notifications.

    Example:
        distributor = RewardDistributor(achievements, cosmetics, LoggingNotifier())
        await distributor.unlock_achievement("streak_7")
        batch = distributor.collect()
        # batch.achievements == ["streak_7"], batch.cosmetics == ["hat_headband"]
    """

    def __init__(
        self,
        achievements: AchievementManager,
        cosmetics: CosmeticInventory,
        notifier: Optional[UnlockNotifier] = None,
        clock: Callable[[], datetime] = now_utc,
        notifications_enabled: bool = ENABLE_UNLOCK_NOTIFICATIONS
    ):
        self.achievements = achievements
        self.cosmetics = cosmetics
        self.notifier = notifier
        self.clock = clock
        self.notifications_enabled = notifications_enabled
        self._batch = UnlockBatch()

    def collect(self) -> UnlockBatch:
        """Return everything unlocked since the last call and start a new batch"""
        batch, self._batch = self._batch, UnlockBatch()
        return batch

    async def unlock_achievement(self, achievement_id: str) -> AchievementUnlockResult:
        result = await self.achievements.unlock_achievement(achievement_id)
        if result.is_new_unlock:
            await self._distribute(result.achievement, result.cosmetics_unlocked)
        return result

    async def unlock_by_condition(
        self,
        condition_type: UnlockConditionType,
        value: float
    ) -> List[UserAchievement]:
        unlocked = await self.achievements.unlock_by_condition(condition_type, value)
        for user_achievement in unlocked:
            await self._distribute(user_achievement, user_achievement.achievement.cosmetic_rewards)
        return unlocked

    async def check_milestone(self, metrics: HealthMetrics) -> List[UserAchievement]:
        unlocked = await self.achievements.check_milestone(metrics)
        for user_achievement in unlocked:
            await self._distribute(user_achievement, user_achievement.achievement.cosmetic_rewards)
        return unlocked

    async def _distribute(self, user_achievement: UserAchievement, cosmetic_ids: List[str]) -> None:
        self._batch.achievements.append(user_achievement.id)
        await self._emit(build_achievement_event(user_achievement.achievement, self.clock()))

        for cosmetic_id in cosmetic_ids:
            try:
                added = await self.cosmetics.add_to_inventory_by_id(cosmetic_id)
            except CosmeticNotFoundError:
                logger.error(
                    f"Achievement {user_achievement.id} rewards unknown cosmetic {cosmetic_id}, skipping"
                )
                continue
            if added:
                await self._record_cosmetic(cosmetic_id)

    async def _record_cosmetic(self, cosmetic_id: str) -> None:
        self._batch.cosmetics.append(cosmetic_id)
        cosmetic = self.cosmetics.get_catalog_cosmetic(cosmetic_id)
        if cosmetic is not None:
            await self._emit(build_cosmetic_event(cosmetic, self.clock()))

    async def _emit(self, event: UnlockEvent) -> None:
        self._batch.events.append(event)
        if not self.notifications_enabled or self.notifier is None:
            return
        try:
            await self.notifier.notify(event)
        except Exception as e:
            logger.error(f"Unlock notification for {event.subject_id} failed: {e}", exc_info=True)
