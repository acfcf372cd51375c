"""
ProgressionService - Health-Data-Update Pipeline

Runs the progression engine for one incoming day of health metrics:
1. Achievement milestone check against the day's metrics
2. Streak continuity update from the day's qualifying state
3. Challenge progress recomputation from the day's and week's metrics
4. Long-horizon evolution tracking (optional external collaborator)

Every step is isolated: a failure is logged, recorded in the result and the
pipeline moves on. If any component state cannot be read, the whole update is
skipped so no step saves defaults over the stored state. Updates are serialized so concurrent deliveries cannot
interleave their read-modify-write cycles.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Protocol, Sequence, Union, runtime_checkable

from pet_progression.gamification.achievement_system import AchievementManager
from pet_progression.gamification.challenges import ChallengeTracker, merge_week_data
from pet_progression.gamification.cosmetics import CosmeticInventory
from pet_progression.gamification.rewards import RewardDistributor
from pet_progression.gamification.streak_system import StreakTracker
from pet_progression.exceptions import StorageError
from pet_progression.models.achievement import AchievementUnlockResult, UnlockConditionType
from pet_progression.models.health import DailyHealthRecord, HealthMetrics
from pet_progression.models.progression import ProgressionUpdate
from pet_progression.utils.datetime_helpers import coerce_date, now_utc

logger = logging.getLogger(__name__)

CUSTOMIZATION_ACHIEVEMENT = "explore_customization"


@runtime_checkable
class EvolutionTracker(Protocol):
    """External long-horizon tracker fed once per update"""

    async def track_daily_state(self, day: date, metrics: HealthMetrics, met_criteria: bool) -> None:
        ...


class ProgressionService:
    """
    Service for the progression pipeline.

    Responsibilities:
    - Ordering the four pipeline steps
    - Isolating step failures
    - Collecting everything unlocked during an update
    - Cosmetic equipment and non-metric unlock triggers
    """

    def __init__(
        self,
        achievements: AchievementManager,
        streaks: StreakTracker,
        challenges: ChallengeTracker,
        cosmetics: CosmeticInventory,
        distributor: RewardDistributor,
        evolution_tracker: Optional[EvolutionTracker] = None,
        clock: Callable[[], datetime] = now_utc
    ):
        self.achievements = achievements
        self.streaks = streaks
        self.challenges = challenges
        self.cosmetics = cosmetics
        self.distributor = distributor
        self.evolution_tracker = evolution_tracker
        self.clock = clock
        self._lock = asyncio.Lock()
        logger.debug("ProgressionService initialized")

    async def initialize(self) -> None:
        """Load every component's persisted state"""
        await self.achievements.initialize()
        await self.streaks.initialize()
        await self.challenges.initialize()
        await self.cosmetics.initialize()

    async def reset(self) -> None:
        """Full data reset of all progression state"""
        async with self._lock:
            await self.achievements.reset()
            await self.streaks.reset()
            await self.challenges.reset()
            await self.cosmetics.reset()
            self.distributor.collect()
            logger.info("All progression state reset")

    # ============================================
    # Health data pipeline
    # ============================================

    async def handle_health_update(
        self,
        metrics: HealthMetrics,
        met_criteria: bool,
        week_data: Sequence[DailyHealthRecord] = (),
        day: Optional[Union[str, date, datetime]] = None
    ) -> ProgressionUpdate:
        """
        Process one day of health metrics.

        Args:
            metrics: The day's steps, sleep and HRV
            met_criteria: Whether the day met the positive daily bar
            week_data: Per-day metrics for the current week so far
            day: Calendar day of the metrics (defaults to today, UTC)

        Returns:
            ProgressionUpdate listing unlocks, the streak change, completed
            challenges and any step that failed
        """
        async with self._lock:
            day = coerce_date(day) if day is not None else self.clock().date()
            today = DailyHealthRecord(date=day, **metrics.model_dump(exclude={"date"}))
            week = merge_week_data(today, week_data)
            result = ProgressionUpdate(date=day)

            # Nothing is written unless every component could be read
            try:
                await self.initialize()
            except StorageError as e:
                self._step_failed(result, "load", e)
                return result

            # Unlocks left over from calls outside the pipeline
            self.distributor.collect()

            # 1. Achievement milestones
            try:
                await self.distributor.check_milestone(metrics)
            except Exception as e:
                self._step_failed(result, "achievements", e)

            # 2. Streak continuity
            try:
                result.streak = await self.streaks.record_daily_progress(day, met_criteria)
            except Exception as e:
                self._step_failed(result, "streak", e)

            # 3. Challenge progress
            try:
                await self.challenges.ensure_weekly_challenges(week, today=day)
                streak_completion = await self.challenges.update_streak_progress(
                    await self.streaks.get_current_streak()
                )
                if streak_completion is not None:
                    result.challenges_completed.append(streak_completion)
                result.challenges_completed.extend(
                    await self.challenges.update_all_challenge_progress(today, week)
                )
            except Exception as e:
                self._step_failed(result, "challenges", e)

            # 4. Evolution tracking
            if self.evolution_tracker is not None:
                try:
                    await self.evolution_tracker.track_daily_state(day, metrics, met_criteria)
                except Exception as e:
                    self._step_failed(result, "evolution", e)

            batch = self.distributor.collect()
            result.achievements_unlocked = batch.achievements
            result.cosmetics_unlocked = batch.cosmetics

            logger.info(
                f"Health update for {day}: streak="
                f"{result.streak.new_streak if result.streak else 'n/a'}, "
                f"achievements={batch.achievements or 'none'}, "
                f"cosmetics={batch.cosmetics or 'none'}, "
                f"challenges={[c.challenge.id for c in result.challenges_completed] or 'none'}"
                + (f", failed={result.failed_steps}" if result.failed_steps else "")
            )
            return result

    @staticmethod
    def _step_failed(result: ProgressionUpdate, step: str, error: Exception) -> None:
        logger.error(f"Progression step '{step}' failed for {result.date}: {error}", exc_info=True)
        result.failed_steps.append(step)

    # ============================================
    # Customization and other triggers
    # ============================================

    async def _load_rewards(self) -> None:
        # Achievements and cosmetics are written together when a reward lands
        await self.achievements.initialize()
        await self.cosmetics.initialize()

    async def equip_cosmetic(self, cosmetic_id: str) -> bool:
        """
        Equip an owned cosmetic; the first successful equip unlocks
        the customization achievement

        Raises:
            StoreReadError: If achievement or cosmetic state cannot be read
        """
        async with self._lock:
            await self._load_rewards()
            equipped = await self.cosmetics.equip_cosmetic(cosmetic_id)
            if equipped:
                try:
                    await self.distributor.unlock_achievement(CUSTOMIZATION_ACHIEVEMENT)
                except Exception as e:
                    logger.error(f"Failed to unlock {CUSTOMIZATION_ACHIEVEMENT}: {e}", exc_info=True)
            return equipped

    async def unequip_cosmetic(self, cosmetic_id: str) -> bool:
        async with self._lock:
            return await self.cosmetics.unequip_cosmetic(cosmetic_id)

    async def record_evolution(self, evolution_count: int) -> List[str]:
        """
        Report how many times the pet has evolved

        Returns:
            Achievement ids newly unlocked

        Raises:
            StoreReadError: If achievement or cosmetic state cannot be read
        """
        async with self._lock:
            await self._load_rewards()
            unlocked = await self.distributor.unlock_by_condition(
                UnlockConditionType.EVOLUTION, evolution_count
            )
            return [ua.id for ua in unlocked]

    async def trigger_special_event(self, achievement_id: str) -> AchievementUnlockResult:
        """
        Unlock a special-event achievement by id

        Raises:
            AchievementNotFoundError: If achievement_id is not in the catalog
            StoreReadError: If achievement or cosmetic state cannot be read
        """
        async with self._lock:
            await self._load_rewards()
            return await self.distributor.unlock_achievement(achievement_id)
