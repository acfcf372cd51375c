"""
Achievement System

Tracks and awards achievements across five categories:
- Health milestones (single-day step counts)
- Streak rewards (consecutive days meeting the health criteria)
- Challenge completion (weekly challenges finished)
- Exploration (customizing and evolving the pet)
- Special events (seasonal, triggered by id)

Features:
- Static catalog joined with a persisted per-user overlay
- Progress tracking for locked achievements
- Automatic detection for threshold-type conditions
- Cosmetic rewards reported on first unlock (granting them is the caller's job)
"""

from typing import Callable, Dict, List, Optional
from datetime import datetime
import logging

from pet_progression.config import RECENT_UNLOCKS_LIMIT
from pet_progression.exceptions import AchievementNotFoundError, ValidationError
from pet_progression.models.achievement import (
    Achievement,
    AchievementCategory,
    AchievementProgress,
    AchievementState,
    AchievementStatistics,
    AchievementStorageData,
    AchievementUnlockResult,
    ComparisonType,
    RarityTier,
    UnlockCondition,
    UnlockConditionType,
    UserAchievement,
)
from pet_progression.models.health import HealthMetrics
from pet_progression.resilience.metrics import record_unlock
from pet_progression.storage.repository import ACHIEVEMENTS_KEY, StateRepository
from pet_progression.utils.datetime_helpers import ensure_utc, now_utc, round_half_up

logger = logging.getLogger(__name__)


# ============================================
# Achievement Catalog
# ============================================

ACHIEVEMENT_CATALOG: List[Achievement] = [
    # ========== HEALTH MILESTONES (steps) ==========
    Achievement(
        id="steps_5000",
        name="First Steps",
        description="Walk 5,000 steps in a single day",
        category=AchievementCategory.HEALTH_MILESTONES,
        rarity=RarityTier.COMMON,
        icon_url="achievements/steps_5000.png",
        unlock_condition=UnlockCondition(type=UnlockConditionType.STEPS, threshold=5000),
        cosmetic_rewards=[]
    ),
    Achievement(
        id="steps_10000",
        name="Step Champion",
        description="Walk 10,000 steps in a single day",
        category=AchievementCategory.HEALTH_MILESTONES,
        rarity=RarityTier.COMMON,
        icon_url="achievements/steps_10000.png",
        unlock_condition=UnlockCondition(type=UnlockConditionType.STEPS, threshold=10000),
        cosmetic_rewards=["hat_crown"]
    ),
    Achievement(
        id="steps_15000",
        name="Marathon Walker",
        description="Walk 15,000 steps in a single day",
        category=AchievementCategory.HEALTH_MILESTONES,
        rarity=RarityTier.RARE,
        icon_url="achievements/steps_15000.png",
        unlock_condition=UnlockCondition(type=UnlockConditionType.STEPS, threshold=15000),
        cosmetic_rewards=["accessory_medal"]
    ),
    Achievement(
        id="steps_20000",
        name="Ultra Walker",
        description="Walk 20,000 steps in a single day",
        category=AchievementCategory.HEALTH_MILESTONES,
        rarity=RarityTier.EPIC,
        icon_url="achievements/steps_20000.png",
        unlock_condition=UnlockCondition(type=UnlockConditionType.STEPS, threshold=20000),
        cosmetic_rewards=["color_gold"]
    ),
    Achievement(
        id="steps_30000",
        name="Legendary Strider",
        description="Walk 30,000 steps in a single day",
        category=AchievementCategory.HEALTH_MILESTONES,
        rarity=RarityTier.LEGENDARY,
        icon_url="achievements/steps_30000.png",
        unlock_condition=UnlockCondition(type=UnlockConditionType.STEPS, threshold=30000),
        cosmetic_rewards=["theme_golden"]
    ),

    # ========== STREAK REWARDS ==========
    Achievement(
        id="streak_7",
        name="Week Warrior",
        description="Maintain a 7-day health streak",
        category=AchievementCategory.STREAK_REWARDS,
        rarity=RarityTier.COMMON,
        icon_url="achievements/streak_7.png",
        unlock_condition=UnlockCondition(
            type=UnlockConditionType.STREAK, threshold=7, comparison=ComparisonType.CONSECUTIVE
        ),
        cosmetic_rewards=["hat_headband"]
    ),
    Achievement(
        id="streak_14",
        name="Fortnight Fighter",
        description="Maintain a 14-day health streak",
        category=AchievementCategory.STREAK_REWARDS,
        rarity=RarityTier.RARE,
        icon_url="achievements/streak_14.png",
        unlock_condition=UnlockCondition(
            type=UnlockConditionType.STREAK, threshold=14, comparison=ComparisonType.CONSECUTIVE
        ),
        cosmetic_rewards=["accessory_cape"]
    ),
    Achievement(
        id="streak_30",
        name="Monthly Master",
        description="Maintain a 30-day health streak",
        category=AchievementCategory.STREAK_REWARDS,
        rarity=RarityTier.EPIC,
        icon_url="achievements/streak_30.png",
        unlock_condition=UnlockCondition(
            type=UnlockConditionType.STREAK, threshold=30, comparison=ComparisonType.CONSECUTIVE
        ),
        cosmetic_rewards=["background_stars"]
    ),
    Achievement(
        id="streak_60",
        name="Dedication Champion",
        description="Maintain a 60-day health streak",
        category=AchievementCategory.STREAK_REWARDS,
        rarity=RarityTier.EPIC,
        icon_url="achievements/streak_60.png",
        unlock_condition=UnlockCondition(
            type=UnlockConditionType.STREAK, threshold=60, comparison=ComparisonType.CONSECUTIVE
        ),
        cosmetic_rewards=["color_rainbow"]
    ),
    Achievement(
        id="streak_90",
        name="Legendary Dedication",
        description="Maintain a 90-day health streak",
        category=AchievementCategory.STREAK_REWARDS,
        rarity=RarityTier.LEGENDARY,
        icon_url="achievements/streak_90.png",
        unlock_condition=UnlockCondition(
            type=UnlockConditionType.STREAK, threshold=90, comparison=ComparisonType.CONSECUTIVE
        ),
        cosmetic_rewards=["theme_legendary"]
    ),

    # ========== CHALLENGE COMPLETION ==========
    Achievement(
        id="challenge_first",
        name="Challenge Accepted",
        description="Complete your first weekly challenge",
        category=AchievementCategory.CHALLENGE_COMPLETION,
        rarity=RarityTier.COMMON,
        icon_url="achievements/challenge_first.png",
        unlock_condition=UnlockCondition(type=UnlockConditionType.CHALLENGE, threshold=1),
        cosmetic_rewards=[]
    ),
    Achievement(
        id="challenge_5",
        name="Challenge Seeker",
        description="Complete 5 weekly challenges",
        category=AchievementCategory.CHALLENGE_COMPLETION,
        rarity=RarityTier.RARE,
        icon_url="achievements/challenge_5.png",
        unlock_condition=UnlockCondition(type=UnlockConditionType.CHALLENGE, threshold=5),
        cosmetic_rewards=["accessory_trophy"]
    ),
    Achievement(
        id="challenge_weekly_all",
        name="Perfect Week",
        description="Complete all challenges in a single week",
        category=AchievementCategory.CHALLENGE_COMPLETION,
        rarity=RarityTier.EPIC,
        icon_url="achievements/challenge_weekly_all.png",
        unlock_condition=UnlockCondition(
            type=UnlockConditionType.CUSTOM, threshold=1, comparison=ComparisonType.EQ
        ),
        cosmetic_rewards=["hat_champion"]
    ),

    # ========== EXPLORATION ==========
    Achievement(
        id="explore_customization",
        name="Fashion Forward",
        description="Equip your first cosmetic item",
        category=AchievementCategory.EXPLORATION,
        rarity=RarityTier.COMMON,
        icon_url="achievements/explore_customization.png",
        unlock_condition=UnlockCondition(
            type=UnlockConditionType.CUSTOM, threshold=1, comparison=ComparisonType.EQ
        ),
        cosmetic_rewards=[]
    ),
    Achievement(
        id="explore_evolution",
        name="Evolution Witness",
        description="Witness your first pet evolution",
        category=AchievementCategory.EXPLORATION,
        rarity=RarityTier.RARE,
        icon_url="achievements/explore_evolution.png",
        unlock_condition=UnlockCondition(type=UnlockConditionType.EVOLUTION, threshold=1),
        cosmetic_rewards=["background_evolution"]
    ),

    # ========== SPECIAL EVENTS ==========
    Achievement(
        id="special_halloween",
        name="Spooky Spirit",
        description="Be active during Halloween season",
        category=AchievementCategory.SPECIAL_EVENTS,
        rarity=RarityTier.RARE,
        icon_url="achievements/special_halloween.png",
        unlock_condition=UnlockCondition(
            type=UnlockConditionType.CUSTOM, threshold=1, comparison=ComparisonType.EQ
        ),
        cosmetic_rewards=["hat_witch", "background_haunted"]
    ),
]


FILTER_STATUSES = ("all", "earned", "locked")


def get_catalog_entry(achievement_id: str) -> Optional[Achievement]:
    """Look up an achievement in the static catalog"""
    for achievement in ACHIEVEMENT_CATALOG:
        if achievement.id == achievement_id:
            return achievement
    return None


def compute_progress(current: float, target: float) -> AchievementProgress:
    """
    Build a progress record with a half-up rounded, capped percentage

    A zero target counts as fully complete.
    """
    if target <= 0:
        percentage = 100
    else:
        percentage = int(round_half_up(current / target * 100))
    return AchievementProgress(
        current=current,
        target=target,
        percentage=max(0, min(percentage, 100))
    )


class AchievementManager:
    """
    Per-user achievement state over the static catalog.

    State is loaded lazily on first use and persisted as a single blob after
    every mutation. A lost write is logged and the in-memory state stays
    authoritative for the rest of the session.

    Example:
        manager = AchievementManager(StateRepository(InMemoryStore()))
        unlocked = await manager.check_milestone(HealthMetrics(steps=12000))
        # -> [steps_5000, steps_10000]
    """

    def __init__(
        self,
        repository: StateRepository,
        catalog: Optional[List[Achievement]] = None,
        clock: Callable[[], datetime] = now_utc,
        recent_limit: int = RECENT_UNLOCKS_LIMIT
    ):
        self.repository = repository
        self.catalog: List[Achievement] = list(catalog if catalog is not None else ACHIEVEMENT_CATALOG)
        self.clock = clock
        self.recent_limit = recent_limit
        self._index: Dict[str, Achievement] = {a.id: a for a in self.catalog}
        self._unlocked_at: Dict[str, datetime] = {}
        self._progress: Dict[str, AchievementProgress] = {}
        self._initialized = False

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize(self) -> None:
        """
        Load persisted state once; invalid or missing state starts empty

        Raises:
            StoreReadError: If the store is unreadable; the component stays
                unloaded and reads again on the next call
        """
        if self._initialized:
            return

        data = await self.repository.load(ACHIEVEMENTS_KEY, AchievementStorageData)
        if data is not None:
            for state in data.achievements:
                if state.id not in self._index:
                    logger.warning(f"Dropping stored state for unknown achievement {state.id}")
                    continue
                if state.unlocked_at is not None:
                    self._unlocked_at[state.id] = ensure_utc(state.unlocked_at)
                elif state.progress is not None:
                    self._progress[state.id] = state.progress

        self._initialized = True
        logger.info(
            f"Achievements loaded: {len(self._unlocked_at)}/{len(self.catalog)} earned"
        )

    async def reset(self) -> None:
        """Forget all earned achievements and progress"""
        self._unlocked_at.clear()
        self._progress.clear()
        self._initialized = True
        await self.repository.remove(ACHIEVEMENTS_KEY)
        logger.info("Achievement state reset")

    async def _persist(self) -> bool:
        states = []
        for achievement in self.catalog:
            if achievement.id in self._unlocked_at:
                states.append(AchievementState(
                    id=achievement.id,
                    unlocked_at=self._unlocked_at[achievement.id],
                    progress=self._earned_progress(achievement)
                ))
            elif achievement.id in self._progress:
                states.append(AchievementState(
                    id=achievement.id,
                    progress=self._progress[achievement.id]
                ))

        data = AchievementStorageData(achievements=states, last_updated=self.clock())
        return await self.repository.save(ACHIEVEMENTS_KEY, data)

    # ============================================
    # Lookups
    # ============================================

    def _require(self, achievement_id: str) -> Achievement:
        achievement = self._index.get(achievement_id)
        if achievement is None:
            raise AchievementNotFoundError(achievement_id, operation="achievement_lookup")
        return achievement

    @staticmethod
    def _earned_progress(achievement: Achievement) -> AchievementProgress:
        threshold = achievement.unlock_condition.threshold
        return AchievementProgress(current=threshold, target=threshold, percentage=100)

    def _enrich(self, achievement: Achievement) -> UserAchievement:
        unlocked_at = self._unlocked_at.get(achievement.id)
        if unlocked_at is not None:
            progress = self._earned_progress(achievement)
        else:
            progress = self._progress.get(achievement.id) or compute_progress(
                0, achievement.unlock_condition.threshold
            )
        return UserAchievement(achievement=achievement, unlocked_at=unlocked_at, progress=progress)

    async def get_all_achievements(self) -> List[UserAchievement]:
        """Every catalog entry with the user's state, in catalog order"""
        await self.initialize()
        return [self._enrich(a) for a in self.catalog]

    async def get_earned_achievements(self) -> List[UserAchievement]:
        await self.initialize()
        return [self._enrich(a) for a in self.catalog if a.id in self._unlocked_at]

    async def get_achievements_by_category(
        self,
        category: AchievementCategory
    ) -> List[UserAchievement]:
        await self.initialize()
        return [self._enrich(a) for a in self.catalog if a.category == category]

    async def get_achievement_by_id(self, achievement_id: str) -> Optional[UserAchievement]:
        await self.initialize()
        achievement = self._index.get(achievement_id)
        return self._enrich(achievement) if achievement else None

    async def is_achievement_earned(self, achievement_id: str) -> bool:
        await self.initialize()
        return achievement_id in self._unlocked_at

    async def filter_achievements(
        self,
        category: Optional[AchievementCategory] = None,
        status: str = "all",
        rarity: Optional[RarityTier] = None
    ) -> List[UserAchievement]:
        """
        Filter the enriched catalog

        Args:
            category: Only this category
            status: "earned", "locked" or "all"
            rarity: Only this rarity tier

        Returns:
            Matching achievements in catalog order

        Raises:
            ValidationError: If status is not one of the accepted values
        """
        if status not in FILTER_STATUSES:
            raise ValidationError(
                message=f"status must be one of {', '.join(FILTER_STATUSES)}",
                field="status",
                value=status,
                operation="filter_achievements"
            )
        await self.initialize()
        results = []
        for achievement in self.catalog:
            if category is not None and achievement.category != category:
                continue
            if rarity is not None and achievement.rarity != rarity:
                continue
            earned = achievement.id in self._unlocked_at
            if (status == "earned" and not earned) or (status == "locked" and earned):
                continue
            results.append(self._enrich(achievement))
        return results

    # ============================================
    # Unlocking
    # ============================================

    def _mark_unlocked(self, achievement: Achievement) -> UserAchievement:
        self._unlocked_at[achievement.id] = self.clock()
        self._progress.pop(achievement.id, None)
        record_unlock("achievement")
        logger.info(
            f"Achievement unlocked: {achievement.id} ({achievement.rarity.value}), "
            f"cosmetics: {achievement.cosmetic_rewards or 'none'}"
        )
        return self._enrich(achievement)

    async def unlock_achievement(self, achievement_id: str) -> AchievementUnlockResult:
        """
        Mark an achievement earned

        Re-unlocking an earned achievement is a no-op: the original unlock
        time is kept and no cosmetics are reported.

        Raises:
            AchievementNotFoundError: If achievement_id is not in the catalog
        """
        await self.initialize()
        achievement = self._require(achievement_id)

        if achievement_id in self._unlocked_at:
            logger.debug(f"Achievement {achievement_id} already earned")
            return AchievementUnlockResult(
                achievement=self._enrich(achievement),
                cosmetics_unlocked=[],
                is_new_unlock=False
            )

        user_achievement = self._mark_unlocked(achievement)
        await self._persist()
        return AchievementUnlockResult(
            achievement=user_achievement,
            cosmetics_unlocked=list(achievement.cosmetic_rewards),
            is_new_unlock=True
        )

    async def unlock_by_condition(
        self,
        condition_type: UnlockConditionType,
        value: float
    ) -> List[UserAchievement]:
        """
        Unlock every unearned achievement of the given condition type whose
        condition the value satisfies

        Returns:
            Newly unlocked achievements, in catalog order
        """
        await self.initialize()
        newly_unlocked = []
        for achievement in self.catalog:
            condition = achievement.unlock_condition
            if condition.type != condition_type or achievement.id in self._unlocked_at:
                continue
            if condition.is_satisfied_by(value):
                newly_unlocked.append(self._mark_unlocked(achievement))

        if newly_unlocked:
            await self._persist()
        return newly_unlocked

    async def check_milestone(self, metrics: HealthMetrics) -> List[UserAchievement]:
        """
        Evaluate health-milestone achievements against one day's metrics

        Unmet step achievements keep the best single-day value as progress.

        Returns:
            Newly unlocked achievements, in catalog order
        """
        await self.initialize()
        newly_unlocked = []
        changed = False

        for achievement in self.catalog:
            condition = achievement.unlock_condition
            if condition.type != UnlockConditionType.STEPS or achievement.id in self._unlocked_at:
                continue

            if condition.is_satisfied_by(metrics.steps):
                newly_unlocked.append(self._mark_unlocked(achievement))
                changed = True
                continue

            previous = self._progress.get(achievement.id)
            if previous is None or metrics.steps > previous.current:
                self._progress[achievement.id] = compute_progress(metrics.steps, condition.threshold)
                changed = True

        if changed:
            await self._persist()
        return newly_unlocked

    # ============================================
    # Progress
    # ============================================

    async def get_achievement_progress(self, achievement_id: str) -> AchievementProgress:
        """
        Raises:
            AchievementNotFoundError: If achievement_id is not in the catalog
        """
        await self.initialize()
        return self._enrich(self._require(achievement_id)).progress

    async def update_progress(self, achievement_id: str, current: float) -> AchievementProgress:
        """
        Record progress toward a locked achievement

        Earned achievements stay at 100% regardless of the value passed.

        Raises:
            AchievementNotFoundError: If achievement_id is not in the catalog
            ValidationError: If current is negative
        """
        await self.initialize()
        achievement = self._require(achievement_id)

        if current < 0:
            raise ValidationError(
                message="Progress must be non-negative",
                field="current",
                value=current,
                operation="update_progress"
            )

        if achievement_id in self._unlocked_at:
            return self._earned_progress(achievement)

        progress = compute_progress(current, achievement.unlock_condition.threshold)
        self._progress[achievement_id] = progress
        await self._persist()
        return progress

    # ============================================
    # Statistics
    # ============================================

    async def get_completion_percentage(self) -> int:
        await self.initialize()
        if not self.catalog:
            return 0
        return int(round_half_up(len(self._unlocked_at) / len(self.catalog) * 100))

    async def get_rarest_badge(self) -> Optional[UserAchievement]:
        """Highest-rarity earned achievement; ties go to the earlier catalog entry"""
        earned = await self.get_earned_achievements()
        if not earned:
            return None
        return max(earned, key=lambda ua: ua.achievement.rarity.rank)

    async def get_recent_unlocks(self, limit: Optional[int] = None) -> List[UserAchievement]:
        """Most recently earned achievements first"""
        earned = await self.get_earned_achievements()
        earned.sort(key=lambda ua: ua.unlocked_at, reverse=True)
        return earned[:limit if limit is not None else self.recent_limit]

    async def get_statistics(self) -> AchievementStatistics:
        await self.initialize()
        return AchievementStatistics(
            total_earned=len(self._unlocked_at),
            total_available=len(self.catalog),
            completion_percentage=await self.get_completion_percentage(),
            rarest_badge=await self.get_rarest_badge(),
            recent_unlocks=await self.get_recent_unlocks()
        )
