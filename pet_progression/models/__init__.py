"""Pydantic models shared by the progression components"""

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
from pet_progression.models.challenge import (
    Challenge,
    ChallengeCompletion,
    ChallengeObjective,
    ChallengeObjectiveType,
    ChallengeReward,
    ChallengeStorageData,
    ChallengeTemplate,
    ProgressRule,
)
from pet_progression.models.cosmetic import (
    Cosmetic,
    CosmeticCategory,
    CosmeticInventoryState,
    CosmeticLayer,
    CosmeticRenderData,
    CosmeticStatistics,
    CosmeticStorageData,
    LAYER_ORDER,
    PixelData,
)
from pet_progression.models.health import DailyHealthRecord, HealthMetrics
from pet_progression.models.progression import ProgressionUpdate, UnlockEvent, UnlockEventType
from pet_progression.models.streak import (
    StreakMilestone,
    StreakRecord,
    StreakState,
    StreakStorageData,
    StreakUpdate,
)

__all__ = [
    "Achievement",
    "AchievementCategory",
    "AchievementProgress",
    "AchievementState",
    "AchievementStatistics",
    "AchievementStorageData",
    "AchievementUnlockResult",
    "ComparisonType",
    "RarityTier",
    "UnlockCondition",
    "UnlockConditionType",
    "UserAchievement",
    "Challenge",
    "ChallengeCompletion",
    "ChallengeObjective",
    "ChallengeObjectiveType",
    "ChallengeReward",
    "ChallengeStorageData",
    "ChallengeTemplate",
    "ProgressRule",
    "Cosmetic",
    "CosmeticCategory",
    "CosmeticInventoryState",
    "CosmeticLayer",
    "CosmeticRenderData",
    "CosmeticStatistics",
    "CosmeticStorageData",
    "LAYER_ORDER",
    "PixelData",
    "DailyHealthRecord",
    "HealthMetrics",
    "ProgressionUpdate",
    "UnlockEvent",
    "UnlockEventType",
    "StreakMilestone",
    "StreakRecord",
    "StreakState",
    "StreakStorageData",
    "StreakUpdate",
]
