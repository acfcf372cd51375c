"""Achievement models for the progression engine"""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime


class AchievementCategory(str, Enum):
    """Achievement categories"""
    HEALTH_MILESTONES = "health_milestones"
    STREAK_REWARDS = "streak_rewards"
    CHALLENGE_COMPLETION = "challenge_completion"
    EXPLORATION = "exploration"
    SPECIAL_EVENTS = "special_events"


class RarityTier(str, Enum):
    """Rarity tiers, ordered common < rare < epic < legendary"""
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def rank(self) -> int:
        return RARITY_ORDER[self]


RARITY_ORDER = {
    RarityTier.COMMON: 1,
    RarityTier.RARE: 2,
    RarityTier.EPIC: 3,
    RarityTier.LEGENDARY: 4,
}


class UnlockConditionType(str, Enum):
    """What triggers an achievement unlock"""
    STEPS = "steps"
    STREAK = "streak"
    CHALLENGE = "challenge"
    EVOLUTION = "evolution"
    CUSTOM = "custom"


class ComparisonType(str, Enum):
    """How a value is compared against an unlock threshold"""
    GTE = "gte"
    EQ = "eq"
    # Evaluated as a plain threshold (same as GTE), not a run-length check
    CONSECUTIVE = "consecutive"


class UnlockCondition(BaseModel):
    """Unlock criteria: metric type, threshold and comparison"""
    model_config = ConfigDict(frozen=True)

    type: UnlockConditionType
    threshold: float = Field(ge=0)
    comparison: ComparisonType = ComparisonType.GTE

    def is_satisfied_by(self, value: float) -> bool:
        if self.comparison == ComparisonType.EQ:
            return value == self.threshold
        return value >= self.threshold


class Achievement(BaseModel):
    """Immutable achievement catalog entry"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    category: AchievementCategory
    rarity: RarityTier
    icon_url: str
    unlock_condition: UnlockCondition
    cosmetic_rewards: List[str] = Field(default_factory=list)


class AchievementProgress(BaseModel):
    """Progress toward an achievement"""
    current: float = Field(ge=0)
    target: float = Field(ge=0)
    percentage: int = Field(ge=0, le=100)


class AchievementState(BaseModel):
    """Per-user mutable overlay for one catalog entry (persisted)"""
    id: str
    unlocked_at: Optional[datetime] = None
    progress: Optional[AchievementProgress] = None


class UserAchievement(BaseModel):
    """Catalog entry joined with the user's earn/progress state"""
    achievement: Achievement
    unlocked_at: Optional[datetime] = None
    progress: AchievementProgress

    @property
    def id(self) -> str:
        return self.achievement.id

    @property
    def is_earned(self) -> bool:
        return self.unlocked_at is not None


class AchievementUnlockResult(BaseModel):
    """Result of unlocking an achievement"""
    achievement: UserAchievement
    cosmetics_unlocked: List[str] = Field(default_factory=list)
    is_new_unlock: bool


class AchievementStatistics(BaseModel):
    """Aggregate metrics about earned achievements"""
    total_earned: int
    total_available: int
    completion_percentage: int
    rarest_badge: Optional[UserAchievement] = None
    recent_unlocks: List[UserAchievement] = Field(default_factory=list)


class AchievementStorageData(BaseModel):
    """Schema for the persisted achievements blob"""
    achievements: List[AchievementState] = Field(default_factory=list)
    last_updated: datetime
