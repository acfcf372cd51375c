"""Models for the health-data-update pipeline and its outbound events"""
from enum import Enum
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List

from pet_progression.models.achievement import RarityTier
from pet_progression.models.challenge import ChallengeCompletion
from pet_progression.models.streak import StreakUpdate


class UnlockEventType(str, Enum):
    """Notification styles understood by the display layer"""
    ACHIEVEMENT = "achievement"
    STREAK_MILESTONE = "streak_milestone"
    COSMETIC_UNLOCK = "cosmetic_unlock"


class UnlockEvent(BaseModel):
    """Outbound unlock notification payload"""
    type: UnlockEventType
    subject_id: str  # achievement id or cosmetic id
    title: str
    message: str
    rarity: Optional[RarityTier] = None
    icon_url: Optional[str] = None
    created_at: datetime


class ProgressionUpdate(BaseModel):
    """Everything one health-data update changed"""
    date: date
    achievements_unlocked: List[str] = Field(default_factory=list)
    cosmetics_unlocked: List[str] = Field(default_factory=list)
    streak: Optional[StreakUpdate] = None
    challenges_completed: List[ChallengeCompletion] = Field(default_factory=list)
    failed_steps: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed_steps
