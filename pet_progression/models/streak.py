"""Pydantic models for daily streak tracking"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date, datetime
from typing import Optional, List


class StreakRecord(BaseModel):
    """One recorded day"""
    date: date
    met_criteria: bool
    streak_count: int = Field(ge=0)


class StreakState(BaseModel):
    """Current continuity state plus the bounded day history"""
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_recorded_date: Optional[date] = None
    streak_history: List[StreakRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_longest_covers_current(self) -> "StreakState":
        if self.longest_streak < self.current_streak:
            raise ValueError("longest_streak cannot be lower than current_streak")
        if self.current_streak > 0 and self.last_recorded_date is None:
            raise ValueError("a positive streak requires last_recorded_date")
        return self


class StreakMilestone(BaseModel):
    """Streak length that triggers a one-time achievement"""
    model_config = ConfigDict(frozen=True)

    days: int = Field(gt=0)
    achievement_id: str
    cosmetic_reward: Optional[str] = None


class StreakUpdate(BaseModel):
    """Result of recording one day's progress"""
    date: date
    previous_streak: int
    new_streak: int
    was_reset: bool
    milestone_reached: Optional[StreakMilestone] = None


class StreakStorageData(BaseModel):
    """Schema for the persisted streaks blob"""
    state: StreakState
    last_updated: datetime
