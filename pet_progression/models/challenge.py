"""Pydantic models for weekly challenges"""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date
from typing import Optional, List


class ChallengeObjectiveType(str, Enum):
    """Metric class a challenge measures"""
    STEPS = "steps"
    SLEEP = "sleep"
    HRV = "hrv"
    STREAK = "streak"
    COMBINED = "combined"


class ProgressRule(str, Enum):
    """How a challenge's progress is computed from the week's metrics"""
    WEEKLY_TOTAL = "weekly_total"        # sum of the metric over the week
    DAILY_MAX = "daily_max"              # best single day
    QUALIFYING_DAYS = "qualifying_days"  # days at or above the daily threshold
    WEEKLY_AVERAGE = "weekly_average"    # mean over days that reported the metric
    STREAK_LENGTH = "streak_length"      # current streak, fed by the streak tracker
    COMBINED_DAYS = "combined_days"      # days meeting both step and sleep thresholds


class ChallengeObjective(BaseModel):
    """What the challenge counts and how much of it is needed"""
    type: ChallengeObjectiveType
    target: float = Field(gt=0)
    unit: str
    # Per-day bar for day-counting rules; target is then a number of days
    daily_threshold: Optional[float] = Field(None, ge=0)


class ChallengeReward(BaseModel):
    """What completing a challenge grants"""
    model_config = ConfigDict(frozen=True)

    bonus_points: int = Field(default=0, ge=0)
    achievement_id: Optional[str] = None


class ChallengeTemplate(BaseModel):
    """Static catalog entry from which weekly challenges are generated"""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description_template: str
    objective_type: ChallengeObjectiveType
    progress_rule: ProgressRule
    base_target: float = Field(gt=0)
    unit: str
    reward: ChallengeReward
    difficulty_multiplier: float = Field(default=1.0, gt=0)
    # Weekly-total variants scale the daily average by 7 before the multiplier
    weekly_scale: bool = False
    # Day-counting templates: the personalized value becomes the daily bar
    required_days: Optional[int] = Field(None, gt=0, le=7)
    # Fixed bars for combined challenges
    combined_steps: Optional[int] = None
    combined_sleep_hours: Optional[float] = None


class Challenge(BaseModel):
    """One generated weekly challenge with its progress"""
    id: str
    template_id: str
    title: str
    description: str
    objective: ChallengeObjective
    reward: ChallengeReward
    progress_rule: ProgressRule
    start_date: date
    end_date: date
    progress: float = Field(default=0, ge=0)
    completed: bool = False

    @model_validator(mode="after")
    def check_progress_capped(self) -> "Challenge":
        if self.progress > self.objective.target:
            raise ValueError("progress cannot exceed the objective target")
        if self.end_date < self.start_date:
            raise ValueError("end_date precedes start_date")
        return self


class ChallengeCompletion(BaseModel):
    """Result of completing (or re-completing) a challenge"""
    challenge: Challenge
    reward: ChallengeReward
    is_new_completion: bool
    achievements_unlocked: List[str] = Field(default_factory=list)
    perfect_week: bool = False


class ChallengeStorageData(BaseModel):
    """Schema for the persisted challenges blob"""
    active_challenges: List[Challenge] = Field(default_factory=list)
    completed_challenge_ids: List[str] = Field(default_factory=list)
    week_start_date: Optional[date] = None
    total_bonus_points: int = Field(default=0, ge=0)
    perfect_weeks: List[date] = Field(default_factory=list)
