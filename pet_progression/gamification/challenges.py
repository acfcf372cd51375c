"""
Weekly Challenge System

Generates three personalized challenges per ISO week (Monday-Sunday, UTC) and
scores them from the week's health metrics.

Features:
- Targets scaled from the user's own averages (steps, sleep, HRV)
- Metric-specific templates offered only when the user has that metric
- Type-diverse selection through an injectable random source
- Bonus points and achievement unlocks on completion
- "Perfect Week" bonus when every challenge of the week is completed
"""

from typing import Callable, Dict, List, Optional, Sequence
from datetime import date, datetime, timedelta
import logging
import random

from pet_progression.exceptions import ChallengeNotFoundError, ValidationError
from pet_progression.models.achievement import UnlockConditionType
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
from pet_progression.models.health import DailyHealthRecord, HealthMetrics
from pet_progression.resilience.metrics import record_unlock
from pet_progression.storage.repository import CHALLENGES_KEY, StateRepository
from pet_progression.utils.datetime_helpers import (
    format_time_remaining,
    get_week_bounds,
    get_week_end,
    get_week_start,
    now_utc,
    round_half_up,
)

logger = logging.getLogger(__name__)

CHALLENGES_PER_WEEK = 3

# Fallbacks when the user has no history for a metric
DEFAULT_AVERAGE_STEPS = 7500
DEFAULT_AVERAGE_SLEEP = 7.0
DEFAULT_AVERAGE_HRV = 40

COMBINED_STEPS_GOAL = 8000
COMBINED_SLEEP_GOAL = 7.0

PERFECT_WEEK_ACHIEVEMENT = "challenge_weekly_all"


# ============================================
# Challenge Templates
# ============================================

CHALLENGE_TEMPLATES: List[ChallengeTemplate] = [
    # ========== STEPS ==========
    ChallengeTemplate(
        id="steps_weekly_total",
        title="Step Master",
        description_template="Walk {target} steps this week",
        objective_type=ChallengeObjectiveType.STEPS,
        progress_rule=ProgressRule.WEEKLY_TOTAL,
        base_target=50000,
        unit="steps",
        reward=ChallengeReward(bonus_points=100),
        difficulty_multiplier=1.1,
        weekly_scale=True
    ),
    ChallengeTemplate(
        id="steps_daily_goal",
        title="Daily Walker",
        description_template="Hit {target} steps in a single day",
        objective_type=ChallengeObjectiveType.STEPS,
        progress_rule=ProgressRule.DAILY_MAX,
        base_target=10000,
        unit="steps",
        reward=ChallengeReward(bonus_points=50),
        difficulty_multiplier=1.2
    ),
    ChallengeTemplate(
        id="steps_consistency",
        title="Consistent Stepper",
        description_template="Walk at least {target} steps for {days} days",
        objective_type=ChallengeObjectiveType.STEPS,
        progress_rule=ProgressRule.QUALIFYING_DAYS,
        base_target=5000,
        unit="steps/day",
        reward=ChallengeReward(bonus_points=75),
        difficulty_multiplier=0.8,
        required_days=5
    ),

    # ========== SLEEP ==========
    ChallengeTemplate(
        id="sleep_weekly_avg",
        title="Sleep Champion",
        description_template="Average {target} hours of sleep this week",
        objective_type=ChallengeObjectiveType.SLEEP,
        progress_rule=ProgressRule.WEEKLY_AVERAGE,
        base_target=7,
        unit="hours",
        reward=ChallengeReward(bonus_points=100),
        difficulty_multiplier=1.0
    ),
    ChallengeTemplate(
        id="sleep_quality",
        title="Rest Master",
        description_template="Get {target}+ hours of sleep for {days} nights",
        objective_type=ChallengeObjectiveType.SLEEP,
        progress_rule=ProgressRule.QUALIFYING_DAYS,
        base_target=7,
        unit="hours/night",
        reward=ChallengeReward(bonus_points=75),
        difficulty_multiplier=1.0,
        required_days=4
    ),

    # ========== HRV ==========
    ChallengeTemplate(
        id="hrv_improvement",
        title="Stress Buster",
        description_template="Maintain HRV above {target}ms for {days} days",
        objective_type=ChallengeObjectiveType.HRV,
        progress_rule=ProgressRule.QUALIFYING_DAYS,
        base_target=40,
        unit="ms",
        reward=ChallengeReward(bonus_points=100),
        difficulty_multiplier=1.0,
        required_days=3
    ),

    # ========== STREAK ==========
    ChallengeTemplate(
        id="streak_maintain",
        title="Streak Keeper",
        description_template="Maintain your streak for {target} more days",
        objective_type=ChallengeObjectiveType.STREAK,
        progress_rule=ProgressRule.STREAK_LENGTH,
        base_target=3,
        unit="days",
        reward=ChallengeReward(bonus_points=50)
    ),

    # ========== COMBINED ==========
    ChallengeTemplate(
        id="combined_active_day",
        title="Active Day",
        description_template="Hit step goal AND sleep goal in the same day",
        objective_type=ChallengeObjectiveType.COMBINED,
        progress_rule=ProgressRule.COMBINED_DAYS,
        base_target=1,
        unit="days",
        reward=ChallengeReward(bonus_points=150, achievement_id="challenge_first"),
        combined_steps=COMBINED_STEPS_GOAL,
        combined_sleep_hours=COMBINED_SLEEP_GOAL
    ),
]


# ============================================
# Personalization helpers
# ============================================

def calculate_average_steps(history: Sequence[HealthMetrics]) -> int:
    """Mean daily steps over every day in history"""
    if not history:
        return DEFAULT_AVERAGE_STEPS
    return int(round_half_up(sum(day.steps for day in history) / len(history)))


def calculate_average_sleep(history: Sequence[HealthMetrics]) -> float:
    """Mean sleep over days that reported it, one decimal place"""
    nights = [day.sleep_hours for day in history if day.sleep_hours is not None]
    if not nights:
        return DEFAULT_AVERAGE_SLEEP
    return round_half_up(sum(nights) / len(nights), 1)


def calculate_average_hrv(history: Sequence[HealthMetrics]) -> int:
    """Mean HRV over days that reported it"""
    readings = [day.hrv for day in history if day.hrv is not None]
    if not readings:
        return DEFAULT_AVERAGE_HRV
    return int(round_half_up(sum(readings) / len(readings)))


def available_templates(
    history: Sequence[HealthMetrics],
    templates: Sequence[ChallengeTemplate] = CHALLENGE_TEMPLATES
) -> List[ChallengeTemplate]:
    """
    Templates the user can be offered

    Metric templates need at least one day with that metric; streak and
    combined templates are always available.
    """
    has_metric = {
        ChallengeObjectiveType.STEPS: any(day.steps > 0 for day in history),
        ChallengeObjectiveType.SLEEP: any(day.sleep_hours is not None for day in history),
        ChallengeObjectiveType.HRV: any(day.hrv is not None for day in history),
    }
    return [t for t in templates if has_metric.get(t.objective_type, True)]


def select_challenge_templates(
    history: Sequence[HealthMetrics],
    rng: random.Random,
    count: int = CHALLENGES_PER_WEEK,
    templates: Sequence[ChallengeTemplate] = CHALLENGE_TEMPLATES
) -> List[ChallengeTemplate]:
    """
    Pick count templates, one per objective type first, then fill up
    """
    pool = available_templates(history, templates)
    rng.shuffle(pool)

    selected: List[ChallengeTemplate] = []
    used_types = set()
    for template in pool:
        if len(selected) >= count:
            break
        if template.objective_type not in used_types:
            selected.append(template)
            used_types.add(template.objective_type)

    chosen_ids = {t.id for t in selected}
    for template in pool:
        if len(selected) >= count:
            break
        if template.id not in chosen_ids:
            selected.append(template)
            chosen_ids.add(template.id)

    return selected


def calculate_personalized_target(
    template: ChallengeTemplate,
    avg_steps: float,
    avg_sleep: float,
    avg_hrv: float
) -> float:
    """
    Scale a template's target to the user's averages

    Steps and HRV round half-up to whole numbers, sleep keeps one decimal.
    Templates without a personal metric keep their base target.
    """
    multiplier = template.difficulty_multiplier

    if template.objective_type == ChallengeObjectiveType.STEPS:
        daily = avg_steps * 7 if template.weekly_scale else avg_steps
        target = round_half_up(daily * multiplier)
    elif template.objective_type == ChallengeObjectiveType.SLEEP:
        target = round_half_up(avg_sleep * multiplier, 1)
    elif template.objective_type == ChallengeObjectiveType.HRV:
        target = round_half_up(avg_hrv * multiplier)
    else:
        return template.base_target

    if target <= 0:
        logger.debug(f"Personalized target for {template.id} is {target}, using base target")
        return template.base_target
    return target


def format_target(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def merge_week_data(
    today: DailyHealthRecord,
    week_data: Sequence[DailyHealthRecord]
) -> List[DailyHealthRecord]:
    """Week records keyed by date with today's record taking precedence"""
    by_date: Dict[date, DailyHealthRecord] = {record.date: record for record in week_data}
    by_date[today.date] = today
    return [by_date[day] for day in sorted(by_date)]


def _metric_value(objective_type: ChallengeObjectiveType, day: HealthMetrics) -> Optional[float]:
    if objective_type == ChallengeObjectiveType.STEPS:
        return day.steps
    if objective_type == ChallengeObjectiveType.SLEEP:
        return day.sleep_hours
    if objective_type == ChallengeObjectiveType.HRV:
        return day.hrv
    return None


# ============================================
# Challenge Tracker
# ============================================

class ChallengeTracker:
    """
    Weekly challenges for one user.

    Example:
        tracker = ChallengeTracker(repository, unlock_sink=distributor, rng=random.Random(7))
        await tracker.ensure_weekly_challenges(history, today=date(2024, 1, 15))
        completions = await tracker.update_all_challenge_progress(today_record, week_records)
    """

    def __init__(
        self,
        repository: StateRepository,
        unlock_sink=None,
        clock: Callable[[], datetime] = now_utc,
        rng: Optional[random.Random] = None,
        templates: Optional[List[ChallengeTemplate]] = None
    ):
        """
        Args:
            repository: Blob persistence
            unlock_sink: Receives achievement unlocks (UnlockSink)
            clock: Source of "now" for the current week and time remaining
            rng: Random source for template selection
            templates: Template catalog, defaults to CHALLENGE_TEMPLATES
        """
        self.repository = repository
        self.unlock_sink = unlock_sink
        self.clock = clock
        self.rng = rng or random.Random()
        self.templates: List[ChallengeTemplate] = list(
            templates if templates is not None else CHALLENGE_TEMPLATES
        )
        self._template_index = {t.id: t for t in self.templates}
        self.state = ChallengeStorageData()
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

        data = await self.repository.load(CHALLENGES_KEY, ChallengeStorageData)
        if data is not None:
            self.state = data

        self._initialized = True
        logger.info(
            f"Challenges loaded: {len(self.state.active_challenges)} active, "
            f"{len(self.state.completed_challenge_ids)} completed overall"
        )

    async def reset(self) -> None:
        """Drop all challenges, completions and bonus points"""
        self.state = ChallengeStorageData()
        self._initialized = True
        await self.repository.remove(CHALLENGES_KEY)
        logger.info("Challenge state reset")

    async def _persist(self) -> bool:
        return await self.repository.save(CHALLENGES_KEY, self.state)

    def _today(self, today: Optional[date]) -> date:
        return today if today is not None else self.clock().date()

    # ============================================
    # Generation
    # ============================================

    def _build_challenge(
        self,
        template: ChallengeTemplate,
        week_start: date,
        avg_steps: float,
        avg_sleep: float,
        avg_hrv: float
    ) -> Challenge:
        value = calculate_personalized_target(template, avg_steps, avg_sleep, avg_hrv)

        if template.required_days is not None:
            objective = ChallengeObjective(
                type=template.objective_type,
                target=template.required_days,
                unit="days",
                daily_threshold=value
            )
        else:
            objective = ChallengeObjective(
                type=template.objective_type,
                target=value,
                unit=template.unit
            )

        description = template.description_template.replace("{target}", format_target(value))
        if template.required_days is not None:
            description = description.replace("{days}", str(template.required_days))

        return Challenge(
            id=f"{template.id}_{week_start.isoformat()}",
            template_id=template.id,
            title=template.title,
            description=description,
            objective=objective,
            reward=template.reward,
            progress_rule=template.progress_rule,
            start_date=week_start,
            end_date=get_week_end(week_start)
        )

    async def generate_weekly_challenges(
        self,
        history: Sequence[HealthMetrics],
        today: Optional[date] = None
    ) -> List[Challenge]:
        """
        Generate this week's challenges from recent health history

        Replaces any active challenges, whatever week they belong to.

        Args:
            history: Recent daily metrics used for averages and availability
            today: Day whose ISO week is generated (defaults to the clock)

        Returns:
            The new active challenges
        """
        await self.initialize()
        week_start = get_week_start(self._today(today))

        avg_steps = calculate_average_steps(history)
        avg_sleep = calculate_average_sleep(history)
        avg_hrv = calculate_average_hrv(history)

        selected = select_challenge_templates(history, self.rng, templates=self.templates)
        challenges = [
            self._build_challenge(t, week_start, avg_steps, avg_sleep, avg_hrv)
            for t in selected
        ]

        self.state.active_challenges = challenges
        self.state.week_start_date = week_start
        await self._persist()

        logger.info(
            f"Generated challenges for week of {week_start}: "
            f"{', '.join(c.template_id for c in challenges)} "
            f"(avg steps={avg_steps}, sleep={avg_sleep}, hrv={avg_hrv})"
        )
        return challenges

    async def ensure_weekly_challenges(
        self,
        history: Sequence[HealthMetrics],
        today: Optional[date] = None
    ) -> List[Challenge]:
        """
        Roll over to the current week if needed and make sure it has challenges

        Returns:
            The active challenges for the current week
        """
        await self.initialize()
        week_start = get_week_start(self._today(today))

        if self.state.week_start_date != week_start:
            if self.state.active_challenges:
                logger.info(
                    f"New week {week_start}, retiring {len(self.state.active_challenges)} "
                    f"challenges from {self.state.week_start_date}"
                )
            self.state.active_challenges = []
            self.state.week_start_date = week_start

        if not self.state.active_challenges:
            return await self.generate_weekly_challenges(history, today=week_start)
        return list(self.state.active_challenges)

    # ============================================
    # Queries
    # ============================================

    async def get_active_challenges(self) -> List[Challenge]:
        await self.initialize()
        return list(self.state.active_challenges)

    async def get_challenge_by_id(self, challenge_id: str) -> Optional[Challenge]:
        await self.initialize()
        return self._find(challenge_id)

    def _find(self, challenge_id: str) -> Optional[Challenge]:
        for challenge in self.state.active_challenges:
            if challenge.id == challenge_id:
                return challenge
        return None

    def _require(self, challenge_id: str, operation: str) -> Challenge:
        challenge = self._find(challenge_id)
        if challenge is None:
            raise ChallengeNotFoundError(challenge_id, operation=operation)
        return challenge

    def _replace(self, updated: Challenge) -> None:
        self.state.active_challenges = [
            updated if c.id == updated.id else c for c in self.state.active_challenges
        ]

    async def get_time_remaining(self) -> timedelta:
        """Time until the active challenges expire (Sunday 23:59:59 UTC)"""
        await self.initialize()
        if not self.state.active_challenges:
            return timedelta(0)
        _, week_end = get_week_bounds(self.state.active_challenges[0].end_date)
        return max(timedelta(0), week_end - self.clock())

    async def get_time_remaining_formatted(self) -> str:
        return format_time_remaining(await self.get_time_remaining())

    async def check_all_completed(self) -> bool:
        await self.initialize()
        return self._all_completed()

    def _all_completed(self) -> bool:
        challenges = self.state.active_challenges
        return bool(challenges) and all(c.completed for c in challenges)

    async def get_total_bonus_points(self) -> int:
        await self.initialize()
        return self.state.total_bonus_points

    async def get_completed_challenge_count(self) -> int:
        await self.initialize()
        return len(self.state.completed_challenge_ids)

    # ============================================
    # Progress
    # ============================================

    def calculate_challenge_progress(
        self,
        challenge: Challenge,
        today: DailyHealthRecord,
        week_data: Sequence[DailyHealthRecord]
    ) -> float:
        """
        Progress for one challenge from the week's metrics

        Days outside the challenge's week are ignored. Streak challenges
        keep their progress; the streak tracker feeds them.
        """
        days = [
            d for d in merge_week_data(today, week_data)
            if challenge.start_date <= d.date <= challenge.end_date
        ]
        rule = challenge.progress_rule
        objective = challenge.objective

        if rule == ProgressRule.WEEKLY_TOTAL:
            return sum(_metric_value(objective.type, d) or 0 for d in days)

        if rule == ProgressRule.DAILY_MAX:
            values = [_metric_value(objective.type, d) or 0 for d in days]
            return max(values, default=0)

        if rule == ProgressRule.QUALIFYING_DAYS:
            threshold = objective.daily_threshold
            if threshold is None:
                threshold = objective.target
            qualifying = 0
            for d in days:
                value = _metric_value(objective.type, d)
                if value is not None and value >= threshold:
                    qualifying += 1
            return qualifying

        if rule == ProgressRule.WEEKLY_AVERAGE:
            values = [v for v in (_metric_value(objective.type, d) for d in days) if v is not None]
            if not values:
                return 0
            return round_half_up(sum(values) / len(values), 1)

        if rule == ProgressRule.COMBINED_DAYS:
            template = self._template_index.get(challenge.template_id)
            steps_goal = template.combined_steps if template and template.combined_steps else COMBINED_STEPS_GOAL
            sleep_goal = (
                template.combined_sleep_hours
                if template and template.combined_sleep_hours
                else COMBINED_SLEEP_GOAL
            )
            return sum(
                1 for d in days
                if d.steps >= steps_goal and d.sleep_hours is not None and d.sleep_hours >= sleep_goal
            )

        return challenge.progress

    async def update_challenge_progress(
        self,
        challenge_id: str,
        value: float
    ) -> Optional[ChallengeCompletion]:
        """
        Set a challenge's progress, capped at its target

        Completed challenges ignore further updates. Reaching the target
        completes the challenge.

        Returns:
            The completion if this update completed the challenge, else None

        Raises:
            ChallengeNotFoundError: If challenge_id is not active
            ValidationError: If value is negative
        """
        await self.initialize()
        challenge = self._require(challenge_id, "update_challenge_progress")

        if value < 0:
            raise ValidationError(
                message="Challenge progress must be non-negative",
                field="progress",
                value=value,
                operation="update_challenge_progress"
            )

        if challenge.completed:
            logger.debug(f"Ignoring progress for completed challenge {challenge_id}")
            return None

        progress = min(value, challenge.objective.target)
        self._replace(challenge.model_copy(update={"progress": progress}))

        if progress >= challenge.objective.target:
            return await self.complete_challenge(challenge_id)

        await self._persist()
        return None

    async def update_all_challenge_progress(
        self,
        today: DailyHealthRecord,
        week_data: Sequence[DailyHealthRecord]
    ) -> List[ChallengeCompletion]:
        """
        Recompute every active, unfinished challenge from the week's metrics

        Returns:
            Challenges completed by this update
        """
        await self.initialize()
        completions = []

        for challenge in list(self.state.active_challenges):
            if challenge.completed or challenge.progress_rule == ProgressRule.STREAK_LENGTH:
                continue
            progress = self.calculate_challenge_progress(challenge, today, week_data)
            completion = await self.update_challenge_progress(challenge.id, progress)
            if completion is not None:
                completions.append(completion)

        return completions

    async def update_streak_progress(self, current_streak: int) -> Optional[ChallengeCompletion]:
        """Feed the current streak into the active streak challenge, if any"""
        await self.initialize()
        for challenge in self.state.active_challenges:
            if challenge.objective.type == ChallengeObjectiveType.STREAK and not challenge.completed:
                return await self.update_challenge_progress(challenge.id, current_streak)
        return None

    # ============================================
    # Completion
    # ============================================

    async def complete_challenge(self, challenge_id: str) -> ChallengeCompletion:
        """
        Complete a challenge and distribute its reward

        Re-completing is a no-op reported with is_new_completion=False.

        Raises:
            ChallengeNotFoundError: If challenge_id is not active
        """
        await self.initialize()
        challenge = self._require(challenge_id, "complete_challenge")

        if challenge.completed:
            return ChallengeCompletion(
                challenge=challenge,
                reward=challenge.reward,
                is_new_completion=False
            )

        completed = challenge.model_copy(
            update={"completed": True, "progress": challenge.objective.target}
        )
        self._replace(completed)
        if challenge_id not in self.state.completed_challenge_ids:
            self.state.completed_challenge_ids.append(challenge_id)
        self.state.total_bonus_points += challenge.reward.bonus_points
        record_unlock("challenge")
        await self._persist()

        logger.info(
            f"Challenge completed: {challenge_id} (+{challenge.reward.bonus_points} points)"
        )

        unlocked: List[str] = []
        if challenge.reward.achievement_id:
            unlocked.extend(await self._unlock(challenge.reward.achievement_id))
        unlocked.extend(await self._unlock_by_count(len(self.state.completed_challenge_ids)))

        perfect_week = False
        week_start = self.state.week_start_date or challenge.start_date
        if self._all_completed() and week_start not in self.state.perfect_weeks:
            perfect_week = True
            self.state.perfect_weeks.append(week_start)
            await self._persist()
            logger.info(f"🏆 All challenges completed for week of {week_start}")
            unlocked.extend(await self._unlock(PERFECT_WEEK_ACHIEVEMENT))

        return ChallengeCompletion(
            challenge=completed,
            reward=challenge.reward,
            is_new_completion=True,
            achievements_unlocked=unlocked,
            perfect_week=perfect_week
        )

    async def _unlock(self, achievement_id: str) -> List[str]:
        if self.unlock_sink is None:
            return []
        try:
            result = await self.unlock_sink.unlock_achievement(achievement_id)
            return [achievement_id] if result.is_new_unlock else []
        except Exception as e:
            logger.error(f"Failed to unlock challenge reward {achievement_id}: {e}", exc_info=True)
            return []

    async def _unlock_by_count(self, completed_count: int) -> List[str]:
        if self.unlock_sink is None:
            return []
        try:
            unlocked = await self.unlock_sink.unlock_by_condition(
                UnlockConditionType.CHALLENGE, completed_count
            )
            return [ua.id for ua in unlocked]
        except Exception as e:
            logger.error(f"Failed to unlock challenge-count achievements: {e}", exc_info=True)
            return []
