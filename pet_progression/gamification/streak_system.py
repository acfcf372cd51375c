"""
Daily Streak Tracking System

Tracks consecutive UTC days on which the user met the daily health criteria.

Logic:
- First qualifying day starts the streak at 1
- A qualifying day right after the last recorded day increments it
- A qualifying day after a gap restarts it at 1
- A non-qualifying day resets it to 0
- Repeated updates for the last recorded day leave it untouched

Features:
- Best streak tracking
- Milestones at 7, 14, 30, 60 and 90 days unlock streak achievements
- Bounded day history, replayed to rebuild state when the stored blob is corrupt
"""

from typing import Any, Callable, Dict, List, Optional, Union
from datetime import date, datetime
import logging

from pet_progression.config import STREAK_HISTORY_LIMIT
from pet_progression.models.streak import (
    StreakMilestone,
    StreakRecord,
    StreakState,
    StreakStorageData,
    StreakUpdate,
)
from pet_progression.resilience.metrics import record_state_recovery
from pet_progression.storage.repository import STREAKS_KEY, StateRepository
from pet_progression.utils.datetime_helpers import coerce_date, is_consecutive_day, now_utc

logger = logging.getLogger(__name__)


STREAK_MILESTONES: List[StreakMilestone] = [
    StreakMilestone(days=7, achievement_id="streak_7", cosmetic_reward="hat_headband"),
    StreakMilestone(days=14, achievement_id="streak_14", cosmetic_reward="accessory_cape"),
    StreakMilestone(days=30, achievement_id="streak_30", cosmetic_reward="background_stars"),
    StreakMilestone(days=60, achievement_id="streak_60", cosmetic_reward="color_rainbow"),
    StreakMilestone(days=90, achievement_id="streak_90", cosmetic_reward="theme_legendary"),
]


def next_streak_value(
    current_streak: int,
    last_date: Optional[date],
    day: date,
    met_criteria: bool
) -> int:
    """
    Continuity rule shared by live updates and history replay

    Args:
        current_streak: Streak before this day
        last_date: Last recorded day, None if nothing recorded yet
        day: Day being recorded (strictly after last_date)
        met_criteria: Whether the day qualified

    Returns:
        Streak after this day
    """
    if not met_criteria:
        return 0
    if last_date is None:
        return 1
    if is_consecutive_day(last_date, day):
        return current_streak + 1
    return 1


def find_milestone(streak: int) -> Optional[StreakMilestone]:
    """Milestone whose threshold equals streak exactly"""
    for milestone in STREAK_MILESTONES:
        if streak == milestone.days:
            return milestone
    return None


def replay_history(records: List[StreakRecord], history_limit: int = STREAK_HISTORY_LIMIT) -> StreakState:
    """
    Rebuild streak state from day records

    Records are ordered by date and a repeated date keeps only its last
    record, so the result is what live updates would have produced.
    """
    by_date: Dict[date, StreakRecord] = {}
    for record in records:
        by_date[record.date] = record

    current_streak = 0
    longest_streak = 0
    last_date: Optional[date] = None
    rebuilt: List[StreakRecord] = []

    for day in sorted(by_date):
        met = by_date[day].met_criteria
        current_streak = next_streak_value(current_streak, last_date, day, met)
        longest_streak = max(longest_streak, current_streak)
        last_date = day
        rebuilt.append(StreakRecord(date=day, met_criteria=met, streak_count=current_streak))

    return StreakState(
        current_streak=current_streak,
        longest_streak=longest_streak,
        last_recorded_date=last_date,
        streak_history=rebuilt[-history_limit:]
    )


def _extract_history(raw: Any) -> List[StreakRecord]:
    """Pull whatever day records are still readable out of a damaged blob"""
    if not isinstance(raw, dict):
        return []
    state = raw.get("state")
    if not isinstance(state, dict):
        return []
    history = state.get("streak_history")
    if not isinstance(history, list):
        return []

    records = []
    skipped = 0
    for entry in history:
        try:
            records.append(StreakRecord.model_validate(entry))
        except ValueError:
            skipped += 1
    if skipped:
        logger.warning(f"Skipped {skipped} unreadable streak history records")
    return records


class StreakTracker:
    """
    Daily continuity state for one user.

    Example:
        tracker = StreakTracker(repository, unlock_sink=distributor)
        update = await tracker.record_daily_progress("2024-01-15", met_criteria=True)
        # update.new_streak == 1 on the first qualifying day
    """

    def __init__(
        self,
        repository: StateRepository,
        unlock_sink=None,
        clock: Callable[[], datetime] = now_utc,
        history_limit: int = STREAK_HISTORY_LIMIT
    ):
        """
        Args:
            repository: Blob persistence
            unlock_sink: Receives milestone achievement unlocks (UnlockSink)
            clock: Source of "now" for timestamps
            history_limit: Number of day records retained for recovery
        """
        self.repository = repository
        self.unlock_sink = unlock_sink
        self.clock = clock
        self.history_limit = history_limit
        self.state = StreakState()
        self._initialized = False

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize(self) -> None:
        """
        Load persisted state once, replaying history if the blob is corrupt

        Raises:
            StoreReadError: If the store is unreadable; nothing is replayed or
                persisted until a later read succeeds
        """
        if self._initialized:
            return

        raw = await self.repository.load_raw(STREAKS_KEY)
        if raw is not None:
            data = self.repository.validate(STREAKS_KEY, raw, StreakStorageData)
            if data is not None:
                self.state = data.state
            else:
                await self.recover_from_corruption(raw)

        self._initialized = True
        logger.info(
            f"Streak loaded: current={self.state.current_streak}, "
            f"longest={self.state.longest_streak}"
        )

    async def reset(self) -> None:
        """Back to the empty default state"""
        self.state = StreakState()
        self._initialized = True
        await self.repository.remove(STREAKS_KEY)
        logger.info("Streak state reset")

    async def _persist(self) -> bool:
        data = StreakStorageData(state=self.state, last_updated=self.clock())
        return await self.repository.save(STREAKS_KEY, data)

    # ============================================
    # Core tracking
    # ============================================

    async def record_daily_progress(
        self,
        day: Union[str, date, datetime],
        met_criteria: bool
    ) -> StreakUpdate:
        """
        Record whether the user met the daily criteria on a day

        Args:
            day: YYYY-MM-DD key, date, or datetime (its UTC day is used)
            met_criteria: Whether the day qualified

        Returns:
            StreakUpdate with previous/new streak and any milestone reached

        Raises:
            ValidationError: If day is a malformed date key
        """
        await self.initialize()

        day = coerce_date(day)
        previous_streak = self.state.current_streak
        last_date = self.state.last_recorded_date

        if last_date is not None and day <= last_date:
            if day < last_date:
                logger.warning(
                    f"Ignoring streak update for {day}: already recorded up to {last_date}"
                )
            else:
                logger.debug(f"Streak already recorded for {day}, leaving it unchanged")
            return StreakUpdate(
                date=day,
                previous_streak=previous_streak,
                new_streak=previous_streak,
                was_reset=False
            )

        new_streak = next_streak_value(previous_streak, last_date, day, met_criteria)
        was_reset = previous_streak > 0 and new_streak != previous_streak + 1

        history = self.state.streak_history + [
            StreakRecord(date=day, met_criteria=met_criteria, streak_count=new_streak)
        ]
        self.state = StreakState(
            current_streak=new_streak,
            longest_streak=max(self.state.longest_streak, new_streak),
            last_recorded_date=day,
            streak_history=history[-self.history_limit:]
        )
        await self._persist()

        milestone = find_milestone(new_streak)
        if milestone is not None:
            await self._trigger_milestone(milestone)

        if was_reset:
            logger.info(f"Streak reset on {day}: {previous_streak} -> {new_streak}")
        else:
            logger.debug(f"Streak on {day}: {previous_streak} -> {new_streak}")

        return StreakUpdate(
            date=day,
            previous_streak=previous_streak,
            new_streak=new_streak,
            was_reset=was_reset,
            milestone_reached=milestone
        )

    async def _trigger_milestone(self, milestone: StreakMilestone) -> None:
        if self.unlock_sink is None:
            return
        try:
            result = await self.unlock_sink.unlock_achievement(milestone.achievement_id)
            if result.is_new_unlock:
                logger.info(f"🔥 {milestone.days}-day streak milestone: {milestone.achievement_id}")
        except Exception as e:
            logger.error(
                f"Failed to unlock streak milestone {milestone.achievement_id}: {e}",
                exc_info=True
            )

    # ============================================
    # Queries
    # ============================================

    async def get_current_streak(self) -> int:
        await self.initialize()
        return self.state.current_streak

    async def get_longest_streak(self) -> int:
        await self.initialize()
        return self.state.longest_streak

    async def get_streak_state(self) -> StreakState:
        await self.initialize()
        return self.state.model_copy(deep=True)

    async def get_streak_history(self) -> List[StreakRecord]:
        await self.initialize()
        return list(self.state.streak_history)

    async def get_next_milestone(self) -> Optional[StreakMilestone]:
        """First milestone above the current streak, None once all are passed"""
        await self.initialize()
        for milestone in STREAK_MILESTONES:
            if self.state.current_streak < milestone.days:
                return milestone
        return None

    async def get_days_until_milestone(self) -> int:
        """Days left to the next milestone, 0 once all are passed"""
        milestone = await self.get_next_milestone()
        if milestone is None:
            return 0
        return milestone.days - self.state.current_streak

    async def check_milestone_reached(self) -> Optional[StreakMilestone]:
        await self.initialize()
        return find_milestone(self.state.current_streak)

    # ============================================
    # Recovery
    # ============================================

    async def recover_from_corruption(self, raw: Any = None) -> StreakState:
        """
        Rebuild state from whatever history survives in the stored blob

        Args:
            raw: The unreadable blob; read from the store when omitted

        Returns:
            Reconstructed state, or the empty default if no history survives
        """
        logger.warning("Recovering streak state from stored history")

        if raw is None:
            raw = await self.repository.load_raw(STREAKS_KEY)

        records = _extract_history(raw)
        if records:
            self.state = replay_history(records, self.history_limit)
            outcome = "replayed"
            logger.info(
                f"Streak rebuilt from {len(records)} records: "
                f"current={self.state.current_streak}, longest={self.state.longest_streak}"
            )
        else:
            self.state = StreakState()
            outcome = "reset"
            logger.info("No usable streak history, reset to default state")

        record_state_recovery(STREAKS_KEY, outcome)
        self._initialized = True
        await self._persist()
        return self.state
