"""
Unlock notifications

Builds UnlockEvent payloads for the display layer and delivers them through an
injected notifier. The default notifier only writes to the log.
"""

from typing import List, Protocol, runtime_checkable
from datetime import datetime
import logging

from pet_progression.models.achievement import Achievement, AchievementCategory, RarityTier
from pet_progression.models.cosmetic import Cosmetic
from pet_progression.models.progression import UnlockEvent, UnlockEventType

logger = logging.getLogger(__name__)

RARITY_EMOJI = {
    RarityTier.COMMON: "🥉",
    RarityTier.RARE: "🥈",
    RarityTier.EPIC: "🥇",
    RarityTier.LEGENDARY: "💫",
}


@runtime_checkable
class UnlockNotifier(Protocol):
    """Receives unlock events as they happen"""

    async def notify(self, event: UnlockEvent) -> None:
        ...


class LoggingNotifier:
    """Writes each unlock event to the log"""

    async def notify(self, event: UnlockEvent) -> None:
        logger.info(f"[UNLOCK] {event.type.value}: {event.subject_id}\n{format_unlock_message(event)}")


class CollectingNotifier:
    """Keeps every delivered event in memory (CLI summaries, tests)"""

    def __init__(self):
        self.events: List[UnlockEvent] = []

    async def notify(self, event: UnlockEvent) -> None:
        self.events.append(event)


def build_achievement_event(achievement: Achievement, created_at: datetime) -> UnlockEvent:
    """
    Event for a newly earned achievement

    Streak rewards are announced as streak milestones.
    """
    if achievement.category == AchievementCategory.STREAK_REWARDS:
        event_type = UnlockEventType.STREAK_MILESTONE
        title = f"{int(achievement.unlock_condition.threshold)}-day streak!"
    else:
        event_type = UnlockEventType.ACHIEVEMENT
        title = "Achievement unlocked!"

    return UnlockEvent(
        type=event_type,
        subject_id=achievement.id,
        title=title,
        message=f"{achievement.name}: {achievement.description}",
        rarity=achievement.rarity,
        icon_url=achievement.icon_url,
        created_at=created_at
    )


def build_cosmetic_event(cosmetic: Cosmetic, created_at: datetime) -> UnlockEvent:
    """Event for a cosmetic added to the inventory"""
    return UnlockEvent(
        type=UnlockEventType.COSMETIC_UNLOCK,
        subject_id=cosmetic.id,
        title="New cosmetic!",
        message=f"{cosmetic.name} is now in your wardrobe",
        rarity=cosmetic.rarity,
        icon_url=cosmetic.preview_url,
        created_at=created_at
    )


def format_unlock_message(event: UnlockEvent) -> str:
    """
    Format an unlock event for celebration

    Args:
        event: Event produced by one of the build_* helpers

    Returns:
        Multi-line celebration text
    """
    rarity_symbol = RARITY_EMOJI.get(event.rarity, "🏆")

    if event.type == UnlockEventType.STREAK_MILESTONE:
        header = "🔥 STREAK MILESTONE! 🔥"
    elif event.type == UnlockEventType.COSMETIC_UNLOCK:
        header = "🎁 NEW COSMETIC! 🎁"
    else:
        header = "🎉 ACHIEVEMENT UNLOCKED! 🎉"

    rarity_line = f"{rarity_symbol} {event.rarity.value.title()}" if event.rarity else rarity_symbol

    return f"""{header}

{event.title}
{event.message}

{rarity_line}"""
