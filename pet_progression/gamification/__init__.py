"""
Progression engine components

- achievement_system: achievement catalog and per-user unlock state
- streak_system: daily continuity tracking and milestones
- challenges: personalized weekly challenges
- cosmetics: cosmetic inventory, equipment and render layers
- rewards: unlock sink that forwards cosmetic rewards and notifications
"""

from pet_progression.gamification.achievement_system import (
    ACHIEVEMENT_CATALOG,
    AchievementManager,
)
from pet_progression.gamification.challenges import (
    CHALLENGE_TEMPLATES,
    ChallengeTracker,
)
from pet_progression.gamification.cosmetics import (
    COSMETIC_CATALOG,
    CosmeticInventory,
)
from pet_progression.gamification.notifications import (
    CollectingNotifier,
    LoggingNotifier,
    UnlockNotifier,
)
from pet_progression.gamification.rewards import (
    RewardDistributor,
    UnlockBatch,
    UnlockSink,
)
from pet_progression.gamification.streak_system import (
    STREAK_MILESTONES,
    StreakTracker,
)

__all__ = [
    'ACHIEVEMENT_CATALOG',
    'AchievementManager',
    'CHALLENGE_TEMPLATES',
    'ChallengeTracker',
    'COSMETIC_CATALOG',
    'CosmeticInventory',
    'CollectingNotifier',
    'LoggingNotifier',
    'UnlockNotifier',
    'RewardDistributor',
    'UnlockBatch',
    'UnlockSink',
    'STREAK_MILESTONES',
    'StreakTracker',
]
