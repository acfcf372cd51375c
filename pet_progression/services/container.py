"""
Progression Container - Dependency Injection Container

Wires the progression components around one key-value store.
Components are lazy-loaded on first access.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
import logging
import random

from pet_progression import config
from pet_progression.storage.store import InMemoryStore, KeyValueStore

logger = logging.getLogger(__name__)


def create_store() -> KeyValueStore:
    """
    Build the store selected by STORE_BACKEND

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    config.validate_config()
    if config.STORE_BACKEND == "http":
        from pet_progression.storage.http_store import HttpKeyValueStore
        logger.info(f"Using HTTP key-value store at {config.STORE_URL}")
        return HttpKeyValueStore(config.STORE_URL, timeout=config.STORE_TIMEOUT_SECONDS)
    logger.info("Using in-memory key-value store")
    return InMemoryStore()


@dataclass
class ProgressionContainer:
    """
    Simple dependency injection container for the progression engine.

    Infrastructure dependencies (store, notifier, clock, rng) are injected;
    components are created on first access and shared afterwards.
    """

    # Infrastructure dependencies (injected)
    store: KeyValueStore
    notifier: Optional[object] = None  # UnlockNotifier
    clock: Optional[Callable[[], datetime]] = None
    rng: Optional[random.Random] = None
    evolution_tracker: Optional[object] = None  # EvolutionTracker

    # Components (lazy-loaded via properties)
    _repository: Optional[object] = field(default=None, init=False, repr=False)
    _achievements: Optional[object] = field(default=None, init=False, repr=False)
    _cosmetics: Optional[object] = field(default=None, init=False, repr=False)
    _distributor: Optional[object] = field(default=None, init=False, repr=False)
    _streaks: Optional[object] = field(default=None, init=False, repr=False)
    _challenges: Optional[object] = field(default=None, init=False, repr=False)
    _progression_service: Optional[object] = field(default=None, init=False, repr=False)

    def _clock(self) -> Callable[[], datetime]:
        if self.clock is None:
            from pet_progression.utils.datetime_helpers import now_utc
            return now_utc
        return self.clock

    @property
    def repository(self):
        """Get StateRepository instance (lazy-loaded)"""
        if self._repository is None:
            from pet_progression.storage.repository import StateRepository
            self._repository = StateRepository(self.store)
            logger.debug("StateRepository instantiated")
        return self._repository

    @property
    def achievements(self):
        """Get AchievementManager instance (lazy-loaded)"""
        if self._achievements is None:
            from pet_progression.gamification.achievement_system import AchievementManager
            self._achievements = AchievementManager(self.repository, clock=self._clock())
            logger.debug("AchievementManager instantiated")
        return self._achievements

    @property
    def cosmetics(self):
        """Get CosmeticInventory instance (lazy-loaded)"""
        if self._cosmetics is None:
            from pet_progression.gamification.cosmetics import CosmeticInventory
            self._cosmetics = CosmeticInventory(self.repository, clock=self._clock())
            logger.debug("CosmeticInventory instantiated")
        return self._cosmetics

    @property
    def distributor(self):
        """Get RewardDistributor instance (lazy-loaded)"""
        if self._distributor is None:
            from pet_progression.gamification.notifications import LoggingNotifier
            from pet_progression.gamification.rewards import RewardDistributor
            self._distributor = RewardDistributor(
                self.achievements,
                self.cosmetics,
                notifier=self.notifier or LoggingNotifier(),
                clock=self._clock()
            )
            logger.debug("RewardDistributor instantiated")
        return self._distributor

    @property
    def streaks(self):
        """Get StreakTracker instance (lazy-loaded)"""
        if self._streaks is None:
            from pet_progression.gamification.streak_system import StreakTracker
            self._streaks = StreakTracker(
                self.repository,
                unlock_sink=self.distributor,
                clock=self._clock(),
                history_limit=config.STREAK_HISTORY_LIMIT
            )
            logger.debug("StreakTracker instantiated")
        return self._streaks

    @property
    def challenges(self):
        """Get ChallengeTracker instance (lazy-loaded)"""
        if self._challenges is None:
            from pet_progression.gamification.challenges import ChallengeTracker
            self._challenges = ChallengeTracker(
                self.repository,
                unlock_sink=self.distributor,
                clock=self._clock(),
                rng=self.rng
            )
            logger.debug("ChallengeTracker instantiated")
        return self._challenges

    @property
    def progression_service(self):
        """Get ProgressionService instance (lazy-loaded)"""
        if self._progression_service is None:
            from pet_progression.services.progression_service import ProgressionService
            self._progression_service = ProgressionService(
                achievements=self.achievements,
                streaks=self.streaks,
                challenges=self.challenges,
                cosmetics=self.cosmetics,
                distributor=self.distributor,
                evolution_tracker=self.evolution_tracker,
                clock=self._clock()
            )
            logger.debug("ProgressionService instantiated")
        return self._progression_service


def build_progression_service(
    store: Optional[KeyValueStore] = None,
    notifier: Optional[object] = None,
    clock: Optional[Callable[[], datetime]] = None,
    rng: Optional[random.Random] = None,
    evolution_tracker: Optional[object] = None
):
    """
    Build a ready-to-use ProgressionService

    Args:
        store: Key-value store, defaults to the configured backend
        notifier: UnlockNotifier, defaults to LoggingNotifier
        clock: Source of "now", defaults to UTC wall clock
        rng: Random source for challenge selection
        evolution_tracker: Optional pipeline step 4 collaborator

    Returns:
        ProgressionService wired to a fresh container
    """
    container = ProgressionContainer(
        store=store if store is not None else create_store(),
        notifier=notifier,
        clock=clock,
        rng=rng,
        evolution_tracker=evolution_tracker
    )
    logger.info("Progression container initialized")
    return container.progression_service
