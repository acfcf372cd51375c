"""Persistence for progression state: one validated blob per subsystem"""

from pet_progression.storage.store import KeyValueStore, InMemoryStore
from pet_progression.storage.http_store import HttpKeyValueStore
from pet_progression.storage.repository import (
    StateRepository,
    ACHIEVEMENTS_KEY,
    STREAKS_KEY,
    CHALLENGES_KEY,
    COSMETICS_KEY,
)

__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "HttpKeyValueStore",
    "StateRepository",
    "ACHIEVEMENTS_KEY",
    "STREAKS_KEY",
    "CHALLENGES_KEY",
    "COSMETICS_KEY",
]
