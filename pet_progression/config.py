"""Configuration management"""
import os
from dotenv import load_dotenv

from pet_progression.exceptions import ConfigurationError

load_dotenv()

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Persistence
# - 'memory' (default): in-process store, lost on exit
# - 'http': remote key-value service at STORE_URL
STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory")
STORE_URL: str = os.getenv("STORE_URL", "")
STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "5.0"))
STORAGE_KEY_PREFIX: str = os.getenv("STORAGE_KEY_PREFIX", "progression")

# Write retries (bounded exponential backoff)
PERSIST_MAX_RETRIES: int = int(os.getenv("PERSIST_MAX_RETRIES", "3"))
PERSIST_BASE_DELAY_SECONDS: float = float(os.getenv("PERSIST_BASE_DELAY_SECONDS", "0.25"))

# Progression tuning
STREAK_HISTORY_LIMIT: int = int(os.getenv("STREAK_HISTORY_LIMIT", "90"))
RECENT_UNLOCKS_LIMIT: int = int(os.getenv("RECENT_UNLOCKS_LIMIT", "5"))

# Unlock notifications (unlocks are recorded either way)
ENABLE_UNLOCK_NOTIFICATIONS: bool = os.getenv("ENABLE_UNLOCK_NOTIFICATIONS", "true").lower() == "true"

SUPPORTED_STORE_BACKENDS = ("memory", "http")


# Validation
def validate_config() -> None:
    """Validate configuration"""
    if STORE_BACKEND not in SUPPORTED_STORE_BACKENDS:
        raise ConfigurationError(
            f"STORE_BACKEND must be one of {', '.join(SUPPORTED_STORE_BACKENDS)}",
            config_key="STORE_BACKEND"
        )
    if STORE_BACKEND == "http" and not STORE_URL:
        raise ConfigurationError("STORE_URL is required for the http backend", config_key="STORE_URL")
    if STREAK_HISTORY_LIMIT <= 0:
        raise ConfigurationError("STREAK_HISTORY_LIMIT must be positive", config_key="STREAK_HISTORY_LIMIT")
    if RECENT_UNLOCKS_LIMIT <= 0:
        raise ConfigurationError("RECENT_UNLOCKS_LIMIT must be positive", config_key="RECENT_UNLOCKS_LIMIT")
    if PERSIST_MAX_RETRIES < 0:
        raise ConfigurationError("PERSIST_MAX_RETRIES cannot be negative", config_key="PERSIST_MAX_RETRIES")
