"""
State repository - schema-validated blobs on top of a KeyValueStore

Read path: a structurally invalid blob is logged and reported as absent, so
callers fall back to default state (or, for streaks, history replay). A failed
read is retried and then raised as StoreReadError; nothing is assumed absent
because the store could not be reached.

Write path: writes are retried with bounded exponential backoff and, once
retries are exhausted, logged and accepted as lost.
"""

import logging
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as SchemaValidationError

from pet_progression.config import (
    PERSIST_BASE_DELAY_SECONDS,
    PERSIST_MAX_RETRIES,
    STORAGE_KEY_PREFIX,
)
from pet_progression.exceptions import StoreWriteError, wrap_storage_exception
from pet_progression.resilience.metrics import record_state_recovery, record_store_operation
from pet_progression.resilience.retry import retry_with_backoff
from pet_progression.storage.store import KeyValueStore

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

ACHIEVEMENTS_KEY = "achievements"
STREAKS_KEY = "streaks"
CHALLENGES_KEY = "challenges"
COSMETICS_KEY = "cosmetics"


class StateRepository:
    """
    Namespaced, validated access to the per-subsystem blobs.

    Example:
        repo = StateRepository(InMemoryStore())
        data = await repo.load(STREAKS_KEY, StreakStorageData)
        await repo.save(STREAKS_KEY, data)
    """

    def __init__(
        self,
        store: KeyValueStore,
        key_prefix: str = STORAGE_KEY_PREFIX,
        max_retries: int = PERSIST_MAX_RETRIES,
        base_delay: float = PERSIST_BASE_DELAY_SECONDS
    ):
        self.store = store
        self.key_prefix = key_prefix
        self.max_retries = max_retries
        self.base_delay = base_delay

    def key_for(self, name: str) -> str:
        return f"{self.key_prefix}:{name}"

    async def load_raw(self, name: str) -> Optional[Any]:
        """
        Read the raw blob for a subsystem

        Transient read errors are retried like writes. An unreadable blob is
        never reported as absent: callers starting from defaults would
        overwrite the stored state on their next save.

        Returns:
            The stored JSON-compatible value, or None if the key is absent

        Raises:
            StoreReadError: If the store could not be read after all retries
        """
        key = self.key_for(name)
        try:
            value = await retry_with_backoff(
                self.store.get,
                key,
                max_retries=self.max_retries,
                base_delay=self.base_delay,
                operation=f"load_{name}"
            )
        except Exception as e:
            record_store_operation("get", False)
            logger.error(f"Failed to read {key}, leaving stored state untouched: {e}")
            raise wrap_storage_exception(e, operation="get", key=key) from e
        record_store_operation("get", True)
        return value

    def validate(self, name: str, raw: Any, model: Type[M]) -> Optional[M]:
        """
        Validate a raw blob against its schema

        Returns:
            Parsed model, or None if the blob is structurally invalid
        """
        try:
            return model.model_validate(raw)
        except SchemaValidationError as e:
            logger.warning(
                f"Stored {name} state failed schema validation "
                f"({e.error_count()} errors), ignoring it"
            )
            return None

    async def load(self, name: str, model: Type[M]) -> Optional[M]:
        """
        Read and validate; absent and schema-invalid blobs yield None

        Raises:
            StoreReadError: If the store could not be read
        """
        raw = await self.load_raw(name)
        if raw is None:
            return None
        parsed = self.validate(name, raw, model)
        if parsed is None:
            record_state_recovery(name, "reset")
        return parsed

    async def save(self, name: str, state: BaseModel) -> bool:
        """
        Persist a model as JSON-compatible data

        Returns:
            True if the write landed, False if it was lost after all retries
        """
        key = self.key_for(name)
        payload = state.model_dump(mode="json")

        async def write_blob() -> bool:
            ok = await self.store.set(key, payload)
            if not ok:
                raise StoreWriteError(f"Store rejected write for {key}", key=key, operation="set")
            return True

        try:
            await retry_with_backoff(
                write_blob,
                max_retries=self.max_retries,
                base_delay=self.base_delay,
                operation=f"save_{name}"
            )
            record_store_operation("set", True)
            return True
        except Exception as e:
            record_store_operation("set", False)
            logger.error(f"Write for {key} lost: {type(e).__name__}: {e}")
            return False

    async def remove(self, name: str) -> bool:
        key = self.key_for(name)
        try:
            ok = await self.store.remove(key)
            record_store_operation("remove", ok)
            return ok
        except Exception as e:
            record_store_operation("remove", False)
            logger.error(f"Failed to remove {key}: {e}", exc_info=True)
            return False
