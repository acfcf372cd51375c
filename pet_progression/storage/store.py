"""
Key-value store contract and in-process implementation

The progression engine persists one JSON-compatible blob per subsystem
(achievements, streaks, challenges, cosmetics) through any object that
implements KeyValueStore.
"""

import copy
import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Injected persistence collaborator"""

    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent"""
        ...

    async def set(self, key: str, value: Any) -> bool:
        """Store value under key, True on success"""
        ...

    async def remove(self, key: str) -> bool:
        """Delete key, True on success (including when already absent)"""
        ...


class InMemoryStore:
    """In-process store; values are deep-copied on the way in and out"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._failing_writes = 0
        self._failing_reads = 0
        logger.debug("InMemoryStore initialized - data is NOT persisted across processes")

    def fail_next_writes(self, count: int) -> None:
        """Make the next `count` set() calls report failure"""
        self._failing_writes = count

    def fail_next_reads(self, count: int) -> None:
        """Make the next `count` get() calls raise OSError"""
        self._failing_reads = count

    async def get(self, key: str) -> Optional[Any]:
        if self._failing_reads > 0:
            self._failing_reads -= 1
            raise OSError(f"Simulated read failure for {key}")
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> bool:
        if self._failing_writes > 0:
            self._failing_writes -= 1
            logger.debug(f"Simulated write failure for {key}")
            return False
        self._data[key] = copy.deepcopy(value)
        return True

    async def remove(self, key: str) -> bool:
        self._data.pop(key, None)
        return True

    def keys(self):
        return list(self._data.keys())
