"""
HTTP-backed key-value store

Talks to a remote blob service:
- GET    {base_url}/kv/{key}  -> 200 {"value": ...} | 404
- PUT    {base_url}/kv/{key}  <- {"value": ...}
- DELETE {base_url}/kv/{key}  -> 2xx | 404

Transport and status errors are converted into StoreReadError/StoreWriteError;
retrying is left to the StateRepository.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from pet_progression.config import STORE_TIMEOUT_SECONDS
from pet_progression.exceptions import wrap_storage_exception

logger = logging.getLogger(__name__)


class HttpKeyValueStore:
    """
    Async key-value client built on httpx.

    Features:
    - Connection pooling via a shared AsyncClient
    - 404 treated as absent on reads and as success on deletes
    - Errors wrapped into the progression exception hierarchy
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = STORE_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the store client.

        Args:
            base_url: Root URL of the blob service
            timeout: Request timeout in seconds
            client: Pre-built AsyncClient (tests inject one with a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _url(self, key: str) -> str:
        return f"{self.base_url}/kv/{quote(key, safe='')}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            response = await self._client.get(self._url(key))
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json().get("value")
        except (httpx.HTTPError, ValueError) as e:
            raise wrap_storage_exception(e, operation="get", key=key) from e

    async def set(self, key: str, value: Any) -> bool:
        try:
            response = await self._client.put(self._url(key), json={"value": value})
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            raise wrap_storage_exception(e, operation="set", key=key) from e

    async def remove(self, key: str) -> bool:
        try:
            response = await self._client.delete(self._url(key))
            if response.status_code == 404:
                return True
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            raise wrap_storage_exception(e, operation="remove", key=key) from e

    async def close(self) -> None:
        """Close the underlying client if this store created it"""
        if self._owns_client:
            await self._client.aclose()
