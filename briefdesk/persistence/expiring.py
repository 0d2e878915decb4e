"""
Expiring Key Store

Generic put/get of a JSON value under a namespaced key with a time-to-live.
Used for job records; expiry is enforced by the backend (natively or by
lazy eviction), so an expired key reads as absent on every variant.
"""

import logging
from typing import Any, Optional

from briefdesk.persistence.storage import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


class ExpiringKeyStore:
    """Thin TTL-first view over a StorageBackend."""

    def __init__(self, backend: StorageBackend, default_ttl: int = DEFAULT_TTL_SECONDS):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.backend = backend
        self.default_ttl = default_ttl

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store value; it becomes unreachable after the TTL elapses."""
        await self.backend.put(key, value, ttl_seconds or self.default_ttl)

    async def get(self, key: str) -> Optional[Any]:
        """Value for key, or None when unknown or expired."""
        return await self.backend.get(key)

    async def delete(self, key: str) -> bool:
        return await self.backend.delete(key)
