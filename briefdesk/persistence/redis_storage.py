"""
Redis Storage Backend

Standard Redis (or any server speaking its protocol) reached through a
connection URL. Values are stored as JSON text; TTL and ordered indexes map
onto native key expiry and sorted sets.
"""

import json
import logging
from typing import Any, List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from briefdesk.errors import StorageError
from briefdesk.persistence.remote import RemoteGuard
from briefdesk.persistence.storage import StorageBackend

logger = logging.getLogger(__name__)


class RedisStorage(StorageBackend):
    """
    Redis storage backend.

    Connection errors surface as StorageError; nothing degrades silently.
    """

    name = "redis"
    native_ttl = True

    def __init__(
        self,
        url: Optional[str] = None,
        client: Optional[Redis] = None,
        timeout: float = 10.0,
        guard: Optional[RemoteGuard] = None,
    ):
        """
        Initialize Redis storage.

        Args:
            url: redis:// or rediss:// URL (ignored when client is given)
            client: Pre-built client, used by tests
            timeout: Socket and connect timeout in seconds
            guard: Failure accounting, replaceable in tests
        """
        if client is None:
            if not url:
                raise ValueError("Redis URL not specified")
            options = {
                "decode_responses": True,
                "socket_timeout": timeout,
                "socket_connect_timeout": timeout,
            }
            if url.startswith("rediss://"):
                # Managed Redis providers commonly present certificates that
                # do not match the public hostname
                options["ssl_cert_reqs"] = None
            client = Redis.from_url(url, **options)

        self._redis = client
        self._guard = guard or RemoteGuard("Redis", (RedisError,))
        logger.info("RedisStorage initialized")

    @staticmethod
    def _decode(key: str, raw: Optional[str]) -> Optional[Any]:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt value for {key}: {e}") from e

    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value is not serializable: {e}") from e

        async with self._guard.call("set", key):
            await self._redis.set(key, payload, ex=ttl_seconds)

    async def get(self, key: str) -> Optional[Any]:
        async with self._guard.call("get", key):
            raw = await self._redis.get(key)
        return self._decode(key, raw)

    async def get_many(self, keys: List[str]) -> List[Optional[Any]]:
        if not keys:
            return []
        async with self._guard.call("mget", keys[0]):
            raws = await self._redis.mget(keys)
        return [self._decode(key, raw) for key, raw in zip(keys, raws)]

    async def delete(self, key: str) -> bool:
        async with self._guard.call("del", key):
            removed = await self._redis.delete(key)
        return removed > 0

    async def index_add(self, index: str, score: float, member: str) -> None:
        async with self._guard.call("zadd", index):
            await self._redis.zadd(index, {member: score})

    async def index_range_desc(self, index: str, offset: int, count: int) -> List[str]:
        if count <= 0:
            return []
        async with self._guard.call("zrevrange", index):
            members = await self._redis.zrevrange(index, offset, offset + count - 1)
        return list(members)

    async def index_remove(self, index: str, member: str) -> None:
        async with self._guard.call("zrem", index):
            await self._redis.zrem(index, member)

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("RedisStorage closed")
