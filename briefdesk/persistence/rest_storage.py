"""
REST Key-Value Storage Backend

Managed key-value service reached over HTTPS (the Upstash / Vercel KV REST
protocol): every Redis command is POSTed as a JSON array and answered with
`{"result": ...}` or `{"error": "..."}`. Expiry and sorted sets are native
to the service.
"""

import json
import logging
from typing import Any, List, Optional

import httpx

from briefdesk.errors import StorageError
from briefdesk.persistence.remote import RemoteGuard
from briefdesk.persistence.storage import StorageBackend

logger = logging.getLogger(__name__)


class RestKVStorage(StorageBackend):
    """
    Async client for a REST key-value service.

    Usage:
        storage = RestKVStorage(url="https://example.upstash.io", token="...")
        await storage.put("brief:2026-02-22", report, ttl_seconds=7776000)
        await storage.close()
    """

    name = "rest-kv"
    native_ttl = True

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        guard: Optional[RemoteGuard] = None,
    ):
        """
        Initialize REST KV storage.

        Args:
            url: Service base URL
            token: Bearer token with read/write access
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
            guard: Failure accounting, replaceable in tests
        """
        if not url or not token:
            raise ValueError("REST KV url and token are both required")

        self._client = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._guard = guard or RemoteGuard("KV service", (httpx.HTTPError,))
        logger.info("RestKVStorage initialized")

    async def _command(self, *args: Any) -> Any:
        """Run one command and return its `result` field."""
        command = str(args[0])
        async with self._guard.call(command):
            response = await self._client.post("/", json=[str(a) for a in args])

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code != 200 or "error" in body:
            raise StorageError(
                f"KV service rejected {command}: {body.get('error', response.status_code)}",
                details={"operation": command, "status_code": response.status_code},
            )
        return body.get("result")

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

        if ttl_seconds is not None:
            await self._command("SET", key, payload, "EX", int(ttl_seconds))
        else:
            await self._command("SET", key, payload)

    async def get(self, key: str) -> Optional[Any]:
        return self._decode(key, await self._command("GET", key))

    async def get_many(self, keys: List[str]) -> List[Optional[Any]]:
        if not keys:
            return []
        raws = await self._command("MGET", *keys)
        return [self._decode(key, raw) for key, raw in zip(keys, raws or [])]

    async def delete(self, key: str) -> bool:
        removed = await self._command("DEL", key)
        return int(removed or 0) > 0

    async def index_add(self, index: str, score: float, member: str) -> None:
        await self._command("ZADD", index, score, member)

    async def index_range_desc(self, index: str, offset: int, count: int) -> List[str]:
        if count <= 0:
            return []
        members = await self._command("ZRANGE", index, offset, offset + count - 1, "REV")
        return list(members or [])

    async def index_remove(self, index: str, member: str) -> None:
        await self._command("ZREM", index, member)

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("RestKVStorage closed")
