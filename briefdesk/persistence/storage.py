"""
Storage Backends

Key-value contract shared by every backend variant, plus the local file
and in-process memory implementations.

Values are anything JSON-serializable. Every variant supports an optional
time-to-live on `put` and named ordered indexes (score -> member), read
newest-first.
"""

import os
import json
import time
import logging
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote, unquote

from briefdesk.errors import StorageError

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    #: Short variant name, reported by the health endpoint
    name: str = "abstract"

    #: True when the backend expires keys itself (no lazy emulation)
    native_ttl: bool = False

    @abstractmethod
    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Load value by key. None when absent or expired."""
        pass

    async def get_many(self, keys: List[str]) -> List[Optional[Any]]:
        """Load several keys at once, preserving order."""
        return [await self.get(key) for key in keys]

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if something was removed."""
        pass

    @abstractmethod
    async def index_add(self, index: str, score: float, member: str) -> None:
        """Add member to index (or move it to a new score)."""
        pass

    @abstractmethod
    async def index_range_desc(self, index: str, offset: int, count: int) -> List[str]:
        """Members ordered by score, highest first."""
        pass

    @abstractmethod
    async def index_remove(self, index: str, member: str) -> None:
        """Remove member from index. No-op when absent."""
        pass

    async def close(self) -> None:
        """Release connections. Default: nothing to release."""
        return None


def _encode(value: Any) -> str:
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Value is not serializable: {e}") from e


def _expires_at(ttl_seconds: Optional[int], now: float) -> Optional[float]:
    if ttl_seconds is None:
        return None
    if ttl_seconds <= 0:
        raise ValueError("ttl_seconds must be positive")
    return now + ttl_seconds


class MemoryStorage(StorageBackend):
    """
    In-process storage backend.

    Data lives only as long as the process. TTL is emulated by storing an
    absolute expiry time and evicting lazily: an expired entry is deleted by
    the read that finds it. There is no background sweep, so memory held by
    expired keys is only reclaimed when they are accessed.
    """

    name = "memory"
    native_ttl = False

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        # Values are kept serialized so callers never share mutable objects
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._indexes: Dict[str, Dict[str, float]] = {}

    def _live_entry(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            logger.debug(f"Evicted expired key {key}")
            return None
        return entry

    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        self._data[key] = (_encode(value), _expires_at(ttl_seconds, self._clock()))

    async def get(self, key: str) -> Optional[Any]:
        entry = self._live_entry(key)
        return json.loads(entry[0]) if entry else None

    async def delete(self, key: str) -> bool:
        if self._live_entry(key) is None:
            return False
        del self._data[key]
        return True

    async def index_add(self, index: str, score: float, member: str) -> None:
        self._indexes.setdefault(index, {})[member] = float(score)

    async def index_range_desc(self, index: str, offset: int, count: int) -> List[str]:
        members = self._indexes.get(index, {})
        ordered = sorted(members.items(), key=lambda item: (item[1], item[0]), reverse=True)
        return [member for member, _ in ordered[offset:offset + count]]

    async def index_remove(self, index: str, member: str) -> None:
        self._indexes.get(index, {}).pop(member, None)

    def __len__(self) -> int:
        """Number of stored keys, expired-but-unread ones included."""
        return len(self._data)


class FileStorage(StorageBackend):
    """
    File system storage backend (local development default).

    One JSON file per key under the root directory. Writes go through a
    temporary file and an atomic rename, so readers never see a partial
    record. Each index is a directory of empty marker files named
    `<score>__<member>`; ordering comes from sorting the directory listing.
    TTL is honoured lazily on read, like MemoryStorage.
    """

    name = "file"
    native_ttl = False

    INDEX_DIR = "_index"
    SCORE_WIDTH = 20

    def __init__(
        self,
        base_path: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize file storage.

        Args:
            base_path: Root directory for storage.
                      Defaults to DATA_DIR env var or ./data
            clock: Time source for expiry checks
        """
        if base_path is None:
            base_path = os.getenv("DATA_DIR", "data")

        self.base_path = Path(base_path)
        self._clock = clock
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self.base_path}: {e}") from e

        logger.info(f"FileStorage initialized at {self.base_path}")

    def _get_path(self, key: str) -> Path:
        """Get file path for a key. Keys are percent-encoded into one path segment."""
        return self.base_path / f"{quote(key, safe='')}.json"

    def _index_path(self, index: str) -> Path:
        return self.base_path / self.INDEX_DIR / quote(index, safe="")

    def _marker_name(self, score: float, member: str) -> str:
        if score < 0:
            raise ValueError("FileStorage index scores must be non-negative")
        return f"{score:0{self.SCORE_WIDTH}.3f}__{quote(member, safe='')}"

    @staticmethod
    def _marker_member(name: str) -> str:
        return unquote(name.split("__", 1)[1])

    def _write_atomic(self, path: Path, text: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        envelope = {
            "value": value,
            "expires_at": _expires_at(ttl_seconds, self._clock()),
        }
        path = self._get_path(key)
        text = _encode(envelope)
        try:
            self._write_atomic(path, text)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

        logger.debug(f"Saved {key} to {path}")

    async def get(self, key: str) -> Optional[Any]:
        path = self._get_path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                envelope = json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt record for {key}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

        expires_at = envelope.get("expires_at")
        if expires_at is not None and expires_at <= self._clock():
            path.unlink(missing_ok=True)
            logger.debug(f"Evicted expired key {key}")
            return None

        return envelope.get("value")

    async def delete(self, key: str) -> bool:
        # An expired file counts as absent
        if await self.get(key) is None:
            return False
        try:
            self._get_path(key).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

        logger.debug(f"Deleted {key}")
        return True

    def _markers(self, index: str) -> List[str]:
        index_path = self._index_path(index)
        try:
            return [name for name in os.listdir(index_path) if "__" in name]
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"Failed to list index {index}: {e}") from e

    async def index_add(self, index: str, score: float, member: str) -> None:
        marker = self._marker_name(score, member)
        index_path = self._index_path(index)
        try:
            index_path.mkdir(parents=True, exist_ok=True)
            for name in self._markers(index):
                if name != marker and self._marker_member(name) == member:
                    (index_path / name).unlink(missing_ok=True)
            (index_path / marker).touch()
        except OSError as e:
            raise StorageError(f"Failed to update index {index}: {e}") from e

    async def index_range_desc(self, index: str, offset: int, count: int) -> List[str]:
        names = sorted(self._markers(index), reverse=True)
        return [self._marker_member(name) for name in names[offset:offset + count]]

    async def index_remove(self, index: str, member: str) -> None:
        index_path = self._index_path(index)
        try:
            for name in self._markers(index):
                if self._marker_member(name) == member:
                    (index_path / name).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to update index {index}: {e}") from e
