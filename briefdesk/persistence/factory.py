"""
Backend selection.

The backend is chosen once at startup from an explicit StorageConfig,
first match wins:

1. REST KV url + token   -> RestKVStorage
2. Redis URL             -> RedisStorage
3. Managed environment   -> MemoryStorage (data lost on restart)
4. Otherwise             -> FileStorage (local development)
"""

import logging
from dataclasses import dataclass

from briefdesk.persistence.redis_storage import RedisStorage
from briefdesk.persistence.rest_storage import RestKVStorage
from briefdesk.persistence.storage import FileStorage, MemoryStorage, StorageBackend
from briefdesk.utils.config import StorageConfig

logger = logging.getLogger(__name__)


def select_backend(config: StorageConfig) -> StorageBackend:
    """Build the storage backend that matches the configuration."""
    if config.rest_url and config.rest_token:
        logger.info("[Store] Using REST KV storage")
        return RestKVStorage(config.rest_url, config.rest_token, timeout=config.timeout)

    if config.redis_url:
        logger.info("[Store] Using Redis storage")
        return RedisStorage(url=config.redis_url, timeout=config.timeout)

    if config.managed_environment:
        logger.warning("[Store] Managed environment detected but no KV storage is configured.")
        logger.warning("[Store] Falling back to in-memory storage; data is lost on every restart.")
        return MemoryStorage()

    logger.info("[Store] Using local file storage")
    return FileStorage(config.data_dir)


@dataclass
class Persistence:
    """Backends wired at startup: one for briefs, one for job records."""
    archive_backend: StorageBackend
    job_backend: StorageBackend

    async def close(self):
        await self.archive_backend.close()
        if self.job_backend is not self.archive_backend:
            await self.job_backend.close()


def build_persistence(config: StorageConfig) -> Persistence:
    """
    Select backends for the archive and for job records.

    Job records are short-lived, so in local file mode they stay in an
    in-process map instead of littering the data directory.
    """
    archive_backend = select_backend(config)
    if isinstance(archive_backend, FileStorage):
        job_backend: StorageBackend = MemoryStorage()
    else:
        job_backend = archive_backend
    return Persistence(archive_backend=archive_backend, job_backend=job_backend)
