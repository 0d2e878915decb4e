"""
Persistence Layer

Storage backends, backend selection, the expiring key store used for job
records and the brief archive.
"""

from .storage import StorageBackend, FileStorage, MemoryStorage
from .redis_storage import RedisStorage
from .rest_storage import RestKVStorage
from .factory import Persistence, select_backend, build_persistence
from .expiring import ExpiringKeyStore
from .archive import BriefArchive, BRIEF_INDEX, date_score

__all__ = [
    "StorageBackend",
    "FileStorage",
    "MemoryStorage",
    "RedisStorage",
    "RestKVStorage",
    "Persistence",
    "select_backend",
    "build_persistence",
    "ExpiringKeyStore",
    "BriefArchive",
    "BRIEF_INDEX",
    "date_score",
]
