"""
Persistence layer for the job queue.

Whole-collection JSON files written with atomic temp-file-then-rename.
One file for the active queue, one for the archive.
"""

from .errors import CorruptStoreError, LoadError, PersistenceError, SaveError
from .repository import JobRepository, JsonFileRepository
from .store import JsonCollectionStore

__all__ = [
    "PersistenceError",
    "LoadError",
    "CorruptStoreError",
    "SaveError",
    "JobRepository",
    "JsonFileRepository",
    "JsonCollectionStore",
]
