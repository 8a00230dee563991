"""
Job repository: storage boundary for the active queue and the archive.

The state machine, queries and service talk only to JobRepository, so the
JSON file implementation can be swapped for an embedded or client-server
database without touching them.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import ContextManager, Iterator, List, Sequence

from ..jobs.models import ArchiveEntry, JobRecord
from .store import JsonCollectionStore

logger = logging.getLogger(__name__)


class JobRepository(ABC):
    """Abstract storage for active jobs and archived jobs."""

    @abstractmethod
    def load(self) -> List[JobRecord]:
        """Load the full active collection."""
        ...

    @abstractmethod
    def save(self, jobs: Sequence[JobRecord]) -> None:
        """Atomically replace the full active collection."""
        ...

    @abstractmethod
    def load_archive(self) -> List[ArchiveEntry]:
        """Load the full archive collection."""
        ...

    @abstractmethod
    def archive(self, entries: Sequence[ArchiveEntry]) -> List[ArchiveEntry]:
        """
        Move jobs from the active collection into the archive.

        Returns the entries that were newly written to the archive.
        """
        ...

    @abstractmethod
    def reconcile(self) -> int:
        """Heal an interrupted archive move. Returns the number of jobs repaired."""
        ...

    @abstractmethod
    def locked(self) -> ContextManager[None]:
        """Hold exclusive access to the active collection for a read-modify-write cycle."""
        ...


class JsonFileRepository(JobRepository):
    """
    Repository backed by two whole-collection JSON files.

    Archive moves write the archive first, then the active file. A crash
    between the two writes leaves the job in both files, never in neither;
    reconcile() drops the stale active copy.

    Lock order is always active, then archive.
    """

    def __init__(self, active_path: Path, archive_path: Path):
        self.active_store: JsonCollectionStore[JobRecord] = JsonCollectionStore(active_path, JobRecord)
        self.archive_store: JsonCollectionStore[ArchiveEntry] = JsonCollectionStore(archive_path, ArchiveEntry)

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self.active_store.lock:
            yield

    def load(self) -> List[JobRecord]:
        return self.active_store.load()

    def save(self, jobs: Sequence[JobRecord]) -> None:
        with self.active_store.lock:
            self.active_store.save(jobs)

    def load_archive(self) -> List[ArchiveEntry]:
        return self.archive_store.load()

    def archive(self, entries: Sequence[ArchiveEntry]) -> List[ArchiveEntry]:
        if not entries:
            return []
        moving_ids = {entry.id for entry in entries}

        with self.active_store.lock, self.archive_store.lock:
            archived = self.archive_store.load()
            archived_ids = {entry.id for entry in archived}
            written = [entry for entry in entries if entry.id not in archived_ids]
            if written:
                self.archive_store.save(archived + written)

            active = self.active_store.load()
            remaining = [job for job in active if job.id not in moving_ids]
            if len(remaining) != len(active):
                self.active_store.save(remaining)

        logger.info(
            "Archived %d job(s) (%d already present in archive)",
            len(written), len(entries) - len(written),
        )
        return written

    def reconcile(self) -> int:
        with self.active_store.lock, self.archive_store.lock:
            archived_ids = {entry.id for entry in self.archive_store.load()}
            if not archived_ids:
                return 0
            active = self.active_store.load()
            remaining = [job for job in active if job.id not in archived_ids]
            repaired = len(active) - len(remaining)
            if repaired:
                self.active_store.save(remaining)
                logger.warning(
                    "Removed %d job(s) left in the active store by an interrupted archive move",
                    repaired,
                )
        return repaired
