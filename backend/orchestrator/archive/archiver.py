"""
Archiver: moves terminal jobs out of the active queue.

Archival is a logical move (append to archive, then remove from active)
delegated to the repository so both halves run under the store locks.
The retention decision (when to archive) belongs to the caller.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from ..jobs.errors import InvalidStateTransitionError
from ..jobs.models import ArchiveEntry, JobRecord, utc_now
from ..persistence.repository import JobRepository

logger = logging.getLogger(__name__)


class Archiver:
    """Builds archive snapshots and commits them through a JobRepository."""

    def __init__(self, repository: JobRepository):
        self._repository = repository

    @staticmethod
    def snapshot(job: JobRecord, now: Optional[datetime] = None) -> ArchiveEntry:
        """
        Build the archive entry for a terminal job.

        Raises:
            InvalidStateTransitionError: If the job is not terminal
        """
        if not job.is_terminal:
            raise InvalidStateTransitionError(
                "job", job.status.value, "archived",
                "only completed or failed jobs can be archived",
            )
        return ArchiveEntry.from_job(job, archived_at=now or utc_now())

    def archive_jobs(self, jobs: Sequence[JobRecord], now: Optional[datetime] = None) -> List[ArchiveEntry]:
        """
        Archive a batch of terminal jobs in one move.

        All jobs are validated before anything is written.

        Returns:
            Entries newly written to the archive
        """
        now = now or utc_now()
        entries = [self.snapshot(job, now) for job in jobs]
        if not entries:
            return []
        written = self._repository.archive(entries)
        for entry in written:
            logger.info("Archived job %s (%s)", entry.id, entry.status.value)
        return written
