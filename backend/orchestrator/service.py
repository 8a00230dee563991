"""
Job service: the operation surface of the orchestration queue.

Every mutation is one synchronous cycle:
    load full collection -> apply transition -> atomic rewrite -> notify

The cycle runs under the repository lock, so mutations inside this process
never interleave. Writers in other processes are NOT coordinated: two
processes rewriting the same file race and the last writer wins.

Notifications fire only after a successful commit.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, TypeVar, Union

from .archive import Archiver, ArchiveFilter, ArchiveSearchResult, search_archive
from .archive.search import DEFAULT_ARCHIVE_LIMIT
from .jobs.errors import (
    DuplicateJobError,
    InvalidStateTransitionError,
    JobNotFoundError,
    ValidationError,
)
from .jobs.factory import JobInput, create_job
from .jobs.models import (
    ArchiveEntry,
    JobRecord,
    JobSource,
    JobStatus,
    NarrationMode,
    NarrationStatus,
    Pipeline,
    utc_now,
)
from .jobs.queries import (
    DEFAULT_LIST_LIMIT,
    JobFilter,
    QueueSummary,
    list_jobs,
    narration_jobs,
    next_dispatchable,
    summarize,
    terminal_before,
)
from .jobs.state import (
    apply_cancel,
    apply_narration,
    apply_narration_mode,
    apply_retry,
    apply_status,
)
from .notifications import ChangeKind, ChangeNotifier
from .persistence.repository import JobRepository, JsonFileRepository
from .settings import OrchestratorSettings

logger = logging.getLogger(__name__)

EnumT = TypeVar("EnumT", bound=Enum)

# Attempts at drawing a fresh ID before giving up on a collision
_MAX_ID_ATTEMPTS = 5


def _coerce_enum(enum_cls: Type[EnumT], value: Union[EnumT, str], field: str) -> EnumT:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {allowed}") from None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _find_index(jobs: List[JobRecord], job_id: str) -> int:
    for index, job in enumerate(jobs):
        if job.id == job_id:
            return index
    raise JobNotFoundError(job_id)


class JobService:
    """
    Orchestrates job creation, transitions, queries and archival.

    Args:
        repository: Storage for active and archived jobs
        notifier: Change notification registry (a private one is created if omitted)
        clock: Source of "now" (injectable for tests)
        list_limit: Default cap for list_jobs when no filter limit is given
    """

    def __init__(
        self,
        repository: JobRepository,
        notifier: Optional[ChangeNotifier] = None,
        clock: Callable[[], datetime] = utc_now,
        list_limit: int = DEFAULT_LIST_LIMIT,
    ):
        self.repository = repository
        self.notifier = notifier or ChangeNotifier()
        self._clock = clock
        self.list_limit = list_limit
        self._archiver = Archiver(repository)

    @classmethod
    def from_settings(
        cls,
        settings: OrchestratorSettings,
        notifier: Optional[ChangeNotifier] = None,
    ) -> "JobService":
        repository = JsonFileRepository(settings.jobs_path, settings.archive_path)
        return cls(repository, notifier=notifier, list_limit=settings.list_limit)

    def _now(self) -> datetime:
        return _as_utc(self._clock())

    def start(self) -> int:
        """
        Prepare the stores for use.

        Heals any archive move interrupted by a crash. Returns the number
        of jobs repaired.
        """
        return self.repository.reconcile()

    # Creation

    def create(
        self,
        data: Union[JobInput, Dict[str, Any]],
        source: Union[JobSource, str] = JobSource.DASHBOARD,
    ) -> JobRecord:
        """
        Create and persist a new pending job.

        Raises:
            ValidationError: If type/description are missing or input is malformed
            DuplicateJobError: If no unique ID could be drawn
            PersistenceError: If the store cannot be read or written
        """
        source = _coerce_enum(JobSource, source, "source")
        now = self._now()

        with self.repository.locked():
            jobs = self.repository.load()
            taken = {job.id for job in jobs}
            taken.update(entry.id for entry in self.repository.load_archive())

            job = None
            for _ in range(_MAX_ID_ATTEMPTS):
                candidate = create_job(data, source=source, now=now)
                if candidate.id not in taken:
                    job = candidate
                    break
            if job is None:
                raise DuplicateJobError(candidate.id)

            self.repository.save(jobs + [job])

        logger.info("Created job %s (%s via %s, priority %d)", job.id, job.type.value, source.value, job.priority)
        self.notifier.on_job_changed(job, ChangeKind.CREATED)
        return job

    # Reads

    def get(self, job_id: str) -> JobRecord:
        """
        Raises:
            JobNotFoundError: If the job is not in the active store
        """
        jobs = self.repository.load()
        return jobs[_find_index(jobs, job_id)]

    def list_jobs(self, filters: Optional[JobFilter] = None) -> List[JobRecord]:
        """List active jobs in dispatch order (priority, then newest)."""
        if filters is None:
            filters = JobFilter(limit=self.list_limit)
        return list_jobs(self.repository.load(), filters)

    def next_job(self, pipeline: Optional[Union[Pipeline, str]] = None) -> Optional[JobRecord]:
        """The pending, due job a worker should pick up next, if any."""
        if pipeline is not None:
            pipeline = _coerce_enum(Pipeline, pipeline, "pipeline")
        return next_dispatchable(self.repository.load(), now=self._now(), pipeline=pipeline)

    def summary(self) -> QueueSummary:
        return summarize(self.repository.load())

    def narration_jobs(self) -> List[JobRecord]:
        return narration_jobs(self.repository.load())

    # Mutations

    def _mutate(self, job_id: str, action: str, apply: Callable[[JobRecord], JobRecord]) -> JobRecord:
        with self.repository.locked():
            jobs = self.repository.load()
            index = _find_index(jobs, job_id)
            try:
                updated = apply(jobs[index])
            except InvalidStateTransitionError as e:
                logger.warning("Rejected %s on job %s: %s", action, job_id, e)
                raise
            jobs[index] = updated
            self.repository.save(jobs)

        logger.info("Job %s: %s (status=%s)", job_id, action, updated.status.value)
        self.notifier.on_job_changed(updated)
        return updated

    def cancel(self, job_id: str) -> JobRecord:
        """
        Cancel a pending job (operator action).

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidStateTransitionError: If the job is not pending
        """
        return self._mutate(job_id, "cancel", lambda job: apply_cancel(job, self._now()))

    def retry(self, job_id: str) -> JobRecord:
        """
        Return a failed job to pending (operator action).

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidStateTransitionError: If the job is not failed
        """
        return self._mutate(job_id, "retry", lambda job: apply_retry(job, self._now()))

    def set_priority(self, job_id: str, priority: int) -> JobRecord:
        """
        Raises:
            ValidationError: If priority is not a non-negative integer
            JobNotFoundError: If the job does not exist
        """
        if isinstance(priority, bool) or not isinstance(priority, int) or priority < 0:
            raise ValidationError(f"Priority must be a non-negative integer, got {priority!r}")
        return self._mutate(
            job_id, f"priority={priority}",
            lambda job: job.evolve(priority=priority, updated_at=self._now()),
        )

    def set_schedule(self, job_id: str, scheduled_at: Optional[datetime]) -> JobRecord:
        """
        Set or clear the earliest dispatch time of a pending job.

        Raises:
            ValidationError: If the job is no longer pending
            JobNotFoundError: If the job does not exist
        """
        if scheduled_at is not None:
            scheduled_at = _as_utc(scheduled_at)

        def apply(job: JobRecord) -> JobRecord:
            if job.status != JobStatus.PENDING:
                raise ValidationError(
                    f"Job {job.id} cannot be rescheduled. "
                    f"Current status: {job.status.value}. "
                    f"Only pending jobs can be scheduled."
                )
            return job.evolve(scheduled_at=scheduled_at, updated_at=self._now())

        label = f"schedule={scheduled_at.isoformat() if scheduled_at else 'none'}"
        return self._mutate(job_id, label, apply)

    def set_narration_mode(
        self,
        job_id: str,
        mode: Union[NarrationMode, str],
        script: Optional[str] = None,
    ) -> JobRecord:
        """
        Raises:
            ValidationError: If mode is not auto/manual
            JobNotFoundError: If the job does not exist
            NarrationConflictError: If narration is past the script stage
        """
        mode = _coerce_enum(NarrationMode, mode, "narrationMode")
        return self._mutate(
            job_id, f"narration mode={mode.value}",
            lambda job: apply_narration_mode(job, mode, script, self._now()),
        )

    def update_status(
        self,
        job_id: str,
        status: Union[JobStatus, str],
        output_paths: Optional[Iterable[str]] = None,
        error: Optional[str] = None,
    ) -> JobRecord:
        """
        Apply a progress report from the generation pipeline.

        Raises:
            ValidationError: If status is unknown
            JobNotFoundError: If the job does not exist
            InvalidStateTransitionError: If the edge is not allowed
        """
        status = _coerce_enum(JobStatus, status, "status")
        paths = list(output_paths) if output_paths is not None else None
        return self._mutate(
            job_id, f"status -> {status.value}",
            lambda job: apply_status(job, status, paths, error, self._now()),
        )

    def update_narration(
        self,
        job_id: str,
        narration_status: Union[NarrationStatus, str],
        audio_path: Optional[str] = None,
        video_path: Optional[str] = None,
        script: Optional[str] = None,
    ) -> JobRecord:
        """
        Apply a progress report from the narration backend.

        Raises:
            ValidationError: If narration_status is unknown
            JobNotFoundError: If the job does not exist
            InvalidStateTransitionError: If the edge is not allowed
        """
        narration_status = _coerce_enum(NarrationStatus, narration_status, "narrationStatus")
        return self._mutate(
            job_id, f"narration -> {narration_status.value}",
            lambda job: apply_narration(job, narration_status, audio_path, video_path, script, self._now()),
        )

    # Archive

    def archive(self, job_id: str) -> ArchiveEntry:
        """
        Move one terminal job into the archive.

        Raises:
            JobNotFoundError: If the job is not in the active store
            InvalidStateTransitionError: If the job is not terminal
        """
        with self.repository.locked():
            jobs = self.repository.load()
            job = jobs[_find_index(jobs, job_id)]
            entry = self._archiver.snapshot(job, self._now())
            self._archiver.archive_jobs([job], now=entry.archived_at)

        self.notifier.on_job_changed(job, ChangeKind.ARCHIVED)
        return entry

    def archive_terminal(self, older_than: datetime) -> List[ArchiveEntry]:
        """
        Archive every terminal job completed at or before older_than.

        The retention policy (choosing older_than) is the caller's decision.
        """
        cutoff = _as_utc(older_than)
        self.repository.reconcile()

        with self.repository.locked():
            candidates = terminal_before(self.repository.load(), cutoff)
            written = self._archiver.archive_jobs(candidates, now=self._now())

        for job in candidates:
            self.notifier.on_job_changed(job, ChangeKind.ARCHIVED)
        if candidates:
            logger.info("Retention pass archived %d job(s) completed before %s", len(written), cutoff.isoformat())
        return written

    def archive_search(
        self,
        filters: Optional[ArchiveFilter] = None,
        limit: Optional[int] = DEFAULT_ARCHIVE_LIMIT,
        offset: int = 0,
    ) -> ArchiveSearchResult:
        """Search archived jobs, newest first. limit is capped at 200."""
        return search_archive(self.repository.load_archive(), filters, limit, offset)
