"""
Query layer over the active job collection.

Ordering is a scheduling policy, not just display:
    priority DESC, created_at DESC, id ASC
Workers draining the queue head-first take jobs in exactly this order.
The id tie-break keeps the order stable across repeated calls.

All functions are pure: they take a collection and return new lists.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import (
    JobRecord,
    JobSource,
    JobStatus,
    JobType,
    NarrationStatus,
    Pipeline,
    TERMINAL_JOB_STATES,
    utc_now,
)


DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 500
RECENT_JOBS_COUNT = 10
SUMMARY_DESCRIPTION_LENGTH = 100


class JobFilter(BaseModel):
    """Filters for listing active jobs. Status values combine with OR."""

    model_config = ConfigDict(extra="forbid")

    status: Optional[Set[JobStatus]] = None
    pipeline: Optional[Pipeline] = None
    source: Optional[JobSource] = None
    type: Optional[JobType] = None
    limit: int = Field(default=DEFAULT_LIST_LIMIT, ge=0)


class RecentJob(BaseModel):
    """Abbreviated job view used in the queue summary."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    id: str
    type: JobType
    description: str
    status: JobStatus
    priority: int
    created_at: datetime


class QueueSummary(BaseModel):
    """Counts by status bucket plus the most recent jobs."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    total: int = 0
    pending: int = 0
    active: int = 0  # Any stage between pending and terminal
    completed: int = 0
    failed: int = 0
    recent_jobs: List[RecentJob] = Field(default_factory=list)


def _created_desc_key(job: JobRecord) -> float:
    return -job.created_at.timestamp()


def sort_for_dispatch(jobs: Iterable[JobRecord]) -> List[JobRecord]:
    """Sort jobs by priority DESC, created_at DESC, id ASC."""
    return sorted(jobs, key=lambda j: (-j.priority, _created_desc_key(j), j.id))


def list_jobs(jobs: Iterable[JobRecord], filters: Optional[JobFilter] = None) -> List[JobRecord]:
    """
    Filter and order active jobs.

    Args:
        jobs: Active collection
        filters: Optional filters; limit is capped at MAX_LIST_LIMIT

    Returns:
        Matching jobs in dispatch order, at most ``limit`` of them
    """
    filters = filters or JobFilter()
    selected = [
        job for job in jobs
        if (not filters.status or job.status in filters.status)
        and (filters.pipeline is None or job.pipeline == filters.pipeline)
        and (filters.source is None or job.source == filters.source)
        and (filters.type is None or job.type == filters.type)
    ]
    limit = min(filters.limit, MAX_LIST_LIMIT)
    return sort_for_dispatch(selected)[:limit]


def next_dispatchable(
    jobs: Iterable[JobRecord],
    now: Optional[datetime] = None,
    pipeline: Optional[Pipeline] = None,
) -> Optional[JobRecord]:
    """
    Pick the job a worker should start next.

    Only pending jobs whose scheduled_at is unset or already due qualify.
    """
    now = now or utc_now()
    due = [
        job for job in jobs
        if job.status == JobStatus.PENDING
        and (job.scheduled_at is None or job.scheduled_at <= now)
        and (pipeline is None or job.pipeline == pipeline)
    ]
    ordered = sort_for_dispatch(due)
    return ordered[0] if ordered else None


def summarize(jobs: Iterable[JobRecord]) -> QueueSummary:
    """Count jobs by status bucket and list the most recently created ones."""
    jobs = list(jobs)
    summary = QueueSummary(total=len(jobs))
    for job in jobs:
        if job.status == JobStatus.PENDING:
            summary.pending += 1
        elif job.status == JobStatus.COMPLETED:
            summary.completed += 1
        elif job.status == JobStatus.FAILED:
            summary.failed += 1
        else:
            summary.active += 1

    recent = sorted(jobs, key=lambda j: (_created_desc_key(j), j.id))[:RECENT_JOBS_COUNT]
    summary.recent_jobs = [
        RecentJob(
            id=job.id,
            type=job.type,
            description=job.description[:SUMMARY_DESCRIPTION_LENGTH],
            status=job.status,
            priority=job.priority,
            created_at=job.created_at,
        )
        for job in recent
    ]
    return summary


def narration_jobs(jobs: Iterable[JobRecord]) -> List[JobRecord]:
    """
    Jobs relevant to the narration workflow, most recently updated first.

    A job qualifies when narration has started, or when it is a completed
    lesson or clip (a candidate for voice-over).
    """
    selected = [
        job for job in jobs
        if job.narration_status != NarrationStatus.NONE
        or (job.type in (JobType.LESSON, JobType.CLIP) and job.status == JobStatus.COMPLETED)
    ]
    return sorted(selected, key=lambda j: (-j.updated_at.timestamp(), j.id))


def terminal_before(jobs: Iterable[JobRecord], cutoff: datetime) -> List[JobRecord]:
    """Terminal jobs completed at or before cutoff, oldest first."""
    selected = [
        job for job in jobs
        if job.status in TERMINAL_JOB_STATES and job.completed_at is not None
        and job.completed_at <= cutoff
    ]
    return sorted(selected, key=lambda j: (j.completed_at, j.id))
