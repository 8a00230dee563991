"""
Job model, creation, state machine and queries.

This package defines what a job is and how it may change.
It does NOT touch storage; see orchestrator.persistence and
orchestrator.service for the read-mutate-write cycle.
"""

from .errors import (
    JobError,
    ValidationError,
    JobNotFoundError,
    DuplicateJobError,
    InvalidStateTransitionError,
    NarrationConflictError,
)
from .models import (
    JobType,
    JobStatus,
    Pipeline,
    JobSource,
    NarrationMode,
    NarrationStatus,
    CastMember,
    JobRecord,
    ArchiveEntry,
    TERMINAL_JOB_STATES,
)
from .factory import JobInput, create_job
from .state import (
    can_transition_job,
    can_transition_narration,
    is_job_terminal,
)
from .queries import JobFilter, QueueSummary, list_jobs

__all__ = [
    # Errors
    "JobError",
    "ValidationError",
    "JobNotFoundError",
    "DuplicateJobError",
    "InvalidStateTransitionError",
    "NarrationConflictError",
    # Models
    "JobType",
    "JobStatus",
    "Pipeline",
    "JobSource",
    "NarrationMode",
    "NarrationStatus",
    "CastMember",
    "JobRecord",
    "ArchiveEntry",
    "TERMINAL_JOB_STATES",
    # Creation
    "JobInput",
    "create_job",
    # State validation
    "can_transition_job",
    "can_transition_narration",
    "is_job_terminal",
    # Queries
    "JobFilter",
    "QueueSummary",
    "list_jobs",
]
