"""
State transition validation and application for jobs.

Job lifecycle:
    pending -> building_prompt -> generating_image | generating_video
            -> delivering -> completed
    Any non-terminal stage may fail. Two edges are operator-only:
    cancel (pending -> failed) and retry (failed -> pending).

Narration runs as an independent sub-workflow:
    none -> script_ready -> generating_tts -> tts_ready -> composing -> composed
    A failed TTS run reverts generating_tts -> script_ready and a failed
    compose run reverts composing -> tts_ready. A script_ready job may have
    its script regenerated or re-saved (script_ready -> script_ready).

INVARIANT: A rejected transition never alters the record. Every apply_*
function returns a new JobRecord and leaves its input untouched.

INVARIANT: completed_at is set exactly when the job enters a terminal state
and cleared when it leaves one (retry).
"""

from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple

from .errors import InvalidStateTransitionError, NarrationConflictError
from .models import (
    JobRecord,
    JobStatus,
    NarrationMode,
    NarrationStatus,
    TERMINAL_JOB_STATES,
    utc_now,
)


CANCELLED_FROM_DASHBOARD = "Cancelled from dashboard"
DEFAULT_FAILURE_REASON = "Pipeline reported failure"


def is_job_terminal(status: JobStatus) -> bool:
    """Check if a job status is terminal (completed or failed)."""
    return status in TERMINAL_JOB_STATES


# Edges the generation pipeline may report through update_status
_PIPELINE_TRANSITIONS: Set[Tuple[JobStatus, JobStatus]] = {
    (JobStatus.PENDING, JobStatus.BUILDING_PROMPT),
    (JobStatus.PENDING, JobStatus.FAILED),
    (JobStatus.BUILDING_PROMPT, JobStatus.GENERATING_IMAGE),
    (JobStatus.BUILDING_PROMPT, JobStatus.GENERATING_VIDEO),
    (JobStatus.BUILDING_PROMPT, JobStatus.FAILED),
    (JobStatus.GENERATING_IMAGE, JobStatus.DELIVERING),
    (JobStatus.GENERATING_IMAGE, JobStatus.FAILED),
    (JobStatus.GENERATING_VIDEO, JobStatus.DELIVERING),
    (JobStatus.GENERATING_VIDEO, JobStatus.FAILED),
    (JobStatus.DELIVERING, JobStatus.COMPLETED),
    (JobStatus.DELIVERING, JobStatus.FAILED),
}

# Operator-only edges
_CANCEL_TRANSITION: Tuple[JobStatus, JobStatus] = (JobStatus.PENDING, JobStatus.FAILED)
_RETRY_TRANSITION: Tuple[JobStatus, JobStatus] = (JobStatus.FAILED, JobStatus.PENDING)

_JOB_TRANSITIONS: FrozenSet[Tuple[JobStatus, JobStatus]] = frozenset(
    _PIPELINE_TRANSITIONS | {_CANCEL_TRANSITION, _RETRY_TRANSITION}
)


_NARRATION_TRANSITIONS: Set[Tuple[NarrationStatus, NarrationStatus]] = {
    (NarrationStatus.NONE, NarrationStatus.SCRIPT_READY),
    (NarrationStatus.SCRIPT_READY, NarrationStatus.GENERATING_TTS),
    (NarrationStatus.GENERATING_TTS, NarrationStatus.TTS_READY),
    (NarrationStatus.TTS_READY, NarrationStatus.COMPOSING),
    (NarrationStatus.COMPOSING, NarrationStatus.COMPOSED),
}

# Failure reverts reported by the narration backend
_NARRATION_REVERTS: Set[Tuple[NarrationStatus, NarrationStatus]] = {
    (NarrationStatus.GENERATING_TTS, NarrationStatus.SCRIPT_READY),
    (NarrationStatus.COMPOSING, NarrationStatus.TTS_READY),
}

# Narration mode and script are editable only before TTS starts
NARRATION_EDITABLE_STATES: FrozenSet[NarrationStatus] = frozenset({
    NarrationStatus.NONE,
    NarrationStatus.SCRIPT_READY,
})


def can_transition_job(from_status: JobStatus, to_status: JobStatus) -> bool:
    """
    Check if a job state transition exists in the full transition table.

    Includes the operator-only cancel and retry edges. Self-transitions
    are not edges.
    """
    return (from_status, to_status) in _JOB_TRANSITIONS


def can_pipeline_transition(from_status: JobStatus, to_status: JobStatus) -> bool:
    """Check if the generation pipeline may report this transition."""
    return (from_status, to_status) in _PIPELINE_TRANSITIONS


def can_transition_narration(from_status: NarrationStatus, to_status: NarrationStatus) -> bool:
    return (
        (from_status, to_status) in _NARRATION_TRANSITIONS
        or (from_status, to_status) in _NARRATION_REVERTS
    )


def validate_job_transition(from_status: JobStatus, to_status: JobStatus) -> None:
    """
    Validate a pipeline-reported job transition.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if can_pipeline_transition(from_status, to_status):
        return
    reason = ""
    if (from_status, to_status) == _RETRY_TRANSITION:
        reason = "failed jobs return to pending only through retry"
    raise InvalidStateTransitionError("job", from_status.value, to_status.value, reason)


def validate_narration_transition(
    from_status: NarrationStatus,
    to_status: NarrationStatus,
    script: Optional[str] = None,
) -> None:
    """
    Validate a narration sub-workflow transition.

    script_ready -> script_ready is accepted only when a non-blank script
    accompanies it (regenerate or re-save).

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if can_transition_narration(from_status, to_status):
        return
    if from_status == to_status == NarrationStatus.SCRIPT_READY:
        if script is not None and script.strip():
            return
        raise InvalidStateTransitionError(
            "narration", from_status.value, to_status.value, "a script is required to re-save",
        )
    raise InvalidStateTransitionError("narration", from_status.value, to_status.value)


def _append_paths(existing: List[str], new_paths: Optional[Iterable[str]]) -> List[str]:
    # Append-only, order preserved, duplicates ignored
    merged = list(existing)
    for path in new_paths or []:
        if path and path not in merged:
            merged.append(path)
    return merged


def apply_status(
    job: JobRecord,
    new_status: JobStatus,
    output_paths: Optional[Iterable[str]] = None,
    error: Optional[str] = None,
    now: Optional[datetime] = None,
) -> JobRecord:
    """
    Apply a pipeline progress report to a job.

    Args:
        job: Current record
        new_status: Status reported by the pipeline
        output_paths: Artifact paths to append
        error: Failure description (used when entering FAILED)
        now: Transition time

    Returns:
        Updated copy of the job

    Raises:
        InvalidStateTransitionError: If the edge is not a pipeline edge
    """
    validate_job_transition(job.status, new_status)
    now = now or utc_now()

    changes = {
        "status": new_status,
        "updated_at": now,
        "output_paths": _append_paths(job.output_paths, output_paths),
    }
    if is_job_terminal(new_status):
        changes["completed_at"] = now
    if new_status == JobStatus.FAILED:
        changes["error"] = error or job.error or DEFAULT_FAILURE_REASON
    elif error:
        changes["error"] = error

    return job.evolve(**changes)


def apply_cancel(job: JobRecord, now: Optional[datetime] = None) -> JobRecord:
    """
    Cancel a pending job from the dashboard.

    Raises:
        InvalidStateTransitionError: If the job is not pending
    """
    if (job.status, JobStatus.FAILED) != _CANCEL_TRANSITION:
        raise InvalidStateTransitionError(
            "job", job.status.value, JobStatus.FAILED.value,
            "only pending jobs can be cancelled",
        )
    now = now or utc_now()
    return job.evolve(
        status=JobStatus.FAILED,
        error=CANCELLED_FROM_DASHBOARD,
        completed_at=now,
        updated_at=now,
    )


def apply_retry(job: JobRecord, now: Optional[datetime] = None) -> JobRecord:
    """
    Return a failed job to the queue.

    Clears error and completed_at. Output paths from the failed attempt
    are kept.

    Raises:
        InvalidStateTransitionError: If the job is not failed
    """
    if (job.status, JobStatus.PENDING) != _RETRY_TRANSITION:
        raise InvalidStateTransitionError(
            "job", job.status.value, JobStatus.PENDING.value,
            "only failed jobs can be retried",
        )
    now = now or utc_now()
    return job.evolve(
        status=JobStatus.PENDING,
        error=None,
        completed_at=None,
        updated_at=now,
    )


def apply_narration(
    job: JobRecord,
    narration_status: NarrationStatus,
    audio_path: Optional[str] = None,
    video_path: Optional[str] = None,
    script: Optional[str] = None,
    now: Optional[datetime] = None,
) -> JobRecord:
    """
    Apply a narration backend progress report.

    The script may accompany any edge into script_ready (generation, re-save
    or a TTS failure revert).
    The audio path is recorded on tts_ready, the narrated video on composed.

    Raises:
        InvalidStateTransitionError: If the edge is not allowed, or the job failed
    """
    if job.status == JobStatus.FAILED:
        raise InvalidStateTransitionError(
            "narration", job.narration_status.value, narration_status.value,
            "job has failed",
        )
    validate_narration_transition(job.narration_status, narration_status, script)
    now = now or utc_now()

    changes = {"narration_status": narration_status, "updated_at": now}
    if script is not None and narration_status == NarrationStatus.SCRIPT_READY:
        changes["narration_script"] = script
    if audio_path and narration_status == NarrationStatus.TTS_READY:
        changes["narration_audio_path"] = audio_path
    if video_path and narration_status == NarrationStatus.COMPOSED:
        changes["narrated_video_path"] = video_path

    return job.evolve(**changes)


def apply_narration_mode(
    job: JobRecord,
    mode: NarrationMode,
    script: Optional[str] = None,
    now: Optional[datetime] = None,
) -> JobRecord:
    """
    Change narration mode (and, in manual mode, the script).

    A non-blank manual script moves narration straight to script_ready,
    skipping the generation step auto mode needs.

    Raises:
        NarrationConflictError: If narration has progressed past script_ready
    """
    if job.narration_status not in NARRATION_EDITABLE_STATES:
        raise NarrationConflictError(job.id, job.narration_status.value)
    now = now or utc_now()

    changes = {"narration_mode": mode, "updated_at": now}
    if mode == NarrationMode.MANUAL and script is not None:
        changes["narration_script"] = script
        if script.strip():
            changes["narration_status"] = NarrationStatus.SCRIPT_READY

    return job.evolve(**changes)
