"""
Orchestrate endpoints: job creation, listing, operator actions,
pipeline progress and archive history.

HTTP adapter over JobService. Route functions are synchronous so
FastAPI runs the blocking file I/O in its threadpool.
"""

import logging
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..archive import ArchiveFilter
from ..archive.search import DEFAULT_ARCHIVE_LIMIT
from ..jobs.errors import JobError
from ..jobs.models import JobSource, JobStatus, JobType, Pipeline
from ..jobs.queries import JobFilter
from ..persistence.errors import PersistenceError
from .common import get_service, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orchestrate", tags=["orchestrate"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class UpdateJobRequest(_CamelModel):
    """
    Operator update for a single job.

    Exactly one of action, priority or scheduled_at is applied. Send
    ``scheduledAt: null`` to clear a schedule.
    """

    action: Optional[Literal["cancel", "retry"]] = None
    priority: Optional[int] = None
    scheduled_at: Optional[datetime] = None


class StatusReportRequest(_CamelModel):
    """Progress report from the generation pipeline."""

    status: JobStatus
    output_paths: Optional[List[str]] = None
    error: Optional[str] = None


@router.post("/jobs", status_code=201)
def create_job_endpoint(body: dict, request: Request):
    """
    Create a PENDING job from the dashboard.

    Raises:
        400: Missing type/description or malformed fields
        500: Job store could not be written
    """
    try:
        job = get_service(request).create(body, source=JobSource.DASHBOARD)
    except (JobError, PersistenceError) as e:
        raise to_http_error(e)
    return {"ok": True, "job": job.to_json_dict()}


@router.get("/jobs")
def list_jobs_endpoint(
    request: Request,
    status: Optional[List[JobStatus]] = Query(default=None),
    pipeline: Optional[Pipeline] = None,
    source: Optional[JobSource] = None,
    type: Optional[JobType] = None,
    limit: Optional[int] = Query(default=None, ge=0),
):
    """List active jobs in dispatch order (priority DESC, newest first)."""
    service = get_service(request)
    filters = JobFilter(
        status=set(status) if status else None,
        pipeline=pipeline,
        source=source,
        type=type,
        limit=limit if limit is not None else service.list_limit,
    )
    try:
        jobs = service.list_jobs(filters)
    except PersistenceError as e:
        raise to_http_error(e)
    return [job.to_json_dict() for job in jobs]


@router.get("/jobs/next")
def next_job_endpoint(request: Request, pipeline: Optional[Pipeline] = None):
    """The pending, due job a worker should pick up next (null when idle)."""
    try:
        job = get_service(request).next_job(pipeline)
    except (JobError, PersistenceError) as e:
        raise to_http_error(e)
    return {"job": job.to_json_dict() if job else None}


@router.get("/summary")
def summary_endpoint(request: Request):
    """Job counts by status bucket plus the ten most recent jobs."""
    try:
        summary = get_service(request).summary()
    except PersistenceError as e:
        raise to_http_error(e)
    return summary.model_dump(mode="json", by_alias=True)


@router.get("/history")
def history_endpoint(
    request: Request,
    search: str = "",
    type: Optional[JobType] = None,
    status: Optional[JobStatus] = None,
    limit: int = DEFAULT_ARCHIVE_LIMIT,
    offset: int = 0,
):
    """Search archived jobs, newest first. limit is capped at 200."""
    filters = ArchiveFilter(search=search or None, type=type, status=status)
    try:
        result = get_service(request).archive_search(filters, limit=limit, offset=offset)
    except PersistenceError as e:
        raise to_http_error(e)
    return {
        "jobs": [entry.to_json_dict() for entry in result.entries],
        "total": result.total,
        "limit": result.limit,
        "offset": result.offset,
    }


@router.get("/jobs/{job_id}")
def get_job_endpoint(job_id: str, request: Request):
    try:
        job = get_service(request).get(job_id)
    except (JobError, PersistenceError) as e:
        raise to_http_error(e)
    return job.to_json_dict()


@router.patch("/jobs/{job_id}")
def update_job_endpoint(job_id: str, body: UpdateJobRequest, request: Request):
    """
    Apply an operator action (cancel/retry) or edit priority/schedule.

    Raises:
        400: Nothing to update, more than one update, or invalid values
        404: Unknown job
        409: Action not allowed from the job's current status
    """
    fields = body.model_fields_set
    if len(fields) != 1:
        raise HTTPException(
            status_code=400,
            detail="Provide exactly one of: action, priority, scheduledAt",
        )

    service = get_service(request)
    try:
        if "action" in fields and body.action == "cancel":
            job = service.cancel(job_id)
        elif "action" in fields and body.action == "retry":
            job = service.retry(job_id)
        elif "priority" in fields:
            if body.priority is None:
                raise HTTPException(status_code=400, detail="priority cannot be null")
            job = service.set_priority(job_id, body.priority)
        elif "scheduled_at" in fields:
            job = service.set_schedule(job_id, body.scheduled_at)
        else:
            raise HTTPException(status_code=400, detail="action must be 'cancel' or 'retry'")
    except (JobError, PersistenceError) as e:
        raise to_http_error(e)
    return {"ok": True, "job": job.to_json_dict()}


@router.post("/jobs/{job_id}/status")
def report_status_endpoint(job_id: str, body: StatusReportRequest, request: Request):
    """Pipeline progress callback. Validated against the transition table."""
    try:
        job = get_service(request).update_status(
            job_id, body.status, output_paths=body.output_paths, error=body.error,
        )
    except (JobError, PersistenceError) as e:
        raise to_http_error(e)
    return {"ok": True, "job": job.to_json_dict()}


@router.post("/jobs/{job_id}/archive")
def archive_job_endpoint(job_id: str, request: Request):
    """Move one completed or failed job into the archive."""
    try:
        entry = get_service(request).archive(job_id)
    except (JobError, PersistenceError) as e:
        raise to_http_error(e)
    return {"ok": True, "job": entry.to_json_dict()}
