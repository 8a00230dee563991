"""
Narration endpoints: mode/script editing, listing and backend progress.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..jobs.errors import JobError
from ..jobs.models import NarrationMode, NarrationStatus
from ..persistence.errors import PersistenceError
from .common import get_service, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/narration", tags=["narration"])


class NarrationModeRequest(BaseModel):
    """Switch a job between auto and manual narration."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    mode: NarrationMode
    script: Optional[str] = None


class NarrationProgressRequest(BaseModel):
    """Progress report from the narration backend."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    narration_status: NarrationStatus
    audio_path: Optional[str] = None
    video_path: Optional[str] = None
    script: Optional[str] = None


@router.patch("/mode")
def set_narration_mode_endpoint(body: NarrationModeRequest, request: Request):
    """
    Change narration mode before TTS starts.

    Raises:
        404: Unknown job
        409: Narration already past script_ready
    """
    try:
        job = get_service(request).set_narration_mode(body.id, body.mode, body.script)
    except (JobError, PersistenceError) as e:
        raise to_http_error(e)
    return {"ok": True, "job": job.to_json_dict()}


@router.get("/jobs")
def list_narration_jobs_endpoint(request: Request):
    """Jobs in or eligible for the narration workflow, most recently updated first."""
    try:
        jobs = get_service(request).narration_jobs()
    except PersistenceError as e:
        raise to_http_error(e)
    return [job.to_json_dict() for job in jobs]


@router.post("/jobs/{job_id}/status")
def report_narration_endpoint(job_id: str, body: NarrationProgressRequest, request: Request):
    try:
        job = get_service(request).update_narration(
            job_id,
            body.narration_status,
            audio_path=body.audio_path,
            video_path=body.video_path,
            script=body.script,
        )
    except (JobError, PersistenceError) as e:
        raise to_http_error(e)
    return {"ok": True, "job": job.to_json_dict()}
