"""
Job creation.

Builds fully-populated JobRecords from partial input. Dashboard submissions
and the chat ingestion bridge share the same default set; only the source
(and, for chat, the sender) differ.

The factory never touches the store. Callers persist the result.
"""

import secrets
import string
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import ValidationError
from .models import (
    CastMember,
    JobRecord,
    JobSource,
    JobStatus,
    JobType,
    NarrationMode,
    NarrationStatus,
    Pipeline,
    utc_now,
)


ID_PREFIX = "wa"
_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_SUFFIX_LENGTH = 6


class JobInput(BaseModel):
    """
    Creation request for a job.

    Only type and description are required. Everything else falls back to
    the canonical defaults when omitted.
    """

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    type: Optional[JobType] = None
    description: Optional[str] = None
    pipeline: Pipeline = Pipeline.HIGGSFIELD
    priority: int = Field(default=0, ge=0)
    scheduled_at: Optional[datetime] = None
    narration_mode: NarrationMode = NarrationMode.AUTO
    narration_script: Optional[str] = None
    voice_key: Optional[str] = None
    image_model_alias: Optional[str] = None
    video_model_alias: Optional[str] = None
    bgm_preset_key: Optional[str] = None
    bgm_volume: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    cast: Optional[List[CastMember]] = None
    scene_count: Optional[int] = Field(default=None, ge=1)
    film_template_key: Optional[str] = None
    batch_count: int = Field(default=1, ge=1)
    sender_phone: Optional[str] = None


def generate_job_id(now: Optional[datetime] = None) -> str:
    """
    Generate an opaque job ID: ``wa_<epoch millis>_<6 base36 chars>``.

    The timestamp keeps IDs roughly time-ordered; the random suffix
    makes same-millisecond collisions unlikely.
    """
    now = now or utc_now()
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return f"{ID_PREFIX}_{millis}_{suffix}"


def parse_job_input(data: Union[JobInput, Dict[str, Any]]) -> JobInput:
    """
    Validate raw creation input.

    Raises:
        ValidationError: If a field is malformed or a required field is missing
    """
    if isinstance(data, JobInput):
        job_input = data
    else:
        try:
            job_input = JobInput.model_validate(data)
        except pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationError(f"Invalid job input: {problems}") from e

    if job_input.type is None:
        raise ValidationError("Job type is required")
    if job_input.description is None or not job_input.description.strip():
        raise ValidationError("Job description is required")
    return job_input


def create_job(
    data: Union[JobInput, Dict[str, Any]],
    source: JobSource = JobSource.DASHBOARD,
    now: Optional[datetime] = None,
    job_id: Optional[str] = None,
) -> JobRecord:
    """
    Build a new pending JobRecord.

    Args:
        data: Creation input (JobInput or a camelCase/snake_case dict)
        source: Channel submitting the job
        now: Creation time (defaults to current UTC time)
        job_id: Explicit ID, generated when omitted

    Returns:
        A pending JobRecord with created_at == updated_at

    Raises:
        ValidationError: If input is missing type/description or is malformed
    """
    job_input = parse_job_input(data)
    now = now or utc_now()

    try:
        return JobRecord(
            id=job_id or generate_job_id(now),
            type=job_input.type,
            description=job_input.description.strip(),
            status=JobStatus.PENDING,
            priority=job_input.priority,
            source=source,
            pipeline=job_input.pipeline,
            scheduled_at=job_input.scheduled_at,
            voice_key=job_input.voice_key,
            image_model_alias=job_input.image_model_alias,
            video_model_alias=job_input.video_model_alias,
            narration_mode=job_input.narration_mode,
            narration_script=job_input.narration_script,
            narration_status=NarrationStatus.NONE,
            cast=job_input.cast,
            scene_count=job_input.scene_count,
            film_template_key=job_input.film_template_key,
            bgm_preset_key=job_input.bgm_preset_key,
            bgm_volume=job_input.bgm_volume,
            batch_count=job_input.batch_count,
            sender_phone=job_input.sender_phone if source == JobSource.WHATSAPP else None,
            output_paths=[],
            created_at=now,
            updated_at=now,
            completed_at=None,
        )
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid job input: {e}") from e
