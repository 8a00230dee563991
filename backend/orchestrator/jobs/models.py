"""
Job record data models.

A JobRecord is one unit of requested generation work (image, clip, lesson,
chat reply, news-derived post) tracked from submission through delivery.

All models use Pydantic for validation. Enumerations are closed: unknown
status, type or pipeline values are rejected at every boundary. Stored
records keep keys they do not model (the chat ingestion bridge writes the
same file with extra fields) and write them back unchanged. Creation input
is validated separately and stays strict (see factory.py). Records persist
with camelCase keys; Python attributes are snake_case.

State transitions are validated externally (see state.py).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class JobType(str, Enum):
    """Kind of content a job produces."""

    IMAGE = "image"
    CLIP = "clip"
    LESSON = "lesson"  # Multi-scene narrated video
    CHAT = "chat"
    NEWS_CONTENT = "news-content"


class JobStatus(str, Enum):
    """
    Job-level pipeline stage.

    A job moves through these stages as the generation pipeline reports progress.
    """

    PENDING = "pending"  # Created, waiting for a worker
    BUILDING_PROMPT = "building_prompt"
    GENERATING_IMAGE = "generating_image"
    GENERATING_VIDEO = "generating_video"
    DELIVERING = "delivering"
    COMPLETED = "completed"  # Terminal
    FAILED = "failed"  # Terminal, may be retried explicitly


TERMINAL_JOB_STATES: FrozenSet[JobStatus] = frozenset({
    JobStatus.COMPLETED,
    JobStatus.FAILED,
})


class Pipeline(str, Enum):
    """Backend execution lane that processes a job."""

    HIGGSFIELD = "higgsfield"
    LOCAL_GPU = "local_gpu"
    CONTENT = "content"
    DISTRIBUTION = "distribution"


class JobSource(str, Enum):
    """Channel a job was submitted through."""

    DASHBOARD = "dashboard"
    WHATSAPP = "whatsapp"


class NarrationMode(str, Enum):
    AUTO = "auto"  # Script is generated before TTS
    MANUAL = "manual"  # Operator supplies the script


class NarrationStatus(str, Enum):
    """Voice-over sub-workflow stage, independent of the job status."""

    NONE = "none"
    SCRIPT_READY = "script_ready"
    GENERATING_TTS = "generating_tts"
    TTS_READY = "tts_ready"
    COMPOSING = "composing"
    COMPOSED = "composed"


class _RecordModel(BaseModel):
    # Unmodelled keys are carried through load and save untouched
    model_config = ConfigDict(
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CastMember(_RecordModel):
    """One character in a multi-scene job and the voice assigned to it."""

    character: str
    voice: str


class JobRecord(_RecordModel):
    """
    A single content-generation job.

    INVARIANT: completed_at is set if and only if status is terminal.
    """

    # Identity
    id: str = Field(min_length=1)
    type: JobType
    description: str = Field(min_length=1)

    # State
    status: JobStatus = JobStatus.PENDING
    priority: int = Field(default=0, ge=0)
    source: JobSource = JobSource.DASHBOARD
    pipeline: Pipeline = Pipeline.HIGGSFIELD
    scheduled_at: Optional[datetime] = None

    # Backend selection hints
    voice_key: Optional[str] = None
    image_model_alias: Optional[str] = None
    video_model_alias: Optional[str] = None

    # Narration sub-workflow
    narration_mode: NarrationMode = NarrationMode.AUTO
    narration_script: Optional[str] = None
    narration_status: NarrationStatus = NarrationStatus.NONE
    narration_audio_path: Optional[str] = None
    narrated_video_path: Optional[str] = None

    # Multi-scene
    cast: Optional[List[CastMember]] = None
    scene_count: Optional[int] = Field(default=None, ge=1)
    film_template_key: Optional[str] = None

    # Background music and batching
    bgm_preset_key: Optional[str] = None
    bgm_volume: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    batch_count: int = Field(default=1, ge=1)

    # Chat ingestion
    sender_phone: Optional[str] = None

    # Outcome
    output_paths: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    # Timestamps
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @field_validator("scheduled_at", "created_at", "updated_at", "completed_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps are taken as UTC so ordering never mixes naive and aware
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_completion(self) -> "JobRecord":
        terminal = self.status in TERMINAL_JOB_STATES
        if terminal and self.completed_at is None:
            raise ValueError(f"completedAt is required when status is '{self.status.value}'")
        if not terminal and self.completed_at is not None:
            raise ValueError(f"completedAt must be null when status is '{self.status.value}'")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATES

    def evolve(self, **changes) -> "JobRecord":
        """
        Return a validated copy with the given attribute changes applied.

        This record is never mutated.
        """
        data = dict(self.model_extra or {})
        data.update({name: getattr(self, name) for name in type(self).model_fields})
        data.update(changes)
        if data.get("output_paths") is not None:
            data["output_paths"] = list(data["output_paths"])
        return type(self).model_validate(data)

    def to_json_dict(self) -> dict:
        """Serialize to the on-disk camelCase form."""
        return self.model_dump(mode="json", by_alias=True)


class ArchiveEntry(JobRecord):
    """
    Snapshot of a terminal job moved out of the active queue.

    Archive entries are immutable once written.
    """

    model_config = ConfigDict(frozen=True)

    archived_at: datetime

    @field_validator("archived_at")
    @classmethod
    def _archived_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_job(cls, job: JobRecord, archived_at: datetime) -> "ArchiveEntry":
        data = dict(job.model_extra or {})
        data.update({name: getattr(job, name) for name in JobRecord.model_fields})
        data["output_paths"] = list(job.output_paths)
        data["archived_at"] = archived_at
        return cls.model_validate(data)
