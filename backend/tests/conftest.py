"""
Shared fixtures for orchestrator tests.

Every test gets its own state directory under tmp_path. Nothing touches
the real automation/state folder.
"""

from datetime import datetime, timedelta, timezone

import pytest

from orchestrator.jobs.models import JobRecord, JobStatus, JobType
from orchestrator.notifications import ChangeNotifier
from orchestrator.persistence.repository import JsonFileRepository
from orchestrator.service import JobService


BASE_TIME = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

# Pipeline edges from pending to completed for an image job
IMAGE_PIPELINE = [
    JobStatus.BUILDING_PROMPT,
    JobStatus.GENERATING_IMAGE,
    JobStatus.DELIVERING,
    JobStatus.COMPLETED,
]


class FakeClock:
    """Deterministic clock. Each call returns the current time, then advances one second."""

    def __init__(self, start: datetime = BASE_TIME):
        self.current = start

    def __call__(self) -> datetime:
        now = self.current
        self.current = now + timedelta(seconds=1)
        return now

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


def make_job(job_id: str, created_offset: int = 0, **overrides) -> JobRecord:
    """Build a JobRecord created ``created_offset`` seconds after BASE_TIME."""
    created = BASE_TIME + timedelta(seconds=created_offset)
    data = {
        "id": job_id,
        "type": JobType.IMAGE,
        "description": f"Job {job_id}",
        "created_at": created,
        "updated_at": created,
    }
    data.update(overrides)
    if data.get("status") in (JobStatus.COMPLETED, JobStatus.FAILED) and "completed_at" not in data:
        data["completed_at"] = data["updated_at"]
    return JobRecord(**data)


@pytest.fixture
def state_dir(tmp_path):
    return tmp_path / "automation" / "state"


@pytest.fixture
def repository(state_dir):
    return JsonFileRepository(state_dir / "whatsapp-jobs.json", state_dir / "job-archive.json")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def service(repository, notifier, clock):
    return JobService(repository, notifier=notifier, clock=clock)


def complete_job(service: JobService, job_id: str) -> JobRecord:
    """Drive a pending job through the image pipeline to completed."""
    job = None
    for status in IMAGE_PIPELINE:
        job = service.update_status(job_id, status)
    return job
