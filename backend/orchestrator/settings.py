"""
Orchestrator settings.

Defaults match the dashboard's automation state layout. Every value can be
overridden through an environment variable (optional, for deployment).
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .jobs.queries import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT


# Environment variable overrides
ENV_STATE_DIR = "ORCHESTRATOR_STATE_DIR"
ENV_JOBS_FILE = "ORCHESTRATOR_JOBS_FILE"
ENV_ARCHIVE_FILE = "ORCHESTRATOR_ARCHIVE_FILE"
ENV_LIST_LIMIT = "ORCHESTRATOR_LIST_LIMIT"

DEFAULT_STATE_DIR = Path("automation") / "state"
DEFAULT_JOBS_FILE = "whatsapp-jobs.json"
DEFAULT_ARCHIVE_FILE = "job-archive.json"


class OrchestratorSettings(BaseModel):
    """Storage locations and query defaults for the job queue."""

    model_config = ConfigDict(extra="forbid")

    state_dir: Path = DEFAULT_STATE_DIR
    jobs_file: str = DEFAULT_JOBS_FILE
    archive_file: str = DEFAULT_ARCHIVE_FILE
    list_limit: int = Field(default=DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT)

    @property
    def jobs_path(self) -> Path:
        return self.state_dir / self.jobs_file

    @property
    def archive_path(self) -> Path:
        return self.state_dir / self.archive_file

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "OrchestratorSettings":
        """
        Build settings from environment overrides.

        Unset variables keep their defaults. Invalid values raise
        pydantic.ValidationError at startup rather than at first use.
        """
        environ = os.environ if environ is None else environ
        values = {}
        if environ.get(ENV_STATE_DIR):
            values["state_dir"] = Path(environ[ENV_STATE_DIR])
        if environ.get(ENV_JOBS_FILE):
            values["jobs_file"] = environ[ENV_JOBS_FILE]
        if environ.get(ENV_ARCHIVE_FILE):
            values["archive_file"] = environ[ENV_ARCHIVE_FILE]
        if environ.get(ENV_LIST_LIMIT):
            values["list_limit"] = environ[ENV_LIST_LIMIT]
        return cls.model_validate(values)
