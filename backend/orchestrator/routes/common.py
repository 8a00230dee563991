"""
Shared helpers for the HTTP adapter.

Maps orchestrator errors to HTTP status codes:
    ValidationError              -> 400
    JobNotFoundError             -> 404
    InvalidStateTransitionError  -> 409
    NarrationConflictError       -> 409
    DuplicateJobError            -> 409
    PersistenceError             -> 500
"""

import logging

from fastapi import HTTPException, Request

from ..jobs.errors import (
    DuplicateJobError,
    InvalidStateTransitionError,
    JobError,
    JobNotFoundError,
    NarrationConflictError,
    ValidationError,
)
from ..persistence.errors import PersistenceError
from ..service import JobService

logger = logging.getLogger(__name__)


def get_service(request: Request) -> JobService:
    return request.app.state.job_service


def to_http_error(error: Exception) -> HTTPException:
    """Translate an orchestrator error into an HTTPException."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, JobNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (InvalidStateTransitionError, NarrationConflictError, DuplicateJobError)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, PersistenceError):
        logger.error("Storage failure: %s", error)
        return HTTPException(status_code=500, detail=f"Storage failure: {error}")
    if isinstance(error, JobError):
        return HTTPException(status_code=400, detail=str(error))
    logger.error("Unexpected error: %s", error, exc_info=True)
    return HTTPException(status_code=500, detail=str(error))
