"""
Job-specific error types.

All errors inherit from JobError for easy catching.
Errors are explicit and provide actionable messages.
"""


class JobError(Exception):
    """Base exception for all job-related failures."""
    pass


class ValidationError(JobError):
    """Raised when job input is missing required fields or is malformed."""
    
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class JobNotFoundError(JobError):
    """Raised when a job cannot be found in the active store."""
    
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class DuplicateJobError(JobError):
    """Raised when a job ID is already present in the active store."""
    
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job with ID '{job_id}' already exists")


class InvalidStateTransitionError(JobError):
    """Raised when attempting an illegal state transition."""
    
    def __init__(self, entity_type: str, current_state: str, target_state: str, reason: str = ""):
        self.entity_type = entity_type
        self.current_state = current_state
        self.target_state = target_state
        self.reason = reason
        message = (
            f"Invalid {entity_type} state transition: "
            f"{current_state} -> {target_state}"
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class NarrationConflictError(JobError):
    """Raised when narration fields are edited after narration has moved past the script stage."""
    
    def __init__(self, job_id: str, narration_status: str):
        self.job_id = job_id
        self.narration_status = narration_status
        super().__init__(
            f"Cannot change narration mode when status is '{narration_status}'"
        )
