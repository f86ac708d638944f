"""
Custom exception classes
"""
from typing import Iterable, Optional

from fastapi import HTTPException


# ============================================================================
# Request-path errors (surfaced synchronously to the caller)
# ============================================================================

class PetitionNotFoundError(HTTPException):
    """Raised when petition doesn't exist"""
    def __init__(self, petition_id: str):
        super().__init__(
            status_code=404,
            detail=f"Petition {petition_id} not found"
        )


class JobNotFoundError(HTTPException):
    """Raised when generation job doesn't exist"""
    def __init__(self, job_id: str):
        super().__init__(
            status_code=404,
            detail=f"Generation job {job_id} not found"
        )


class MissingPetitionDataError(HTTPException):
    """Raised when a petition lacks the data needed to start generation"""
    def __init__(self, missing_fields: Iterable[str]):
        self.missing_fields = list(missing_fields)
        super().__init__(
            status_code=422,
            detail=(
                "Petition missing required data for generation: "
                + ", ".join(self.missing_fields)
            )
        )


class FileNotFoundInStorageError(HTTPException):
    """Raised when an uploaded file record or its stored bytes don't exist"""
    def __init__(self, file_id: str):
        super().__init__(
            status_code=404,
            detail=f"File {file_id} not found"
        )


class UploadFailedError(HTTPException):
    """Raised when file storage upload fails"""
    def __init__(self, reason: str = "Unknown error"):
        super().__init__(
            status_code=500,
            detail=f"Upload failed: {reason}"
        )


# ============================================================================
# Pipeline errors (recorded on the job, never raised to an HTTP caller)
# ============================================================================

class DraftPipelineError(Exception):
    """Base class for failures inside the draft generation pipeline."""


class JobStateError(DraftPipelineError):
    """Raised on an illegal job status transition."""


class ExternalServiceError(DraftPipelineError):
    """
    Failure talking to an external model service.

    ``retryable`` separates transient failures (network, 5xx, empty body)
    from terminal ones (bad request, auth, safety block).
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class EmbeddingFailedError(ExternalServiceError):
    """Raised when a query embedding could not be produced."""


class GenerationFailedError(ExternalServiceError):
    """Raised when the completion service produced no usable text."""


class ContentBlockedError(GenerationFailedError):
    """Raised when the completion service refused the prompt on safety grounds."""

    def __init__(self, block_reason: str):
        super().__init__(f"API blocked prompt: {block_reason}", retryable=False)
        self.block_reason = block_reason
