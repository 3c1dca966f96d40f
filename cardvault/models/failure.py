"""
Failure classification for the import pipeline.

Every error the pipeline raises on purpose is a KnownError: it carries a
FailureKind, a user-appropriate message and the HTTP status the API layer
should answer with.

PROPAGATION:
- TransportError / UpstreamError are caught per resolution strategy
- Row-level failures are absorbed into the ImportReport
- Only PersistenceError and explicit cancellation end a job early
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Upstream failures
    TRANSPORT_FAILED = "transport_failed"
    EXTERNAL_API_ERROR = "external_api_error"
    QUEUE_CLEARED = "queue_cleared"

    # Storage failures
    PERSISTENCE_FAILED = "persistence_failed"

    # Job lifecycle
    INVALID_TRANSITION = "invalid_transition"


class FailureDetail(BaseModel):
    """Error body returned by the API for a KnownError."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        """Convert to the API error body."""
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


# =============================================================================
# UPSTREAM ERRORS
# =============================================================================


class TransportError(KnownError):
    """Connection-level failure that persisted after every retry."""

    def __init__(self, url: str, attempts: int, reason: str):
        self.url = url
        self.attempts = attempts
        super().__init__(
            kind=FailureKind.TRANSPORT_FAILED,
            message="Could not reach the card data provider.",
            detail=f"{url}: {reason} (after {attempts} attempts)",
            suggestion="Check network connectivity and retry the import.",
            status_code=502,
        )


class UpstreamError(KnownError):
    """Provider answered with a non-retryable, non-404 error status."""

    def __init__(self, url: str, status: int):
        self.url = url
        self.status = status
        super().__init__(
            kind=FailureKind.EXTERNAL_API_ERROR,
            message=f"Card data provider returned HTTP {status}.",
            detail=url,
            status_code=502,
        )


class QueueClearedError(KnownError):
    """Pending request rejected because its queue was cleared."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(
            kind=FailureKind.QUEUE_CLEARED,
            message="Request was cancelled before it started.",
            detail=f"request {request_id}",
            status_code=503,
        )


# =============================================================================
# STORAGE AND JOB ERRORS
# =============================================================================


class PersistenceError(KnownError):
    """The external store rejected a read or write."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        super().__init__(
            kind=FailureKind.PERSISTENCE_FAILED,
            message=f"Could not {operation}.",
            detail=reason,
            suggestion="The import can be resumed once storage is available.",
            status_code=503,
        )


class JobNotFoundError(KnownError):
    """No import job with the requested id."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"Import job {job_id} not found.",
            status_code=404,
        )


class InvalidTransitionError(KnownError):
    """Requested status change is not allowed from the job's current status."""

    def __init__(self, job_id: str, current: str, requested: str):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(
            kind=FailureKind.INVALID_TRANSITION,
            message=f"Cannot move import {job_id} from {current} to {requested}.",
            status_code=409,
        )


class ActiveJobExistsError(KnownError):
    """The owner already has an import in progress."""

    def __init__(self, owner_id: str, job_id: str):
        self.owner_id = owner_id
        self.job_id = job_id
        super().__init__(
            kind=FailureKind.CONFLICT,
            message="An import is already in progress for this collection.",
            detail=f"active job {job_id}",
            suggestion="Resume or cancel the active import first.",
            status_code=409,
        )


class InvalidPayloadError(KnownError):
    """Uploaded card list cannot be imported."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message=message,
            detail=detail,
            suggestion="Export the list again as CSV with at least a name column.",
            status_code=400,
        )
