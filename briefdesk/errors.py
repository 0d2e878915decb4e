"""
Error taxonomy for BriefDesk.

Every error carries a machine-readable `code` and the HTTP status the API
layer should answer with, so handlers never parse messages.
"""

from typing import Any, Dict, Optional


class BriefDeskError(Exception):
    """Base class for all application-level errors."""
    http_status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BriefDeskError):
    """Missing or malformed caller input."""
    http_status = 400
    code = "VALIDATION_ERROR"


class NotFoundError(BriefDeskError):
    """Unknown brief date or job id. An expected outcome, not a fault."""
    http_status = 404
    code = "NOT_FOUND"


class UpstreamError(BriefDeskError):
    """External analysis or fetch call failed after retries."""
    http_status = 502
    code = "UPSTREAM_ERROR"


class ParseError(BriefDeskError):
    """External call returned output that could not be parsed."""
    http_status = 502
    code = "PARSE_ERROR"


class StorageError(BriefDeskError):
    """Storage backend unreachable or a write failed."""
    http_status = 500
    code = "STORAGE_ERROR"


class JobStateError(BriefDeskError):
    """Requested job status transition is not allowed."""
    http_status = 409
    code = "INVALID_JOB_TRANSITION"

    def __init__(self, job_id: str, current: str, requested: str):
        super().__init__(
            message=f"Job {job_id} cannot move from {current} to {requested}",
            details={"job_id": job_id, "current": current, "requested": requested},
        )


class ForbiddenError(BriefDeskError):
    """Caller lacks the admin capability."""
    http_status = 403
    code = "FORBIDDEN"
