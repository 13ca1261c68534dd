"""Error kinds surfaced by the grievance core and rendered by the API layer."""
from __future__ import annotations

from typing import Dict, List, Optional


class GrievanceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def payload(self) -> dict:
        return {"error": self.message}


class ValidationError(GrievanceError):
    """Malformed or missing input, with per-field detail when available."""

    status_code = 400
    default_message = "Invalid payload"

    def __init__(self, message: Optional[str] = None, fields: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.fields = fields or {}

    def payload(self) -> dict:
        body = super().payload()
        if self.fields:
            body["fields"] = self.fields
        return body


class AuthenticationError(GrievanceError):
    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(GrievanceError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(GrievanceError):
    status_code = 404
    default_message = "Not found"


class InvalidTransitionError(GrievanceError):
    """Raised when a lifecycle rule forbids the requested state change."""

    status_code = 409
    default_message = "Invalid status transition"


class SpamRejectedError(GrievanceError):
    status_code = 422
    default_message = "Complaint Rejected"


class ConfigurationError(GrievanceError):
    """The deployment is missing reference data the operation depends on."""

    status_code = 500
    default_message = "Service is not configured"


class MigrationError(Exception):
    """Raised when the schema cannot be brought up to date; fatal at startup."""
