"""
Application Exceptions

Every failure the services raise maps to one HTTP outcome. The FastAPI
handlers in ``orderdesk.main`` render them as ``{"success": false,
"error": <message>}`` with the class status code.
"""

from typing import Optional


class OrderDeskError(Exception):
    """Base class for all application errors."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(OrderDeskError):
    """Bad or missing field in a caller's request. Never retried."""

    status_code = 400


class NotFoundError(OrderDeskError):
    """Unknown entity id."""

    status_code = 404


class TransitionError(OrderDeskError):
    """Status change not in the transition table (strict mode only)."""

    status_code = 409


class StorageError(OrderDeskError):
    """The database rejected a read or write."""

    status_code = 500


class ExternalServiceError(OrderDeskError):
    """The voice assistant provider was unreachable or rejected a payload."""

    status_code = 500

    def __init__(self, step: str, detail: str):
        super().__init__(f"Failed to {step}: {detail}")
        self.step = step
        self.detail = detail


class MalformedPayloadError(OrderDeskError):
    """Webhook body that is not a JSON object."""

    status_code = 500
