"""Error taxonomy for export operations.

Transport failures are normalized at the client boundary into an
``ExportError`` whose ``kind`` drives retry decisions in the download
loop and the poller, and whose ``message`` is safe to show to users.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from hotel_exports.core.session import SESSION_EXPIRED_MESSAGE
from hotel_exports.lib.transport.types import NETWORK_ERROR_STATUS, ApiError

PERMISSION_DENIED_MESSAGE = (
    "You don't have permission to perform this action. Please contact your administrator for access."
)
SERVER_ERROR_MESSAGE = "Server error occurred. Please try again later."
NETWORK_ERROR_MESSAGE = "Unable to connect to server. Please check your internet connection and try again."


class ExportErrorKind(StrEnum):
    """Classification of a failed export request."""

    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    INVALID_RESPONSE = "invalid_response"
    REQUEST_ERROR = "request_error"


_RETRYABLE_KINDS = frozenset(
    {ExportErrorKind.SERVER_ERROR, ExportErrorKind.NETWORK_ERROR, ExportErrorKind.INVALID_RESPONSE}
)


def classify_status(status: int) -> ExportErrorKind:
    """Map an HTTP status code (0 for no response) to an error kind."""
    if status == NETWORK_ERROR_STATUS:
        return ExportErrorKind.NETWORK_ERROR
    if status == 401:
        return ExportErrorKind.UNAUTHORIZED
    if status == 403:
        return ExportErrorKind.FORBIDDEN
    if status == 404:
        return ExportErrorKind.NOT_FOUND
    if status == 422:
        return ExportErrorKind.VALIDATION
    if status >= 500:
        return ExportErrorKind.SERVER_ERROR
    return ExportErrorKind.REQUEST_ERROR


def extract_field_errors(details: Any) -> dict[str, str]:
    """Collect field-level messages from a FastAPI validation error body.

    ``{"detail": [{"loc": ["body", "filters", "min_rating"], "msg": "..."}]}``
    becomes ``{"filters.min_rating": "..."}``.
    """
    if not isinstance(details, dict) or not isinstance(details.get("detail"), list):
        return {}
    errors: dict[str, str] = {}
    for item in details["detail"]:
        if not isinstance(item, dict):
            continue
        loc = [str(part) for part in item.get("loc", []) if part != "body"]
        errors[".".join(loc) or "__root__"] = str(item.get("msg", "Invalid value"))
    return errors


def user_message(kind: ExportErrorKind, original: str, context: str) -> str:
    """Return the user-facing message for an error of ``kind``.

    Args:
        kind: Classified error kind.
        original: Message reported by the backend or transport.
        context: Operation label used in not-found messages (e.g. "Hotel export").
    """
    if kind is ExportErrorKind.UNAUTHORIZED:
        return SESSION_EXPIRED_MESSAGE
    if kind is ExportErrorKind.FORBIDDEN:
        return PERMISSION_DENIED_MESSAGE
    if kind is ExportErrorKind.NOT_FOUND:
        return f"{context} not found."
    if kind is ExportErrorKind.SERVER_ERROR:
        return SERVER_ERROR_MESSAGE
    if kind is ExportErrorKind.NETWORK_ERROR:
        return NETWORK_ERROR_MESSAGE
    return original


@dataclass(frozen=True)
class ExportError:
    """A normalized, user-safe export failure.

    Attributes:
        kind: Error classification.
        status: HTTP status (0 when no response was received).
        message: User-facing message.
        details: Raw backend error body, if any.
        field_errors: Field-level validation messages keyed by dotted path.
    """

    kind: ExportErrorKind
    status: int
    message: str
    details: Any = None
    field_errors: dict[str, str] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        """Whether a later attempt may succeed (5xx, network, malformed body)."""
        return self.kind in _RETRYABLE_KINDS

    @classmethod
    def from_api_error(cls, error: ApiError, context: str) -> ExportError:
        kind = classify_status(error.status)
        field_errors = extract_field_errors(error.details)
        if kind is ExportErrorKind.REQUEST_ERROR and error.status == 400 and field_errors:
            kind = ExportErrorKind.VALIDATION
        return cls(
            kind=kind,
            status=error.status,
            message=user_message(kind, error.message, context),
            details=error.details,
            field_errors=field_errors if kind is ExportErrorKind.VALIDATION else {},
        )


class ExportDownloadError(Exception):
    """Raised when an export file cannot be downloaded.

    Args:
        message: Human-readable error description.
        kind: Error classification.
        status_code: HTTP status code of the final attempt, if any.
    """

    def __init__(self, message: str, kind: ExportErrorKind, status_code: int | None = None) -> None:
        self.message = message
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)


class ExportRequestError(Exception):
    """Raised by the job tracker when an export operation fails.

    Args:
        error: The normalized error returned by the export client.
    """

    def __init__(self, error: ExportError) -> None:
        self.error = error
        super().__init__(error.message)
