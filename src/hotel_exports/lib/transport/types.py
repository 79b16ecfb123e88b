"""Normalized transport results.

Every request made through :class:`~hotel_exports.lib.transport.client.ApiClient`
resolves to an ``ApiResult``: either parsed body data or an ``ApiError``
with the HTTP status (0 when no response was received).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")

NETWORK_ERROR_STATUS = 0


@dataclass(frozen=True)
class ApiError:
    """A failed request.

    Attributes:
        status: HTTP status code, or 0 for transport failures.
        message: Message taken from the response body or the exception.
        details: Raw error body, when one was returned.
    """

    status: int
    message: str
    details: Any = None

    @property
    def is_network_error(self) -> bool:
        return self.status == NETWORK_ERROR_STATUS


@dataclass
class ApiResult(Generic[T]):
    """Outcome of a single logical request (after transport retries).

    Attributes:
        data: Parsed response body on success.
        error: Error description on failure.
        status: Final HTTP status code (0 when no response arrived).
        attempts: Number of HTTP attempts made.
        headers: Response headers of the final attempt.
    """

    data: T | None = None
    error: ApiError | None = None
    status: int = 0
    attempts: int = 1
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Whether the request completed with a 2xx response."""
        return self.error is None
