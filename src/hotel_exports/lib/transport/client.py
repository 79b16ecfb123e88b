"""Authenticated HTTP transport for the hotel data API.

Wraps a single ``httpx.AsyncClient``: builds versioned URLs, injects the
bearer token, retries idempotent-safe failures with exponential backoff,
and normalizes every outcome into an :class:`ApiResult`.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from hotel_exports.core.config import Settings
from hotel_exports.core.session import SessionStore
from hotel_exports.lib.transport.retry import backoff_delay
from hotel_exports.lib.transport.types import NETWORK_ERROR_STATUS, ApiError, ApiResult

_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

# Failures where the request never reached the server; safe to resend for any method.
_CONNECT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


def extract_error_message(body: Any, fallback: str) -> str:
    """Pull a human-readable message out of an API error body.

    Understands FastAPI ``detail`` (string or list of ``{loc, msg}``
    entries) as well as ``message`` and ``error`` keys.
    """
    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str) and detail:
            return detail
        if isinstance(detail, list) and detail:
            messages = [str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail]
            return "; ".join(messages)
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str) and body.strip():
        return body.strip()
    return fallback


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiClient:
    """Async client for the versioned hotel data API.

    Args:
        base_url: API root including the version segment.
        session: Credential store supplying the bearer token.
        timeout: Request timeout in seconds.
        retries: Default retry count for idempotent-safe failures.
        retry_base_delay: First retry delay in seconds; doubles per attempt.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        base_url: str,
        session: SessionStore,
        *,
        timeout: float = 30.0,
        retries: int = 3,
        retry_base_delay: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._session = session
        self._retries = retries
        self._retry_base_delay = retry_base_delay
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            follow_redirects=False,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session: SessionStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ApiClient:
        return cls(
            settings.api_root_url,
            session,
            timeout=settings.request_timeout,
            retries=settings.request_retries,
            retry_base_delay=settings.retry_base_delay,
            transport=transport,
        )

    @property
    def session(self) -> SessionStore:
        return self._session

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def auth_headers(self, *, include_api_key: bool = False) -> dict[str, str]:
        """Build authentication headers from the current session."""
        headers: dict[str, str] = {}
        if self._session.token:
            headers["Authorization"] = f"Bearer {self._session.token}"
        if include_api_key and self._session.api_key:
            headers["X-API-Key"] = self._session.api_key
        return headers

    async def get(
        self,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        retries: int | None = None,
    ) -> ApiResult[Any]:
        return await self.request(endpoint, method="GET", params=params, retries=retries)

    async def post(self, endpoint: str, body: Any = None, *, retries: int | None = None) -> ApiResult[Any]:
        return await self.request(endpoint, method="POST", json=body, retries=retries)

    async def delete(self, endpoint: str, *, retries: int | None = None) -> ApiResult[Any]:
        return await self.request(endpoint, method="DELETE", retries=retries)

    async def request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        json: Any = None,
        params: dict[str, Any] | None = None,
        requires_auth: bool = True,
        retries: int | None = None,
    ) -> ApiResult[Any]:
        """Send a request and normalize the outcome.

        Connection failures are retried for every method. 5xx responses and
        read-phase transport errors are retried only for idempotent methods,
        since a POST may already have been applied.

        Args:
            endpoint: Path relative to the API root (e.g. ``/export/hotels``).
            method: HTTP method.
            json: JSON body for POST requests.
            params: Query parameters.
            requires_auth: Attach the bearer token when available.
            retries: Override the default retry count.

        Returns:
            An ApiResult; never raises for HTTP or transport failures.
        """
        method = method.upper()
        max_retries = self._retries if retries is None else retries
        idempotent = method in _IDEMPOTENT_METHODS
        headers = self.auth_headers() if requires_auth else {}

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._client.request(method, endpoint, json=json, params=params, headers=headers)
            except _CONNECT_ERRORS as exc:
                error = ApiError(NETWORK_ERROR_STATUS, f"Request failed: {exc}")
                retryable = True
                result_headers: dict[str, str] = {}
            except httpx.RequestError as exc:
                error = ApiError(NETWORK_ERROR_STATUS, f"Request failed: {exc}")
                retryable = idempotent
                result_headers = {}
            else:
                body = _parse_body(response)
                result_headers = dict(response.headers)
                if response.is_success:
                    return ApiResult(
                        data=body,
                        status=response.status_code,
                        attempts=attempt,
                        headers=result_headers,
                    )
                error = ApiError(
                    response.status_code,
                    extract_error_message(body, response.reason_phrase or "Unknown error"),
                    details=body,
                )
                retryable = idempotent and response.status_code >= 500

            if not retryable or attempt > max_retries:
                logger.debug("{} {} failed with status {}: {}", method, endpoint, error.status, error.message)
                return ApiResult(error=error, status=error.status, attempts=attempt, headers=result_headers)

            delay = backoff_delay(attempt - 1, self._retry_base_delay)
            logger.warning(
                "{} {} failed (status {}), retry {}/{} in {}s",
                method,
                endpoint,
                error.status,
                attempt,
                max_retries,
                delay,
            )
            await asyncio.sleep(delay)

    async def send(self, method: str, endpoint: str, *, headers: dict[str, str] | None = None) -> httpx.Response:
        """Send a single request without retries or normalization.

        Used by callers that need the raw response (binary downloads).

        Raises:
            httpx.RequestError: On transport failures.
        """
        return await self._client.request(method.upper(), endpoint, headers=headers)
