"""HTTP transport library for the hotel data API.

Public API:
    - ApiClient: Authenticated httpx client with bounded retries
    - ApiResult / ApiError: Normalized request outcome
    - backoff_delay / backoff_schedule: Exponential backoff helpers
    - extract_error_message: Error-body message extraction
"""

from hotel_exports.lib.transport.client import ApiClient, extract_error_message
from hotel_exports.lib.transport.retry import backoff_delay, backoff_schedule
from hotel_exports.lib.transport.types import NETWORK_ERROR_STATUS, ApiError, ApiResult

__all__ = [
    "NETWORK_ERROR_STATUS",
    "ApiClient",
    "ApiError",
    "ApiResult",
    "backoff_delay",
    "backoff_schedule",
    "extract_error_message",
]
