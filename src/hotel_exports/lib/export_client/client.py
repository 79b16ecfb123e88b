"""Export API client for hotel and mapping data exports.

Creation, status, list, and delete calls never raise: they return an
``ExportResult`` carrying either validated data or a normalized
``ExportError``. Downloads are only attempted for jobs already known to be
complete, so a download failure raises ``ExportDownloadError``.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from hotel_exports.core.session import SESSION_EXPIRED_MESSAGE
from hotel_exports.lib.export_client.errors import (
    NETWORK_ERROR_MESSAGE,
    ExportDownloadError,
    ExportError,
    ExportErrorKind,
    classify_status,
)
from hotel_exports.lib.export_client.types import (
    ClearCompletedResponse,
    DeleteJobResponse,
    DownloadedExport,
    ExportJobCreated,
    ExportJobList,
    ExportJobStatus,
    ExportStatus,
    ExportType,
    HotelExportFilters,
    MappingExportFilters,
)
from hotel_exports.lib.transport.client import ApiClient, extract_error_message
from hotel_exports.lib.transport.retry import backoff_delay
from hotel_exports.lib.transport.types import ApiResult

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

CREATE_RETRIES = 3
# Status polls are retried by the poller on its own schedule.
STATUS_RETRIES = 0
LIST_RETRIES = 3
DELETE_RETRIES = 2
DOWNLOAD_BACKOFF_FACTOR = 1.5

_FILENAME_RE = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


@dataclass
class ExportResult(Generic[T]):
    """Typed outcome of a non-raising export operation."""

    data: T | None = None
    error: ExportError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, data: T) -> ExportResult[T]:
        return cls(data=data)

    @classmethod
    def fail(cls, error: ExportError) -> ExportResult[T]:
        return cls(error=error)


def _filename_from_disposition(value: str | None) -> str | None:
    if not value:
        return None
    match = _FILENAME_RE.search(value)
    return match.group(1).strip() if match else None


class ExportClient:
    """Client for the ``/export`` endpoints.

    Args:
        api: Authenticated transport.
        download_retries: Retries for downloads on 5xx or network errors.
        download_retry_delay: First download retry delay in seconds; grows 1.5x per retry.
    """

    def __init__(
        self,
        api: ApiClient,
        *,
        download_retries: int = 3,
        download_retry_delay: float = 1.0,
    ) -> None:
        self._api = api
        self._download_retries = download_retries
        self._download_retry_delay = download_retry_delay

    @property
    def api(self) -> ApiClient:
        return self._api

    # ------------------------------------------------------------------
    # Job creation
    # ------------------------------------------------------------------

    async def create_hotel_export(self, filters: HotelExportFilters) -> ExportResult[ExportJobCreated]:
        """Submit a hotel export job.

        Args:
            filters: Hotel export filter configuration.

        Returns:
            Result holding the created job (with ``job_id``) on success.
        """
        return await self._create(ExportType.HOTEL, "/export/hotels", filters, "Hotel export")

    async def create_mapping_export(self, filters: MappingExportFilters) -> ExportResult[ExportJobCreated]:
        """Submit a supplier mapping export job.

        Args:
            filters: Mapping export filter configuration.

        Returns:
            Result holding the created job (with ``job_id``) on success.
        """
        return await self._create(ExportType.MAPPING, "/export/mappings", filters, "Mapping export")

    async def _create(
        self,
        export_type: ExportType,
        endpoint: str,
        filters: HotelExportFilters | MappingExportFilters,
        context: str,
    ) -> ExportResult[ExportJobCreated]:
        payload = filters.to_payload()
        logger.debug("Creating {} export with payload: {}", export_type, payload)
        response = await self._api.post(endpoint, payload, retries=CREATE_RETRIES)
        result = self._validate(response, ExportJobCreated, context)
        if result.success and result.data is not None:
            logger.info("{} export created: {}", export_type.capitalize(), result.data.job_id)
        return result

    # ------------------------------------------------------------------
    # Status and job management
    # ------------------------------------------------------------------

    async def get_export_status(self, job_id: str) -> ExportResult[ExportJobStatus]:
        """Fetch the current status of an export job.

        A 404 yields a ``NOT_FOUND`` error stating that the job expired or
        was deleted, which the poller treats as final.
        """
        response = await self._api.get(f"/export/status/{job_id}", retries=STATUS_RETRIES)
        if response.error is not None and response.error.status == 404:
            logger.warning("Export job {} not found", job_id)
            return ExportResult.fail(
                ExportError(
                    kind=ExportErrorKind.NOT_FOUND,
                    status=404,
                    message=f"Export job '{job_id}' not found. It may have expired or been deleted.",
                    details=response.error.details,
                )
            )
        result = self._validate(response, ExportJobStatus, "Export status")
        if result.data is not None:
            logger.debug(
                "Job {} status: {} ({}%)",
                job_id,
                result.data.status,
                result.data.progress_percentage,
            )
        return result

    async def list_export_jobs(
        self,
        *,
        status: ExportStatus | str | None = None,
        export_type: ExportType | str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> ExportResult[ExportJobList]:
        """List export jobs for the authenticated user, optionally filtered."""
        params: dict[str, Any] = {}
        if status:
            params["status"] = str(status)
        if export_type:
            params["export_type"] = str(export_type)
        if limit:
            params["limit"] = limit
        if offset:
            params["offset"] = offset
        response = await self._api.get("/export/jobs", params=params or None, retries=LIST_RETRIES)
        return self._validate(response, ExportJobList, "Export jobs")

    async def delete_export_job(self, job_id: str) -> ExportResult[DeleteJobResponse]:
        """Delete one export job on the server."""
        response = await self._api.delete(f"/export/jobs/{job_id}", retries=DELETE_RETRIES)
        result = self._validate(response, DeleteJobResponse, "Export job")
        if result.success:
            logger.info("Export job deleted: {}", job_id)
        return result

    async def clear_completed_jobs(self) -> ExportResult[ClearCompletedResponse]:
        """Delete every completed export job on the server."""
        response = await self._api.delete("/export/jobs/completed", retries=DELETE_RETRIES)
        result = self._validate(response, ClearCompletedResponse, "Completed export jobs")
        if result.data is not None:
            logger.info("Cleared {} completed export job(s)", result.data.deleted_count)
        return result

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    async def download_export(self, job_id: str) -> DownloadedExport:
        """Download the file of a completed export job.

        Retries 5xx responses and network errors with a delay growing 1.5x
        per attempt. 401, 403, and 404 are final.

        Args:
            job_id: Identifier of a completed job.

        Returns:
            The downloaded file. JSON bodies are re-serialized so callers
            always receive a saveable artifact.

        Raises:
            ExportDownloadError: When the download fails definitively or
                the retry budget is exhausted.
        """
        session = self._api.session
        if not session.token:
            logger.error("Download of {} attempted without an authentication token", job_id)
            session.invalidate()
            raise ExportDownloadError(SESSION_EXPIRED_MESSAGE, ExportErrorKind.UNAUTHORIZED, 401)

        headers = self._api.auth_headers(include_api_key=True)
        endpoint = f"/export/download/{job_id}"

        attempt = 0
        while True:
            try:
                response = await self._api.send("GET", endpoint, headers=headers)
            except httpx.RequestError as exc:
                error = ExportDownloadError(NETWORK_ERROR_MESSAGE, ExportErrorKind.NETWORK_ERROR)
                logger.error("Download of {} failed: {}", job_id, exc)
            else:
                if response.is_success:
                    return self._to_download(job_id, response)
                error = self._download_error(job_id, response)
                if error.kind is ExportErrorKind.UNAUTHORIZED:
                    session.invalidate()

            if error.kind not in (ExportErrorKind.SERVER_ERROR, ExportErrorKind.NETWORK_ERROR):
                raise error
            if attempt >= self._download_retries:
                logger.error("Download of {} failed after {} retries", job_id, attempt)
                raise error

            delay = backoff_delay(attempt, self._download_retry_delay, DOWNLOAD_BACKOFF_FACTOR)
            attempt += 1
            logger.warning(
                "Download of {} failed ({}), retry {}/{} in {}s",
                job_id,
                error.kind,
                attempt,
                self._download_retries,
                delay,
            )
            await asyncio.sleep(delay)

    @staticmethod
    def _download_error(job_id: str, response: httpx.Response) -> ExportDownloadError:
        status = response.status_code
        kind = classify_status(status)
        try:
            body: Any = response.json()
        except ValueError:
            body = None
        original = extract_error_message(body, response.reason_phrase or f"Download failed with status {status}")
        logger.error("Download of {} failed with status {}: {}", job_id, status, original)

        if kind is ExportErrorKind.UNAUTHORIZED:
            message = SESSION_EXPIRED_MESSAGE
        elif kind is ExportErrorKind.FORBIDDEN:
            message = "You don't have permission to download this export."
        elif kind is ExportErrorKind.NOT_FOUND:
            message = f"Export file for job '{job_id}' not found or has expired."
        elif kind is ExportErrorKind.SERVER_ERROR:
            message = "Server error occurred while downloading. Please try again later."
        else:
            message = original
        return ExportDownloadError(message, kind, status)

    @staticmethod
    def _to_download(job_id: str, response: httpx.Response) -> DownloadedExport:
        content_type = response.headers.get("content-type", "")
        filename = _filename_from_disposition(response.headers.get("content-disposition"))

        if "application/json" in content_type:
            try:
                data = response.json()
            except ValueError as exc:
                msg = f"Export file for job '{job_id}' is not valid JSON."
                raise ExportDownloadError(msg, ExportErrorKind.INVALID_RESPONSE, response.status_code) from exc
            content = json.dumps(data, indent=2).encode("utf-8")
            artifact = DownloadedExport(content=content, content_type="application/json", filename=filename)
        else:
            artifact = DownloadedExport(
                content=response.content,
                content_type=content_type or "application/octet-stream",
                filename=filename,
            )
        artifact.headers = dict(response.headers)
        logger.info("Export file for {} downloaded ({} bytes)", job_id, artifact.size)
        return artifact

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _validate(self, response: ApiResult[Any], model: type[M], context: str) -> ExportResult[M]:
        """Convert a transport result into a typed export result."""
        if response.error is not None:
            error = ExportError.from_api_error(response.error, context)
            logger.error("{} failed with status {}: {}", context, error.status, response.error.message)
            if error.kind is ExportErrorKind.UNAUTHORIZED:
                self._api.session.invalidate()
            return ExportResult.fail(error)

        try:
            return ExportResult.ok(model.model_validate(response.data if response.data is not None else {}))
        except ValidationError as exc:
            logger.error("{} returned a malformed response: {}", context, exc)
            return ExportResult.fail(
                ExportError(
                    kind=ExportErrorKind.INVALID_RESPONSE,
                    status=response.status,
                    message=f"{context} returned an unexpected response.",
                    details=response.data,
                )
            )


