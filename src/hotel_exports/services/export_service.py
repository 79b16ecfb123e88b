"""Export service — tracks submitted export jobs and keeps them fresh.

``ExportJobTracker`` owns the caller's job list (newest first) and an
``ExportJobPoller`` fed from that list: creating a job starts its polling
loop, status updates flow back into the job records, and dismissing a
job stops its loop.
"""

import asyncio
from collections.abc import Callable

from loguru import logger

from hotel_exports.lib.export_client import (
    ExportClient,
    ExportError,
    ExportErrorKind,
    ExportJob,
    ExportJobCreated,
    ExportJobStatus,
    ExportRequestError,
    HotelExportFilters,
    MappingExportFilters,
)
from hotel_exports.lib.export_poller import (
    DEFAULT_POLLING_INTERVAL_MS,
    MAX_CONSECUTIVE_ERRORS,
    ExportJobPoller,
    Scheduler,
)

JobUpdatedCallback = Callable[[ExportJob], None]


class ExportJobTracker:
    """Caller-side export job list wired to a per-job poller.

    Args:
        client: Export API client.
        scheduler: Timer and visibility capability for the poller.
        interval_ms: Base polling interval.
        max_consecutive_errors: Poll failures tolerated before a job is abandoned.
        on_job_updated: Optional hook called after a job record changes.
    """

    def __init__(
        self,
        client: ExportClient,
        scheduler: Scheduler,
        *,
        interval_ms: float = DEFAULT_POLLING_INTERVAL_MS,
        max_consecutive_errors: int = MAX_CONSECUTIVE_ERRORS,
        on_job_updated: JobUpdatedCallback | None = None,
    ) -> None:
        self._client = client
        self._jobs: list[ExportJob] = []
        self._polling_errors: dict[str, ExportError] = {}
        self._settled: dict[str, asyncio.Event] = {}
        self._on_job_updated = on_job_updated
        self.last_error: ExportError | None = None
        self.poller = ExportJobPoller(
            client,
            scheduler,
            self.apply_status,
            interval_ms=interval_ms,
            max_consecutive_errors=max_consecutive_errors,
            on_polling_stopped=self._on_polling_stopped,
        )

    @property
    def jobs(self) -> list[ExportJob]:
        """Snapshot of tracked jobs, newest first."""
        return list(self._jobs)

    def get_job(self, job_id: str) -> ExportJob | None:
        return next((job for job in self._jobs if job.job_id == job_id), None)

    def polling_error(self, job_id: str) -> ExportError | None:
        """Error that made the poller give up on ``job_id``, if any."""
        return self._polling_errors.get(job_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_hotel_export(self, filters: HotelExportFilters) -> ExportJob:
        """Submit a hotel export and start tracking it.

        Raises:
            ExportRequestError: If the backend rejects the request.
        """
        result = await self._client.create_hotel_export(filters)
        return self._track_created(result.data, result.error, filters)

    async def create_mapping_export(self, filters: MappingExportFilters) -> ExportJob:
        """Submit a mapping export and start tracking it.

        Raises:
            ExportRequestError: If the backend rejects the request.
        """
        result = await self._client.create_mapping_export(filters)
        return self._track_created(result.data, result.error, filters)

    def _track_created(
        self,
        created: ExportJobCreated | None,
        error: ExportError | None,
        filters: HotelExportFilters | MappingExportFilters,
    ) -> ExportJob:
        self.last_error = error
        if error is not None or created is None:
            raise ExportRequestError(error or ExportError(ExportErrorKind.INVALID_RESPONSE, 0, "No job returned"))

        job = ExportJob.from_created(created, filters)
        self._jobs.insert(0, job)
        self._settled[job.job_id] = asyncio.Event()
        logger.info("Tracking {} export job {}", job.export_type, job.job_id)
        self._notify(job)
        self._sync_poller()
        return job

    # ------------------------------------------------------------------
    # Status updates
    # ------------------------------------------------------------------

    def apply_status(self, job_id: str, status: ExportJobStatus) -> None:
        """Apply a polled status to the matching job record.

        Updates for jobs that are no longer tracked are ignored.
        """
        job = self.get_job(job_id)
        if job is None:
            logger.debug("Ignoring status for untracked job {}", job_id)
            return
        job.apply_status(status)
        self._polling_errors.pop(job_id, None)
        self._notify(job)
        if job.is_terminal:
            self._mark_settled(job_id)
        self._sync_poller()

    async def refresh_job_status(self, job_id: str) -> ExportJob:
        """Fetch one job's status immediately, outside the polling schedule.

        Raises:
            KeyError: If the job is not tracked.
            ExportRequestError: If the status request fails.
        """
        if self.get_job(job_id) is None:
            raise KeyError(job_id)
        result = await self._client.get_export_status(job_id)
        self.last_error = result.error
        if result.error is not None or result.data is None:
            raise ExportRequestError(result.error or ExportError(ExportErrorKind.INVALID_RESPONSE, 0, "No status"))
        self.apply_status(job_id, result.data)
        job = self.get_job(job_id)
        if job is None:
            raise KeyError(job_id)
        return job

    def _on_polling_stopped(self, job_id: str, error: ExportError) -> None:
        self._polling_errors[job_id] = error
        if error.kind is ExportErrorKind.NOT_FOUND:
            logger.warning("Export {} is no longer available", job_id)
        self._mark_settled(job_id)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def dismiss_job(self, job_id: str) -> None:
        """Stop tracking a job locally. Unknown ids are ignored."""
        before = len(self._jobs)
        self._jobs = [job for job in self._jobs if job.job_id != job_id]
        if len(self._jobs) != before:
            logger.info("Dismissed export job {}", job_id)
        self._polling_errors.pop(job_id, None)
        self._mark_settled(job_id)
        self._settled.pop(job_id, None)
        self._sync_poller()

    async def delete_job(self, job_id: str) -> None:
        """Delete a job on the server, then stop tracking it.

        A 404 means the job is already gone and is treated as success.

        Raises:
            ExportRequestError: If the server refuses the delete.
        """
        result = await self._client.delete_export_job(job_id)
        self.last_error = result.error
        if result.error is not None and result.error.kind is not ExportErrorKind.NOT_FOUND:
            raise ExportRequestError(result.error)
        self.dismiss_job(job_id)

    def clear_finished_jobs(self) -> int:
        """Drop completed and failed jobs from the list.

        Returns:
            Number of jobs removed.
        """
        finished = [job.job_id for job in self._jobs if job.is_terminal]
        for job_id in finished:
            self.dismiss_job(job_id)
        return len(finished)

    # ------------------------------------------------------------------
    # Waiting and teardown
    # ------------------------------------------------------------------

    async def wait_until_finished(self, job_id: str, timeout: float | None = None) -> ExportJob:
        """Wait until a job is terminal, abandoned by the poller, or dismissed.

        Raises:
            KeyError: If the job is not tracked (or was dismissed while waiting).
            TimeoutError: If ``timeout`` seconds elapse first.
        """
        event = self._settled.get(job_id)
        if event is None or self.get_job(job_id) is None:
            raise KeyError(job_id)
        await asyncio.wait_for(event.wait(), timeout=timeout)
        job = self.get_job(job_id)
        if job is None:
            raise KeyError(job_id)
        return job

    def close(self) -> None:
        """Tear down the poller; no timer fires afterwards."""
        self.poller.close()

    def _mark_settled(self, job_id: str) -> None:
        event = self._settled.get(job_id)
        if event is not None:
            event.set()

    def _notify(self, job: ExportJob) -> None:
        if self._on_job_updated is not None:
            self._on_job_updated(job)

    def _sync_poller(self) -> None:
        if not self.poller.closed:
            self.poller.sync(self._jobs)
