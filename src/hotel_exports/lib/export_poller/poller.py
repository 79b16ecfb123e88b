"""Per-job status polling for in-flight export jobs.

Each tracked job gets its own loop: an immediate first poll, then one
poll per interval until the job completes, fails, is removed, or keeps
erroring. Loops never share a timer, so a slow or failing job backs off
without delaying the others. Nothing polls while the host is hidden; a
job's pending wait is frozen on hide and resumed on restore, so hidden
time never triggers catch-up polls.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from hotel_exports.lib.export_client.client import ExportResult
from hotel_exports.lib.export_client.errors import ExportError, ExportErrorKind
from hotel_exports.lib.export_client.types import ACTIVE_STATUSES, ExportJob, ExportJobStatus
from hotel_exports.lib.export_poller.scheduler import CancelHandle, Scheduler, Unsubscribe
from hotel_exports.lib.transport.retry import backoff_delay

DEFAULT_POLLING_INTERVAL_MS = 5000
MAX_CONSECUTIVE_ERRORS = 3

StatusUpdateCallback = Callable[[str, ExportJobStatus], None]
PollingStoppedCallback = Callable[[str, ExportError], None]


class StatusSource(Protocol):
    """Anything that can fetch an export job's status without raising."""

    async def get_export_status(self, job_id: str) -> ExportResult[ExportJobStatus]: ...


@dataclass
class PollingState:
    """Scheduling state of one tracked job. Owned by the poller."""

    job_id: str
    consecutive_error_count: int = 0
    next_poll_at_ms: float | None = None
    timer: CancelHandle | None = None
    in_flight: bool = False
    # Wait still owed when the host was hidden; replayed on restore.
    deferred_ms: float = 0

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        self.next_poll_at_ms = None


class ExportJobPoller:
    """Keeps the status of in-flight export jobs fresh.

    Args:
        source: Status source, normally an ``ExportClient``.
        scheduler: Timer and visibility capability.
        on_status_update: Called with ``(job_id, status)`` after every successful poll.
        interval_ms: Base delay between polls of one job.
        max_consecutive_errors: Retryable failures in a row after which a job
            is no longer polled.
        on_polling_stopped: Optional hook called with ``(job_id, error)`` when
            a job stops being polled because of an error.
    """

    def __init__(
        self,
        source: StatusSource,
        scheduler: Scheduler,
        on_status_update: StatusUpdateCallback,
        *,
        interval_ms: float = DEFAULT_POLLING_INTERVAL_MS,
        max_consecutive_errors: int = MAX_CONSECUTIVE_ERRORS,
        on_polling_stopped: PollingStoppedCallback | None = None,
    ) -> None:
        if interval_ms <= 0:
            msg = "interval_ms must be positive"
            raise ValueError(msg)
        if max_consecutive_errors < 1:
            msg = "max_consecutive_errors must be at least 1"
            raise ValueError(msg)
        self._source = source
        self._scheduler = scheduler
        self._on_status_update = on_status_update
        self._on_polling_stopped = on_polling_stopped
        self._interval_ms = interval_ms
        self._max_errors = max_consecutive_errors
        self._states: dict[str, PollingState] = {}
        # Jobs that reached a terminal status; never polled again. Holds one
        # id per distinct job seen by this poller and is dropped on close().
        self._finished: set[str] = set()
        # Jobs abandoned after an error; polled again only if removed and re-added.
        self._abandoned: set[str] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False
        self._unsubscribe: Unsubscribe | None = scheduler.on_visibility_change(self._on_visibility_change)

    @property
    def interval_ms(self) -> float:
        return self._interval_ms

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def tracked_job_ids(self) -> frozenset[str]:
        """Ids of jobs that currently have a polling loop."""
        return frozenset(self._states)

    @property
    def retired_job_ids(self) -> frozenset[str]:
        """Ids of jobs that will not be polled again (terminal or abandoned)."""
        return frozenset(self._finished | self._abandoned)

    @property
    def pending_timer_count(self) -> int:
        return sum(1 for state in self._states.values() if state.timer is not None)

    def is_polling(self, job_id: str) -> bool:
        return job_id in self._states

    def next_poll_at_ms(self, job_id: str) -> float | None:
        state = self._states.get(job_id)
        return state.next_poll_at_ms if state else None

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def sync(self, jobs: Iterable[ExportJob]) -> None:
        """Reconcile polling loops with the caller's current job list.

        Starts loops for new queued/processing jobs, stops loops for jobs
        that were removed or are now terminal in the caller's view.

        Raises:
            RuntimeError: If the poller has been closed.
        """
        if self._closed:
            msg = "ExportJobPoller is closed"
            raise RuntimeError(msg)

        current: dict[str, ExportJob] = {job.job_id: job for job in jobs}

        for job_id in list(self._states):
            job = current.get(job_id)
            if job is None:
                logger.debug("Job {} no longer tracked, stopping polling", job_id)
                self.stop(job_id)
            elif job.status not in ACTIVE_STATUSES:
                logger.debug("Job {} is {}, stopping polling", job_id, job.status)
                self.stop(job_id)
                self._finished.add(job_id)

        # Forget abandoned jobs the caller dismissed so a re-add starts fresh.
        self._abandoned &= current.keys()

        for job_id, job in current.items():
            if job_id in self._states or job_id in self._finished or job_id in self._abandoned:
                continue
            if job.status not in ACTIVE_STATUSES:
                continue
            logger.info("Starting polling for job {}", job_id)
            state = PollingState(job_id=job_id)
            self._states[job_id] = state
            self._schedule(state, 0)

    def stop(self, job_id: str) -> None:
        """Stop polling one job. Stopping an untracked job is a no-op."""
        state = self._states.pop(job_id, None)
        if state is None:
            return
        state.cancel_timer()
        logger.debug("Polling stopped for job {}", job_id)

    def close(self) -> None:
        """Cancel every timer and stop reacting to visibility changes.

        In-flight polls may still complete; their results are discarded.
        """
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for state in self._states.values():
            state.cancel_timer()
        self._states.clear()
        self._finished.clear()
        self._abandoned.clear()
        logger.debug("Export poller closed")

    async def wait_idle(self) -> None:
        """Wait until no poll request is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _schedule(self, state: PollingState, delay_ms: float) -> None:
        state.cancel_timer()
        if not self._scheduler.is_page_visible():
            # Deferred; the visibility listener reschedules on restore.
            state.deferred_ms = delay_ms
            return
        state.deferred_ms = 0
        state.next_poll_at_ms = self._scheduler.now_ms() + delay_ms
        state.timer = self._scheduler.schedule_after(delay_ms, lambda: self._on_timer(state))

    def _on_timer(self, state: PollingState) -> None:
        state.timer = None
        state.next_poll_at_ms = None
        if self._closed or self._states.get(state.job_id) is not state:
            return
        if not self._scheduler.is_page_visible():
            return
        state.in_flight = True
        task = asyncio.ensure_future(self._poll(state))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_visibility_change(self, visible: bool) -> None:
        if self._closed:
            return
        if not visible:
            logger.debug("Host hidden, suspending polling for {} job(s)", len(self._states))
            now = self._scheduler.now_ms()
            for state in self._states.values():
                if state.next_poll_at_ms is not None:
                    state.deferred_ms = max(0.0, state.next_poll_at_ms - now)
                state.cancel_timer()
            return
        logger.debug("Host visible, resuming polling for {} job(s)", len(self._states))
        for state in list(self._states.values()):
            if not state.in_flight:
                self._schedule(state, state.deferred_ms)

    def _is_current(self, state: PollingState) -> bool:
        return not self._closed and self._states.get(state.job_id) is state

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _poll(self, state: PollingState) -> None:
        job_id = state.job_id
        try:
            result = await self._source.get_export_status(job_id)
        except Exception as exc:
            logger.exception("Unexpected error polling job {}", job_id)
            result = ExportResult.fail(ExportError(ExportErrorKind.NETWORK_ERROR, 0, str(exc)))
        finally:
            state.in_flight = False

        if not self._is_current(state):
            logger.debug("Discarding late poll result for job {}", job_id)
            return

        if result.error is None and result.data is not None:
            self._handle_success(state, result.data)
        else:
            error = result.error or ExportError(ExportErrorKind.INVALID_RESPONSE, 0, "Empty status response")
            self._handle_failure(state, error)

    def _handle_success(self, state: PollingState, status: ExportJobStatus) -> None:
        state.consecutive_error_count = 0
        if status.is_terminal:
            logger.info("Job {} reached terminal state: {}", state.job_id, status.status)
            self.stop(state.job_id)
            self._finished.add(state.job_id)
        try:
            self._on_status_update(state.job_id, status)
        except Exception:
            logger.exception("Status update callback failed for job {}", state.job_id)
        if self._is_current(state):
            self._schedule(state, self._interval_ms)

    def _handle_failure(self, state: PollingState, error: ExportError) -> None:
        job_id = state.job_id
        if not error.retryable:
            logger.warning("Stopping polling for job {}: {}", job_id, error.message)
            self._abandon(state, error)
            return

        state.consecutive_error_count += 1
        count = state.consecutive_error_count
        logger.warning(
            "Polling error for job {} (attempt {}/{}): {}",
            job_id,
            count,
            self._max_errors,
            error.message,
        )
        if count >= self._max_errors:
            logger.error("Stopping polling for job {} after {} consecutive failures", job_id, count)
            self._abandon(state, error)
            return

        delay = backoff_delay(count, self._interval_ms)
        logger.debug("Backing off {}ms for job {}", delay, job_id)
        self._schedule(state, delay)

    def _abandon(self, state: PollingState, error: ExportError) -> None:
        self.stop(state.job_id)
        self._abandoned.add(state.job_id)
        if self._on_polling_stopped is not None:
            try:
                self._on_polling_stopped(state.job_id, error)
            except Exception:
                logger.exception("Polling-stopped callback failed for job {}", state.job_id)
