"""Shared test fixtures: settings, session, a fake clock scheduler, and scripted status sources."""

from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from hotel_exports.core.config import Settings
from hotel_exports.core.session import SessionStore
from hotel_exports.lib.export_client import (
    ExportError,
    ExportErrorKind,
    ExportJob,
    ExportJobStatus,
    ExportResult,
    ExportStatus,
    ExportType,
    HotelExportFilters,
)


class FakeTimer:
    """One scheduled callback on the fake clock."""

    def __init__(self, due: float, seq: int, callback: Callable[[], None]) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False
        self.fired = False
        self.cancel_calls = 0

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not self.cancelled and not self.fired


class FakeScheduler:
    """Deterministic scheduler: time only moves when a test calls ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.visible = True
        self.timers: list[FakeTimer] = []
        self._listeners: list[Callable[[bool], None]] = []
        self._seq = 0

    def now_ms(self) -> float:
        return self.now

    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> FakeTimer:
        self._seq += 1
        timer = FakeTimer(self.now + delay_ms, self._seq, callback)
        self.timers.append(timer)
        return timer

    def is_page_visible(self) -> bool:
        return self.visible

    def on_visibility_change(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def set_visible(self, visible: bool) -> None:
        if visible == self.visible:
            return
        self.visible = visible
        for listener in list(self._listeners):
            listener(visible)

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if timer.pending]

    async def advance(self, ms: float, settle: Callable[[], Awaitable[None]] | None = None) -> None:
        """Move time forward, firing due timers in order and settling after each."""
        target = self.now + ms
        while True:
            due = [timer for timer in self.pending if timer.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self.now = max(self.now, timer.due)
            timer.fired = True
            timer.callback()
            if settle is not None:
                await settle()
        self.now = target


class ScriptedStatusSource:
    """Status source returning scripted results per job; the last entry repeats."""

    def __init__(self, scripts: dict[str, list[Any]], clock: FakeScheduler | None = None) -> None:
        self._scripts = scripts
        self._clock = clock
        self.calls: list[str] = []
        self.call_times: dict[str, list[float]] = {}

    def calls_for(self, job_id: str) -> int:
        return self.calls.count(job_id)

    async def get_export_status(self, job_id: str) -> ExportResult[ExportJobStatus]:
        self.calls.append(job_id)
        if self._clock is not None:
            self.call_times.setdefault(job_id, []).append(self._clock.now)
        script = self._scripts[job_id]
        index = min(self.calls_for(job_id) - 1, len(script) - 1)
        item = script[index]
        if isinstance(item, BaseException):
            raise item
        return item


def status_ok(job_id: str, status: str, progress: float = 0, **fields: Any) -> ExportResult[ExportJobStatus]:
    return ExportResult.ok(ExportJobStatus(job_id=job_id, status=status, progress_percentage=progress, **fields))


def status_error(kind: ExportErrorKind, status: int, message: str = "boom") -> ExportResult[ExportJobStatus]:
    return ExportResult.fail(ExportError(kind=kind, status=status, message=message))


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        _env_file=None,
        api_base_url="http://api.test",
        api_version="v1.0",
        api_token="test-token",
        retry_base_delay=0,
        download_retry_delay=0,
    )


@pytest.fixture
def session() -> SessionStore:
    """Logged-in session without an API key."""
    return SessionStore(token="test-token")


@pytest.fixture
def clock() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def fake_scheduler_cls() -> type[FakeScheduler]:
    return FakeScheduler


@pytest.fixture
def status_source_cls() -> type[ScriptedStatusSource]:
    return ScriptedStatusSource


@pytest.fixture
def make_status_ok() -> Callable[..., ExportResult[ExportJobStatus]]:
    return status_ok


@pytest.fixture
def make_status_error() -> Callable[..., ExportResult[ExportJobStatus]]:
    return status_error


@pytest.fixture
def make_job() -> Callable[..., ExportJob]:
    """Factory for caller-side ExportJob records."""

    def _make(job_id: str, status: ExportStatus = ExportStatus.PROCESSING) -> ExportJob:
        return ExportJob(
            job_id=job_id,
            export_type=ExportType.HOTEL,
            filters=HotelExportFilters(),
            status=status,
        )

    return _make
