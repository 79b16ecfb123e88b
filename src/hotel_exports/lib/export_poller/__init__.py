"""Export job poller library — independent status loops per in-flight job.

Public API:
    - ExportJobPoller: Reconciles a job list into per-job polling loops
    - PollingState: Internal per-job scheduling state
    - Scheduler / CancelHandle: Timer and visibility capability protocols
    - AsyncioScheduler: Event-loop backed scheduler
"""

from hotel_exports.lib.export_poller.poller import (
    DEFAULT_POLLING_INTERVAL_MS,
    MAX_CONSECUTIVE_ERRORS,
    ExportJobPoller,
    PollingState,
    StatusSource,
)
from hotel_exports.lib.export_poller.scheduler import AsyncioScheduler, CancelHandle, Scheduler

__all__ = [
    "DEFAULT_POLLING_INTERVAL_MS",
    "MAX_CONSECUTIVE_ERRORS",
    "AsyncioScheduler",
    "CancelHandle",
    "ExportJobPoller",
    "PollingState",
    "Scheduler",
    "StatusSource",
]
