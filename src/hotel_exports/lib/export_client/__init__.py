"""Export request client library — create, poll, list, delete, and download exports.

Public API:
    - ExportClient: Client for the ``/export`` endpoints
    - ExportResult: Typed success/failure result of non-raising calls
    - HotelExportFilters / MappingExportFilters: Request filter models
    - ExportJobStatus: Validated status response
    - ExportJob: Caller-side job record
    - DownloadedExport: Downloaded file artifact
    - ExportError / ExportErrorKind: Normalized error taxonomy
    - ExportDownloadError / ExportRequestError: Raised errors
"""

from hotel_exports.lib.export_client.client import ExportClient, ExportResult
from hotel_exports.lib.export_client.errors import (
    ExportDownloadError,
    ExportError,
    ExportErrorKind,
    ExportRequestError,
    classify_status,
)
from hotel_exports.lib.export_client.types import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    ClearCompletedResponse,
    DeleteJobResponse,
    DownloadedExport,
    ExportFilters,
    ExportFormat,
    ExportJob,
    ExportJobCreated,
    ExportJobList,
    ExportJobStatus,
    ExportJobSummary,
    ExportStatus,
    ExportType,
    HotelExportFilters,
    HotelFilterConstraints,
    MappingExportFilters,
    MappingFilterConstraints,
    parse_export_filters,
)

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "ClearCompletedResponse",
    "DeleteJobResponse",
    "DownloadedExport",
    "ExportClient",
    "ExportDownloadError",
    "ExportError",
    "ExportErrorKind",
    "ExportFilters",
    "ExportFormat",
    "ExportJob",
    "ExportJobCreated",
    "ExportJobList",
    "ExportJobStatus",
    "ExportJobSummary",
    "ExportRequestError",
    "ExportResult",
    "ExportStatus",
    "ExportType",
    "HotelExportFilters",
    "HotelFilterConstraints",
    "MappingExportFilters",
    "MappingFilterConstraints",
    "classify_status",
    "parse_export_filters",
]
