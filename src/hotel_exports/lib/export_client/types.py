"""Export request filters, wire models, and client-side job state.

Request filters and backend responses are Pydantic models so that a
malformed payload fails one validation step instead of surfacing later
as a missing attribute. ``ExportJob`` is the caller-owned record of a
submitted job and is updated from status responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


class ExportType(StrEnum):
    """Kind of data being exported."""

    HOTEL = "hotel"
    MAPPING = "mapping"


class ExportFormat(StrEnum):
    """Output file format produced by the backend."""

    JSON = "json"
    CSV = "csv"
    EXCEL = "excel"


class ExportStatus(StrEnum):
    """Lifecycle state of an export job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({ExportStatus.COMPLETED, ExportStatus.FAILED})
ACTIVE_STATUSES = frozenset({ExportStatus.QUEUED, ExportStatus.PROCESSING})

# Older backends report queued jobs as "pending".
_STATUS_ALIASES = {"pending": ExportStatus.QUEUED.value}


def _blank_date_to_none(v: Any) -> Any:
    """Normalize empty date strings to None and reject non-ISO values."""
    if v is None:
        return None
    if isinstance(v, datetime | date):
        return v.isoformat()
    if not isinstance(v, str):
        return v
    v = v.strip()
    if not v:
        return None
    try:
        date.fromisoformat(v)
    except ValueError:
        try:
            datetime.fromisoformat(v)
        except ValueError:
            msg = f"Invalid ISO 8601 date: {v!r}"
            raise ValueError(msg) from None
    return v


def _coerce_null_to_int(v: Any) -> Any:
    """Coerce explicit JSON null to 0."""
    return v if v is not None else 0


# ---------------------------------------------------------------------------
# Request filters
# ---------------------------------------------------------------------------


class _FilterConstraints(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    suppliers: list[str] = Field(default_factory=list)
    ittids: list[str] | Literal["All"] = "All"
    date_from: str | None = None
    date_to: str | None = None

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def _clean_dates(cls, v: Any) -> Any:
        return _blank_date_to_none(v)

    @model_validator(mode="after")
    def _check_date_range(self) -> _FilterConstraints:
        if self.date_from and self.date_to and self.date_from[:10] > self.date_to[:10]:
            msg = "date_from must not be after date_to"
            raise ValueError(msg)
        return self


class HotelFilterConstraints(_FilterConstraints):
    """Constraint fields for a hotel export."""

    country_codes: list[str] | str = "All"
    min_rating: float = Field(default=0, ge=0, le=5)
    max_rating: float = Field(default=5, ge=0, le=5)
    property_types: list[str] | Literal["All"] = "All"

    @model_validator(mode="after")
    def _check_rating_range(self) -> HotelFilterConstraints:
        if self.min_rating > self.max_rating:
            msg = "min_rating must not exceed max_rating"
            raise ValueError(msg)
        return self


class MappingFilterConstraints(_FilterConstraints):
    """Constraint fields for a supplier mapping export."""

    max_records: int | Literal["All"] = "All"

    @field_validator("max_records")
    @classmethod
    def _positive_max_records(cls, v: int | str) -> int | str:
        if isinstance(v, int) and v <= 0:
            msg = "max_records must be positive"
            raise ValueError(msg)
        return v


class _ExportFiltersBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    format: ExportFormat = ExportFormat.JSON

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the wire payload.

        The ``export_type`` tag and absent dates are omitted, so an empty
        date string can never be transmitted.
        """
        return self.model_dump(mode="json", exclude_none=True)


class HotelExportFilters(_ExportFiltersBase):
    """Request body for ``POST /export/hotels``."""

    export_type: Literal["hotel"] = Field(default="hotel", exclude=True)
    filters: HotelFilterConstraints = Field(default_factory=HotelFilterConstraints)
    include_locations: bool = True
    include_contacts: bool = True
    include_mappings: bool = True


class MappingExportFilters(_ExportFiltersBase):
    """Request body for ``POST /export/mappings``."""

    export_type: Literal["mapping"] = Field(default="mapping", exclude=True)
    filters: MappingFilterConstraints = Field(default_factory=MappingFilterConstraints)


ExportFilters = Annotated[HotelExportFilters | MappingExportFilters, Field(discriminator="export_type")]

_export_filters_adapter: TypeAdapter[HotelExportFilters | MappingExportFilters] = TypeAdapter(ExportFilters)


def parse_export_filters(data: dict[str, Any]) -> HotelExportFilters | MappingExportFilters:
    """Validate a tagged filter dict (``{"export_type": "hotel", ...}``)."""
    return _export_filters_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# Backend responses
# ---------------------------------------------------------------------------


class ExportJobCreated(BaseModel):
    """Response of a successful export creation."""

    model_config = ConfigDict(extra="ignore")

    job_id: str = Field(min_length=1)
    status: ExportStatus | None = None
    estimated_records: int | None = None
    estimated_completion_time: datetime | None = None
    created_at: datetime | None = None
    message: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _alias_status(cls, v: Any) -> Any:
        return _STATUS_ALIASES.get(v, v) if isinstance(v, str) else v


class ExportJobStatus(BaseModel):
    """Response of ``GET /export/status/{job_id}``."""

    model_config = ConfigDict(extra="ignore")

    job_id: str
    status: ExportStatus
    progress_percentage: float = Field(default=0, ge=0, le=100)
    processed_records: int = Field(default=0, ge=0)
    total_records: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    download_url: str | None = None
    expires_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _alias_status(cls, v: Any) -> Any:
        return _STATUS_ALIASES.get(v, v) if isinstance(v, str) else v

    @field_validator("progress_percentage", "processed_records", "total_records", mode="before")
    @classmethod
    def _coerce_counts(cls, v: Any) -> Any:
        return _coerce_null_to_int(v)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class ExportJobSummary(ExportJobStatus):
    """One entry of ``GET /export/jobs``."""

    export_type: ExportType | None = None


class ExportJobList(BaseModel):
    """Response of ``GET /export/jobs``."""

    model_config = ConfigDict(extra="ignore")

    jobs: list[ExportJobSummary] = Field(default_factory=list)
    total: int = 0


class DeleteJobResponse(BaseModel):
    """Response of ``DELETE /export/jobs/{job_id}``."""

    model_config = ConfigDict(extra="ignore")

    success: bool = True
    message: str | None = None


class ClearCompletedResponse(BaseModel):
    """Response of ``DELETE /export/jobs/completed``."""

    model_config = ConfigDict(extra="ignore")

    success: bool = True
    deleted_count: int = 0


# ---------------------------------------------------------------------------
# Client-side state
# ---------------------------------------------------------------------------


@dataclass
class ExportJob:
    """Caller-side record of a submitted export job.

    ``error_message`` is only set while ``status`` is failed, ``download_url``
    only while completed, and ``completed_at`` only in a terminal state.
    ``filters`` is the originating request and is never modified.
    """

    job_id: str
    export_type: ExportType
    filters: HotelExportFilters | MappingExportFilters
    status: ExportStatus = ExportStatus.QUEUED
    progress: int = 0
    processed_records: int = 0
    total_records: int = 0
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    expires_at: datetime | None = None
    estimated_completion_time: datetime | None = None
    error_message: str | None = None
    download_url: str | None = None

    @classmethod
    def from_created(
        cls,
        created: ExportJobCreated,
        filters: HotelExportFilters | MappingExportFilters,
    ) -> ExportJob:
        """Build the initial job record from a creation response."""
        status = created.status if created.status in ACTIVE_STATUSES else ExportStatus.QUEUED
        return cls(
            job_id=created.job_id,
            export_type=ExportType(filters.export_type),
            filters=filters,
            status=status,
            total_records=created.estimated_records or 0,
            created_at=created.created_at,
            estimated_completion_time=created.estimated_completion_time,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def apply_status(self, status: ExportJobStatus) -> None:
        """Update this job from a status response."""
        self.status = status.status
        self.progress = max(0, min(100, round(status.progress_percentage)))
        self.total_records = status.total_records
        self.processed_records = (
            min(status.processed_records, status.total_records) if status.total_records else status.processed_records
        )
        if status.created_at is not None:
            self.created_at = status.created_at
        if self.status is not ExportStatus.QUEUED and status.started_at is not None:
            self.started_at = status.started_at
        if status.expires_at is not None:
            self.expires_at = status.expires_at

        self.completed_at = (status.completed_at or self.completed_at) if self.is_terminal else None
        self.error_message = (status.error_message or "Export failed") if self.status is ExportStatus.FAILED else None
        self.download_url = status.download_url if self.status is ExportStatus.COMPLETED else None


@dataclass
class DownloadedExport:
    """A downloaded export artifact, ready to be saved as a file.

    Attributes:
        content: Raw file bytes.
        content_type: MIME type reported by (or derived from) the response.
        filename: Suggested filename from ``Content-Disposition``, if any.
    """

    content: bytes
    content_type: str = "application/octet-stream"
    filename: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.content)

    def text(self, encoding: str = "utf-8") -> str:
        return self.content.decode(encoding)

    def save(self, path: Path) -> Path:
        """Write the content to ``path`` (creating parent directories)."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.content)
        return path
