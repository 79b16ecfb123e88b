"""Unit tests for export filter models, wire models, and job state."""

from datetime import UTC, datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from hotel_exports.lib.export_client import (
    DownloadedExport,
    ExportFormat,
    ExportJob,
    ExportJobCreated,
    ExportJobList,
    ExportJobStatus,
    ExportStatus,
    ExportType,
    HotelExportFilters,
    MappingExportFilters,
    parse_export_filters,
)


class TestHotelExportFilters:
    """Tests for hotel export request filters."""

    def test_defaults_payload(self) -> None:
        payload = HotelExportFilters().to_payload()
        assert payload == {
            "format": "json",
            "filters": {
                "suppliers": [],
                "ittids": "All",
                "country_codes": "All",
                "min_rating": 0,
                "max_rating": 5,
                "property_types": "All",
            },
            "include_locations": True,
            "include_contacts": True,
            "include_mappings": True,
        }

    def test_blank_dates_are_omitted(self) -> None:
        """Empty date strings never reach the wire."""
        filters = HotelExportFilters.model_validate(
            {"filters": {"suppliers": ["agoda"], "date_from": "", "date_to": "   "}}
        )
        payload = filters.to_payload()
        assert "date_from" not in payload["filters"]
        assert "date_to" not in payload["filters"]
        assert "export_type" not in payload

    def test_dates_kept_when_set(self) -> None:
        filters = HotelExportFilters.model_validate(
            {"filters": {"date_from": "2025-01-01", "date_to": "2025-06-30T12:00:00"}}
        )
        payload = filters.to_payload()
        assert payload["filters"]["date_from"] == "2025-01-01"
        assert payload["filters"]["date_to"] == "2025-06-30T12:00:00"

    def test_invalid_date_rejected(self) -> None:
        with pytest.raises(ValidationError, match="ISO 8601"):
            HotelExportFilters.model_validate({"filters": {"date_from": "01/02/2025"}})

    def test_reversed_date_range_rejected(self) -> None:
        with pytest.raises(ValidationError, match="date_from"):
            HotelExportFilters.model_validate({"filters": {"date_from": "2025-02-01", "date_to": "2025-01-01"}})

    def test_rating_bounds(self) -> None:
        with pytest.raises(ValidationError):
            HotelExportFilters.model_validate({"filters": {"max_rating": 6}})
        with pytest.raises(ValidationError, match="min_rating"):
            HotelExportFilters.model_validate({"filters": {"min_rating": 4, "max_rating": 3}})

    def test_unknown_filter_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            HotelExportFilters.model_validate({"filters": {"stars": 3}})

    def test_format_enum(self) -> None:
        assert HotelExportFilters(format=ExportFormat.CSV).to_payload()["format"] == "csv"
        with pytest.raises(ValidationError):
            HotelExportFilters.model_validate({"format": "pdf"})


class TestMappingExportFilters:
    def test_max_records_positive(self) -> None:
        assert MappingExportFilters.model_validate({"filters": {"max_records": 100}}).filters.max_records == 100
        with pytest.raises(ValidationError, match="positive"):
            MappingExportFilters.model_validate({"filters": {"max_records": 0}})

    def test_payload_has_no_hotel_fields(self) -> None:
        payload = MappingExportFilters().to_payload()
        assert "include_locations" not in payload
        assert payload["filters"]["max_records"] == "All"


class TestParseExportFilters:
    def test_discriminates_on_export_type(self) -> None:
        assert isinstance(parse_export_filters({"export_type": "hotel"}), HotelExportFilters)
        assert isinstance(parse_export_filters({"export_type": "mapping"}), MappingExportFilters)

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_export_filters({"export_type": "reviews"})


class TestWireModels:
    def test_created_requires_job_id(self) -> None:
        with pytest.raises(ValidationError):
            ExportJobCreated.model_validate({"job_id": ""})
        with pytest.raises(ValidationError):
            ExportJobCreated.model_validate({"status": "queued"})

    def test_pending_alias(self) -> None:
        assert ExportJobCreated.model_validate({"job_id": "exp_1", "status": "pending"}).status is ExportStatus.QUEUED
        status = ExportJobStatus.model_validate({"job_id": "exp_1", "status": "pending"})
        assert status.status is ExportStatus.QUEUED

    def test_null_counts_coerced(self) -> None:
        status = ExportJobStatus.model_validate(
            {"job_id": "exp_1", "status": "processing", "progress_percentage": None, "total_records": None}
        )
        assert status.progress_percentage == 0
        assert status.total_records == 0

    def test_progress_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExportJobStatus.model_validate({"job_id": "exp_1", "status": "processing", "progress_percentage": 140})

    def test_job_list(self) -> None:
        jobs = ExportJobList.model_validate(
            {
                "jobs": [{"job_id": "exp_1", "status": "completed", "export_type": "hotel", "extra": 1}],
                "total": 1,
            }
        )
        assert jobs.jobs[0].export_type is ExportType.HOTEL
        assert jobs.jobs[0].is_terminal


def _status(**fields) -> ExportJobStatus:
    return ExportJobStatus.model_validate({"job_id": "exp_1", **fields})


class TestExportJob:
    """Tests for caller-side job state transitions."""

    def test_from_created(self) -> None:
        created = ExportJobCreated(job_id="exp_1", status=ExportStatus.PROCESSING, estimated_records=500)
        job = ExportJob.from_created(created, MappingExportFilters())
        assert job.export_type is ExportType.MAPPING
        assert job.status is ExportStatus.PROCESSING
        assert job.total_records == 500

    def test_from_created_terminal_status_starts_queued(self) -> None:
        created = ExportJobCreated(job_id="exp_1", status=ExportStatus.COMPLETED)
        assert ExportJob.from_created(created, HotelExportFilters()).status is ExportStatus.QUEUED

    def test_progress_is_rounded_and_processed_capped(self) -> None:
        job = ExportJob.from_created(ExportJobCreated(job_id="exp_1"), HotelExportFilters())
        job.apply_status(
            _status(status="processing", progress_percentage=41.6, processed_records=120, total_records=100)
        )
        assert job.progress == 42
        assert job.processed_records == 100
        assert job.completed_at is None
        assert job.download_url is None

    def test_queued_has_no_start_time(self) -> None:
        job = ExportJob.from_created(ExportJobCreated(job_id="exp_1"), HotelExportFilters())
        job.apply_status(_status(status="queued", started_at="2025-01-01T00:00:00Z"))
        assert job.started_at is None

    def test_completed_sets_download_url(self) -> None:
        job = ExportJob.from_created(ExportJobCreated(job_id="exp_1"), HotelExportFilters())
        done = datetime(2025, 1, 1, 12, tzinfo=UTC)
        job.apply_status(
            _status(
                status="completed",
                progress_percentage=100,
                completed_at=done.isoformat(),
                download_url="/export/download/exp_1",
                error_message="ignored",
            )
        )
        assert job.is_terminal
        assert job.completed_at == done
        assert job.download_url == "/export/download/exp_1"
        assert job.error_message is None

    def test_failed_sets_error_message(self) -> None:
        job = ExportJob.from_created(ExportJobCreated(job_id="exp_1"), HotelExportFilters())
        job.apply_status(_status(status="failed", download_url="/x"))
        assert job.error_message == "Export failed"
        assert job.download_url is None

    def test_filters_untouched(self) -> None:
        filters = HotelExportFilters.model_validate({"filters": {"suppliers": ["agoda"]}})
        job = ExportJob.from_created(ExportJobCreated(job_id="exp_1"), filters)
        job.apply_status(_status(status="completed", progress_percentage=100))
        assert job.filters is filters
        assert job.filters.filters.suppliers == ["agoda"]


class TestDownloadedExport:
    def test_save_creates_parents(self, tmp_path: Path) -> None:
        artifact = DownloadedExport(content=b'{"a": 1}', content_type="application/json")
        path = artifact.save(tmp_path / "nested" / "out.json")
        assert path.read_bytes() == b'{"a": 1}'
        assert artifact.size == 8
        assert artifact.text() == '{"a": 1}'
