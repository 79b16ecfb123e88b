"""Export CLI commands for hotel and mapping data exports.

Create jobs, follow them to completion, and manage the server-side job list.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from loguru import logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from hotel_exports.core.config import Settings
    from hotel_exports.lib.export_client import (
        ExportClient,
        ExportError,
        ExportJob,
        HotelExportFilters,
        MappingExportFilters,
    )

export_app = typer.Typer()

_FORMAT_EXTENSIONS = {"json": "json", "csv": "csv", "excel": "xlsx"}


@asynccontextmanager
async def _export_client(settings: Settings) -> AsyncIterator[ExportClient]:
    """Build an export client from settings and close its transport afterwards."""
    from hotel_exports.core.session import SessionStore
    from hotel_exports.lib.export_client import ExportClient
    from hotel_exports.lib.transport import ApiClient

    session = SessionStore.from_settings(settings)
    session.on_session_expired(lambda message: logger.debug("Session invalidated: {}", message))
    api = ApiClient.from_settings(settings, session)
    try:
        yield ExportClient(
            api,
            download_retries=settings.download_retries,
            download_retry_delay=settings.download_retry_delay,
        )
    finally:
        await api.close()


def _fail(error: ExportError) -> typer.Exit:
    typer.echo(f"Error: {error.message}", err=True)
    for field_name, message in error.field_errors.items():
        typer.echo(f"  {field_name}: {message}", err=True)
    return typer.Exit(code=1)


def _print_job(job: ExportJob) -> None:
    line = f"  {job.job_id}: {job.status} {job.progress}%"
    if job.total_records:
        line += f" ({job.processed_records}/{job.total_records} records)"
    typer.echo(line)


def _default_output(settings: Settings, job_id: str, output_format: str, filename: str | None) -> Path:
    name = filename or f"{job_id}.{_FORMAT_EXTENSIONS.get(output_format, output_format)}"
    return Path(settings.export_dir) / name


@export_app.command("hotels")
def export_hotels(
    supplier: Annotated[list[str] | None, typer.Option("--supplier", help="Supplier to include (repeatable)")] = None,
    country: Annotated[list[str] | None, typer.Option("--country", help="Country code (repeatable)")] = None,
    min_rating: Annotated[float, typer.Option("--min-rating", help="Minimum star rating")] = 0.0,
    max_rating: Annotated[float, typer.Option("--max-rating", help="Maximum star rating")] = 5.0,
    date_from: Annotated[str, typer.Option("--date-from", help="Updated on or after (ISO date)")] = "",
    date_to: Annotated[str, typer.Option("--date-to", help="Updated on or before (ISO date)")] = "",
    ittid: Annotated[list[str] | None, typer.Option("--ittid", help="ITT hotel id (repeatable, default All)")] = None,
    property_type: Annotated[
        list[str] | None, typer.Option("--property-type", help="Property type (repeatable, default All)")
    ] = None,
    output_format: Annotated[str, typer.Option("--format", help="Output format (json, csv, excel)")] = "json",
    include_locations: Annotated[bool, typer.Option("--locations/--no-locations")] = True,
    include_contacts: Annotated[bool, typer.Option("--contacts/--no-contacts")] = True,
    include_mappings: Annotated[bool, typer.Option("--mappings/--no-mappings")] = True,
    wait: Annotated[bool, typer.Option("--wait", help="Poll until the job finishes")] = False,
    output: Annotated[Path | None, typer.Option("--output", help="Download to this path (implies --wait)")] = None,
) -> None:
    """Create a hotel data export job."""
    from pydantic import ValidationError

    from hotel_exports.lib.export_client import HotelExportFilters

    try:
        filters = HotelExportFilters.model_validate(
            {
                "filters": {
                    "suppliers": supplier or [],
                    "country_codes": country or "All",
                    "min_rating": min_rating,
                    "max_rating": max_rating,
                    "date_from": date_from,
                    "date_to": date_to,
                    "ittids": ittid or "All",
                    "property_types": property_type or "All",
                },
                "format": output_format,
                "include_locations": include_locations,
                "include_contacts": include_contacts,
                "include_mappings": include_mappings,
            }
        )
    except ValidationError as exc:
        typer.echo(f"Invalid filters: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    asyncio.run(_create_impl(filters, wait or output is not None, output))


@export_app.command("mappings")
def export_mappings(
    supplier: Annotated[list[str] | None, typer.Option("--supplier", help="Supplier to include (repeatable)")] = None,
    ittid: Annotated[list[str] | None, typer.Option("--ittid", help="ITT hotel id (repeatable, default All)")] = None,
    date_from: Annotated[str, typer.Option("--date-from", help="Mapped on or after (ISO date)")] = "",
    date_to: Annotated[str, typer.Option("--date-to", help="Mapped on or before (ISO date)")] = "",
    max_records: Annotated[int | None, typer.Option("--max-records", help="Cap on exported rows")] = None,
    output_format: Annotated[str, typer.Option("--format", help="Output format (json, csv, excel)")] = "json",
    wait: Annotated[bool, typer.Option("--wait", help="Poll until the job finishes")] = False,
    output: Annotated[Path | None, typer.Option("--output", help="Download to this path (implies --wait)")] = None,
) -> None:
    """Create a supplier mapping export job."""
    from pydantic import ValidationError

    from hotel_exports.lib.export_client import MappingExportFilters

    try:
        filters = MappingExportFilters.model_validate(
            {
                "filters": {
                    "suppliers": supplier or [],
                    "ittids": ittid or "All",
                    "date_from": date_from,
                    "date_to": date_to,
                    "max_records": max_records if max_records is not None else "All",
                },
                "format": output_format,
            }
        )
    except ValidationError as exc:
        typer.echo(f"Invalid filters: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    asyncio.run(_create_impl(filters, wait or output is not None, output))


async def _create_impl(
    filters: HotelExportFilters | MappingExportFilters,
    wait: bool,
    output: Path | None,
) -> None:
    """Submit an export and optionally follow it to a downloaded file."""
    from hotel_exports.core.config import get_settings
    from hotel_exports.lib.export_client import ExportRequestError, ExportStatus, HotelExportFilters
    from hotel_exports.lib.export_poller import AsyncioScheduler
    from hotel_exports.services.export_service import ExportJobTracker

    settings = get_settings()
    async with _export_client(settings) as client:
        tracker = ExportJobTracker(
            client,
            AsyncioScheduler(),
            interval_ms=settings.poll_interval_ms,
            max_consecutive_errors=settings.poll_max_consecutive_errors,
            on_job_updated=_print_job if wait else None,
        )
        try:
            if isinstance(filters, HotelExportFilters):
                job = await tracker.create_hotel_export(filters)
            else:
                job = await tracker.create_mapping_export(filters)
            typer.echo(f"Export job created: {job.job_id}")
            if not wait:
                return

            typer.echo("Waiting for completion...")
            job = await tracker.wait_until_finished(job.job_id)
            stopped = tracker.polling_error(job.job_id)
            if stopped is not None:
                raise _fail(stopped)
            if job.status is ExportStatus.FAILED:
                typer.echo(f"Export failed: {job.error_message}", err=True)
                raise typer.Exit(code=1)
            if job.status is not ExportStatus.COMPLETED:
                typer.echo(f"Export stopped in state {job.status}", err=True)
                raise typer.Exit(code=1)

            typer.echo(f"Export completed: {job.total_records} records")
            if output is not None:
                await _download(client, settings, job.job_id, filters.format, output)
        except ExportRequestError as exc:
            raise _fail(exc.error) from exc
        finally:
            tracker.close()
            await tracker.poller.wait_idle()


@export_app.command("status")
def export_status(job_id: Annotated[str, typer.Argument(help="Export job id (exp_...)")]) -> None:
    """Show the status of an export job."""
    asyncio.run(_status_impl(job_id))


async def _status_impl(job_id: str) -> None:
    from hotel_exports.core.config import get_settings

    settings = get_settings()
    async with _export_client(settings) as client:
        result = await client.get_export_status(job_id)
        if result.error is not None:
            raise _fail(result.error)
        assert result.data is not None
        status = result.data
        typer.echo(f"Job:       {status.job_id}")
        typer.echo(f"Status:    {status.status}")
        typer.echo(f"Progress:  {status.progress_percentage:.0f}%")
        typer.echo(f"Records:   {status.processed_records}/{status.total_records}")
        if status.error_message:
            typer.echo(f"Error:     {status.error_message}")
        if status.download_url:
            typer.echo(f"Download:  {status.download_url}")
        if status.expires_at:
            typer.echo(f"Expires:   {status.expires_at.isoformat()}")


@export_app.command("list")
def export_list(
    status: Annotated[str | None, typer.Option("--status", help="Filter by job status")] = None,
    export_type: Annotated[str | None, typer.Option("--type", help="Filter by export type (hotel, mapping)")] = None,
    limit: Annotated[int | None, typer.Option("--limit", help="Maximum jobs to return")] = None,
    offset: Annotated[int | None, typer.Option("--offset", help="Jobs to skip")] = None,
) -> None:
    """List export jobs."""
    asyncio.run(_list_impl(status, export_type, limit, offset))


async def _list_impl(status: str | None, export_type: str | None, limit: int | None, offset: int | None) -> None:
    from hotel_exports.core.config import get_settings

    settings = get_settings()
    async with _export_client(settings) as client:
        result = await client.list_export_jobs(status=status, export_type=export_type, limit=limit, offset=offset)
        if result.error is not None:
            raise _fail(result.error)
        assert result.data is not None
        typer.echo(f"{result.data.total} export job(s)")
        for job in result.data.jobs:
            typer.echo(f"  {job.job_id}  {job.export_type or '-':<8} {job.status:<11} {job.progress_percentage:.0f}%")


@export_app.command("download")
def export_download(
    job_id: Annotated[str, typer.Argument(help="Export job id (exp_...)")],
    output: Annotated[Path | None, typer.Option("--output", help="Destination file path")] = None,
) -> None:
    """Download the file of a completed export job."""
    asyncio.run(_download_impl(job_id, output))


async def _download_impl(job_id: str, output: Path | None) -> None:
    from hotel_exports.core.config import get_settings

    settings = get_settings()
    async with _export_client(settings) as client:
        await _download(client, settings, job_id, None, output)


async def _download(
    client: ExportClient,
    settings: Settings,
    job_id: str,
    output_format: str | None,
    output: Path | None,
) -> None:
    from hotel_exports.lib.export_client import ExportDownloadError

    try:
        artifact = await client.download_export(job_id)
    except ExportDownloadError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc

    if output is None:
        fmt = output_format or ("json" if "json" in artifact.content_type else "bin")
        output = _default_output(settings, job_id, fmt, artifact.filename)
    path = artifact.save(output)
    logger.info("Saved export {} to {}", job_id, path)
    typer.echo(f"Saved {artifact.size} bytes to {path}")


@export_app.command("delete")
def export_delete(job_id: Annotated[str, typer.Argument(help="Export job id (exp_...)")]) -> None:
    """Delete an export job on the server."""
    asyncio.run(_delete_impl(job_id))


async def _delete_impl(job_id: str) -> None:
    from hotel_exports.core.config import get_settings

    settings = get_settings()
    async with _export_client(settings) as client:
        result = await client.delete_export_job(job_id)
        if result.error is not None:
            raise _fail(result.error)
        typer.echo(f"Deleted export job {job_id}")


@export_app.command("clear-completed")
def export_clear_completed() -> None:
    """Delete all completed export jobs on the server."""
    asyncio.run(_clear_completed_impl())


async def _clear_completed_impl() -> None:
    from hotel_exports.core.config import get_settings

    settings = get_settings()
    async with _export_client(settings) as client:
        result = await client.clear_completed_jobs()
        if result.error is not None:
            raise _fail(result.error)
        assert result.data is not None
        typer.echo(f"Cleared {result.data.deleted_count} completed export job(s)")
