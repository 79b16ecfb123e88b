"""Unit tests for the export error taxonomy."""

import pytest

from hotel_exports.core.session import SESSION_EXPIRED_MESSAGE
from hotel_exports.lib.export_client.errors import (
    NETWORK_ERROR_MESSAGE,
    PERMISSION_DENIED_MESSAGE,
    SERVER_ERROR_MESSAGE,
    ExportError,
    ExportErrorKind,
    classify_status,
    extract_field_errors,
    user_message,
)
from hotel_exports.lib.transport import ApiError


class TestClassifyStatus:
    @pytest.mark.parametrize(
        ("status", "kind"),
        [
            (0, ExportErrorKind.NETWORK_ERROR),
            (400, ExportErrorKind.REQUEST_ERROR),
            (401, ExportErrorKind.UNAUTHORIZED),
            (403, ExportErrorKind.FORBIDDEN),
            (404, ExportErrorKind.NOT_FOUND),
            (409, ExportErrorKind.REQUEST_ERROR),
            (422, ExportErrorKind.VALIDATION),
            (500, ExportErrorKind.SERVER_ERROR),
            (503, ExportErrorKind.SERVER_ERROR),
        ],
    )
    def test_classification(self, status: int, kind: ExportErrorKind) -> None:
        assert classify_status(status) is kind


class TestUserMessage:
    def test_fixed_messages(self) -> None:
        assert user_message(ExportErrorKind.UNAUTHORIZED, "x", "Export") == SESSION_EXPIRED_MESSAGE
        assert user_message(ExportErrorKind.FORBIDDEN, "x", "Export") == PERMISSION_DENIED_MESSAGE
        assert user_message(ExportErrorKind.SERVER_ERROR, "x", "Export") == SERVER_ERROR_MESSAGE
        assert user_message(ExportErrorKind.NETWORK_ERROR, "x", "Export") == NETWORK_ERROR_MESSAGE

    def test_not_found_uses_context(self) -> None:
        assert user_message(ExportErrorKind.NOT_FOUND, "x", "Export job") == "Export job not found."

    def test_other_kinds_keep_backend_message(self) -> None:
        assert user_message(ExportErrorKind.VALIDATION, "min_rating too high", "Export") == "min_rating too high"


class TestExtractFieldErrors:
    def test_fastapi_validation_body(self) -> None:
        details = {
            "detail": [
                {"loc": ["body", "filters", "min_rating"], "msg": "must be <= 5"},
                {"loc": ["body", "format"], "msg": "invalid format"},
            ]
        }
        assert extract_field_errors(details) == {
            "filters.min_rating": "must be <= 5",
            "format": "invalid format",
        }

    def test_non_list_detail(self) -> None:
        assert extract_field_errors({"detail": "bad"}) == {}
        assert extract_field_errors(None) == {}


class TestExportError:
    @pytest.mark.parametrize(
        ("kind", "retryable"),
        [
            (ExportErrorKind.SERVER_ERROR, True),
            (ExportErrorKind.NETWORK_ERROR, True),
            (ExportErrorKind.INVALID_RESPONSE, True),
            (ExportErrorKind.NOT_FOUND, False),
            (ExportErrorKind.UNAUTHORIZED, False),
            (ExportErrorKind.FORBIDDEN, False),
            (ExportErrorKind.VALIDATION, False),
            (ExportErrorKind.REQUEST_ERROR, False),
        ],
    )
    def test_retryable(self, kind: ExportErrorKind, retryable: bool) -> None:
        assert ExportError(kind, 0, "m").retryable is retryable

    def test_from_api_error_validation(self) -> None:
        details = {"detail": [{"loc": ["body", "filters", "max_rating"], "msg": "too high"}]}
        error = ExportError.from_api_error(ApiError(422, "too high", details), "Hotel export")
        assert error.kind is ExportErrorKind.VALIDATION
        assert error.status == 422
        assert error.message == "too high"
        assert error.field_errors == {"filters.max_rating": "too high"}

    def test_bad_request_with_field_detail_is_validation(self) -> None:
        details = {"detail": [{"loc": ["body", "format"], "msg": "unsupported format"}]}
        error = ExportError.from_api_error(ApiError(400, "unsupported format", details), "Hotel export")
        assert error.kind is ExportErrorKind.VALIDATION
        assert error.field_errors == {"format": "unsupported format"}

    def test_plain_bad_request(self) -> None:
        error = ExportError.from_api_error(ApiError(400, "Job not completed", {"detail": "Job not completed"}), "x")
        assert error.kind is ExportErrorKind.REQUEST_ERROR
        assert error.message == "Job not completed"
        assert error.field_errors == {}

    def test_from_api_error_server(self) -> None:
        error = ExportError.from_api_error(ApiError(502, "Bad Gateway"), "Hotel export")
        assert error.kind is ExportErrorKind.SERVER_ERROR
        assert error.message == SERVER_ERROR_MESSAGE
        assert error.field_errors == {}
