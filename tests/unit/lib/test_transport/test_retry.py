"""Unit tests for backoff helpers."""

import pytest

from hotel_exports.lib.transport.retry import backoff_delay, backoff_schedule


class TestBackoffDelay:
    def test_doubles_by_default(self) -> None:
        assert [backoff_delay(n, 5000) for n in range(4)] == [5000, 10000, 20000, 40000]

    def test_custom_factor(self) -> None:
        assert backoff_delay(0, 1.0, 1.5) == 1.0
        assert backoff_delay(2, 1.0, 1.5) == pytest.approx(2.25)

    def test_negative_attempt_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            backoff_delay(-1, 1.0)


class TestBackoffSchedule:
    def test_schedule_length_matches_retries(self) -> None:
        assert backoff_schedule(3, 0.5) == [0.5, 1.0, 2.0]

    def test_zero_retries(self) -> None:
        assert backoff_schedule(0, 1.0) == []
