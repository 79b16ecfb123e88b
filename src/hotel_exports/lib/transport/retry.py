"""Backoff arithmetic shared by the transport, downloads, and the poller."""


def backoff_delay(attempt: int, base: float, factor: float = 2.0) -> float:
    """Return the delay before retry number ``attempt`` (zero-based).

    Args:
        attempt: How many retries have already been waited for.
        base: Delay for the first retry.
        factor: Growth multiplier applied per attempt.

    Returns:
        ``base * factor ** attempt``.
    """
    if attempt < 0:
        msg = "attempt must be non-negative"
        raise ValueError(msg)
    return base * factor**attempt


def backoff_schedule(retries: int, base: float, factor: float = 2.0) -> list[float]:
    """Return every delay a bounded retry loop of ``retries`` retries will wait."""
    return [backoff_delay(attempt, base, factor) for attempt in range(retries)]
