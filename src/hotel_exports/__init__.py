"""Async client, job poller, and CLI for hotel data exports."""

__version__ = "0.1.0"
