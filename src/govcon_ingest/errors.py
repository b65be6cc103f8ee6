"""Exceptions raised outside the fetch path (construction and configuration)."""
from __future__ import annotations


class GovconIngestError(Exception):
    """Base exception for govcon-ingest."""


class ConfigError(GovconIngestError):
    """Invalid or unreadable ingestion configuration."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source
