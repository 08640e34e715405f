"""Error taxonomy for the ingestion pipeline."""
from __future__ import annotations


class IngestError(Exception):
    """Base class for everything raised by fc_archive."""


class ClientError(IngestError):
    """The remote API rejected the request itself (4xx). Never retried."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class TransientError(IngestError):
    """Network or server fault. Retried with backoff."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ContractViolation(IngestError, ValueError):
    """Caller broke an input contract (e.g. batch too large)."""


class EmptyResultError(IngestError):
    """A paginated fetch failed before its first page arrived."""


class PayloadError(IngestError, ValueError):
    """A response did not have the shape we need."""


class ConfigError(IngestError):
    """Startup configuration is missing or invalid."""
