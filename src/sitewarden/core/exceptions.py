# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Custom exception hierarchy for sitewarden."""


class SitewardenError(Exception):
    """Base exception for all sitewarden errors."""


class ConfigurationError(SitewardenError):
    """Invalid or missing configuration."""


class TokenizeError(SitewardenError):
    """Source text could not be split into a cleaned token view."""


class PatternError(SitewardenError):
    """A detection rule or rule payload failed validation."""


class ScanError(SitewardenError):
    """Error during scan execution."""


class StorageError(SitewardenError):
    """State store or site database operation failed."""


class RemoteServiceError(SitewardenError):
    """Pattern, hash, or checksum service request failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VerdictError(SitewardenError):
    """Error communicating with the AI verdict service."""


class IntegrityError(SitewardenError):
    """Integrity manifest unavailable or unusable."""
