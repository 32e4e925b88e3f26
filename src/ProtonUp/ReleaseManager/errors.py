"""Exception hierarchy shared across release resolution, acquisition, and install.

The release pipeline spans registry queries, HTTP retrieval, checksum
verification, archive unpacking, and metadata persistence.  This module groups
those failure modes into a small hierarchy so callers can react to high-level
categories (a missing asset versus a corrupted download) while still having
access to the details carried by specialised subclasses.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "ReleaseManagerError",
    "ArtifactIOError",
    "ArchiveError",
    "RegistryError",
    "DownloadFailure",
    "NotFoundError",
    "ChecksumFormatError",
    "UnsupportedFileTypeError",
    "ChecksumMismatchError",
    "ConfigurationError",
    "NoAcquisitionStrategyError",
]


class ReleaseManagerError(RuntimeError):
    """Base exception for release resolution, download, or install failures."""


class ArtifactIOError(ReleaseManagerError):
    """Raised when reading or writing an artifact on disk fails."""


class ArchiveError(ArtifactIOError):
    """Raised when an archive cannot be decompressed or unpacked."""


class RegistryError(ReleaseManagerError):
    """Raised when the release registry cannot be queried or returns bad data."""


class DownloadFailure(ReleaseManagerError):
    """Raised when an HTTP download attempt fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ReleaseManagerError):
    """Raised when a release, asset, checksum, or configuration entry is absent."""


class ChecksumFormatError(NotFoundError):
    """Raised when checksum text does not contain a usable digest."""


class UnsupportedFileTypeError(ReleaseManagerError):
    """Raised when an archive suffix has no registered extractor."""

    def __init__(self, extension: str) -> None:
        super().__init__(f"Unsupported file type: '{extension}'")
        self.extension = extension


class ChecksumMismatchError(ReleaseManagerError):
    """Raised when an artifact does not match its expected checksum."""

    def __init__(self, expected: str, actual: str, *, subject: str = "checksum") -> None:
        super().__init__(f"{subject.capitalize()} mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
        self.subject = subject


class ConfigurationError(ReleaseManagerError):
    """Raised when configuration inputs are invalid or incomplete."""


class NoAcquisitionStrategyError(ConfigurationError):
    """Raised when a fetch request names neither a usable cache nor a download source."""
