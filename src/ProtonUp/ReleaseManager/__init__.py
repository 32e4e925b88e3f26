"""Public API for the ProtonUp release manager.

This facade exposes the pieces external callers combine to install release
artifacts: the :class:`ReleaseManager` orchestrator, the cache-first
:class:`ArtifactFetcher`, checksum verification, archive extraction, the bounded
metadata cache, and the error hierarchy they raise.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any, Dict

__version__ = "0.3.0"

_EXPORT_MAP: Dict[str, str] = {
    "ReleaseManager": ".manager",
    "InstallResult": ".manager",
    "UpdateStatus": ".manager",
    "ArtifactFetcher": ".fetcher",
    "FetchConfig": ".fetcher",
    "FetchResult": ".fetcher",
    "BoundedMetadataCache": ".cache",
    "ChecksumAlgorithm": ".checksums",
    "compute_digest": ".checksums",
    "verify_checksum": ".checksums",
    "parse_checksum_text": ".checksums",
    "extract_archive": ".extraction",
    "Asset": ".models",
    "Release": ".models",
    "GitHubReleaseRegistry": ".registry",
    "ReleaseRegistry": ".registry",
    "ModuleConfig": ".settings",
    "AppConfig": ".settings",
    "load_config": ".settings",
    "EventKind": ".events",
    "FetchEvent": ".events",
    "setup_logging": ".logging_config",
    "ReleaseManagerError": ".errors",
    "ArtifactIOError": ".errors",
    "ArchiveError": ".errors",
    "RegistryError": ".errors",
    "DownloadFailure": ".errors",
    "NotFoundError": ".errors",
    "ChecksumFormatError": ".errors",
    "UnsupportedFileTypeError": ".errors",
    "ChecksumMismatchError": ".errors",
    "ConfigurationError": ".errors",
    "NoAcquisitionStrategyError": ".errors",
}

__all__ = [*_EXPORT_MAP, "__version__"]

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .cache import BoundedMetadataCache
    from .checksums import ChecksumAlgorithm, compute_digest, parse_checksum_text, verify_checksum
    from .errors import (
        ArchiveError,
        ArtifactIOError,
        ChecksumFormatError,
        ChecksumMismatchError,
        ConfigurationError,
        DownloadFailure,
        NoAcquisitionStrategyError,
        NotFoundError,
        RegistryError,
        ReleaseManagerError,
        UnsupportedFileTypeError,
    )
    from .events import EventKind, FetchEvent
    from .extraction import extract_archive
    from .fetcher import ArtifactFetcher, FetchConfig, FetchResult
    from .logging_config import setup_logging
    from .manager import InstallResult, ReleaseManager, UpdateStatus
    from .models import Asset, Release
    from .registry import GitHubReleaseRegistry, ReleaseRegistry
    from .settings import AppConfig, ModuleConfig, load_config


def __getattr__(name: str) -> Any:
    """Lazily import API exports so the CLI starts without loading every module."""

    module_name = _EXPORT_MAP.get(name)
    if module_name is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    value = getattr(import_module(module_name, __name__), name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    """Expose lazily-populated attributes in ``dir()`` results."""

    return sorted(set(globals()) | set(__all__))
