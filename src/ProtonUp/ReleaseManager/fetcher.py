"""Cache-first artifact acquisition with optional checksum verification.

:class:`ArtifactFetcher` composes three steps behind one failure-handling policy:

1. reuse a file already present in the download cache;
2. otherwise stream the remote URL to the configured destination;
3. verify the acquired file when a checksum is configured, deleting it on a
   mismatch when ``remove_on_error`` is set.

Skipping verification is never silent: it is reported as a
``verification-skipped`` event and recorded on the :class:`FetchResult`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional, Union
from urllib.parse import unquote, urlparse

import httpx

from . import net
from .checksums import ChecksumAlgorithm, normalize_algorithm, verify_checksum
from .errors import ChecksumMismatchError, ConfigurationError, NoAcquisitionStrategyError
from .events import EventKind, FetchEvent, Observer, logging_observer

__all__ = ["FetchConfig", "FetchResult", "ArtifactFetcher"]

logger = logging.getLogger(__name__)

SOURCE_CACHE = "cache"
SOURCE_DOWNLOAD = "download"
VERIFICATION_PASSED = "verified"
VERIFICATION_SKIPPED = "skipped"


@dataclass(slots=True, frozen=True)
class FetchConfig:
    """Describe where an artifact may come from and how to check it.

    Attributes:
        url: Remote location to download from.
        destination: File the download is written to.
        cache_dir: Directory searched for an already downloaded copy.
        checksum: Expected hexadecimal digest.
        algorithm: Algorithm ``checksum`` was produced with.
        remove_on_error: Delete the acquired file when verification fails.
    """

    url: Optional[str] = None
    destination: Optional[Path] = None
    cache_dir: Optional[Path] = None
    checksum: Optional[str] = None
    algorithm: Optional[Union[str, ChecksumAlgorithm]] = None
    remove_on_error: bool = True

    @property
    def filename(self) -> Optional[str]:
        """Name the artifact is cached under."""

        if self.destination is not None:
            return Path(self.destination).name
        if self.url:
            return PurePosixPath(unquote(urlparse(self.url).path)).name or None
        return None

    @property
    def cache_path(self) -> Optional[Path]:
        if self.cache_dir is None or not self.filename:
            return None
        return Path(self.cache_dir) / self.filename


@dataclass(slots=True, frozen=True)
class FetchResult:
    """Outcome of :meth:`ArtifactFetcher.acquire`.

    Attributes:
        path: Acquired file; exists on disk.
        source: ``"cache"`` or ``"download"``.
        verification: ``"verified"`` or ``"skipped"``.
        algorithm: Algorithm used for verification, when verified.
        digest: Digest computed during verification, when verified.
    """

    path: Path
    source: str
    verification: str
    algorithm: Optional[ChecksumAlgorithm] = None
    digest: Optional[str] = None

    @property
    def from_cache(self) -> bool:
        return self.source == SOURCE_CACHE


class ArtifactFetcher:
    """Acquire files from the download cache or the network, then verify them."""

    def __init__(
        self,
        *,
        client: Optional[httpx.Client] = None,
        observer: Optional[Observer] = None,
    ) -> None:
        self._client = client
        self._observer = observer or logging_observer(logger)

    def _emit(self, kind: EventKind, path: Optional[Path] = None, url: Optional[str] = None, **details: object) -> None:
        self._observer(
            FetchEvent(kind=kind, path=str(path) if path else None, url=url, details=dict(details))
        )

    def _validate(self, config: FetchConfig) -> Optional[ChecksumAlgorithm]:
        if (config.checksum is None) != (config.algorithm is None):
            raise ConfigurationError("checksum and algorithm must be configured together")
        if config.algorithm is None:
            return None
        return normalize_algorithm(config.algorithm)

    def _try_cache(self, config: FetchConfig, use_cache: bool) -> Optional[Path]:
        cache_path = config.cache_path
        if cache_path is None:
            logger.debug("no cache path configured", extra={"stage": "cache"})
            return None
        if use_cache and cache_path.is_file():
            self._emit(EventKind.CACHE_HIT, cache_path)
            return cache_path
        self._emit(EventKind.CACHE_MISS, cache_path)
        return None

    def _try_download(self, config: FetchConfig) -> Optional[Path]:
        if not config.url or config.destination is None:
            return None
        destination = Path(config.destination)
        self._emit(EventKind.DOWNLOAD_START, destination, config.url)
        written = net.stream_to_file(config.url, destination, client=self._client)
        self._emit(EventKind.DOWNLOAD_COMPLETE, destination, config.url, bytes_written=written)
        return destination

    def _verify(
        self,
        path: Path,
        config: FetchConfig,
        algorithm: ChecksumAlgorithm,
    ) -> str:
        try:
            digest = verify_checksum(path, config.checksum or "", algorithm)
        except ChecksumMismatchError as exc:
            self._emit(
                EventKind.VERIFICATION_FAILED,
                path,
                algorithm=algorithm.value,
                expected=exc.expected,
                actual=exc.actual,
            )
            if config.remove_on_error:
                path.unlink(missing_ok=True)
                self._emit(EventKind.FILE_REMOVED, path)
            raise
        self._emit(EventKind.VERIFICATION_PASSED, path, algorithm=algorithm.value)
        return digest

    def acquire(self, config: FetchConfig, *, use_cache: bool = True) -> FetchResult:
        """Return a local, optionally verified copy of the artifact ``config`` describes.

        Args:
            config: Sources and verification settings.
            use_cache: When ``False`` the cache lookup is skipped and the file is
                always downloaded.

        Raises:
            NoAcquisitionStrategyError: Neither a cached file nor a
                ``url``/``destination`` pair is available.
            ConfigurationError: Only one of ``checksum``/``algorithm`` is set.
            DownloadFailure: The network transfer failed.
            ArtifactIOError: The file could not be written or read.
            ChecksumMismatchError: The digest did not match; the file is gone
                when ``remove_on_error`` was set.
        """

        algorithm = self._validate(config)

        path = self._try_cache(config, use_cache)
        source = SOURCE_CACHE
        if path is None:
            path = self._try_download(config)
            source = SOURCE_DOWNLOAD
        if path is None:
            raise NoAcquisitionStrategyError(
                "No acquisition strategy configured: need a cached file or a url and destination"
            )

        if algorithm is None:
            self._emit(EventKind.VERIFICATION_SKIPPED, path)
            return FetchResult(path=path, source=source, verification=VERIFICATION_SKIPPED)

        digest = self._verify(path, config, algorithm)
        return FetchResult(
            path=path,
            source=source,
            verification=VERIFICATION_PASSED,
            algorithm=algorithm,
            digest=digest,
        )
