"""Orchestration of release listing, installation, and update checks.

:class:`ReleaseManager` ties one configured module (an ``owner/repo`` feed with
its install and cache directories) to a release registry, the artifact fetcher,
the archive extractor, and the bounded metadata cache.  An install walks the
stages below and aborts on the first failure::

    resolved -> asset selected -> checksum discovered (or skipped)
             -> acquired -> extracted -> cache updated

The metadata cache is only written after extraction succeeded, so a failed
install never shows up as installed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import httpx

from . import net
from .assets import ARCHIVE_SUFFIXES, discover_checksum_asset, select_archive_asset
from .cache import BoundedMetadataCache
from .checksums import ChecksumAlgorithm, ExpectedChecksum, parse_checksum_text
from .events import EventKind, FetchEvent, Observer, logging_observer
from .extraction import extract_archive
from .fetcher import ArtifactFetcher, FetchConfig
from .models import Asset, Release
from .registry import GitHubReleaseRegistry, ReleaseRegistry
from .settings import HttpSettings, ModuleConfig

__all__ = ["InstallResult", "UpdateStatus", "ReleaseManager"]

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class InstallResult:
    """Summary of a completed install.

    Attributes:
        release: Release record as stored in the metadata cache.
        archive: Local archive that was extracted.
        extracted: Top-level entries created in the install directory.
        installed_path: Path recorded as the release's install location.
        verification: ``"verified"`` or ``"skipped"``.
    """

    release: Release
    archive: Path
    extracted: List[str]
    installed_path: Path
    verification: str


@dataclass(slots=True, frozen=True)
class UpdateStatus:
    """Newest registry release compared with the newest installed one."""

    latest: Optional[Release]
    installed: Optional[Release]

    @property
    def update_available(self) -> bool:
        if self.latest is None:
            return False
        if self.installed is None:
            return True
        return self.latest.sort_key() > self.installed.sort_key()


class ReleaseManager:
    """Resolve, install, and track releases of a single configured module."""

    def __init__(
        self,
        module: ModuleConfig,
        *,
        registry: Optional[ReleaseRegistry] = None,
        fetcher: Optional[ArtifactFetcher] = None,
        cache: Optional[BoundedMetadataCache[Release]] = None,
        observer: Optional[Observer] = None,
        http_settings: Optional[HttpSettings] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.module = module
        self._client = client
        self._observer = observer or logging_observer(logger)
        self.registry: ReleaseRegistry = registry or GitHubReleaseRegistry(http_settings, client=client)
        self.fetcher = fetcher or ArtifactFetcher(client=client, observer=self._observer)
        if cache is None:
            cache = BoundedMetadataCache(module.metadata_path, module.cache_capacity)
        self.cache: BoundedMetadataCache[Release] = cache

    def _emit(self, kind: EventKind, path: Optional[Path] = None, **details: object) -> None:
        self._observer(FetchEvent(kind=kind, path=str(path) if path else None, details=dict(details)))

    # --- Listing -----------------------------------------------------------------

    def list_releases(self, count: int, installed_only: bool = False) -> List[Release]:
        """Return up to ``count`` releases, newest first.

        With ``installed_only`` the metadata cache is filtered for releases that
        record an install location and the registry is not contacted.  Otherwise
        the registry is queried and its answer merged into the cache; merging
        never evicts anything beyond the cache's capacity and keeps any install
        location already recorded for the same release.
        """

        if count < 1:
            return []
        if installed_only:
            return self.cache.filter(lambda release: release.is_installed)[:count]

        fetched = self.registry.list_releases(self.module.owner, self.module.repo, count)
        for release in fetched:
            known = self.cache.get(release.identity)
            if known is not None and known.is_installed and not release.is_installed:
                release.mark_installed(known.installed_in)  # type: ignore[arg-type]
        self.cache.add_range(fetched)
        self._emit(EventKind.CACHE_UPDATED, self.cache.path, releases=len(fetched))
        return sorted(fetched, key=lambda release: release.sort_key(), reverse=True)[:count]

    # --- Installation ------------------------------------------------------------

    def _expected_checksum(self, asset: Asset, release: Release) -> ExpectedChecksum:
        checksum_asset, algorithm = discover_checksum_asset(asset, release.assets)
        text = net.fetch_text(checksum_asset.browser_download_url, client=self._client)
        entry = parse_checksum_text(text, expected_filename=asset.name, algorithm=algorithm)
        logger.debug(
            "expected checksum resolved",
            extra={"stage": "discover", "checksum_asset": checksum_asset.name, "algorithm": algorithm.value},
        )
        return ExpectedChecksum(algorithm=algorithm, value=entry.digest)

    def install(self, tag: str, *, use_cache: bool = True, verify: bool = True) -> InstallResult:
        """Install the release tagged ``tag`` into the module's install directory.

        Args:
            tag: Release tag to resolve against the live registry.
            use_cache: Reuse a previously downloaded archive when present.
            verify: Discover the published checksum and verify the archive.

        Raises:
            NotFoundError: The release, a supported archive asset, or its
                checksum asset does not exist.
            ChecksumMismatchError: The archive does not match the published digest.
            DownloadFailure: The archive or checksum could not be downloaded.
            ArchiveError: The archive could not be unpacked.
        """

        release = self.registry.get_release_by_tag(self.module.owner, self.module.repo, tag)
        asset = select_archive_asset(release, ARCHIVE_SUFFIXES)
        logger.info(
            "installing release",
            extra={"stage": "install", "tag": release.tag_name, "asset": asset.name},
        )

        checksum: Optional[str] = None
        algorithm: Optional[ChecksumAlgorithm] = None
        if verify:
            expected = self._expected_checksum(asset, release)
            checksum, algorithm = expected.value, expected.algorithm

        cache_dir = self.module.cache_dir
        fetched = self.fetcher.acquire(
            FetchConfig(
                url=asset.browser_download_url,
                destination=cache_dir / asset.filename,
                cache_dir=cache_dir,
                checksum=checksum,
                algorithm=algorithm,
            ),
            use_cache=use_cache,
        )

        install_dir = self.module.install_dir
        extracted = extract_archive(fetched.path, install_dir)
        self._emit(EventKind.EXTRACTED, install_dir, entries=list(extracted))

        installed_path = install_dir / extracted[0] if extracted else install_dir
        release.mark_installed(installed_path)
        self.cache.upsert(release)
        self._emit(EventKind.CACHE_UPDATED, self.cache.path, tag=release.tag_name)
        logger.info(
            "release installed",
            extra={"stage": "install", "tag": release.tag_name, "installed_in": str(installed_path)},
        )
        return InstallResult(
            release=release,
            archive=fetched.path,
            extracted=extracted,
            installed_path=installed_path,
            verification=fetched.verification,
        )

    # --- Update checks -----------------------------------------------------------

    def check_for_updates(self) -> UpdateStatus:
        """Compare the newest registry release with the newest installed one."""

        latest = next(iter(self.list_releases(1)), None)
        installed = next(iter(self.list_releases(1, installed_only=True)), None)
        status = UpdateStatus(latest=latest, installed=installed)
        logger.debug(
            "update check finished",
            extra={
                "stage": "check",
                "latest": latest.tag_name if latest else None,
                "installed": installed.tag_name if installed else None,
            },
        )
        return status
