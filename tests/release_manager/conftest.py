"""Shared fixtures for the release manager test suite."""

from __future__ import annotations

import hashlib
import io
import logging
import tarfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator

import pytest

from ProtonUp.ReleaseManager.models import Asset, Release
from ProtonUp.ReleaseManager.settings import ModuleConfig
from ProtonUp.ReleaseManager.testing import MockRouter, ResponseSpec, use_mock_http_client

GE_TAG = "GE-Proton7-51"
GE_ARCHIVE = f"{GE_TAG}.tar.gz"
GE_CHECKSUM = f"{GE_TAG}.sha512sum"
DOWNLOAD_ROOT = "https://github.com/GloriousEggroll/proton-ge-custom/releases/download"
API_ROOT = "https://api.github.com/repos/GloriousEggroll/proton-ge-custom/releases"


def make_tar_gz(members: Dict[str, bytes]) -> bytes:
    """Return the bytes of a gzip-compressed tarball holding ``members``."""

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for member_name, payload in members.items():
            info = tarfile.TarInfo(member_name)
            info.size = len(payload)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(payload))
    return buffer.getvalue()


def release_payload(
    tag: str,
    published: str,
    assets: Dict[str, str],
) -> Dict[str, object]:
    """Build a GitHub-shaped release JSON object."""

    return {
        "name": tag,
        "tag_name": tag,
        "created_at": published,
        "published_at": published,
        "assets": [
            {"name": asset_name, "browser_download_url": url, "updated_at": published}
            for asset_name, url in assets.items()
        ],
    }


def make_asset(asset_name: str, url: str = "") -> Asset:
    return Asset(name=asset_name, browser_download_url=url or f"{DOWNLOAD_ROOT}/x/{asset_name}")


def make_release(tag: str, day: int, *, assets=()) -> Release:
    return Release(
        tag_name=tag,
        name=tag,
        published_at=datetime(2023, 1, day, tzinfo=timezone.utc),
        assets=list(assets),
    )


@pytest.fixture(autouse=True)
def _quiet_package_logger() -> Iterator[None]:
    """Keep handlers installed by ``setup_logging`` from leaking across tests."""

    logger = logging.getLogger("ProtonUp.ReleaseManager")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)


@pytest.fixture
def router() -> MockRouter:
    return MockRouter()


@pytest.fixture
def http_client(router: MockRouter):
    with use_mock_http_client(router.transport()) as client:
        yield client


@pytest.fixture
def module_config(tmp_path: Path) -> ModuleConfig:
    return ModuleConfig(
        owner="GloriousEggroll",
        repo="proton-ge-custom",
        install_dir=tmp_path / "compatibilitytools.d",
        cache_dir=tmp_path / "cache",
        cache_capacity=8,
    )


@pytest.fixture
def ge_archive() -> bytes:
    return make_tar_gz(
        {
            f"{GE_TAG}/proton": b"#!/bin/sh\necho proton\n",
            f"{GE_TAG}/version": b"1677000000 GE-Proton7-51\n",
        }
    )


@pytest.fixture
def ge_release_routes(router: MockRouter, ge_archive: bytes) -> MockRouter:
    """Register the ``GE-Proton7-51`` release, its archive, and its SHA-512 file."""

    digest = hashlib.sha512(ge_archive).hexdigest()
    archive_url = f"{DOWNLOAD_ROOT}/{GE_TAG}/{GE_ARCHIVE}"
    checksum_url = f"{DOWNLOAD_ROOT}/{GE_TAG}/{GE_CHECKSUM}"
    payload = release_payload(
        GE_TAG,
        "2023-02-21T20:00:00Z",
        {GE_ARCHIVE: archive_url, GE_CHECKSUM: checksum_url},
    )
    older = release_payload("GE-Proton7-50", "2023-02-10T20:00:00Z", {})
    router.add(f"{API_ROOT}/tags/{GE_TAG}", ResponseSpec(body=payload))
    router.add(f"{API_ROOT}?per_page=10", ResponseSpec(body=[payload, older]))
    router.add(f"{API_ROOT}?per_page=1", ResponseSpec(body=[payload]))
    router.add(archive_url, ResponseSpec(body=ge_archive))
    router.add(checksum_url, ResponseSpec(body=f"{digest}  {GE_ARCHIVE}\n"))
    return router
