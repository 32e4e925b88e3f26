"""Selection of the archive asset and its checksum counterpart within a release."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence, Tuple

from .checksums import ChecksumAlgorithm
from .errors import NotFoundError
from .models import Asset, Release

__all__ = [
    "ARCHIVE_SUFFIXES",
    "CHECKSUM_SUFFIXES",
    "select_archive_asset",
    "discover_checksum_asset",
]

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES: Tuple[str, ...] = (".tar.gz", ".tar.xz", ".tar.bz2", ".tgz", ".txz")

# Checked in order; the first suffix with a matching asset wins.
CHECKSUM_SUFFIXES: Tuple[Tuple[str, ChecksumAlgorithm], ...] = (
    ("sha512sum", ChecksumAlgorithm.SHA512),
    ("sha256sum", ChecksumAlgorithm.SHA256),
    ("sha1sum", ChecksumAlgorithm.SHA1),
    ("md5sum", ChecksumAlgorithm.MD5),
)


def select_archive_asset(release: Release, suffixes: Sequence[str] = ARCHIVE_SUFFIXES) -> Asset:
    """Return the asset of ``release`` matching the earliest entry of ``suffixes``.

    ``suffixes`` is a preference order; among assets sharing a suffix the one
    listed first in the release wins.
    """

    for suffix in suffixes:
        for asset in release.assets:
            if asset.name.lower().endswith(suffix):
                return asset
    raise NotFoundError(
        f"Release {release.tag_name} has no archive asset ending with any of: {', '.join(suffixes)}"
    )


def discover_checksum_asset(
    asset: Asset,
    candidates: Iterable[Asset],
) -> Tuple[Asset, ChecksumAlgorithm]:
    """Find the checksum file published alongside ``asset``.

    A candidate qualifies when it shares ``asset``'s base name (everything before
    the first ``.``) and its name ends with a known checksum suffix.  Suffixes are
    tried strongest first, so a release publishing both ``.sha512sum`` and
    ``.md5sum`` files is verified with SHA-512.

    Raises:
        NotFoundError: If no candidate matches any known suffix.
    """

    pool = [
        candidate
        for candidate in candidates
        if candidate.name != asset.name and candidate.base_name == asset.base_name
    ]
    for suffix, algorithm in CHECKSUM_SUFFIXES:
        for candidate in pool:
            if candidate.name.lower().endswith(suffix):
                logger.debug(
                    "checksum asset selected",
                    extra={"stage": "discover", "asset": asset.name, "checksum_asset": candidate.name},
                )
                return candidate, algorithm
    searched = ", ".join(suffix for suffix, _ in CHECKSUM_SUFFIXES)
    raise NotFoundError(f"No checksum asset for {asset.name} (searched suffixes: {searched})")
