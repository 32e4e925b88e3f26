"""Archive extraction for downloaded release artifacts.

Compression is chosen purely from the archive's filename suffix.  A compound
``.tar.<ext>`` name means the decompressed stream is a tar archive whose members
are unpacked beneath the destination; any other name is treated as a single
compressed file written verbatim next to its siblings.  In both cases the caller
receives the top-level names that were created, which is what the release
manager records as the install location.
"""

from __future__ import annotations

import bz2
import gzip
import io
import logging
import lzma
import tarfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Tuple

from .errors import ArchiveError, UnsupportedFileTypeError

__all__ = ["SUPPORTED_SUFFIXES", "extract_archive", "top_level_entries"]

logger = logging.getLogger(__name__)

_DECOMPRESSORS: Dict[str, Callable[[bytes], bytes]] = {
    ".gz": gzip.decompress,
    ".xz": lzma.decompress,
    ".bz2": bz2.decompress,
}
_TAR_ALIASES: Dict[str, str] = {".tgz": ".gz", ".txz": ".xz", ".tbz2": ".bz2"}
_DECOMPRESSION_ERRORS = (OSError, EOFError, ValueError, zlib.error, lzma.LZMAError)

SUPPORTED_SUFFIXES: Tuple[str, ...] = (*_DECOMPRESSORS, *_TAR_ALIASES)


def _classify(archive: Path) -> Tuple[str, bool, str]:
    """Return ``(compression suffix, is_tar, matched suffix)`` for ``archive``."""

    lower = archive.name.lower()
    for alias, compression in _TAR_ALIASES.items():
        if lower.endswith(alias):
            return compression, True, alias
    suffix = archive.suffix.lower()
    if suffix not in _DECOMPRESSORS:
        raise UnsupportedFileTypeError(suffix or archive.name)
    return suffix, lower.endswith(f".tar{suffix}"), suffix


def _member_parts(member_name: str) -> Tuple[str, ...]:
    """Validate a tar member path and return its normalised components."""

    normalized = member_name.replace("\\", "/")
    relative = PurePosixPath(normalized)
    if relative.is_absolute():
        raise ArchiveError(f"Unsafe absolute path detected in archive: {member_name}")
    parts = tuple(part for part in relative.parts if part not in {"", "."})
    if ".." in parts:
        raise ArchiveError(f"Unsafe path detected in archive: {member_name}")
    return parts


def top_level_entries(names: List[str]) -> List[str]:
    """Collapse member paths to the sorted set of their first path segments."""

    entries = {parts[0] for parts in map(_member_parts, names) if parts}
    return sorted(entries)


def _decompress(archive: Path, compression: str) -> bytes:
    try:
        payload = archive.read_bytes()
    except OSError as exc:
        raise ArchiveError(f"Failed to read archive {archive}: {exc}") from exc
    try:
        return _DECOMPRESSORS[compression](payload)
    except _DECOMPRESSION_ERRORS as exc:
        raise ArchiveError(f"Failed to decompress {archive}: {exc}") from exc


def _unpack_tar(buffer: bytes, archive: Path, destination: Path) -> List[str]:
    try:
        with tarfile.open(fileobj=io.BytesIO(buffer), mode="r:") as tar:
            members = tar.getmembers()
            names = [member.name for member in members]
            entries = top_level_entries(names)
            for member in members:
                if member.isdev():
                    raise ArchiveError(
                        f"Unsupported special file detected in archive: {member.name}"
                    )
                tar.extract(member, path=destination, filter="data")
    except tarfile.TarError as exc:
        raise ArchiveError(f"Failed to extract tar archive {archive}: {exc}") from exc
    except OSError as exc:
        raise ArchiveError(f"Failed to write tar member from {archive}: {exc}") from exc
    logger.info(
        "extracted tar archive",
        extra={
            "stage": "extract",
            "archive": str(archive),
            "files": len(members),
            "entries": entries,
        },
    )
    return entries


def _save_single(buffer: bytes, archive: Path, destination: Path, suffix: str) -> List[str]:
    name = archive.name[: -len(suffix)]
    if not name:
        raise ArchiveError(f"Cannot derive an output name from {archive.name}")
    target = destination / name
    try:
        target.write_bytes(buffer)
    except OSError as exc:
        raise ArchiveError(f"Failed to write {target}: {exc}") from exc
    logger.info(
        "extracted compressed file",
        extra={"stage": "extract", "archive": str(archive), "target": str(target)},
    )
    return [name]


def extract_archive(archive_path: Path, destination: Path) -> List[str]:
    """Decompress ``archive_path`` into ``destination`` and list what was created.

    Args:
        archive_path: ``.gz``, ``.xz`` or ``.bz2`` file, optionally a tarball
            (``.tar.gz``, ``.tgz``...).
        destination: Directory to unpack into; created when missing.

    Returns:
        Sorted top-level names created beneath ``destination``: the first path
        segment of every tar member, or the single decompressed file's name.

    Raises:
        UnsupportedFileTypeError: If the suffix has no decompressor.
        ArchiveError: If reading, decompressing, or unpacking fails.
    """

    archive = Path(archive_path)
    destination = Path(destination)
    compression, is_tar, suffix = _classify(archive)
    logger.debug(
        "extracting archive",
        extra={"stage": "extract", "archive": str(archive), "tar": is_tar},
    )
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ArchiveError(f"Failed to create destination {destination}: {exc}") from exc

    buffer = _decompress(archive, compression)
    if is_tar:
        return _unpack_tar(buffer, archive, destination)
    return _save_single(buffer, archive, destination, suffix)
