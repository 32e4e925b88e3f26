"""Checksum parsing, normalisation, and verification helpers.

Release registries publish digests as small text assets in ``sha512sum`` style
(``<hex digest>  <filename>``).  This module normalises the algorithm names
callers request, parses those text assets, and exposes streaming utilities that
hash artifacts without loading entire archives into memory.  Verification is a
pure function over file bytes; it has no knowledge of where the expected digest
came from.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .errors import (
    ArtifactIOError,
    ChecksumFormatError,
    ChecksumMismatchError,
    ConfigurationError,
)

__all__ = [
    "ChecksumAlgorithm",
    "ChecksumEntry",
    "ExpectedChecksum",
    "normalize_algorithm",
    "compute_digest",
    "verify_checksum",
    "parse_checksum_text",
]

logger = logging.getLogger(__name__)

_CHECKSUM_STREAM_CHUNK_SIZE = 1 << 20
_HEX_PATTERN = re.compile(r"[0-9a-fA-F]+")


class ChecksumAlgorithm(str, Enum):
    """Digest algorithms supported for artifact verification."""

    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA512 = "sha512"

    @property
    def hex_length(self) -> int:
        return hashlib.new(self.value).digest_size * 2


@dataclass(slots=True, frozen=True)
class ExpectedChecksum:
    """Expected digest paired with the algorithm that produced it."""

    algorithm: ChecksumAlgorithm
    value: str


@dataclass(slots=True, frozen=True)
class ChecksumEntry:
    """One ``digest filename`` line parsed from a checksum text asset."""

    digest: str
    filename: Optional[str]


def normalize_algorithm(algorithm: Union[str, ChecksumAlgorithm]) -> ChecksumAlgorithm:
    """Coerce ``algorithm`` (``"SHA-512"``, ``"sha512"``...) into a :class:`ChecksumAlgorithm`."""

    if isinstance(algorithm, ChecksumAlgorithm):
        return algorithm
    candidate = str(algorithm).strip().lower().replace("-", "").replace("_", "")
    try:
        return ChecksumAlgorithm(candidate)
    except ValueError as exc:
        raise ConfigurationError(f"Unsupported checksum algorithm '{algorithm}'") from exc


def compute_digest(path: Path, algorithm: Union[str, ChecksumAlgorithm]) -> str:
    """Return the hexadecimal digest of ``path`` under ``algorithm``."""

    selected = normalize_algorithm(algorithm)
    hasher = hashlib.new(selected.value)
    try:
        with Path(path).open("rb") as stream:
            for chunk in iter(lambda: stream.read(_CHECKSUM_STREAM_CHUNK_SIZE), b""):
                hasher.update(chunk)
    except OSError as exc:
        raise ArtifactIOError(f"Failed to read {path} for hashing: {exc}") from exc
    return hasher.hexdigest()


def verify_checksum(
    path: Path,
    expected: str,
    algorithm: Union[str, ChecksumAlgorithm],
) -> str:
    """Verify ``path`` against ``expected`` and return the computed digest.

    Args:
        path: File to hash.
        expected: Hexadecimal digest the file must match; compared case-insensitively.
        algorithm: Digest algorithm the expected value was produced with.

    Returns:
        The lowercase digest that was computed for ``path``.

    Raises:
        ChecksumMismatchError: If the computed digest differs from ``expected``.
        ArtifactIOError: If ``path`` cannot be read.
    """

    selected = normalize_algorithm(algorithm)
    actual = compute_digest(path, selected)
    expected_normalized = expected.strip().lower()
    if actual.lower() != expected_normalized:
        logger.debug(
            "checksum mismatch",
            extra={"stage": "verify", "path": str(path), "algorithm": selected.value},
        )
        raise ChecksumMismatchError(expected_normalized, actual)
    return actual


def _parse_line(line: str) -> Optional[ChecksumEntry]:
    tokens = line.split()
    if not tokens:
        return None
    digest = tokens[0]
    filename = tokens[-1].lstrip("*") if len(tokens) > 1 else None
    return ChecksumEntry(digest=digest, filename=filename or None)


def parse_checksum_text(
    text: str,
    *,
    expected_filename: Optional[str] = None,
    algorithm: Optional[Union[str, ChecksumAlgorithm]] = None,
) -> ChecksumEntry:
    """Parse ``sha*sum``-style checksum text.

    The accepted format is strict: the first whitespace-separated token on a line
    is the digest, the last token (if any) is the filename the digest applies to.
    A leading ``*`` on the filename (binary mode marker) is dropped.  When the
    text lists several files, the line naming ``expected_filename`` is selected.

    Raises:
        ChecksumFormatError: If no hexadecimal digest can be extracted, or its
            length does not fit ``algorithm``.
        ChecksumMismatchError: If the text names a different file than
            ``expected_filename``.
    """

    entries = [entry for entry in map(_parse_line, text.splitlines()) if entry is not None]
    if not entries:
        raise ChecksumFormatError("Could not find a digest in checksum text")

    entry = entries[0]
    if expected_filename is not None:
        for candidate in entries:
            if candidate.filename and candidate.filename.lower() == expected_filename.lower():
                entry = candidate
                break

    if not _HEX_PATTERN.fullmatch(entry.digest):
        raise ChecksumFormatError(f"Checksum text does not start with a hex digest: {entry.digest!r}")
    if algorithm is not None:
        selected = normalize_algorithm(algorithm)
        if len(entry.digest) != selected.hex_length:
            raise ChecksumFormatError(
                f"Digest length {len(entry.digest)} does not match {selected.value} "
                f"({selected.hex_length} hex characters)"
            )

    if (
        expected_filename is not None
        and entry.filename is not None
        and entry.filename.lower() != expected_filename.lower()
    ):
        raise ChecksumMismatchError(expected_filename, entry.filename, subject="filename")

    return ChecksumEntry(digest=entry.digest.lower(), filename=entry.filename)
