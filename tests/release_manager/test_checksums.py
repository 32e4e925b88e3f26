"""Checksum normalisation, verification, and checksum-text parsing."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from ProtonUp.ReleaseManager.checksums import (
    ChecksumAlgorithm,
    compute_digest,
    normalize_algorithm,
    parse_checksum_text,
    verify_checksum,
)
from ProtonUp.ReleaseManager.errors import (
    ArtifactIOError,
    ChecksumFormatError,
    ChecksumMismatchError,
    ConfigurationError,
    NotFoundError,
)


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    path = tmp_path / "artifact.bin"
    path.write_bytes(b"proton build payload\n" * 1000)
    return path


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("sha512", ChecksumAlgorithm.SHA512),
        ("SHA-256", ChecksumAlgorithm.SHA256),
        ("Sha1", ChecksumAlgorithm.SHA1),
        (" md5 ", ChecksumAlgorithm.MD5),
        (ChecksumAlgorithm.SHA512, ChecksumAlgorithm.SHA512),
    ],
)
def test_normalize_algorithm(raw, expected) -> None:
    assert normalize_algorithm(raw) is expected


def test_normalize_algorithm_rejects_unknown() -> None:
    with pytest.raises(ConfigurationError):
        normalize_algorithm("crc32")


@pytest.mark.parametrize("algorithm", list(ChecksumAlgorithm))
def test_verify_accepts_matching_digest_in_any_case(artifact: Path, algorithm: ChecksumAlgorithm) -> None:
    expected = hashlib.new(algorithm.value, artifact.read_bytes()).hexdigest()

    assert verify_checksum(artifact, expected.upper(), algorithm) == expected
    assert len(expected) == algorithm.hex_length


def test_verification_is_deterministic(artifact: Path) -> None:
    assert compute_digest(artifact, "sha512") == compute_digest(artifact, "sha512")


def test_single_byte_flip_is_a_mismatch(artifact: Path) -> None:
    expected = compute_digest(artifact, "sha256")
    data = bytearray(artifact.read_bytes())
    data[len(data) // 2] ^= 0x01
    artifact.write_bytes(bytes(data))

    with pytest.raises(ChecksumMismatchError) as excinfo:
        verify_checksum(artifact, expected, "sha256")

    assert excinfo.value.expected == expected
    assert excinfo.value.actual == compute_digest(artifact, "sha256")
    assert excinfo.value.actual != expected


def test_unreadable_file_is_io_error(tmp_path: Path) -> None:
    with pytest.raises(ArtifactIOError):
        compute_digest(tmp_path / "missing.bin", "md5")


class TestParseChecksumText:
    """Strict ``<digest> <filename>`` parsing."""

    DIGEST = "ab" * 64

    def test_sha512sum_output(self) -> None:
        entry = parse_checksum_text(f"{self.DIGEST}  GE-Proton7-51.tar.gz\n")

        assert entry.digest == self.DIGEST
        assert entry.filename == "GE-Proton7-51.tar.gz"

    def test_binary_marker_and_whitespace(self) -> None:
        entry = parse_checksum_text(
            f"\n   {self.DIGEST.upper()} \t *GE-Proton7-51.tar.gz  \n\n",
            expected_filename="GE-Proton7-51.tar.gz",
            algorithm="sha512",
        )

        assert entry.digest == self.DIGEST
        assert entry.filename == "GE-Proton7-51.tar.gz"

    def test_digest_only(self) -> None:
        entry = parse_checksum_text(self.DIGEST, expected_filename="anything.tar.gz")

        assert entry.filename is None
        assert entry.digest == self.DIGEST

    def test_selects_matching_line(self) -> None:
        text = f"{'11' * 64}  other.tar.gz\n{self.DIGEST}  GE-Proton7-51.tar.gz\n"

        entry = parse_checksum_text(text, expected_filename="GE-Proton7-51.tar.gz")

        assert entry.digest == self.DIGEST

    def test_filename_mismatch(self) -> None:
        with pytest.raises(ChecksumMismatchError) as excinfo:
            parse_checksum_text(f"{self.DIGEST}  other.tar.gz", expected_filename="GE-Proton7-51.tar.gz")

        assert excinfo.value.expected == "GE-Proton7-51.tar.gz"
        assert excinfo.value.actual == "other.tar.gz"

    @pytest.mark.parametrize("text", ["", "   \n\n", "GE-Proton7-51.tar.gz " + "ab" * 64])
    def test_missing_digest(self, text: str) -> None:
        with pytest.raises(NotFoundError):
            parse_checksum_text(text)

    def test_digest_length_must_fit_algorithm(self) -> None:
        with pytest.raises(ChecksumFormatError):
            parse_checksum_text(f"{'ab' * 32}  GE-Proton7-51.tar.gz", algorithm="sha512")
