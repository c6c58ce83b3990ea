"""
Checksum computation and verification.

Provides streaming hashers for every supported algorithm, file-level checksum
computation, checksum manifest generation/verification, and per-item
verification used by the job runner when ``verify_after_copy`` is enabled.
"""

import hashlib
import logging
import zlib
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import blake3
import xxhash

from .errors import ReadError, WriteError

if TYPE_CHECKING:
    from .models import FileItem, TransferJob

# Constants
BUFFER_SIZE = 64 * 1024  # 64KB
MANIFEST_COMMENT = ";"


class ChecksumAlgorithm(Enum):
    """
    Supported checksum algorithms.

    Attributes
    ----------
    CRC32 : str
        Fast 32-bit cyclic redundancy check, not cryptographic
    MD5 : str
        128-bit digest, kept for compatibility
    SHA256 : str
        256-bit cryptographic digest
    BLAKE3 : str
        Modern, fast 256-bit cryptographic digest
    XXH64 : str
        Fast 64-bit non-cryptographic hash
    """

    CRC32 = "crc32"
    MD5 = "md5"
    SHA256 = "sha256"
    BLAKE3 = "blake3"
    XXH64 = "xxh64"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: "str | ChecksumAlgorithm") -> "ChecksumAlgorithm":
        """
        Parse an algorithm name, case-insensitively.

        Parameters
        ----------
        name : str | ChecksumAlgorithm
            Algorithm name such as ``"sha256"``

        Returns
        -------
        ChecksumAlgorithm
            Matching algorithm

        Raises
        ------
        ValueError
            If the name is not a supported algorithm
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise ValueError(f"Unsupported hash algorithm: {name}") from None


@dataclass(frozen=True)
class ChecksumValue:
    """
    A computed checksum: algorithm plus lowercase hex digest.

    Attributes
    ----------
    algorithm : ChecksumAlgorithm
        Algorithm that produced the digest
    hex : str
        Hex digest, normalised to lower case
    """

    algorithm: ChecksumAlgorithm
    hex: str

    def __post_init__(self):
        object.__setattr__(self, "hex", self.hex.strip().lower())

    def __str__(self) -> str:
        return self.hex

    def tagged(self) -> str:
        """Format as ``algo:hex``."""
        return f"{self.algorithm}:{self.hex}"

    @classmethod
    def parse_tagged(cls, text: str) -> "ChecksumValue":
        """
        Parse an ``algo:hex`` string.

        Raises
        ------
        ValueError
            If the string has no ``:`` separator or the algorithm is unknown
        """
        algorithm, sep, digest = text.partition(":")
        if not sep or not digest:
            raise ValueError(f"Not a tagged checksum: {text!r}")
        return cls(ChecksumAlgorithm.parse(algorithm), digest)


# ============================================================================
# Hashers
# ============================================================================


class ChecksumHasher:
    """Incremental hasher producing a ``ChecksumValue``."""

    algorithm: ChecksumAlgorithm

    def update(self, data: bytes) -> None:
        raise NotImplementedError

    def finalize(self) -> ChecksumValue:
        raise NotImplementedError


class Crc32Hasher(ChecksumHasher):
    algorithm = ChecksumAlgorithm.CRC32

    def __init__(self):
        self._crc = 0

    def update(self, data: bytes) -> None:
        self._crc = zlib.crc32(data, self._crc)

    def finalize(self) -> ChecksumValue:
        return ChecksumValue(self.algorithm, f"{self._crc & 0xFFFFFFFF:08x}")


class HashlibHasher(ChecksumHasher):
    """
    Adapter for any object with ``update``/``hexdigest``.

    Parameters
    ----------
    algorithm : ChecksumAlgorithm
        Tag recorded on the finalized value
    hasher : object
        hashlib, blake3 or xxhash hash object
    """

    def __init__(self, algorithm: ChecksumAlgorithm, hasher):
        self.algorithm = algorithm
        self._hasher = hasher

    def update(self, data: bytes) -> None:
        self._hasher.update(data)

    def finalize(self) -> ChecksumValue:
        return ChecksumValue(self.algorithm, self._hasher.hexdigest())


def create_hasher(algorithm: ChecksumAlgorithm) -> ChecksumHasher:
    """
    Create a fresh hasher for the given algorithm.

    Parameters
    ----------
    algorithm : ChecksumAlgorithm
        Algorithm to use

    Returns
    -------
    ChecksumHasher
        Hasher in its initial state
    """
    if algorithm == ChecksumAlgorithm.CRC32:
        return Crc32Hasher()
    elif algorithm == ChecksumAlgorithm.MD5:
        return HashlibHasher(algorithm, hashlib.md5())
    elif algorithm == ChecksumAlgorithm.SHA256:
        return HashlibHasher(algorithm, hashlib.sha256())
    elif algorithm == ChecksumAlgorithm.BLAKE3:
        return HashlibHasher(algorithm, blake3.blake3())
    elif algorithm == ChecksumAlgorithm.XXH64:
        return HashlibHasher(algorithm, xxhash.xxh64())
    raise ValueError(f"Unsupported hash algorithm: {algorithm}")


def compute_file_checksum(
    path: Path,
    algorithm: ChecksumAlgorithm,
    buffer_size: int = BUFFER_SIZE,
) -> ChecksumValue:
    """
    Hash a file by streaming it through fixed-size reads.

    Parameters
    ----------
    path : Path
        File to hash
    algorithm : ChecksumAlgorithm
        Algorithm to use
    buffer_size : int, default=BUFFER_SIZE
        Read size in bytes

    Returns
    -------
    ChecksumValue
        Digest of the whole file

    Raises
    ------
    ReadError
        If the file cannot be opened or read
    """
    hasher = create_hasher(algorithm)
    try:
        with open(path, "rb") as f:
            while chunk := f.read(buffer_size):
                hasher.update(chunk)
    except OSError as e:
        raise ReadError(path, cause=e) from e
    return hasher.finalize()


# ============================================================================
# Manifest files
# ============================================================================


@dataclass
class ManifestResult:
    """
    Outcome of checking one manifest line.

    Attributes
    ----------
    relative_path : str
        Path as written in the manifest
    expected : ChecksumValue
        Digest recorded in the manifest
    actual : ChecksumValue
        Digest computed now
    matches : bool
        Whether both hex strings are equal
    """

    relative_path: str
    expected: ChecksumValue
    actual: ChecksumValue
    matches: bool


def generate_checksum_file(
    entries: Iterable[tuple[str, ChecksumValue]],
    algorithm: ChecksumAlgorithm,
) -> str:
    """
    Render a checksum manifest.

    Parameters
    ----------
    entries : Iterable[tuple[str, ChecksumValue]]
        (relative_path, checksum) pairs, written in the given order
    algorithm : ChecksumAlgorithm
        Algorithm named in the header comment

    Returns
    -------
    str
        Manifest text, one ``<hex> <relative-path>`` line per entry
    """
    lines = [
        f"{MANIFEST_COMMENT} Checksum file generated by treecopy",
        f"{MANIFEST_COMMENT} Algorithm: {algorithm}",
        "",
    ]
    for rel_path, checksum in entries:
        lines.append(f"{checksum.hex} {rel_path}")
    return "\n".join(lines) + "\n"


def write_checksum_file(
    path: Path,
    entries: Iterable[tuple[str, ChecksumValue]],
    algorithm: ChecksumAlgorithm,
) -> None:
    """
    Write a checksum manifest to disk as UTF-8.

    Raises
    ------
    WriteError
        If the file cannot be written
    """
    content = generate_checksum_file(entries, algorithm)
    try:
        Path(path).write_text(content, encoding="utf-8")
    except OSError as e:
        raise WriteError(path, cause=e) from e
    logging.info(f"Wrote checksum file {path}")


def parse_checksum_file(content: str) -> list[tuple[str, str]]:
    """
    Parse manifest text into (hex, relative_path) pairs.

    Blank lines, ``;`` comments and lines without a separator are skipped.
    Everything after the first space is the path, surrounding spaces included.
    """
    records = []
    for line in content.split("\n"):
        line = line.rstrip("\r\n")
        if not line.strip() or line.lstrip().startswith(MANIFEST_COMMENT):
            continue
        parts = line.split(" ", 1)
        if len(parts) != 2:
            continue
        records.append((parts[0].lower(), parts[1]))
    return records


def verify_checksum_file(
    content: str,
    get_checksum: Callable[[str], ChecksumValue],
) -> list[ManifestResult]:
    """
    Check every manifest record against freshly computed digests.

    Parameters
    ----------
    content : str
        Manifest text
    get_checksum : Callable[[str], ChecksumValue]
        Computes the current digest for a relative path

    Returns
    -------
    list[ManifestResult]
        One result per record, in manifest order

    Raises
    ------
    EngineError
        Whatever ``get_checksum`` raises (e.g. ``ReadError``)
    """
    results = []
    for expected_hex, rel_path in parse_checksum_file(content):
        actual = get_checksum(rel_path)
        expected = ChecksumValue(actual.algorithm, expected_hex)
        results.append(
            ManifestResult(
                relative_path=rel_path,
                expected=expected,
                actual=actual,
                matches=actual.hex == expected.hex,
            )
        )
    return results


def verify_checksum_file_against(
    content: str,
    root: Path,
    algorithm: ChecksumAlgorithm,
) -> list[ManifestResult]:
    """Verify a manifest against files below ``root``."""
    root = Path(root)
    return verify_checksum_file(
        content, lambda rel_path: compute_file_checksum(root / rel_path, algorithm)
    )


def job_checksum_entries(job: "TransferJob") -> list[tuple[str, ChecksumValue]]:
    """
    Collect destination checksums of verified files, in job order.

    Paths are relative to the job's destination root, using ``/``.
    """
    entries = []
    for item in job.files:
        checksum = item.metadata.dest_checksum
        if item.is_dir or checksum is None:
            continue
        rel_path = item.destination_path.relative_to(job.destination_path)
        entries.append((rel_path.as_posix(), checksum))
    return entries


# ============================================================================
# Item verification
# ============================================================================


def verify_file_item(item: "FileItem", algorithm: ChecksumAlgorithm) -> bool:
    """
    Compare source and destination digests of a copied item.

    Directories pass trivially. An existing source checksum on the item is
    reused. Both digests and the outcome are recorded on ``item.metadata``.

    Parameters
    ----------
    item : FileItem
        Item to verify
    algorithm : ChecksumAlgorithm
        Algorithm to use

    Returns
    -------
    bool
        True if the digests match

    Raises
    ------
    ReadError
        If either file cannot be read
    """
    if item.is_dir:
        item.metadata.verification_passed = True
        return True

    source_checksum = item.metadata.source_checksum
    if source_checksum is None or source_checksum.algorithm != algorithm:
        source_checksum = compute_file_checksum(item.source_path, algorithm)
        item.metadata.source_checksum = source_checksum

    dest_checksum = compute_file_checksum(item.destination_path, algorithm)
    item.metadata.dest_checksum = dest_checksum

    matches = source_checksum.hex == dest_checksum.hex
    item.metadata.verification_passed = matches
    logging.debug(
        f"verify {item.destination_path}: {algorithm} "
        f"{source_checksum.hex} vs {dest_checksum.hex} -> {matches}"
    )
    return matches
