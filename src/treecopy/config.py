"""Configuration for transfer jobs."""

import argparse
from dataclasses import dataclass
from pathlib import Path

from .checksums import BUFFER_SIZE, ChecksumAlgorithm
from .job import DEFAULT_VERIFY_ALGORITHM, create_job
from .models import Mode, OverwritePolicy, TransferJob


@dataclass
class TransferConfig:
    """
    Configuration for a transfer job.

    String values are accepted for the enum fields and normalised in
    ``__post_init__``.

    Attributes
    ----------
    mode : Mode, default=Mode.COPY
        Copy or move
    overwrite_policy : OverwritePolicy, default=OverwritePolicy.SKIP
        How existing destination files are treated
    verify : bool, default=False
        Verify checksums after each copy
    checksum_algorithm : ChecksumAlgorithm | None, default=None
        Algorithm used when verifying; SHA-256 if verifying without one.
        Only valid together with ``verify``
    buffer_size : int, default=BUFFER_SIZE
        Copy and hash chunk size in bytes
    manifest : Path | None, default=None
        Where to write a checksum manifest after a verified run
    verbose : bool, default=False
        Enable debug logging
    """

    mode: Mode = Mode.COPY
    overwrite_policy: OverwritePolicy = OverwritePolicy.SKIP
    verify: bool = False
    checksum_algorithm: ChecksumAlgorithm | None = None
    buffer_size: int = BUFFER_SIZE
    manifest: Path | None = None
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration."""
        if self.buffer_size <= 0:
            raise ValueError(f"Buffer size must be positive, got {self.buffer_size}")

        self.mode = Mode.parse(self.mode)
        self.overwrite_policy = OverwritePolicy.parse(self.overwrite_policy)

        if self.checksum_algorithm is not None:
            self.checksum_algorithm = ChecksumAlgorithm.parse(self.checksum_algorithm)
            if not self.verify:
                raise ValueError("A hash algorithm requires verification (--verify)")
        elif self.verify:
            self.checksum_algorithm = DEFAULT_VERIFY_ALGORITHM

        if self.manifest is not None:
            self.manifest = Path(self.manifest)
            if not self.verify:
                raise ValueError("A checksum manifest requires verification (--verify)")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "TransferConfig":
        """Create config from command-line arguments."""
        return cls(
            mode=args.mode,
            overwrite_policy=args.overwrite,
            verify=args.verify,
            checksum_algorithm=args.hash,
            buffer_size=args.buffer_size,
            manifest=args.manifest,
            verbose=args.verbose,
        )

    def create_job(self, source: Path | str, destination: Path | str) -> TransferJob:
        """Create a PENDING job from this configuration."""
        return create_job(
            source,
            destination,
            mode=self.mode,
            overwrite_policy=self.overwrite_policy,
            verify_after_copy=self.verify,
            checksum_algorithm=self.checksum_algorithm,
        )
