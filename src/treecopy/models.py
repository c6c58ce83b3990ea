"""
Core data model for transfer jobs.

- TransferJob: an entire copy/move of one directory tree
- FileItem: a single file or directory within a job
- Mode, FileState, JobState, OverwritePolicy: enums controlling behavior
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .checksums import ChecksumAlgorithm, ChecksumValue


class _ParsableEnum(Enum):
    """Enum whose members can be looked up by value, case-insensitively."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("_", "-")
        for member in cls:
            if key in (member.value, member.value.replace("-", "")):
                return member
        choices = ", ".join(m.value for m in cls)
        raise ValueError(f"Invalid {cls.__name__}: {value!r} (expected one of {choices})")


class Mode(_ParsableEnum):
    """
    Operation mode for a job.

    Attributes
    ----------
    COPY : str
        Copy files; source remains unchanged
    MOVE : str
        Accepted for configuration, currently executed as COPY
    """

    COPY = "copy"
    MOVE = "move"


class OverwritePolicy(_ParsableEnum):
    """
    How to treat files that already exist at the destination.

    Attributes
    ----------
    SKIP : str
        Never overwrite
    OVERWRITE : str
        Always overwrite
    ASK : str
        Ask the user; resolves to SKIP without an interactive front-end
    SMART_UPDATE : str
        Overwrite only when sizes differ
    """

    SKIP = "skip"
    OVERWRITE = "overwrite"
    ASK = "ask"
    SMART_UPDATE = "smart-update"


class FileState(Enum):
    """State of a single item."""

    PENDING = "pending"
    COPYING = "copying"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True for DONE, SKIPPED and FAILED."""
        return self in (FileState.DONE, FileState.SKIPPED, FileState.FAILED)


class JobState(Enum):
    """State of a job: PENDING -> RUNNING -> COMPLETED."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass
class FileMetadata:
    """
    Verification data for an item.

    Attributes
    ----------
    source_checksum : ChecksumValue | None, default=None
        Checksum of the source file
    dest_checksum : ChecksumValue | None, default=None
        Checksum of the destination file
    verification_passed : bool | None, default=None
        None until verified, then whether the checksums matched
    attributes : int | None, default=None
        Reserved attribute bits
    """

    source_checksum: ChecksumValue | None = None
    dest_checksum: ChecksumValue | None = None
    verification_passed: bool | None = None
    attributes: int | None = None


@dataclass
class FileItem:
    """
    A single file or directory within a transfer job.

    Attributes
    ----------
    source_path : Path
        Full source path
    destination_path : Path
        Full destination path
    file_size : int, default=0
        Size in bytes at enumeration time (0 for directories)
    is_dir : bool, default=False
        Whether this item is a directory
    state : FileState, default=FileState.PENDING
        Current state
    bytes_copied : int, default=0
        Bytes transferred for this item
    error_code : int | None, default=None
        OS error code when the item failed
    error_message : str | None, default=None
        Failure reason or verification mismatch note
    last_modified : float | None, default=None
        Source modification time (seconds since the epoch)
    metadata : FileMetadata
        Checksums and verification outcome
    id : uuid.UUID
        Unique identifier
    """

    source_path: Path
    destination_path: Path
    file_size: int = 0
    is_dir: bool = False
    state: FileState = FileState.PENDING
    bytes_copied: int = 0
    error_code: int | None = None
    error_message: str | None = None
    last_modified: float | None = None
    metadata: FileMetadata = field(default_factory=FileMetadata)
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def mark_failed(self, error: Exception) -> None:
        """Record ``error`` on this item and move it to FAILED."""
        self.state = FileState.FAILED
        self.error_code = getattr(error, "raw_os_error", None)
        if self.error_code is None and isinstance(error, OSError):
            self.error_code = error.errno
        self.error_message = str(error)


@dataclass
class TransferJob:
    """
    A single transfer job.

    Build with ``create_job``, populate with ``plan_job`` and execute with
    ``run_job``.

    Attributes
    ----------
    source_path : Path
        Root source directory
    destination_path : Path
        Root destination directory
    mode : Mode, default=Mode.COPY
        Copy or move
    overwrite_policy : OverwritePolicy, default=OverwritePolicy.SKIP
        How existing destination files are handled
    files : list[FileItem]
        Every file and directory in the job, filled by planning
    state : JobState, default=JobState.PENDING
        Lifecycle state
    error : Exception | None, default=None
        Job-level error, if any
    total_bytes_to_copy : int, default=0
        Sum of file sizes of non-directory items
    total_bytes_copied : int, default=0
        Bytes copied so far
    current_file_index : int | None, default=None
        Index of the item being processed, only while RUNNING
    created_at : float
        Creation timestamp
    start_time : float | None, default=None
        Execution start timestamp
    end_time : float | None, default=None
        Execution end timestamp
    verify_after_copy : bool, default=False
        Compare source and destination checksums after each copy
    checksum_algorithm : ChecksumAlgorithm | None, default=None
        Algorithm used for verification
    id : uuid.UUID
        Unique identifier
    """

    source_path: Path
    destination_path: Path
    mode: Mode = Mode.COPY
    overwrite_policy: OverwritePolicy = OverwritePolicy.SKIP
    files: list[FileItem] = field(default_factory=list)
    state: JobState = JobState.PENDING
    error: Exception | None = None
    total_bytes_to_copy: int = 0
    total_bytes_copied: int = 0
    current_file_index: int | None = None
    created_at: float = field(default_factory=time.time)
    start_time: float | None = None
    end_time: float | None = None
    verify_after_copy: bool = False
    checksum_algorithm: ChecksumAlgorithm | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def has_failures(self) -> bool:
        """True if any item ended in FAILED."""
        return any(f.state == FileState.FAILED for f in self.files)

    @property
    def verification_failures(self) -> list[FileItem]:
        """Items whose checksums did not match after copying."""
        return [f for f in self.files if f.metadata.verification_passed is False]

    def count_by_state(self) -> dict[FileState, int]:
        """
        Count items per state.

        Returns
        -------
        dict[FileState, int]
            Every state mapped to its item count (zero included)
        """
        counts = {state: 0 for state in FileState}
        for f in self.files:
            counts[f.state] += 1
        return counts

    @property
    def duration(self) -> float | None:
        """Execution time in seconds, None until the job has finished."""
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    @property
    def speed_mb_sec(self) -> float:
        """
        Calculate transfer speed in MB/s.

        Returns
        -------
        float
            Megabytes copied per second, 0.0 when unknown
        """
        duration = self.duration
        if duration:
            return (self.total_bytes_copied / (1024 * 1024)) / duration
        return 0.0
