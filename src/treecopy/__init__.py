"""
treecopy: directory tree transfer engine with checksum verification.

The engine is UI-agnostic: front-ends create a job, plan it, run it and
observe it through a ProgressCallback, then inspect the item states.
"""

from .checksums import (
    ChecksumAlgorithm,
    ChecksumValue,
    ManifestResult,
    compute_file_checksum,
    create_hasher,
    generate_checksum_file,
    job_checksum_entries,
    parse_checksum_file,
    verify_checksum_file,
    verify_checksum_file_against,
    verify_file_item,
    write_checksum_file,
)
from .config import TransferConfig
from .errors import (
    DestinationAccessDeniedError,
    DirectoryCreationFailedError,
    EngineError,
    EnumerationFailedError,
    InvalidJobStateError,
    InvalidPathError,
    PathTooLongError,
    ReadError,
    SourceAccessDeniedError,
    SourceNotFoundError,
    UnknownEngineError,
    WriteError,
)
from .job import create_job, plan_job, run_job
from .models import (
    FileItem,
    FileMetadata,
    FileState,
    JobState,
    Mode,
    OverwritePolicy,
    TransferJob,
)
from .policy import should_copy
from .progress import EventType, ProgressCallback, ProgressEvent, QueueProgress

__version__ = "1.0.0"
__description__ = "Directory tree transfer engine with checksum verification"

__all__ = [
    "ChecksumAlgorithm",
    "ChecksumValue",
    "DestinationAccessDeniedError",
    "DirectoryCreationFailedError",
    "EngineError",
    "EnumerationFailedError",
    "EventType",
    "FileItem",
    "FileMetadata",
    "FileState",
    "InvalidJobStateError",
    "InvalidPathError",
    "JobState",
    "ManifestResult",
    "Mode",
    "OverwritePolicy",
    "PathTooLongError",
    "ProgressCallback",
    "ProgressEvent",
    "QueueProgress",
    "ReadError",
    "SourceAccessDeniedError",
    "SourceNotFoundError",
    "TransferConfig",
    "TransferJob",
    "UnknownEngineError",
    "WriteError",
    "compute_file_checksum",
    "create_hasher",
    "create_job",
    "generate_checksum_file",
    "job_checksum_entries",
    "parse_checksum_file",
    "plan_job",
    "run_job",
    "should_copy",
    "verify_checksum_file",
    "verify_checksum_file_against",
    "verify_file_item",
    "write_checksum_file",
]
