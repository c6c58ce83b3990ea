"""
Job orchestration.

- ``create_job``: validate paths and build a PENDING job
- ``plan_job``: enumerate the source tree into the job's item list
- ``run_job``: execute the transfer, reporting to a ProgressCallback

The runner is synchronous: items are processed one at a time, in list order,
on the calling thread. Item-level failures are recorded on the item and never
stop the job; once started, a job always reaches COMPLETED.
"""

import logging
import os
import stat
import time
from pathlib import Path

from .checksums import BUFFER_SIZE, ChecksumAlgorithm, verify_file_item
from .errors import (
    DestinationAccessDeniedError,
    EngineError,
    InvalidJobStateError,
    InvalidPathError,
    PathTooLongError,
    SourceAccessDeniedError,
    SourceNotFoundError,
)
from .fs_ops import copy_file_with_metadata, ensure_dir_exists, enumerate_tree
from .models import FileItem, FileState, JobState, Mode, OverwritePolicy, TransferJob
from .policy import decide_for_item
from .progress import ProgressCallback

MAX_PATH_LENGTH = 4096
DEFAULT_VERIFY_ALGORITHM = ChecksumAlgorithm.SHA256


def create_job(
    source: Path | str,
    destination: Path | str,
    mode: Mode = Mode.COPY,
    overwrite_policy: OverwritePolicy = OverwritePolicy.SKIP,
    verify_after_copy: bool = False,
    checksum_algorithm: ChecksumAlgorithm | None = None,
) -> TransferJob:
    """
    Validate the source and destination and create a PENDING job.

    Parameters
    ----------
    source : Path | str
        Existing source directory
    destination : Path | str
        Destination directory; created on demand while running
    mode : Mode, default=Mode.COPY
        Copy or move
    overwrite_policy : OverwritePolicy, default=OverwritePolicy.SKIP
        How existing destination files are treated
    verify_after_copy : bool, default=False
        Compare checksums of every copied file
    checksum_algorithm : ChecksumAlgorithm | None, default=None
        Verification algorithm; SHA-256 when verifying without one

    Returns
    -------
    TransferJob
        Job with no items yet

    Raises
    ------
    SourceNotFoundError
        If the source does not exist
    SourceAccessDeniedError
        If the source cannot be inspected
    InvalidPathError
        If the source is not a directory, or the destination is empty,
        contains a NUL byte, exists as a non-directory or is the source itself
    PathTooLongError
        If the destination path is longer than ``MAX_PATH_LENGTH``
    DestinationAccessDeniedError
        If an existing destination cannot be inspected
    """
    source_path = Path(source)
    try:
        source_mode = source_path.stat().st_mode
    except FileNotFoundError as e:
        raise SourceNotFoundError(source_path, cause=e) from e
    except OSError as e:
        raise SourceAccessDeniedError(source_path, cause=e) from e
    if not stat.S_ISDIR(source_mode):
        raise InvalidPathError(source_path, "Source must be a directory")

    dest_str = os.fspath(destination)
    if not dest_str.strip():
        raise InvalidPathError(dest_str, "Destination path is empty")
    if "\x00" in dest_str:
        raise InvalidPathError(dest_str, "Destination path contains a NUL byte")
    if len(dest_str) > MAX_PATH_LENGTH:
        raise PathTooLongError(dest_str)

    destination_path = Path(dest_str)
    try:
        dest_mode = destination_path.stat().st_mode
    except FileNotFoundError:
        dest_mode = None
    except OSError as e:
        raise DestinationAccessDeniedError(destination_path, cause=e) from e
    if dest_mode is not None:
        if not stat.S_ISDIR(dest_mode):
            raise InvalidPathError(destination_path, "Destination is not a directory")
        if os.path.samefile(source_path, destination_path):
            raise InvalidPathError(
                destination_path, "Destination is the same directory as the source"
            )

    if verify_after_copy and checksum_algorithm is None:
        checksum_algorithm = DEFAULT_VERIFY_ALGORITHM

    job = TransferJob(
        source_path=source_path,
        destination_path=destination_path,
        mode=mode,
        overwrite_policy=overwrite_policy,
        verify_after_copy=verify_after_copy,
        checksum_algorithm=checksum_algorithm,
    )
    logging.debug(
        f"Created job {job.id}: {mode} {source_path} -> {destination_path} "
        f"(overwrite: {overwrite_policy})"
    )
    return job


def plan_job(job: TransferJob) -> None:
    """
    Enumerate the source tree and compute the byte total.

    Replaces ``job.files`` and ``job.total_bytes_to_copy``; the job state is
    unchanged. On error the job is left untouched.

    Raises
    ------
    InvalidJobStateError
        If the job is not PENDING
    SourceNotFoundError
        If the source disappeared since the job was created
    EnumerationFailedError
        If the source directory cannot be listed
    """
    _require_pending(job, "plan")

    if not job.source_path.exists():
        raise SourceNotFoundError(job.source_path)

    files = enumerate_tree(job.source_path, job.destination_path)
    job.files = files
    job.total_bytes_to_copy = sum(f.file_size for f in files if not f.is_dir)

    logging.info(
        f"Found {len(files)} items to copy ({job.total_bytes_to_copy:,} bytes)"
    )


def run_job(
    job: TransferJob,
    progress: ProgressCallback | None = None,
    buffer_size: int = BUFFER_SIZE,
) -> None:
    """
    Execute a planned job.

    Parameters
    ----------
    job : TransferJob
        PENDING job, normally planned with ``plan_job``
    progress : ProgressCallback | None, default=None
        Receiver of progress notifications
    buffer_size : int, default=BUFFER_SIZE
        Chunk size for copying

    Raises
    ------
    InvalidJobStateError
        If the job is not PENDING; nothing is modified in that case
    """
    _require_pending(job, "run")
    if progress is None:
        progress = ProgressCallback()

    if job.mode == Mode.MOVE:
        logging.warning("Move mode is not implemented; sources are left in place")

    job.start_time = time.time()
    job.state = JobState.RUNNING
    logging.info(f"Starting job {job.id} ({len(job.files)} items)")
    progress.on_job_started(job)

    for index, item in enumerate(job.files):
        job.current_file_index = index
        progress.on_file_started(job, index, item)

        if not item.state.is_terminal:
            _process_item(job, index, item, progress, buffer_size)

        progress.on_file_completed(job, index, item)

    job.end_time = time.time()
    job.state = JobState.COMPLETED
    job.current_file_index = None

    counts = job.count_by_state()
    logging.info(
        f"Job completed: {counts[FileState.DONE]} done, "
        f"{counts[FileState.SKIPPED]} skipped, {counts[FileState.FAILED]} failed "
        f"({job.total_bytes_copied:,} bytes)"
    )
    progress.on_job_completed(job)


def _require_pending(job: TransferJob, operation: str) -> None:
    if job.state != JobState.PENDING:
        raise InvalidJobStateError(
            job.source_path,
            f"Job must be in Pending state to {operation}; "
            f"current state: {job.state.value}",
        )


def _process_item(
    job: TransferJob,
    index: int,
    item: FileItem,
    progress: ProgressCallback,
    buffer_size: int,
) -> None:
    # Items that failed during enumeration never get here
    try:
        copy = decide_for_item(item, job.overwrite_policy)
    except (EngineError, OSError) as e:
        item.mark_failed(e)
        logging.error(f"✗ Cannot check destination {item.destination_path}: {e}")
        return

    if not copy:
        item.state = FileState.SKIPPED
        logging.debug(f"Skipped existing {item.destination_path}")
    elif item.is_dir:
        _create_directory(item)
    else:
        _copy_file(job, index, item, progress, buffer_size)


def _create_directory(item: FileItem) -> None:
    item.state = FileState.COPYING
    try:
        ensure_dir_exists(item.destination_path)
    except EngineError as e:
        item.mark_failed(e)
        logging.error(f"✗ {e}")
        return
    item.state = FileState.DONE


def _copy_file(
    job: TransferJob,
    index: int,
    item: FileItem,
    progress: ProgressCallback,
    buffer_size: int,
) -> None:
    item.state = FileState.COPYING
    try:
        bytes_copied = copy_file_with_metadata(
            item.source_path, item.destination_path, buffer_size
        )
    except EngineError as e:
        item.mark_failed(e)
        logging.error(f"✗ Failed {item.source_path}: {e}")
        return

    item.bytes_copied = bytes_copied
    item.state = FileState.DONE
    job.total_bytes_copied += bytes_copied
    logging.debug(f"✓ Copied {item.source_path} ({bytes_copied:,} bytes)")
    progress.on_file_progress(job, index, bytes_copied)

    if not job.verify_after_copy or job.checksum_algorithm is None:
        return

    try:
        matches = verify_file_item(item, job.checksum_algorithm)
    except EngineError as e:
        item.error_message = f"Checksum verification error: {e}"
        logging.error(f"✗ {item.error_message}")
        return

    if not matches:
        item.error_message = (
            "Checksum verification failed: source and destination differ"
        )
        logging.warning(f"✗ {item.destination_path}: {item.error_message}")
