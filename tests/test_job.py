#!/usr/bin/env python3
"""
Test suite for job orchestration.

Tests cover:
- Job creation and path validation
- Planning totals
- Execution under each overwrite policy
- Progress notification ordering
- Item-level error isolation
- Verification after copy
"""

import errno
import shutil
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from treecopy import (
    ChecksumAlgorithm,
    EventType,
    FileState,
    InvalidJobStateError,
    InvalidPathError,
    JobState,
    Mode,
    OverwritePolicy,
    PathTooLongError,
    ProgressCallback,
    QueueProgress,
    SourceNotFoundError,
    create_job,
    plan_job,
    run_job,
)
from treecopy.fs_ops import copy_file_with_metadata


# ============================================================================
# Helpers & Fixtures
# ============================================================================


class RecordingProgress(ProgressCallback):
    """Record every notification as a tuple."""

    def __init__(self):
        self.calls = []

    def on_job_started(self, job):
        self.calls.append(("job_started", len(job.files), job.total_bytes_to_copy))

    def on_file_started(self, job, file_index, file):
        self.calls.append(("file_started", file_index, file.state))

    def on_file_progress(self, job, file_index, bytes_this_file):
        self.calls.append(("file_progress", file_index, job.total_bytes_copied))

    def on_file_completed(self, job, file_index, file):
        self.calls.append(("file_completed", file_index, file.state))

    def on_job_completed(self, job):
        self.calls.append(("job_completed", job.state, job.current_file_index))


@pytest.fixture
def job_env():
    """Source tree {a.txt (5 bytes), sub/b.txt (3 bytes)} and empty destination."""
    test_dir = tempfile.mkdtemp()
    test_path = Path(test_dir)

    source = test_path / "source"
    (source / "sub").mkdir(parents=True)
    (source / "a.txt").write_bytes(b"hello")
    (source / "sub" / "b.txt").write_bytes(b"abc")
    dest = test_path / "dest"

    yield test_path, source, dest
    shutil.rmtree(test_dir)


def item_by_name(job, rel_path):
    for item in job.files:
        if item.source_path.relative_to(job.source_path).as_posix() == rel_path:
            return item
    raise KeyError(rel_path)


# ============================================================================
# Creation Tests
# ============================================================================


def test_create_job_defaults(job_env) -> None:
    """A new job is pending, empty and unverified."""
    test_path, source, dest = job_env

    job = create_job(source, dest)

    assert job.state == JobState.PENDING
    assert job.mode == Mode.COPY
    assert job.overwrite_policy == OverwritePolicy.SKIP
    assert job.files == []
    assert job.total_bytes_to_copy == 0
    assert job.current_file_index is None
    assert job.start_time is None and job.end_time is None
    assert not job.verify_after_copy
    assert job.checksum_algorithm is None


def test_create_job_verify_defaults_to_sha256(job_env) -> None:
    """Verification without an explicit algorithm uses SHA-256."""
    test_path, source, dest = job_env

    job = create_job(source, dest, verify_after_copy=True)

    assert job.checksum_algorithm == ChecksumAlgorithm.SHA256


def test_create_job_missing_source(job_env) -> None:
    """A missing source is fatal and produces no job."""
    test_path, source, dest = job_env

    with pytest.raises(SourceNotFoundError):
        create_job(test_path / "nonexistent", dest)


def test_create_job_source_is_file(job_env) -> None:
    """The source must be a directory."""
    test_path, source, dest = job_env

    with pytest.raises(InvalidPathError):
        create_job(source / "a.txt", dest)


@pytest.mark.parametrize("destination", ["", "   ", "bad\x00path"])
def test_create_job_malformed_destination(job_env, destination) -> None:
    """Empty or NUL-containing destinations are rejected."""
    test_path, source, dest = job_env

    with pytest.raises(InvalidPathError):
        create_job(source, destination)


def test_create_job_destination_is_file(job_env) -> None:
    """An existing non-directory destination is rejected."""
    test_path, source, dest = job_env

    with pytest.raises(InvalidPathError):
        create_job(source, source / "a.txt")


def test_create_job_destination_too_long(job_env) -> None:
    """Overlong destination paths are rejected."""
    test_path, source, dest = job_env

    with pytest.raises(PathTooLongError):
        create_job(source, "x/" * 3000)


# ============================================================================
# Planning Tests
# ============================================================================


def test_plan_job_totals(job_env) -> None:
    """Planning lists every entry and sums file sizes."""
    test_path, source, dest = job_env
    job = create_job(source, dest)

    plan_job(job)

    assert job.state == JobState.PENDING
    assert len(job.files) == 3
    assert job.total_bytes_to_copy == 8
    assert job.total_bytes_to_copy == sum(f.file_size for f in job.files if not f.is_dir)


def test_plan_job_source_removed(job_env) -> None:
    """Planning a job whose source vanished fails without items."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    shutil.rmtree(source)

    with pytest.raises(SourceNotFoundError):
        plan_job(job)

    assert job.files == []


def test_plan_after_run_rejected(job_env) -> None:
    """Planning is only allowed while pending."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    plan_job(job)
    run_job(job)

    with pytest.raises(InvalidJobStateError):
        plan_job(job)


# ============================================================================
# Execution Tests
# ============================================================================


def test_run_job_copies_tree(job_env) -> None:
    """Skip policy into an empty destination copies everything."""
    test_path, source, dest = job_env
    job = create_job(source, dest, overwrite_policy=OverwritePolicy.SKIP)
    plan_job(job)

    run_job(job)

    assert job.state == JobState.COMPLETED
    assert job.current_file_index is None
    assert all(f.state == FileState.DONE for f in job.files)
    assert job.total_bytes_copied == 8
    assert job.total_bytes_copied == sum(
        f.bytes_copied for f in job.files if f.state == FileState.DONE
    )
    assert (dest / "a.txt").read_bytes() == b"hello"
    assert (dest / "sub" / "b.txt").read_bytes() == b"abc"
    assert job.start_time <= job.end_time
    assert job.duration is not None
    assert not job.has_failures


def test_run_job_creates_empty_directories(job_env) -> None:
    """Empty source directories are mirrored."""
    test_path, source, dest = job_env
    (source / "empty").mkdir()
    job = create_job(source, dest)
    plan_job(job)

    run_job(job)

    assert (dest / "empty").is_dir()


def test_skip_policy_keeps_existing(job_env) -> None:
    """Skip leaves an existing destination file untouched."""
    test_path, source, dest = job_env
    dest.mkdir()
    (dest / "a.txt").write_bytes(b"different content")
    job = create_job(source, dest, overwrite_policy=OverwritePolicy.SKIP)
    plan_job(job)

    run_job(job)

    assert item_by_name(job, "a.txt").state == FileState.SKIPPED
    assert (dest / "a.txt").read_bytes() == b"different content"
    assert item_by_name(job, "sub/b.txt").state == FileState.DONE
    assert job.total_bytes_copied == 3


def test_overwrite_policy_replaces_existing(job_env) -> None:
    """Overwrite replaces an existing destination file."""
    test_path, source, dest = job_env
    dest.mkdir()
    (dest / "a.txt").write_bytes(b"olden")
    job = create_job(source, dest, overwrite_policy=OverwritePolicy.OVERWRITE)
    plan_job(job)

    run_job(job)

    assert item_by_name(job, "a.txt").state == FileState.DONE
    assert (dest / "a.txt").read_bytes() == b"hello"


def test_smart_update_copies_only_size_changes(job_env) -> None:
    """SmartUpdate skips same-size files and copies resized ones."""
    test_path, source, dest = job_env
    (dest / "sub").mkdir(parents=True)
    (dest / "a.txt").write_bytes(b"HELLO")
    (dest / "sub" / "b.txt").write_bytes(b"ab")
    job = create_job(source, dest, overwrite_policy=OverwritePolicy.SMART_UPDATE)
    plan_job(job)

    run_job(job)

    assert item_by_name(job, "a.txt").state == FileState.SKIPPED
    assert (dest / "a.txt").read_bytes() == b"HELLO"
    assert item_by_name(job, "sub/b.txt").state == FileState.DONE
    assert (dest / "sub" / "b.txt").read_bytes() == b"abc"


def test_ask_policy_behaves_like_skip(job_env) -> None:
    """Without an interactive front-end, Ask skips existing files."""
    test_path, source, dest = job_env
    dest.mkdir()
    (dest / "a.txt").write_bytes(b"keep me")
    job = create_job(source, dest, overwrite_policy=OverwritePolicy.ASK)
    plan_job(job)

    run_job(job)

    assert item_by_name(job, "a.txt").state == FileState.SKIPPED
    assert (dest / "a.txt").read_bytes() == b"keep me"


def test_move_mode_leaves_source(job_env) -> None:
    """Move mode currently copies and keeps the source."""
    test_path, source, dest = job_env
    job = create_job(source, dest, mode=Mode.MOVE)
    plan_job(job)

    run_job(job)

    assert (source / "a.txt").exists()
    assert (dest / "a.txt").read_bytes() == b"hello"


def test_run_twice_rejected(job_env) -> None:
    """A second run raises and does not touch item states."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    plan_job(job)
    run_job(job)
    states = [f.state for f in job.files]
    end_time = job.end_time

    with pytest.raises(InvalidJobStateError):
        run_job(job)

    assert [f.state for f in job.files] == states
    assert job.state == JobState.COMPLETED
    assert job.end_time == end_time


def test_unplanned_job_completes_empty(job_env) -> None:
    """Running an unplanned job completes with nothing to do."""
    test_path, source, dest = job_env
    job = create_job(source, dest)

    run_job(job)

    assert job.state == JobState.COMPLETED
    assert job.files == []
    assert not dest.exists()


# ============================================================================
# Progress Tests
# ============================================================================


def test_progress_notification_order(job_env) -> None:
    """Notifications follow job/item ordering guarantees."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    plan_job(job)
    progress = RecordingProgress()

    run_job(job, progress)

    assert progress.calls == [
        ("job_started", 3, 8),
        ("file_started", 0, FileState.PENDING),
        ("file_progress", 0, 5),
        ("file_completed", 0, FileState.DONE),
        ("file_started", 1, FileState.PENDING),
        ("file_completed", 1, FileState.DONE),
        ("file_started", 2, FileState.PENDING),
        ("file_progress", 2, 8),
        ("file_completed", 2, FileState.DONE),
        ("job_completed", JobState.COMPLETED, None),
    ]


def test_current_file_index_while_running(job_env) -> None:
    """The job exposes the item being processed only while running."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    plan_job(job)
    seen = []

    class IndexProgress(ProgressCallback):
        def on_file_started(self, job, file_index, file):
            seen.append((job.state, job.current_file_index, file_index))

    run_job(job, IndexProgress())

    assert seen == [(JobState.RUNNING, i, i) for i in range(3)]
    assert job.current_file_index is None


def test_queue_progress_events(job_env) -> None:
    """QueueProgress turns notifications into ordered events."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    plan_job(job)
    progress = QueueProgress()

    run_job(job, progress)
    events = progress.drain()

    assert events[0].type == EventType.JOB_STARTED
    assert events[0].total_files == 3
    assert events[0].total_bytes == 8
    assert events[-1].type == EventType.JOB_COMPLETED
    assert len(events[-1].files) == 3
    completed = [e for e in events if e.type == EventType.FILE_COMPLETED]
    assert [e.file_index for e in completed] == [0, 1, 2]
    assert all(e.state == FileState.DONE for e in completed)
    assert [e.bytes_processed for e in events if e.type == EventType.FILE_PROGRESS] == [5, 8]
    assert progress.drain() == []


# ============================================================================
# Error Isolation Tests
# ============================================================================


def test_blocked_directory_fails_items_but_job_completes(job_env) -> None:
    """A file occupying a directory's destination fails that branch only."""
    test_path, source, dest = job_env
    dest.mkdir()
    (dest / "sub").write_bytes(b"not a directory")
    job = create_job(source, dest)
    plan_job(job)
    progress = RecordingProgress()

    run_job(job, progress)

    sub = item_by_name(job, "sub")
    assert sub.state == FileState.FAILED
    assert sub.error_code == errno.ENOTDIR
    assert sub.error_message

    b_item = item_by_name(job, "sub/b.txt")
    assert b_item.state == FileState.FAILED
    assert b_item.error_code == errno.ENOTDIR
    assert item_by_name(job, "a.txt").state == FileState.DONE
    assert job.state == JobState.COMPLETED
    assert job.has_failures
    assert progress.calls[-1][0] == "job_completed"


def test_vanished_source_file_fails_item(job_env) -> None:
    """A file removed after planning is a read failure on that item only."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    plan_job(job)
    (source / "a.txt").unlink()

    run_job(job)

    a_item = item_by_name(job, "a.txt")
    assert a_item.state == FileState.FAILED
    assert a_item.error_code == errno.ENOENT
    assert "read" in a_item.error_message.lower()
    assert item_by_name(job, "sub/b.txt").state == FileState.DONE
    assert job.total_bytes_copied == 3
    assert job.count_by_state()[FileState.FAILED] == 1


def test_enumeration_failure_is_not_reprocessed(job_env) -> None:
    """Items that failed during planning keep their error when run."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    plan_job(job)
    sub = item_by_name(job, "sub")
    sub.state = FileState.FAILED
    sub.error_message = "Failed to enumerate directory"
    sub.error_code = errno.EACCES
    job.files = [f for f in job.files if f.source_path.parent != sub.source_path]

    run_job(job)

    assert sub.state == FileState.FAILED
    assert sub.error_code == errno.EACCES
    assert not (dest / "sub").exists()


# ============================================================================
# Verification Tests
# ============================================================================


@pytest.mark.parametrize("algorithm", list(ChecksumAlgorithm))
def test_verification_records_checksums(job_env, algorithm) -> None:
    """Verified copies carry matching checksums."""
    test_path, source, dest = job_env
    job = create_job(source, dest, verify_after_copy=True, checksum_algorithm=algorithm)
    plan_job(job)

    run_job(job)

    for item in job.files:
        if item.is_dir:
            assert item.metadata.dest_checksum is None
            continue
        assert item.state == FileState.DONE
        assert item.metadata.verification_passed is True
        assert item.metadata.source_checksum == item.metadata.dest_checksum
        assert item.metadata.dest_checksum.algorithm == algorithm
        assert item.error_message is None
    assert job.verification_failures == []


def test_no_checksums_without_verification(job_env) -> None:
    """Checksum fields stay empty when verification is off."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    plan_job(job)

    run_job(job)

    for item in job.files:
        assert item.metadata.source_checksum is None
        assert item.metadata.dest_checksum is None
        assert item.metadata.verification_passed is None


def test_verification_detects_tampering(job_env) -> None:
    """A destination modified before verification fails it but stays Done."""
    test_path, source, dest = job_env
    job = create_job(
        source, dest, verify_after_copy=True, checksum_algorithm=ChecksumAlgorithm.SHA256
    )
    plan_job(job)

    def tamper_after_copy(src, dst, buffer_size):
        copied = copy_file_with_metadata(src, dst, buffer_size)
        if Path(dst).name == "a.txt":
            with open(dst, "ab") as f:
                f.write(b"CORRUPTED")
        return copied

    with patch("treecopy.job.copy_file_with_metadata", side_effect=tamper_after_copy):
        run_job(job)

    a_item = item_by_name(job, "a.txt")
    assert a_item.state == FileState.DONE
    assert a_item.metadata.verification_passed is False
    assert "mismatch" in a_item.error_message.lower() or "differ" in a_item.error_message.lower()
    assert a_item.error_code is None
    assert job.verification_failures == [a_item]
    assert not job.has_failures
    assert item_by_name(job, "sub/b.txt").metadata.verification_passed is True


def test_verification_io_error_is_recorded(job_env) -> None:
    """A destination that disappears before hashing is recorded, not raised."""
    test_path, source, dest = job_env
    job = create_job(source, dest, verify_after_copy=True)
    plan_job(job)

    def delete_after_copy(src, dst, buffer_size):
        copied = copy_file_with_metadata(src, dst, buffer_size)
        if Path(dst).name == "b.txt":
            Path(dst).unlink()
        return copied

    with patch("treecopy.job.copy_file_with_metadata", side_effect=delete_after_copy):
        run_job(job)

    b_item = item_by_name(job, "sub/b.txt")
    assert b_item.state == FileState.DONE
    assert b_item.metadata.verification_passed is None
    assert "verification error" in b_item.error_message.lower()
    assert job.state == JobState.COMPLETED


# ============================================================================
# Destination Edge Case Tests
# ============================================================================


def test_create_job_destination_is_source(job_env) -> None:
    """Copying a tree onto itself is rejected, also through an alias."""
    test_path, source, dest = job_env
    alias = test_path / "alias"
    alias.symlink_to(source, target_is_directory=True)

    with pytest.raises(InvalidPathError):
        create_job(source, source, overwrite_policy=OverwritePolicy.OVERWRITE)
    with pytest.raises(InvalidPathError):
        create_job(source, alias, overwrite_policy=OverwritePolicy.OVERWRITE)

    assert (source / "a.txt").read_bytes() == b"hello"


def test_uninspectable_destination_still_completes(job_env) -> None:
    """An unreadable destination is attempted and the job completes."""
    test_path, source, dest = job_env
    dest.mkdir()
    (dest / "a.txt").write_bytes(b"olden")
    blocked = dest / "a.txt"
    real_stat = Path.stat

    def fake_stat(self, *args, **kwargs):
        if self == blocked:
            raise PermissionError(errno.EACCES, "Permission denied", str(self))
        return real_stat(self, *args, **kwargs)

    job = create_job(source, dest, overwrite_policy=OverwritePolicy.SKIP)
    plan_job(job)
    progress = RecordingProgress()

    with patch.object(Path, "stat", autospec=True, side_effect=fake_stat):
        run_job(job, progress)

    assert job.state == JobState.COMPLETED
    assert item_by_name(job, "a.txt").state == FileState.DONE
    assert (dest / "a.txt").read_bytes() == b"hello"
    assert progress.calls[-1] == ("job_completed", JobState.COMPLETED, None)


def test_policy_error_is_recorded_on_item(job_env) -> None:
    """An error while checking the destination fails only that item."""
    test_path, source, dest = job_env
    job = create_job(source, dest)
    plan_job(job)

    def failing_decision(item, policy):
        if item.source_path.name == "a.txt":
            raise OSError(errno.ENAMETOOLONG, "File name too long")
        return True

    with patch("treecopy.job.decide_for_item", side_effect=failing_decision):
        run_job(job)

    a_item = item_by_name(job, "a.txt")
    assert a_item.state == FileState.FAILED
    assert a_item.error_code == errno.ENAMETOOLONG
    assert item_by_name(job, "sub/b.txt").state == FileState.DONE
    assert job.state == JobState.COMPLETED
    assert job.current_file_index is None


def test_overlong_destination_names_fail_items(job_env) -> None:
    """Item paths beyond the OS limit fail without stopping the job."""
    test_path, source, dest = job_env
    (source / ("n" * 250)).write_bytes(b"long name")
    depth = (4000 - len(str(test_path))) // 101
    deep_dest = test_path.joinpath(*(["d" * 100] * depth))

    job = create_job(source, deep_dest, overwrite_policy=OverwritePolicy.SKIP)
    plan_job(job)
    run_job(job)

    long_item = item_by_name(job, "n" * 250)
    assert long_item.state == FileState.FAILED
    assert long_item.error_code == errno.ENAMETOOLONG
    assert job.state == JobState.COMPLETED
    assert job.current_file_index is None


def test_symlink_to_directory_fails_without_bytes(job_env) -> None:
    """A link to a directory adds no bytes and fails on copy."""
    test_path, source, dest = job_env
    (source / "link").symlink_to(source / "sub", target_is_directory=True)

    job = create_job(source, dest)
    plan_job(job)
    run_job(job)

    link = item_by_name(job, "link")
    assert not link.is_dir
    assert link.file_size == 0
    assert job.total_bytes_to_copy == 8
    assert link.state == FileState.FAILED
    assert link.error_code == errno.EISDIR
    assert job.total_bytes_copied == 8


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
