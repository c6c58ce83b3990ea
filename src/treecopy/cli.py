#!/usr/bin/env python3
"""
treecopy command-line front-end.

Creates, plans and runs one job through the public engine API and reports
progress through ``logging``. Exit status is 0 when no item failed or mismatched.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from .checksums import ChecksumAlgorithm, job_checksum_entries, write_checksum_file
from .config import TransferConfig
from .errors import EngineError
from .job import plan_job, run_job
from .models import FileItem, FileState, TransferJob
from .progress import ProgressCallback


def format_bytes(num_bytes: int) -> str:
    """
    Format a byte count for humans.

    Parameters
    ----------
    num_bytes : int
        Number of bytes

    Returns
    -------
    str
        E.g. ``"512 B"``, ``"1.50 KB"``, ``"3.20 GB"``
    """
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            break
        value /= 1024
    if unit == "B":
        return f"{num_bytes} B"
    return f"{value:.2f} {unit}"


class CLIProgress(ProgressCallback):
    """
    Log job progress.

    Parameters
    ----------
    verbose : bool, default=False
        Log every item as it starts and completes
    update_interval : float, default=0.2
        Minimum seconds between two byte-progress lines
    """

    def __init__(self, verbose: bool = False, update_interval: float = 0.2) -> None:
        self.verbose = verbose
        self.update_interval = update_interval
        self.last_update = 0.0

    def on_job_started(self, job: TransferJob) -> None:
        logging.info("Preparing transfer...")
        logging.info(f"  Source: {job.source_path}")
        logging.info(f"  Destination: {job.destination_path}")
        logging.info(f"  Mode: {job.mode}")
        logging.info(
            f"  Total: {format_bytes(job.total_bytes_to_copy)} "
            f"across {len(job.files)} items"
        )

    def on_file_started(self, job: TransferJob, file_index: int, file: FileItem) -> None:
        if self.verbose:
            logging.info(f"[{file_index:3}] Starting: {file.source_path.name}")

    def on_file_progress(
        self, job: TransferJob, file_index: int, bytes_this_file: int
    ) -> None:
        current_time = time.time()
        if current_time - self.last_update < self.update_interval:
            return
        self.last_update = current_time

        total = job.total_bytes_to_copy or 1
        percent = job.total_bytes_copied / total * 100
        logging.info(
            f"copied {job.total_bytes_copied:,} of {job.total_bytes_to_copy:,} bytes "
            f"({percent:.1f}%)"
        )

    def on_file_completed(
        self, job: TransferJob, file_index: int, file: FileItem
    ) -> None:
        if self.verbose:
            logging.info(f"[{file_index:3}] {file.state.value}: {file.source_path.name}")

    def on_job_completed(self, job: TransferJob) -> None:
        counts = job.count_by_state()
        logging.info("=" * 60)
        logging.info(
            f"Summary: {counts[FileState.DONE]} done, "
            f"{counts[FileState.SKIPPED]} skipped, {counts[FileState.FAILED]} failed"
        )

        if job.verify_after_copy and job.checksum_algorithm is not None:
            verified_ok = sum(
                1 for f in job.files if f.metadata.verification_passed is True and not f.is_dir
            )
            mismatches = job.verification_failures
            logging.info(
                f"Verification ({job.checksum_algorithm}): "
                f"{verified_ok} OK, {len(mismatches)} mismatch"
            )
            for file in mismatches:
                logging.error(f"  ✗ {file.source_path.name}: {file.error_message}")

        logging.info(
            f"Bytes copied: {format_bytes(job.total_bytes_copied)} "
            f"({job.speed_mb_sec:.2f} MB/s)"
        )

        failed = [f for f in job.files if f.state == FileState.FAILED]
        if failed:
            logging.error("Failed items:")
            for file in failed:
                logging.error(
                    f"  ✗ {file.source_path.name}: {file.error_message or '(unknown error)'}"
                )


def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging for the application.

    Parameters
    ----------
    verbose : bool
        Enable verbose logging
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns
    -------
    argparse.Namespace
        Parsed command line arguments
    """
    parser = argparse.ArgumentParser(
        description="Copy a directory tree with overwrite policies and checksum verification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s /source /dest                              # Copy, skipping existing files
  %(prog)s --overwrite smart-update /source /dest     # Re-copy files whose size changed
  %(prog)s --verify --hash blake3 --manifest sums.txt /source /dest
        """,
    )

    parser.add_argument("source", type=Path, help="Source directory")
    parser.add_argument("destination", type=Path, help="Destination directory")

    parser.add_argument(
        "--mode",
        type=str,
        default="copy",
        choices=["copy", "move"],
        help="Operation mode (default: copy; move currently leaves sources in place)",
    )

    # "ask" needs an interactive prompt and is not offered here
    parser.add_argument(
        "--overwrite",
        type=str,
        default="skip",
        choices=["skip", "overwrite", "smart-update"],
        help="Policy for existing destination files (default: skip)",
    )

    parser.add_argument(
        "--verify",
        action="store_true",
        help="Compare source and destination checksums after each copy",
    )

    parser.add_argument(
        "-t",
        "--hash",
        type=str,
        default=None,
        choices=[a.value for a in ChecksumAlgorithm],
        help="Hash algorithm for verification, requires --verify (default: sha256)",
    )

    parser.add_argument(
        "--manifest",
        type=Path,
        default=None,
        help="Write destination checksums to this file (requires --verify)",
    )

    parser.add_argument(
        "-b",
        "--buffer-size",
        type=int,
        default=64 * 1024,
        help="Buffer size in bytes (default: 64KB)",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )

    return parser.parse_args(argv)


def run_cli(config: TransferConfig, source: Path, destination: Path) -> TransferJob:
    """
    Create, plan and run a job.

    Returns
    -------
    TransferJob
        The completed job

    Raises
    ------
    EngineError
        If the job cannot be created, planned or started, or the manifest
        cannot be written
    """
    job = config.create_job(source, destination)
    plan_job(job)
    run_job(job, CLIProgress(config.verbose), buffer_size=config.buffer_size)

    if config.manifest is not None:
        write_checksum_file(
            config.manifest, job_checksum_entries(job), config.checksum_algorithm
        )

    return job


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Returns
    -------
    int
        Exit code: 0 for success, 1 for failure, 130 for keyboard interrupt
    """
    args = parse_arguments(argv)
    setup_logging(args.verbose)

    try:
        config = TransferConfig.from_args(args)
        job = run_cli(config, args.source, args.destination)
    except KeyboardInterrupt:
        logging.error("Operation interrupted by user")
        return 130
    except ValueError as e:
        logging.error(f"Invalid parameter: {e}")
        return 1
    except EngineError as e:
        logging.error(str(e))
        return 1

    if job.has_failures:
        logging.error("One or more items failed to transfer")
        return 1
    if job.verification_failures:
        logging.error("One or more items failed verification")
        return 1

    logging.info("All items transferred successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
