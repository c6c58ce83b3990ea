"""
Progress reporting.

``run_job`` reports to a ``ProgressCallback`` synchronously, on the thread
that runs the job. Front-ends either subclass it directly (the CLI does) or
use ``QueueProgress`` to turn the calls into ``ProgressEvent`` messages that
another thread consumes.

Ordering: job-started comes first; for each item, file-started precedes
file-completed; job-completed comes last.
"""

import queue
from dataclasses import dataclass, field
from enum import Enum

from .models import FileItem, FileState, TransferJob


class ProgressCallback:
    """
    Receiver of job progress. Every method defaults to doing nothing.

    Implementations must return quickly: they run inline with the copy.
    """

    def on_job_started(self, job: TransferJob) -> None:
        """Called once when execution starts."""

    def on_file_started(self, job: TransferJob, file_index: int, file: FileItem) -> None:
        """Called before an item is processed."""

    def on_file_progress(
        self, job: TransferJob, file_index: int, bytes_this_file: int
    ) -> None:
        """
        Called after a file's bytes were copied.

        ``job.total_bytes_copied`` holds the cumulative count for the job.
        """

    def on_file_completed(
        self, job: TransferJob, file_index: int, file: FileItem
    ) -> None:
        """Called when an item reached DONE, SKIPPED or FAILED."""

    def on_job_completed(self, job: TransferJob) -> None:
        """Called once, after every item has completed."""


class EventType(Enum):
    """
    Events emitted by ``QueueProgress``.

    Attributes
    ----------
    JOB_STARTED : str
        Execution started
    FILE_STARTED : str
        An item is about to be processed
    FILE_PROGRESS : str
        Bytes were copied
    FILE_COMPLETED : str
        An item reached a terminal state
    JOB_COMPLETED : str
        Execution finished
    """

    JOB_STARTED = "job_started"
    FILE_STARTED = "file_started"
    FILE_PROGRESS = "file_progress"
    FILE_COMPLETED = "file_completed"
    JOB_COMPLETED = "job_completed"


@dataclass
class ProgressEvent:
    """
    Snapshot of a progress notification.

    Attributes
    ----------
    type : EventType
        Type of event
    file_index : int | None, default=None
        Item index for file events
    file : FileItem | None, default=None
        The item for started/completed events
    state : FileState | None, default=None
        Item state when the event was emitted
    bytes_processed : int, default=0
        Cumulative bytes copied for the job
    total_bytes : int, default=0
        Total bytes the job will copy
    total_files : int, default=0
        Number of items in the job
    files : list[FileItem], default=[]
        All items, on JOB_COMPLETED only
    """

    type: EventType
    file_index: int | None = None
    file: FileItem | None = None
    state: FileState | None = None
    bytes_processed: int = 0
    total_bytes: int = 0
    total_files: int = 0
    files: list[FileItem] = field(default_factory=list)


class QueueProgress(ProgressCallback):
    """
    Forward progress as ``ProgressEvent`` objects into a queue.

    Parameters
    ----------
    events : queue.Queue | None, default=None
        Destination queue; a new unbounded one is created if omitted
    """

    def __init__(self, events: queue.Queue | None = None):
        self.events = events if events is not None else queue.Queue()

    def _put(self, job: TransferJob, event_type: EventType, **kwargs) -> None:
        self.events.put(
            ProgressEvent(
                type=event_type,
                bytes_processed=job.total_bytes_copied,
                total_bytes=job.total_bytes_to_copy,
                total_files=len(job.files),
                **kwargs,
            )
        )

    def on_job_started(self, job: TransferJob) -> None:
        self._put(job, EventType.JOB_STARTED)

    def on_file_started(self, job: TransferJob, file_index: int, file: FileItem) -> None:
        self._put(
            job, EventType.FILE_STARTED, file_index=file_index, file=file, state=file.state
        )

    def on_file_progress(
        self, job: TransferJob, file_index: int, bytes_this_file: int
    ) -> None:
        self._put(job, EventType.FILE_PROGRESS, file_index=file_index)

    def on_file_completed(
        self, job: TransferJob, file_index: int, file: FileItem
    ) -> None:
        self._put(
            job,
            EventType.FILE_COMPLETED,
            file_index=file_index,
            file=file,
            state=file.state,
        )

    def on_job_completed(self, job: TransferJob) -> None:
        self._put(job, EventType.JOB_COMPLETED, files=list(job.files))

    def drain(self) -> list[ProgressEvent]:
        """Remove and return every queued event, oldest first."""
        drained = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained
