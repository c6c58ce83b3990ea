"""
Error types for the transfer engine.

Job-level failures are raised as subclasses of ``EngineError``. File-level
failures (a single read, write or directory creation going wrong) are raised
by the filesystem primitives too, but ``run_job`` catches them and records
them on the offending ``FileItem`` instead of aborting the job.
"""

from pathlib import Path


class EngineError(Exception):
    """
    Base class for all engine errors.

    Parameters
    ----------
    path : Path | str | None
        Path the error relates to
    message : str
        Human-readable description
    cause : OSError | None, default=None
        Underlying OS error, also chained as ``__cause__``
    """

    default_message = "Engine error"

    def __init__(
        self,
        path: Path | str | None = None,
        message: str | None = None,
        cause: OSError | None = None,
    ):
        self.path = Path(path) if path is not None else None
        self.cause = cause
        if message is None:
            message = self.default_message
            if self.path is not None:
                message = f"{message}: {self.path}"
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def raw_os_error(self) -> int | None:
        """
        OS error code of the underlying failure, if there is one.

        Returns
        -------
        int | None
            ``errno`` of the wrapped ``OSError``, or None
        """
        if self.cause is not None:
            return self.cause.errno
        return None

    @property
    def message(self) -> str:
        """Message text without the exception class name."""
        return str(self)


class SourceNotFoundError(EngineError):
    default_message = "Source directory not found"


class SourceAccessDeniedError(EngineError):
    default_message = "Source directory access denied"


class DestinationAccessDeniedError(EngineError):
    default_message = "Destination directory access denied"


class ReadError(EngineError):
    default_message = "Failed to read file"


class WriteError(EngineError):
    default_message = "Failed to write file"


class PathTooLongError(EngineError):
    default_message = "Path exceeds maximum length"


class InvalidPathError(EngineError):
    """Path is malformed or of the wrong kind."""

    default_message = "Invalid path"

    def __init__(self, path: Path | str | None = None, reason: str = ""):
        self.reason = reason
        message = None
        if reason:
            message = f"{self.default_message}: {path} ({reason})"
        super().__init__(path, message)


class EnumerationFailedError(EngineError):
    default_message = "Failed to enumerate directory"


class DirectoryCreationFailedError(EngineError):
    default_message = "Failed to create directory"


class InvalidJobStateError(EngineError):
    """Requested operation is not allowed in the job's current state."""

    default_message = "Invalid job state"


class UnknownEngineError(EngineError):
    default_message = "Engine error"
