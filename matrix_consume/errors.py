"""Exceptions raised by matrix-consume.

Every error carries a single-line message suitable for printing on stderr
before the process exits with status 1.
"""

from pathlib import Path
from typing import Optional


class MatrixConsumeError(Exception):
    """Base class for all fatal errors."""


class ConfigUnreadable(MatrixConsumeError):
    def __init__(self, path: Path, reason: Optional[str] = None) -> None:
        self.path = path
        message = f"Cannot read config file: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class ConfigInvalid(MatrixConsumeError):
    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid config value for '{field}': {reason}")


class DirectoryBusy(MatrixConsumeError):
    def __init__(self, directory: Path, pid: int) -> None:
        self.directory = directory
        self.pid = pid
        super().__init__(
            f"Directory {directory} is already being consumed by process {pid}"
        )


class ConvertError(MatrixConsumeError):
    """Image conversion could not produce a file to upload."""


class ConverterUnavailable(ConvertError):
    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"Image converter '{tool}' was not found in PATH")


class ConversionFailed(ConvertError):
    pass


class UploadFailed(MatrixConsumeError):
    """The media upload did not return a content URI."""


class UploadRejected(MatrixConsumeError):
    """The room message was not acknowledged with an event id."""


class CleanupFailed(MatrixConsumeError):
    pass


class SupervisorToolMissing(MatrixConsumeError):
    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"Service manager '{tool}' was not found in PATH")


class ServiceError(MatrixConsumeError):
    pass
