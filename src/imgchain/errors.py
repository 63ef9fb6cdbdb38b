from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for every error raised by the processing core.

    `family` and `step` are filled in by whoever knows them; the executor
    sets `step` on the way out so callers can tell which operation failed.
    """

    def __init__(self, message: str, *, family: Optional[str] = None, step: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.family = family
        self.step = step

    def to_dict(self) -> dict:
        d = {"type": type(self).__name__, "message": self.message}
        if self.family is not None:
            d["family"] = self.family
        if self.step is not None:
            d["step"] = self.step
        return d


class EmptyPipelineError(PipelineError):
    def __init__(self) -> None:
        super().__init__("operations must be a non-empty list")


class InvalidOperationTypeError(PipelineError):
    def __init__(self, op_type: Optional[str], message: Optional[str] = None, *, step: Optional[int] = None):
        self.op_type = op_type
        if message is None:
            message = (
                f"Operation type '{op_type}' is no longer accepted; "
                "use a prefixed type such as 'filter-blur' or 'effects-grayscale'"
            )
        super().__init__(message, step=step)


class UnsupportedOperationTypeError(PipelineError):
    def __init__(self, family: str):
        super().__init__(f"Unsupported operation type: {family}", family=family)


class MissingRequiredParameterError(PipelineError):
    def __init__(self, family: str, name: str):
        self.parameter = name
        super().__init__(f"{family}: missing required parameter '{name}'", family=family)


class SourceFileNotFoundError(PipelineError):
    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"File not found: {filename}")


class DownloadFailedError(PipelineError):
    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Download failed for {url}: {reason}")


class EngineInvocationError(PipelineError):
    def __init__(self, message: str, *, family: Optional[str] = None, command: Optional[str] = None, stderr: str = ""):
        self.command = command
        self.stderr = stderr
        super().__init__(message, family=family)


class InvalidUploadError(PipelineError):
    def __init__(self, message: str):
        super().__init__(message)


class UploadTooLargeError(InvalidUploadError):
    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        super().__init__(f"Uploaded file exceeds {max_bytes // (1024 * 1024)} MB")
