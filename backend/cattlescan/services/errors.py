"""Domain errors raised by the scan pipeline and the scan record actions."""

from __future__ import annotations


class ScanPipelineError(Exception):
    """Base class; ``step`` names the pipeline step that failed, if any."""

    step: str = ""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ClassificationError(ScanPipelineError):
    step = "classify"


class UploadError(ScanPipelineError):
    step = "upload"


class PersistError(ScanPipelineError):
    step = "persist"


class ScanNotFoundError(PersistError):
    pass


class AuthRequiredError(ScanPipelineError):
    pass


class LocationUnavailableError(ScanPipelineError):
    pass
