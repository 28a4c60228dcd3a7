"""Errors raised by the listener's sink ports."""


class ProbeDockError(Exception):
    """Base class for listener errors."""


class StorageError(ProbeDockError):
    """A test run could not be saved locally."""


class PublishError(ProbeDockError):
    """A test run could not be published to the Probe Dock server."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
