"""Error taxonomy for the submission pipeline."""

from __future__ import annotations


class SubmissionError(RuntimeError):
    """Base class for every failure surfaced to the user."""


class ValidationError(SubmissionError):
    """User-correctable problem with the draft; never touches the network."""


class AuthenticationRequiredError(SubmissionError):
    def __init__(self, message: str = "Please authenticate with HydroShare first.") -> None:
        super().__init__(message)


class TransportError(SubmissionError):
    """Non-2xx or unexpected status from a remote call."""

    def __init__(self, message: str, *, status: int | None = None, operation: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.operation = operation


class UploadError(TransportError):
    """Object-storage upload failure."""
