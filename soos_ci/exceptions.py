"""Custom exceptions for the SOOS CI scan task.

Transport and remote failures are not wrapped: they surface as the
``httpx.HTTPStatusError`` / ``httpx.RequestError`` raised by the client.
"""


class SOOSError(Exception):
    """Base exception for all errors raised by this package."""


class MissingParameterError(SOOSError):
    """Raised when a required task input is absent or empty."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing required parameter '{name}'.")


class InvalidParameterError(SOOSError):
    """Raised when a task input cannot be converted to its expected type."""


class NoManifestFilesError(SOOSError):
    """Raised when discovery finds no manifest to upload."""

    def __init__(self) -> None:
        super().__init__("No matching manifest files found.")


class ScanFailedError(SOOSError):
    """Raised when the remote analysis ends in a failure state."""

    def __init__(
        self,
        message: str,
        *,
        status: str | None = None,
        vulnerabilities: int | None = None,
        violations: int | None = None,
    ):
        self.status = status
        self.vulnerabilities = vulnerabilities
        self.violations = violations
        super().__init__(message)


class ScanStatusTimeoutError(SOOSError):
    """Raised when polling exceeds its configured attempt count or deadline."""
