"""Error types shared by the scan client and the action entrypoint."""


class ValidationError(ValueError):
    """Malformed user-supplied configuration.

    Always fails the run, regardless of ``fail_silently``.
    """


class ScanError(Exception):
    """Failure while interacting with the IaC validation service.

    Carries the HTTP-like status code of the innermost cause (500 for
    internal invariant violations).
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class ScanTimeoutError(ScanError):
    """Raised when the scan deadline passes during submit or poll."""

    def __init__(self, message: str = "Operation timed out") -> None:
        super().__init__(500, message)


class AuthenticationError(Exception):
    """Raised when an access token cannot be obtained."""
