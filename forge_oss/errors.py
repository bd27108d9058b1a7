"""Error kinds raised by the OSS client.

Every error keeps its type while it travels up the call chain; callers add
context (which part range, which phase) with ``add_context`` instead of
wrapping it in a different exception.
"""


class OSSError(Exception):
    """Base class for all forge-oss errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.context: list[str] = []

    def add_context(self, context: str) -> "OSSError":
        """Prepend a description of the failing stage and return self for re-raising."""
        self.context.insert(0, context)
        return self

    def __str__(self) -> str:
        return ": ".join([*self.context, self.message])


class AuthError(OSSError):
    """Raised when a bearer token cannot be acquired."""


class RemoteError(OSSError):
    """Raised when an endpoint answers with a non-success status."""

    def __init__(self, status: int, body: str, url: str = "") -> None:
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"[{status}] {body}")


class SignedUrlExpiredError(RemoteError):
    """Raised when a signed URL is rejected with 403, meaning it has expired."""


class NetworkError(OSSError):
    """Raised on transport failures (connection refused, timeouts, resets)."""


class ReadError(OSSError):
    """Raised when the local file cannot be read. Never retried."""


class SizeMismatchError(OSSError):
    """Raised when the remote size of an object differs from the expected byte count."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(f"the file size doesn't match, expected {expected}, but received {received}")


class DecodeError(OSSError):
    """Raised when a response body cannot be parsed."""
