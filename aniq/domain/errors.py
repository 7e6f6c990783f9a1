"""Error taxonomy for the quiz core.

Every failure that crosses a layer boundary is one of these types. The
request executor produces them deterministically from transport failures,
so nothing upstream has to inspect loosely-typed error objects.
"""

from typing import Optional

from aniq.domain.models.common import ResponseHeaders


class AniqError(Exception):
    """Base class for all aniq errors."""


class ThrottlingError(AniqError):
    """The server rejected (or is assumed to have rejected) a call due to rate limiting.

    Recoverable by waiting. Never retried locally; callers are expected to
    pause and re-invoke the whole operation once the pause elapses.
    """

    def __init__(self, retry_after_seconds: int, reset_timestamp: int, message: Optional[str] = None):
        self.retry_after_seconds = retry_after_seconds
        self.reset_timestamp = reset_timestamp
        super().__init__(message or f"Rate limit exceeded. Retry after {retry_after_seconds} seconds.")


class HttpError(AniqError):
    """A non-success HTTP status from the API."""

    def __init__(self, status: int, message: str, headers: Optional[ResponseHeaders] = None):
        self.status = status
        self.headers = headers if headers is not None else {}
        super().__init__(f"HTTP {status}: {message}")


class TransportError(AniqError):
    """A network-level failure with no HTTP status (timeouts, resets, blocked responses)."""


class DataError(AniqError):
    """The data needed for a round was missing or insufficient.

    Retried by the question assembler up to its attempt limit.
    """


class DecodeError(DataError):
    """A response did not match the expected shape."""


class RoundBuildError(AniqError):
    """Terminal failure: no round could be built within the attempt limit."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f" Last error: {last_error}" if last_error else ""
        super().__init__(f"Failed to build a round after {attempts} attempts.{detail}")
