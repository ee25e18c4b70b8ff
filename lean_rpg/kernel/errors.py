"""
Error taxonomy for the progression engine.

ValidationError is raised by the pure engines for malformed input.
ApiError and its subclasses are raised only by SubmissionPipeline, which is
the single boundary that turns transport failures into typed errors.
"""

from typing import Optional


class ProgressionError(Exception):
    """Base class for all engine errors."""


class ValidationError(ProgressionError, ValueError):
    """Malformed input to a pure engine (negative weight, bad threshold table...)."""


class ApiError(ProgressionError):
    """The backend answered, but not with success."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code}, code={self.code!r})"


class NetworkError(ApiError):
    """No connectivity, timeout, unparseable body, or a non-2xx with no server message."""


class AuthError(ApiError):
    """Access token rejected and could not be refreshed."""


class RateLimitError(ApiError):
    """Still rate limited after the configured number of retries."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = 429,
        code: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code=status_code, code=code)
        self.retry_after = retry_after
