"""Exception types for the chat relay.

GroqBotError subclasses carry the HTTP status and error code they map to;
groqbot/main.py renders them as ErrorResponse bodies.
"""

from typing import Optional

from groqbot.models import ErrorCode


class GroqBotError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingAPIKeyError(GroqBotError):
    """No upstream key in the request body or OPENAI_API_KEY."""

    status_code = 401
    error_code = ErrorCode.MISSING_API_KEY


class UpstreamError(GroqBotError):
    """Upstream provider answered with a non-200 status.

    Attributes:
        message: Upstream error message (or a generic description)
        type, param, code: OpenAI-style error fields, when the upstream sent them
        upstream_status: HTTP status returned by the upstream
        body: Raw upstream response body
    """

    error_code = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        message: str,
        type: Optional[str] = None,
        param: Optional[str] = None,
        code: Optional[str] = None,
        upstream_status: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(message)
        self.type = type
        self.param = param
        self.code = code
        self.upstream_status = upstream_status
        self.body = body


class UpstreamAuthError(UpstreamError):
    """Upstream rejected the key (401). Still surfaced to clients as a 500."""

    error_code = ErrorCode.UPSTREAM_AUTH_ERROR


class UnsupportedExportFormat(ValueError):
    """Import data matches none of the known export formats."""
