"""
Exceptions raised inside providers and their mapping onto error codes.

Providers never let these escape `execute`: the base provider catches
them and answers with an ErrorResult carrying the mapped code.
"""

import httpx

from .result import ErrorCode


class AgentMediaError(Exception):
    """Base exception for agent-media."""

    pass


class ActionError(AgentMediaError):
    """Abort the current action with a specific error code."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = ErrorCode(code)
        self.message = message


class ProviderAPIError(AgentMediaError):
    """A remote provider API answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderRateLimitError(ProviderAPIError):
    """Rate limit exceeded (retried before surfacing)."""

    pass


class ProviderTimeoutError(AgentMediaError):
    """An asynchronous prediction did not finish in time."""

    pass


def error_code_for(exc: BaseException) -> ErrorCode:
    """Map an exception raised while executing an action to an error code."""
    if isinstance(exc, ActionError):
        return exc.code
    if isinstance(exc, ProviderAPIError):
        return ErrorCode.API_ERROR
    if isinstance(exc, (httpx.TransportError, ProviderTimeoutError)):
        return ErrorCode.NETWORK_ERROR
    if isinstance(exc, FileNotFoundError):
        return ErrorCode.FILE_NOT_FOUND
    return ErrorCode.PROVIDER_ERROR


def error_message_for(exc: BaseException) -> str:
    if isinstance(exc, ActionError):
        return exc.message
    if isinstance(exc, FileNotFoundError) and exc.filename:
        return f"File not found: {exc.filename}"
    return str(exc) or exc.__class__.__name__
