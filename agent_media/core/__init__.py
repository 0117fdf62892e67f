"""
Core building blocks shared by every provider.

- result: the result envelope and error codes
- types: the action catalog and request records
- config: pydantic-settings configuration
- logging: structlog setup
- files: output naming and MIME helpers
- errors: exceptions raised inside providers
"""

from .errors import (
    ActionError,
    AgentMediaError,
    ProviderAPIError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from .result import (
    ErrorCode,
    ErrorResult,
    MediaError,
    MediaResult,
    SuccessResult,
    TranscriptionData,
    TranscriptionSegment,
    TranscriptionSuccessResult,
    create_error,
    create_success,
    create_transcription_success,
    format_result,
    is_error,
    is_success,
    print_result,
)
from .types import ACTIONS, ActionContext, MediaInput

__all__ = [
    # Errors
    "ActionError",
    "AgentMediaError",
    "ProviderAPIError",
    "ProviderRateLimitError",
    "ProviderTimeoutError",
    # Result envelope
    "ErrorCode",
    "ErrorResult",
    "MediaError",
    "MediaResult",
    "SuccessResult",
    "TranscriptionData",
    "TranscriptionSegment",
    "TranscriptionSuccessResult",
    "create_error",
    "create_success",
    "create_transcription_success",
    "format_result",
    "is_error",
    "is_success",
    "print_result",
    # Types
    "ACTIONS",
    "ActionContext",
    "MediaInput",
]
