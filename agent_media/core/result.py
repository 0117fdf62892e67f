"""
Result envelope returned by every media action.

Three immutable variants share one JSON wire format:
- SuccessResult: a media file was written
- TranscriptionSuccessResult: a transcript was produced (and saved as JSON)
- ErrorResult: the action failed with a closed error code
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Literal, Union


class ErrorCode(str, Enum):
    """Closed set of error codes carried by ErrorResult."""

    INVALID_INPUT = "INVALID_INPUT"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    INVALID_FORMAT = "INVALID_FORMAT"
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    NO_PROVIDER = "NO_PROVIDER"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    API_ERROR = "API_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


MediaType = Literal["image", "audio", "video"]


@dataclass(frozen=True)
class MediaError:
    """Structured error information."""

    code: ErrorCode
    message: str

    def __post_init__(self):
        object.__setattr__(self, "code", ErrorCode(self.code))

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message}


@dataclass(frozen=True)
class SuccessResult:
    """A media file was produced."""

    ok: ClassVar[Literal[True]] = True

    media_type: MediaType
    action: str
    provider: str
    output_path: str
    mime: str
    bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "media_type": self.media_type,
            "action": self.action,
            "provider": self.provider,
            "output_path": self.output_path,
            "mime": self.mime,
            "bytes": self.bytes,
        }


@dataclass(frozen=True)
class TranscriptionSegment:
    """A segment of transcribed text with timing information."""

    start: float
    end: float
    text: str
    speaker: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"start": self.start, "end": self.end, "text": self.text}
        if self.speaker:
            data["speaker"] = self.speaker
        return data


@dataclass(frozen=True)
class TranscriptionData:
    """Complete transcription payload."""

    text: str
    language: str
    segments: tuple[TranscriptionSegment, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "language": self.language,
            "segments": [segment.to_dict() for segment in self.segments],
        }


@dataclass(frozen=True)
class TranscriptionSuccessResult:
    """A transcript was produced and saved to output_path."""

    ok: ClassVar[Literal[True]] = True
    action: ClassVar[Literal["transcribe"]] = "transcribe"

    media_type: Literal["audio", "video"]
    provider: str
    output_path: str
    transcription: TranscriptionData

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "media_type": self.media_type,
            "action": self.action,
            "provider": self.provider,
            "output_path": self.output_path,
            "transcription": self.transcription.to_dict(),
        }


@dataclass(frozen=True)
class ErrorResult:
    """The action failed."""

    ok: ClassVar[Literal[False]] = False

    error: MediaError

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.error.to_dict()}


MediaResult = Union[SuccessResult, TranscriptionSuccessResult, ErrorResult]

RESULT_TYPES = (SuccessResult, TranscriptionSuccessResult, ErrorResult)


def create_success(
    media_type: MediaType,
    action: str,
    provider: str,
    output_path: str,
    mime: str,
    bytes: int,
) -> SuccessResult:
    """Create a success result."""
    return SuccessResult(
        media_type=media_type,
        action=action,
        provider=provider,
        output_path=output_path,
        mime=mime,
        bytes=bytes,
    )


def create_transcription_success(
    media_type: Literal["audio", "video"],
    provider: str,
    output_path: str,
    transcription: TranscriptionData,
) -> TranscriptionSuccessResult:
    """Create a transcription success result."""
    return TranscriptionSuccessResult(
        media_type=media_type,
        provider=provider,
        output_path=output_path,
        transcription=transcription,
    )


def create_error(code: ErrorCode | str, message: str) -> ErrorResult:
    """Create an error result. Unknown code strings raise ValueError."""
    return ErrorResult(error=MediaError(code=ErrorCode(code), message=message))


def is_success(result: MediaResult) -> bool:
    return result.ok is True


def is_error(result: MediaResult) -> bool:
    return result.ok is False


def format_result(result: MediaResult) -> str:
    """Format a result as a JSON string for stdout."""
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


def print_result(result: MediaResult) -> None:
    """Print result to stdout (for CLI)."""
    print(format_result(result))
