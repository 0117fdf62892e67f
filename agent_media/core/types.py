"""
Action catalog: the closed set of media actions and their option records.

Every request type carries its action tag as a class attribute, so a
request value is self-describing (`ResizeOptions(...).action == "resize"`).
Adding an action means adding a request type here and updating the
`supported_actions` of each provider that handles it.
"""

from dataclasses import dataclass
from typing import ClassVar, Literal, Union

ImageFormat = Literal["png", "jpg", "jpeg", "webp"]
AudioFormat = Literal["mp3", "wav"]
VideoResolution = Literal["720p", "1080p", "1440p", "2160p"]

IMAGE_FORMATS = ("png", "jpg", "jpeg", "webp")
AUDIO_FORMATS = ("mp3", "wav")
VIDEO_RESOLUTIONS = ("720p", "1080p", "1440p", "2160p")
VIDEO_FPS = (25, 50)


@dataclass(frozen=True)
class MediaInput:
    """Input source for media operations: a local path or a URL."""

    source: str
    is_url: bool = False

    @classmethod
    def from_source(cls, source: str) -> "MediaInput":
        """Normalize a raw path-or-URL string."""
        return cls(source=source, is_url=source.startswith(("http://", "https://")))


@dataclass(frozen=True)
class ActionContext:
    """Per-call execution parameters."""

    output_dir: str
    # Explicitly selected provider (overrides auto-detection)
    provider: str | None = None
    # User supplied output filename (extension auto-added if missing)
    output_name: str | None = None
    # Original input string, used to derive output filenames
    input_source: str | None = None


@dataclass(frozen=True)
class ResizeOptions:
    action: ClassVar[str] = "resize"

    input: MediaInput
    width: int | None = None
    height: int | None = None
    maintain_aspect_ratio: bool = True


@dataclass(frozen=True)
class ConvertOptions:
    action: ClassVar[str] = "convert"

    input: MediaInput
    format: str
    # Quality for lossy formats (1-100)
    quality: int = 80
    dpi: int = 72
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True)
class RemoveBackgroundOptions:
    action: ClassVar[str] = "remove-background"

    input: MediaInput
    model: str | None = None


@dataclass(frozen=True)
class GenerateOptions:
    action: ClassVar[str] = "generate"

    prompt: str
    width: int | None = None
    height: int | None = None
    count: int = 1
    model: str | None = None
    seed: int | None = None


@dataclass(frozen=True)
class ExtendOptions:
    action: ClassVar[str] = "extend"

    input: MediaInput
    # Padding in pixels added on all sides
    padding: int
    # Hex background color; transparency is flattened onto it
    color: str
    dpi: int = 300


@dataclass(frozen=True)
class EditOptions:
    action: ClassVar[str] = "edit"

    input: MediaInput
    prompt: str
    model: str | None = None


@dataclass(frozen=True)
class CropOptions:
    action: ClassVar[str] = "crop"

    input: MediaInput
    width: int
    height: int
    # Focal point in percent of image width/height
    focus_x: float = 50
    focus_y: float = 50
    dpi: int = 300


@dataclass(frozen=True)
class UpscaleOptions:
    action: ClassVar[str] = "upscale"

    input: MediaInput
    scale: int = 4
    model: str | None = None


@dataclass(frozen=True)
class ExtractOptions:
    action: ClassVar[str] = "extract"

    input: MediaInput
    format: str = "mp3"


@dataclass(frozen=True)
class TranscribeOptions:
    action: ClassVar[str] = "transcribe"

    input: MediaInput
    diarize: bool = False
    language: str | None = None
    num_speakers: int | None = None
    model: str | None = None


@dataclass(frozen=True)
class VideoGenerateOptions:
    action: ClassVar[str] = "video-generate"

    prompt: str
    # Optional input image for image-to-video
    input: MediaInput | None = None
    duration: int = 6
    resolution: str = "720p"
    fps: int = 25
    generate_audio: bool = False
    model: str | None = None


ActionOptions = Union[
    ResizeOptions,
    ConvertOptions,
    RemoveBackgroundOptions,
    GenerateOptions,
    ExtendOptions,
    EditOptions,
    CropOptions,
    UpscaleOptions,
    ExtractOptions,
    TranscribeOptions,
    VideoGenerateOptions,
]

ACTION_OPTIONS: dict[str, type] = {
    options.action: options
    for options in (
        ResizeOptions,
        ConvertOptions,
        RemoveBackgroundOptions,
        GenerateOptions,
        ExtendOptions,
        EditOptions,
        CropOptions,
        UpscaleOptions,
        ExtractOptions,
        TranscribeOptions,
        VideoGenerateOptions,
    )
}

ACTIONS = frozenset(ACTION_OPTIONS)
