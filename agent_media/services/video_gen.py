"""
Video generation helpers shared by the fal, replicate and runpod providers.

Builds provider request payloads from VideoGenerateOptions and extracts
the generated video URL from their responses.
"""

from dataclasses import dataclass
from typing import Any

import httpx

from ..core.errors import ActionError
from ..core.result import ErrorCode
from ..core.types import MediaInput, VideoGenerateOptions
from .http import input_as_url

RESOLUTION_DIMENSIONS: dict[str, tuple[int, int]] = {
    "720p": (1280, 720),
    "1080p": (1920, 1080),
    "1440p": (2560, 1440),
    "2160p": (3840, 2160),
}

FAL_TEXT_TO_VIDEO_MODEL = "fal-ai/ltx-2/text-to-video/fast"
FAL_IMAGE_TO_VIDEO_MODEL = "fal-ai/ltx-2/image-to-video/fast"
REPLICATE_VIDEO_MODEL = "lightricks/ltx-video"
RUNPOD_TEXT_TO_VIDEO_ENDPOINT = "wan-2-6-t2v"
RUNPOD_IMAGE_TO_VIDEO_ENDPOINT = "wan-2-6-i2v"


@dataclass
class VideoGenerationResult:
    """Generated video location."""
    url: str
    content_type: str = "video/mp4"


def get_resolution_dimensions(resolution: str | None) -> tuple[int, int]:
    """(width, height) for a resolution label; unknown labels map to 720p."""
    return RESOLUTION_DIMENSIONS.get(resolution or "720p", RESOLUTION_DIMENSIONS["720p"])


async def prepare_image_input(client: httpx.AsyncClient, media_input: MediaInput | None) -> str | None:
    """URL passthrough or data URL for an optional image-to-video input."""
    if media_input is None or not media_input.source:
        return None
    return await input_as_url(client, media_input)


def fal_video_request(options: VideoGenerateOptions, image_url: str | None) -> tuple[str, dict[str, Any]]:
    """(model, body) for fal LTX-2 text/image-to-video."""
    width, height = get_resolution_dimensions(options.resolution)
    model = options.model or (FAL_IMAGE_TO_VIDEO_MODEL if image_url else FAL_TEXT_TO_VIDEO_MODEL)

    body: dict[str, Any] = {
        "prompt": options.prompt,
        "duration": options.duration,
        "fps": options.fps,
        "width": width,
        "height": height,
    }
    if image_url:
        body["image_url"] = image_url
    if options.generate_audio:
        body["generate_audio"] = True
    return model, body


def replicate_video_input(options: VideoGenerateOptions, image_url: str | None) -> tuple[str, dict[str, Any]]:
    """(model, input) for Replicate LTX-Video; duration becomes a frame count."""
    width, height = get_resolution_dimensions(options.resolution)

    payload: dict[str, Any] = {
        "prompt": options.prompt,
        "num_frames": round(options.duration * options.fps),
        "width": width,
        "height": height,
        "fps": options.fps,
    }
    if image_url:
        payload["image"] = image_url
    return options.model or REPLICATE_VIDEO_MODEL, payload


def runpod_video_input(options: VideoGenerateOptions, image_url: str | None) -> tuple[str, dict[str, Any]]:
    """(endpoint, input) for Runpod Wan 2.6 text/image-to-video."""
    width, height = get_resolution_dimensions(options.resolution)
    endpoint = options.model or (RUNPOD_IMAGE_TO_VIDEO_ENDPOINT if image_url else RUNPOD_TEXT_TO_VIDEO_ENDPOINT)

    payload: dict[str, Any] = {
        "prompt": options.prompt,
        "duration": options.duration,
        "size": f"{width}*{height}",
        "enable_audio": options.generate_audio,
    }
    if image_url:
        payload["image"] = image_url
    return endpoint, payload


def parse_video_output(output: Any) -> VideoGenerationResult:
    """Find the video URL in the assorted response shapes providers return."""
    if isinstance(output, str) and output:
        return VideoGenerationResult(url=output)

    if isinstance(output, list) and output:
        return parse_video_output(output[0])

    if isinstance(output, dict):
        video = output.get("video")
        if isinstance(video, dict) and video.get("url"):
            return VideoGenerationResult(
                url=video["url"],
                content_type=video.get("content_type") or "video/mp4",
            )
        for key in ("video", "video_url", "result", "url", "output"):
            if output.get(key):
                return parse_video_output(output[key])

    raise ActionError(ErrorCode.PROVIDER_ERROR, "No video returned from provider")
