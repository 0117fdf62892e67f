"""
fal.ai provider.

Calls models synchronously through `https://fal.run/<model>`.
Requires FAL_API_KEY.
"""

import json
from typing import Any

from ..core.config import settings
from ..core.errors import ActionError
from ..core.logging import get_logger
from ..core.result import (
    ErrorCode,
    MediaResult,
    TranscriptionData,
    TranscriptionSegment,
    create_success,
    create_transcription_success,
)
from ..core.types import (
    ActionContext,
    EditOptions,
    GenerateOptions,
    RemoveBackgroundOptions,
    TranscribeOptions,
    UpscaleOptions,
    VideoGenerateOptions,
)
from ..services.http import api_request, input_as_url
from ..services.video_gen import fal_video_request, parse_video_output, prepare_image_input
from .base import RemoteProvider

logger = get_logger("providers.fal")

GENERATE_MODEL = "fal-ai/flux/schnell"
EDIT_MODEL = "fal-ai/flux-2/edit"
REMOVE_BACKGROUND_MODEL = "fal-ai/birefnet/v2"
UPSCALE_MODEL = "fal-ai/esrgan"
# wizper is faster but cannot diarize
TRANSCRIBE_MODEL = "fal-ai/wizper"
DIARIZE_MODEL = "fal-ai/whisper"


def _first_image_url(result: dict[str, Any]) -> str:
    images = result.get("images") or []
    if images and images[0].get("url"):
        return images[0]["url"]
    image = result.get("image") or {}
    if image.get("url"):
        return image["url"]
    raise ActionError(ErrorCode.PROVIDER_ERROR, "No image returned from fal")


def parse_transcription(result: dict[str, Any], language: str | None = None) -> TranscriptionData:
    """fal whisper/wizper response to TranscriptionData."""
    segments = []
    for chunk in result.get("chunks") or []:
        start, end = (list(chunk.get("timestamp") or []) + [0.0, 0.0])[:2]
        segments.append(
            TranscriptionSegment(
                start=float(start or 0.0),
                end=float(end if end is not None else start or 0.0),
                text=chunk.get("text", ""),
                speaker=chunk.get("speaker"),
            )
        )

    inferred = result.get("inferred_languages") or []
    return TranscriptionData(
        text=result.get("text") or "",
        language=(inferred[0] if inferred else None) or language or "unknown",
        segments=tuple(segments),
    )


class FalProvider(RemoteProvider):
    """fal.ai hosted models."""

    name = "fal"
    api_key_env = "FAL_API_KEY"
    base_url = "https://fal.run"
    supported_actions = (
        "generate",
        "edit",
        "remove-background",
        "upscale",
        "transcribe",
        "video-generate",
    )

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Key {self.api_key}"}

    async def run(self, model: str, body: dict[str, Any], timeout: float | None = None) -> dict[str, Any]:
        """Run a fal model and return its JSON output."""
        logger.debug("Calling fal model", model=model)
        kwargs = {"timeout": timeout} if timeout else {}
        async with self.api_client() as client:
            response = await api_request(client, "POST", f"{self.base_url}/{model}", self.name, json=body, **kwargs)
        return response.json()

    async def _generate(self, request: GenerateOptions, context: ActionContext) -> MediaResult:
        if not request.prompt:
            raise ActionError(ErrorCode.INVALID_INPUT, "Prompt is required for image generation")

        body: dict[str, Any] = {
            "prompt": request.prompt,
            "image_size": {"width": request.width or 1024, "height": request.height or 1024},
            "num_images": 1,
            "output_format": "png",
        }
        if request.seed is not None:
            body["seed"] = request.seed

        result = await self.run(request.model or GENERATE_MODEL, body)
        output_path, size = await self.save_url(_first_image_url(result), "png", "generated", context)

        return create_success(
            media_type="image",
            action="generate",
            provider=self.name,
            output_path=output_path,
            mime="image/png",
            bytes=size,
        )

    async def _edit(self, request: EditOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for image editing")
        if not request.prompt:
            raise ActionError(ErrorCode.INVALID_INPUT, "Prompt is required for image editing")

        async with self.client() as client:
            image_url = await input_as_url(client, request.input)

        result = await self.run(
            request.model or EDIT_MODEL,
            {"prompt": request.prompt, "image_urls": [image_url], "output_format": "png"},
        )
        output_path, size = await self.save_url(_first_image_url(result), "png", "edited", context)

        return create_success(
            media_type="image",
            action="edit",
            provider=self.name,
            output_path=output_path,
            mime="image/png",
            bytes=size,
        )

    async def _remove_background(self, request: RemoveBackgroundOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for background removal")

        async with self.client() as client:
            image_url = await input_as_url(client, request.input)

        result = await self.run(
            request.model or REMOVE_BACKGROUND_MODEL,
            {
                "image_url": image_url,
                "model": "General Use (Light)",
                "output_format": "png",
                "refine_foreground": True,
            },
        )
        output_path, size = await self.save_url(_first_image_url(result), "png", "nobg", context)

        return create_success(
            media_type="image",
            action="remove-background",
            provider=self.name,
            output_path=output_path,
            mime="image/png",
            bytes=size,
        )

    async def _upscale(self, request: UpscaleOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for upscaling")

        async with self.client() as client:
            image_url = await input_as_url(client, request.input)

        result = await self.run(
            request.model or UPSCALE_MODEL,
            {"image_url": image_url, "scale": request.scale, "output_format": "png"},
        )
        output_path, size = await self.save_url(_first_image_url(result), "png", "upscaled", context)

        return create_success(
            media_type="image",
            action="upscale",
            provider=self.name,
            output_path=output_path,
            mime="image/png",
            bytes=size,
        )

    async def _transcribe(self, request: TranscribeOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for transcription")

        async with self.client() as client:
            audio_url = await input_as_url(client, request.input)

        body: dict[str, Any] = {"audio_url": audio_url, "chunk_level": "segment"}
        if request.diarize:
            body["diarize"] = True
            if request.num_speakers:
                body["num_speakers"] = request.num_speakers
        if request.language:
            body["language"] = request.language

        model = request.model or (DIARIZE_MODEL if request.diarize else TRANSCRIBE_MODEL)
        result = await self.run(model, body, timeout=settings.providers.max_poll_wait)

        transcription = parse_transcription(result, request.language)
        output_path, _ = await self.save_bytes(
            json.dumps(transcription.to_dict(), indent=2, ensure_ascii=False).encode("utf-8"),
            "json",
            "transcription",
            context,
        )

        return create_transcription_success(
            media_type="audio",
            provider=self.name,
            output_path=output_path,
            transcription=transcription,
        )

    async def _video_generate(self, request: VideoGenerateOptions, context: ActionContext) -> MediaResult:
        if not request.prompt:
            raise ActionError(ErrorCode.INVALID_INPUT, "Prompt is required for video generation")

        async with self.client() as client:
            image_url = await prepare_image_input(client, request.input)

        model, body = fal_video_request(request, image_url)
        result = await self.run(model, body, timeout=settings.providers.max_poll_wait)
        video = parse_video_output(result)

        output_path, size = await self.save_url(video.url, "mp4", "generated", context)

        return create_success(
            media_type="video",
            action="video-generate",
            provider=self.name,
            output_path=output_path,
            mime=video.content_type,
            bytes=size,
        )
