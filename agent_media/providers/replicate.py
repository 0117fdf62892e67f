"""
Replicate provider.

Creates predictions through the Replicate HTTP API and polls them until
they reach a terminal status. Requires REPLICATE_API_TOKEN.
"""

import asyncio
import base64
import json
import time
from typing import Any

import httpx

from ..core.config import settings
from ..core.errors import ActionError, ProviderTimeoutError
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
from ..services.http import api_request, input_as_url, read_input
from ..services.video_gen import parse_video_output, prepare_image_input, replicate_video_input
from .base import RemoteProvider

logger = get_logger("providers.replicate")

GENERATE_MODEL = "black-forest-labs/flux-2-dev"
EDIT_MODEL = "black-forest-labs/flux-kontext-dev"
REMOVE_BACKGROUND_MODEL = "men1scus/birefnet:f74986db0355b58403ed20963af156525e2891ea3c2d499bfbfb2a28cd87c5d7"
UPSCALE_MODEL = "nightmareai/real-esrgan:f121d640bd286e1fdc67f9799164c1d5be36ff74576ee11c803ae5b665dd46aa"
TRANSCRIBE_MODEL = "thomasmol/whisper-diarization:1495a9cddc83b2203b0d8d3516e38b80fd1572ebc4bc5700ac1da56a9b3ed886"

TERMINAL_STATUSES = ("succeeded", "failed", "canceled")


def first_output_url(output: Any) -> str:
    """URL of the first file in a prediction output."""
    if isinstance(output, str) and output:
        return output
    if isinstance(output, list) and output:
        return first_output_url(output[0])
    if isinstance(output, dict):
        for key in ("url", "image", "output"):
            if output.get(key):
                return first_output_url(output[key])
    raise ActionError(ErrorCode.PROVIDER_ERROR, "No output returned from Replicate")


def parse_transcription(output: Any, language: str | None = None) -> TranscriptionData:
    """whisper-diarization output to TranscriptionData."""
    if not isinstance(output, dict):
        raise ActionError(ErrorCode.PROVIDER_ERROR, "No output from transcription")

    segments = tuple(
        TranscriptionSegment(
            start=float(segment.get("start") or 0.0),
            end=float(segment.get("end") or 0.0),
            text=str(segment.get("text", "")).strip(),
            speaker=segment.get("speaker"),
        )
        for segment in output.get("segments") or []
    )
    return TranscriptionData(
        text=" ".join(segment.text for segment in segments),
        language=output.get("language") or language or "unknown",
        segments=segments,
    )


class ReplicateProvider(RemoteProvider):
    """Replicate hosted models."""

    name = "replicate"
    api_key_env = "REPLICATE_API_TOKEN"
    base_url = "https://api.replicate.com/v1"
    supported_actions = (
        "generate",
        "edit",
        "remove-background",
        "upscale",
        "transcribe",
        "video-generate",
    )

    async def predict(self, model: str, payload: dict[str, Any]) -> Any:
        """Run a model ("owner/name" or "owner/name:version") and return its output."""
        if ":" in model:
            _, version = model.split(":", 1)
            url = f"{self.base_url}/predictions"
            body = {"version": version, "input": payload}
        else:
            url = f"{self.base_url}/models/{model}/predictions"
            body = {"input": payload}

        logger.debug("Creating prediction", model=model)

        async with self.api_client() as client:
            response = await api_request(client, "POST", url, self.name, json=body, headers={"Prefer": "wait"})
            prediction = response.json()

            if prediction.get("status") not in TERMINAL_STATUSES:
                prediction = await self._poll_prediction(client, prediction)

        status = prediction.get("status")
        if status != "succeeded":
            error = prediction.get("error") or f"Prediction {status}"
            raise ActionError(ErrorCode.PROVIDER_ERROR, f"Replicate prediction {status}: {error}")

        return prediction.get("output")

    async def _poll_prediction(self, client: httpx.AsyncClient, prediction: dict[str, Any]) -> dict[str, Any]:
        """Poll until the prediction reaches a terminal status."""
        prediction_id = prediction.get("id")
        poll_url = (prediction.get("urls") or {}).get("get") or f"{self.base_url}/predictions/{prediction_id}"
        max_wait = settings.providers.max_poll_wait
        start_time = time.time()

        while time.time() - start_time < max_wait:
            await asyncio.sleep(settings.providers.poll_interval)

            response = await api_request(client, "GET", poll_url, self.name)
            prediction = response.json()

            if prediction.get("status") in TERMINAL_STATUSES:
                return prediction

            logger.debug("Prediction pending", prediction_id=prediction_id, status=prediction.get("status"))

        raise ProviderTimeoutError(f"Replicate prediction {prediction_id} timed out after {max_wait} seconds")

    async def _generate(self, request: GenerateOptions, context: ActionContext) -> MediaResult:
        if not request.prompt:
            raise ActionError(ErrorCode.INVALID_INPUT, "Prompt is required for image generation")

        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "width": request.width or 1280,
            "height": request.height or 720,
            "output_format": "webp",
        }
        if request.seed is not None:
            payload["seed"] = request.seed

        output = await self.predict(request.model or GENERATE_MODEL, payload)
        output_path, size = await self.save_url(first_output_url(output), "webp", "generated", context)

        return create_success(
            media_type="image",
            action="generate",
            provider=self.name,
            output_path=output_path,
            mime="image/webp",
            bytes=size,
        )

    async def _edit(self, request: EditOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for image editing")
        if not request.prompt:
            raise ActionError(ErrorCode.INVALID_INPUT, "Prompt is required for image editing")

        async with self.client() as client:
            image = await input_as_url(client, request.input, inline_remote=True)

        output = await self.predict(
            request.model or EDIT_MODEL,
            {"prompt": request.prompt, "input_image": image, "output_format": "webp"},
        )
        output_path, size = await self.save_url(first_output_url(output), "webp", "edited", context)

        return create_success(
            media_type="image",
            action="edit",
            provider=self.name,
            output_path=output_path,
            mime="image/webp",
            bytes=size,
        )

    async def _remove_background(self, request: RemoveBackgroundOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for background removal")

        async with self.client() as client:
            image = await input_as_url(client, request.input)

        output = await self.predict(request.model or REMOVE_BACKGROUND_MODEL, {"image": image})
        output_path, size = await self.save_url(first_output_url(output), "png", "nobg", context)

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
            image = await input_as_url(client, request.input)

        output = await self.predict(request.model or UPSCALE_MODEL, {"image": image, "scale": request.scale})
        output_path, size = await self.save_url(first_output_url(output), "png", "upscaled", context)

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

        payload: dict[str, Any] = {}
        if request.input.is_url:
            payload["file_url"] = request.input.source
        else:
            async with self.client() as client:
                audio, _ = await read_input(client, request.input)
            payload["file_string"] = base64.b64encode(audio).decode("ascii")

        if request.num_speakers:
            payload["num_speakers"] = request.num_speakers
        if request.language:
            payload["language"] = request.language

        output = await self.predict(request.model or TRANSCRIBE_MODEL, payload)
        transcription = parse_transcription(output, request.language)

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

        model, payload = replicate_video_input(request, image_url)
        output = await self.predict(model, payload)
        video = parse_video_output(output)

        output_path, size = await self.save_url(video.url, "mp4", "generated", context)

        return create_success(
            media_type="video",
            action="video-generate",
            provider=self.name,
            output_path=output_path,
            mime=video.content_type,
            bytes=size,
        )
