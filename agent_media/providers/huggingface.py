"""
Local ML inference provider ("transformers").

Runs Hugging Face `transformers` pipelines on the local machine: no API
key, models are downloaded on first use and cached by the Hub client.
Loaded pipelines are kept in a PipelineCache owned by the provider.

Requires the optional `ml` extra (transformers, torch).
"""

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

from PIL import Image

from ..core.config import settings
from ..core.errors import ActionError
from ..core.files import file_size
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
    MediaInput,
    RemoveBackgroundOptions,
    TranscribeOptions,
    UpscaleOptions,
)
from ..media import raster
from ..observability.metrics import metrics
from ..services.http import read_input
from .base import BaseProvider

logger = get_logger("providers.huggingface")

BACKGROUND_REMOVAL_TASK = "image-segmentation"
TRANSCRIPTION_TASK = "automatic-speech-recognition"
UPSCALE_TASK = "image-to-image"

DEFAULT_BACKGROUND_MODEL = "briaai/RMBG-1.4"
DEFAULT_TRANSCRIPTION_MODEL = "openai/whisper-base"
DEFAULT_UPSCALE_MODELS = {
    2: "caidas/swin2SR-classical-sr-x2-64",
    4: "caidas/swin2SR-classical-sr-x4-63",
}

BACKGROUND_MODEL_ALIASES = {
    "rmbg-1.4": "briaai/RMBG-1.4",
    "rmbg-2.0": "briaai/RMBG-2.0",
}

TRANSCRIPTION_MODEL_ALIASES = {
    "moonshine-tiny": "UsefulSensors/moonshine-tiny",
    "moonshine-base": "UsefulSensors/moonshine-base",
    "whisper-tiny": "openai/whisper-tiny",
    "whisper-base": "openai/whisper-base",
    "whisper-small": "openai/whisper-small",
    "whisper-medium": "openai/whisper-medium",
    "whisper-large-v3-turbo": "openai/whisper-large-v3-turbo",
    "distil-whisper": "distil-whisper/distil-large-v3",
}

UPSCALE_MODEL_ALIASES = {
    "swin2sr": "caidas/swin2SR-classical-sr-x2-64",
    "swin2sr-x2": "caidas/swin2SR-classical-sr-x2-64",
    "swin2sr-x4": "caidas/swin2SR-classical-sr-x4-63",
}

_AUDIO_ERROR_MARKERS = ("ffmpeg", "decode", "audio", "format")


def resolve_model(model: str | None, aliases: dict[str, str], default: str) -> str:
    """Model id from an alias, a full id, or the default."""
    if not model:
        return default
    return aliases.get(model.lower(), model)


def load_pipeline(task: str, model_id: str, device: str) -> Any:
    """Build a transformers pipeline (blocking: downloads and loads weights)."""
    try:
        from transformers import pipeline
    except ImportError:
        raise ActionError(
            ErrorCode.PROVIDER_ERROR,
            "Local inference requires the 'ml' extra: pip install 'agent-media[ml]'",
        )

    try:
        return pipeline(task, model=model_id, device=device, trust_remote_code=True)
    except OSError as e:
        raise ActionError(
            ErrorCode.NETWORK_ERROR,
            f"Failed to download model {model_id}. Ensure you have internet connectivity. "
            f"Models are cached after first download. ({e})",
        )


class PipelineCache:
    """
    Loaded inference pipelines keyed by (task, model id).

    The first load of a key is serialised by a per-key lock so concurrent
    callers never build the same pipeline twice; once loaded, callers share
    it without locking.
    """

    def __init__(self, device: str | None = None, loader: Callable[[str, str, str], Any] | None = None):
        self.device = device or settings.media.ml_device
        self._loader = loader or load_pipeline
        self._pipelines: dict[tuple[str, str], Any] = {}
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    async def get(self, task: str, model_id: str) -> Any:
        key = (task, model_id)
        pipe = self._pipelines.get(key)
        if pipe is not None:
            return pipe

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key not in self._pipelines:
                logger.info("Loading inference pipeline", task=task, model=model_id, device=self.device)
                self._pipelines[key] = await asyncio.to_thread(self._loader, task, model_id, self.device)
                metrics.track_model_load(task, model_id)
        return self._pipelines[key]

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._pipelines

    def __len__(self) -> int:
        return len(self._pipelines)

    def clear(self) -> None:
        """Drop all loaded pipelines."""
        self._pipelines.clear()
        self._locks.clear()


def _apply_mask(image: Image.Image, output: Any) -> Image.Image:
    """Cut-out image from a segmentation pipeline output."""
    if isinstance(output, Image.Image) and output.mode == "RGBA":
        return output

    mask = output
    if isinstance(output, list):
        if not output:
            raise ActionError(ErrorCode.PROVIDER_ERROR, "No image returned from background removal")
        mask = output[0].get("mask") if isinstance(output[0], dict) else output[0]

    if not isinstance(mask, Image.Image):
        raise ActionError(ErrorCode.PROVIDER_ERROR, "No image returned from background removal")

    cutout = image.convert("RGBA")
    cutout.putalpha(mask.convert("L").resize(cutout.size))
    return cutout


def _segments_from_chunks(chunks: list[dict[str, Any]] | None, text: str) -> tuple[TranscriptionSegment, ...]:
    if not chunks:
        return (TranscriptionSegment(start=0.0, end=0.0, text=text),)

    segments = []
    for chunk in chunks:
        start, end = (tuple(chunk.get("timestamp") or ()) + (None, None))[:2]
        start = float(start or 0.0)
        segments.append(
            TranscriptionSegment(
                start=start,
                end=float(end) if end is not None else start,
                text=str(chunk.get("text", "")).strip(),
            )
        )
    return tuple(segments)


class TransformersProvider(BaseProvider):
    """Local inference with Hugging Face pipelines: background removal, transcription, upscaling."""

    name = "transformers"
    supported_actions = ("remove-background", "transcribe", "upscale")

    def __init__(self, cache: PipelineCache | None = None, transport=None):
        super().__init__(transport=transport)
        self.cache = cache or PipelineCache()

    async def _load_image(self, media_input: MediaInput) -> Image.Image:
        async with self.client() as client:
            data, _ = await read_input(client, media_input)
        return await asyncio.to_thread(raster.load_image, data)

    async def _save_png(self, image: Image.Image, prefix: str, context: ActionContext) -> str:
        output_path = self.output_path("png", prefix, context)
        await asyncio.to_thread(raster.save_image, image, output_path, "png")
        return output_path

    async def _remove_background(self, request: RemoveBackgroundOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for background removal")

        model_id = resolve_model(request.model, BACKGROUND_MODEL_ALIASES, DEFAULT_BACKGROUND_MODEL)
        image = await self._load_image(request.input)
        remover = await self.cache.get(BACKGROUND_REMOVAL_TASK, model_id)

        output = await asyncio.to_thread(remover, image)
        cutout = _apply_mask(image, output)

        output_path = await self._save_png(cutout, "nobg", context)
        return create_success(
            media_type="image",
            action="remove-background",
            provider=self.name,
            output_path=output_path,
            mime="image/png",
            bytes=file_size(output_path),
        )

    async def _upscale(self, request: UpscaleOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for upscaling")

        # The output factor is fixed by the model; scale picks the default model
        default_model = DEFAULT_UPSCALE_MODELS.get(request.scale, DEFAULT_UPSCALE_MODELS[4])
        model_id = resolve_model(request.model, UPSCALE_MODEL_ALIASES, default_model)

        image = await self._load_image(request.input)
        upscaler = await self.cache.get(UPSCALE_TASK, model_id)

        output = await asyncio.to_thread(upscaler, image.convert("RGB"))
        if isinstance(output, list):
            output = output[0] if output else None
        if not isinstance(output, Image.Image):
            raise ActionError(ErrorCode.PROVIDER_ERROR, "No image returned from upscaling")

        output_path = await self._save_png(output, "upscaled", context)
        return create_success(
            media_type="image",
            action="upscale",
            provider=self.name,
            output_path=output_path,
            mime="image/png",
            bytes=file_size(output_path),
        )

    async def _transcribe(self, request: TranscribeOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for transcription")

        if request.diarize:
            raise ActionError(
                ErrorCode.INVALID_INPUT,
                "Diarization (speaker identification) is not supported by local inference. "
                "Use --provider fal or --provider replicate for diarization support.",
            )

        if not request.input.is_url and not Path(request.input.source).exists():
            raise FileNotFoundError(2, "No such file", request.input.source)

        model_id = resolve_model(request.model, TRANSCRIPTION_MODEL_ALIASES, DEFAULT_TRANSCRIPTION_MODEL)

        async with self.client() as client:
            audio, _ = await read_input(client, request.input)

        transcriber = await self.cache.get(TRANSCRIPTION_TASK, model_id)

        kwargs: dict[str, Any] = {
            "return_timestamps": True,
            "chunk_length_s": 30,
            "stride_length_s": 5,
        }
        if request.language:
            kwargs["generate_kwargs"] = {"language": request.language}

        try:
            output = await asyncio.to_thread(transcriber, audio, **kwargs)
        except (ValueError, RuntimeError) as e:
            message = str(e)
            if any(marker in message.lower() for marker in _AUDIO_ERROR_MARKERS):
                raise ActionError(
                    ErrorCode.INVALID_FORMAT,
                    f"Failed to process audio file. Supported formats: mp3, wav, mp4, m4a, webm, ogg. Error: {message}",
                )
            raise

        if isinstance(output, list):
            output = output[0] if output else None
        if not isinstance(output, dict) or not isinstance(output.get("text"), str):
            raise ActionError(ErrorCode.PROVIDER_ERROR, "No transcription output returned from model")

        text = output["text"].strip()
        transcription = TranscriptionData(
            text=text,
            language=request.language or "auto",
            segments=_segments_from_chunks(output.get("chunks"), text),
        )

        output_path = self.output_path("json", "transcription", context)
        await asyncio.to_thread(
            Path(output_path).write_text,
            json.dumps(transcription.to_dict(), indent=2, ensure_ascii=False),
            "utf-8",
        )

        return create_transcription_success(
            media_type="audio",
            provider=self.name,
            output_path=output_path,
            transcription=transcription,
        )
