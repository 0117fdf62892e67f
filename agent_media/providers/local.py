"""
Local provider: zero API key operations.

- Pillow: resize, convert, extend, crop
- ffmpeg: extract (audio track of a video)
- Local inference (delegated to TransformersProvider): remove-background, transcribe
"""

import asyncio
import dataclasses
import os
import tempfile
import time
from pathlib import Path

from ..core.errors import ActionError
from ..core.files import file_size
from ..core.logging import get_logger
from ..core.result import ErrorCode, MediaResult, create_success
from ..core.types import (
    IMAGE_FORMATS,
    ActionContext,
    ConvertOptions,
    CropOptions,
    ExtendOptions,
    ExtractOptions,
    MediaInput,
    RemoveBackgroundOptions,
    ResizeOptions,
    TranscribeOptions,
)
from ..media import ffmpeg, raster
from ..services.http import read_input
from .base import BaseProvider
from .huggingface import TransformersProvider

logger = get_logger("providers.local")


class LocalProvider(BaseProvider):
    """Offline provider for raster operations, audio extraction and local inference."""

    name = "local"
    supported_actions = (
        "resize",
        "convert",
        "extend",
        "crop",
        "extract",
        "remove-background",
        "transcribe",
    )

    def __init__(self, inference: TransformersProvider | None = None, transport=None):
        super().__init__(transport=transport)
        self.inference = inference or TransformersProvider(transport=transport)

    async def _read_image(self, media_input: MediaInput):
        async with self.client() as client:
            data, _ = await read_input(client, media_input)
        return await asyncio.to_thread(raster.load_image, data)

    def _image_success(self, action: str, output_path: str, mime: str) -> MediaResult:
        return create_success(
            media_type="image",
            action=action,
            provider=self.name,
            output_path=output_path,
            mime=mime,
            bytes=file_size(output_path),
        )

    async def _resize(self, request: ResizeOptions, context: ActionContext) -> MediaResult:
        if not request.width and not request.height:
            raise ActionError(ErrorCode.INVALID_INPUT, "At least one of width or height must be specified")

        img = await self._read_image(request.input)
        fmt = raster.source_format(img)

        resized = await asyncio.to_thread(
            raster.resize_image, img, request.width, request.height, request.maintain_aspect_ratio
        )

        output_path = self.output_path(raster.extension_for(fmt), "resized", context)
        await asyncio.to_thread(raster.save_image, resized, output_path, fmt)

        return self._image_success("resize", output_path, raster.FORMAT_MIME[fmt])

    async def _convert(self, request: ConvertOptions, context: ActionContext) -> MediaResult:
        fmt = (request.format or "").lower()
        if fmt not in IMAGE_FORMATS:
            raise ActionError(ErrorCode.INVALID_FORMAT, f"Unsupported output format: {request.format}")

        if request.input.source.split("?", 1)[0].lower().endswith(".svg"):
            raise ActionError(ErrorCode.INVALID_FORMAT, "SVG input is not supported by the local provider")

        img = await self._read_image(request.input)
        if request.width is not None or request.height is not None:
            img = await asyncio.to_thread(
                raster.resize_image, img, request.width, request.height, True, allow_enlarge=True
            )

        output_path = self.output_path(raster.extension_for(fmt), "converted", context)
        await asyncio.to_thread(
            raster.save_image, img, output_path, fmt, request.quality, request.dpi
        )

        return self._image_success("convert", output_path, raster.FORMAT_MIME[fmt])

    async def _extend(self, request: ExtendOptions, context: ActionContext) -> MediaResult:
        # Validate before touching the input
        raster.parse_hex_color(request.color)

        img = await self._read_image(request.input)
        extended = await asyncio.to_thread(raster.extend_image, img, request.padding, request.color)

        output_path = self.output_path("png", "extended", context)
        await asyncio.to_thread(raster.save_image, extended, output_path, "png", None, request.dpi)

        return self._image_success("extend", output_path, "image/png")

    async def _crop(self, request: CropOptions, context: ActionContext) -> MediaResult:
        img = await self._read_image(request.input)
        fmt = raster.source_format(img)

        cropped = await asyncio.to_thread(
            raster.crop_image, img, request.width, request.height, request.focus_x, request.focus_y
        )

        output_path = self.output_path(raster.extension_for(fmt), "cropped", context)
        await asyncio.to_thread(raster.save_image, cropped, output_path, fmt, None, request.dpi)

        return self._image_success("crop", output_path, raster.FORMAT_MIME[fmt])

    async def _extract(self, request: ExtractOptions, context: ActionContext) -> MediaResult:
        fmt = (request.format or "mp3").lower()
        if fmt not in ffmpeg.AUDIO_CODECS:
            raise ActionError(ErrorCode.INVALID_FORMAT, f"Unsupported audio format: {request.format}")

        input_path = request.input.source
        temp_file = None

        if request.input.is_url:
            async with self.client() as client:
                data, _ = await read_input(client, request.input)
            fd, temp_file = tempfile.mkstemp(prefix=f"agent-media-{int(time.time() * 1000)}-", suffix=".tmp")
            os.close(fd)
            await asyncio.to_thread(Path(temp_file).write_bytes, data)
            input_path = temp_file
        elif not Path(input_path).exists():
            raise FileNotFoundError(2, "No such file", input_path)

        output_path = self.output_path(fmt, "extracted", context)
        try:
            await ffmpeg.extract_audio(input_path, output_path, fmt)
        except ffmpeg.FFmpegError as e:
            raise ActionError(ErrorCode.PROVIDER_ERROR, f"Audio extraction failed: {e}")
        finally:
            if temp_file:
                Path(temp_file).unlink(missing_ok=True)

        return create_success(
            media_type="audio",
            action="extract",
            provider=self.name,
            output_path=output_path,
            mime=ffmpeg.AUDIO_MIME[fmt],
            bytes=file_size(output_path),
        )

    async def _delegate(self, request, context: ActionContext) -> MediaResult:
        logger.debug("Delegating to local inference", action=request.action, provider=self.inference.name)
        result = await self.inference.execute(request, context)
        if result.ok:
            return dataclasses.replace(result, provider=self.name)
        return result

    async def _remove_background(self, request: RemoveBackgroundOptions, context: ActionContext) -> MediaResult:
        return await self._delegate(request, context)

    async def _transcribe(self, request: TranscribeOptions, context: ActionContext) -> MediaResult:
        return await self._delegate(request, context)
