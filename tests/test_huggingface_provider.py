"""
Unit tests for local inference with Hugging Face pipelines.

Tests:
- PipelineCache loads each key once, even under concurrent first use
- Model alias resolution
- Background removal, upscaling and transcription with fake pipelines
- Diarization and audio decoding errors
"""

import asyncio
import json
import threading
import time
from pathlib import Path

import pytest
from PIL import Image

from agent_media.core.errors import ActionError
from agent_media.core.result import ErrorCode
from agent_media.core.types import (
    MediaInput,
    RemoveBackgroundOptions,
    TranscribeOptions,
    UpscaleOptions,
)
from agent_media.providers.huggingface import (
    BACKGROUND_MODEL_ALIASES,
    DEFAULT_BACKGROUND_MODEL,
    DEFAULT_TRANSCRIPTION_MODEL,
    TRANSCRIPTION_MODEL_ALIASES,
    PipelineCache,
    TransformersProvider,
    load_pipeline,
    resolve_model,
)


class CountingLoader:
    """Loader that records how often each key was built."""

    def __init__(self, pipelines=None, delay=0.0):
        self.pipelines = pipelines or {}
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, task, model_id, device):
        time.sleep(self.delay)
        with self._lock:
            self.calls.append((task, model_id, device))
        return self.pipelines.get(task, object())


class TestPipelineCache:
    """Test once-only pipeline loading."""

    @pytest.mark.asyncio
    async def test_concurrent_first_use_loads_once(self):
        loader = CountingLoader(delay=0.05)
        cache = PipelineCache(device="cpu", loader=loader)

        results = await asyncio.gather(*(cache.get("image-segmentation", "briaai/RMBG-1.4") for _ in range(8)))

        assert loader.calls == [("image-segmentation", "briaai/RMBG-1.4", "cpu")]
        assert all(result is results[0] for result in results)
        assert ("image-segmentation", "briaai/RMBG-1.4") in cache

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        loader = CountingLoader()
        cache = PipelineCache(device="cpu", loader=loader)

        await cache.get("automatic-speech-recognition", "openai/whisper-base")
        await cache.get("automatic-speech-recognition", "openai/whisper-tiny")
        await cache.get("automatic-speech-recognition", "openai/whisper-base")

        assert len(loader.calls) == 2
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_clear(self):
        loader = CountingLoader()
        cache = PipelineCache(device="cpu", loader=loader)
        await cache.get("image-to-image", "caidas/swin2SR-classical-sr-x2-64")

        cache.clear()
        await cache.get("image-to-image", "caidas/swin2SR-classical-sr-x2-64")

        assert len(loader.calls) == 2

    @pytest.mark.asyncio
    async def test_failed_load_is_not_cached(self):
        attempts = []

        def flaky(task, model_id, device):
            attempts.append(model_id)
            if len(attempts) == 1:
                raise ActionError(ErrorCode.NETWORK_ERROR, "offline")
            return "pipeline"

        cache = PipelineCache(device="cpu", loader=flaky)

        with pytest.raises(ActionError):
            await cache.get("image-segmentation", "m")
        assert await cache.get("image-segmentation", "m") == "pipeline"


class TestModelResolution:
    """Test alias handling."""

    def test_default(self):
        assert resolve_model(None, BACKGROUND_MODEL_ALIASES, DEFAULT_BACKGROUND_MODEL) == "briaai/RMBG-1.4"

    def test_alias_case_insensitive(self):
        assert resolve_model("Whisper-Tiny", TRANSCRIPTION_MODEL_ALIASES, DEFAULT_TRANSCRIPTION_MODEL) == (
            "openai/whisper-tiny"
        )

    def test_full_id_passthrough(self):
        assert resolve_model("org/custom-model", TRANSCRIPTION_MODEL_ALIASES, DEFAULT_TRANSCRIPTION_MODEL) == (
            "org/custom-model"
        )

    def test_missing_transformers_package(self, monkeypatch):
        import builtins

        real_import = builtins.__import__

        def blocked(name, *args, **kwargs):
            if name == "transformers":
                raise ImportError("No module named 'transformers'")
            return real_import(name, *args, **kwargs)

        monkeypatch.setattr(builtins, "__import__", blocked)

        with pytest.raises(ActionError) as exc_info:
            load_pipeline("image-segmentation", "briaai/RMBG-1.4", "cpu")
        assert exc_info.value.code is ErrorCode.PROVIDER_ERROR
        assert "'ml' extra" in exc_info.value.message


def provider_with(pipelines):
    loader = CountingLoader(pipelines=pipelines)
    return TransformersProvider(cache=PipelineCache(device="cpu", loader=loader)), loader


class TestTransformersImageActions:
    """Test image pipelines."""

    @pytest.mark.asyncio
    async def test_remove_background_with_mask(self, png_file, context):
        def segmenter(image):
            mask = Image.new("L", image.size, 0)
            mask.paste(255, (0, 0, image.size[0] // 2, image.size[1]))
            return [{"label": "foreground", "mask": mask}]

        provider, loader = provider_with({"image-segmentation": segmenter})
        result = await provider.execute(
            RemoveBackgroundOptions(input=MediaInput.from_source(str(png_file))), context
        )

        assert result.ok, result
        assert result.provider == "transformers"
        assert result.mime == "image/png"
        assert loader.calls[0][1] == "briaai/RMBG-1.4"
        with Image.open(result.output_path) as img:
            assert img.mode == "RGBA"
            assert img.getpixel((10, 10))[3] == 255
            assert img.getpixel((390, 10))[3] == 0

    @pytest.mark.asyncio
    async def test_remove_background_rgba_output(self, png_file, context):
        provider, _ = provider_with({"image-segmentation": lambda image: image.convert("RGBA")})
        result = await provider.execute(
            RemoveBackgroundOptions(input=MediaInput.from_source(str(png_file)), model="rmbg-2.0"), context
        )

        assert result.ok
        assert Path(result.output_path).name.startswith("nobg_")

    @pytest.mark.asyncio
    async def test_upscale_default_model_by_scale(self, png_file, context):
        provider, loader = provider_with({"image-to-image": lambda image: image.resize((800, 600))})
        result = await provider.execute(
            UpscaleOptions(input=MediaInput.from_source(str(png_file)), scale=2), context
        )

        assert result.ok
        assert loader.calls[0][1] == "caidas/swin2SR-classical-sr-x2-64"
        with Image.open(result.output_path) as img:
            assert img.size == (800, 600)

    @pytest.mark.asyncio
    async def test_upscale_no_output(self, png_file, context):
        provider, _ = provider_with({"image-to-image": lambda image: []})
        result = await provider.execute(UpscaleOptions(input=MediaInput.from_source(str(png_file))), context)

        assert result.error.code is ErrorCode.PROVIDER_ERROR


class TestTransformersTranscription:
    """Test speech recognition."""

    @pytest.fixture
    def audio_file(self, tmp_path):
        path = tmp_path / "meeting.wav"
        path.write_bytes(b"RIFF....WAVEfmt ")
        return path

    @pytest.mark.asyncio
    async def test_transcribe_with_chunks(self, audio_file, context):
        seen = {}

        def transcriber(audio, **kwargs):
            seen.update(kwargs)
            return {
                "text": " Hello there. General Kenobi. ",
                "chunks": [
                    {"timestamp": (0.0, 1.2), "text": " Hello there."},
                    {"timestamp": (1.2, None), "text": " General Kenobi."},
                ],
            }

        provider, _ = provider_with({"automatic-speech-recognition": transcriber})
        result = await provider.execute(
            TranscribeOptions(input=MediaInput.from_source(str(audio_file)), language="en"), context
        )

        assert result.ok, result
        assert result.action == "transcribe"
        assert result.transcription.text == "Hello there. General Kenobi."
        assert result.transcription.language == "en"
        assert [s.text for s in result.transcription.segments] == ["Hello there.", "General Kenobi."]
        assert result.transcription.segments[1].end == 1.2
        assert seen["return_timestamps"] is True
        assert seen["generate_kwargs"] == {"language": "en"}

        saved = json.loads(Path(result.output_path).read_text())
        assert saved == result.transcription.to_dict()
        assert Path(result.output_path).name.startswith("transcription_")

    @pytest.mark.asyncio
    async def test_language_defaults_to_auto(self, audio_file, context):
        provider, _ = provider_with({"automatic-speech-recognition": lambda audio, **kw: {"text": "hi"}})
        result = await provider.execute(TranscribeOptions(input=MediaInput.from_source(str(audio_file))), context)

        assert result.transcription.language == "auto"
        assert len(result.transcription.segments) == 1

    @pytest.mark.asyncio
    async def test_diarize_not_supported(self, audio_file, context):
        provider, loader = provider_with({})
        result = await provider.execute(
            TranscribeOptions(input=MediaInput.from_source(str(audio_file)), diarize=True), context
        )

        assert result.error.code is ErrorCode.INVALID_INPUT
        assert loader.calls == []

    @pytest.mark.asyncio
    async def test_missing_audio_file(self, tmp_path, context):
        provider, loader = provider_with({})
        result = await provider.execute(
            TranscribeOptions(input=MediaInput.from_source(str(tmp_path / "absent.mp3"))), context
        )

        assert result.error.code is ErrorCode.FILE_NOT_FOUND
        assert loader.calls == []

    @pytest.mark.asyncio
    async def test_undecodable_audio(self, audio_file, context):
        def transcriber(audio, **kwargs):
            raise ValueError("ffmpeg was not able to decode the audio")

        provider, _ = provider_with({"automatic-speech-recognition": transcriber})
        result = await provider.execute(TranscribeOptions(input=MediaInput.from_source(str(audio_file))), context)

        assert result.error.code is ErrorCode.INVALID_FORMAT
