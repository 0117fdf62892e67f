"""Audio actions: extract an audio track, transcribe speech."""

from ..core.result import MediaResult
from ..core.types import ExtractOptions, TranscribeOptions
from ..providers.registry import ProviderRegistry, execute_action, global_registry
from .common import build_context, to_input


async def extract(
    input: str,
    format: str = "mp3",
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    """Extract the audio track of a video as mp3 or wav."""
    request = ExtractOptions(input=to_input(input), format=format)
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)


async def transcribe(
    input: str,
    diarize: bool = False,
    language: str | None = None,
    num_speakers: int | None = None,
    model: str | None = None,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    """Transcribe speech, optionally identifying speakers."""
    request = TranscribeOptions(
        input=to_input(input),
        diarize=diarize,
        language=language,
        num_speakers=num_speakers,
        model=model,
    )
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)
