"""Video actions."""

from ..core.result import MediaResult
from ..core.types import VideoGenerateOptions
from ..providers.registry import ProviderRegistry, execute_action, global_registry
from .common import build_context, to_input


async def generate(
    prompt: str,
    input: str | None = None,
    duration: int | None = None,
    resolution: str | None = None,
    fps: int | None = None,
    generate_audio: bool = False,
    model: str | None = None,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    """
    Generate a video from a prompt, optionally animating an input image.

    Args:
        prompt: Text description of the video
        input: Optional image path or URL for image-to-video
        duration: Seconds of video (default 6)
        resolution: 720p, 1080p, 1440p or 2160p (default 720p)
        fps: 25 or 50 (default 25)
        generate_audio: Ask the model for an audio track where supported

    Returns:
        Result envelope with media_type "video"
    """
    request = VideoGenerateOptions(
        prompt=prompt,
        input=to_input(input),
        duration=duration if duration is not None else 6,
        resolution=resolution or "720p",
        fps=fps if fps is not None else 25,
        generate_audio=generate_audio,
        model=model,
    )
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)
