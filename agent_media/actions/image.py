"""
Image actions.

Each function normalizes its input, builds the execution context and
dispatches through the provider registry. All of them return a result
envelope and never raise.
"""

from ..core.result import MediaResult
from ..core.types import (
    ConvertOptions,
    CropOptions,
    EditOptions,
    ExtendOptions,
    GenerateOptions,
    RemoveBackgroundOptions,
    ResizeOptions,
    UpscaleOptions,
)
from ..providers.registry import ProviderRegistry, execute_action, global_registry
from .common import build_context, to_input


async def resize(
    input: str,
    width: int | None = None,
    height: int | None = None,
    maintain_aspect_ratio: bool = True,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    """Resize an image to fit the given width and/or height."""
    request = ResizeOptions(
        input=to_input(input),
        width=width,
        height=height,
        maintain_aspect_ratio=maintain_aspect_ratio,
    )
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)


async def convert(
    input: str,
    format: str,
    quality: int | None = None,
    dpi: int | None = None,
    width: int | None = None,
    height: int | None = None,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    """Convert an image to png, jpg or webp."""
    request = ConvertOptions(
        input=to_input(input),
        format=format,
        quality=quality if quality is not None else 80,
        dpi=dpi if dpi is not None else 72,
        width=width,
        height=height,
    )
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)


async def remove_background(
    input: str,
    model: str | None = None,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    request = RemoveBackgroundOptions(input=to_input(input), model=model)
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)


async def generate(
    prompt: str,
    width: int | None = None,
    height: int | None = None,
    count: int = 1,
    model: str | None = None,
    seed: int | None = None,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    """Generate an image from a text prompt."""
    request = GenerateOptions(
        prompt=prompt,
        width=width,
        height=height,
        count=count,
        model=model,
        seed=seed,
    )
    context = build_context(None, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)


async def extend(
    input: str,
    padding: int,
    color: str,
    dpi: int | None = None,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    """Pad the canvas on all sides with a solid color."""
    request = ExtendOptions(
        input=to_input(input),
        padding=padding,
        color=color,
        dpi=dpi if dpi is not None else 300,
    )
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)


async def edit(
    input: str,
    prompt: str,
    model: str | None = None,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    """Edit an image following a text prompt."""
    request = EditOptions(input=to_input(input), prompt=prompt, model=model)
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)


async def crop(
    input: str,
    width: int,
    height: int,
    focus_x: float | None = None,
    focus_y: float | None = None,
    dpi: int | None = None,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    """Crop to width x height around a focal point (percent of the image)."""
    request = CropOptions(
        input=to_input(input),
        width=width,
        height=height,
        focus_x=focus_x if focus_x is not None else 50,
        focus_y=focus_y if focus_y is not None else 50,
        dpi=dpi if dpi is not None else 300,
    )
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)


async def upscale(
    input: str,
    scale: int | None = None,
    model: str | None = None,
    out: str | None = None,
    name: str | None = None,
    provider: str | None = None,
    registry: ProviderRegistry | None = None,
) -> MediaResult:
    request = UpscaleOptions(
        input=to_input(input),
        scale=scale if scale is not None else 4,
        model=model,
    )
    context = build_context(input, out=out, provider=provider, name=name)
    return await execute_action(registry or global_registry, request, context)
