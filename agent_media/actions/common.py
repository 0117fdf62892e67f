"""Shared plumbing for the action wrappers."""

from ..core.config import merge_config, settings
from ..core.types import ActionContext, MediaInput


def to_input(source: str | None) -> MediaInput | None:
    """Normalize a raw path-or-URL string."""
    if not source:
        return None
    return MediaInput.from_source(source)


def build_context(
    input_source: str | None = None,
    out: str | None = None,
    provider: str | None = None,
    name: str | None = None,
) -> ActionContext:
    """Execution context for one call; explicit arguments override the environment."""
    merged = merge_config(settings, out=out, provider=provider, name=name)
    return ActionContext(
        output_dir=merged.output_dir,
        provider=merged.provider,
        output_name=merged.output_name,
        input_source=input_source,
    )
