"""
Media providers and the composition root that registers them.

Registration order matters: it is the fallback order of provider
resolution, so offline providers come before paid remote ones.
"""

from .ai_gateway import AIGatewayProvider
from .base import BaseProvider, MediaProvider, RemoteProvider
from .fal import FalProvider
from .huggingface import PipelineCache, TransformersProvider
from .local import LocalProvider
from .registry import (
    ENV_PROVIDER_MAP,
    ProviderRegistry,
    detect_provider_from_env,
    execute_action,
    global_registry,
    resolve_provider,
)
from .replicate import ReplicateProvider
from .runpod import RunpodProvider


def build_providers() -> list[MediaProvider]:
    """One instance of every provider, in preference order."""
    inference = TransformersProvider()
    return [
        LocalProvider(inference=inference),
        inference,
        FalProvider(),
        ReplicateProvider(),
        RunpodProvider(),
        AIGatewayProvider(),
    ]


def register_all_providers(registry: ProviderRegistry | None = None) -> ProviderRegistry:
    """Register every provider into registry (default: the global registry)."""
    registry = global_registry if registry is None else registry
    for provider in build_providers():
        registry.register(provider)
    return registry


def register_local_provider(registry: ProviderRegistry | None = None) -> ProviderRegistry:
    """Register only the offline local provider."""
    registry = global_registry if registry is None else registry
    registry.register(LocalProvider())
    return registry


def create_registry() -> ProviderRegistry:
    """Fresh registry with all providers."""
    return register_all_providers(ProviderRegistry())


__all__ = [
    "AIGatewayProvider",
    "BaseProvider",
    "ENV_PROVIDER_MAP",
    "FalProvider",
    "LocalProvider",
    "MediaProvider",
    "PipelineCache",
    "ProviderRegistry",
    "RemoteProvider",
    "ReplicateProvider",
    "RunpodProvider",
    "TransformersProvider",
    "build_providers",
    "create_registry",
    "detect_provider_from_env",
    "execute_action",
    "global_registry",
    "register_all_providers",
    "register_local_provider",
    "resolve_provider",
]
