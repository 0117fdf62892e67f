"""
Provider registry, resolution cascade and the action executor.

`execute_action` is the single entry point request handling goes
through: it picks a provider, runs the action and always returns a
result envelope, never raising.
"""

import os
import time
from collections.abc import Mapping

from ..core.logging import get_logger
from ..core.result import RESULT_TYPES, ErrorCode, MediaResult, create_error
from ..core.types import ActionContext, ActionOptions
from ..observability.metrics import metrics
from .base import MediaProvider

logger = get_logger("providers.registry")

# Provider that is preferred whenever nothing forces a remote choice
LOCAL_PROVIDER_NAME = "local"

# Ordered: the first credential found selects the provider
ENV_PROVIDER_MAP: dict[str, str] = {
    "FAL_API_KEY": "fal",
    "REPLICATE_API_TOKEN": "replicate",
    "RUNPOD_API_KEY": "runpod",
}


class ProviderRegistry:
    """Named providers in registration order."""

    def __init__(self):
        self._providers: dict[str, MediaProvider] = {}

    def register(self, provider: MediaProvider) -> None:
        """Insert a provider, replacing any previous one with the same name."""
        self._providers[provider.name] = provider

    def get(self, name: str) -> MediaProvider | None:
        return self._providers.get(name)

    def get_provider_names(self) -> list[str]:
        return list(self._providers)

    def has(self, name: str) -> bool:
        return name in self._providers

    def find_supporting_providers(self, action: str) -> list[MediaProvider]:
        """Providers declaring support for action, in registration order."""
        return [provider for provider in self._providers.values() if provider.supports(action)]

    def __len__(self) -> int:
        return len(self._providers)


def detect_provider_from_env(environ: Mapping[str, str] | None = None) -> str | None:
    """Name of the provider whose credential is set first in ENV_PROVIDER_MAP order."""
    environ = os.environ if environ is None else environ
    for env_var, provider_name in ENV_PROVIDER_MAP.items():
        if environ.get(env_var):
            return provider_name
    return None


def resolve_provider(
    registry: ProviderRegistry,
    action: str,
    explicit: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> MediaProvider | None:
    """
    Choose the provider for an action.

    1. An explicitly named provider is used only if it exists and supports
       the action; otherwise resolution stops with None.
    2. The provider implied by the first credential present in the
       environment, if registered and capable.
    3. The provider named "local", if registered and capable.
    4. The first capable provider in registration order.
    """
    if explicit:
        provider = registry.get(explicit)
        if provider is not None and provider.supports(action):
            return provider
        return None

    env_provider = detect_provider_from_env(environ)
    if env_provider:
        provider = registry.get(env_provider)
        if provider is not None and provider.supports(action):
            return provider

    local = registry.get(LOCAL_PROVIDER_NAME)
    if local is not None and local.supports(action):
        return local

    supporting = registry.find_supporting_providers(action)
    return supporting[0] if supporting else None


def _record_outcome(action: str, provider: str, result: MediaResult, duration: float) -> None:
    """Metrics and log line for an envelope returned by a provider."""
    metrics.track_action(
        action,
        provider,
        "success" if result.ok else "error",
        duration,
        output_bytes=getattr(result, "bytes", 0),
    )

    if result.ok:
        logger.info(
            "Action completed",
            action=action,
            provider=provider,
            output_path=result.output_path,
            duration=duration,
        )
    else:
        logger.warning(
            "Action failed",
            action=action,
            provider=provider,
            error_code=result.error.code.value,
            error=result.error.message,
            duration=duration,
        )


async def execute_action(
    registry: ProviderRegistry,
    request: ActionOptions,
    context: ActionContext,
) -> MediaResult:
    """Resolve a provider for the request and execute it."""
    action = getattr(request, "action", None)
    start_time = time.time()

    try:
        provider = resolve_provider(registry, action, context.provider)

        if provider is None:
            if context.provider:
                result = create_error(
                    ErrorCode.PROVIDER_NOT_FOUND,
                    f"Provider '{context.provider}' not found or does not support action '{action}'",
                )
            else:
                result = create_error(
                    ErrorCode.NO_PROVIDER,
                    f"No provider available for action '{action}'",
                )
            metrics.track_resolution_failure(str(action), result.error.code.value)
            logger.warning(
                "Provider resolution failed",
                action=action,
                requested_provider=context.provider,
                error_code=result.error.code.value,
            )
            return result

        logger.debug(
            "Provider resolved",
            action=action,
            provider=provider.name,
            explicit=bool(context.provider),
        )

        result = await provider.execute(request, context)

        if not isinstance(result, RESULT_TYPES):
            raise TypeError(
                f"Provider '{provider.name}' returned {type(result).__name__} instead of a result envelope"
            )

        _record_outcome(str(action), provider.name, result, time.time() - start_time)
        return result

    except Exception as e:
        logger.error("Action execution failed", action=action, error=str(e), exc_info=True)
        return create_error(ErrorCode.UNKNOWN_ERROR, str(e) or e.__class__.__name__)


# Process-wide registry, populated by register_all_providers()
global_registry = ProviderRegistry()
