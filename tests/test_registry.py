"""
Unit tests for provider registration, resolution and action execution.

Tests:
- Registry ordering and overwrite semantics
- Four-step resolution cascade
- Executor error codes (PROVIDER_NOT_FOUND, NO_PROVIDER, UNKNOWN_ERROR)
- Success envelopes passed through untouched
- Concurrent execution against a shared registry
"""

import asyncio
from unittest.mock import patch

import pytest

from agent_media.core.result import ErrorCode, ErrorResult, MediaError, create_error, create_success
from agent_media.core.types import (
    ActionContext,
    GenerateOptions,
    MediaInput,
    ResizeOptions,
)
from agent_media.providers.base import MediaProvider
from agent_media.providers.registry import (
    ProviderRegistry,
    detect_provider_from_env,
    execute_action,
    resolve_provider,
)


class StubProvider(MediaProvider):
    """Provider answering every supported action with a canned result."""

    def __init__(self, name, actions, result=None, error=None, delay=0.0):
        self.name = name
        self.actions = set(actions)
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = []

    def supports(self, action):
        return action in self.actions

    async def execute(self, request, context):
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if self.result is not None:
            return self.result
        return create_success("image", request.action, self.name, f"/tmp/{self.name}.png", "image/png", 10)


def resize_request():
    return ResizeOptions(input=MediaInput.from_source("photo.png"), width=100)


def generate_request():
    return GenerateOptions(prompt="a lighthouse at dusk")


@pytest.fixture
def ctx(tmp_path):
    return ActionContext(output_dir=str(tmp_path))


class TestProviderRegistry:
    """Test registry operations."""

    def test_registration_order(self):
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"]))
        registry.register(StubProvider("fal", ["generate"]))

        assert registry.get_provider_names() == ["local", "fal"]
        assert registry.has("fal")
        assert not registry.has("replicate")
        assert registry.get("replicate") is None
        assert len(registry) == 2

    def test_register_same_name_replaces(self):
        registry = ProviderRegistry()
        first = StubProvider("local", ["resize"])
        second = StubProvider("local", ["crop"])
        registry.register(first)
        registry.register(second)

        assert registry.get_provider_names() == ["local"]
        assert registry.get("local") is second

    def test_find_supporting_providers_preserves_order(self):
        registry = ProviderRegistry()
        a = StubProvider("a", ["generate"])
        b = StubProvider("b", ["resize"])
        c = StubProvider("c", ["generate", "edit"])
        for provider in (a, b, c):
            registry.register(provider)

        assert registry.find_supporting_providers("generate") == [a, c]
        assert registry.find_supporting_providers("upscale") == []


class TestResolveProvider:
    """Test the resolution cascade."""

    @pytest.fixture
    def registry(self):
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize", "convert"]))
        registry.register(StubProvider("fal", ["generate", "edit"]))
        registry.register(StubProvider("replicate", ["generate", "resize"]))
        return registry

    def test_local_preferred_without_signals(self, registry):
        provider = resolve_provider(registry, "resize", environ={})
        assert provider.name == "local"

    def test_explicit_provider_used(self, registry):
        provider = resolve_provider(registry, "resize", "replicate", environ={})
        assert provider.name == "replicate"

    def test_explicit_provider_without_support_does_not_fall_through(self, registry):
        assert resolve_provider(registry, "resize", "fal", environ={}) is None

    def test_explicit_unknown_provider(self, registry):
        assert resolve_provider(registry, "resize", "runpod", environ={"FAL_API_KEY": "k"}) is None

    def test_env_signal_wins_over_local(self, registry):
        provider = resolve_provider(registry, "resize", environ={"REPLICATE_API_TOKEN": "r8_x"})
        assert provider.name == "replicate"

    def test_env_signal_for_incapable_provider_falls_back_to_local(self, registry):
        provider = resolve_provider(registry, "resize", environ={"FAL_API_KEY": "k"})
        assert provider.name == "local"

    def test_first_env_signal_in_map_order(self, registry):
        environ = {"REPLICATE_API_TOKEN": "r8_x", "FAL_API_KEY": "k"}
        assert detect_provider_from_env(environ) == "fal"
        assert resolve_provider(registry, "generate", environ=environ).name == "fal"

    def test_empty_env_value_is_not_a_signal(self):
        assert detect_provider_from_env({"FAL_API_KEY": ""}) is None

    def test_first_capable_provider_in_registration_order(self, registry):
        provider = resolve_provider(registry, "generate", environ={})
        assert provider.name == "fal"

    def test_nothing_capable(self, registry):
        assert resolve_provider(registry, "video-generate", environ={}) is None

    def test_resolution_is_deterministic(self, registry):
        first = resolve_provider(registry, "generate", environ={})
        second = resolve_provider(registry, "generate", environ={})
        assert first is second

    def test_env_provider_for_generate_when_local_cannot(self):
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"]))
        registry.register(StubProvider("fal", ["generate"]))
        registry.register(StubProvider("replicate", ["generate"]))

        provider = resolve_provider(registry, "generate", environ={"REPLICATE_API_TOKEN": "r8_x"})
        assert provider.name == "replicate"


class TestExecuteAction:
    """Test the action executor."""

    @pytest.mark.asyncio
    async def test_resize_goes_to_local(self, ctx):
        registry = ProviderRegistry()
        local = StubProvider("local", ["resize", "convert"])
        fal = StubProvider("fal", ["generate", "edit"])
        registry.register(local)
        registry.register(fal)

        result = await execute_action(registry, resize_request(), ctx)

        assert result.ok
        assert result.provider == "local"
        assert len(local.calls) == 1
        assert fal.calls == []

    @pytest.mark.asyncio
    async def test_explicit_provider_without_support(self, ctx):
        registry = ProviderRegistry()
        registry.register(StubProvider("fal", ["generate", "edit"]))
        registry.register(StubProvider("local", ["resize"]))
        context = ActionContext(output_dir=ctx.output_dir, provider="fal")

        result = await execute_action(registry, resize_request(), context)

        assert not result.ok
        assert result.error.code is ErrorCode.PROVIDER_NOT_FOUND
        assert result.error.message == "Provider 'fal' not found or does not support action 'resize'"

    @pytest.mark.asyncio
    async def test_empty_registry(self, ctx):
        result = await execute_action(ProviderRegistry(), generate_request(), ctx)

        assert result.error.code is ErrorCode.NO_PROVIDER
        assert result.error.message == "No provider available for action 'generate'"

    @pytest.mark.asyncio
    async def test_error_envelope_with_plain_string_code(self, ctx):
        envelope = ErrorResult(error=MediaError(code="API_ERROR", message="quota exceeded"))
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"], result=envelope))

        result = await execute_action(registry, resize_request(), ctx)

        assert result is envelope
        assert result.error.code is ErrorCode.API_ERROR
        assert result.to_dict()["error"] == {"code": "API_ERROR", "message": "quota exceeded"}

    @pytest.mark.asyncio
    async def test_bookkeeping_failure_still_returns_envelope(self, ctx):
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"]))

        with patch("agent_media.providers.registry.metrics.track_action", side_effect=RuntimeError("registry closed")):
            result = await execute_action(registry, resize_request(), ctx)

        assert result.error.code is ErrorCode.UNKNOWN_ERROR
        assert result.error.message == "registry closed"

    @pytest.mark.asyncio
    async def test_env_signal_selects_replicate(self, ctx, monkeypatch):
        monkeypatch.setenv("REPLICATE_API_TOKEN", "r8_test")
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"]))
        registry.register(StubProvider("replicate", ["generate"]))

        result = await execute_action(registry, generate_request(), ctx)

        assert result.provider == "replicate"

    @pytest.mark.asyncio
    async def test_first_capable_non_local_provider(self, ctx):
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"]))
        registry.register(StubProvider("runpod", ["generate"]))
        registry.register(StubProvider("fal", ["generate"]))

        result = await execute_action(registry, generate_request(), ctx)

        assert result.ok
        assert result.provider == "runpod"

    @pytest.mark.asyncio
    async def test_success_envelope_returned_as_is(self, ctx):
        envelope = create_success("image", "resize", "local", "/tmp/x.png", "image/png", 42)
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"], result=envelope))

        result = await execute_action(registry, resize_request(), ctx)

        assert result is envelope

    @pytest.mark.asyncio
    async def test_provider_error_envelope_returned_as_is(self, ctx):
        envelope = create_error(ErrorCode.API_ERROR, "FAL_API_KEY environment variable is not set")
        registry = ProviderRegistry()
        registry.register(StubProvider("fal", ["generate"], result=envelope))

        result = await execute_action(registry, generate_request(), ctx)

        assert result is envelope

    @pytest.mark.asyncio
    async def test_raising_provider_becomes_unknown_error(self, ctx):
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"], error=RuntimeError("disk on fire")))

        result = await execute_action(registry, resize_request(), ctx)

        assert not result.ok
        assert result.error.code is ErrorCode.UNKNOWN_ERROR
        assert result.error.message == "disk on fire"

    @pytest.mark.asyncio
    async def test_non_envelope_return_becomes_unknown_error(self, ctx):
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"], result={"ok": True}))

        result = await execute_action(registry, resize_request(), ctx)

        assert result.error.code is ErrorCode.UNKNOWN_ERROR
        assert "instead of a result envelope" in result.error.message

    @pytest.mark.asyncio
    async def test_failure_does_not_affect_other_calls(self, ctx):
        registry = ProviderRegistry()
        registry.register(StubProvider("local", ["resize"], error=ValueError("bad pixels")))
        registry.register(StubProvider("fal", ["generate"]))

        failed = await execute_action(registry, resize_request(), ctx)
        succeeded = await execute_action(registry, generate_request(), ctx)

        assert not failed.ok
        assert succeeded.ok
        assert registry.get_provider_names() == ["local", "fal"]

    @pytest.mark.asyncio
    async def test_concurrent_executions(self, ctx):
        registry = ProviderRegistry()
        local = StubProvider("local", ["resize"], delay=0.01)
        registry.register(local)

        results = await asyncio.gather(*(execute_action(registry, resize_request(), ctx) for _ in range(10)))

        assert all(result.ok for result in results)
        assert len(local.calls) == 10
