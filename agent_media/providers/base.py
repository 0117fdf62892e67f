"""
Provider contract and the shared provider template.

A provider is a named backend that declares which actions it handles and
executes requests for them, always answering with a result envelope.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from pathlib import Path

import httpx

from ..core.config import get_credential
from ..core.errors import error_code_for, error_message_for
from ..core.files import ensure_output_dir, get_output_path, resolve_output_filename
from ..core.logging import get_logger
from ..core.result import ErrorCode, MediaResult, create_error
from ..core.types import ActionContext, ActionOptions
from ..services.http import create_client, download_to

logger = get_logger("providers.base")


class MediaProvider(ABC):
    """Abstract base class for media providers."""

    name: str = ""

    @abstractmethod
    def supports(self, action: str) -> bool:
        pass

    @abstractmethod
    async def execute(self, request: ActionOptions, context: ActionContext) -> MediaResult:
        pass


class BaseProvider(MediaProvider):
    """
    Common provider template.

    Subclasses list their actions in `supported_actions` and implement one
    coroutine per action named after it (`remove-background` ->
    `_remove_background`). Any exception raised by a handler is classified
    into an error envelope; handlers abort early by raising ActionError.
    """

    supported_actions: tuple[str, ...] = ()

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        # Injected in tests to stub network traffic
        self._transport = transport

    def supports(self, action: str) -> bool:
        return action in self.supported_actions

    def client(self) -> httpx.AsyncClient:
        """Unauthenticated client for fetching inputs and downloading results."""
        return create_client(transport=self._transport)

    def output_path(self, extension: str, prefix: str, context: ActionContext) -> str:
        """Where this action's output goes, per the context's naming hints."""
        filename = resolve_output_filename(extension, prefix, context.output_name, context.input_source)
        return get_output_path(context.output_dir, filename)

    async def save_url(self, url: str, extension: str, prefix: str, context: ActionContext) -> tuple[str, int]:
        """Download a generated asset into the output directory."""
        output_path = self.output_path(extension, prefix, context)
        async with self.client() as client:
            size = await download_to(client, url, output_path)
        return output_path, size

    async def save_bytes(self, data: bytes, extension: str, prefix: str, context: ActionContext) -> tuple[str, int]:
        output_path = self.output_path(extension, prefix, context)
        await asyncio.to_thread(Path(output_path).write_bytes, data)
        return output_path, len(data)

    def _handler_for(self, action: str):
        if not self.supports(action):
            return None
        return getattr(self, "_" + action.replace("-", "_"), None)

    async def execute(self, request: ActionOptions, context: ActionContext) -> MediaResult:
        action = request.action
        handler = self._handler_for(action)
        if handler is None:
            return create_error(
                ErrorCode.INVALID_INPUT,
                f"Action '{action}' not supported by {self.name} provider",
            )

        start_time = time.time()
        try:
            ensure_output_dir(context.output_dir)
            return await handler(request, context)
        except Exception as e:
            code = error_code_for(e)
            logger.warning(
                "Provider action failed",
                provider=self.name,
                action=action,
                error_code=code.value,
                error=str(e),
                duration=time.time() - start_time,
                exc_info=code == ErrorCode.PROVIDER_ERROR,
            )
            return create_error(code, error_message_for(e))


class RemoteProvider(BaseProvider):
    """Provider backed by an HTTP API that needs a credential."""

    api_key_env: str = ""

    @property
    def api_key(self) -> str:
        return get_credential(self.api_key_env)

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def api_client(self) -> httpx.AsyncClient:
        """Client carrying the provider credential, for API calls only."""
        return create_client(headers=self.auth_headers(), transport=self._transport)

    async def execute(self, request: ActionOptions, context: ActionContext) -> MediaResult:
        if not self.api_key:
            return create_error(
                ErrorCode.API_ERROR,
                f"{self.api_key_env} environment variable is not set",
            )
        return await super().execute(request, context)
