"""
AI Gateway provider (OpenAI compatible endpoint).

- generate: image models through /images/generations (default bfl/flux-2-pro)
- edit: multimodal chat models that return images (default google/gemini-3-pro-image)

Requires AI_GATEWAY_API_KEY.
"""

import base64
from typing import Any

from ..core.config import settings
from ..core.errors import ActionError, ProviderAPIError
from ..core.logging import get_logger
from ..core.result import ErrorCode, MediaResult, create_success
from ..core.types import ActionContext, EditOptions, GenerateOptions
from ..services.http import api_request, extract_error_message, input_as_url
from .base import RemoteProvider

logger = get_logger("providers.ai_gateway")

GENERATE_MODEL = "bfl/flux-2-pro"
EDIT_MODEL = "google/gemini-3-pro-image"


def edited_image_url(response: dict[str, Any]) -> str:
    """First generated image of a chat completion (URL or data URL)."""
    for choice in response.get("choices") or []:
        message = choice.get("message") or {}
        for image in message.get("images") or []:
            url = (image.get("image_url") or {}).get("url")
            if url:
                return url
    raise ActionError(ErrorCode.PROVIDER_ERROR, "No image was generated by the model")


class AIGatewayProvider(RemoteProvider):
    """Vercel AI Gateway."""

    name = "ai-gateway"
    api_key_env = "AI_GATEWAY_API_KEY"
    base_url = "https://ai-gateway.vercel.sh/v1"
    supported_actions = ("generate", "edit")

    async def post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        async with self.api_client() as client:
            response = await api_request(
                client,
                "POST",
                f"{self.base_url}{path}",
                self.name,
                json=body,
                timeout=settings.providers.max_poll_wait,
            )
        data = response.json()

        # Some upstream failures come back as 200 with an error body
        if isinstance(data, dict) and data.get("error"):
            raise ProviderAPIError(f"{self.name} API error: {extract_error_message(data['error'])}")
        return data

    async def _generate(self, request: GenerateOptions, context: ActionContext) -> MediaResult:
        if not request.prompt:
            raise ActionError(ErrorCode.INVALID_INPUT, "Prompt is required for image generation")

        body: dict[str, Any] = {
            "model": request.model or GENERATE_MODEL,
            "prompt": request.prompt,
            "n": 1,
            "size": f"{request.width or 1280}x{request.height or 720}",
            "response_format": "b64_json",
        }
        if request.seed is not None:
            body["seed"] = request.seed

        data = await self.post("/images/generations", body)

        images = data.get("data") or []
        if not images:
            raise ActionError(ErrorCode.PROVIDER_ERROR, "No image was generated")
        if not images[0].get("b64_json"):
            raise ActionError(ErrorCode.PROVIDER_ERROR, "Generated image has no data")

        output_path, size = await self.save_bytes(
            base64.b64decode(images[0]["b64_json"]), "png", "generated", context
        )

        return create_success(
            media_type="image",
            action="generate",
            provider=self.name,
            output_path=output_path,
            mime="image/png",
            bytes=size,
        )

    async def _edit(self, request: EditOptions, context: ActionContext) -> MediaResult:
        if not request.input or not request.input.source:
            raise ActionError(ErrorCode.INVALID_INPUT, "Input source is required for image editing")
        if not request.prompt:
            raise ActionError(ErrorCode.INVALID_INPUT, "Prompt is required for image editing")

        async with self.client() as client:
            image = await input_as_url(client, request.input, inline_remote=True)

        data = await self.post(
            "/chat/completions",
            {
                "model": request.model or EDIT_MODEL,
                "modalities": ["text", "image"],
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "image_url", "image_url": {"url": image}},
                            {"type": "text", "text": request.prompt},
                        ],
                    }
                ],
            },
        )

        output_path, size = await self.save_url(edited_image_url(data), "png", "edited", context)

        return create_success(
            media_type="image",
            action="edit",
            provider=self.name,
            output_path=output_path,
            mime="image/png",
            bytes=size,
        )
