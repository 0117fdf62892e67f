"""
Runpod provider.

Uses Runpod public endpoints: `runsync` for the request, then the job
status route while the job is still queued or running.
Requires RUNPOD_API_KEY.
"""

import asyncio
import time
from typing import Any

import httpx

from ..core.config import settings
from ..core.errors import ActionError, ProviderTimeoutError
from ..core.logging import get_logger
from ..core.result import ErrorCode, MediaResult, create_success
from ..core.types import ActionContext, EditOptions, GenerateOptions, VideoGenerateOptions
from ..services.http import api_request, input_as_url
from ..services.video_gen import parse_video_output, prepare_image_input, runpod_video_input
from .base import RemoteProvider

logger = get_logger("providers.runpod")

GENERATE_ENDPOINT = "wan-2-6-t2i"
EDIT_ENDPOINT = "nano-banana-pro-edit"

COMPLETED = "COMPLETED"
FAILED_STATUSES = ("FAILED", "CANCELLED", "TIMED_OUT")


def output_url(output: Any) -> str:
    """URL of the produced file in a Runpod job output."""
    if isinstance(output, str) and output:
        return output
    if isinstance(output, list) and output:
        return output_url(output[0])
    if isinstance(output, dict):
        for key in ("image_url", "video_url", "result", "url", "images", "output"):
            if output.get(key):
                return output_url(output[key])
    raise ActionError(ErrorCode.PROVIDER_ERROR, "No output returned from Runpod")


class RunpodProvider(RemoteProvider):
    """Runpod public endpoints."""

    name = "runpod"
    api_key_env = "RUNPOD_API_KEY"
    base_url = "https://api.runpod.ai/v2"
    supported_actions = ("generate", "edit", "video-generate")

    async def run_job(self, endpoint: str, payload: dict[str, Any]) -> Any:
        """Run a job on a public endpoint and return its output."""
        logger.debug("Submitting job", endpoint=endpoint)

        async with self.api_client() as client:
            response = await api_request(
                client, "POST", f"{self.base_url}/{endpoint}/runsync", self.name, json={"input": payload}
            )
            job = response.json()

            if job.get("status") != COMPLETED and job.get("status") not in FAILED_STATUSES:
                job = await self._poll_job(client, endpoint, job.get("id"))

        status = job.get("status")
        if status != COMPLETED:
            error = job.get("error") or f"Job {status}"
            raise ActionError(ErrorCode.PROVIDER_ERROR, f"Runpod job {str(status).lower()}: {error}")

        return job.get("output")

    async def _poll_job(self, client: httpx.AsyncClient, endpoint: str, job_id: str) -> dict[str, Any]:
        """Poll job status until it completes or fails."""
        max_wait = settings.providers.max_poll_wait
        start_time = time.time()

        while time.time() - start_time < max_wait:
            await asyncio.sleep(settings.providers.poll_interval)

            response = await api_request(client, "GET", f"{self.base_url}/{endpoint}/status/{job_id}", self.name)
            job = response.json()

            if job.get("status") == COMPLETED or job.get("status") in FAILED_STATUSES:
                return job

        raise ProviderTimeoutError(f"Runpod job {job_id} timed out after {max_wait} seconds")

    async def _generate(self, request: GenerateOptions, context: ActionContext) -> MediaResult:
        if not request.prompt:
            raise ActionError(ErrorCode.INVALID_INPUT, "Prompt is required for image generation")

        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "size": f"{request.width or 1280}*{request.height or 720}",
        }
        if request.seed is not None:
            payload["seed"] = request.seed

        output = await self.run_job(request.model or GENERATE_ENDPOINT, payload)
        output_path, size = await self.save_url(output_url(output), "png", "generated", context)

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
            image = await input_as_url(client, request.input)

        output = await self.run_job(request.model or EDIT_ENDPOINT, {"prompt": request.prompt, "images": [image]})
        output_path, size = await self.save_url(output_url(output), "png", "edited", context)

        return create_success(
            media_type="image",
            action="edit",
            provider=self.name,
            output_path=output_path,
            mime="image/png",
            bytes=size,
        )

    async def _video_generate(self, request: VideoGenerateOptions, context: ActionContext) -> MediaResult:
        if not request.prompt:
            raise ActionError(ErrorCode.INVALID_INPUT, "Prompt is required for video generation")

        async with self.client() as client:
            image_url = await prepare_image_input(client, request.input)

        endpoint, payload = runpod_video_input(request, image_url)
        output = await self.run_job(endpoint, payload)
        video = parse_video_output(output)

        output_path, size = await self.save_url(video.url, "mp4", "generated", context)

        return create_success(
            media_type="video",
            action="video-generate",
            provider=self.name,
            output_path=output_path,
            mime=video.content_type,
            bytes=size,
        )
