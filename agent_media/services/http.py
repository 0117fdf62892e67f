"""
HTTP plumbing shared by providers.

Remote APIs are called through `api_request`, which retries transport
errors and rate limits with exponential backoff and converts error
statuses into ProviderAPIError. Input fetches and result downloads map
failures to NETWORK_ERROR.
"""

import asyncio
from pathlib import Path
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import settings
from ..core.errors import ActionError, ProviderAPIError, ProviderRateLimitError
from ..core.files import from_data_url, guess_mime, to_data_url
from ..core.logging import get_logger
from ..core.result import ErrorCode
from ..core.types import MediaInput
from ..observability.metrics import track_external_api_time

logger = get_logger("services.http")


def create_client(
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an HTTP client with the configured timeout."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.providers.http_timeout),
        headers=headers or {},
        follow_redirects=True,
        transport=transport,
    )


def extract_error_message(payload: Any, depth: int = 0) -> str:
    """Dig a readable message out of an error payload (nested up to 3 levels)."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict) and depth < 3:
        for key in ("message", "detail", "error"):
            if key in payload and payload[key]:
                return extract_error_message(payload[key], depth + 1)
    if isinstance(payload, list) and payload and depth < 3:
        return extract_error_message(payload[0], depth + 1)
    return "Unknown error"


def raise_for_api_error(response: httpx.Response, provider: str) -> None:
    """Raise ProviderAPIError for non-success responses."""
    if response.status_code == 429:
        raise ProviderRateLimitError(f"{provider} rate limit exceeded", 429)

    if response.status_code >= 400:
        error_text = response.text
        try:
            error_text = extract_error_message(response.json())
        except ValueError:
            pass
        raise ProviderAPIError(
            f"{provider} API error: {response.status_code} - {error_text}",
            response.status_code,
        )


# Backoff between attempts; the attempt limit is read from settings per call
retry_wait = wait_exponential(multiplier=1, min=2, max=10)


async def _send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    provider: str,
    **kwargs,
) -> httpx.Response:
    """Send one API request, tracking duration and status."""
    with track_external_api_time(provider) as call:
        response = await client.request(method, url, **kwargs)
        call["status_code"] = response.status_code

    logger.debug("API call", provider=provider, method=method, url=url, status_code=response.status_code)
    raise_for_api_error(response, provider)
    return response


async def api_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    provider: str,
    **kwargs,
) -> httpx.Response:
    """Send an API request, retrying transport errors and rate limits."""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(settings.providers.max_retry_attempts),
        wait=retry_wait,
        retry=retry_if_exception_type((httpx.TransportError, ProviderRateLimitError)),
        reraise=True,
    ):
        with attempt:
            response = await _send(client, method, url, provider, **kwargs)
    return response


async def fetch_bytes(client: httpx.AsyncClient, url: str) -> tuple[bytes, str]:
    """Download a URL into memory; returns (content, content type)."""
    response = await client.get(url)
    if not response.is_success:
        raise ActionError(
            ErrorCode.NETWORK_ERROR,
            f"Failed to fetch URL: {response.status_code} {response.reason_phrase}",
        )
    content_type = response.headers.get("content-type", "").split(";")[0].strip()
    return response.content, content_type or guess_mime(url)


async def read_input(client: httpx.AsyncClient, media_input: MediaInput) -> tuple[bytes, str]:
    """Bytes and MIME type of a local or remote input."""
    if media_input.is_url:
        return await fetch_bytes(client, media_input.source)

    data = await asyncio.to_thread(Path(media_input.source).read_bytes)
    return data, guess_mime(media_input.source)


async def input_as_url(
    client: httpx.AsyncClient,
    media_input: MediaInput,
    inline_remote: bool = False,
) -> str:
    """
    Reference to an input that a remote API can consume.

    URLs pass through unchanged unless `inline_remote` is set; local files
    (and inlined URLs) become base64 data URLs.
    """
    if media_input.is_url and not inline_remote:
        return media_input.source

    data, mime = await read_input(client, media_input)
    return to_data_url(data, mime)


async def download_to(client: httpx.AsyncClient, url: str, output_path: str) -> int:
    """Download a generated asset (URL or data URL) to output_path; returns its size in bytes."""
    if url.startswith("data:"):
        content, _ = from_data_url(url)
    else:
        response = await client.get(url)
        if not response.is_success:
            raise ActionError(
                ErrorCode.NETWORK_ERROR,
                f"Failed to download generated file: {response.status_code} {response.reason_phrase}",
            )
        content = response.content

    await asyncio.to_thread(Path(output_path).write_bytes, content)
    return len(content)
