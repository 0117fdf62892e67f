"""
FFmpeg process runner for audio extraction.

Runs the ffmpeg binary as an asyncio subprocess with a timeout and turns
failures into FFmpegError.
"""

import asyncio
import os

from ..core.config import settings
from ..core.logging import get_logger

logger = get_logger("media.ffmpeg")

AUDIO_CODECS = {
    "mp3": "libmp3lame",
    "wav": "pcm_s16le",
}

AUDIO_MIME = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
}


class FFmpegError(Exception):
    """Custom exception for FFmpeg operations."""

    pass


class FFmpegTimeoutError(FFmpegError):
    """Exception raised when FFmpeg operation times out."""

    pass


def build_extract_command(input_path: str, output_path: str, fmt: str, binary: str | None = None) -> list[str]:
    """ffmpeg arguments that drop the video stream and encode audio as fmt."""
    codec = AUDIO_CODECS.get(fmt)
    if codec is None:
        raise FFmpegError(f"Unsupported audio format: {fmt}")

    return [
        binary or settings.media.ffmpeg_binary,
        "-i", input_path,
        "-vn",
        "-acodec", codec,
        "-y",
        output_path,
    ]


async def run_ffmpeg(command: list[str], timeout: int | None = None) -> str:
    """Run an ffmpeg command; returns stderr output on success."""
    timeout = timeout or settings.media.extract_timeout

    logger.debug("Executing FFmpeg command", command=" ".join(command))

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise FFmpegError(f"ffmpeg binary not found: {command[0]}")

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise FFmpegTimeoutError(f"ffmpeg timed out after {timeout}s")

    stderr_str = stderr.decode("utf-8", errors="replace")

    if process.returncode != 0:
        # ffmpeg prints its banner first; the cause is at the end
        tail = "\n".join(stderr_str.strip().splitlines()[-5:])
        raise FFmpegError(f"ffmpeg exited with code {process.returncode}: {tail}")

    return stderr_str


async def extract_audio(input_path: str, output_path: str, fmt: str = "mp3") -> str:
    """Extract the audio track of input_path into output_path."""
    command = build_extract_command(input_path, output_path, fmt)
    await run_ffmpeg(command)

    if not os.path.exists(output_path):
        raise FFmpegError(f"Output file was not created: {output_path}")

    logger.info("Audio extracted", input_path=input_path, output_path=output_path, format=fmt)
    return output_path
