"""Output file naming and small file helpers shared by providers."""

import base64
import mimetypes
import secrets
import string
import time
from pathlib import Path

_ALPHABET = string.digits + string.ascii_lowercase

# Extensions mimetypes does not know on every platform
_EXTRA_MIME_TYPES = {
    ".webp": "image/webp",
    ".m4a": "audio/mp4",
    ".webm": "video/webm",
    ".ogg": "audio/ogg",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
}


def _random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def ensure_output_dir(output_dir: str) -> None:
    """Ensure the output directory exists."""
    Path(output_dir).mkdir(parents=True, exist_ok=True)


def generate_output_filename(extension: str, prefix: str = "output") -> str:
    """Generate a unique output filename: <prefix>_<epoch ms>_<random>.<ext>."""
    timestamp = int(time.time() * 1000)
    return f"{prefix}_{timestamp}_{_random_suffix()}.{extension}"


def resolve_output_filename(
    extension: str,
    prefix: str,
    output_name: str | None = None,
    input_source: str | None = None,
) -> str:
    """
    Pick the output filename for an action.

    Args:
        extension: Extension of the produced file, without dot
        prefix: Action prefix ("resized", "generated", ...)
        output_name: User supplied name; the extension is appended if missing
        input_source: Original input path or URL used to derive a base name

    Returns:
        Filename (no directory part)
    """
    if output_name:
        name = Path(output_name).name
        if not Path(name).suffix:
            name = f"{name}.{extension}"
        return name

    if input_source:
        # URLs: use the last path segment without query string
        raw = input_source.split("?", 1)[0].rstrip("/")
        stem = Path(raw).stem
        if stem:
            return f"{stem}_{prefix}_{_random_suffix()}.{extension}"

    return generate_output_filename(extension, prefix)


def get_output_path(output_dir: str, filename: str) -> str:
    """Get the full output path for a file."""
    return str(Path(output_dir) / filename)


def guess_mime(path: str, default: str = "application/octet-stream") -> str:
    """MIME type from a file name or URL extension."""
    suffix = Path(path.split("?", 1)[0]).suffix.lower()
    if suffix in _EXTRA_MIME_TYPES:
        return _EXTRA_MIME_TYPES[suffix]
    mime, _ = mimetypes.guess_type(f"file{suffix}")
    return mime or default


def to_data_url(data: bytes, mime: str) -> str:
    """Encode bytes as a base64 data URL."""
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def from_data_url(url: str) -> tuple[bytes, str]:
    """Decode a base64 data URL into (bytes, mime)."""
    header, _, payload = url.partition(",")
    mime = header[len("data:"):].split(";")[0] or "application/octet-stream"
    return base64.b64decode(payload), mime


def file_size(path: str) -> int:
    return Path(path).stat().st_size
