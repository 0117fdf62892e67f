"""
Raster image operations backing the local provider.

All functions are synchronous Pillow calls; the provider runs them in a
worker thread.
"""

import io
import math

from PIL import Image, UnidentifiedImageError

from ..core.errors import ActionError
from ..core.result import ErrorCode

FORMAT_MIME = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}

PIL_FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "webp": "WEBP",
}


def _round(value: float) -> int:
    """Round half up."""
    return math.floor(value + 0.5)


def load_image(data: bytes) -> Image.Image:
    """Decode image bytes."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ActionError(ErrorCode.INVALID_FORMAT, f"Unsupported or corrupt image data: {e}")
    return img


def source_format(img: Image.Image) -> str:
    """Output format matching the decoded source, png when unknown."""
    fmt = (img.format or "png").lower()
    if fmt == "jpeg":
        return "jpg"
    return fmt if fmt in FORMAT_MIME else "png"


def extension_for(fmt: str) -> str:
    return "jpg" if fmt == "jpeg" else fmt


def has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def parse_hex_color(color: str) -> tuple[int, int, int]:
    """'#rrggbb', 'rrggbb' or '#rgb' to an RGB tuple."""
    value = color.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ActionError(ErrorCode.INVALID_INPUT, f"Invalid hex color: {color}")
    try:
        return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))
    except ValueError:
        raise ActionError(ErrorCode.INVALID_INPUT, f"Invalid hex color: {color}")


def flatten(img: Image.Image, background: tuple[int, int, int]) -> Image.Image:
    """Composite any transparency onto a solid background, returning RGB."""
    if not has_alpha(img):
        return img.convert("RGB")

    rgba = img.convert("RGBA")
    canvas = Image.new("RGB", rgba.size, background)
    canvas.paste(rgba, mask=rgba.split()[-1])
    return canvas


def resize_image(
    img: Image.Image,
    width: int | None,
    height: int | None,
    maintain_aspect_ratio: bool = True,
    allow_enlarge: bool = False,
) -> Image.Image:
    """
    Resize to the requested box.

    With maintain_aspect_ratio the result fits inside the box (a missing
    side is unconstrained); otherwise each given side is set exactly.
    Unless allow_enlarge is set the result is capped at the source size.
    """
    if (width is not None and width <= 0) or (height is not None and height <= 0):
        raise ActionError(ErrorCode.INVALID_INPUT, "Width and height must be positive")

    src_width, src_height = img.size

    if maintain_aspect_ratio:
        scales = []
        if width:
            scales.append(width / src_width)
        if height:
            scales.append(height / src_height)
        if not scales:
            return img.copy()
        scale = min(scales)
        if not allow_enlarge:
            scale = min(scale, 1.0)
        new_size = (max(1, _round(src_width * scale)), max(1, _round(src_height * scale)))
    elif allow_enlarge:
        new_size = (width or src_width, height or src_height)
    else:
        new_size = (
            min(width or src_width, src_width),
            min(height or src_height, src_height),
        )

    if new_size == img.size:
        return img.copy()
    return img.resize(new_size, Image.Resampling.LANCZOS)


def extend_image(img: Image.Image, padding: int, color: str) -> Image.Image:
    """Pad all sides with a solid color, flattening transparency onto it."""
    if padding < 0:
        raise ActionError(ErrorCode.INVALID_INPUT, "Padding must be a non-negative number of pixels")

    background = parse_hex_color(color)
    flat = flatten(img, background)

    width, height = flat.size
    canvas = Image.new("RGB", (width + padding * 2, height + padding * 2), background)
    canvas.paste(flat, (padding, padding))
    return canvas


def crop_image(
    img: Image.Image,
    width: int,
    height: int,
    focus_x: float = 50,
    focus_y: float = 50,
) -> Image.Image:
    """Crop a width x height box centred on a focal point given in percent."""
    if width <= 0 or height <= 0:
        raise ActionError(ErrorCode.INVALID_INPUT, "Crop width and height must be positive")

    image_width, image_height = img.size
    if width > image_width or height > image_height:
        raise ActionError(
            ErrorCode.INVALID_INPUT,
            f"Crop dimensions ({width}x{height}) exceed image dimensions ({image_width}x{image_height})",
        )

    center_x = _round(focus_x / 100 * image_width)
    center_y = _round(focus_y / 100 * image_height)

    left = center_x - _round(width / 2)
    top = center_y - _round(height / 2)

    # Clamp to image bounds
    left = max(0, min(left, image_width - width))
    top = max(0, min(top, image_height - height))

    return img.crop((left, top, left + width, top + height))


def save_image(
    img: Image.Image,
    output_path: str,
    fmt: str,
    quality: int | None = None,
    dpi: int | None = None,
) -> None:
    """Encode img to output_path in fmt, with optional quality and DPI metadata."""
    pil_format = PIL_FORMATS.get(fmt)
    if pil_format is None:
        raise ActionError(ErrorCode.INVALID_FORMAT, f"Unsupported output format: {fmt}")

    params = {}
    if pil_format == "JPEG":
        img = flatten(img, (255, 255, 255)) if has_alpha(img) else img.convert("RGB")
    elif pil_format == "PNG" and img.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
        img = img.convert("RGBA")

    if quality is not None and pil_format in ("JPEG", "WEBP"):
        params["quality"] = quality
    if dpi:
        params["dpi"] = (dpi, dpi)

    img.save(output_path, pil_format, **params)
