"""Image operations used by the icon export.

Every operation takes a decoded SourceImage and returns freshly encoded PNG
bytes; the source is never modified. Fill rule shared by all resizes: the
caller's background color if given, else transparent black for sources
with alpha, else opaque white. A caller color also flattens the result
(alpha removed).
"""

import base64
import binascii
import io
import logging
import math
import re
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from PIL import Image, ImageChops, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]

SUPPORTED_FORMATS = ("PNG", "JPEG", "MPO", "WEBP")

# Multi-picture JPEGs (phone cameras) decode through their first frame
_FORMAT_ALIASES = {"MPO": "JPEG"}

# Signatures of the supported formats, used to tell damaged files from unknown ones
_MAGIC_PREFIXES = (b"\x89PNG\r\n\x1a\n", b"\xff\xd8\xff")

TRANSPARENT_BLACK: RGBA = (0, 0, 0, 0)
OPAQUE_WHITE: RGBA = (255, 255, 255, 255)
OPAQUE_BLACK: RGBA = (0, 0, 0, 255)

MAX_PADDING_PERCENT = 20

# Adaptive icon foreground: 72dp safe zone inside a 108dp layer
ADAPTIVE_SAFE_ZONE_RATIO = 72 / 108

_HEX_COLOR_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_HEX_DIGITS_RE = re.compile(r"^[0-9a-fA-F]+$")
_DATA_URL_PREFIX_RE = re.compile(r"^data:image/[\w.+-]+;base64,")
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


class InvalidImagePayloadError(ValueError):
    """Raised when an image payload is not valid base64."""
    pass


class DecodeError(Exception):
    """Raised when image bytes cannot be turned into a bitmap."""
    pass


class UnsupportedImageFormatError(DecodeError):
    pass


class CorruptImageError(DecodeError):
    pass


class ImageTooLargeError(DecodeError):
    pass


@dataclass(frozen=True)
class SourceImage:
    """Decoded source bitmap, normalized to RGB or RGBA."""
    image: Image.Image
    width: int
    height: int
    channels: int
    has_alpha: bool
    format: str


# ---------------------------------------------------------------------------
# Numeric and color helpers
# ---------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    """Round half away from zero (Python's round() rounds half to even)."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def is_valid_hex_color(value) -> bool:
    return isinstance(value, str) and _HEX_COLOR_RE.match(value) is not None


def parse_hex_color(value: str) -> RGBA:
    """Parse #rgb, #rrggbb or #rrggbbaa. Unparseable input yields opaque black."""
    if not isinstance(value, str):
        return OPAQUE_BLACK
    digits = value[1:] if value.startswith("#") else value
    if not _HEX_DIGITS_RE.match(digits):
        return OPAQUE_BLACK

    if len(digits) == 3:
        r, g, b = (int(c * 2, 16) for c in digits)
        return (r, g, b, 255)
    if len(digits) in (6, 8):
        r = int(digits[0:2], 16)
        g = int(digits[2:4], 16)
        b = int(digits[4:6], 16)
        a = int(digits[6:8], 16) if len(digits) == 8 else 255
        return (r, g, b, a)
    return OPAQUE_BLACK


def clamp_padding(padding_percent: float) -> float:
    return max(0, min(MAX_PADDING_PERCENT, padding_percent))


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def decode_base64_image(payload: str) -> bytes:
    """Decode a base64 image payload, with or without a data URL prefix."""
    if not isinstance(payload, str):
        raise InvalidImagePayloadError("Image payload must be a string")

    data = _DATA_URL_PREFIX_RE.sub("", payload, count=1)
    if not data or not _BASE64_RE.match(data):
        raise InvalidImagePayloadError("Invalid base64 image format")

    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImagePayloadError("Invalid base64 image format")

    if not decoded:
        raise InvalidImagePayloadError("Image payload is empty")
    return decoded


def _looks_like_supported_format(data: bytes) -> bool:
    if data.startswith(_MAGIC_PREFIXES):
        return True
    return data[:4] == b"RIFF" and data[8:12] == b"WEBP"


def _normalize_mode(image: Image.Image) -> Image.Image:
    # tRNS color keys count as alpha, RGB sources included
    if "transparency" in image.info and image.mode != "RGBA":
        return image.convert("RGBA")
    if image.mode in ("RGB", "RGBA"):
        return image
    if image.mode in ("LA", "PA", "La", "RGBa"):
        return image.convert("RGBA")
    return image.convert("RGB")


def decode_image(data: bytes, max_pixels: Optional[int] = None) -> SourceImage:
    """Decode PNG, JPEG or WebP bytes into a SourceImage.

    Raises:
        UnsupportedImageFormatError: bytes are not a supported raster format
        CorruptImageError: bytes look like a supported format but fail to decode
        ImageTooLargeError: decoded size exceeds max_pixels
    """
    if not data:
        raise UnsupportedImageFormatError("Image data is empty")

    try:
        image = Image.open(io.BytesIO(data))
    except Image.DecompressionBombError as e:
        raise ImageTooLargeError(str(e))
    except UnidentifiedImageError:
        if _looks_like_supported_format(data):
            raise CorruptImageError("Image data is corrupted")
        raise UnsupportedImageFormatError("Unsupported image format")
    except (OSError, SyntaxError, ValueError) as e:
        raise CorruptImageError(f"Image data is corrupted: {e}")

    if image.format not in SUPPORTED_FORMATS:
        raise UnsupportedImageFormatError(f"Unsupported image format: {image.format}")

    width, height = image.size
    if width <= 0 or height <= 0:
        raise CorruptImageError("Image has no pixels")
    if max_pixels is not None and width * height > max_pixels:
        raise ImageTooLargeError(f"Image is {width}x{height}, limit is {max_pixels} pixels")

    source_format = _FORMAT_ALIASES.get(image.format, image.format)
    try:
        if getattr(image, "n_frames", 1) > 1:
            image.seek(0)
        image.load()
        image = ImageOps.exif_transpose(image)
        image = _normalize_mode(image)
    except MemoryError:
        raise ImageTooLargeError("Not enough memory to decode image")
    except Image.DecompressionBombError as e:
        raise ImageTooLargeError(str(e))
    except (OSError, SyntaxError, ValueError, EOFError) as e:
        raise CorruptImageError(f"Image data is corrupted: {e}")

    has_alpha = image.mode == "RGBA"
    logger.debug(f"Decoded {source_format} {image.width}x{image.height} (alpha={has_alpha})")
    return SourceImage(
        image=image,
        width=image.width,
        height=image.height,
        channels=len(image.getbands()),
        has_alpha=has_alpha,
        format=source_format,
    )


# ---------------------------------------------------------------------------
# Internal image helpers (return Pillow images)
# ---------------------------------------------------------------------------

def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", compress_level=6)
    return buffer.getvalue()


def _fill_color(source: SourceImage, background_color: Optional[str]) -> RGBA:
    if background_color:
        return parse_hex_color(background_color)
    return TRANSPARENT_BLACK if source.has_alpha else OPAQUE_WHITE


def _canvas_mode(source: SourceImage, background_color: Optional[str]) -> str:
    return "RGBA" if background_color or source.has_alpha else "RGB"


def _mode_fill(mode: str, fill: RGBA):
    return fill if mode == "RGBA" else fill[:3]


def _contain(source: SourceImage, box: int) -> Image.Image:
    """Scale the source to fit inside box x box, keeping aspect ratio."""
    scale = min(box / source.width, box / source.height)
    new_width = min(box, max(1, round_half_up(source.width * scale)))
    new_height = min(box, max(1, round_half_up(source.height * scale)))
    return source.image.resize((new_width, new_height), Image.Resampling.LANCZOS)


def _fit_on_canvas(source: SourceImage, size: int, background_color: Optional[str]) -> Image.Image:
    """Contain-fit the source into a centered size x size canvas (unflattened)."""
    mode = _canvas_mode(source, background_color)
    fill = _fill_color(source, background_color)

    fitted = _contain(source, size)
    if fitted.mode != mode:
        fitted = fitted.convert(mode)

    canvas = Image.new(mode, (size, size), _mode_fill(mode, fill))
    canvas.paste(fitted, ((size - fitted.width) // 2, (size - fitted.height) // 2))
    return canvas


def _flatten(image: Image.Image, background_color: str) -> Image.Image:
    r, g, b, _ = parse_hex_color(background_color)
    backdrop = Image.new("RGBA", image.size, (r, g, b, 255))
    return Image.alpha_composite(backdrop, image.convert("RGBA")).convert("RGB")


def _resized(source: SourceImage, size: int, background_color: Optional[str]) -> Image.Image:
    canvas = _fit_on_canvas(source, size, background_color)
    if background_color:
        canvas = _flatten(canvas, background_color)
    return canvas


def _padded(
    source: SourceImage,
    size: int,
    padding_percent: float,
    background_color: Optional[str],
) -> Image.Image:
    padding_percent = clamp_padding(padding_percent)
    if padding_percent == 0:
        return _resized(source, size, background_color)

    padding = round_half_up(size * padding_percent / 100)
    inner_size = size - 2 * padding

    mode = _canvas_mode(source, background_color)
    fill = _mode_fill(mode, _fill_color(source, background_color))

    inner = _fit_on_canvas(source, inner_size, background_color)
    canvas = ImageOps.expand(inner, border=padding, fill=fill)
    if background_color:
        canvas = _flatten(canvas, background_color)
    return canvas


def circle_mask(size: int) -> Image.Image:
    """Hard-edged mask: 255 for pixel centers inside the circle of diameter size."""
    centers = np.arange(size, dtype=np.float64) + 0.5
    radius = size / 2
    dx = centers[np.newaxis, :] - radius
    dy = centers[:, np.newaxis] - radius
    inside = dx * dx + dy * dy <= radius * radius
    return Image.fromarray(np.where(inside, 255, 0).astype(np.uint8))


# ---------------------------------------------------------------------------
# Public transforms (return PNG bytes)
# ---------------------------------------------------------------------------

def resize_to_square(source: SourceImage, size: int, background_color: Optional[str] = None) -> bytes:
    """Contain-fit the source into a size x size PNG."""
    return encode_png(_resized(source, size, background_color))


def add_padding(
    source: SourceImage,
    size: int,
    padding_percent: float,
    background_color: Optional[str] = None,
) -> bytes:
    """Resize into the inner area and surround it with padding_percent of size on every side.

    padding_percent is clamped to [0, 20]; 0 gives exactly resize_to_square().
    """
    return encode_png(_padded(source, size, padding_percent, background_color))


def mask_circular(
    source: SourceImage,
    size: int,
    padding_percent: float = 0,
    background_color: Optional[str] = None,
) -> bytes:
    """Resize (with optional padding) then cut the result to a circle."""
    base = _padded(source, size, padding_percent, background_color).convert("RGBA")
    base.putalpha(ImageChops.multiply(base.getchannel("A"), circle_mask(size)))
    return encode_png(base)


def composite_adaptive_foreground(source: SourceImage, canvas_size: int) -> bytes:
    """Center the logo in the safe zone of a transparent adaptive-icon layer.

    The layer is never flattened, whatever background the export uses.
    """
    logo_size = round_half_up(canvas_size * ADAPTIVE_SAFE_ZONE_RATIO)
    logo = _fit_on_canvas(source, logo_size, None).convert("RGBA")

    canvas = Image.new("RGBA", (canvas_size, canvas_size), TRANSPARENT_BLACK)
    offset = (canvas_size - logo_size) // 2
    canvas.paste(logo, (offset, offset))
    return encode_png(canvas)
