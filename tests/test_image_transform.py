import io

import numpy as np
import pytest
from PIL import Image

from image_transform import (
    CorruptImageError,
    ImageTooLargeError,
    InvalidImagePayloadError,
    UnsupportedImageFormatError,
    add_padding,
    circle_mask,
    composite_adaptive_foreground,
    decode_base64_image,
    decode_image,
    is_valid_hex_color,
    mask_circular,
    parse_hex_color,
    resize_to_square,
    round_half_up,
)


def _noise_png(size=96) -> bytes:
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8)
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="PNG")
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def test_decode_opaque_png(make_image_bytes):
    source = decode_image(make_image_bytes((40, 30)))
    assert (source.width, source.height) == (40, 30)
    assert source.has_alpha is False
    assert source.channels == 3
    assert source.format == "PNG"


def test_decode_rgba_png(transparent_logo_png):
    source = decode_image(transparent_logo_png)
    assert source.has_alpha is True
    assert source.channels == 4
    assert source.image.mode == "RGBA"


def test_decode_jpeg(make_image_bytes):
    source = decode_image(make_image_bytes((32, 32), fmt="JPEG"))
    assert source.format == "JPEG"
    assert source.has_alpha is False


def test_decode_multi_picture_jpeg_uses_first_frame():
    first = Image.new("RGB", (64, 64), (255, 0, 0))
    second = Image.new("RGB", (64, 64), (0, 0, 255))
    buffer = io.BytesIO()
    first.save(buffer, format="MPO", save_all=True, append_images=[second])

    source = decode_image(buffer.getvalue())
    assert source.format == "JPEG"
    assert (source.width, source.height) == (64, 64)
    assert source.has_alpha is False
    r, g, b = source.image.getpixel((32, 32))
    assert r > 200 and b < 60


def test_decode_webp(make_image_bytes):
    source = decode_image(make_image_bytes((32, 32), (0, 0, 255, 128), mode="RGBA", fmt="WEBP"))
    assert source.format == "WEBP"
    assert source.has_alpha is True


def test_decode_palette_with_transparency_becomes_rgba():
    image = Image.new("P", (16, 16), 0)
    image.putpalette([255, 0, 0] * 256)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", transparency=0)
    source = decode_image(buffer.getvalue())
    assert source.image.mode == "RGBA"
    assert source.has_alpha is True


def test_decode_rgb_color_key_becomes_rgba(load_png):
    image = Image.new("RGB", (64, 64), (0, 0, 0))
    image.paste((255, 0, 0), (32, 0, 64, 64))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", transparency=(0, 0, 0))

    source = decode_image(buffer.getvalue())
    assert source.image.mode == "RGBA"
    assert source.has_alpha is True
    assert source.image.getpixel((8, 8))[3] == 0
    assert source.image.getpixel((48, 8)) == (255, 0, 0, 255)

    # alpha sources pad with transparent black
    padded = load_png(add_padding(source, 64, 10))
    assert padded.getpixel((1, 1)) == (0, 0, 0, 0)


def test_decode_greyscale_becomes_rgb(make_image_bytes):
    source = decode_image(make_image_bytes((16, 16), 128, mode="L"))
    assert source.image.mode == "RGB"


def test_decode_gif_is_unsupported(make_image_bytes):
    with pytest.raises(UnsupportedImageFormatError):
        decode_image(make_image_bytes((16, 16), fmt="GIF"))


def test_decode_text_is_unsupported():
    with pytest.raises(UnsupportedImageFormatError):
        decode_image(b"definitely not an image")


def test_decode_truncated_png_is_corrupt():
    data = _noise_png()
    with pytest.raises(CorruptImageError):
        decode_image(data[: len(data) // 2])


def test_decode_png_signature_with_garbage_is_corrupt():
    with pytest.raises(CorruptImageError):
        decode_image(b"\x89PNG\r\n\x1a\n" + b"\x00" * 40)


def test_decode_rejects_too_many_pixels(make_image_bytes):
    with pytest.raises(ImageTooLargeError):
        decode_image(make_image_bytes((100, 100)), max_pixels=5000)


def test_decode_errors_share_base_class():
    from image_transform import DecodeError

    assert issubclass(UnsupportedImageFormatError, DecodeError)
    assert issubclass(CorruptImageError, DecodeError)
    assert issubclass(ImageTooLargeError, DecodeError)


# ---------------------------------------------------------------------------
# Base64 payloads and colors
# ---------------------------------------------------------------------------

def test_decode_base64_plain_and_data_url(red_png, to_base64):
    assert decode_base64_image(to_base64(red_png)) == red_png
    assert decode_base64_image(to_base64(red_png, data_url=True)) == red_png


@pytest.mark.parametrize("payload", ["", "not base64!!", "abc$def", "A", "data:image/png;base64,", "===="])
def test_decode_base64_rejects_malformed(payload):
    with pytest.raises(InvalidImagePayloadError):
        decode_base64_image(payload)


@pytest.mark.parametrize("value", ["#fff", "#FFFFFF", "#00ff0080", "#aBc"])
def test_valid_hex_colors(value):
    assert is_valid_hex_color(value)


@pytest.mark.parametrize("value", ["fff", "#ffff", "#ggg", "#1234567", "red", "", None, 255])
def test_invalid_hex_colors(value):
    assert not is_valid_hex_color(value)


def test_parse_hex_color_forms():
    assert parse_hex_color("#f00") == (255, 0, 0, 255)
    assert parse_hex_color("#00ff00") == (0, 255, 0, 255)
    assert parse_hex_color("#0000ff80") == (0, 0, 255, 128)


def test_parse_hex_color_falls_back_to_opaque_black():
    assert parse_hex_color("#12345") == (0, 0, 0, 255)
    assert parse_hex_color("not-a-color") == (0, 0, 0, 255)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(19.2) == 19
    assert round_half_up(-2.5) == -3


# ---------------------------------------------------------------------------
# Resizing
# ---------------------------------------------------------------------------

def test_resize_contain_fills_with_white_for_opaque_source(make_image_bytes, load_png):
    source = decode_image(make_image_bytes((200, 100), (255, 0, 0)))
    result = load_png(resize_to_square(source, 64))

    assert result.size == (64, 64)
    assert result.mode == "RGB"
    assert result.getpixel((0, 0)) == (255, 255, 255)
    r, g, b = result.getpixel((32, 32))
    assert r > 245 and g < 10 and b < 10


def test_resize_keeps_transparency_for_alpha_source(transparent_logo_png, load_png):
    source = decode_image(transparent_logo_png)
    result = load_png(resize_to_square(source, 100))

    assert result.mode == "RGBA"
    assert result.getpixel((0, 0))[3] == 0
    assert result.getpixel((50, 50)) == (0, 0, 255, 255)


def test_resize_with_background_flattens(transparent_logo_png, load_png):
    source = decode_image(transparent_logo_png)
    result = load_png(resize_to_square(source, 100, "#00ff00"))

    assert result.mode == "RGB"
    assert result.getpixel((0, 0)) == (0, 255, 0)
    assert result.getpixel((50, 50)) == (0, 0, 255)


def test_resize_does_not_mutate_source(transparent_logo_png):
    source = decode_image(transparent_logo_png)
    before = source.image.tobytes()
    resize_to_square(source, 32, "#ff0000")
    add_padding(source, 32, 20, "#ff0000")
    mask_circular(source, 32)
    assert source.image.tobytes() == before
    assert source.image.size == (200, 100)


def test_resize_output_is_deterministic(transparent_logo_png):
    source = decode_image(transparent_logo_png)
    assert resize_to_square(source, 77) == resize_to_square(source, 77)


# ---------------------------------------------------------------------------
# Padding
# ---------------------------------------------------------------------------

def test_zero_padding_matches_plain_resize(red_png):
    source = decode_image(red_png)
    assert add_padding(source, 120, 0) == resize_to_square(source, 120)
    assert add_padding(source, 120, 0, "#123456") == resize_to_square(source, 120, "#123456")


def test_padding_is_capped_at_twenty_percent(red_png):
    source = decode_image(red_png)
    assert add_padding(source, 100, 50) == add_padding(source, 100, 20)


def test_padding_border_uses_fill(red_png, load_png):
    source = decode_image(red_png)
    result = load_png(add_padding(source, 100, 10))

    assert result.size == (100, 100)
    assert result.mode == "RGB"
    # 10px white border around an 80px red square
    assert result.getpixel((9, 50)) == (255, 255, 255)
    assert result.getpixel((50, 9)) == (255, 255, 255)
    r, g, b = result.getpixel((12, 50))
    assert r > 245 and g < 10 and b < 10


def test_padding_rounds_half_up(make_image_bytes, load_png):
    # 25 * 10% = 2.5px, rounded to 3
    source = decode_image(make_image_bytes((40, 40), (255, 0, 0, 255), mode="RGBA"))
    result = load_png(add_padding(source, 25, 10))

    assert result.size == (25, 25)
    assert result.getpixel((2, 12))[3] == 0
    assert result.getpixel((3, 12))[3] == 255
    assert result.getpixel((21, 12))[3] == 255
    assert result.getpixel((22, 12))[3] == 0


def test_padding_with_background_flattens(transparent_logo_png, load_png):
    source = decode_image(transparent_logo_png)
    result = load_png(add_padding(source, 100, 15, "#ff0000"))
    assert result.mode == "RGB"
    assert result.getpixel((2, 2)) == (255, 0, 0)


@pytest.mark.parametrize("padding", [0, 1, 5, 7.5, 10, 13, 20])
@pytest.mark.parametrize("size", [16, 29, 87, 167, 512])
def test_padded_output_has_exact_size(red_png, load_png, size, padding):
    source = decode_image(red_png)
    assert load_png(add_padding(source, size, padding)).size == (size, size)


# ---------------------------------------------------------------------------
# Circular mask
# ---------------------------------------------------------------------------

def test_circle_mask_shape():
    mask = np.asarray(circle_mask(10))
    assert mask.shape == (10, 10)
    assert mask[0, 0] == 0
    assert mask[5, 5] == 255
    assert mask[5, 0] == 255
    assert set(np.unique(mask)) <= {0, 255}


def test_mask_circular_clears_corners(red_png, load_png):
    source = decode_image(red_png)
    result = load_png(mask_circular(source, 64))

    assert result.mode == "RGBA"
    assert result.size == (64, 64)
    for corner in [(0, 0), (63, 0), (0, 63), (63, 63)]:
        assert result.getpixel(corner)[3] == 0
    assert result.getpixel((32, 32))[3] == 255


def test_mask_circular_applies_after_background(red_png, load_png):
    source = decode_image(red_png)
    result = load_png(mask_circular(source, 48, padding_percent=10, background_color="#0000ff"))

    assert result.getpixel((0, 0))[3] == 0
    # inside the circle but in the padding band: background color, opaque
    assert result.getpixel((24, 2)) == (0, 0, 255, 255)


# ---------------------------------------------------------------------------
# Adaptive foreground
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("canvas_size", [108, 162, 216, 324, 432])
def test_adaptive_foreground_transparent_outside_safe_zone(red_png, load_png, canvas_size):
    source = decode_image(red_png)
    result = load_png(composite_adaptive_foreground(source, canvas_size))

    assert result.size == (canvas_size, canvas_size)
    assert result.mode == "RGBA"

    alpha = np.asarray(result.getchannel("A"))
    logo = round_half_up(canvas_size * 72 / 108)
    start = (canvas_size - logo) // 2
    end = start + logo

    outside = np.ones_like(alpha, dtype=bool)
    outside[start:end, start:end] = False
    assert not alpha[outside].any()
    assert (alpha[start:end, start:end] == 255).all()


def test_adaptive_foreground_keeps_source_transparency(transparent_logo_png, load_png):
    source = decode_image(transparent_logo_png)
    result = load_png(composite_adaptive_foreground(source, 108))

    assert result.getpixel((0, 0))[3] == 0
    assert result.getpixel((54, 54)) == (0, 0, 255, 255)
