import base64
import io
import os

import pytest
from PIL import Image

# Tests run against the in-memory rate limiter and without an image API key
os.environ.pop("REDIS_URL", None)
os.environ.pop("GOOGLE_AI_API_KEY", None)


def _encode(image: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image_bytes():
    """Build an encoded image: make_image_bytes(size, color, mode, fmt)."""
    def factory(size=(64, 64), color=(255, 0, 0), mode="RGB", fmt="PNG"):
        return _encode(Image.new(mode, size, color), fmt)
    return factory


@pytest.fixture
def red_png():
    return _encode(Image.new("RGB", (512, 512), (255, 0, 0)))


@pytest.fixture
def transparent_logo_png():
    """200x100 RGBA image: transparent with an opaque blue block in the middle."""
    image = Image.new("RGBA", (200, 100), (0, 0, 0, 0))
    image.paste((0, 0, 255, 255), (50, 25, 150, 75))
    return _encode(image)


@pytest.fixture
def to_base64():
    def factory(data: bytes, data_url: bool = False) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:image/png;base64,{encoded}" if data_url else encoded
    return factory


def open_png(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


@pytest.fixture
def load_png():
    return open_png


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
