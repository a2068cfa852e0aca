import io
import os

import pytest
from PIL import Image

from webp_converter.client.models import SourceBlob


def noise_image(width: int, height: int, mode: str = "RGB") -> Image.Image:
    """Random pixels, so encoded sizes stay close to width*height*channels."""
    channels = len(mode)
    return Image.frombytes(mode, (width, height), os.urandom(width * height * channels))


def encode(img: Image.Image, fmt: str, **kw) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt, **kw)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    def make(width: int = 32, height: int = 32, mode: str = "RGB") -> bytes:
        return encode(noise_image(width, height, mode), "PNG")
    return make


@pytest.fixture
def jpeg_bytes():
    def make(width: int = 64, height: int = 64, quality: int = 95) -> bytes:
        return encode(noise_image(width, height), "JPEG", quality=quality)
    return make


@pytest.fixture
def png_blob(png_bytes):
    def make(name: str = "image.png", width: int = 32, height: int = 32) -> SourceBlob:
        return SourceBlob(name=name, data=png_bytes(width, height), mime_type="image/png")
    return make


FAKE_WEBP = b"RIFF\x00\x00\x00\x00WEBPVP8 " + b"\x00" * 500


@pytest.fixture
def fake_webp():
    return FAKE_WEBP


@pytest.fixture
def make_image():
    return noise_image


@pytest.fixture
def encode_image():
    return encode
