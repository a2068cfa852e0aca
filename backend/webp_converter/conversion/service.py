"""Pillow-backed encoders: PNG/JPEG to WebP for the API, same-format re-encode for the client."""
import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

from webp_converter.config import WEBP_EFFORT, WEBP_QUALITY
from webp_converter.conversion.resize import resize_keep_aspect

logger = logging.getLogger("converter.service")

# Pillow format name -> MIME type for the formats we accept
FORMAT_TO_MIME = {"PNG": "image/png", "JPEG": "image/jpeg"}


class UnsupportedImageError(ValueError):
    """Payload is not an image Pillow can decode."""


class ImageTooLargeError(ValueError):
    """Decoded image exceeds what we are willing to hold in memory."""


def _open(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
        return img
    except UnidentifiedImageError as e:
        raise UnsupportedImageError("Unsupported image format. Please use PNG, JPG, or JPEG.") from e
    except (Image.DecompressionBombError, MemoryError) as e:
        raise ImageTooLargeError("Image is too large to process. Please try a smaller image.") from e


def _webp_ready(img: Image.Image) -> Image.Image:
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in ("LA", "PA") or "transparency" in img.info:
        return img.convert("RGBA")
    return img.convert("RGB")


class ConversionService:
    """Stateless WebP encoder; one call per uploaded image."""

    def __init__(self, quality: int = WEBP_QUALITY, effort: int = WEBP_EFFORT):
        self.quality = quality
        self.effort = effort
        logger.info("ConversionService initialized with quality=%s effort=%s", quality, effort)

    def to_webp(self, data: bytes) -> bytes:
        """Encode PNG/JPEG bytes as WebP. Raises UnsupportedImageError or ImageTooLargeError."""
        with _open(data) as img:
            work = _webp_ready(img)
            out = io.BytesIO()
            try:
                work.save(out, format="WEBP", quality=self.quality, method=self.effort)
            except MemoryError as e:
                raise ImageTooLargeError("Image is too large to process. Please try a smaller image.") from e
        result = out.getvalue()
        logger.info("Encoded WebP %s -> %s bytes", len(data), len(result))
        return result


def read_dimensions(data: bytes) -> tuple[int, int]:
    """Return (width, height) from the image header without decoding pixels."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except UnidentifiedImageError as e:
        raise UnsupportedImageError("Unsupported image format") from e
    except Image.DecompressionBombError as e:
        raise ImageTooLargeError(str(e)) from e


def reencode_downscaled(data: bytes, max_width: int, quality: int) -> tuple[bytes, str]:
    """
    Re-encode an image in its own container format with width capped at max_width.
    JPEG is written at the given quality; PNG is written lossless with optimize.
    Returns (bytes, mime_type).
    """
    with _open(data) as img:
        fmt = img.format
        if fmt not in FORMAT_TO_MIME:
            raise UnsupportedImageError(f"Cannot re-encode {fmt} images")
        work = img
        if img.width > max_width:
            if fmt == "PNG" and img.mode not in ("RGB", "RGBA"):
                work = img.convert("RGBA")
            work = resize_keep_aspect(work, target_width=max_width)
        out = io.BytesIO()
        if fmt == "JPEG":
            if work.mode != "RGB":
                work = work.convert("RGB")
            work.save(out, format="JPEG", quality=quality, optimize=True)
        else:
            work.save(out, format="PNG", optimize=True)
    return out.getvalue(), FORMAT_TO_MIME[fmt]


# Singleton
_conversion_service: Optional[ConversionService] = None


def get_conversion_service() -> ConversionService:
    global _conversion_service
    if _conversion_service is None:
        _conversion_service = ConversionService()
    return _conversion_service
