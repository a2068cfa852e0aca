"""Image dimensions and human-readable sizes for tracked files."""
import asyncio
import logging
from typing import NamedTuple, Optional

from webp_converter.conversion.service import ImageTooLargeError, UnsupportedImageError, read_dimensions

logger = logging.getLogger("converter.metadata")

KB = 1024
MB = 1024 * 1024


class ImageDimensions(NamedTuple):
    width: int
    height: int


def format_size(num_bytes: int) -> str:
    """KB with one decimal below 1 MB, MB with two decimals from 1 MB up."""
    if num_bytes >= MB:
        return f"{num_bytes / MB:.2f} MB"
    return f"{num_bytes / KB:.1f} KB"


def reduction_percent(original: int, converted: int) -> float:
    if original <= 0:
        return 0.0
    return (original - converted) / original * 100


def format_percent(value: float) -> str:
    """One decimal at 10% and above, two below."""
    return f"{value:.1f}" if value >= 10 else f"{value:.2f}"


def format_reduction(value: float) -> str:
    """-73.4% for a saving, +5.00% when the output grew."""
    if value < 0:
        return f"+{format_percent(-value)}%"
    return f"-{format_percent(value)}%"


async def extract_dimensions(data: bytes) -> Optional[ImageDimensions]:
    """Decode width/height off the event loop. Returns None if the bytes are not a readable image."""
    try:
        width, height = await asyncio.to_thread(read_dimensions, data)
    except (UnsupportedImageError, ImageTooLargeError, OSError) as e:
        logger.warning("Could not read image dimensions: %s", e)
        return None
    return ImageDimensions(width, height)
