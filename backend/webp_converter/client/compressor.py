"""Best-effort local downscale of oversized inputs before they are tracked."""
import asyncio
import logging
from dataclasses import replace
from typing import Optional

from webp_converter.client.metadata import format_size
from webp_converter.client.models import SourceBlob
from webp_converter.config import CompressionSettings
from webp_converter.conversion.service import ImageTooLargeError, UnsupportedImageError, reencode_downscaled

logger = logging.getLogger("converter.compressor")


async def compress_if_needed(blob: SourceBlob, settings: Optional[CompressionSettings] = None) -> SourceBlob:
    """
    Return a smaller copy of blob when it exceeds the compression threshold, else blob itself.
    Never raises for bad image data: the original is returned and the failure logged.
    """
    settings = settings or CompressionSettings()
    if blob.size <= settings.threshold_bytes:
        return blob
    try:
        data, mime_type = await asyncio.to_thread(
            reencode_downscaled, blob.data, settings.max_width, settings.quality
        )
    except (UnsupportedImageError, ImageTooLargeError, OSError, ValueError) as e:
        logger.warning("Compression failed for %s, using original: %s", blob.name, e)
        return blob
    if len(data) >= blob.size:
        logger.info("Compression of %s did not reduce size (%s), using original", blob.name, format_size(blob.size))
        return blob
    logger.info("Compressed %s: %s -> %s", blob.name, format_size(blob.size), format_size(len(data)))
    return replace(blob, data=data, mime_type=mime_type)
