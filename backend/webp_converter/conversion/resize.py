"""Aspect-preserving resize."""
import logging
from typing import Optional

from PIL import Image

logger = logging.getLogger("converter.resize")


def resize_keep_aspect(
    img: Image.Image,
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
) -> Image.Image:
    """
    Scale image to fit within target width and/or height, maintaining aspect ratio.
    If only one dimension is set, the other is computed from the image ratio.
    Alpha is kept for RGBA input; other modes are flattened to RGB.
    """
    w, h = img.size
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGB")
    if target_width is None and target_height is None:
        return img.copy()
    if target_width is not None and target_height is not None:
        scale = min(target_width / w, target_height / h)
    elif target_width is not None:
        scale = target_width / w
    else:
        scale = target_height / h
    new_w = max(1, int(round(w * scale)))
    new_h = max(1, int(round(h * scale)))
    logger.debug("Resizing %sx%s -> %sx%s", w, h, new_w, new_h)
    return img.resize((new_w, new_h), Image.Resampling.LANCZOS)
