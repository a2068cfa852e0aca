"""ZIP bundling of converted images. Used by the /api/download-zip route and by client-side downloads."""
import io
import logging
import zipfile
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from webp_converter.config import MAX_ZIP_SIZE_BYTES

logger = logging.getLogger("converter.bundling")


@dataclass
class BundleItem:
    name: str
    url: str


def _sanitize_entry_name(name: str) -> str:
    """Safe archive entry name (no path separators, no empty)."""
    name = name.replace("\\", "/").rsplit("/", 1)[-1]
    s = "".join(c for c in name if c.isalnum() or c in "._- ()").strip(" .") or "image.webp"
    return s[:128]


def _unique_name(name: str, seen: set[str]) -> str:
    if name not in seen:
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    n = 2
    while True:
        candidate = f"{stem} ({n}).{ext}" if ext else f"{stem} ({n})"
        if candidate not in seen:
            return candidate
        n += 1


def build_zip(entries: Iterable[tuple[str, bytes]], max_total_bytes: Optional[int] = MAX_ZIP_SIZE_BYTES) -> bytes:
    """
    Pack (name, data) pairs into an in-memory ZIP. Duplicate names get " (2)", " (3)"...
    Entries that would push the content past max_total_bytes are skipped.
    """
    buf = io.BytesIO()
    seen: set[str] = set()
    total = 0
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries:
            if max_total_bytes is not None and total + len(data) > max_total_bytes:
                logger.warning("Skipping %s: archive would exceed %s bytes", name, max_total_bytes)
                continue
            arcname = _unique_name(_sanitize_entry_name(name), seen)
            seen.add(arcname)
            zf.writestr(arcname, data)
            total += len(data)
    logger.info("Created zip with %s entries (%s bytes of content)", len(seen), total)
    return buf.getvalue()


async def fetch_items(items: Iterable[BundleItem], http_client: httpx.AsyncClient) -> list[tuple[str, bytes]]:
    """Download each item; failures are logged and skipped."""
    fetched: list[tuple[str, bytes]] = []
    for item in items:
        try:
            response = await http_client.get(item.url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Error fetching %s from %s: %s", item.name, item.url, e)
            continue
        fetched.append((item.name, response.content))
    return fetched
