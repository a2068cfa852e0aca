"""API routes for conversion and ZIP bundling."""
import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response

from webp_converter.bundling import BundleItem, build_zip, fetch_items
from webp_converter.config import (
    ACCEPTED_MIME_TYPES,
    MAX_FILES,
    MAX_IMAGE_SIZE_BYTES,
    MAX_IMAGE_SIZE_MB,
    MAX_TOTAL_SIZE_BYTES,
    MAX_ZIP_FILES,
    MAX_ZIP_SIZE_BYTES,
    MIN_FILE_SIZE_BYTES,
    WEBP_QUALITY,
    ZIP_FETCH_TIMEOUT,
    ZIP_FILENAME,
)
from webp_converter.conversion.service import (
    ConversionService,
    ImageTooLargeError,
    UnsupportedImageError,
    get_conversion_service,
)

logger = logging.getLogger("converter.api")
router = APIRouter(prefix="/api", tags=["converter"])

CHUNK_SIZE = 1024 * 1024


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """Outbound client for fetching ZIP items; one per request."""
    async with httpx.AsyncClient(timeout=ZIP_FETCH_TIMEOUT, follow_redirects=True) as client:
        yield client


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/limits")
def get_limits():
    """Return upload limits for the client."""
    return {
        "max_files": MAX_FILES,
        "max_total_size_bytes": MAX_TOTAL_SIZE_BYTES,
        "min_file_size_bytes": MIN_FILE_SIZE_BYTES,
        "max_image_size_mb": MAX_IMAGE_SIZE_MB,
        "max_image_size_bytes": MAX_IMAGE_SIZE_BYTES,
        "accepted_types": sorted(ACCEPTED_MIME_TYPES),
        "webp_quality": WEBP_QUALITY,
        "max_zip_files": MAX_ZIP_FILES,
    }


@router.post("/convert")
async def convert_image(
    image: Optional[UploadFile] = File(None),
    svc: ConversionService = Depends(get_conversion_service),
):
    """Convert one PNG/JPEG upload (form field "image") to WebP and return the bytes."""
    if image is None:
        raise HTTPException(400, "No file provided")
    data = bytearray()
    while chunk := await image.read(CHUNK_SIZE):
        data.extend(chunk)
        if len(data) > MAX_IMAGE_SIZE_BYTES:
            raise HTTPException(413, f"File is too large (maximum {MAX_IMAGE_SIZE_MB} MB)")
    if len(data) < MIN_FILE_SIZE_BYTES:
        raise HTTPException(400, f"File is too small (minimum {MIN_FILE_SIZE_BYTES // 1024} KB)")
    if (image.content_type or "").lower() not in ACCEPTED_MIME_TYPES:
        raise HTTPException(400, "File must be a PNG, JPG, or JPEG image")

    try:
        webp = await asyncio.to_thread(svc.to_webp, bytes(data))
    except UnsupportedImageError as e:
        raise HTTPException(400, str(e))
    except ImageTooLargeError as e:
        raise HTTPException(413, str(e))
    except Exception as e:
        logger.exception("Error converting %s: %s", image.filename, e)
        raise HTTPException(500, "Failed to convert image. Please try again.")
    return Response(
        content=webp,
        media_type="image/webp",
        headers={"Content-Disposition": 'attachment; filename="converted.webp"'},
    )


def _parse_items(files: list) -> list[BundleItem]:
    items = []
    for entry in files:
        name = entry.get("name") if isinstance(entry, dict) else None
        url = entry.get("url") if isinstance(entry, dict) else None
        if not isinstance(name, str) or not isinstance(url, str) or not url.strip():
            logger.warning("Skipping malformed zip entry: %r", entry)
            continue
        items.append(BundleItem(name=name, url=url.strip()))
    return items


@router.post("/download-zip")
async def download_zip(
    files: Optional[list] = Body(None, embed=True),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """Fetch each {name, url} and return them as one archive. Items that fail to fetch are left out."""
    if not files:
        raise HTTPException(400, "No files provided")
    if len(files) > MAX_ZIP_FILES:
        raise HTTPException(400, f"Too many files (maximum {MAX_ZIP_FILES})")

    fetched = await fetch_items(_parse_items(files), http_client)
    try:
        archive = await asyncio.to_thread(build_zip, fetched, MAX_ZIP_SIZE_BYTES)
    except Exception as e:
        logger.exception("Error creating ZIP file: %s", e)
        raise HTTPException(500, "Failed to create ZIP file")
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{ZIP_FILENAME}"'},
    )
