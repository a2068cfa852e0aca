"""HTTP client for the conversion endpoint, with per-file state tracking."""
import logging
from typing import Optional

import httpx

from webp_converter.client.handles import HandleRegistry, release_if_set
from webp_converter.client.models import ConversionState, SourceBlob, TrackedFile
from webp_converter.config import CONVERTER_API_URL

logger = logging.getLogger("converter.client")

DEFAULT_CONVERT_ERROR = "Error converting image"
DEFAULT_ESTIMATE_ERROR = "Error analyzing image"


class ConversionRequestError(Exception):
    """The conversion endpoint could not be reached or answered with an error status."""

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return DEFAULT_CONVERT_ERROR
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return DEFAULT_CONVERT_ERROR


class ConversionClient:
    """
    Talks to POST /api/convert. The http client is injected so callers control its
    lifetime, timeouts and transport.
    """

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = CONVERTER_API_URL):
        self._http = http_client
        self.base_url = base_url.rstrip("/")

    async def request_webp(self, blob: SourceBlob) -> bytes:
        files = {"image": (blob.name, blob.data, blob.mime_type or "application/octet-stream")}
        try:
            response = await self._http.post(f"{self.base_url}/api/convert", files=files)
        except httpx.HTTPError as e:
            raise ConversionRequestError(None, f"Could not reach the converter: {e}") from e
        if response.is_success:
            return response.content
        raise ConversionRequestError(response.status_code, _error_message(response))

    async def estimate(self, tracked: TrackedFile) -> None:
        """Trial conversion that only keeps the output size. Leaves the file IDLE whatever happens."""
        if tracked.discarded or tracked.state is not ConversionState.IDLE:
            return
        tracked.state = ConversionState.ANALYZING
        try:
            data = await self.request_webp(tracked.source)
        except ConversionRequestError as e:
            logger.warning("Size estimate failed for %s: %s", tracked.name, e.message)
            tracked.estimate_error = e.message or DEFAULT_ESTIMATE_ERROR
        else:
            tracked.estimated_output_size = len(data)
            tracked.estimate_error = None
        finally:
            if tracked.state is ConversionState.ANALYZING:
                tracked.state = ConversionState.IDLE

    async def convert(self, tracked: TrackedFile, handles: HandleRegistry) -> bool:
        """Convert one file. Returns True if it ended CONVERTED."""
        if tracked.discarded or tracked.state is not ConversionState.IDLE:
            return False
        tracked.state = ConversionState.CONVERTING
        try:
            data = await self.request_webp(tracked.source)
        except ConversionRequestError as e:
            if tracked.discarded:
                return False
            logger.warning("Conversion failed for %s (status=%s): %s", tracked.name, e.status_code, e.message)
            tracked.mark_failed(e.message)
            return False
        if tracked.discarded:
            logger.info("Dropping result for removed file %s", tracked.name)
            return False
        tracked.mark_converted(handles.acquire(data, "image/webp"), len(data))
        release_if_set(tracked.preview_reference)
        tracked.preview_reference = None
        logger.info("Converted %s -> %s (%s bytes)", tracked.name, tracked.output_name, len(data))
        return True
