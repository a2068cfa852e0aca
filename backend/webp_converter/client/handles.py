"""Display handles: short-lived references to in-memory payloads that must be released exactly once."""
import logging
import uuid
from typing import Optional

logger = logging.getLogger("converter.handles")


class HandleReleasedError(RuntimeError):
    """A handle was read or released after it had already been released."""


class DisplayHandle:
    """Reference to bytes held by a HandleRegistry. Obtain via HandleRegistry.acquire."""

    def __init__(self, registry: "HandleRegistry", url: str, mime_type: str, size: int):
        self._registry = registry
        self.url = url
        self.mime_type = mime_type
        self.size = size
        self.released = False

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"DisplayHandle({self.url!r}, {self.size} bytes, {state})"

    def read(self) -> bytes:
        return self._registry.read(self)

    def release(self) -> None:
        self._registry.release(self)


class HandleRegistry:
    """Owns the bytes behind every live handle; counts acquisitions and releases."""

    def __init__(self):
        self._payloads: dict[str, bytes] = {}
        self.acquired_count = 0
        self.released_count = 0

    @property
    def live_count(self) -> int:
        return len(self._payloads)

    def acquire(self, data: bytes, mime_type: str) -> DisplayHandle:
        url = f"blob:{uuid.uuid4()}"
        self._payloads[url] = data
        self.acquired_count += 1
        return DisplayHandle(self, url, mime_type, len(data))

    def read(self, handle: DisplayHandle) -> bytes:
        data = self._payloads.get(handle.url)
        if data is None or handle.released:
            raise HandleReleasedError(f"Handle {handle.url} has been released")
        return data

    def release(self, handle: DisplayHandle) -> None:
        if handle.released or handle.url not in self._payloads:
            raise HandleReleasedError(f"Handle {handle.url} released twice")
        del self._payloads[handle.url]
        handle.released = True
        self.released_count += 1
        logger.debug("Released %s (%s bytes)", handle.url, handle.size)


def release_if_set(handle: Optional[DisplayHandle]) -> None:
    if handle is not None:
        handle.release()
