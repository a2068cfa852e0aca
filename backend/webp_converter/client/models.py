"""Client-side state for files tracked by the batch coordinator."""
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from webp_converter.client.handles import DisplayHandle
from webp_converter.client.metadata import ImageDimensions, format_reduction, format_size, reduction_percent
from webp_converter.config import EXTENSION_TO_MIME

_IMAGE_SUFFIX = re.compile(r"\.(png|jpg|jpeg)$", re.IGNORECASE)


class ConversionState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    CONVERTING = "converting"
    CONVERTED = "converted"
    FAILED = "failed"


TERMINAL_STATES = (ConversionState.CONVERTED, ConversionState.FAILED)


@dataclass(frozen=True)
class SourceBlob:
    """Raw bytes of a selected image plus its declared name and MIME type."""

    name: str
    data: bytes = field(repr=False)
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Path) -> "SourceBlob":
        """Read a file from disk; MIME type comes from the extension (empty if unknown)."""
        path = Path(path)
        mime = EXTENSION_TO_MIME.get(path.suffix.lower(), "")
        return cls(name=path.name, data=path.read_bytes(), mime_type=mime)


def webp_filename(name: str) -> str:
    """photo.PNG -> photo.webp. Names without an image extension just gain .webp."""
    return f"{_IMAGE_SUFFIX.sub('', name)}.webp"


class TrackedFile:
    """One selected image and everything learned about it since it was added."""

    def __init__(self, source: SourceBlob, preview_reference: Optional[DisplayHandle] = None):
        self.id = uuid.uuid4().hex
        self.source = source
        self.preview_reference = preview_reference
        self.dimensions: Optional[ImageDimensions] = None
        self.size_label: Optional[str] = None
        self.estimated_output_size: Optional[int] = None  # bytes
        self.estimate_error: Optional[str] = None
        self.state = ConversionState.IDLE
        self.output_reference: Optional[DisplayHandle] = None
        self.converted_size: Optional[int] = None  # bytes
        self.failure_reason: Optional[str] = None
        # Set once the entry leaves the collection; late request results are dropped.
        self.discarded = False

    def __repr__(self) -> str:
        return f"TrackedFile(id={self.id!r}, name={self.name!r}, state={self.state.value})"

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def output_name(self) -> str:
        return webp_filename(self.source.name)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def mark_converted(self, output_reference: DisplayHandle, converted_size: int) -> None:
        self.output_reference = output_reference
        self.converted_size = converted_size
        self.failure_reason = None
        self.state = ConversionState.CONVERTED

    def mark_failed(self, reason: str) -> None:
        self.failure_reason = reason or "Error converting image"
        self.state = ConversionState.FAILED

    @property
    def converted_size_label(self) -> Optional[str]:
        if self.converted_size is None:
            return None
        return format_size(self.converted_size)

    @property
    def estimated_size_label(self) -> Optional[str]:
        if self.estimated_output_size is None:
            return None
        return format_size(self.estimated_output_size)

    @property
    def reduction_percent(self) -> Optional[float]:
        if self.converted_size is None:
            return None
        return reduction_percent(self.source.size, self.converted_size)

    @property
    def reduction_label(self) -> Optional[str]:
        """e.g. "-73.4%" once converted."""
        pct = self.reduction_percent
        if pct is None:
            return None
        return format_reduction(pct)


@dataclass
class Rejection:
    name: str
    reason: str


@dataclass
class AddResult:
    success: bool
    message: str
    added_count: int = 0
    excess_count: int = 0
    rejected: list[Rejection] = field(default_factory=list)
    added_ids: list[str] = field(default_factory=list)


@dataclass
class BatchStats:
    file_count: int
    converted_count: int
    failed_count: int
    total_original_bytes: int  # converted files only
    total_converted_bytes: int

    @property
    def saved_bytes(self) -> int:
        return self.total_original_bytes - self.total_converted_bytes

    @property
    def reduction_label(self) -> Optional[str]:
        if self.converted_count == 0 or self.total_original_bytes == 0:
            return None
        return format_reduction(reduction_percent(self.total_original_bytes, self.total_converted_bytes))
