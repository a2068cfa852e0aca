"""Selection filtering: type, minimum size, slot and aggregate quotas. Pure functions, no I/O."""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from webp_converter.client.metadata import format_size
from webp_converter.client.models import Rejection, SourceBlob, TrackedFile
from webp_converter.config import ACCEPTED_MIME_TYPES, BatchLimits


@dataclass
class ValidationResult:
    accepted: list[SourceBlob] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)
    excess_count: int = 0
    message: Optional[str] = None  # set when quotas cut the selection short


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def check_type_and_min_size(blob: SourceBlob, limits: BatchLimits) -> Optional[str]:
    """Return a rejection reason, or None if the blob passes."""
    if blob.mime_type.lower() not in ACCEPTED_MIME_TYPES:
        declared = blob.mime_type or "unknown"
        return f"Unsupported file type ({declared}). Use PNG, JPG, or JPEG."
    if blob.size < limits.min_file_bytes:
        return f"File is too small (minimum {format_size(limits.min_file_bytes)})"
    return None


def check_max_size(blob: SourceBlob, limits: BatchLimits) -> Optional[str]:
    if blob.size > limits.max_file_bytes:
        return f"File is too large (maximum {limits.max_file_bytes // (1024 * 1024)} MB)"
    return None


def validate_selection(
    candidates: Iterable[SourceBlob],
    current: Iterable[TrackedFile],
    limits: Optional[BatchLimits] = None,
) -> ValidationResult:
    """
    Split candidates into accepted and rejected.
    Type/min-size failures are dropped individually. Of the remaining files, the longest
    prefix (in input order) that fits both the free slots and the free byte budget is
    accepted; everything after it counts as excess.
    Sizes are the pre-compression sizes, so a large file that would shrink below the
    remaining budget can still be cut here.
    """
    limits = limits or BatchLimits()
    current = list(current)
    result = ValidationResult()

    valid: list[SourceBlob] = []
    for blob in candidates:
        reason = check_type_and_min_size(blob, limits)
        if reason:
            result.rejected.append(Rejection(blob.name, reason))
        else:
            valid.append(blob)

    free_slots = max(0, limits.max_files - len(current))
    free_bytes = max(0, limits.max_total_bytes - sum(f.source.size for f in current))

    used = 0
    cut_by_size = False
    for blob in valid:
        if len(result.accepted) >= free_slots:
            break
        if used + blob.size > free_bytes:
            cut_by_size = True
            break
        result.accepted.append(blob)
        used += blob.size

    excess = valid[len(result.accepted):]
    if not excess:
        return result

    result.excess_count = len(excess)
    if cut_by_size:
        total_mb = limits.max_total_bytes // (1024 * 1024)
        reason = f"Total size limit of {total_mb} MB reached"
        message = (
            f"You selected {_plural(len(valid), 'image')} totalling {format_size(sum(b.size for b in valid))}, "
            f"but the total size is limited to {total_mb} MB. "
            f"The first {_plural(len(result.accepted), 'image')} {'was' if len(result.accepted) == 1 else 'were'} added."
        )
    else:
        reason = f"Only {limits.max_files} images can be converted at a time"
        message = (
            f"You selected {_plural(len(valid), 'image')}, but we can only convert up to "
            f"{limits.max_files} at a time. "
            f"The first {_plural(len(result.accepted), 'image')} {'was' if len(result.accepted) == 1 else 'were'} added."
        )
    result.rejected.extend(Rejection(b.name, reason) for b in excess)
    result.message = message
    return result
