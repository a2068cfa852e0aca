"""Batch coordinator: the ordered collection of tracked files and the operations over it."""
import asyncio
import logging
import uuid
from pathlib import Path
from typing import Iterable, Optional

from webp_converter.bundling import build_zip
from webp_converter.client.compressor import compress_if_needed
from webp_converter.client.conversion_client import ConversionClient
from webp_converter.client.handles import HandleRegistry, release_if_set
from webp_converter.client.metadata import extract_dimensions, format_size
from webp_converter.client.models import (
    AddResult,
    BatchStats,
    ConversionState,
    Rejection,
    SourceBlob,
    TrackedFile,
)
from webp_converter.client.validator import check_max_size, validate_selection
from webp_converter.config import ZIP_FILENAME, BatchLimits, ClientFeatures, CompressionSettings

logger = logging.getLogger("converter.batch")


class BatchCoordinator:
    """
    Single owner of the tracked-file collection. All mutation goes through these methods;
    conversions run one at a time in collection order.
    """

    def __init__(
        self,
        client: ConversionClient,
        handles: Optional[HandleRegistry] = None,
        limits: Optional[BatchLimits] = None,
        compression: Optional[CompressionSettings] = None,
        features: Optional[ClientFeatures] = None,
    ):
        self._client = client
        self.handles = handles or HandleRegistry()
        self.limits = limits or BatchLimits()
        self.compression = compression or CompressionSettings()
        self.features = features or ClientFeatures()
        self._files: list[TrackedFile] = []
        self._analysis: dict[str, asyncio.Task] = {}
        self.is_converting_all = False

    @property
    def files(self) -> list[TrackedFile]:
        return list(self._files)

    def get(self, file_id: str) -> Optional[TrackedFile]:
        for tracked in self._files:
            if tracked.id == file_id:
                return tracked
        return None

    def __len__(self) -> int:
        return len(self._files)

    @property
    def total_bytes(self) -> int:
        return sum(f.source.size for f in self._files)

    # --- adding -------------------------------------------------------------

    def _fits(self, blob: SourceBlob) -> bool:
        return (
            len(self._files) < self.limits.max_files
            and self.total_bytes + blob.size <= self.limits.max_total_bytes
        )

    def _insert(self, blob: SourceBlob) -> TrackedFile:
        tracked = TrackedFile(blob, preview_reference=self.handles.acquire(blob.data, blob.mime_type))
        while any(f.id == tracked.id for f in self._files):
            tracked.id = uuid.uuid4().hex
        self._files.append(tracked)
        return tracked

    async def add(self, candidates: Iterable[SourceBlob]) -> AddResult:
        """Validate, compress and track candidates; analysis of each new file starts in the background."""
        candidates = list(candidates)
        if not candidates:
            return AddResult(success=False, message="No images selected")
        validation = validate_selection(candidates, self._files, self.limits)
        rejected = list(validation.rejected)
        excess_count = validation.excess_count
        added: list[TrackedFile] = []

        for blob in validation.accepted:
            blob = await compress_if_needed(blob, self.compression)
            reason = check_max_size(blob, self.limits)
            if reason:
                rejected.append(Rejection(blob.name, reason))
                continue
            # Another add may have filled the collection while we were compressing.
            if not self._fits(blob):
                rejected.append(Rejection(blob.name, "Batch limits reached"))
                excess_count += 1
                continue
            tracked = self._insert(blob)
            added.append(tracked)
            self._schedule_analysis(tracked)

        logger.info("Added %s files (%s rejected, %s excess)", len(added), len(rejected), excess_count)
        if validation.message:
            message = validation.message
        elif not added:
            message = f"No files added: {rejected[0].reason}" if rejected else "No files added"
        else:
            message = f"{len(added)} file{'' if len(added) == 1 else 's'} added"
            if rejected:
                message += f" ({len(rejected)} skipped)"
        return AddResult(
            success=bool(added) and not excess_count,
            message=message,
            added_count=len(added),
            excess_count=excess_count,
            rejected=rejected,
            added_ids=[t.id for t in added],
        )

    # --- analysis -----------------------------------------------------------

    def _schedule_analysis(self, tracked: TrackedFile) -> None:
        task = asyncio.create_task(self._analyze(tracked), name=f"analyze-{tracked.id}")
        self._analysis[tracked.id] = task

        def _done(t: asyncio.Task, file_id: str = tracked.id) -> None:
            if self._analysis.get(file_id) is t:
                del self._analysis[file_id]

        task.add_done_callback(_done)

    async def _analyze(self, tracked: TrackedFile) -> None:
        dimensions = await extract_dimensions(tracked.source.data)
        if tracked.discarded:
            return
        tracked.dimensions = dimensions
        tracked.size_label = format_size(tracked.source.size)
        if self.features.auto_estimate:
            await self._client.estimate(tracked)

    async def settle(self) -> None:
        """Wait until every scheduled metadata/estimate step has finished."""
        while self._analysis:
            await asyncio.gather(*list(self._analysis.values()))

    # --- converting ---------------------------------------------------------

    async def convert(self, file_id: str) -> bool:
        tracked = self.get(file_id)
        if tracked is None:
            return False
        pending = self._analysis.get(file_id)
        if pending is not None:
            await pending
        return await self._client.convert(tracked, self.handles)

    async def convert_all(self) -> int:
        """Convert every file not yet CONVERTED/FAILED, one request at a time. Returns the success count."""
        if self.is_converting_all:
            logger.warning("convert_all already running")
            return 0
        self.is_converting_all = True
        converted = 0
        try:
            for tracked in [f for f in self._files if not f.is_terminal]:
                if tracked.discarded:
                    continue
                if await self.convert(tracked.id):
                    converted += 1
        finally:
            self.is_converting_all = False
        logger.info("convert_all finished: %s converted", converted)
        return converted

    # --- removal ------------------------------------------------------------

    def _release(self, tracked: TrackedFile) -> None:
        tracked.discarded = True
        release_if_set(tracked.preview_reference)
        release_if_set(tracked.output_reference)
        tracked.preview_reference = None
        tracked.output_reference = None

    def remove(self, file_id: str) -> bool:
        """Drop one file and release its handles. Unknown ids are ignored."""
        tracked = self.get(file_id)
        if tracked is None:
            return False
        self._release(tracked)
        self._files.remove(tracked)
        return True

    def clear(self) -> None:
        for tracked in self._files:
            self._release(tracked)
        self._files = []

    # --- downloads ----------------------------------------------------------

    def download_one(self, file_id: str, directory: Path) -> Optional[Path]:
        """Write the converted payload as <basename>.webp. Returns None unless the file is CONVERTED."""
        tracked = self.get(file_id)
        if tracked is None or tracked.state is not ConversionState.CONVERTED:
            return None
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        dest = directory / tracked.output_name
        dest.write_bytes(tracked.output_reference.read())
        logger.info("Saved %s", dest)
        return dest

    def download_zip(self, directory: Path) -> Optional[Path]:
        entries = [
            (f.output_name, f.output_reference.read())
            for f in self._files
            if f.state is ConversionState.CONVERTED
        ]
        if not entries:
            return None
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        dest = directory / ZIP_FILENAME
        dest.write_bytes(build_zip(entries, max_total_bytes=None))
        logger.info("Saved %s (%s files)", dest, len(entries))
        return dest

    def download_all(self, directory: Path) -> list[Path]:
        """One ZIP when ZIP downloads are enabled, otherwise one .webp per converted file."""
        if self.features.zip_downloads:
            archive = self.download_zip(directory)
            return [archive] if archive else []
        saved = []
        for tracked in self._files:
            path = self.download_one(tracked.id, directory)
            if path is not None:
                saved.append(path)
        return saved

    # --- queries ------------------------------------------------------------

    @property
    def can_convert_all(self) -> bool:
        """True while some file is IDLE. Files mid-request are excluded; a running sweep is reported by is_converting_all."""
        return any(f.state is ConversionState.IDLE for f in self._files)

    @property
    def all_converted(self) -> bool:
        return bool(self._files) and all(f.is_terminal for f in self._files)

    @property
    def has_errors(self) -> bool:
        return any(f.state is ConversionState.FAILED for f in self._files)

    def stats(self) -> BatchStats:
        converted = [f for f in self._files if f.state is ConversionState.CONVERTED]
        return BatchStats(
            file_count=len(self._files),
            converted_count=len(converted),
            failed_count=sum(1 for f in self._files if f.state is ConversionState.FAILED),
            total_original_bytes=sum(f.source.size for f in converted),
            total_converted_bytes=sum(f.converted_size for f in converted),
        )
