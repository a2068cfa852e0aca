"""Command line entry point: run the API, or batch-convert local files through it."""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import httpx

from webp_converter.client.batch import BatchCoordinator
from webp_converter.client.conversion_client import ConversionClient
from webp_converter.client.metadata import format_size
from webp_converter.client.models import ConversionState, SourceBlob
from webp_converter.config import (
    AUTO_ESTIMATE,
    CONVERTER_API_URL,
    HOST,
    PORT,
    REQUEST_TIMEOUT,
    ZIP_DOWNLOADS,
    ClientFeatures,
)

logger = logging.getLogger("converter.cli")


def _describe(tracked) -> str:
    dims = f"{tracked.dimensions.width}x{tracked.dimensions.height}" if tracked.dimensions else "?x?"
    line = f"{tracked.name} ({dims}, {format_size(tracked.source.size)})"
    if tracked.state is ConversionState.CONVERTED:
        return f"{line} -> {tracked.output_name} {tracked.converted_size_label} [{tracked.reduction_label}]"
    if tracked.state is ConversionState.FAILED:
        return f"{line} FAILED: {tracked.failure_reason}"
    return f"{line} {tracked.state.value}"


async def convert_files(
    paths: list[Path],
    out_dir: Path,
    server: str = CONVERTER_API_URL,
    features: Optional[ClientFeatures] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> int:
    """Add, convert and save; returns a process exit code (1 if anything was skipped or failed)."""
    blobs = []
    for path in paths:
        try:
            blobs.append(SourceBlob.from_path(path))
        except OSError as e:
            logger.error("Cannot read %s: %s", path, e)

    owns_client = http_client is None
    http = http_client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
    try:
        coordinator = BatchCoordinator(ConversionClient(http, server), features=features)
        result = await coordinator.add(blobs)
        print(result.message)
        for rejection in result.rejected:
            print(f"  skipped {rejection.name}: {rejection.reason}")
        await coordinator.settle()
        await coordinator.convert_all()
        for tracked in coordinator.files:
            print(_describe(tracked))
        for path in coordinator.download_all(out_dir):
            print(f"Saved {path}")
        stats = coordinator.stats()
        if stats.converted_count:
            print(
                f"Converted {stats.converted_count}/{stats.file_count}: "
                f"{format_size(stats.total_original_bytes)} -> {format_size(stats.total_converted_bytes)} "
                f"({stats.reduction_label})"
            )
        failed = coordinator.has_errors or len(blobs) < len(paths) or bool(result.rejected)
        coordinator.clear()
    finally:
        if owns_client:
            await http.aclose()
    return 1 if failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="webp-converter", description="PNG/JPEG to WebP converter")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the conversion API")
    serve.add_argument("--host", default=HOST)
    serve.add_argument("--port", type=int, default=PORT)
    serve.add_argument("--reload", action="store_true")

    convert = sub.add_parser("convert", help="Convert local images through a running API")
    convert.add_argument("files", nargs="+", type=Path)
    convert.add_argument("-o", "--out", type=Path, default=Path("."), help="Output directory")
    convert.add_argument("--server", default=CONVERTER_API_URL, help="Converter API base URL")
    zip_group = convert.add_mutually_exclusive_group()
    zip_group.add_argument("--zip", dest="zip_downloads", action="store_true", default=ZIP_DOWNLOADS,
                           help="Save results as one converted-images.zip")
    zip_group.add_argument("--no-zip", dest="zip_downloads", action="store_false",
                           help="Save one .webp per image")
    convert.add_argument("--no-estimate", dest="auto_estimate", action="store_false", default=AUTO_ESTIMATE,
                         help="Skip the trial conversion that estimates output size")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "serve":
        import uvicorn
        uvicorn.run("webp_converter.main:app", host=args.host, port=args.port, reload=args.reload)
        return 0
    features = ClientFeatures(auto_estimate=args.auto_estimate, zip_downloads=args.zip_downloads)
    return asyncio.run(convert_files(args.files, args.out, args.server, features))


if __name__ == "__main__":
    sys.exit(main())
