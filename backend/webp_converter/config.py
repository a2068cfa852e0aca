"""Application configuration. Loads from environment and .env file."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


MB = 1024 * 1024

# Accepted inputs. image/jpg is not a registered type but some browsers and tools send it.
ACCEPTED_MIME_TYPES = {"image/png", "image/jpeg", "image/jpg"}
EXTENSION_TO_MIME = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}

# Per-file limits (server and client)
MIN_FILE_SIZE_BYTES = int(os.getenv("MIN_FILE_SIZE_BYTES", "1024"))
MAX_IMAGE_SIZE_MB = int(os.getenv("MAX_IMAGE_SIZE_MB", "20"))
MAX_IMAGE_SIZE_BYTES = MAX_IMAGE_SIZE_MB * MB

# Batch limits (client collection)
MAX_FILES = int(os.getenv("MAX_FILES", "10"))
MAX_TOTAL_SIZE_MB = int(os.getenv("MAX_TOTAL_SIZE_MB", "100"))
MAX_TOTAL_SIZE_BYTES = MAX_TOTAL_SIZE_MB * MB

# Client-side compression of oversized inputs
COMPRESS_THRESHOLD_MB = int(os.getenv("COMPRESS_THRESHOLD_MB", "5"))
COMPRESS_THRESHOLD_BYTES = COMPRESS_THRESHOLD_MB * MB
COMPRESS_MAX_WIDTH = int(os.getenv("COMPRESS_MAX_WIDTH", "1920"))
COMPRESS_QUALITY = int(os.getenv("COMPRESS_QUALITY", "80"))

# Server-side WebP encode
WEBP_QUALITY = int(os.getenv("WEBP_QUALITY", "80"))
WEBP_EFFORT = int(os.getenv("WEBP_EFFORT", "4"))

# ZIP bundling
MAX_ZIP_FILES = int(os.getenv("MAX_ZIP_FILES", "20"))
MAX_ZIP_SIZE_MB = int(os.getenv("MAX_ZIP_SIZE_MB", "50"))
MAX_ZIP_SIZE_BYTES = MAX_ZIP_SIZE_MB * MB
ZIP_FETCH_TIMEOUT = int(os.getenv("ZIP_FETCH_TIMEOUT", "30"))
ZIP_FILENAME = "converted-images.zip"

# Client: where the conversion API lives and which optional behaviours are on
CONVERTER_API_URL = os.getenv("CONVERTER_API_URL", "http://localhost:8000").rstrip("/")
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "60"))
AUTO_ESTIMATE = _env_flag("AUTO_ESTIMATE", "true")
ZIP_DOWNLOADS = _env_flag("ZIP_DOWNLOADS", "true")

# Server (for uvicorn)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
# CORS: comma-separated origins, e.g. "http://localhost:3000,http://127.0.0.1:3000"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",") if o.strip()]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("converter")


@dataclass(frozen=True)
class BatchLimits:
    """Quotas the client collection enforces."""

    max_files: int = MAX_FILES
    max_total_bytes: int = MAX_TOTAL_SIZE_BYTES
    min_file_bytes: int = MIN_FILE_SIZE_BYTES
    max_file_bytes: int = MAX_IMAGE_SIZE_BYTES


@dataclass(frozen=True)
class CompressionSettings:
    threshold_bytes: int = COMPRESS_THRESHOLD_BYTES
    max_width: int = COMPRESS_MAX_WIDTH
    quality: int = COMPRESS_QUALITY


@dataclass(frozen=True)
class ClientFeatures:
    """Optional behaviours: estimate WebP size right after add, bundle downloads as one ZIP."""

    auto_estimate: bool = AUTO_ESTIMATE
    zip_downloads: bool = ZIP_DOWNLOADS
