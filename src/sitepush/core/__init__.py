"""Core module - Configuration, progress counters, hashing and content types."""

from sitepush.core.config import (
    DEFAULT_UPLOAD_CONFIGURATION,
    UploadConfiguration,
)
from sitepush.core.content_types import (
    ContentInfo,
    cache_control,
    classify,
    content_type,
    is_image_file,
    is_text_file,
)
from sitepush.core.hashing import compute_md5, md5_bytes, normalize_etag
from sitepush.core.progress import UploadProgress, UploadStats

__all__ = [
    # Config
    "DEFAULT_UPLOAD_CONFIGURATION",
    "UploadConfiguration",
    # Content types
    "ContentInfo",
    "cache_control",
    "classify",
    "content_type",
    "is_image_file",
    "is_text_file",
    # Hashing
    "compute_md5",
    "md5_bytes",
    "normalize_etag",
    # Progress
    "UploadProgress",
    "UploadStats",
]
