"""Upload configuration shared by the uploader and the orchestrator.

This module defines the immutable settings that control how files are sent to
the bucket: destination, retry budget, multipart sizing and cache headers.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

MiB = 1024 * 1024

DEFAULT_BUCKET = "sitepush-public"
DEFAULT_KEY_PREFIX = "sites"
DEFAULT_REGION = "us-west-2"
DEFAULT_CHUNK_SIZE = 5 * MiB  # S3 minimum part size

HTML_CACHE_CONTROL = "no-cache, must-revalidate"
ASSET_CACHE_CONTROL = "public, max-age=31536000, immutable"  # 1 year
MODERATE_CACHE_CONTROL = "public, max-age=3600"  # 1 hour
DOCUMENT_CACHE_CONTROL = "public, max-age=86400"  # 1 day

_HTML_EXTENSIONS = ("html", "htm")
_ASSET_EXTENSIONS = (
    "css", "js", "png", "jpg", "jpeg", "gif", "svg", "webp", "ico",
    "woff", "woff2", "ttf", "otf", "eot",
)
_MODERATE_EXTENSIONS = ("json", "webmanifest", "manifest", "txt", "md")


@dataclass(frozen=True)
class UploadConfiguration:
    """Settings for uploading one site tree to a bucket.

    Attributes:
        bucket_name: Destination bucket.
        key_prefix: Prefix prepended to every object key.
        region: Region of the bucket.
        max_retries: Retries after the first attempt of each remote operation.
        retry_base_delay: Backoff base in seconds (doubles on every retry).
        multipart_threshold: Files larger than this use multipart upload.
        multipart_chunk_size: Size of each multipart part in bytes.
        enable_multipart_upload: Use multipart for large files.
        skip_unchanged_files: Skip files whose MD5 matches the remote ETag.
        abort_failed_multipart: Abort a multipart upload whose parts failed.
        default_cache_duration: Default cache lifetime in seconds.
        html_cache_control: Cache-Control for HTML documents.
        asset_cache_control: Cache-Control for fingerprinted static assets.
        moderate_cache_control: Cache-Control for everything else.
    """

    bucket_name: str = DEFAULT_BUCKET
    key_prefix: str = DEFAULT_KEY_PREFIX
    region: str = DEFAULT_REGION
    max_retries: int = 3
    retry_base_delay: float = 1.0
    multipart_threshold: int = DEFAULT_CHUNK_SIZE
    multipart_chunk_size: int = DEFAULT_CHUNK_SIZE
    enable_multipart_upload: bool = True
    skip_unchanged_files: bool = True
    abort_failed_multipart: bool = True
    default_cache_duration: int = 3600
    html_cache_control: str = HTML_CACHE_CONTROL
    asset_cache_control: str = ASSET_CACHE_CONTROL
    moderate_cache_control: str = MODERATE_CACHE_CONTROL

    def __post_init__(self) -> None:
        """Validate sizes and normalize the key prefix."""
        if self.multipart_chunk_size <= 0:
            raise ValueError(
                f"multipart_chunk_size must be positive, got {self.multipart_chunk_size}"
            )
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        object.__setattr__(self, "key_prefix", self.key_prefix.strip("/"))

    @property
    def cache_control_for_file_type(self) -> dict[str, str]:
        """Map of lowercase file extension to Cache-Control directive."""
        mapping: dict[str, str] = {}
        for ext in _HTML_EXTENSIONS:
            mapping[ext] = self.html_cache_control
        for ext in _ASSET_EXTENSIONS:
            mapping[ext] = self.asset_cache_control
        for ext in _MODERATE_EXTENSIONS:
            mapping[ext] = self.moderate_cache_control
        mapping["pdf"] = DOCUMENT_CACHE_CONTROL
        return mapping

    def cache_control(self, extension: str) -> str:
        """Return the Cache-Control directive for a file extension.

        Args:
            extension: File extension, with or without the leading dot.

        Returns:
            Directive string; the moderate directive for unknown extensions.
        """
        ext = extension.lstrip(".").lower()
        return self.cache_control_for_file_type.get(ext, self.moderate_cache_control)

    def with_overrides(self, **changes: Any) -> UploadConfiguration:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


DEFAULT_UPLOAD_CONFIGURATION = UploadConfiguration()
