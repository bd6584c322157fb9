"""Parallel module - Bounded concurrent upload of several sites."""

from sitepush.parallel.orchestrator import (
    DEFAULT_MAX_CONCURRENT_UPLOADS,
    ParallelUploadManager,
    ParallelUploadProgress,
    SiteUploadResult,
)

__all__ = [
    "DEFAULT_MAX_CONCURRENT_UPLOADS",
    "ParallelUploadManager",
    "ParallelUploadProgress",
    "SiteUploadResult",
]
