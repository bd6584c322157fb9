"""Thread-safe progress counters for directory uploads.

This module provides:
- UploadProgress: Lock-protected counters mutated while a site uploads
- UploadStats: Immutable snapshot with formatting helpers
"""

from __future__ import annotations

import threading
from dataclasses import dataclass


def format_bytes(size: int) -> str:
    """Format a byte count for display (e.g. "45.2 MB")."""
    value = float(size)
    for unit in ("bytes", "KB", "MB", "GB"):
        if value < 1000 or unit == "GB":
            if unit == "bytes":
                return f"{int(value)} bytes"
            return f"{value:.1f} {unit}"
        value /= 1000
    return f"{value:.1f} TB"


@dataclass(frozen=True)
class UploadStats:
    """Snapshot of an UploadProgress at a point in time."""

    total_files: int = 0
    total_bytes: int = 0
    uploaded_files: int = 0
    uploaded_bytes: int = 0
    skipped_files: int = 0
    skipped_bytes: int = 0
    failed_files: int = 0
    failed_bytes: int = 0

    @property
    def processed_files(self) -> int:
        """Files that were uploaded, skipped or failed."""
        return self.uploaded_files + self.skipped_files + self.failed_files

    @property
    def percentage_complete(self) -> float:
        """Completion percentage from 0.0 to 100.0."""
        if self.total_files <= 0:
            return 0.0
        return self.processed_files / self.total_files * 100.0

    @property
    def is_complete(self) -> bool:
        """Whether every file has been processed."""
        return self.total_files > 0 and self.processed_files >= self.total_files

    @property
    def formatted_progress(self) -> str:
        """Progress string like "75.5% (151/200 files)"."""
        return (
            f"{self.percentage_complete:.1f}% "
            f"({self.processed_files}/{self.total_files} files)"
        )

    @property
    def formatted_bytes(self) -> str:
        """Uploaded vs. total bytes, human readable."""
        return f"{format_bytes(self.uploaded_bytes)} / {format_bytes(self.total_bytes)}"

    @property
    def summary(self) -> str:
        """Breakdown like "Uploaded: 145, Skipped: 5, Failed: 0"."""
        return (
            f"Uploaded: {self.uploaded_files}, "
            f"Skipped: {self.skipped_files}, "
            f"Failed: {self.failed_files}"
        )


class UploadProgress:
    """Counters for one directory upload.

    Created by the caller, passed to upload_directory, read afterwards.
    All mutators take an internal lock so workers on several threads can
    report into the same instance. Counters only ever grow.

    Usage:
        progress = UploadProgress()
        uploader.upload_directory(path, "my-site", progress=progress)
        print(progress.snapshot().summary)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_files = 0
        self._total_bytes = 0
        self._uploaded_files = 0
        self._uploaded_bytes = 0
        self._skipped_files = 0
        self._skipped_bytes = 0
        self._failed_files = 0
        self._failed_bytes = 0

    def set_totals(self, files: int, total_bytes: int) -> None:
        """Set the number of files and bytes the upload will process."""
        with self._lock:
            self._total_files = files
            self._total_bytes = total_bytes

    def add_uploaded(self, size: int) -> None:
        """Record a file that was written (or would be, in a dry run)."""
        with self._lock:
            self._uploaded_files += 1
            self._uploaded_bytes += size

    def add_skipped(self, size: int) -> None:
        """Record a file skipped because its content is unchanged."""
        with self._lock:
            self._skipped_files += 1
            self._skipped_bytes += size

    def add_failed(self, size: int) -> None:
        """Record a file whose upload failed."""
        with self._lock:
            self._failed_files += 1
            self._failed_bytes += size

    @property
    def total_files(self) -> int:
        with self._lock:
            return self._total_files

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return self._total_bytes

    @property
    def uploaded_files(self) -> int:
        with self._lock:
            return self._uploaded_files

    @property
    def uploaded_bytes(self) -> int:
        with self._lock:
            return self._uploaded_bytes

    @property
    def skipped_files(self) -> int:
        with self._lock:
            return self._skipped_files

    @property
    def skipped_bytes(self) -> int:
        with self._lock:
            return self._skipped_bytes

    @property
    def failed_files(self) -> int:
        with self._lock:
            return self._failed_files

    @property
    def failed_bytes(self) -> int:
        with self._lock:
            return self._failed_bytes

    def snapshot(self) -> UploadStats:
        """Return a consistent, immutable copy of all counters."""
        with self._lock:
            return UploadStats(
                total_files=self._total_files,
                total_bytes=self._total_bytes,
                uploaded_files=self._uploaded_files,
                uploaded_bytes=self._uploaded_bytes,
                skipped_files=self._skipped_files,
                skipped_bytes=self._skipped_bytes,
                failed_files=self._failed_files,
                failed_bytes=self._failed_bytes,
            )
