"""Change detection and object upload for one site tree.

This module provides:
- SiteUploader: Uploads files and directories to a bucket, skipping unchanged content

Each file goes through the same states:

    Pending -> Skipped                      (local MD5 matches the remote ETag)
    Pending -> SingleShot -> Done           (size <= multipart threshold)
    Pending -> Created -> Parts(n) -> Completed -> Done
    any state -> Failed                     (a remote operation exhausted its retries)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from sitepush.core.config import DEFAULT_UPLOAD_CONFIGURATION, UploadConfiguration
from sitepush.core.content_types import classify, is_text_file
from sitepush.core.hashing import compute_md5, normalize_etag
from sitepush.core.progress import UploadProgress, UploadStats, format_bytes
from sitepush.errors import (
    DirectoryNotFoundError,
    MultipartUploadError,
    ObjectNotFoundError,
    UploadOperationError,
)
from sitepush.storage.client import CompletedPart
from sitepush.storage.manager import ClientManager
from sitepush.transfer.retry import with_retry

if TYPE_CHECKING:
    from sitepush.storage.client import Body, ObjectStorageClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

ExcludePredicate = Callable[[str], bool]


def _is_hidden(relative: Path) -> bool:
    return any(part.startswith(".") for part in relative.parts)


def iter_site_files(root: Path) -> Iterator[tuple[Path, str]]:
    """Yield (path, POSIX relative path) for every visible regular file, sorted.

    Hidden files and anything inside a hidden directory are skipped.
    """
    entries = []
    for path in root.rglob("*"):
        relative = path.relative_to(root)
        if _is_hidden(relative) or not path.is_file():
            continue
        entries.append((relative.as_posix(), path))
    for relative_str, path in sorted(entries):
        yield path, relative_str


class SiteUploader:
    """Uploads files to one bucket and key prefix.

    The storage client is obtained lazily from a ClientManager on the first
    remote operation, so dry runs never touch the network. A client passed in
    directly is used as-is.

    Usage:
        uploader = SiteUploader(UploadConfiguration(bucket_name="my-bucket"))
        stats = uploader.upload_directory("Public/blog", "blog")
        print(stats.summary)
        uploader.close()
    """

    def __init__(
        self,
        configuration: UploadConfiguration = DEFAULT_UPLOAD_CONFIGURATION,
        profile: str | None = None,
        client: ObjectStorageClient | None = None,
        client_manager: ClientManager | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the uploader.

        Args:
            configuration: Destination, retry and multipart settings.
            profile: Credential profile used when acquiring a client.
            client: Storage client to use instead of acquiring one.
            client_manager: Shared manager to borrow a client from. When neither
                client nor client_manager is given, the uploader creates and
                owns a manager of its own.
            sleep: Sleep function used between retries.
        """
        self._config = configuration
        self._profile = profile
        self._client = client
        self._owns_manager = client is None and client_manager is None
        self._manager = client_manager
        if self._owns_manager:
            self._manager = ClientManager()
        self._sleep = sleep
        self._lock = threading.Lock()

        self._files_uploaded = 0
        self._files_skipped = 0
        self._multipart_uploads = 0
        self._bytes_uploaded = 0

        logger.debug(
            f"SiteUploader initialized for bucket: {configuration.bucket_name}, "
            f"prefix: {configuration.key_prefix}"
        )

    @property
    def configuration(self) -> UploadConfiguration:
        return self._config

    def _get_client(self) -> ObjectStorageClient:
        with self._lock:
            if self._client is None:
                assert self._manager is not None
                self._client = self._manager.acquire_client(
                    self._profile,
                    self._config.region,
                    bucket_name=self._config.bucket_name,
                    key_prefix=self._config.key_prefix,
                )
            return self._client

    def _retry(self, operation: str, key: str, work: Callable[[], T]) -> T:
        """Run one remote operation under the retry policy.

        Raises:
            UploadOperationError: When every attempt failed.
        """
        try:
            return with_retry(
                f"{operation}({key})",
                self._config.max_retries,
                self._config.retry_base_delay,
                work,
                sleep=self._sleep,
            )
        except Exception as e:
            raise UploadOperationError(operation, key, self._config.max_retries + 1, e) from e

    def object_key(self, remote_path: str) -> str:
        """Return the full object key for a path relative to the key prefix."""
        remote_path = remote_path.lstrip("/")
        if not self._config.key_prefix:
            return remote_path
        return f"{self._config.key_prefix}/{remote_path}"

    def warm_up(self) -> None:
        """Acquire the storage client now instead of on the first upload."""
        self._get_client()

    # Change detection

    def remote_etag(self, key: str) -> str | None:
        """Return the remote object's ETag without quotes, or None if absent."""
        client = self._get_client()
        bucket = self._config.bucket_name

        def head() -> str | None:
            try:
                return client.head_object(bucket, key)
            except ObjectNotFoundError:
                return None

        return normalize_etag(self._retry("head_object", key, head))

    def should_skip(self, local_path: Path | str, key: str) -> bool:
        """Whether the remote object already holds the local file's content."""
        remote = self.remote_etag(key)
        if remote is None:
            logger.debug(f"File does not exist remotely, will upload: {key}")
            return False

        if compute_md5(local_path) == remote:
            logger.debug(f"File unchanged, skipping: {key}")
            return True

        logger.debug(f"File changed, will upload: {key}")
        return False

    # Single object upload

    def upload_file(
        self,
        local_path: Path | str,
        remote_path: str,
        content_type: str,
        cache_control: str | None = None,
        skip_unchanged: bool = True,
    ) -> bool:
        """Upload a single file.

        Args:
            local_path: File to upload.
            remote_path: Path below the key prefix.
            content_type: MIME type sent with the object.
            cache_control: Cache-Control header, if any.
            skip_unchanged: Skip the upload when the remote copy is identical.

        Returns:
            True if the object was written, False if it was skipped.

        Raises:
            UploadOperationError: If a remote operation failed after all retries.
            MultipartUploadError: If the multipart sequence could not be carried out.
        """
        path = Path(local_path)
        key = self.object_key(remote_path)

        if skip_unchanged and self.should_skip(path, key):
            logger.info(f"Skipping unchanged file: {path}")
            with self._lock:
                self._files_skipped += 1
            return False

        size = path.stat().st_size
        logger.info(f"Uploading file: {path} -> s3://{self._config.bucket_name}/{key}")

        if self._config.enable_multipart_upload and size > self._config.multipart_threshold:
            self._upload_multipart(path, key, content_type, cache_control)
            with self._lock:
                self._multipart_uploads += 1
        else:
            body = self._read_body(path)
            client = self._get_client()
            self._retry(
                "put_object",
                key,
                partial(
                    client.put_object,
                    self._config.bucket_name,
                    key,
                    body,
                    content_type,
                    cache_control,
                ),
            )

        with self._lock:
            self._files_uploaded += 1
            self._bytes_uploaded += size
        logger.info(f"Successfully uploaded: {key}")
        return True

    def _read_body(self, path: Path) -> Body:
        """Read a file as str for text types (when valid UTF-8), bytes otherwise."""
        data = path.read_bytes()
        if is_text_file(path.suffix):
            try:
                return data.decode("utf-8")
            except UnicodeDecodeError:
                logger.debug(f"{path} is not valid UTF-8, sending as bytes")
        return data

    def _upload_multipart(
        self,
        path: Path,
        key: str,
        content_type: str,
        cache_control: str | None,
    ) -> None:
        """Upload a large file in fixed-size parts, one part at a time."""
        client = self._get_client()
        bucket = self._config.bucket_name
        chunk_size = self._config.multipart_chunk_size
        logger.info(f"Using multipart upload for large file: {key} ({path.stat().st_size} bytes)")

        upload_id = self._retry(
            "create_multipart_upload",
            key,
            partial(client.create_multipart_upload, bucket, key, content_type, cache_control),
        )
        if not upload_id:
            raise MultipartUploadError(f"No upload id returned for {key}")

        try:
            parts: list[CompletedPart] = []
            with open(path, "rb") as f:
                part_number = 1
                while chunk := f.read(chunk_size):
                    etag = self._retry(
                        "upload_part",
                        key,
                        partial(client.upload_part, bucket, key, upload_id, part_number, chunk),
                    )
                    if not etag:
                        raise MultipartUploadError(
                            f"No ETag returned for part {part_number} of {key}"
                        )
                    parts.append(CompletedPart(part_number, etag))
                    logger.debug(f"Uploaded part {part_number} for {key}")
                    part_number += 1

            self._retry(
                "complete_multipart_upload",
                key,
                partial(client.complete_multipart_upload, bucket, key, upload_id, parts),
            )
        except Exception:
            if self._config.abort_failed_multipart:
                self._abort_multipart(client, key, upload_id)
            raise

        logger.info(f"Completed multipart upload for: {key} ({len(parts)} parts)")

    def _abort_multipart(self, client: ObjectStorageClient, key: str, upload_id: str) -> None:
        """Abort a failed multipart upload. Failure here is logged only."""
        try:
            client.abort_multipart_upload(self._config.bucket_name, key, upload_id)
            logger.warning(f"Aborted multipart upload {upload_id} for {key}")
        except Exception as e:
            logger.error(f"Failed to abort multipart upload {upload_id} for {key}: {e}")

    # Directory upload

    def upload_directory(
        self,
        local_directory: Path | str,
        site_prefix: str,
        dry_run: bool = False,
        progress: UploadProgress | None = None,
        exclude: ExcludePredicate | None = None,
    ) -> UploadStats:
        """Upload every visible file below a directory.

        Files are processed one at a time in sorted order. The first file that
        fails terminally stops the upload; it is counted as failed and its error
        is re-raised.

        Args:
            local_directory: Root of the site tree.
            site_prefix: Path below the key prefix the tree is uploaded to.
            dry_run: Log what would be uploaded without any remote calls.
            progress: Counters to report into (a fresh one when omitted).
            exclude: Predicate on POSIX relative paths; True excludes the file.

        Returns:
            Final counters.

        Raises:
            DirectoryNotFoundError: If local_directory does not exist.
        """
        root = Path(local_directory)
        if not root.is_dir():
            raise DirectoryNotFoundError(root)

        progress = progress if progress is not None else UploadProgress()
        site_prefix = site_prefix.strip("/")

        files: list[tuple[Path, str, int]] = []
        excluded = 0
        for path, relative in iter_site_files(root):
            if exclude is not None and exclude(relative):
                logger.debug(f"Excluding file: {relative}")
                excluded += 1
                continue
            files.append((path, relative, path.stat().st_size))

        progress.set_totals(len(files), sum(size for _, _, size in files))
        if excluded:
            logger.info(f"Excluded {excluded} file(s) matching exclude patterns")

        mode = "[DRY RUN] " if dry_run else ""
        logger.info(
            f"{mode}Uploading {len(files)} file(s) from {root} to "
            f"s3://{self._config.bucket_name}/{self.object_key(site_prefix)}"
        )

        for path, relative, size in files:
            remote_path = f"{site_prefix}/{relative}" if site_prefix else relative
            key = self.object_key(remote_path)

            if dry_run:
                logger.info(f"[DRY RUN] Would upload: {relative} -> s3://{self._config.bucket_name}/{key}")
                progress.add_uploaded(size)
                continue

            info = classify(path)
            try:
                if self._config.skip_unchanged_files and self.should_skip(path, key):
                    logger.debug(f"Skipping unchanged file: {relative}")
                    with self._lock:
                        self._files_skipped += 1
                    progress.add_skipped(size)
                    continue
                self.upload_file(
                    path,
                    remote_path,
                    info.content_type,
                    cache_control=self._config.cache_control(path.suffix),
                    skip_unchanged=False,
                )
            except Exception:
                progress.add_failed(size)
                raise
            progress.add_uploaded(size)

        stats = progress.snapshot()
        logger.info(
            f"{mode}Upload complete for {site_prefix or root.name}: {stats.summary}, "
            f"Excluded: {excluded} ({format_bytes(stats.uploaded_bytes)} uploaded)"
        )
        return stats

    # Lifecycle

    def performance_stats(self) -> dict[str, str]:
        """Uploader counters merged with the client manager's usage statistics."""
        with self._lock:
            stats = {
                "bucket": self._config.bucket_name,
                "key_prefix": self._config.key_prefix,
                "region": self._config.region,
                "client_initialized": str(self._client is not None).lower(),
                "files_uploaded": str(self._files_uploaded),
                "files_skipped": str(self._files_skipped),
                "multipart_uploads": str(self._multipart_uploads),
                "bytes_uploaded": str(self._bytes_uploaded),
            }
        if self._manager is not None:
            stats.update(self._manager.usage_statistics())
        return stats

    def close(self) -> None:
        """Shut down the client manager if this uploader created it."""
        if self._owns_manager and self._manager is not None:
            self._manager.shutdown()
