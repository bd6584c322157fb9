"""Object storage operations used by the uploader.

This module provides:
- ObjectStorageClient: Narrow interface over the remote operation set
- S3ObjectClient: Production implementation backed by a boto3 S3 client
- InMemoryObjectClient: Dict-backed fake for development and testing
- CompletedPart: (part number, ETag) pair submitted when completing a multipart upload
"""

from __future__ import annotations

import hashlib
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sitepush.errors import ObjectNotFoundError

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

# Error codes S3-compatible services return for a missing object on HEAD/GET
NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})

Body = bytes | str


@dataclass(frozen=True)
class CompletedPart:
    """One acknowledged part of a multipart upload."""

    part_number: int
    etag: str


class ObjectStorageClient(ABC):
    """Abstract interface for the remote object operations.

    The uploader depends only on these methods, not on any SDK shape.
    """

    @abstractmethod
    def put_object(
        self,
        bucket: str,
        key: str,
        body: Body,
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        """Store an object in a single request."""

    @abstractmethod
    def head_object(self, bucket: str, key: str) -> str | None:
        """Return the ETag of an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """

    @abstractmethod
    def create_multipart_upload(
        self,
        bucket: str,
        key: str,
        content_type: str,
        cache_control: str | None = None,
    ) -> str | None:
        """Start a multipart upload and return its upload id."""

    @abstractmethod
    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> str | None:
        """Upload one part and return its ETag."""

    @abstractmethod
    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Assemble the uploaded parts into the final object."""

    @abstractmethod
    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Discard a multipart upload and any parts already stored."""

    def close(self) -> None:
        """Release network resources held by the client."""


class S3ObjectClient(ObjectStorageClient):
    """S3-compatible implementation (AWS, MinIO, R2, etc.).

    Wraps an already-constructed boto3 S3 client. Construction of the boto3
    client is the client manager's job.
    """

    def __init__(self, client: Any, region: str | None = None) -> None:
        """Initialize the wrapper.

        Args:
            client: A boto3 ``s3`` client.
            region: Region the client is bound to (informational).
        """
        self._client = client
        self._region = region

    @property
    def region(self) -> str | None:
        """Region the underlying client talks to."""
        return self._region

    def put_object(
        self,
        bucket: str,
        key: str,
        body: Body,
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        """Store an object in a single request."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if cache_control:
            params["CacheControl"] = cache_control
        self._client.put_object(**params)

    def head_object(self, bucket: str, key: str) -> str | None:
        """Return the ETag of an object."""
        from botocore.exceptions import ClientError

        try:
            response = self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in NOT_FOUND_CODES:
                raise ObjectNotFoundError(bucket, key) from e
            raise
        etag: str | None = response.get("ETag")
        return etag

    def create_multipart_upload(
        self,
        bucket: str,
        key: str,
        content_type: str,
        cache_control: str | None = None,
    ) -> str | None:
        """Start a multipart upload and return its upload id."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "ContentType": content_type,
        }
        if cache_control:
            params["CacheControl"] = cache_control
        response = self._client.create_multipart_upload(**params)
        upload_id: str | None = response.get("UploadId")
        return upload_id

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> str | None:
        """Upload one part and return its ETag."""
        response = self._client.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        etag: str | None = response.get("ETag")
        return etag

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Assemble the uploaded parts into the final object."""
        self._client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={
                "Parts": [
                    {"ETag": part.etag, "PartNumber": part.part_number}
                    for part in parts
                ]
            },
        )

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Discard a multipart upload."""
        self._client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)

    def close(self) -> None:
        """Close the boto3 client's connection pool."""
        self._client.close()


@dataclass
class _PendingMultipart:
    bucket: str
    key: str
    content_type: str
    cache_control: str | None
    parts: dict[int, bytes] = field(default_factory=dict)


@dataclass
class StoredObject:
    """An object held by InMemoryObjectClient."""

    data: bytes
    etag: str
    content_type: str = "application/octet-stream"
    cache_control: str | None = None


class InMemoryObjectClient(ObjectStorageClient):
    """In-memory object store for development and testing.

    Objects are kept in a dict keyed by (bucket, key). ETags follow S3's
    scheme: MD5 of the body for single uploads, MD5 of the concatenated part
    digests plus ``-<count>`` for multipart uploads. Every call is recorded in
    ``calls`` as an (operation, key) tuple, and failures can be injected per
    operation.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.objects: dict[tuple[str, str], StoredObject] = {}
        self.calls: list[tuple[str, str]] = []
        self.completed_parts: list[list[CompletedPart]] = []
        self.aborted_uploads: list[str] = []
        self._multipart: dict[str, _PendingMultipart] = {}
        self._failures: dict[str, list[BaseException]] = {}
        self._permanent_failures: dict[str, tuple[str, BaseException]] = {}
        self.closed = False

    # Test helpers

    def store(self, bucket: str, key: str, data: bytes) -> None:
        """Seed an object without recording a call."""
        with self._lock:
            self.objects[(bucket, key)] = StoredObject(
                data=data, etag=f'"{hashlib.md5(data).hexdigest()}"'
            )

    def fail_next(self, operation: str, times: int = 1, error: BaseException | None = None) -> None:
        """Make the next ``times`` calls of an operation raise."""
        with self._lock:
            queue = self._failures.setdefault(operation, [])
            for _ in range(times):
                queue.append(error or ConnectionError(f"injected {operation} failure"))

    def fail_always(self, operation: str, key_prefix: str = "", error: BaseException | None = None) -> None:
        """Make every call of an operation on keys under ``key_prefix`` raise."""
        with self._lock:
            self._permanent_failures[operation] = (
                key_prefix,
                error or ConnectionError(f"injected {operation} failure"),
            )

    def count(self, operation: str) -> int:
        """Number of recorded calls of an operation."""
        with self._lock:
            return sum(1 for op, _ in self.calls if op == operation)

    @property
    def write_count(self) -> int:
        """Number of object-creating requests (put + multipart parts + completes)."""
        with self._lock:
            return sum(
                1
                for op, _ in self.calls
                if op in ("put_object", "upload_part", "complete_multipart_upload")
            )

    def _record(self, operation: str, key: str) -> None:
        with self._lock:
            self.calls.append((operation, key))
            queued = self._failures.get(operation)
            if queued:
                raise queued.pop(0)
            permanent = self._permanent_failures.get(operation)
            if permanent and key.startswith(permanent[0]):
                raise permanent[1]

    # ObjectStorageClient

    def put_object(
        self,
        bucket: str,
        key: str,
        body: Body,
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        """Store an object."""
        self._record("put_object", key)
        data = body.encode("utf-8") if isinstance(body, str) else bytes(body)
        with self._lock:
            self.objects[(bucket, key)] = StoredObject(
                data=data,
                etag=f'"{hashlib.md5(data).hexdigest()}"',
                content_type=content_type,
                cache_control=cache_control,
            )

    def head_object(self, bucket: str, key: str) -> str | None:
        """Return the stored ETag."""
        self._record("head_object", key)
        with self._lock:
            stored = self.objects.get((bucket, key))
        if stored is None:
            raise ObjectNotFoundError(bucket, key)
        return stored.etag

    def create_multipart_upload(
        self,
        bucket: str,
        key: str,
        content_type: str,
        cache_control: str | None = None,
    ) -> str | None:
        """Start a multipart upload."""
        self._record("create_multipart_upload", key)
        upload_id = uuid.uuid4().hex
        with self._lock:
            self._multipart[upload_id] = _PendingMultipart(
                bucket=bucket,
                key=key,
                content_type=content_type,
                cache_control=cache_control,
            )
        return upload_id

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> str | None:
        """Store one part."""
        self._record("upload_part", key)
        with self._lock:
            pending = self._multipart.get(upload_id)
            if pending is None:
                raise KeyError(f"Unknown upload id: {upload_id}")
            pending.parts[part_number] = bytes(body)
        return f'"{hashlib.md5(body).hexdigest()}"'

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Assemble parts in the order given."""
        self._record("complete_multipart_upload", key)
        with self._lock:
            pending = self._multipart.pop(upload_id, None)
            if pending is None:
                raise KeyError(f"Unknown upload id: {upload_id}")
            numbers = [part.part_number for part in parts]
            if numbers != sorted(numbers) or set(numbers) != set(pending.parts):
                raise ValueError(f"Invalid part list for {key}: {numbers}")
            chunks = [pending.parts[number] for number in numbers]
            digests = b"".join(hashlib.md5(chunk).digest() for chunk in chunks)
            self.completed_parts.append(list(parts))
            self.objects[(bucket, key)] = StoredObject(
                data=b"".join(chunks),
                etag=f'"{hashlib.md5(digests).hexdigest()}-{len(chunks)}"',
                content_type=pending.content_type,
                cache_control=pending.cache_control,
            )

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Drop a pending multipart upload."""
        self._record("abort_multipart_upload", key)
        with self._lock:
            self._multipart.pop(upload_id, None)
            self.aborted_uploads.append(upload_id)

    @property
    def pending_uploads(self) -> int:
        """Multipart uploads created but neither completed nor aborted."""
        with self._lock:
            return len(self._multipart)

    def close(self) -> None:
        """Mark the client as closed."""
        self.closed = True
