"""Tests for object storage client implementations."""

import hashlib
from collections.abc import Iterator
from typing import Any

import pytest

from sitepush.errors import ObjectNotFoundError
from sitepush.storage.client import (
    CompletedPart,
    InMemoryObjectClient,
    ObjectStorageClient,
    S3ObjectClient,
)

BUCKET = "test-bucket"


class TestInMemoryObjectClient:
    """Tests for the in-memory fake."""

    @pytest.fixture
    def client(self) -> InMemoryObjectClient:
        return InMemoryObjectClient()

    def test_is_storage_client(self, client: InMemoryObjectClient) -> None:
        """Should implement the storage interface."""
        assert isinstance(client, ObjectStorageClient)

    def test_put_then_head_returns_md5_etag(self, client: InMemoryObjectClient) -> None:
        """Should return the quoted MD5 of the body from head_object."""
        client.put_object(BUCKET, "sites/a.html", b"hello", "text/html")
        assert client.head_object(BUCKET, "sites/a.html") == f'"{hashlib.md5(b"hello").hexdigest()}"'

    def test_str_body_is_utf8_encoded(self, client: InMemoryObjectClient) -> None:
        """Should store a str body as UTF-8 bytes."""
        client.put_object(BUCKET, "k", "héllo", "text/plain", "no-cache")
        stored = client.objects[(BUCKET, "k")]
        assert stored.data == "héllo".encode()
        assert stored.cache_control == "no-cache"

    def test_head_missing_raises_not_found(self, client: InMemoryObjectClient) -> None:
        """Should raise ObjectNotFoundError for missing objects."""
        with pytest.raises(ObjectNotFoundError, match="missing"):
            client.head_object(BUCKET, "missing")

    def test_multipart_assembles_parts(self, client: InMemoryObjectClient) -> None:
        """Should join parts and use an S3-style ETag on completion."""
        upload_id = client.create_multipart_upload(BUCKET, "big", "application/octet-stream")
        assert upload_id is not None
        e1 = client.upload_part(BUCKET, "big", upload_id, 1, b"aaa")
        e2 = client.upload_part(BUCKET, "big", upload_id, 2, b"bb")
        assert e1 and e2
        client.complete_multipart_upload(
            BUCKET, "big", upload_id, [CompletedPart(1, e1), CompletedPart(2, e2)]
        )

        stored = client.objects[(BUCKET, "big")]
        assert stored.data == b"aaabb"
        digests = hashlib.md5(b"aaa").digest() + hashlib.md5(b"bb").digest()
        assert stored.etag == f'"{hashlib.md5(digests).hexdigest()}-2"'
        assert client.pending_uploads == 0

    def test_abort_discards_upload(self, client: InMemoryObjectClient) -> None:
        """Should drop the pending upload on abort."""
        upload_id = client.create_multipart_upload(BUCKET, "big", "application/octet-stream")
        assert upload_id is not None
        client.abort_multipart_upload(BUCKET, "big", upload_id)
        assert client.pending_uploads == 0
        assert client.aborted_uploads == [upload_id]
        assert (BUCKET, "big") not in client.objects

    def test_calls_are_recorded(self, client: InMemoryObjectClient) -> None:
        """Should record every operation with its key."""
        client.store(BUCKET, "seeded", b"x")
        client.head_object(BUCKET, "seeded")
        client.put_object(BUCKET, "new", b"y", "text/plain")
        assert client.calls == [("head_object", "seeded"), ("put_object", "new")]
        assert client.write_count == 1

    def test_fail_next_injects_errors(self, client: InMemoryObjectClient) -> None:
        """Should fail only the next N calls with fail_next."""
        client.fail_next("put_object", times=2)
        for _ in range(2):
            with pytest.raises(ConnectionError):
                client.put_object(BUCKET, "k", b"x", "text/plain")
        client.put_object(BUCKET, "k", b"x", "text/plain")
        assert client.count("put_object") == 3

    def test_fail_always_scoped_by_prefix(self, client: InMemoryObjectClient) -> None:
        """Should only fail keys under the fail_always prefix."""
        client.fail_always("put_object", key_prefix="sites/B/")
        client.put_object(BUCKET, "sites/A/index.html", b"x", "text/html")
        with pytest.raises(ConnectionError):
            client.put_object(BUCKET, "sites/B/index.html", b"x", "text/html")


class TestS3ObjectClient:
    """Tests for S3ObjectClient using moto mock."""

    @pytest.fixture
    def s3(self) -> Iterator[Any]:
        """Set up moto mock for S3 and yield a raw boto3 client."""
        pytest.importorskip("moto")
        import boto3
        from moto import mock_aws

        with mock_aws():
            client = boto3.client("s3", region_name="us-east-1")
            client.create_bucket(Bucket=BUCKET)
            yield client

    @pytest.fixture
    def client(self, s3: Any) -> S3ObjectClient:
        return S3ObjectClient(s3, "us-east-1")

    def test_put_and_head(self, client: S3ObjectClient, s3: Any) -> None:
        """Should store content type and cache control on put."""
        client.put_object(BUCKET, "sites/a.html", "<h1>hi</h1>", "text/html", "no-cache")

        head = s3.head_object(Bucket=BUCKET, Key="sites/a.html")
        assert head["ContentType"] == "text/html"
        assert head["CacheControl"] == "no-cache"
        etag = client.head_object(BUCKET, "sites/a.html")
        assert etag == f'"{hashlib.md5(b"<h1>hi</h1>").hexdigest()}"'

    def test_head_missing_raises_not_found(self, client: S3ObjectClient) -> None:
        """Should turn a 404 from S3 into ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError):
            client.head_object(BUCKET, "does/not/exist")

    def test_multipart_round_trip(self, client: S3ObjectClient, s3: Any) -> None:
        """Should produce the joined object from a two-part upload."""
        part_size = 5 * 1024 * 1024
        first = b"a" * part_size
        second = b"b" * 10

        upload_id = client.create_multipart_upload(BUCKET, "big.bin", "application/octet-stream")
        assert upload_id
        e1 = client.upload_part(BUCKET, "big.bin", upload_id, 1, first)
        e2 = client.upload_part(BUCKET, "big.bin", upload_id, 2, second)
        assert e1 and e2
        client.complete_multipart_upload(
            BUCKET, "big.bin", upload_id, [CompletedPart(1, e1), CompletedPart(2, e2)]
        )

        body = s3.get_object(Bucket=BUCKET, Key="big.bin")["Body"].read()
        assert body == first + second

    def test_abort(self, client: S3ObjectClient, s3: Any) -> None:
        """Should no longer list aborted uploads."""
        upload_id = client.create_multipart_upload(BUCKET, "big.bin", "application/octet-stream")
        assert upload_id
        client.abort_multipart_upload(BUCKET, "big.bin", upload_id)
        listing = s3.list_multipart_uploads(Bucket=BUCKET)
        assert not listing.get("Uploads")
