"""Lazily-initialized, cached storage clients.

This module provides:
- ClientManager: Owns the shared transport and one client per (profile, region)
- ClientFactory: Signature for injecting client construction
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from sitepush.core.config import DEFAULT_REGION
from sitepush.errors import ClientManagerClosedError
from sitepush.storage.client import ObjectStorageClient, S3ObjectClient
from sitepush.storage.credentials import (
    ProfileSource,
    ProfileValidator,
    resolve_profile,
)

if TYPE_CHECKING:
    from botocore.config import Config

logger = logging.getLogger(__name__)

DEFAULT_MAX_POOL_CONNECTIONS = 10
DEFAULT_CONNECT_TIMEOUT = 10.0  # seconds
DEFAULT_READ_TIMEOUT = 60.0  # seconds

# (profile name or None for the default chain, region, shared transport) -> client
ClientFactory = Callable[[str | None, str, "Config"], ObjectStorageClient]


def client_key(profile: str | None, region: str) -> str:
    """Cache key for a (profile, region) pair."""
    return f"{profile or 'default'}:{region}"


class ClientManager:
    """Creates storage clients on first use and shares them afterwards.

    The transport (a botocore Config carrying the connection pool size and
    timeouts) is built once, on the first acquisition. Clients are cached per
    (profile, region); concurrent first requests for the same key converge on
    one instance while distinct keys may be built in parallel.

    Retries are disabled at the transport level; remote operations are retried
    by sitepush.transfer.retry instead.

    Usage:
        manager = ClientManager()
        client = manager.acquire_client("prod", "us-west-2")
        ...
        manager.shutdown()
    """

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        endpoint_url: str | None = None,
        max_pool_connections: int = DEFAULT_MAX_POOL_CONNECTIONS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        profile_validator: ProfileValidator | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the manager. Nothing is built until a client is requested.

        Args:
            client_factory: Builds a client from (profile, region, transport).
                Defaults to a boto3 S3 client wrapped in S3ObjectClient.
            endpoint_url: Custom endpoint for S3-compatible services.
            max_pool_connections: Connection pool size of the transport.
            connect_timeout: Connect timeout in seconds.
            read_timeout: Read timeout in seconds.
            profile_validator: Validator for explicit profile names.
            environ: Environment used for profile resolution (defaults to os.environ).
        """
        self._client_factory = client_factory or self._create_s3_client
        self._endpoint_url = endpoint_url
        self._max_pool_connections = max_pool_connections
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout
        self._validator = profile_validator or ProfileValidator()
        self._environ = environ

        self._lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}
        self._clients: dict[str, ObjectStorageClient] = {}
        self._transport: Config | None = None
        self._transport_builds = 0
        self._closed = False

    @property
    def transport(self) -> Config | None:
        """The shared transport configuration, if built."""
        with self._lock:
            return self._transport

    @property
    def transport_builds(self) -> int:
        """How many times the transport has been constructed."""
        with self._lock:
            return self._transport_builds

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def _ensure_transport(self) -> Config:
        """Build the transport on first use. Caller holds self._lock."""
        if self._transport is None:
            from botocore.config import Config

            logger.debug(
                f"Initializing transport (pool={self._max_pool_connections}, "
                f"connect={self._connect_timeout}s, read={self._read_timeout}s)"
            )
            self._transport = Config(
                max_pool_connections=self._max_pool_connections,
                connect_timeout=self._connect_timeout,
                read_timeout=self._read_timeout,
                retries={"max_attempts": 1, "mode": "standard"},
            )
            self._transport_builds += 1
        return self._transport

    def _resolve_profile_name(self, profile: str | None) -> str | None:
        """Resolve and validate the profile to build a client with.

        An explicit profile that is not configured locally is logged and
        replaced by the default credential chain.
        """
        resolution = resolve_profile(profile, self._environ)
        if resolution.profile_name is None or resolution.source != ProfileSource.EXPLICIT:
            return resolution.profile_name

        try:
            valid = self._validator.is_valid(resolution.profile_name)
        except Exception as e:
            logger.error(f"Profile validation failed for '{resolution.profile_name}': {e}")
            return None

        if not valid:
            logger.error(
                f"Profile validation failed: profile '{resolution.profile_name}' not found. "
                "Falling back to the default credential chain"
            )
            return None
        logger.debug(f"Profile validation passed for: {resolution.profile_name}")
        return resolution.profile_name

    def _create_s3_client(
        self, profile_name: str | None, region: str, transport: Config
    ) -> ObjectStorageClient:
        """Build a boto3 S3 client bound to the shared transport."""
        import boto3

        session = boto3.session.Session(profile_name=profile_name, region_name=region)
        client = session.client(
            "s3",
            region_name=region,
            endpoint_url=self._endpoint_url,
            config=transport,
        )
        return S3ObjectClient(client, region)

    def acquire_client(
        self,
        profile: str | None = None,
        region: str = DEFAULT_REGION,
        bucket_name: str | None = None,
        key_prefix: str | None = None,
    ) -> ObjectStorageClient:
        """Return the cached client for (profile, region), building it if needed.

        Args:
            profile: Credential profile name, None for resolution from the environment.
            region: Region to bind the client to.
            bucket_name: Destination bucket (logged only).
            key_prefix: Destination key prefix (logged only).

        Returns:
            A shared ObjectStorageClient. Callers must not close it.

        Raises:
            ClientManagerClosedError: If shutdown() has been called.
        """
        with self._lock:
            if self._closed:
                raise ClientManagerClosedError("Client manager has been shut down")

        # Keyed on the resolved profile so AWS_PROFILE and an explicit flag
        # naming the same profile share one client.
        profile_name = self._resolve_profile_name(profile)
        key = client_key(profile_name, region)

        with self._lock:
            if self._closed:
                raise ClientManagerClosedError("Client manager has been shut down")
            existing = self._clients.get(key)
            if existing is not None:
                logger.debug(f"Reusing cached client for {key}")
                return existing
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            with self._lock:
                if self._closed:
                    raise ClientManagerClosedError("Client manager has been shut down")
                existing = self._clients.get(key)
                if existing is not None:
                    return existing
                transport = self._ensure_transport()

            logger.info(f"Creating storage client for profile: {profile_name or 'default'}, region: {region}")
            client = self._client_factory(profile_name, region, transport)

            with self._lock:
                if self._closed:
                    client.close()
                    raise ClientManagerClosedError("Client manager has been shut down")
                self._clients[key] = client

        if bucket_name:
            logger.info(f"Client {key} ready for bucket: {bucket_name}, prefix: {key_prefix or ''}")
        return client

    def warm_up(self, profile: str | None = None, region: str = DEFAULT_REGION) -> None:
        """Build the client for (profile, region) ahead of the first upload."""
        self.acquire_client(profile, region)

    def shutdown(self) -> None:
        """Close every cached client and drop the transport. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            clients = list(self._clients.items())
            self._clients.clear()
            self._key_locks.clear()
            self._transport = None

        for key, client in clients:
            try:
                client.close()
            except Exception as e:
                logger.warning(f"Error closing client {key}: {e}")
        self._validator.clear()
        logger.info(f"Client manager shut down ({len(clients)} client(s) closed)")

    def usage_statistics(self) -> dict[str, str]:
        """Current cache state, as strings for display."""
        with self._lock:
            stats = {
                "cached_clients": str(len(self._clients)),
                "transport_initialized": str(self._transport is not None).lower(),
                "closed": str(self._closed).lower(),
                "client_keys": ", ".join(sorted(self._clients)),
            }
        stats.update(self._validator.statistics())
        return stats
