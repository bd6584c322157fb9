"""Storage module - Object storage clients, credentials and the client manager."""

from sitepush.storage.client import (
    CompletedPart,
    InMemoryObjectClient,
    ObjectStorageClient,
    S3ObjectClient,
)
from sitepush.storage.credentials import (
    ProfileResolution,
    ProfileSource,
    ProfileValidator,
    resolve_profile,
)
from sitepush.storage.manager import ClientManager, client_key

__all__ = [
    # Clients
    "CompletedPart",
    "InMemoryObjectClient",
    "ObjectStorageClient",
    "S3ObjectClient",
    # Credentials
    "ProfileResolution",
    "ProfileSource",
    "ProfileValidator",
    "resolve_profile",
    # Manager
    "ClientManager",
    "client_key",
]
