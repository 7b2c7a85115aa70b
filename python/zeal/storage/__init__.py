"""Storage module for the object storage gateway.

Provides:
- StorageClient for the gateway REST API and an in-memory FakeStorageClient
- Key building utilities for consistent storage keys
- Test isolation support via configurable prefixes
"""

from zeal.storage.client import (
    CompletedPart,
    FakeStorageClient,
    ObjectMetadata,
    SignedUpload,
    StorageClient,
    StorageClientBase,
    StorageError,
    get_storage_client,
)
from zeal.storage.keys import generate_key, get_file_extension

__all__ = [
    "StorageClient",
    "StorageClientBase",
    "FakeStorageClient",
    "StorageError",
    "SignedUpload",
    "CompletedPart",
    "ObjectMetadata",
    "get_storage_client",
    "generate_key",
    "get_file_extension",
]
