"""
gh-collections

Typed document collections stored as JSON files in a GitHub repository.

Each collection is one blob holding a JSON array of records. Writes use the
file's sha as an optimistic-concurrency precondition, so a concurrent
writer is reported as ``ConflictError`` instead of being silently
overwritten.

Usage:

    >>> from gh_collections import CollectionStore, RecordCodec, StoreConfig
    >>> config = StoreConfig(auth_token=token, owner="octocat", repo="notes-db")
    >>> async with CollectionStore.create(config) as store:
    ...     notes = await store.open("notes")
    ...     await notes.insert({"title": "hello"})
    ...     print(await notes.read())

Handling conflicts:

    from gh_collections import ConflictError, retry_on_conflict

    try:
        await notes.insert(note)
    except ConflictError:
        await notes.synchronize()  # then decide whether to retry

    # or opt in to a bounded retry loop
    await retry_on_conflict(lambda: notes.insert(note))

Backends:

    from gh_collections.blobs import GitHubBlobStore    # remote repository
    from gh_collections.blobs import InMemoryBlobStore  # tests, offline use
    from gh_collections.blobs import LocalBlobStore     # local directory
"""

from .blobs import (
    BlobSnapshot,
    GitHubBlobStore,
    InMemoryBlobStore,
    LocalBlobStore,
    VersionedBlobStore,
)
from .codec import RecordCodec, decode_records, encode_records, strip_upstream_framing, wrap_content
from .collection import Collection, CollectionState
from .config import StoreConfig
from .exceptions import (
    AuthenticationError,
    BlobNotFoundError,
    CollectionStoreError,
    ConfigParseError,
    ConflictError,
    ContentMissingError,
    ContentNotUtf8Error,
    DeserializeError,
    EncodingError,
    SerializationError,
    TransportError,
    ValidationError,
    VersionMissingError,
)
from .retry import retry_on_conflict
from .store import CollectionStore

__all__ = [
    # Core
    "CollectionStore",
    "Collection",
    "CollectionState",
    "StoreConfig",
    # Codec
    "RecordCodec",
    "encode_records",
    "decode_records",
    "strip_upstream_framing",
    "wrap_content",
    # Backends
    "VersionedBlobStore",
    "BlobSnapshot",
    "GitHubBlobStore",
    "InMemoryBlobStore",
    "LocalBlobStore",
    # Retry
    "retry_on_conflict",
    # Exceptions
    "CollectionStoreError",
    "ConfigParseError",
    "ValidationError",
    "TransportError",
    "AuthenticationError",
    "SerializationError",
    "DeserializeError",
    "ContentNotUtf8Error",
    "EncodingError",
    "ContentMissingError",
    "VersionMissingError",
    "ConflictError",
    "BlobNotFoundError",
]

__version__ = "0.1.0"
