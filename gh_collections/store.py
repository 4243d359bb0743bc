"""
Collection store.

Resolves collection names to blob paths, creates missing blobs, and hands
out :class:`Collection` objects bound to them.

Usage:

    >>> config = StoreConfig.from_env()
    >>> async with CollectionStore.create(config) as store:
    ...     tasks = await store.open("tasks", RecordCodec.for_type(Task))
    ...     await tasks.insert(Task(title="write docs"))
    ...     print(await tasks.read())
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from .blobs.base import VersionedBlobStore
from .blobs.github import GitHubBlobStore
from .codec import RecordCodec
from .collection import Collection, materialize
from .config import StoreConfig
from .paths import collection_path

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CollectionStore:
    """Factory for collections stored in one repository.

    Args:
        config: Store configuration
        blob_store: Backend to use; defaults to a GitHubBlobStore built from
            config, which the store then owns and closes
    """

    def __init__(self, config: StoreConfig, blob_store: VersionedBlobStore | None = None):
        self.config = config
        self._owns_blob_store = blob_store is None
        self.blob_store: VersionedBlobStore = blob_store or GitHubBlobStore(config)

    @classmethod
    def create(
        cls, config: StoreConfig, blob_store: VersionedBlobStore | None = None
    ) -> CollectionStore:
        """Create a store; use as ``async with CollectionStore.create(config) as store``."""
        return cls(config, blob_store)

    async def close(self) -> None:
        """Close the backend if this store created it."""
        if self._owns_blob_store:
            await self.blob_store.close()

    async def __aenter__(self) -> CollectionStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def open(self, name: str, codec: RecordCodec[T] | None = None) -> Collection[T]:
        """Return the collection called ``name``, creating its blob if needed.

        A missing blob is created with an empty record list; the creation
        response then serves as the collection's initial state.

        Args:
            name: Collection name (may contain '/' for nested paths)
            codec: Record codec; defaults to plain JSON records

        Returns:
            A fresh Collection bound to the blob

        Raises:
            ValidationError: If the name is not a valid collection name
            TransportError: If the backend cannot be reached
            ConflictError: If another writer created the blob concurrently
            ContentMissingError: If the response carries no content
            VersionMissingError: If the response carries no version token
            EncodingError: If the content is not valid base64
            DeserializeError: If the content does not decode to records
        """
        record_codec: RecordCodec[Any] = codec if codec is not None else RecordCodec()
        path = collection_path(name)

        snapshot = await self.blob_store.get(path)
        if snapshot is None:
            records: list[Any] = []
            version = await self.blob_store.put(
                path,
                record_codec.encode(records),
                None,
                f"Creating Collection '{name}'",
            )
            logger.info(f"Created collection '{name}' at {path}")
        else:
            records, version = materialize(snapshot, record_codec)

        return Collection(
            name=name,
            path=path,
            blob_store=self.blob_store,
            codec=record_codec,
            records=records,
            version=version,
        )

    # Alias
    collection = open
