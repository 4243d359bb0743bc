"""
Typed collection over a single versioned blob.

A collection keeps the last fetched record list together with the version
token from the same response. Every write is a read-modify-write:

1. Fetch the blob to obtain the freshest token.
2. Apply the change to the fetched records and re-encode the whole list.
3. Put the blob with the fetched token as precondition.

If another writer got in between steps 1 and 3, the put is rejected and
``ConflictError`` propagates. Nothing is retried here; callers decide
whether to re-run the operation (see :mod:`gh_collections.retry`).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Generic, TypeVar

from .blobs.base import BlobSnapshot, VersionedBlobStore
from .codec import RecordCodec
from .exceptions import (
    BlobNotFoundError,
    ConflictError,
    ContentMissingError,
    VersionMissingError,
)
from .logging_utils import CollectionLoggerAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")

INSERT_MESSAGE = "Insert"
OVERWRITE_MESSAGE = "Overwrite"


class CollectionState(Enum):
    """Whether the local records are known to match the remote blob."""

    FRESH = "fresh"  # confirmed by the last operation
    STALE = "stale"  # the last operation failed; synchronize before trusting records


def materialize(snapshot: BlobSnapshot, codec: RecordCodec[T]) -> tuple[list[T], str]:
    """Decode a snapshot into (records, version), both from this one response.

    Raises:
        ContentMissingError: If the snapshot has no content
        VersionMissingError: If the snapshot has no version token
        EncodingError: If the content is not valid base64
        DeserializeError: If the decoded content is not a list of records
    """
    if snapshot.content is None:
        raise ContentMissingError(snapshot.path)
    records = codec.decode(snapshot.content)
    if snapshot.version is None:
        raise VersionMissingError(snapshot.path)
    return records, snapshot.version


class Collection(Generic[T]):
    """A typed, mutable view over one blob.

    Collections are created by :meth:`CollectionStore.open`, which hands over
    the result of the initial fetch, so a new collection starts out fresh.

    Attributes:
        name: Collection name
        path: Blob path the collection is bound to
    """

    def __init__(
        self,
        name: str,
        path: str,
        blob_store: VersionedBlobStore,
        codec: RecordCodec[T],
        records: list[T],
        version: str,
    ):
        self.name = name
        self.path = path
        self._blob_store = blob_store
        self._codec = codec
        self._records = records
        self._version = version
        self._state = CollectionState.FRESH
        self._log = CollectionLoggerAdapter(logger, self)

    def __repr__(self) -> str:
        return (
            f"Collection(name={self.name!r}, path={self.path!r}, "
            f"version={self._version!r}, state={self._state.value})"
        )

    @property
    def version(self) -> str:
        """Version token from the last successful operation."""
        return self._version

    @property
    def records(self) -> list[T]:
        """Records from the last successful operation (not refreshed)."""
        return self._records

    @property
    def state(self) -> CollectionState:
        return self._state

    @property
    def is_fresh(self) -> bool:
        return self._state is CollectionState.FRESH

    async def synchronize(self) -> None:
        """Replace local records and version with the blob's current state.

        Raises:
            TransportError: If the backend cannot be reached
            BlobNotFoundError: If the blob was deleted remotely
            ContentMissingError: If the response carries no content
            VersionMissingError: If the response carries no version token
            EncodingError: If the content is not valid base64
            DeserializeError: If the content does not decode to records
        """
        try:
            records, version = await self._fetch()
        except Exception:
            self._state = CollectionState.STALE
            raise
        self._commit(records, version)

    async def insert(self, record: T) -> None:
        """Append one record and write the whole list back.

        Raises:
            ConflictError: If the blob changed between fetch and write
            SerializationError: If the records cannot be encoded
            TransportError: If the backend cannot be reached
        """
        await self._write(lambda current: [*current, record], INSERT_MESSAGE)

    async def replace(self, records: Sequence[T]) -> None:
        """Overwrite the whole collection with ``records``.

        Raises:
            ConflictError: If the blob changed between fetch and write
            SerializationError: If the records cannot be encoded
            TransportError: If the backend cannot be reached
        """
        replacement = list(records)
        await self._write(lambda _current: replacement, OVERWRITE_MESSAGE)

    async def read(self) -> list[T]:
        """Synchronize and return the current records."""
        await self.synchronize()
        return self._records

    async def _fetch(self) -> tuple[list[T], str]:
        snapshot = await self._blob_store.get(self.path)
        if snapshot is None:
            raise BlobNotFoundError(self.path)
        records, version = materialize(snapshot, self._codec)
        self._log.debug(f"Fetched {len(records)} records at {version}")
        return records, version

    async def _write(self, build: Callable[[list[T]], list[T]], message: str) -> None:
        # The fetched state is only committed once the put has succeeded
        version: str | None = None
        try:
            current, version = await self._fetch()
            updated = build(current)
            content = self._codec.encode(updated)
            new_version = await self._blob_store.put(self.path, content, version, message)
        except ConflictError:
            self._state = CollectionState.STALE
            self._log.warning(
                f"{message} lost a version race at {version}", extra={"expected_version": version}
            )
            raise
        except Exception:
            self._state = CollectionState.STALE
            raise

        self._log.debug(f"{message}: {len(updated)} records, {version} -> {new_version}")
        self._commit(updated, new_version)

    def _commit(self, records: list[T], version: str) -> None:
        self._records = records
        self._version = version
        self._state = CollectionState.FRESH
