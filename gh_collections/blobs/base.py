"""
Abstract versioned blob storage interface.

Defines the contract every backend implements: whole-blob get and put,
where put can be made conditional on the version token observed by an
earlier get (compare-and-swap).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class BlobSnapshot:
    """One fetch of a blob.

    Attributes:
        path: Blob path the snapshot was read from
        content: Wrapped content text exactly as carried by the response
            (None when the response had no content field)
        version: Opaque version token (None when the response had none)
    """

    path: str
    content: str | None
    version: str | None


class VersionedBlobStore(ABC):
    """Abstract base for whole-blob storage with optimistic concurrency.

    Version tokens are opaque: callers may only compare them for equality.
    Every successful ``put`` produces a token different from the one it
    replaced.
    """

    @abstractmethod
    async def get(self, path: str) -> BlobSnapshot | None:
        """Fetch the current content and version token of a blob.

        Args:
            path: Blob path

        Returns:
            Snapshot of the blob, or None if it does not exist

        Raises:
            TransportError: If the backend cannot be reached
        """

    @abstractmethod
    async def put(
        self,
        path: str,
        content: str,
        expected_version: str | None,
        message: str,
    ) -> str:
        """Write a blob.

        Args:
            path: Blob path
            content: Base64 content as produced by ``RecordCodec.encode``
            expected_version: Token the blob must still carry for the write to
                apply; None writes unconditionally (first-time creation only)
            message: Human-readable description of the change

        Returns:
            The new version token

        Raises:
            ConflictError: If the blob's current token differs from expected_version
            TransportError: If the backend cannot be reached
        """

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
        return None

    async def __aenter__(self) -> VersionedBlobStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
