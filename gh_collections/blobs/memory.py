"""
In-memory versioned blob store.

Keeps blobs in a dict and mimics the contents API closely enough to stand
in for it in tests and offline development: content comes back line-wrapped
and embedded as a JSON string, and writes are compare-and-swap on an opaque
token.
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from ..codec import DEFAULT_LINE_WIDTH, line_wrap, wrap_content
from ..exceptions import ConflictError
from .base import BlobSnapshot, VersionedBlobStore

logger = logging.getLogger(__name__)


class InMemoryBlobStore(VersionedBlobStore):
    """Process-local blob store with contents-API semantics.

    Example:
        >>> blobs = InMemoryBlobStore()
        >>> store = CollectionStore(config, blob_store=blobs)
        >>> tasks = await store.open("tasks")
    """

    def __init__(self, line_width: int = DEFAULT_LINE_WIDTH) -> None:
        self.line_width = line_width
        self._blobs: dict[str, BlobSnapshot] = {}
        self._lock = asyncio.Lock()
        # (path, message) for every successful write, oldest first
        self.history: list[tuple[str, str]] = []

    async def get(self, path: str) -> BlobSnapshot | None:
        return self._blobs.get(path)

    async def put(
        self,
        path: str,
        content: str,
        expected_version: str | None,
        message: str,
    ) -> str:
        async with self._lock:
            current = self._blobs.get(path)
            if expected_version is None:
                if current is not None:
                    # Creating over an existing blob needs its sha, as upstream
                    raise ConflictError(path)
            elif current is None or current.version != expected_version:
                logger.debug(f"Rejected write to {path}: expected {expected_version}")
                raise ConflictError(path, expected_version)

            version = uuid.uuid4().hex
            wrapped = wrap_content(line_wrap(content, self.line_width))
            self._blobs[path] = BlobSnapshot(path=path, content=wrapped, version=version)
            self.history.append((path, message))
            return version

    def seed_raw(self, path: str, content: str | None, version: str | None) -> None:
        """Plant a blob with arbitrary wrapped content and version, bypassing the codec."""
        self._blobs[path] = BlobSnapshot(path=path, content=content, version=version)

    def delete(self, path: str) -> bool:
        """Remove a blob. Returns False if it did not exist."""
        return self._blobs.pop(path, None) is not None

    def paths(self) -> list[str]:
        """List stored blob paths."""
        return sorted(self._blobs)
