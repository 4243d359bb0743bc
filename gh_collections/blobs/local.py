"""
Local filesystem versioned blob store.

Each blob is a JSON envelope file shaped like a contents API response
(``{"content": ..., "sha": ...}``), written atomically with a temp file +
rename. Compare-and-swap is guarded by a per-path asyncio lock, so the
version check is only race-free within a single process.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..codec import DEFAULT_LINE_WIDTH, line_wrap, wrap_content
from ..exceptions import ConflictError, DeserializeError, TransportError, ValidationError
from .base import BlobSnapshot, VersionedBlobStore


class LocalBlobStore(VersionedBlobStore):
    """Blob store rooted at a local directory.

    Args:
        root: Directory holding the envelope files
        line_width: Line width used when storing base64 content
    """

    def __init__(self, root: Path | str, line_width: int = DEFAULT_LINE_WIDTH) -> None:
        self.root = Path(root)
        self.line_width = line_width
        self._locks: dict[str, asyncio.Lock] = {}

    def _file_for(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise ValidationError("path", "escapes the store root", path)
        return target

    def _lock_for(self, path: str) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = asyncio.Lock()
        return lock

    async def get(self, path: str) -> BlobSnapshot | None:
        envelope = await self._read_envelope(path)
        if envelope is None:
            return None

        content = envelope.get("content")
        sha = envelope.get("sha")
        return BlobSnapshot(
            path=path,
            content=wrap_content(content) if content is not None else None,
            version=str(sha) if sha is not None else None,
        )

    async def put(
        self,
        path: str,
        content: str,
        expected_version: str | None,
        message: str,
    ) -> str:
        async with self._lock_for(path):
            envelope = await self._read_envelope(path)
            current = envelope.get("sha") if envelope is not None else None

            if expected_version is None:
                if envelope is not None:
                    raise ConflictError(path)
            elif current is None or str(current) != expected_version:
                raise ConflictError(path, expected_version)

            version = uuid.uuid4().hex
            await self._write_envelope(
                path,
                {
                    "content": line_wrap(content, self.line_width),
                    "sha": version,
                    "message": message,
                },
            )
            return version

    async def _read_envelope(self, path: str) -> dict[str, Any] | None:
        target = self._file_for(path)
        try:
            if not await aiofiles.os.path.exists(target):
                return None
            async with aiofiles.open(target, encoding="utf-8") as f:
                raw = await f.read()
        except OSError as e:
            raise TransportError("read_blob", str(target), cause=e) from e
        except UnicodeDecodeError as e:
            raise DeserializeError(f"envelope {target} is not UTF-8", e) from e

        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DeserializeError(f"envelope {target} is not valid JSON", e) from e
        if not isinstance(envelope, dict):
            raise DeserializeError(f"envelope {target} is not a JSON object")
        return envelope

    async def _write_envelope(self, path: str, envelope: dict[str, Any]) -> None:
        target = self._file_for(path)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
        except OSError as e:
            raise TransportError("create_directory", str(target.parent), cause=e) from e

        fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix=".tmp_", suffix=".json")
        try:
            os.close(fd)
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(envelope, indent=2))
                await f.flush()
                os.fsync(f.fileno())

            await aiofiles.os.replace(temp_path, target)
        except OSError as e:
            try:
                await aiofiles.os.remove(temp_path)
            except OSError:
                pass
            raise TransportError("write_blob", str(target), cause=e) from e
