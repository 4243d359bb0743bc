"""
GitHub repository contents API backend.

Provides a versioned blob store over ``/repos/{owner}/{repo}/contents/{path}``:
- GET returns the file as a JSON envelope with base64 ``content`` and ``sha``
- PUT writes the whole file; passing ``sha`` makes the write conditional

The file ``sha`` is the version token. A PUT whose ``sha`` no longer matches
is answered with 409 Conflict, which surfaces as ``ConflictError``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp

from ..config import StoreConfig
from ..exceptions import (
    AuthenticationError,
    ConflictError,
    DeserializeError,
    TransportError,
    VersionMissingError,
)
from ..paths import contents_url
from .base import BlobSnapshot, VersionedBlobStore

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/vnd.github+json"

# Status codes GitHub uses for a stale or missing sha on write
CONFLICT_STATUSES = (409, 412)
AUTH_STATUSES = (401, 403)


class GitHubBlobStore(VersionedBlobStore):
    """Versioned blob store backed by a GitHub repository.

    The aiohttp session is created lazily on first use and closed by
    :meth:`close`. A caller-provided session is used as-is and left open.

    Example:
        >>> async with GitHubBlobStore(StoreConfig.from_env()) as blobs:
        ...     snapshot = await blobs.get("tasks.json")
    """

    def __init__(self, config: StoreConfig, session: aiohttp.ClientSession | None = None):
        """Initialize the backend.

        Args:
            config: Store configuration (host, repository, credentials)
            session: Optional existing aiohttp session
        """
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._headers = {
            "Accept": ACCEPT_HEADER,
            "Authorization": f"Bearer {config.auth_token}",
            "User-Agent": config.user_agent,
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this backend created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def get(self, path: str) -> BlobSnapshot | None:
        url = contents_url(self.config, path)
        logger.debug(f"GET {url}")

        try:
            async with self._get_session().get(url, headers=self._headers) as response:
                if response.status == 404:
                    return None
                self._check_status("get_blob", url, response.status)
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError("get_blob", url, cause=e) from e

        envelope = _parse_json_object(body, url)
        if isinstance(envelope, list):
            raise DeserializeError(f"{path} is a directory, not a file")

        return BlobSnapshot(
            path=path,
            content=_wrapped_content(envelope, path),
            version=_sha_token(envelope.get("sha")),
        )

    async def put(
        self,
        path: str,
        content: str,
        expected_version: str | None,
        message: str,
    ) -> str:
        url = contents_url(self.config, path)
        payload: dict[str, Any] = {"message": message, "content": content}
        if expected_version is not None:
            payload["sha"] = expected_version
        if self.config.committer is not None:
            payload["committer"] = self.config.committer

        logger.debug(f"PUT {url} (expected sha: {expected_version})")

        session = self._get_session()
        try:
            async with session.put(url, json=payload, headers=self._headers) as response:
                if response.status in CONFLICT_STATUSES or (
                    response.status == 422 and expected_version is None
                ):
                    logger.warning(f"Write to {path} rejected with HTTP {response.status}")
                    raise ConflictError(path, expected_version, response.status)
                self._check_status("put_blob", url, response.status)
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError("put_blob", url, cause=e) from e

        envelope = _parse_json_object(body, url)
        written = envelope.get("content") if isinstance(envelope, dict) else None
        version = _sha_token(written.get("sha")) if isinstance(written, dict) else None
        if version is None:
            raise VersionMissingError(path)
        return version

    def _check_status(self, operation: str, url: str, status: int) -> None:
        if 200 <= status < 300:
            return
        if status in AUTH_STATUSES:
            raise AuthenticationError(operation, url, status)
        raise TransportError(operation, url, status)


def _parse_json_object(body: bytes, url: str) -> Any:
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DeserializeError(f"response from {url} is not valid JSON", e) from e
    if not isinstance(parsed, dict | list):
        raise DeserializeError(f"response from {url} is not a JSON object")
    return parsed


def _wrapped_content(envelope: dict[str, Any], path: str) -> str | None:
    """Return the content field as its raw JSON token text, or None if absent."""
    if envelope.get("content") is None:
        return None
    if envelope.get("encoding") == "none":
        # Files over the contents API size limit come back without content
        logger.warning(f"{path} is too large for the contents API; no content returned")
        return None
    return json.dumps(envelope["content"])


def _sha_token(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value).replace('"', "")
