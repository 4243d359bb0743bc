"""
Shared test configuration and fixtures.

Provides:
- An in-memory store wired to a test config
- A blob store that can hold concurrent fetches at a gate, to force
  write races deterministically
- A fake GitHub contents API served in-process by aiohttp, for testing the
  HTTP backend without network access
"""

import asyncio
import hashlib
import logging
from collections.abc import Callable
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from gh_collections import CollectionStore, InMemoryBlobStore, StoreConfig
from gh_collections.blobs import BlobSnapshot
from gh_collections.codec import line_wrap

logger = logging.getLogger(__name__)


class RacingBlobStore(InMemoryBlobStore):
    """In-memory store that can hold the next N gets until all N have arrived.

    Once armed with ``arm(n)``, the first n gets block until the n-th one
    arrives, so n concurrent writers all observe the same version token.
    Later gets pass straight through.
    """

    def __init__(self) -> None:
        super().__init__()
        self._parties = 0
        self._arrived = 0
        self._released: asyncio.Event | None = None

    def arm(self, parties: int) -> None:
        self._parties = parties
        self._arrived = 0
        self._released = asyncio.Event()

    async def get(self, path: str) -> BlobSnapshot | None:
        snapshot = await super().get(path)
        if self._released is not None and not self._released.is_set():
            self._arrived += 1
            if self._arrived >= self._parties:
                self._released.set()
            await self._released.wait()
        return snapshot


class FakeContentsApi:
    """Minimal stand-in for the GitHub repository contents API.

    Files are kept as ``{"content": <line-wrapped base64>, "sha": <str>}``.
    Every request is recorded for assertions.
    """

    def __init__(self) -> None:
        self.files: dict[str, dict[str, Any]] = {}
        self.requests: list[dict[str, Any]] = []
        self.base_url = ""
        # Hooks for failure injection
        self.fail_status: int | None = None
        self.raw_body: str | None = None
        self.omit_put_sha = False
        self.on_put: Callable[[str], None] | None = None
        self._counter = 0

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/repos/{owner}/{repo}/contents/{path:.*}", self.handle_get)
        app.router.add_put("/repos/{owner}/{repo}/contents/{path:.*}", self.handle_put)
        return app

    def next_sha(self, path: str) -> str:
        self._counter += 1
        return hashlib.sha1(f"{path}:{self._counter}".encode()).hexdigest()

    def write_external(self, path: str, encoded: str) -> str:
        """Simulate another client writing the file."""
        sha = self.next_sha(path)
        self.files[path] = {"content": line_wrap(encoded), "sha": sha}
        return sha

    def _record(self, request: web.Request, body: Any = None) -> None:
        self.requests.append(
            {
                "method": request.method,
                "path": request.path,
                "owner": request.match_info["owner"],
                "repo": request.match_info["repo"],
                "headers": dict(request.headers),
                "body": body,
            }
        )

    def _injected_failure(self) -> web.Response | None:
        if self.fail_status is not None:
            return web.json_response({"message": "injected failure"}, status=self.fail_status)
        if self.raw_body is not None:
            return web.Response(text=self.raw_body, content_type="text/html")
        return None

    async def handle_get(self, request: web.Request) -> web.Response:
        self._record(request)
        failure = self._injected_failure()
        if failure is not None:
            return failure

        path = request.match_info["path"]
        stored = self.files.get(path)
        if stored is None:
            return web.json_response({"message": "Not Found"}, status=404)

        return web.json_response(
            {
                "type": "file",
                "encoding": stored.get("encoding", "base64"),
                "path": path,
                "name": path.rsplit("/", 1)[-1],
                **{k: v for k, v in stored.items() if k != "encoding"},
            }
        )

    async def handle_put(self, request: web.Request) -> web.Response:
        body = await request.json()
        self._record(request, body)
        failure = self._injected_failure()
        if failure is not None:
            return failure

        path = request.match_info["path"]
        if self.on_put is not None:
            self.on_put(path)

        stored = self.files.get(path)
        sha = body.get("sha")
        if stored is not None and sha is None:
            return web.json_response(
                {"message": "Invalid request.\n\n\"sha\" wasn't supplied."}, status=422
            )
        if (stored is None and sha is not None) or (stored is not None and stored["sha"] != sha):
            return web.json_response(
                {"message": f"{path} does not match {sha}"}, status=409
            )

        new_sha = self.next_sha(path)
        self.files[path] = {"content": line_wrap(body["content"]), "sha": new_sha}

        content: dict[str, Any] = {"path": path, "name": path.rsplit("/", 1)[-1]}
        if not self.omit_put_sha:
            content["sha"] = new_sha
        return web.json_response(
            {"content": content, "commit": {"message": body["message"]}},
            status=201 if stored is None else 200,
        )


@pytest.fixture
def config() -> StoreConfig:
    """Config pointing at a repository that is never contacted."""
    return StoreConfig(auth_token="test-token", owner="octocat", repo="notes-db")


@pytest.fixture
def memory_blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def racing_blobs() -> RacingBlobStore:
    return RacingBlobStore()


@pytest.fixture
def store(config: StoreConfig, memory_blobs: InMemoryBlobStore) -> CollectionStore:
    return CollectionStore(config, blob_store=memory_blobs)


@pytest.fixture
def racing_store(config: StoreConfig, racing_blobs: RacingBlobStore) -> CollectionStore:
    return CollectionStore(config, blob_store=racing_blobs)


@pytest.fixture
async def contents_api():
    """Fake contents API running on a local port."""
    api = FakeContentsApi()
    server = TestServer(api.app())
    await server.start_server()
    api.base_url = f"http://{server.host}:{server.port}"
    logger.debug(f"Fake contents API listening on {api.base_url}")
    yield api
    await server.close()


@pytest.fixture
def github_config(contents_api: FakeContentsApi) -> StoreConfig:
    return StoreConfig(
        auth_token="test-token",
        owner="octocat",
        repo="notes-db",
        host=contents_api.base_url,
        path_prefix="db/",
        timeout=5.0,
    )
