"""Tests for the collection read-modify-write protocol."""

import asyncio
import logging
from dataclasses import dataclass

import pytest

from gh_collections import (
    BlobNotFoundError,
    CollectionState,
    CollectionStore,
    ConflictError,
    ContentMissingError,
    EncodingError,
    InMemoryBlobStore,
    RecordCodec,
    SerializationError,
    TransportError,
    VersionMissingError,
)
from gh_collections.codec import encode_records, wrap_content


@dataclass
class Task:
    title: str
    done: bool = False


class FailingPutBlobStore(InMemoryBlobStore):
    """Accepts the initial create, then fails every later write."""

    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error

    async def put(self, path, content, expected_version, message):
        if expected_version is None:
            return await super().put(path, content, expected_version, message)
        raise self.error


class TestSynchronize:
    async def test_picks_up_external_writes(self, store: CollectionStore) -> None:
        mine = await store.open("tasks")
        theirs = await store.open("tasks")

        await theirs.insert({"id": 1})
        await mine.synchronize()

        assert mine.records == [{"id": 1}]
        assert mine.version == theirs.version

    async def test_records_and_version_come_from_one_fetch(
        self, store: CollectionStore, memory_blobs: InMemoryBlobStore
    ) -> None:
        tasks = await store.open("tasks")
        memory_blobs.seed_raw(tasks.path, wrap_content(encode_records(["a"])), "v-a")
        await tasks.synchronize()
        assert (tasks.records, tasks.version) == (["a"], "v-a")

        memory_blobs.seed_raw(tasks.path, wrap_content(encode_records(["b"])), "v-b")
        await tasks.synchronize()
        assert (tasks.records, tasks.version) == (["b"], "v-b")

    async def test_content_missing(
        self, store: CollectionStore, memory_blobs: InMemoryBlobStore
    ) -> None:
        tasks = await store.open("tasks")
        memory_blobs.seed_raw(tasks.path, None, "v2")

        with pytest.raises(ContentMissingError):
            await tasks.synchronize()
        assert tasks.state is CollectionState.STALE

    async def test_version_missing(
        self, store: CollectionStore, memory_blobs: InMemoryBlobStore
    ) -> None:
        tasks = await store.open("tasks")
        memory_blobs.seed_raw(tasks.path, wrap_content(encode_records([1])), None)

        with pytest.raises(VersionMissingError):
            await tasks.synchronize()

    async def test_malformed_content_keeps_previous_state(
        self, store: CollectionStore, memory_blobs: InMemoryBlobStore
    ) -> None:
        tasks = await store.open("tasks")
        await tasks.insert({"id": 1})
        version = tasks.version

        memory_blobs.seed_raw(tasks.path, '"not*base64"', "v-broken")

        with pytest.raises(EncodingError):
            await tasks.synchronize()
        assert tasks.records == [{"id": 1}]
        assert tasks.version == version
        assert not tasks.is_fresh

    async def test_deleted_blob(
        self, store: CollectionStore, memory_blobs: InMemoryBlobStore
    ) -> None:
        tasks = await store.open("tasks")
        memory_blobs.delete(tasks.path)

        with pytest.raises(BlobNotFoundError):
            await tasks.synchronize()

    async def test_recovers_to_fresh(
        self, store: CollectionStore, memory_blobs: InMemoryBlobStore
    ) -> None:
        tasks = await store.open("tasks")
        memory_blobs.seed_raw(tasks.path, None, "v2")
        with pytest.raises(ContentMissingError):
            await tasks.synchronize()

        memory_blobs.seed_raw(tasks.path, wrap_content(encode_records([])), "v3")
        await tasks.synchronize()

        assert tasks.is_fresh
        assert tasks.version == "v3"


class TestInsert:
    async def test_appends_and_changes_version(self, store: CollectionStore) -> None:
        tasks = await store.open("tasks")
        await tasks.replace(["a", "b"])
        before = tasks.version

        await tasks.insert("r")

        assert tasks.records == ["a", "b", "r"]
        assert tasks.version != before
        assert tasks.is_fresh

    async def test_writes_whole_sequence(
        self, store: CollectionStore, memory_blobs: InMemoryBlobStore
    ) -> None:
        tasks = await store.open("tasks")
        await tasks.insert({"id": 1})
        await tasks.insert({"id": 2})

        other = await store.open("tasks")
        assert other.records == [{"id": 1}, {"id": 2}]
        assert [message for _, message in memory_blobs.history] == [
            "Creating Collection 'tasks'",
            "Insert",
            "Insert",
        ]

    async def test_builds_on_latest_remote_state(self, store: CollectionStore) -> None:
        mine = await store.open("tasks")
        theirs = await store.open("tasks")

        await theirs.insert("theirs")
        await mine.insert("mine")

        assert mine.records == ["theirs", "mine"]

    async def test_concurrent_writers_one_conflicts(
        self, racing_store: CollectionStore, racing_blobs
    ) -> None:
        first = await racing_store.open("tasks")
        second = await racing_store.open("tasks")
        await first.synchronize()
        await second.synchronize()

        racing_blobs.arm(2)
        results = await asyncio.gather(
            first.insert("from-first"),
            second.insert("from-second"),
            return_exceptions=True,
        )

        conflicts = [r for r in results if isinstance(r, ConflictError)]
        successes = [r for r in results if r is None]
        assert len(conflicts) == 1
        assert len(successes) == 1

        final = await (await racing_store.open("tasks")).read()
        assert len(final) == 1

    async def test_conflict_leaves_state_untouched(self, store: CollectionStore) -> None:
        failing = FailingPutBlobStore(ConflictError("tasks.json", "stale"))
        tasks = await CollectionStore(store.config, blob_store=failing).open("tasks")
        version = tasks.version

        with pytest.raises(ConflictError):
            await tasks.insert("x")

        assert tasks.records == []
        assert tasks.version == version
        assert tasks.state is CollectionState.STALE

    async def test_conflict_warning_names_fetched_token(
        self, store: CollectionStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        failing = FailingPutBlobStore(ConflictError("tasks.json", "fetched-token"))
        tasks = await CollectionStore(store.config, blob_store=failing).open("tasks")
        failing.seed_raw(tasks.path, wrap_content(encode_records([])), "fetched-token")

        with caplog.at_level(logging.WARNING, logger="gh_collections.collection"):
            with pytest.raises(ConflictError):
                await tasks.insert("x")

        record = caplog.records[-1]
        assert record.getMessage() == "Insert lost a version race at fetched-token"
        assert record.expected_version == "fetched-token"
        assert record.collection == "tasks"
        assert record.state == "stale"

    async def test_transport_failure_leaves_state_untouched(self, store: CollectionStore) -> None:
        failing = FailingPutBlobStore(TransportError("put_blob", status=502))
        tasks = await CollectionStore(store.config, blob_store=failing).open("tasks")

        with pytest.raises(TransportError):
            await tasks.insert("x")

        assert tasks.records == []
        assert not tasks.is_fresh

    async def test_unserializable_record_is_not_written(
        self, store: CollectionStore, memory_blobs: InMemoryBlobStore
    ) -> None:
        tasks = await store.open("tasks")
        writes = len(memory_blobs.history)

        with pytest.raises(SerializationError):
            await tasks.insert(object())

        assert len(memory_blobs.history) == writes
        assert tasks.records == []


class TestReplace:
    async def test_discards_previous_records(self, store: CollectionStore) -> None:
        tasks = await store.open("tasks")
        await tasks.insert("old")

        await tasks.replace(["new-1", "new-2"])

        assert tasks.records == ["new-1", "new-2"]
        assert await tasks.read() == ["new-1", "new-2"]

    async def test_sequential_replaces_do_not_conflict(
        self, store: CollectionStore, memory_blobs: InMemoryBlobStore
    ) -> None:
        tasks = await store.open("tasks")

        await tasks.replace([1])
        await tasks.replace([2])

        assert tasks.records == [2]
        assert memory_blobs.history[-1] == (tasks.path, "Overwrite")

    async def test_replace_with_empty(self, store: CollectionStore) -> None:
        tasks = await store.open("tasks")
        await tasks.insert("x")

        await tasks.replace([])

        assert await tasks.read() == []

    async def test_caller_list_is_copied(self, store: CollectionStore) -> None:
        tasks = await store.open("tasks")
        source = ["a"]

        await tasks.replace(source)
        source.append("b")

        assert tasks.records == ["a"]


class TestRead:
    async def test_reflects_remote_state(self, store: CollectionStore) -> None:
        mine = await store.open("tasks")
        theirs = await store.open("tasks")

        await theirs.insert("x")

        assert mine.records == []
        assert await mine.read() == ["x"]

    async def test_returns_current_records(self, store: CollectionStore) -> None:
        tasks = await store.open("tasks")
        await tasks.insert("x")

        result = await tasks.read()

        assert result is tasks.records

    async def test_typed_records(self, store: CollectionStore) -> None:
        tasks = await store.open("tasks", RecordCodec.for_type(Task))
        await tasks.insert(Task("write docs"))
        await tasks.insert(Task("ship", done=True))

        reopened = await store.open("tasks", RecordCodec.for_type(Task))

        assert await reopened.read() == [Task("write docs"), Task("ship", done=True)]
