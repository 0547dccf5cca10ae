"""
Unit Tests: In-Memory Coordination Backend

Tests:
    - Path creation and sequential naming
    - One-shot child watches
    - Ephemeral cleanup on close and expiry
    - Concurrent ensure_path from two participants
    - Fault injection
"""

import asyncio

from zkbarrier.core.types import ConnectionEvent
from zkbarrier.core.errors import ErrorCode
from zkbarrier.coordination.memory import InMemoryCoordinationClient, InMemoryCoordinationStore
from zkbarrier.coordination.protocols import CoordinationClient
from zkbarrier.tests.support import connected


class TestInMemoryStore:
    """Tests for the shared node tree."""

    def test_ensure_path_creates_parents(self):
        store = InMemoryCoordinationStore()
        store.ensure_path("/a/b/c")
        assert store.exists("/a")
        assert store.exists("/a/b")
        assert store.get_children("/a/b") == ["c"]

    def test_sequential_names(self):
        store = InMemoryCoordinationStore()
        store.ensure_path("/barrier")
        first = store.create("/barrier/p-", b"", owner=None, sequential=True)
        second = store.create("/barrier/p-", b"", owner=None, sequential=True)
        assert first == "/barrier/p-0000000000"
        assert second == "/barrier/p-0000000001"

    def test_watch_fires_once(self):
        store = InMemoryCoordinationStore()
        store.ensure_path("/barrier")
        fired = []
        store.get_children("/barrier", watch=lambda: fired.append(1))
        store.create("/barrier/p-", b"", owner=None, sequential=True)
        store.create("/barrier/p-", b"", owner=None, sequential=True)
        assert fired == [1]
        assert store.pending_watches("/barrier") == 0

    def test_drop_session_removes_only_owned(self):
        store = InMemoryCoordinationStore()
        store.ensure_path("/barrier")
        store.create("/barrier/p-", b"", owner=1, sequential=True)
        store.create("/barrier/p-", b"", owner=2, sequential=True)
        assert store.drop_session(1) == 1
        assert store.get_children("/barrier") == ["p-0000000001"]


class TestInMemoryClient:
    """Tests for the async client facade."""

    def test_satisfies_protocol(self):
        client = InMemoryCoordinationClient(InMemoryCoordinationStore())
        assert isinstance(client, CoordinationClient)

    def test_concurrent_ensure_path(self):
        async def scenario():
            store = InMemoryCoordinationStore()
            a, b = await connected(store, 2)
            return store, await asyncio.gather(a.ensure_path("/barrier"), b.ensure_path("/barrier"))

        store, results = asyncio.run(scenario())
        assert all(r.is_ok() for r in results)
        assert store.exists("/barrier")

    def test_create_and_read(self):
        async def scenario():
            store = InMemoryCoordinationStore()
            (client,) = await connected(store)
            await client.ensure_path("/barrier")
            path = (await client.create_sequential_ephemeral("/barrier/p-", b"10")).unwrap()
            data = (await client.read_data(path)).unwrap()
            return path, data

        path, data = asyncio.run(scenario())
        assert path == "/barrier/p-0000000000"
        assert data == b"10"

    def test_create_without_root_fails(self):
        async def scenario():
            (client,) = await connected(InMemoryCoordinationStore())
            return await client.create_sequential_ephemeral("/missing/p-")

        result = asyncio.run(scenario())
        assert result.is_err()
        assert result.error.code is ErrorCode.REGISTRATION_NODE_FAILED

    def test_watch_delivered_on_loop(self):
        async def scenario():
            store = InMemoryCoordinationStore()
            watcher, joiner = await connected(store, 2)
            await watcher.ensure_path("/barrier")
            fired = asyncio.Event()
            listing = await watcher.list_children("/barrier", fired.set)
            await joiner.create_sequential_ephemeral("/barrier/p-")
            await asyncio.wait_for(fired.wait(), timeout=1.0)
            return listing.unwrap()

        assert asyncio.run(scenario()) == []

    def test_close_removes_ephemerals_and_is_idempotent(self):
        async def scenario():
            store = InMemoryCoordinationStore()
            (client,) = await connected(store)
            await client.ensure_path("/barrier")
            await client.create_sequential_ephemeral("/barrier/p-")
            await client.close()
            await client.close()
            return store, client

        store, client = asyncio.run(scenario())
        assert client.closed
        assert client.close_calls == 2
        assert store.get_children("/barrier") == []

    def test_operations_after_close_fail(self):
        async def scenario():
            (client,) = await connected(InMemoryCoordinationStore())
            await client.close()
            return await client.list_children("/", lambda: None)

        assert asyncio.run(scenario()).is_err()

    def test_expire_notifies_listeners(self):
        async def scenario():
            store = InMemoryCoordinationStore()
            (client,) = await connected(store)
            events = []
            client.add_connection_listener(events.append)
            await client.ensure_path("/barrier")
            await client.create_sequential_ephemeral("/barrier/p-")
            client.expire()
            await asyncio.sleep(0)
            return store, events

        store, events = asyncio.run(scenario())
        assert events == [ConnectionEvent.LOST]
        assert store.get_children("/barrier") == []

    def test_fault_injection(self):
        async def scenario():
            store = InMemoryCoordinationStore()
            (client,) = await connected(store)
            await client.ensure_path("/barrier")
            path = (await client.create_sequential_ephemeral("/barrier/p-", b"1")).unwrap()
            client.fail_reads = {"p-0000000000"}
            client.fail_listing = True
            client.fail_create = True
            return (
                await client.read_data(path),
                await client.list_children("/barrier", lambda: None),
                await client.create_sequential_ephemeral("/barrier/p-"),
            )

        read, listing, create = asyncio.run(scenario())
        assert read.error.code is ErrorCode.READ_FAILED
        assert listing.error.code is ErrorCode.LISTING_FAILED
        assert create.error.code is ErrorCode.REGISTRATION_NODE_FAILED
