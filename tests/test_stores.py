"""Tests for the in-memory and local file agent stores."""

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.store.base import NotFound, StoreUnavailable, ValidationError
from src.store.file_store import LocalFileAgentStore
from src.store.memory_store import InMemoryAgentStore
from tests.conftest import paused, queued


def _insert_many(path, prefix, count):
    """Insert `count` agents through a fresh store in its own event loop."""

    async def run():
        store = LocalFileAgentStore(path, seed=[])
        return [(await store.insert(queued(0, 1, f"{prefix}{i}"))).id for i in range(count)]

    return asyncio.run(run())


class _Recorder:
    def __init__(self):
        self.events = []

    def on_insert(self, agent):
        self.events.append(("insert", agent.id))

    def on_update(self, agent):
        self.events.append(("update", agent.id))

    def on_delete(self, agent_id):
        self.events.append(("delete", agent_id))

    def subscribe(self, store):
        return store.subscribe(self.on_insert, self.on_update, self.on_delete)


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_fetch_all_sorted_by_id(self):
        store = InMemoryAgentStore([queued(3, 2), queued(1, 1)])
        assert [a.id for a in await store.fetch_all()] == [1, 3]

    @pytest.mark.asyncio
    async def test_insert_assigns_next_id(self):
        store = InMemoryAgentStore([queued(4, 1)])
        created = await store.insert(queued(1, 2, "New"))
        assert created.id == 5

    @pytest.mark.asyncio
    async def test_ids_never_reused(self):
        store = InMemoryAgentStore()
        first = await store.insert(queued(0, 1, "First"))
        await store.remove(first.id)
        second = await store.insert(queued(0, 1, "Second"))
        assert second.id == first.id + 1

    @pytest.mark.asyncio
    async def test_insert_without_name_rejected(self):
        store = InMemoryAgentStore()
        with pytest.raises(ValidationError):
            await store.insert(queued(1, 1).model_copy(update={"name": " "}))

    @pytest.mark.asyncio
    async def test_update_patches_fields(self):
        store = InMemoryAgentStore([queued(1, 1, "A")])
        updated = await store.update(1, {"available": False, "queue_position": 0})
        assert updated.available is False
        assert updated.name == "A"

    @pytest.mark.asyncio
    async def test_update_unknown_raises_not_found(self):
        with pytest.raises(NotFound):
            await InMemoryAgentStore().update(1, {"name": "X"})

    @pytest.mark.asyncio
    async def test_update_with_bad_value_raises_validation_error(self):
        store = InMemoryAgentStore([queued(1, 1)])
        with pytest.raises(ValidationError):
            await store.update(1, {"queue_position": "first"})

    @pytest.mark.asyncio
    async def test_remove_unknown_raises_not_found(self):
        with pytest.raises(NotFound):
            await InMemoryAgentStore().remove(7)

    @pytest.mark.asyncio
    async def test_upsert_many_replaces_and_inserts(self):
        store = InMemoryAgentStore([queued(1, 1, "A")])
        await store.upsert_many([queued(1, 2, "A"), queued(2, 1, "B")])
        agents = await store.fetch_all()
        assert [(a.id, a.queue_position) for a in agents] == [(1, 2), (2, 1)]

    @pytest.mark.asyncio
    async def test_change_events_delivered_asynchronously(self):
        store = InMemoryAgentStore([queued(1, 1)])
        recorder = _Recorder()
        recorder.subscribe(store)

        created = await store.insert(queued(0, 2, "B"))
        await store.update(1, {"name": "Ann"})
        await store.remove(created.id)
        assert recorder.events == []

        await asyncio.sleep(0)
        assert recorder.events == [("insert", created.id), ("update", 1), ("delete", created.id)]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self):
        store = InMemoryAgentStore([queued(1, 1)])
        recorder = _Recorder()
        subscription = recorder.subscribe(store)

        await store.update(1, {"name": "Ann"})
        subscription.unsubscribe()
        await asyncio.sleep(0)
        assert recorder.events == []
        assert not subscription.active

    @pytest.mark.asyncio
    async def test_unsubscribe_twice_is_harmless(self):
        subscription = _Recorder().subscribe(InMemoryAgentStore())
        subscription.unsubscribe()
        subscription.unsubscribe()


class TestLocalFileStore:
    @pytest.mark.asyncio
    async def test_seeds_demo_agents_when_missing(self, tmp_path):
        store = LocalFileAgentStore(tmp_path / "agents.json")
        agents = await store.fetch_all()
        assert [a.name for a in agents] == ["Ana Silva", "Carlos Souza"]
        assert (tmp_path / "agents.json").exists()

    @pytest.mark.asyncio
    async def test_file_uses_persisted_column_names(self, tmp_path):
        path = tmp_path / "agents.json"
        store = LocalFileAgentStore(path, seed=[queued(1, 1, "A")])
        await store.update(1, {"available": False, "queue_position": 0})
        data = json.loads(path.read_text())
        assert data["agents"][0]["nome"] == "A"
        assert data["agents"][0]["status"] is False
        assert data["agents"][0]["posicao_fila"] == 0

    @pytest.mark.asyncio
    async def test_second_instance_sees_writes(self, tmp_path):
        path = tmp_path / "agents.json"
        writer = LocalFileAgentStore(path, seed=[])
        reader = LocalFileAgentStore(path, seed=[])
        created = await writer.insert(queued(0, 1, "Shared"))
        assert [a.id for a in await reader.fetch_all()] == [created.id]

    def test_concurrent_writers_keep_every_record(self, tmp_path):
        path = tmp_path / "agents.json"
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(_insert_many, path, prefix, 40) for prefix in ("a", "b")]
            ids = [agent_id for future in futures for agent_id in future.result()]

        assert len(set(ids)) == 80
        stored = asyncio.run(LocalFileAgentStore(path, seed=[]).fetch_all())
        assert sorted(a.id for a in stored) == sorted(ids)

    @pytest.mark.asyncio
    async def test_next_id_survives_restart(self, tmp_path):
        path = tmp_path / "agents.json"
        store = LocalFileAgentStore(path, seed=[paused(1)])
        created = await store.insert(queued(0, 1, "B"))
        await store.remove(created.id)

        reopened = LocalFileAgentStore(path, seed=[])
        again = await reopened.insert(queued(0, 1, "C"))
        assert again.id == created.id + 1

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_store_unavailable(self, tmp_path):
        path = tmp_path / "agents.json"
        path.write_text("{not json")
        with pytest.raises(StoreUnavailable):
            await LocalFileAgentStore(path).fetch_all()

    @pytest.mark.asyncio
    async def test_remove_unknown_raises_not_found(self, tmp_path):
        store = LocalFileAgentStore(tmp_path / "agents.json", seed=[])
        with pytest.raises(NotFound):
            await store.remove(1)
