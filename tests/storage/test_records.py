"""Tests for record and media storage."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from record_graph.core.predicate import PREDICATES
from record_graph.core.record import RecordType
from record_graph.engine.links import LinkGraph
from record_graph.storage.schema import SCHEMA_VERSION
from record_graph.storage.sqlite_store import SQLiteStore, open_store


class TestStoreLifecycle:
    @pytest.mark.asyncio
    async def test_schema_version(self, store: SQLiteStore) -> None:
        assert await store.get_schema_version() == SCHEMA_VERSION

    @pytest.mark.asyncio
    async def test_reopening_is_idempotent(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "graph.db"
        async with open_store(db_path) as store:
            await store.add_record(title="kept")

        async with open_store(db_path) as store:
            assert await store.count_records() == 1
            rows = await store.list_predicate_rows()
            assert len(rows) == len(PREDICATES)

    def test_uninitialized_store(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError, match="not initialized"):
            SQLiteStore(tmp_path / "graph.db")._ensure_conn()


class TestTransactions:
    @pytest.mark.asyncio
    async def test_store_writes_inside_a_block_roll_back_together(
        self, store: SQLiteStore
    ) -> None:
        with pytest.raises(RuntimeError, match="boom"):
            async with store.transaction():
                record = await store.add_record(title="half mapped")
                await store.add_media("https://img.example/1.png", record_id=record.id)
                raise RuntimeError("boom")

        assert await store.count_records() == 0
        assert await store.get_media_for_record(record.id) == []

    @pytest.mark.asyncio
    async def test_nested_blocks_commit_with_the_outer_one(
        self, store: SQLiteStore, tmp_path: Path
    ) -> None:
        with pytest.raises(RuntimeError):
            async with store.transaction():
                async with store.transaction():
                    await store.add_record(title="inner")
                raise RuntimeError("outer failed")

        assert await store.count_records() == 0

        async with store.transaction():
            async with store.transaction():
                await store.add_record(title="inner")
            await store.add_record(title="outer")

        async with open_store(tmp_path / "graph.db") as other:
            assert await other.count_records() == 2


class TestRecords:
    @pytest.mark.asyncio
    async def test_add_and_get(self, store: SQLiteStore) -> None:
        record = await store.add_record(
            type=RecordType.CONCEPT,
            title="sqlite",
            sources=["raindrop", "raindrop", "github"],
            is_private=True,
        )

        loaded = await store.get_record(record.id)

        assert loaded is not None
        assert loaded.to_dict() == record.to_dict()
        assert loaded.sources == ("raindrop", "github")
        assert loaded.is_private is True

    @pytest.mark.asyncio
    async def test_list_filters(self, store: SQLiteStore, make_record: Any) -> None:
        await make_record("Python tips", type=RecordType.ARTIFACT)
        await make_record("python", type=RecordType.CONCEPT)
        await make_record("Secret python", is_private=True)

        concepts = await store.list_records(type=RecordType.CONCEPT)
        public = await store.list_records(title_contains="ython", include_private=False)

        assert [r.title for r in concepts] == ["python"]
        assert {r.title for r in public} == {"Python tips", "python"}

    @pytest.mark.asyncio
    async def test_find_record(self, store: SQLiteStore, make_record: Any) -> None:
        first = await make_record("octo", type=RecordType.ENTITY, url="https://github.com/octo")
        await make_record("octo", type=RecordType.ENTITY, url="https://github.com/octo")

        found = await store.find_record(RecordType.ENTITY, url="https://github.com/octo")

        assert found is not None
        assert found.id == first.id
        assert await store.find_record(RecordType.CONCEPT, title="octo") is None
        with pytest.raises(ValueError):
            await store.find_record(RecordType.ENTITY)

    @pytest.mark.asyncio
    async def test_update_record(self, store: SQLiteStore, make_record: Any) -> None:
        record = await make_record("draft")

        await store.update_record(record.with_updates(title="final", rating=3))

        loaded = await store.get_record(record.id)
        assert loaded is not None
        assert (loaded.title, loaded.rating) == ("final", 3)

        with pytest.raises(ValueError, match="does not exist"):
            await store.update_record(record.with_updates(id=9999))

    @pytest.mark.asyncio
    async def test_delete_cascades_links_and_detaches_media(
        self, store: SQLiteStore, make_record: Any
    ) -> None:
        a = await make_record("A")
        b = await make_record("B")
        await LinkGraph(store).upsert_link(a.id, b.id, "references")
        media = await store.add_media("https://img/a.png", record_id=a.id)

        assert await store.delete_record(a.id) is True

        assert await store.get_incoming_links(b.id) == []
        detached = await store.get_media(media.id)
        assert detached is not None
        assert detached.record_id is None
        assert await store.delete_record(a.id) is False

    @pytest.mark.asyncio
    async def test_count_records(self, store: SQLiteStore, make_record: Any) -> None:
        await make_record("A")
        await make_record("B")
        assert await store.count_records() == 2
        assert await store.count_records(include_merged=True) == 2


class TestMedia:
    @pytest.mark.asyncio
    async def test_same_url_is_stored_once(self, store: SQLiteStore, make_record: Any) -> None:
        record = await make_record("A")

        first = await store.add_media("https://img/cover.png", record_id=record.id)
        second = await store.add_media("https://img/cover.png", kind="thumbnail")

        assert second.id == first.id
        assert second.kind == "image"
        assert [m.id for m in await store.get_media_for_record(record.id)] == [first.id]
