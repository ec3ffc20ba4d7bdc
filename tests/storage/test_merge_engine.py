"""Tests for merging records and undoing merges."""

from __future__ import annotations

from typing import Any

import pytest

from record_graph.core.record import Record, RecordType
from record_graph.core.run import RunKind
from record_graph.engine.links import LinkGraph
from record_graph.engine.merge import TEXT_SEPARATOR, MergeEngine
from record_graph.errors import MergeUndoError, RecordNotFoundError, SameRecordError
from record_graph.storage.sqlite_staging import ConflictPolicy
from record_graph.storage.sqlite_store import SQLiteStore
from record_graph.utils.timeutils import utcnow


async def stage_bookmark(store: SQLiteStore, bookmark_id: int, record_id: int) -> None:
    run_id = await store.insert_run("raindrop", RunKind.FULL, utcnow())
    await store.write_rows(
        "raindrop_bookmarks",
        [
            {
                "id": bookmark_id,
                "link_url": f"https://example.org/{bookmark_id}",
                "integration_run_id": run_id,
                "created_at": "2024-01-01T00:00:00.000000",
                "updated_at": "2024-01-01T00:00:00.000000",
            }
        ],
        ("id",),
        ConflictPolicy.UPSERT,
    )
    await store.set_record_id("raindrop_bookmarks", bookmark_id, record_id)


async def link_dicts(store: SQLiteStore, *record_ids: int) -> list[dict[str, Any]]:
    return [link.to_dict() for link in await store.get_links_touching(record_ids)]


@pytest.fixture
def engine(store: SQLiteStore) -> MergeEngine:
    return MergeEngine(store)


@pytest.fixture
async def duplicates(store: SQLiteStore, make_record: Any) -> dict[str, Record]:
    """X duplicates Y; both relate to Z, and X and Y are linked to each other."""
    x = await make_record(
        None,
        url="https://example.org/x",
        content="x body",
        rating=2,
        sources=["raindrop"],
    )
    y = await make_record("T", content="y body", rating=0, sources=["github"])
    z = await make_record("Z", type=RecordType.ENTITY)

    graph = LinkGraph(store)
    await graph.upsert_link(x.id, z.id, "created_by", notes="from x")
    await graph.upsert_link(y.id, z.id, "created_by", notes="from y")
    await graph.upsert_link(z.id, x.id, "references")
    await graph.upsert_link(x.id, y.id, "same_as")

    await store.add_media("https://img.example.org/x.png", record_id=x.id)
    await store.add_media("https://img.example.org/y.png", record_id=y.id)
    await stage_bookmark(store, 501, x.id)
    return {"x": x, "y": y, "z": z}


class TestMerge:
    @pytest.mark.asyncio
    async def test_fields_follow_merge_policy(
        self, engine: MergeEngine, duplicates: dict[str, Record]
    ) -> None:
        x, y = duplicates["x"], duplicates["y"]

        result = await engine.merge(x.id, y.id)

        merged = result.updated_record
        assert merged.id == y.id
        assert merged.title == "T"
        assert merged.url == "https://example.org/x"
        assert merged.rating == 2
        assert merged.content == f"y body{TEXT_SEPARATOR}x body"
        assert merged.sources == ("raindrop", "github")
        assert result.deleted_record_id == x.id

    @pytest.mark.asyncio
    async def test_source_becomes_tombstone(
        self, store: SQLiteStore, engine: MergeEngine, duplicates: dict[str, Record]
    ) -> None:
        x, y = duplicates["x"], duplicates["y"]

        await engine.merge(x.id, y.id)

        tombstone = await store.get_record(x.id)
        assert tombstone is not None
        assert not tombstone.is_active
        assert tombstone.merged_into_id == y.id
        assert x.id not in {r.id for r in await store.list_records()}

    @pytest.mark.asyncio
    async def test_links_are_repointed_and_deduplicated(
        self, store: SQLiteStore, engine: MergeEngine, duplicates: dict[str, Record]
    ) -> None:
        x, y, z = duplicates["x"], duplicates["y"], duplicates["z"]

        result = await engine.merge(x.id, y.id)

        triples = sorted(
            (link.source_id, link.target_id, link.predicate)
            for link in await store.get_links_touching([x.id, y.id])
        )
        assert triples == sorted([(y.id, z.id, "created_by"), (z.id, y.id, "references")])
        # The target's own duplicate edge survives with its notes
        (created_by,) = await store.get_outgoing_links(y.id)
        assert created_by.notes == "from y"
        assert set(result.touched_ids) == {x.id, y.id, z.id}

    @pytest.mark.asyncio
    async def test_media_and_staging_follow_target(
        self, store: SQLiteStore, engine: MergeEngine, duplicates: dict[str, Record]
    ) -> None:
        x, y = duplicates["x"], duplicates["y"]

        await engine.merge(x.id, y.id)

        assert [m.url for m in await store.get_media_for_record(y.id)] == [
            "https://img.example.org/x.png",
            "https://img.example.org/y.png",
        ]
        assert await store.get_media_for_record(x.id) == []
        (assignment,) = await store.get_staging_assignments(y.id)
        assert (assignment.table, assignment.row_id) == ("raindrop_bookmarks", 501)

    @pytest.mark.asyncio
    async def test_merge_into_itself_writes_nothing(
        self, store: SQLiteStore, engine: MergeEngine, make_record: Any
    ) -> None:
        a = await make_record("A")

        with pytest.raises(SameRecordError):
            await engine.merge(a.id, a.id)

        unchanged = await store.get_record(a.id)
        assert unchanged is not None
        assert unchanged.to_dict() == a.to_dict()
        assert await store.get_latest_merge(a.id) is None

    @pytest.mark.asyncio
    async def test_missing_or_merged_records(
        self, engine: MergeEngine, make_record: Any
    ) -> None:
        a = await make_record("A")
        b = await make_record("B")
        c = await make_record("C")

        with pytest.raises(RecordNotFoundError):
            await engine.merge(a.id, 9999)

        await engine.merge(a.id, b.id)
        with pytest.raises(RecordNotFoundError, match="already merged"):
            await engine.merge(a.id, c.id)
        with pytest.raises(RecordNotFoundError, match="already merged"):
            await engine.merge(c.id, a.id)


class TestUndoMerge:
    @pytest.mark.asyncio
    async def test_undo_restores_pre_merge_state(
        self, store: SQLiteStore, engine: MergeEngine, duplicates: dict[str, Record]
    ) -> None:
        x, y, z = duplicates["x"], duplicates["y"], duplicates["z"]
        links_before = await link_dicts(store, x.id, y.id, z.id)
        media_before = {
            r.id: [m.to_dict() for m in await store.get_media_for_record(r.id)] for r in (x, y)
        }
        staging_before = await store.get_staging_assignments(x.id)

        result = await engine.merge(x.id, y.id)
        restored_x, restored_y = await engine.undo_merge(result.snapshot)

        assert restored_x.to_dict() == x.to_dict()
        assert restored_y.to_dict() == y.to_dict()
        assert await link_dicts(store, x.id, y.id, z.id) == links_before
        for record_id, media in media_before.items():
            assert [m.to_dict() for m in await store.get_media_for_record(record_id)] == media
        assert len(media_before[y.id]) == 1
        assert await store.get_staging_assignments(x.id) == staging_before

    @pytest.mark.asyncio
    async def test_undo_latest_uses_journal(
        self, store: SQLiteStore, engine: MergeEngine, duplicates: dict[str, Record]
    ) -> None:
        x, y = duplicates["x"], duplicates["y"]
        await engine.merge(x.id, y.id)

        restored_x, restored_y = await engine.undo_latest(x.id)

        assert restored_x.to_dict() == x.to_dict()
        assert restored_y.to_dict() == y.to_dict()
        assert await store.get_latest_merge(x.id) is None

    @pytest.mark.asyncio
    async def test_undo_twice_fails(
        self, engine: MergeEngine, duplicates: dict[str, Record]
    ) -> None:
        x, y = duplicates["x"], duplicates["y"]
        result = await engine.merge(x.id, y.id)
        await engine.undo_merge(result.snapshot)

        with pytest.raises(MergeUndoError, match="not currently merged"):
            await engine.undo_merge(result.snapshot)
        with pytest.raises(MergeUndoError, match="No merge to undo"):
            await engine.undo_latest(x.id)

    @pytest.mark.asyncio
    async def test_undo_after_target_was_merged_away(
        self, engine: MergeEngine, make_record: Any
    ) -> None:
        a = await make_record("A")
        b = await make_record("B")
        c = await make_record("C")
        first = await engine.merge(a.id, b.id)
        await engine.merge(b.id, c.id)

        with pytest.raises(MergeUndoError, match="no longer active"):
            await engine.undo_merge(first.snapshot)

    @pytest.mark.asyncio
    async def test_merge_can_be_repeated_after_undo(
        self, store: SQLiteStore, engine: MergeEngine, duplicates: dict[str, Record]
    ) -> None:
        x, y = duplicates["x"], duplicates["y"]
        await engine.merge(x.id, y.id)
        await engine.undo_latest(x.id)

        again = await engine.merge(x.id, y.id)

        assert again.updated_record.rating == 2
        snapshot = await store.get_latest_merge(x.id)
        assert snapshot is not None
        assert snapshot.target_id == y.id
