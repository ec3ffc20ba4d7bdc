"""Raindrop.io bookmark adapter.

Bookmarks are paged most recently updated first; ``lastUpdate`` is the
incremental marker, so an edited bookmark is picked up again and upserted.
Each new bookmark becomes an artifact record, its tags become concept
records linked ``tagged_with``, and its cover image becomes media.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from record_graph.core.record import RecordType
from record_graph.engine.cursor import fetch_incremental, last_known_marker
from record_graph.engine.links import LinkGraph
from record_graph.engine.writer import ChunkedWriter
from record_graph.errors import AdapterConfigError, AdapterFetchError
from record_graph.integration.http import JsonApiClient
from record_graph.integration.models import SourceType, SyncContext
from record_graph.storage.sqlite_staging import ConflictPolicy
from record_graph.utils.timeutils import parse_timestamp, to_db_timestamp, utcnow

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.raindrop.io/rest/v1"
TABLE = "raindrop_bookmarks"
NATURAL_KEY: tuple[str, ...] = ("id",)
POLICY = ConflictPolicy.UPSERT
MARKER_COLUMN = "content_updated_at"

# Collection 0 is "all bookmarks except trash"
ALL_COLLECTIONS = 0


def bookmark_row(item: dict[str, Any], run_id: int) -> dict[str, Any]:
    """Flatten one raindrop into a staging row."""
    try:
        now = to_db_timestamp(utcnow())
        return {
            "id": int(item["_id"]),
            "link_url": item["link"],
            "title": item.get("title") or None,
            "excerpt": item.get("excerpt") or None,
            "note": item.get("note") or None,
            "tags": json.dumps(item["tags"]) if item.get("tags") else None,
            "important": int(bool(item.get("important"))),
            "domain": item.get("domain"),
            "cover_url": item.get("cover") or None,
            "content_created_at": to_db_timestamp(parse_timestamp(item.get("created"))),
            "content_updated_at": to_db_timestamp(parse_timestamp(item["lastUpdate"])),
            "integration_run_id": run_id,
            "created_at": now,
            "updated_at": now,
        }
    except (KeyError, TypeError, ValueError) as e:
        raise AdapterFetchError(SourceType.RAINDROP, f"Malformed raindrop: {e}") from e


class RaindropAdapter:
    """Syncs Raindrop bookmarks across all collections."""

    def __init__(self, context: SyncContext) -> None:
        self._context = context
        self._store = context.store
        self._config = context.config

    @property
    def source_type(self) -> SourceType:
        return SourceType.RAINDROP

    async def sync(self, run_id: int) -> int:
        token = self._config.raindrop_token
        if not token:
            raise AdapterConfigError(SourceType.RAINDROP, "RAINDROP_TOKEN is not set")

        marker = await last_known_marker(
            self._store,
            table=TABLE,
            marker_column=MARKER_COLUMN,
            source_type=SourceType.RAINDROP,
            run_kind=self._context.run_kind,
        )
        last_update = parse_timestamp(marker)
        logger.info("Last known raindrop date: %s", last_update or "none")

        async with JsonApiClient(
            SourceType.RAINDROP,
            API_BASE_URL,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self._config.http_timeout,
            max_retries=self._config.max_retries,
            transport=self._context.transport,
        ) as client:

            async def fetch_page(page: int) -> list[dict[str, Any]]:
                data = await client.get_json(
                    f"/raindrops/{ALL_COLLECTIONS}",
                    {"perpage": self._config.page_size, "page": page, "sort": "-lastUpdate"},
                )
                items = data.get("items") if isinstance(data, dict) else None
                if not isinstance(items, list):
                    raise AdapterFetchError(SourceType.RAINDROP, "Response has no items list")
                return items

            raindrops = await fetch_incremental(
                fetch_page,
                marker_of=lambda item: parse_timestamp(item["lastUpdate"]),
                last_marker=last_update,
                page_size=self._config.page_size,
                start_page=0,
            )

        rows = [bookmark_row(item, run_id) for item in raindrops]
        result = await ChunkedWriter(self._store, self._config.batch_size).write(
            TABLE, rows, NATURAL_KEY, POLICY
        )
        await self.map_records()
        logger.info("Synced %d raindrops", result.written)
        return result.written

    async def map_records(self) -> int:
        """Create records, tag links and cover media for unmapped bookmarks.

        Each bookmark is mapped in one transaction and marked mapped last, so
        a bookmark whose mapping fails is retried whole by the next run.
        """
        links = LinkGraph(self._store)
        created = 0

        while unmapped := await self._store.get_unmapped_rows(TABLE):
            for bookmark in unmapped:
                async with self._store.transaction():
                    record = await self._store.add_record(
                        type=RecordType.ARTIFACT,
                        title=bookmark["title"],
                        url=bookmark["link_url"],
                        content=bookmark["excerpt"],
                        notes=bookmark["note"],
                        rating=1 if bookmark["important"] else 0,
                        sources=[SourceType.RAINDROP.value],
                    )

                    for tag in json.loads(bookmark["tags"] or "[]"):
                        concept = await self._store.find_record(RecordType.CONCEPT, title=tag)
                        if concept is None:
                            concept = await self._store.add_record(
                                type=RecordType.CONCEPT,
                                title=tag,
                                sources=[SourceType.RAINDROP.value],
                            )
                        await links.upsert_link(record.id, concept.id, "tagged_with")

                    if bookmark["cover_url"]:
                        await self._store.add_media(bookmark["cover_url"], record_id=record.id)

                    await self._store.set_record_id(TABLE, bookmark["id"], record.id)
                created += 1

        if created:
            logger.info("Created %d records from Raindrop bookmarks", created)
        return created


def create_adapter(context: SyncContext) -> RaindropAdapter:
    return RaindropAdapter(context)
