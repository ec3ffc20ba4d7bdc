"""GitHub starred-repository adapter.

Stars are listed newest first with the ``star+json`` media type, which adds
``starred_at`` to each item; that timestamp is the incremental marker.
Repositories are upserted on their GitHub ID, then mapped into artifact
records linked ``created_by`` their owner.
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

API_BASE_URL = "https://api.github.com"
TABLE = "github_repositories"
NATURAL_KEY: tuple[str, ...] = ("id",)
POLICY = ConflictPolicy.UPSERT
MARKER_COLUMN = "starred_at"


def repository_row(item: dict[str, Any], run_id: int) -> dict[str, Any]:
    """Flatten one ``star+json`` item into a staging row."""
    try:
        repo = item["repo"]
        owner = repo.get("owner") or {}
        now = to_db_timestamp(utcnow())
        return {
            "id": int(repo["id"]),
            "full_name": repo["full_name"],
            "owner_login": owner.get("login"),
            "html_url": repo["html_url"],
            "homepage_url": repo.get("homepage") or None,
            "description": repo.get("description"),
            "language": repo.get("language"),
            "topics": json.dumps(repo["topics"]) if repo.get("topics") else None,
            "starred_at": to_db_timestamp(parse_timestamp(item["starred_at"])),
            "integration_run_id": run_id,
            "created_at": now,
            "updated_at": now,
        }
    except (KeyError, TypeError, ValueError) as e:
        raise AdapterFetchError(SourceType.GITHUB, f"Malformed starred repository: {e}") from e


class GithubStarsAdapter:
    """Syncs the authenticated user's starred repositories."""

    def __init__(self, context: SyncContext) -> None:
        self._context = context
        self._store = context.store
        self._config = context.config

    @property
    def source_type(self) -> SourceType:
        return SourceType.GITHUB

    async def sync(self, run_id: int) -> int:
        token = self._config.github_token
        if not token:
            raise AdapterConfigError(SourceType.GITHUB, "GITHUB_TOKEN is not set")

        marker = await last_known_marker(
            self._store,
            table=TABLE,
            marker_column=MARKER_COLUMN,
            source_type=SourceType.GITHUB,
            run_kind=self._context.run_kind,
        )
        last_starred = parse_timestamp(marker)
        logger.info("Most recent star in database: %s", last_starred or "none")

        async with JsonApiClient(
            SourceType.GITHUB,
            API_BASE_URL,
            headers={
                "Accept": "application/vnd.github.star+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=self._config.http_timeout,
            max_retries=self._config.max_retries,
            transport=self._context.transport,
        ) as client:

            async def fetch_page(page: int) -> list[dict[str, Any]]:
                data = await client.get_json(
                    "/user/starred", {"per_page": self._config.page_size, "page": page}
                )
                if not isinstance(data, list):
                    raise AdapterFetchError(SourceType.GITHUB, "Expected a list of stars")
                return data

            stars = await fetch_incremental(
                fetch_page,
                marker_of=lambda item: parse_timestamp(item["starred_at"]),
                last_marker=last_starred,
                page_size=self._config.page_size,
                start_page=1,
            )

        rows = [repository_row(item, run_id) for item in stars]
        result = await ChunkedWriter(self._store, self._config.batch_size).write(
            TABLE, rows, NATURAL_KEY, POLICY
        )
        await self.map_records()
        logger.info("Synced %d starred repositories", result.written)
        return result.written

    async def map_records(self) -> int:
        """Create artifact records for repositories that have none yet.

        A repository, its owner link and its ``record_id`` are written in one
        transaction.
        """
        links = LinkGraph(self._store)
        created = 0

        while unmapped := await self._store.get_unmapped_rows(TABLE):
            for repo in unmapped:
                name = repo["full_name"].split("/")[-1]
                async with self._store.transaction():
                    record = await self._store.add_record(
                        type=RecordType.ARTIFACT,
                        title=name,
                        url=repo["html_url"],
                        summary=repo["description"],
                        sources=[SourceType.GITHUB.value],
                    )

                    if repo["owner_login"]:
                        owner_url = f"https://github.com/{repo['owner_login']}"
                        owner = await self._store.find_record(RecordType.ENTITY, url=owner_url)
                        if owner is None:
                            owner = await self._store.add_record(
                                type=RecordType.ENTITY,
                                title=repo["owner_login"],
                                url=owner_url,
                                sources=[SourceType.GITHUB.value],
                            )
                        await links.upsert_link(record.id, owner.id, "created_by")

                    await self._store.set_record_id(TABLE, repo["id"], record.id)
                created += 1

        if created:
            logger.info("Created %d records from GitHub repositories", created)
        return created


def create_adapter(context: SyncContext) -> GithubStarsAdapter:
    return GithubStarsAdapter(context)

