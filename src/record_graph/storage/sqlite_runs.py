"""SQLite integration run operations mixin."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from record_graph.core.run import IntegrationRun, RunKind, RunStatus
from record_graph.storage.row_mappers import row_to_run
from record_graph.utils.timeutils import to_db_timestamp

if TYPE_CHECKING:
    import aiosqlite


class SQLiteRunMixin:
    """Mixin providing persistence for the integration-run ledger."""

    def _ensure_conn(self) -> aiosqlite.Connection: ...

    async def _commit(self) -> None: ...

    async def insert_run(self, source_type: str, run_kind: RunKind, started_at: datetime) -> int:
        conn = self._ensure_conn()
        cursor = await conn.execute(
            """INSERT INTO integration_runs (source_type, run_kind, status, started_at)
               VALUES (?, ?, ?, ?)""",
            (source_type, run_kind.value, RunStatus.IN_PROGRESS.value, to_db_timestamp(started_at)),
        )
        await self._commit()
        if cursor.lastrowid is None:
            raise RuntimeError("Failed to create integration run record")
        return cursor.lastrowid

    async def finish_run(
        self,
        run_id: int,
        status: RunStatus,
        ended_at: datetime,
        entries_created: int | None = None,
        message: str | None = None,
    ) -> bool:
        """Move a run from in_progress to a terminal status.

        Returns False when the run does not exist or is already finalized.
        """
        conn = self._ensure_conn()
        cursor = await conn.execute(
            """UPDATE integration_runs
               SET status = ?, ended_at = ?, message = ?,
                   entries_created = COALESCE(?, entries_created)
               WHERE id = ? AND status = ?""",
            (
                status.value,
                to_db_timestamp(ended_at),
                message,
                entries_created,
                run_id,
                RunStatus.IN_PROGRESS.value,
            ),
        )
        await self._commit()
        return cursor.rowcount > 0

    async def get_run(self, run_id: int) -> IntegrationRun | None:
        conn = self._ensure_conn()
        async with conn.execute("SELECT * FROM integration_runs WHERE id = ?", (run_id,)) as cursor:
            row = await cursor.fetchone()
            return row_to_run(row) if row else None

    async def get_in_progress_runs(self, source_type: str | None = None) -> list[IntegrationRun]:
        conn = self._ensure_conn()
        query = "SELECT * FROM integration_runs WHERE status = ?"
        params: list[Any] = [RunStatus.IN_PROGRESS.value]
        if source_type is not None:
            query += " AND source_type = ?"
            params.append(source_type)
        query += " ORDER BY started_at ASC"

        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [row_to_run(row) for row in rows]

    async def list_runs(
        self,
        source_type: str | None = None,
        status: RunStatus | None = None,
        limit: int = 50,
    ) -> list[IntegrationRun]:
        conn = self._ensure_conn()
        query = "SELECT * FROM integration_runs WHERE 1 = 1"
        params: list[Any] = []

        if source_type is not None:
            query += " AND source_type = ?"
            params.append(source_type)

        if status is not None:
            query += " AND status = ?"
            params.append(status.value)

        query += " ORDER BY id DESC LIMIT ?"
        params.append(min(limit, 1000))

        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [row_to_run(row) for row in rows]

    async def get_latest_runs(self) -> list[IntegrationRun]:
        """Newest run for every source that has ever run."""
        conn = self._ensure_conn()
        async with conn.execute(
            """SELECT r.* FROM integration_runs r
               JOIN (SELECT source_type, MAX(id) AS max_id
                     FROM integration_runs GROUP BY source_type) latest
                 ON r.id = latest.max_id
               ORDER BY r.source_type"""
        ) as cursor:
            rows = await cursor.fetchall()
            return [row_to_run(row) for row in rows]
