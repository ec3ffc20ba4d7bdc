"""SQLite staging-table operations mixin.

Staging tables hold raw adapter output, one table per source. Rows carry the
``integration_run_id`` that wrote them, which is how the incremental cursor
finds its boundary.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from contextlib import AbstractAsyncContextManager
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from record_graph.core.snapshot import StagingAssignment
from record_graph.storage.schema import RECORD_STAGING_TABLES

if TYPE_CHECKING:
    import aiosqlite

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

# Columns never overwritten by an upsert.
_PRESERVED_ON_UPDATE = frozenset({"created_at", "record_id"})


class ConflictPolicy(StrEnum):
    """What to do when a row's natural key already exists."""

    UPSERT = "upsert"  # overwrite non-key columns
    IGNORE = "ignore"  # keep the stored row


def check_identifier(name: str) -> str:
    """Validate a table or column name before it is interpolated into SQL."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def build_insert_sql(
    table: str,
    columns: Sequence[str],
    key: Sequence[str],
    policy: ConflictPolicy,
) -> str:
    check_identifier(table)
    for col in (*columns, *key):
        check_identifier(col)
    missing = [k for k in key if k not in columns]
    if missing:
        raise ValueError(f"Key columns {missing} not present in rows for '{table}'")

    sql = (
        f"INSERT INTO {table} ({', '.join(columns)}) "
        f"VALUES ({', '.join('?' for _ in columns)}) "
        f"ON CONFLICT({', '.join(key)}) "
    )
    updates = [c for c in columns if c not in key and c not in _PRESERVED_ON_UPDATE]
    if policy == ConflictPolicy.IGNORE or not updates:
        return sql + "DO NOTHING"
    return sql + "DO UPDATE SET " + ", ".join(f"{c} = excluded.{c}" for c in updates)


class SQLiteStagingMixin:
    """Mixin providing generic staging-table reads and batch writes."""

    def _ensure_conn(self) -> aiosqlite.Connection: ...

    async def _commit(self) -> None: ...

    def transaction(self) -> AbstractAsyncContextManager[aiosqlite.Connection]: ...

    async def get_last_marker(
        self,
        table: str,
        marker_column: str,
        source_type: str,
        filters: Mapping[str, Any] | None = None,
    ) -> Any:
        """Max stored marker over rows written by runs of ``source_type``.

        Returns None when no such rows exist.
        """
        conn = self._ensure_conn()
        check_identifier(table)
        check_identifier(marker_column)

        query = (
            f"SELECT MAX(t.{marker_column}) AS marker FROM {table} t "
            "JOIN integration_runs r ON t.integration_run_id = r.id "
            "WHERE r.source_type = ?"
        )
        params: list[Any] = [source_type]
        for column, value in (filters or {}).items():
            query += f" AND t.{check_identifier(column)} = ?"
            params.append(value)

        async with conn.execute(query, params) as cursor:
            row = await cursor.fetchone()
            return row["marker"] if row else None

    async def write_rows(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        key: Sequence[str],
        policy: ConflictPolicy,
    ) -> int:
        """Write one batch in its own transaction.

        All rows must share the same columns. Returns the number of rows
        inserted or updated; rows skipped by ``IGNORE`` are not counted.
        The batch is rolled back and the database error re-raised on failure.
        """
        if not rows:
            return 0
        conn = self._ensure_conn()
        columns = list(rows[0].keys())
        for row in rows:
            if list(row.keys()) != columns:
                raise ValueError(f"Rows for '{table}' do not share the same columns")

        sql = build_insert_sql(table, columns, key, policy)
        before = conn.total_changes
        async with self.transaction():
            await conn.executemany(sql, [tuple(row[c] for c in columns) for row in rows])
        return conn.total_changes - before

    async def get_unmapped_rows(self, table: str, limit: int = 1000) -> list[dict[str, Any]]:
        """Staging rows not yet linked to a record."""
        conn = self._ensure_conn()
        check_identifier(table)
        async with conn.execute(
            f"SELECT * FROM {table} WHERE record_id IS NULL ORDER BY id LIMIT ?", (limit,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def set_record_id(self, table: str, row_id: int, record_id: int) -> None:
        conn = self._ensure_conn()
        check_identifier(table)
        await conn.execute(f"UPDATE {table} SET record_id = ? WHERE id = ?", (record_id, row_id))
        await self._commit()

    async def count_rows(self, table: str) -> int:
        conn = self._ensure_conn()
        check_identifier(table)
        async with conn.execute(f"SELECT COUNT(*) AS n FROM {table}") as cursor:
            row = await cursor.fetchone()
            return row["n"] if row else 0

    async def get_staging_assignments(self, record_id: int) -> list[StagingAssignment]:
        """Staging rows, across every record-producing source, pointing at a record."""
        conn = self._ensure_conn()
        assignments: list[StagingAssignment] = []
        for table in RECORD_STAGING_TABLES:
            async with conn.execute(
                f"SELECT id, updated_at FROM {table} WHERE record_id = ? ORDER BY id",
                (record_id,),
            ) as cursor:
                for row in await cursor.fetchall():
                    assignments.append(
                        StagingAssignment(table, row["id"], record_id, row["updated_at"])
                    )
        return assignments
