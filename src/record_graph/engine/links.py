"""Link graph - typed edges between records, stored in canonical direction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from record_graph.core.link import Direction, Link, LinkView
from record_graph.core.predicate import Predicate, PredicateType, get_predicate
from record_graph.errors import InvalidLinkError, NonCanonicalPredicateError, RecordNotFoundError

if TYPE_CHECKING:
    from record_graph.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


@dataclass
class RecordLinks:
    """Outgoing and incoming links of one record."""

    outgoing: list[LinkView] = field(default_factory=list)
    incoming: list[LinkView] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[dict[str, object]]]:
        return {
            "outgoing": [_view_to_dict(v) for v in self.outgoing],
            "incoming": [_view_to_dict(v) for v in self.incoming],
        }


def _view_to_dict(view: LinkView) -> dict[str, object]:
    return {
        **view.link.to_dict(),
        "direction": view.direction.value,
        "other_id": view.other_id,
        "label": view.label,
        "label_slug": view.label_slug,
    }


def view_link(link: Link, record_id: int) -> LinkView:
    """Label a stored link as seen from ``record_id``.

    Seen from the target, the inverse predicate supplies the label.
    """
    predicate = get_predicate(link.predicate)
    if link.source_id == record_id:
        return LinkView(
            link=link,
            direction=Direction.OUTGOING,
            record_id=record_id,
            other_id=link.target_id,
            label=predicate.name,
            label_slug=predicate.slug,
        )
    inverse = get_predicate(predicate.inverse_slug)
    return LinkView(
        link=link,
        direction=Direction.INCOMING,
        record_id=record_id,
        other_id=link.source_id,
        label=inverse.name,
        label_slug=inverse.slug,
    )


class LinkGraph:
    """Validated access to the ``links`` table."""

    def __init__(self, store: SQLiteStore) -> None:
        self._store = store

    async def upsert_link(
        self,
        source_id: int,
        target_id: int,
        predicate: str,
        notes: str | None = None,
    ) -> Link:
        """Create a link, or update the notes of the identical existing link.

        Raises:
            UnknownPredicateError: If ``predicate`` is not in the vocabulary.
            NonCanonicalPredicateError: If ``predicate`` is an inverse label.
            InvalidLinkError: If source and target are the same record.
            RecordNotFoundError: If an endpoint is missing or merged away.
        """
        resolved = get_predicate(predicate)
        if not resolved.canonical:
            raise NonCanonicalPredicateError(predicate, resolved.inverse_slug)
        if source_id == target_id:
            raise InvalidLinkError(f"Cannot link record {source_id} to itself")

        records = await self._store.get_records([source_id, target_id])
        for record_id in (source_id, target_id):
            record = records.get(record_id)
            if record is None:
                raise RecordNotFoundError(record_id)
            if not record.is_active:
                raise RecordNotFoundError(record_id, f"was merged into {record.merged_into_id}")

        link = await self._store.upsert_link_row(source_id, target_id, predicate, notes)
        logger.debug("Upserted link %d: %d -%s-> %d", link.id, source_id, predicate, target_id)
        return link

    async def outgoing(self, record_id: int) -> list[LinkView]:
        links = await self._store.get_outgoing_links(record_id)
        return [view_link(link, record_id) for link in links]

    async def incoming(self, record_id: int) -> list[LinkView]:
        links = await self._store.get_incoming_links(record_id)
        return [view_link(link, record_id) for link in links]

    async def delete_links(self, link_ids: Sequence[int]) -> list[Link]:
        """Delete links by ID. Returns the links that were deleted."""
        deleted = await self._store.delete_link_rows(list(dict.fromkeys(link_ids)))
        logger.info("Deleted %d of %d links", len(deleted), len(link_ids))
        return deleted

    async def links_map(self, record_ids: Sequence[int]) -> dict[int, RecordLinks]:
        """Outgoing and incoming links for several records, in one query."""
        result = {record_id: RecordLinks() for record_id in record_ids}
        for link in await self._store.get_links_touching(record_ids):
            if link.source_id in result:
                result[link.source_id].outgoing.append(view_link(link, link.source_id))
            if link.target_id in result:
                result[link.target_id].incoming.append(view_link(link, link.target_id))
        return result

    async def list_predicates(self, canonical_only: bool = False) -> list[Predicate]:
        """Predicates as seeded into the database, grouped by type."""
        predicates = [
            Predicate(
                slug=row["slug"],
                name=row["name"],
                type=PredicateType(row["type"]),
                inverse_slug=row["inverse_slug"],
                canonical=row["canonical"],
                role=row["role"],
            )
            for row in await self._store.list_predicate_rows()
        ]
        if canonical_only:
            return [p for p in predicates if p.canonical]
        return predicates
