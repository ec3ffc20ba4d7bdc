"""Utility modules for record-graph."""

from record_graph.utils.timeutils import parse_timestamp, to_db_timestamp, utcnow

__all__ = ["parse_timestamp", "to_db_timestamp", "utcnow"]
