"""record-graph - incremental ingestion of external sources into one record graph."""

__version__ = "0.4.0"
