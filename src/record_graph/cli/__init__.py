"""Command line interface for record-graph."""
