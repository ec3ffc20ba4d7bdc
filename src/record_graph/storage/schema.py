"""SQLite schema for the record graph."""

from __future__ import annotations

SCHEMA_VERSION = 3

# Staging tables re-pointed by merges. Each has a ``record_id`` column.
RECORD_STAGING_TABLES: tuple[str, ...] = ("github_repositories", "raindrop_bookmarks")

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Operations ------------------------------------------------------------

CREATE TABLE IF NOT EXISTS integration_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_type TEXT NOT NULL,
    run_kind TEXT NOT NULL DEFAULT 'incremental'
        CHECK (run_kind IN ('full', 'incremental')),
    status TEXT NOT NULL DEFAULT 'in_progress'
        CHECK (status IN ('in_progress', 'success', 'fail')),
    message TEXT,
    started_at TEXT NOT NULL,
    ended_at TEXT,
    entries_created INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_runs_source_status
    ON integration_runs(source_type, status);

-- Graph -----------------------------------------------------------------

CREATE TABLE IF NOT EXISTS records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL DEFAULT 'artifact',
    title TEXT,
    url TEXT,
    summary TEXT,
    content TEXT,
    notes TEXT,
    rating INTEGER NOT NULL DEFAULT 0,
    is_curated INTEGER NOT NULL DEFAULT 0,
    is_private INTEGER NOT NULL DEFAULT 0,
    sources TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    merged_into_id INTEGER REFERENCES records(id),
    deleted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_records_active ON records(deleted_at, type);
CREATE INDEX IF NOT EXISTS idx_records_url ON records(url);

CREATE TABLE IF NOT EXISTS predicates (
    slug TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    role TEXT,
    inverse_slug TEXT NOT NULL,
    canonical INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS links (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id INTEGER NOT NULL REFERENCES records(id) ON DELETE CASCADE,
    target_id INTEGER NOT NULL REFERENCES records(id) ON DELETE CASCADE,
    predicate TEXT NOT NULL REFERENCES predicates(slug),
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (source_id, target_id, predicate)
);
CREATE INDEX IF NOT EXISTS idx_links_target ON links(target_id);

CREATE TABLE IF NOT EXISTS media (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL UNIQUE,
    kind TEXT NOT NULL DEFAULT 'image',
    alt_text TEXT,
    record_id INTEGER REFERENCES records(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_media_record ON media(record_id);

CREATE TABLE IF NOT EXISTS merges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id INTEGER NOT NULL,
    target_id INTEGER NOT NULL,
    snapshot TEXT NOT NULL,
    created_at TEXT NOT NULL,
    undone_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_merges_source ON merges(source_id);

-- Source staging --------------------------------------------------------

CREATE TABLE IF NOT EXISTS browsing_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    browser TEXT NOT NULL,
    hostname TEXT NOT NULL,
    view_epoch_micros INTEGER NOT NULL,
    last_view_epoch_micros INTEGER NOT NULL,
    view_time TEXT NOT NULL,
    view_duration INTEGER NOT NULL DEFAULT 0,
    duration_since_last_view INTEGER NOT NULL DEFAULT 0,
    url TEXT NOT NULL,
    page_title TEXT,
    search_terms TEXT,
    related_searches TEXT,
    integration_run_id INTEGER NOT NULL REFERENCES integration_runs(id),
    UNIQUE (hostname, view_epoch_micros, url)
);

CREATE TABLE IF NOT EXISTS github_repositories (
    id INTEGER PRIMARY KEY,
    full_name TEXT NOT NULL,
    owner_login TEXT,
    html_url TEXT NOT NULL,
    homepage_url TEXT,
    description TEXT,
    language TEXT,
    topics TEXT,
    starred_at TEXT,
    record_id INTEGER REFERENCES records(id) ON DELETE SET NULL,
    integration_run_id INTEGER NOT NULL REFERENCES integration_runs(id),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS raindrop_bookmarks (
    id INTEGER PRIMARY KEY,
    link_url TEXT NOT NULL,
    title TEXT,
    excerpt TEXT,
    note TEXT,
    tags TEXT,
    important INTEGER NOT NULL DEFAULT 0,
    domain TEXT,
    cover_url TEXT,
    content_created_at TEXT,
    content_updated_at TEXT,
    record_id INTEGER REFERENCES records(id) ON DELETE SET NULL,
    integration_run_id INTEGER NOT NULL REFERENCES integration_runs(id),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""
