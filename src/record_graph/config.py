"""Configuration for record-graph.

Values are read from ``~/.record-graph/config.toml`` (or the file named by
``RECORD_GRAPH_CONFIG``) and then overridden by environment variables.
API tokens are read once here; a missing token only fails the adapter that
needs it.
"""

from __future__ import annotations

import logging
import os
import socket
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".record-graph"
DEFAULT_DAILY_SOURCES: tuple[str, ...] = ("browsing", "raindrop", "github")

_VALID_BROWSERS: tuple[str, ...] = ("arc", "chrome", "dia", "brave", "edge")


@dataclass(frozen=True)
class SyncConfig:
    """Runtime configuration shared by the ledger, writer, adapters and CLI.

    Attributes:
        db_path: SQLite database holding the record graph.
        batch_size: Rows per independent write transaction.
        page_size: Items requested per API page.
        stale_run_after_hours: Age after which an ``in_progress`` run is
            considered abandoned and marked failed.
        http_timeout: Per-request timeout in seconds.
        max_retries: Retries for rate-limited (429) or 5xx page requests.
        daily_sources: Ordered sources run by ``sync daily``.
        browser_history_path: Chromium-family ``History`` file to read.
        browser: Browser name recorded on browsing rows.
        hostname: Machine name recorded on browsing rows.
        github_token: Token for the GitHub API.
        raindrop_token: Token for the Raindrop API.
    """

    db_path: Path = field(default_factory=lambda: DEFAULT_DATA_DIR / "graph.db")
    batch_size: int = 100
    page_size: int = 50
    stale_run_after_hours: float = 6.0
    http_timeout: float = 30.0
    max_retries: int = 3
    daily_sources: tuple[str, ...] = DEFAULT_DAILY_SOURCES
    browser_history_path: Path | None = None
    browser: str = "arc"
    hostname: str = field(default_factory=socket.gethostname)
    github_token: str | None = None
    raindrop_token: str | None = None

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        if self.stale_run_after_hours <= 0:
            raise ValueError(
                f"stale_run_after_hours must be > 0, got {self.stale_run_after_hours}"
            )
        if self.http_timeout <= 0:
            raise ValueError(f"http_timeout must be > 0, got {self.http_timeout}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.browser not in _VALID_BROWSERS:
            raise ValueError(f"browser must be one of {_VALID_BROWSERS}, got '{self.browser}'")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dict. Tokens are never included."""
        return {
            "db_path": str(self.db_path),
            "batch_size": self.batch_size,
            "page_size": self.page_size,
            "stale_run_after_hours": self.stale_run_after_hours,
            "http_timeout": self.http_timeout,
            "max_retries": self.max_retries,
            "daily_sources": list(self.daily_sources),
            "browser_history_path": (
                str(self.browser_history_path) if self.browser_history_path else None
            ),
            "browser": self.browser,
            "hostname": self.hostname,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncConfig:
        try:
            history = data.get("browser_history_path")
            return cls(
                db_path=Path(data.get("db_path", DEFAULT_DATA_DIR / "graph.db")).expanduser(),
                batch_size=int(data.get("batch_size", 100)),
                page_size=int(data.get("page_size", 50)),
                stale_run_after_hours=float(data.get("stale_run_after_hours", 6.0)),
                http_timeout=float(data.get("http_timeout", 30.0)),
                max_retries=int(data.get("max_retries", 3)),
                daily_sources=tuple(data.get("daily_sources", DEFAULT_DAILY_SOURCES)),
                browser_history_path=Path(history).expanduser() if history else None,
                browser=str(data.get("browser", "arc")),
                hostname=str(data.get("hostname") or socket.gethostname()),
                github_token=data.get("github_token"),
                raindrop_token=data.get("raindrop_token"),
            )
        except (ValueError, TypeError):
            logger.warning("Invalid configuration values, falling back to defaults")
            return cls()

    @classmethod
    def load(cls, path: Path | None = None) -> SyncConfig:
        """Load configuration from TOML, then apply environment overrides."""
        config_path = path or Path(
            os.environ.get("RECORD_GRAPH_CONFIG", DEFAULT_DATA_DIR / "config.toml")
        )

        data: dict[str, Any] = {}
        if config_path.exists():
            with config_path.open("rb") as f:
                data = tomllib.load(f).get("sync", {})
            logger.debug("Loaded config from %s", config_path)

        config = cls.from_dict(data)
        return config.with_env(os.environ)

    def with_env(self, env: Any) -> SyncConfig:
        """Return a copy with environment overrides applied."""
        overrides: dict[str, Any] = {}
        if env.get("RECORD_GRAPH_DB_PATH"):
            overrides["db_path"] = Path(env["RECORD_GRAPH_DB_PATH"]).expanduser()
        if env.get("RECORD_GRAPH_BROWSER_HISTORY"):
            overrides["browser_history_path"] = Path(env["RECORD_GRAPH_BROWSER_HISTORY"]).expanduser()
        if env.get("GITHUB_TOKEN"):
            overrides["github_token"] = env["GITHUB_TOKEN"]
        if env.get("RAINDROP_TOKEN"):
            overrides["raindrop_token"] = env["RAINDROP_TOKEN"]
        return replace(self, **overrides) if overrides else self
