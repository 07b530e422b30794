"""SQLite database layer for result history.

Manages the SQLite connection and schema. Uses aiosqlite for async
access with WAL mode for concurrent read performance.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

_MEMORY = ":memory:"

# SQL schema for the history database
_SCHEMA = """
CREATE TABLE IF NOT EXISTS results (
    request_id        TEXT PRIMARY KEY,
    domain            TEXT NOT NULL,
    stored_at         TEXT NOT NULL,
    selected_provider TEXT NOT NULL,
    failed_provider   TEXT,
    failover          INTEGER NOT NULL DEFAULT 0,
    recommendation    TEXT NOT NULL DEFAULT '',
    consensus_count   INTEGER NOT NULL DEFAULT 0,
    total_latency_ms  REAL NOT NULL DEFAULT 0.0,
    result_json       TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_results_stored ON results(stored_at);
CREATE INDEX IF NOT EXISTS idx_results_domain ON results(domain);
"""


async def init_db(db_path: str) -> aiosqlite.Connection:
    """Open the history database and create tables if needed.

    Creates parent directories if they don't exist and enables WAL mode.

    Args:
        db_path: Path to the SQLite database file. Supports ~ expansion
            and ``:memory:``.

    Returns:
        An open aiosqlite connection ready for use.
    """
    if db_path == _MEMORY:
        target = _MEMORY
    else:
        resolved = Path(db_path).expanduser()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        target = str(resolved)

    db = await aiosqlite.connect(target)
    await db.execute("PRAGMA journal_mode=WAL")
    await db.executescript(_SCHEMA)
    await db.commit()

    logger.info("History database initialized at %s", target)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    """Close the database connection."""
    await db.close()
