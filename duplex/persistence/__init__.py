"""Duplex result history.

SQLite-backed storage for terminal orchestration results, with listing,
lookup by id prefix, and deletion.
"""

from duplex.persistence.database import close_db, init_db
from duplex.persistence.history import HistoryStore

__all__ = [
    "HistoryStore",
    "close_db",
    "init_db",
]
