"""History store for orchestration results.

Saves terminal OrchestrationResults as JSON with a few summary columns
for listing. The engine never reads from here; it is consumed by the CLI.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import aiosqlite

from duplex.schemas.history import HistoryQuery, HistoryRecord, HistorySummary
from duplex.schemas.orchestration import OrchestrationResult

logger = logging.getLogger(__name__)

_ID_PREFIX = "req-"
# Shortest prefix, after _ID_PREFIX, accepted in place of a full request id
_MIN_PREFIX = 4


class HistoryStore:
    """Persistent result history backed by SQLite.

    All methods are async and operate on an aiosqlite connection
    initialized by database.init_db().
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._db.row_factory = aiosqlite.Row

    async def save(self, result: OrchestrationResult) -> HistoryRecord:
        """Insert or replace the stored copy of a result."""
        stored_at = datetime.now(UTC)
        recommendation = (
            result.cross_validation.recommendation.value if result.cross_validation else ""
        )
        await self._db.execute(
            """
            INSERT OR REPLACE INTO results
                (request_id, domain, stored_at, selected_provider, failed_provider,
                 failover, recommendation, consensus_count, total_latency_ms,
                 result_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                result.request_id,
                result.domain.value,
                stored_at.isoformat(),
                result.selected_provider,
                result.failed_provider,
                int(result.failover_occurred),
                recommendation,
                len(result.consensus),
                result.total_latency_ms,
                result.model_dump_json(),
            ),
        )
        await self._db.commit()
        logger.info("Saved result %s", result.request_id)
        return HistoryRecord(
            request_id=result.request_id,
            domain=result.domain,
            stored_at=stored_at,
            result=result,
        )

    async def resolve_request_id(self, prefix: str) -> str | None:
        """Resolve a full id or unique prefix to a full id.

        A prefix needs at least four characters after the ``req-`` marker
        and is matched literally.
        """
        async with self._db.execute(
            "SELECT request_id FROM results WHERE request_id = ?",
            (prefix,),
        ) as cursor:
            row = await cursor.fetchone()
        if row:
            return row["request_id"]
        if len(prefix.removeprefix(_ID_PREFIX)) >= _MIN_PREFIX:
            async with self._db.execute(
                "SELECT request_id FROM results WHERE substr(request_id, 1, ?) = ? LIMIT 2",
                (len(prefix), prefix),
            ) as cursor:
                rows = await cursor.fetchall()
            if len(rows) == 1:
                return rows[0]["request_id"]
        return None

    async def get(self, request_id: str) -> HistoryRecord | None:
        """Retrieve a stored result by id or unique prefix."""
        full_id = await self.resolve_request_id(request_id)
        if not full_id:
            return None
        async with self._db.execute(
            "SELECT request_id, domain, stored_at, result_json FROM results"
            " WHERE request_id = ?",
            (full_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None
        return HistoryRecord(
            request_id=row["request_id"],
            domain=row["domain"],
            stored_at=datetime.fromisoformat(row["stored_at"]),
            result=OrchestrationResult.model_validate_json(row["result_json"]),
        )

    async def list(self, query: HistoryQuery | None = None) -> list[HistorySummary]:
        """List stored results, most recent first."""
        query = query or HistoryQuery()
        conditions: list[str] = []
        params: list[object] = []

        if query.domain:
            conditions.append("domain = ?")
            params.append(query.domain.value)
        if query.provider:
            conditions.append("selected_provider = ?")
            params.append(query.provider)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"""
            SELECT * FROM results
            {where}
            ORDER BY stored_at DESC
            LIMIT ?
        """  # noqa: S608
        params.append(query.limit)

        summaries: list[HistorySummary] = []
        async with self._db.execute(sql, params) as cursor:
            async for row in cursor:
                summaries.append(HistorySummary(
                    request_id=row["request_id"],
                    domain=row["domain"],
                    stored_at=datetime.fromisoformat(row["stored_at"]),
                    selected_provider=row["selected_provider"],
                    failover_occurred=bool(row["failover"]),
                    recommendation=row["recommendation"],
                    consensus_count=row["consensus_count"],
                    total_latency_ms=row["total_latency_ms"],
                ))
        return summaries

    async def delete(self, request_id: str) -> bool:
        """Delete a stored result. Returns True if one was deleted."""
        full_id = await self.resolve_request_id(request_id)
        if not full_id:
            return False
        cursor = await self._db.execute(
            "DELETE FROM results WHERE request_id = ?",
            (full_id,),
        )
        await self._db.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted result %s", full_id)
        return deleted
