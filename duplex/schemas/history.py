"""Result history schemas for persisted orchestration results."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from duplex.schemas.domains import Domain
from duplex.schemas.orchestration import OrchestrationResult


class HistoryRecord(BaseModel):
    """A stored orchestration result."""

    request_id: str
    domain: Domain
    stored_at: datetime
    result: OrchestrationResult


class HistorySummary(BaseModel):
    """Lightweight listing row for the history table."""

    request_id: str
    domain: Domain
    stored_at: datetime
    selected_provider: str
    failover_occurred: bool = False
    recommendation: str = Field(default="", description="Cross-validation recommendation, if any")
    consensus_count: int = 0
    total_latency_ms: float = 0.0


class HistoryQuery(BaseModel):
    """Filters for listing history."""

    domain: Domain | None = None
    provider: str | None = Field(default=None, description="Filter by selected provider")
    limit: int = Field(default=20, ge=1, le=500)
