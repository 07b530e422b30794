"""Tests for duplex.persistence — SQLite result history."""

from __future__ import annotations

import pytest

from duplex.persistence import HistoryStore, close_db, init_db
from duplex.schemas.domains import Domain
from duplex.schemas.history import HistoryQuery
from duplex.schemas.orchestration import OrchestrationResult
from duplex.schemas.provider import OutputItem, ProviderOutput
from duplex.schemas.quality import (
    Agreement,
    CrossValidationReport,
    ProviderAssessment,
    Recommendation,
)


def _make_result(
    request_id: str,
    *,
    domain: Domain = Domain.CASTING,
    selected: str = "llama3",
    failover: bool = False,
) -> OrchestrationResult:
    primary = ProviderOutput(
        provider_id=selected,
        items=[OutputItem(name="Ruth Negga", confidence=0.8)],
        metrics={"overall": 0.7},
    )
    report = None
    if not failover:
        report = CrossValidationReport(
            request_id=request_id,
            provider_a=ProviderAssessment(provider_id="llama3", quality_score=0.7, secondary_score=0.7),
            provider_b=ProviderAssessment(provider_id="gemini", quality_score=0.6, secondary_score=0.5),
            agreement=Agreement(overlap_count=1, similarity=1.0, alignment=1.0),
            recommendation=Recommendation.MERGE,
            confidence=0.9,
        )
    return OrchestrationResult(
        request_id=request_id,
        domain=domain,
        primary=primary,
        consensus=list(primary.items),
        selected_provider=selected,
        selection_reason="test",
        cross_validation=report,
        failover_occurred=failover,
        failed_provider="gemini" if failover else None,
        total_latency_ms=120.0,
    )


async def _open_store(tmp_path) -> tuple:
    db = await init_db(str(tmp_path / "history.db"))
    return db, HistoryStore(db)


class TestInitDb:
    @pytest.mark.asyncio
    async def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "history.db"
        db = await init_db(str(path))
        await close_db(db)
        assert path.exists()

    @pytest.mark.asyncio
    async def test_in_memory(self):
        db = await init_db(":memory:")
        try:
            assert await HistoryStore(db).list() == []
        finally:
            await close_db(db)


class TestHistoryStore:
    @pytest.mark.asyncio
    async def test_save_and_get(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            result = _make_result("req-abc123")
            record = await store.save(result)
            assert record.request_id == "req-abc123"

            loaded = await store.get("req-abc123")
            assert loaded is not None
            assert loaded.domain == Domain.CASTING
            assert loaded.result == result
        finally:
            await close_db(db)

    @pytest.mark.asyncio
    async def test_get_missing(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            assert await store.get("req-missing") is None
        finally:
            await close_db(db)

    @pytest.mark.asyncio
    async def test_prefix_lookup(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            await store.save(_make_result("req-abc123"))
            await store.save(_make_result("req-xyz789"))

            loaded = await store.get("req-abc1")
            assert loaded.request_id == "req-abc123"
            # Too short to be used as a prefix
            assert await store.resolve_request_id("req") is None
            assert await store.resolve_request_id("req-ab") is None
        finally:
            await close_db(db)

    @pytest.mark.asyncio
    async def test_ambiguous_prefix(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            await store.save(_make_result("req-abcd123"))
            await store.save(_make_result("req-abcd456"))
            assert await store.resolve_request_id("req-abcd") is None
        finally:
            await close_db(db)

    @pytest.mark.asyncio
    async def test_bare_id_marker_is_not_a_prefix(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            await store.save(_make_result("req-abc123"))
            assert await store.resolve_request_id("req-") is None
            assert await store.get("req-") is None
        finally:
            await close_db(db)

    @pytest.mark.asyncio
    async def test_prefix_is_matched_literally(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            await store.save(_make_result("req-abc123"))
            assert await store.resolve_request_id("req-%%%%") is None
            assert await store.resolve_request_id("req-____") is None
            assert await store.resolve_request_id("req-a%") is None
            assert await store.delete("req-____") is False
            assert await store.get("req-abc123") is not None
        finally:
            await close_db(db)

    @pytest.mark.asyncio
    async def test_save_replaces(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            await store.save(_make_result("req-abc123", selected="llama3"))
            await store.save(_make_result("req-abc123", selected="gemini"))
            summaries = await store.list()
            assert len(summaries) == 1
            assert summaries[0].selected_provider == "gemini"
        finally:
            await close_db(db)

    @pytest.mark.asyncio
    async def test_list_summaries(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            await store.save(_make_result("req-1111"))
            await store.save(_make_result("req-2222", failover=True))

            summaries = await store.list()
            assert [s.request_id for s in summaries] == ["req-2222", "req-1111"]
            failover, merged = summaries
            assert failover.failover_occurred
            assert failover.recommendation == ""
            assert merged.recommendation == "merge"
            assert merged.consensus_count == 1
            assert merged.total_latency_ms == 120.0
        finally:
            await close_db(db)

    @pytest.mark.asyncio
    async def test_list_filters(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            await store.save(_make_result("req-1111", domain=Domain.CASTING, selected="llama3"))
            await store.save(_make_result("req-2222", domain=Domain.IMAGE, selected="sdxl"))
            await store.save(_make_result("req-3333", domain=Domain.CASTING, selected="gemini"))

            casting = await store.list(HistoryQuery(domain=Domain.CASTING))
            assert {s.request_id for s in casting} == {"req-1111", "req-3333"}

            by_provider = await store.list(HistoryQuery(provider="sdxl"))
            assert [s.request_id for s in by_provider] == ["req-2222"]

            limited = await store.list(HistoryQuery(limit=1))
            assert len(limited) == 1
        finally:
            await close_db(db)

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path):
        db, store = await _open_store(tmp_path)
        try:
            await store.save(_make_result("req-abc123"))
            assert await store.delete("req-abc1") is True
            assert await store.get("req-abc123") is None
            assert await store.delete("req-abc123") is False
        finally:
            await close_db(db)
