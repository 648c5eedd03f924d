"""
Tests for the bounded ingestion history
"""

import json
from datetime import datetime, timezone

import pytest

from vuln_sync.core.exceptions import StoreException
from vuln_sync.models.ingestion import IngestionRun, IngestionStatus
from vuln_sync.repositories.history_store import SYNCS_KEY, HistoryStore


def _run(n: int, status=IngestionStatus.COMPLETED) -> IngestionRun:
    return IngestionRun(started=datetime(2024, 1, n, tzinfo=timezone.utc), cursor=n, total=n, status=status)


class TestHistoryStore:

    @pytest.mark.asyncio
    async def test_empty_history_has_no_current_run(self, history):
        assert await history.current_run() is None
        assert await history.size() == 0

    @pytest.mark.asyncio
    async def test_push_makes_run_current(self, history):
        await history.push_run(_run(1))
        await history.push_run(_run(2))

        assert await history.current_run() == _run(2)
        assert await history.size() == 2

    @pytest.mark.asyncio
    async def test_replace_overwrites_head_only(self, db, history):
        await history.push_run(_run(1))
        await history.push_run(_run(2, IngestionStatus.PROCESSING))

        await history.replace_current_run(_run(3))

        assert await history.current_run() == _run(3)
        assert await history.size() == 2
        assert await db.lindex(SYNCS_KEY, 1) is not None
        assert IngestionRun.from_dict(json.loads(await db.lindex(SYNCS_KEY, 1))) == _run(1)

    @pytest.mark.asyncio
    async def test_replace_without_history_fails(self, history):
        with pytest.raises(StoreException):
            await history.replace_current_run(_run(1))

    @pytest.mark.asyncio
    async def test_oldest_run_is_evicted_at_capacity(self, db):
        history = HistoryStore(db, capacity=3)
        for n in range(1, 6):
            await history.push_run(_run(n))

        assert await history.size() == 3
        assert await history.current_run() == _run(5)
        oldest = await db.lindex(SYNCS_KEY, 2)
        assert IngestionRun.from_dict(json.loads(oldest)) == _run(3)

    @pytest.mark.asyncio
    async def test_default_capacity_is_one_hundred(self, history):
        for n in range(1, 106):
            await history.push_run(IngestionRun(cursor=n, status=IngestionStatus.COMPLETED))

        assert await history.size() == 100
        assert (await history.current_run()).cursor == 105

    @pytest.mark.asyncio
    async def test_clear_discards_everything(self, db, history):
        await history.push_run(_run(1))
        await db.set_value("alias:GHSA-1", "CVE-1")

        await history.clear()

        assert await history.current_run() is None
        assert await db.get_value("alias:GHSA-1") is None

    def test_capacity_must_be_positive(self, db):
        with pytest.raises(ValueError):
            HistoryStore(db, capacity=0)


class TestIngestionRunSerialization:

    def test_timestamps_and_status_survive(self):
        run = IngestionRun(started=datetime(2024, 1, 1, 10, 30, tzinfo=timezone.utc),
                           completed=datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc),
                           cursor=2000, page_size=1000, total=2500,
                           status=IngestionStatus.COMPLETED_WITH_ERRORS,
                           since=datetime(2023, 12, 31, tzinfo=timezone.utc))

        data = run.to_dict()

        assert data['status'] == "COMPLETED_WITH_ERRORS"
        assert data['started'] == "2024-01-01T10:30:00+00:00"
        assert IngestionRun.from_dict(data) == run

    def test_missing_fields_default(self):
        run = IngestionRun.from_dict({'status': 'PROCESSING'})
        assert run.cursor == 0
        assert run.since is None
        assert run.status == IngestionStatus.PROCESSING
