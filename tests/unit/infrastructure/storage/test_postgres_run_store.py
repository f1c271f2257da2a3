# tests/unit/infrastructure/storage/test_postgres_run_store.py
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from domain.errors import RunStoreError
from domain.models.task_run import RunOutcome, TaskRun
from infrastructure.storage.postgres_run_store import RUN_INDEX_SQL, PostgresRunStore


@pytest.fixture
def mock_db_pool():
    """Mock database pool for testing"""
    pool = MagicMock()
    conn = AsyncMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.acquire.return_value.__aexit__.return_value = None
    pool.close = AsyncMock()

    conn.fetchrow.return_value = None
    conn.fetch.return_value = []
    conn.execute.return_value = "INSERT 0 1"

    return pool


@pytest.fixture
def conn(mock_db_pool):
    return mock_db_pool.acquire.return_value.__aenter__.return_value


@pytest.fixture
def store(mock_db_pool):
    return PostgresRunStore(pool=mock_db_pool)


@pytest.fixture
def sample_run():
    return TaskRun(
        project_path="/work/App",
        started_at=datetime(2024, 5, 1, 12, 0),
        outcome=RunOutcome.PARTIAL,
        metadata={"policy": "Moderate"},
    )


class TestPostgresRunStore:
    """Test SQL issued against the pool"""

    @pytest.mark.asyncio
    async def test_initialize_creates_schema_with_injected_pool(self, store, conn):
        await store.initialize()

        statements = [call.args[0] for call in conn.execute.call_args_list]
        assert "CREATE TABLE IF NOT EXISTS task_runs" in statements[0]
        assert "started_at TIMESTAMPTZ NOT NULL" in statements[0]
        assert statements[1:] == list(RUN_INDEX_SQL)

    @pytest.mark.asyncio
    async def test_save_upserts_json_record(self, store, conn, sample_run):
        await store.save(sample_run)

        query, *args = conn.execute.call_args.args
        assert "ON CONFLICT (run_id) DO UPDATE" in query
        assert args[:3] == [sample_run.id, "/work/App", "partial"]
        assert args[3] == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert json.loads(args[5])["metadata"] == {"policy": "Moderate"}

    @pytest.mark.asyncio
    async def test_load_decodes_record(self, store, conn, sample_run):
        conn.fetchrow.return_value = {"record": json.dumps(sample_run.to_dict())}

        loaded = await store.load(sample_run.id)

        assert loaded.id == sample_run.id
        assert loaded.outcome == RunOutcome.PARTIAL
        assert conn.fetchrow.call_args.args[1] == sample_run.id

    @pytest.mark.asyncio
    async def test_load_missing(self, store):
        assert await store.load("nope") is None

    @pytest.mark.asyncio
    async def test_listings_pass_filters_and_limit(self, store, conn, sample_run):
        conn.fetch.return_value = [{"record": json.dumps(sample_run.to_dict())}]

        recent = await store.list_recent(5)
        by_project = await store.list_for_project("/work/App", 3)
        by_outcome = await store.list_by_outcome(RunOutcome.PARTIAL)

        assert [r.id for r in recent] == [sample_run.id]
        assert len(by_project) == 1 and len(by_outcome) == 1
        calls = conn.fetch.call_args_list
        assert calls[0].args[1:] == (5,)
        assert calls[1].args[1:] == ("/work/App", 3)
        assert calls[2].args[1:] == ("partial", None)
        assert all("ORDER BY started_at DESC" in call.args[0] for call in calls)

    @pytest.mark.asyncio
    async def test_delete_reports_affected_rows(self, store, conn):
        conn.execute.return_value = "DELETE 1"
        assert await store.delete("run-1") is True

        conn.execute.return_value = "DELETE 0"
        assert await store.delete("run-1") is False

    @pytest.mark.asyncio
    async def test_delete_older_than(self, store, conn):
        conn.execute.return_value = "DELETE 3"
        cutoff = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert await store.delete_older_than(cutoff) == 3
        assert conn.execute.call_args.args[1] == cutoff

    @pytest.mark.asyncio
    async def test_cutoff_is_sent_as_aware_utc(self, store, conn):
        conn.execute.return_value = "DELETE 0"

        await store.delete_older_than(datetime(2024, 1, 1, 2, 0, tzinfo=timezone(timedelta(hours=2))))
        await store.delete_older_than(datetime(2024, 1, 1))

        sent = [call.args[1] for call in conn.execute.call_args_list]
        assert sent == [datetime(2024, 1, 1, tzinfo=timezone.utc)] * 2
        assert all(value.tzinfo is timezone.utc for value in sent)

    @pytest.mark.asyncio
    async def test_database_errors_are_wrapped(self, store, conn, sample_run):
        conn.execute.side_effect = asyncpg.PostgresError("connection lost")

        with pytest.raises(RunStoreError) as exc_info:
            await store.save(sample_run)

        assert exc_info.value.identifier == sample_run.id
        assert isinstance(exc_info.value.__cause__, asyncpg.PostgresError)

    @pytest.mark.asyncio
    async def test_close(self, store, mock_db_pool):
        await store.close()

        mock_db_pool.close.assert_awaited_once()
