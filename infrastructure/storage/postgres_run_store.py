# infrastructure/storage/postgres_run_store.py
import json
from datetime import datetime
from typing import List, Optional

import asyncpg

from domain.errors import RunStoreError
from domain.models.agent_task import as_utc
from domain.models.task_run import RunOutcome, TaskRun
from infrastructure.storage.run_store import RunStore
from shared.logging import log_store_event, logger

RUN_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS task_runs (
        run_id VARCHAR(36) PRIMARY KEY,
        project_path TEXT NOT NULL,
        outcome VARCHAR(20) NOT NULL,
        started_at TIMESTAMPTZ NOT NULL,
        completed_at TIMESTAMPTZ,
        record JSONB NOT NULL,
        updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    )
"""

RUN_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_run_project ON task_runs(project_path)",
    "CREATE INDEX IF NOT EXISTS idx_run_outcome ON task_runs(outcome)",
    "CREATE INDEX IF NOT EXISTS idx_run_started ON task_runs(started_at)",
)


def _affected_rows(status: str) -> int:
    # asyncpg returns the command tag, e.g. "DELETE 3"
    return int(status.split()[-1])


class PostgresRunStore(RunStore):
    """TaskRun records in PostgreSQL, one JSONB document per run"""

    name = "postgres"

    def __init__(self, database_url: Optional[str] = None, pool: Optional[asyncpg.Pool] = None):
        self.database_url = database_url
        self.connection_pool = pool

    async def initialize(self):
        """Create the connection pool (unless one was injected) and the schema"""
        try:
            if self.connection_pool is None:
                self.connection_pool = await asyncpg.create_pool(
                    self.database_url,
                    min_size=2,
                    max_size=10,
                    command_timeout=60
                )
            async with self.connection_pool.acquire() as conn:
                await conn.execute(RUN_TABLE_SQL)
                for statement in RUN_INDEX_SQL:
                    await conn.execute(statement)
        except (OSError, asyncpg.PostgresError) as e:
            raise RunStoreError(f"Failed to initialize run store: {e}") from e
        logger.info("Run store initialized", store=self.name)

    async def save(self, run: TaskRun) -> None:
        try:
            async with self.connection_pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO task_runs (run_id, project_path, outcome, started_at, completed_at, record)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    ON CONFLICT (run_id) DO UPDATE
                    SET outcome = EXCLUDED.outcome,
                        completed_at = EXCLUDED.completed_at,
                        record = EXCLUDED.record,
                        updated_at = CURRENT_TIMESTAMP
                """, run.id, run.project_path, run.outcome.value, run.started_at,
                    run.completed_at, json.dumps(run.to_dict()))
        except (OSError, asyncpg.PostgresError) as e:
            raise RunStoreError(f"Failed to save run {run.id}: {e}", identifier=run.id) from e

        log_store_event(self.name, "save", run.id, {"outcome": run.outcome.value})

    async def load(self, run_id: str) -> Optional[TaskRun]:
        try:
            async with self.connection_pool.acquire() as conn:
                row = await conn.fetchrow("""
                    SELECT record FROM task_runs WHERE run_id = $1
                """, run_id)
        except (OSError, asyncpg.PostgresError) as e:
            raise RunStoreError(f"Failed to load run {run_id}: {e}", identifier=run_id) from e

        if row:
            return TaskRun.from_dict(json.loads(row["record"]))
        return None

    async def _fetch(self, query: str, *args) -> List[TaskRun]:
        try:
            async with self.connection_pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
        except (OSError, asyncpg.PostgresError) as e:
            raise RunStoreError(f"Failed to list runs: {e}") from e
        return [TaskRun.from_dict(json.loads(row["record"])) for row in rows]

    async def list_for_project(self, project_path: str, limit: Optional[int] = None) -> List[TaskRun]:
        return await self._fetch("""
            SELECT record FROM task_runs
            WHERE project_path = $1
            ORDER BY started_at DESC
            LIMIT $2
        """, project_path, limit)

    async def list_recent(self, limit: int = 20) -> List[TaskRun]:
        return await self._fetch("""
            SELECT record FROM task_runs
            ORDER BY started_at DESC
            LIMIT $1
        """, limit)

    async def list_by_outcome(self, outcome: RunOutcome, limit: Optional[int] = None) -> List[TaskRun]:
        return await self._fetch("""
            SELECT record FROM task_runs
            WHERE outcome = $1
            ORDER BY started_at DESC
            LIMIT $2
        """, outcome.value, limit)

    async def delete(self, run_id: str) -> bool:
        try:
            async with self.connection_pool.acquire() as conn:
                result = await conn.execute("DELETE FROM task_runs WHERE run_id = $1", run_id)
        except (OSError, asyncpg.PostgresError) as e:
            raise RunStoreError(f"Failed to delete run {run_id}: {e}", identifier=run_id) from e

        deleted = _affected_rows(result) > 0
        log_store_event(self.name, "delete", run_id, {"removed": deleted})
        return deleted

    async def delete_older_than(self, cutoff: datetime) -> int:
        cutoff = as_utc(cutoff)
        try:
            async with self.connection_pool.acquire() as conn:
                result = await conn.execute("DELETE FROM task_runs WHERE started_at < $1", cutoff)
        except (OSError, asyncpg.PostgresError) as e:
            raise RunStoreError(f"Failed to delete runs older than {cutoff.isoformat()}: {e}") from e

        removed = _affected_rows(result)
        if removed > 0:
            logger.info("Expired runs cleaned up", removed=removed, cutoff=cutoff.isoformat())
        return removed

    async def close(self):
        """Close database connection pool"""
        if self.connection_pool:
            await self.connection_pool.close()
            logger.info("Database connection pool closed")
