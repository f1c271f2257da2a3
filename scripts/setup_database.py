# scripts/setup_database.py
"""
Database setup script for the refactoring task service.
Creates the database (local development only), the task_runs table and its
indexes, then checks that a run record can be written and read back.
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import asyncpg
from domain.errors import RefactorError
from domain.models.task_run import RunOutcome, TaskRun
from infrastructure.storage.postgres_run_store import PostgresRunStore
from shared.logging import logger, setup_logging


async def create_database_if_not_exists(admin_url: str, database_name: str):
    """Create database if it doesn't exist"""
    admin_conn = await asyncpg.connect(admin_url)
    try:
        db_exists = await admin_conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1", database_name
        )

        if not db_exists:
            await admin_conn.execute(f'CREATE DATABASE "{database_name}"')
            logger.info("Created database", database=database_name)
        else:
            logger.info("Database already exists", database=database_name)
    finally:
        await admin_conn.close()


async def verify_setup(store: PostgresRunStore):
    """Round-trip a throwaway run through the store"""
    logger.info("Verifying database setup...")

    sample_run = TaskRun(project_path="setup-verification", outcome=RunOutcome.SKIPPED)
    await store.save(sample_run)
    loaded = await store.load(sample_run.id)
    if loaded is None or loaded.project_path != sample_run.project_path:
        raise RuntimeError("Failed to insert/query verification run")
    await store.delete(sample_run.id)

    logger.info("Basic database operations working")


async def main():
    """Main setup function"""

    setup_logging(level="INFO", json_logs=False)

    logger.info("Starting refactoring task service database setup")

    database_url = os.getenv("DATABASE_URL")

    if not database_url:
        # Default local development setup
        host = os.getenv("DB_HOST", "localhost")
        port = os.getenv("DB_PORT", "5432")
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "postgres")
        database = os.getenv("DB_NAME", "refactor_runs")

        database_url = f"postgresql://{user}:{password}@{host}:{port}/{database}"
        admin_url = f"postgresql://{user}:{password}@{host}:{port}/postgres"

        logger.info("Using database", host=host, port=port, database=database)

        try:
            await create_database_if_not_exists(admin_url, database)
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning("Could not create database (may already exist)", error=str(e))

    store = PostgresRunStore(database_url)
    try:
        await store.initialize()
        await verify_setup(store)
        logger.info("Database setup completed successfully")
    except (RefactorError, RuntimeError) as e:
        logger.error("Database setup failed", error=str(e))
        sys.exit(1)
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(main())
