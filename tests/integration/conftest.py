import os
from collections.abc import Callable, Generator
from typing import Any

import pytest

from manifest_ingest.config.settings import Settings
from manifest_ingest.database.connection import Database
from manifest_ingest.database.repositories.batch_job_repository import BatchJobRepository
from manifest_ingest.database.repositories.manifest_repository import ManifestRepository


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "manifest_db_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def database(test_settings: Settings) -> Generator[Database, None, None]:
    try:
        db = Database.open(test_settings)
    except Exception as e:
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        db.apply_schema()
        yield db
    finally:
        db.close()


@pytest.fixture
def clean_tables(database: Database) -> Generator[None, None, None]:
    yield
    with database.connection() as conn:
        conn.execute("DELETE FROM batch_job_manifests")
        conn.execute("DELETE FROM batch_jobs")
        conn.execute("DELETE FROM deliveries")
        conn.execute("DELETE FROM manifests")
        conn.commit()


@pytest.fixture
def manifest_repo(database: Database, clean_tables: None) -> ManifestRepository:
    return ManifestRepository(database)


@pytest.fixture
def batch_job_repo(database: Database, clean_tables: None) -> BatchJobRepository:
    return BatchJobRepository(database)


@pytest.fixture
def row_count(database: Database) -> Callable[[str], int]:
    def _count(table: str) -> int:
        with database.connection() as conn:
            row: Any = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return int(row[0])

    return _count
