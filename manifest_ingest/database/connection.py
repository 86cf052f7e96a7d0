from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool, PoolClosed, PoolTimeout

from manifest_ingest.config.settings import Settings
from manifest_ingest.database.exceptions import DatabaseUnavailableError, StorageError
from manifest_ingest.logging.logger import Log

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def build_conninfo(settings: Settings) -> str:
    return (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password} "
        f"sslmode={settings.db_sslmode}"
    )


class Database:
    """Owns the process-wide connection pool and hands out scoped connections.

    Repositories receive a Database instance; nothing reaches the pool through
    module globals.
    """

    def __init__(self, pool: ConnectionPool | None) -> None:
        self._pool = pool

    @classmethod
    def open(cls, settings: Settings) -> "Database":
        """Create the pool and verify it can serve a connection."""
        pool = ConnectionPool(
            build_conninfo(settings),
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            timeout=settings.db_pool_timeout_seconds,
            open=True,
        )
        database = cls(pool)
        try:
            database.ping()
        except Exception:
            pool.close()
            raise
        Log.info(
            f"Database pool opened ({settings.db_host}:{settings.db_port}/"
            f"{settings.db_database}, max_size={settings.db_pool_max_size})"
        )
        return database

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None
            Log.info("Database pool closed")

    @property
    def is_open(self) -> bool:
        return self._pool is not None and not self._pool.closed

    @contextmanager
    def connection(self) -> Generator[psycopg.Connection[Any], None, None]:
        """Yield a pooled connection; it returns to the pool on every exit path.

        Caller manages commit/rollback.

        Raises:
            DatabaseUnavailableError: if the pool is closed or was never opened.
            StorageError: if no connection became free within the pool timeout.
        """
        if self._pool is None:
            raise DatabaseUnavailableError("Connection pool not initialized")
        try:
            with self._pool.connection() as conn:
                yield conn
        except PoolClosed as exc:
            raise DatabaseUnavailableError(f"Connection pool is closed: {exc}") from exc
        except PoolTimeout as exc:
            raise StorageError(f"Timed out waiting for a database connection: {exc}") from exc

    def ping(self) -> None:
        with self.connection() as conn:
            conn.execute("SELECT 1")
            conn.commit()

    def apply_schema(self, path: Path | None = None) -> None:
        """Execute the bundled DDL. Statements are idempotent."""
        ddl = (path or SCHEMA_PATH).read_text(encoding="utf-8")
        with self.connection() as conn:
            try:
                conn.execute(ddl)
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        Log.info("Database schema applied")
