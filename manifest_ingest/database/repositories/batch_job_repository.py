from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from manifest_ingest.database.connection import Database
from manifest_ingest.database.exceptions import StorageError
from manifest_ingest.database.models import BatchJobRecord


class BatchJobRepository:
    """Database operations for the batch_jobs and batch_job_manifests tables."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create(self, job_id: str, total_files: int) -> int:
        """Insert a job row in 'processing' status and return its primary key."""
        with self._db.connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO batch_jobs (job_id, total_files, status)
                        VALUES (%s, %s, 'processing')
                        RETURNING id
                        """,
                        (job_id, total_files),
                    )
                    row = cur.fetchone()
                conn.commit()
            except psycopg.Error as exc:
                conn.rollback()
                raise StorageError(f"Failed to create batch job {job_id}: {exc}") from exc

        if row is None:
            raise StorageError(f"Batch job {job_id} insert returned no id")
        return int(row[0])

    def record_item(self, job_id: str, succeeded: bool) -> None:
        """Count one more processed item against a job still in 'processing'."""
        self._execute(
            """
            UPDATE batch_jobs
            SET processed_files = processed_files + 1,
                successful_files = successful_files + %s,
                failed_files = failed_files + %s
            WHERE job_id = %s AND status = 'processing'
            """,
            (1 if succeeded else 0, 0 if succeeded else 1, job_id),
        )

    def finalize(
        self,
        job_id: str,
        status: str,
        *,
        processed_files: int,
        successful_files: int,
        failed_files: int,
        results: list[dict[str, Any]],
        errors: list[dict[str, Any]],
        error_message: str | None = None,
    ) -> None:
        """Write the terminal status together with the serialized outcome."""
        self._execute(
            """
            UPDATE batch_jobs
            SET status = %s,
                processed_files = %s,
                successful_files = %s,
                failed_files = %s,
                results = %s,
                errors = %s,
                error_message = %s,
                completed_at = NOW()
            WHERE job_id = %s AND status = 'processing'
            """,
            (
                status,
                processed_files,
                successful_files,
                failed_files,
                Jsonb(results),
                Jsonb(errors),
                error_message,
                job_id,
            ),
        )

    def link_manifest(self, job_id: str, manifest_id: str, processing_order: int) -> bool:
        """Associate a stored manifest with its job. False if the job row is missing."""
        with self._db.connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO batch_job_manifests
                            (batch_job_id, manifest_id, processing_order)
                        SELECT bj.id, %s, %s
                        FROM batch_jobs bj
                        WHERE bj.job_id = %s
                        """,
                        (manifest_id, processing_order, job_id),
                    )
                    linked = cur.rowcount > 0
                conn.commit()
            except psycopg.Error as exc:
                conn.rollback()
                raise StorageError(f"Failed to link manifest {manifest_id}: {exc}") from exc
        return linked

    def find_by_job_id(self, job_id: str) -> BatchJobRecord | None:
        try:
            with self._db.connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(
                        """
                        SELECT id, job_id, total_files, processed_files,
                               successful_files, failed_files, status, results,
                               errors, error_message, started_at, completed_at
                        FROM batch_jobs
                        WHERE job_id = %s
                        """,
                        (job_id,),
                    )
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise StorageError(f"Failed to read batch job {job_id}: {exc}") from exc

        if row is None:
            return None

        return BatchJobRecord(
            id=row["id"],
            job_id=row["job_id"],
            total_files=row["total_files"],
            processed_files=row["processed_files"],
            successful_files=row["successful_files"],
            failed_files=row["failed_files"],
            status=row["status"],
            results=row["results"] or [],
            errors=row["errors"] or [],
            error_message=row["error_message"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )

    def manifest_ids_in_order(self, job_id: str) -> list[str]:
        """Manifest ids linked to a job, in the order they were produced."""
        try:
            with self._db.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        SELECT bjm.manifest_id
                        FROM batch_job_manifests bjm
                        JOIN batch_jobs bj ON bj.id = bjm.batch_job_id
                        WHERE bj.job_id = %s
                        ORDER BY bjm.processing_order
                        """,
                        (job_id,),
                    )
                    rows = cur.fetchall()
        except psycopg.Error as exc:
            raise StorageError(f"Failed to read links for batch job {job_id}: {exc}") from exc
        return [str(r[0]) for r in rows]

    def _execute(self, sql: str, params: tuple[Any, ...]) -> None:
        with self._db.connection() as conn:
            try:
                conn.execute(sql, params)
                conn.commit()
            except psycopg.Error as exc:
                conn.rollback()
                raise StorageError(f"Batch job update failed: {exc}") from exc
