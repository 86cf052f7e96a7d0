from collections.abc import Callable

from manifest_ingest.jobs.durable_registry import DurableJobRegistry
from manifest_ingest.jobs.exceptions import JobNotCompletedError
from manifest_ingest.jobs.memory_registry import InMemoryJobRegistry
from manifest_ingest.jobs.models import (
    ItemOutcome,
    JobResults,
    JobStatus,
    JobSummary,
    JobView,
)
from manifest_ingest.logging.logger import Log


class JobRegistry:
    """Writes every transition to memory and, for stored jobs, to the database.

    Reads check memory first and fall back to the database. A failed durable
    write is logged and never undoes or blocks the in-memory transition.
    """

    def __init__(
        self,
        memory: InMemoryJobRegistry,
        durable: DurableJobRegistry | None = None,
    ) -> None:
        self._memory = memory
        self._durable = durable

    def create(self, job_id: str, total_items: int, *, store_in_db: bool = True) -> None:
        self._memory.create(job_id, total_items, store_in_db=store_in_db)
        if store_in_db:
            self._durable_write(
                job_id,
                "create",
                lambda d: d.create(job_id, total_items),
            )
        Log.info(f"Batch job {job_id} created with {total_items} items")

    def record_item_outcome(
        self,
        job_id: str,
        outcome: ItemOutcome,
        *,
        store_in_db: bool = True,
    ) -> None:
        self._memory.record_item_outcome(job_id, outcome)
        if store_in_db:
            self._durable_write(
                job_id,
                "record progress for",
                lambda d: d.record_item_outcome(job_id, outcome),
            )

    def finalize(
        self,
        job_id: str,
        status: JobStatus,
        summary: JobSummary,
        *,
        store_in_db: bool = True,
    ) -> None:
        self._memory.finalize(job_id, status, summary)
        if store_in_db:
            self._durable_write(
                job_id,
                "finalize",
                lambda d: d.finalize(job_id, status, summary),
            )

    def link_manifest(self, job_id: str, manifest_id: str, processing_order: int) -> None:
        def _link(durable: DurableJobRegistry) -> None:
            if not durable.link_manifest(job_id, manifest_id, processing_order):
                Log.warning(
                    f"No batch job row for {job_id}; manifest {manifest_id} not linked"
                )

        self._durable_write(job_id, "link manifest to", _link)

    def get(self, job_id: str) -> JobView | None:
        job = self._memory.get(job_id)
        if job is not None:
            return job
        if self._durable is None:
            return None
        try:
            return self._durable.get(job_id)
        except Exception as exc:
            Log.error(f"Error retrieving batch job {job_id} from database: {exc}")
            return None

    def get_results(self, job_id: str) -> JobResults | None:
        """Results of a completed job; None when the job is unknown.

        Raises:
            JobNotCompletedError: if the job exists but is not completed.
        """
        job = self.get(job_id)
        if job is None:
            return None
        if job.status is not JobStatus.COMPLETED:
            raise JobNotCompletedError(job_id, job.status.value)
        return JobResults(
            job_id=job_id,
            results=job.results,
            total_files=job.total_files,
            successful=job.successful_files,
            failed=job.failed_files,
            errors=job.errors,
            source=job.source,
        )

    def delete(self, job_id: str) -> bool:
        """Remove the in-memory copy only; the database row is untouched."""
        deleted = self._memory.delete(job_id)
        if deleted:
            Log.info(f"Batch job {job_id} deleted from memory")
        return deleted

    def memory_jobs(self) -> list[JobView]:
        return self._memory.list_jobs()

    def _durable_write(
        self,
        job_id: str,
        action: str,
        write: Callable[[DurableJobRegistry], None],
    ) -> None:
        if self._durable is None:
            return
        try:
            write(self._durable)
        except Exception as exc:
            Log.error(f"Failed to {action} batch job {job_id} in database: {exc}")
