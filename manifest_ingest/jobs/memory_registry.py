import threading
from dataclasses import replace

from manifest_ingest.jobs.base import BaseJobRegistry
from manifest_ingest.jobs.exceptions import JobStateError
from manifest_ingest.jobs.models import (
    ItemOutcome,
    JobSource,
    JobStatus,
    JobSummary,
    JobView,
    utc_now_iso,
)
from manifest_ingest.logging.logger import Log


class InMemoryJobRegistry(BaseJobRegistry):
    """Process-local job table. Fast, authoritative while alive, lost on restart."""

    def __init__(self) -> None:
        self._jobs: dict[str, JobView] = {}
        self._lock = threading.Lock()

    def create(self, job_id: str, total_items: int, *, store_in_db: bool = True) -> None:
        with self._lock:
            if job_id in self._jobs:
                raise JobStateError(f"Job {job_id} already exists")
            self._jobs[job_id] = JobView(
                job_id=job_id,
                status=JobStatus.PROCESSING,
                total_files=total_items,
                started_at=utc_now_iso(),
                store_in_db=store_in_db,
                source=JobSource.MEMORY,
            )

    def record_item_outcome(self, job_id: str, outcome: ItemOutcome) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                Log.warning(f"Job {job_id} is no longer in memory; skipping progress update")
                return
            self._ensure_processing(job)
            if outcome.error is not None:
                job.errors.append(outcome.error)
                job.failed_files += 1
            else:
                job.results.append(outcome.result or {})
                job.successful_files += 1
            job.processed_files += 1

    def finalize(self, job_id: str, status: JobStatus, summary: JobSummary) -> None:
        if not status.is_terminal:
            raise JobStateError(f"Cannot finalize job {job_id} with status '{status}'")
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                Log.warning(f"Job {job_id} is no longer in memory; skipping finalize")
                return
            self._ensure_processing(job)
            job.status = status
            if status is JobStatus.COMPLETED:
                job.completed_at = utc_now_iso()
            else:
                job.failed_at = utc_now_iso()
                job.error_message = summary.error_message

    def get(self, job_id: str) -> JobView | None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            return replace(job, results=list(job.results), errors=list(job.errors))

    def delete(self, job_id: str) -> bool:
        """Drop a job from memory. Returns whether it was present."""
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def list_jobs(self) -> list[JobView]:
        with self._lock:
            return [
                replace(job, results=list(job.results), errors=list(job.errors))
                for job in self._jobs.values()
            ]

    @staticmethod
    def _ensure_processing(job: JobView) -> None:
        if job.status.is_terminal:
            raise JobStateError(f"Job {job.job_id} is already {job.status}")
