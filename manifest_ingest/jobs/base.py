from abc import ABC, abstractmethod

from manifest_ingest.jobs.models import ItemOutcome, JobStatus, JobSummary, JobView


class BaseJobRegistry(ABC):
    """Contract shared by every store that tracks batch job progress."""

    @abstractmethod
    def create(self, job_id: str, total_items: int, *, store_in_db: bool = True) -> None:
        """Register a new job in 'processing' status with zero progress."""

    @abstractmethod
    def record_item_outcome(self, job_id: str, outcome: ItemOutcome) -> None:
        """Count one processed item and keep its result or error."""

    @abstractmethod
    def finalize(self, job_id: str, status: JobStatus, summary: JobSummary) -> None:
        """Move a job into a terminal status."""

    @abstractmethod
    def get(self, job_id: str) -> JobView | None:
        """Return the job as seen by this store, or None."""
