from manifest_ingest.database.models import BatchJobRecord
from manifest_ingest.database.repositories.batch_job_repository import BatchJobRepository
from manifest_ingest.jobs.base import BaseJobRegistry
from manifest_ingest.jobs.models import (
    ItemError,
    ItemOutcome,
    JobSource,
    JobStatus,
    JobSummary,
    JobView,
)


class DurableJobRegistry(BaseJobRegistry):
    """Job table backed by batch_jobs; survives restarts.

    Every method lets StorageError propagate. Swallowing is the aggregator's job.
    """

    def __init__(self, repo: BatchJobRepository) -> None:
        self._repo = repo

    def create(self, job_id: str, total_items: int, *, store_in_db: bool = True) -> None:
        self._repo.create(job_id, total_items)

    def record_item_outcome(self, job_id: str, outcome: ItemOutcome) -> None:
        self._repo.record_item(job_id, outcome.succeeded)

    def finalize(self, job_id: str, status: JobStatus, summary: JobSummary) -> None:
        self._repo.finalize(
            job_id,
            status.value,
            processed_files=summary.successful_files + summary.failed_files,
            successful_files=summary.successful_files,
            failed_files=summary.failed_files,
            results=summary.results,
            errors=[e.to_dict() for e in summary.errors],
            error_message=summary.error_message,
        )

    def get(self, job_id: str) -> JobView | None:
        record = self._repo.find_by_job_id(job_id)
        if record is None:
            return None
        return _view_from_record(record)

    def link_manifest(self, job_id: str, manifest_id: str, processing_order: int) -> bool:
        return self._repo.link_manifest(job_id, manifest_id, processing_order)


def _view_from_record(record: BatchJobRecord) -> JobView:
    status = JobStatus(record.status)
    completed_at = record.completed_at.isoformat() if record.completed_at else None
    return JobView(
        job_id=record.job_id,
        status=status,
        total_files=record.total_files,
        processed_files=record.processed_files,
        successful_files=record.successful_files,
        failed_files=record.failed_files,
        results=list(record.results),
        errors=[ItemError.from_dict(e) for e in record.errors],
        started_at=record.started_at.isoformat() if record.started_at else None,
        completed_at=completed_at if status is JobStatus.COMPLETED else None,
        failed_at=completed_at if status is JobStatus.FAILED else None,
        error_message=record.error_message,
        store_in_db=True,
        source=JobSource.DATABASE,
    )
