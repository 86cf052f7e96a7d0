from dataclasses import dataclass
from typing import Any

from manifest_ingest.database.models import (
    DeliveryFilters,
    DeliveryWithManifest,
    ManifestFilters,
    ManifestRecord,
    ManifestSummary,
    StoreStatistics,
)
from manifest_ingest.database.repositories.manifest_repository import (
    DEFAULT_LIMIT,
    ManifestRepository,
)
from manifest_ingest.jobs.models import JobResults, JobStatus, JobView, utc_now_iso
from manifest_ingest.jobs.registry import JobRegistry

SURROGATE_ID_LENGTH = 36
SURROGATE_ID_SEPARATOR = "-"


def looks_like_surrogate_id(external_id: str) -> bool:
    """Structural guess: 36 characters containing a hyphen is a generated id.

    This is a heuristic, not a tagged identifier. A 36-character manifest
    reference containing a hyphen is routed to the id lookup and will not be
    found by reference.
    """
    return len(external_id) == SURROGATE_ID_LENGTH and SURROGATE_ID_SEPARATOR in external_id


@dataclass(frozen=True)
class MemoryJobStatistics:
    total_jobs: int
    completed_jobs: int
    failed_jobs: int
    processing_jobs: int

    @property
    def success_rate(self) -> float:
        if self.total_jobs == 0:
            return 0.0
        return self.completed_jobs / self.total_jobs * 100


@dataclass(frozen=True)
class ServiceStatistics:
    database: StoreStatistics
    memory_jobs: MemoryJobStatistics
    timestamp: str


class ManifestQueryService:
    """Read-side entry point over stored manifests and batch jobs."""

    def __init__(self, manifest_repo: ManifestRepository, registry: JobRegistry) -> None:
        self._manifest_repo = manifest_repo
        self._registry = registry

    def resolve(self, external_id: str) -> ManifestRecord | None:
        if looks_like_surrogate_id(external_id):
            return self._manifest_repo.find_by_id(external_id)
        return self._manifest_repo.find_by_ref(external_id)

    def search_manifests(
        self,
        filters: ManifestFilters | None = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> list[ManifestSummary]:
        return self._manifest_repo.search_manifests(filters or ManifestFilters(), limit, offset)

    def search_deliveries(
        self,
        filters: DeliveryFilters | None = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> list[DeliveryWithManifest]:
        return self._manifest_repo.search_deliveries(filters or DeliveryFilters(), limit, offset)

    def get_job(self, job_id: str) -> JobView | None:
        return self._registry.get(job_id)

    def get_job_results(self, job_id: str) -> JobResults | None:
        """Raises JobNotCompletedError for a job that is known but not completed."""
        return self._registry.get_results(job_id)

    def delete_job(self, job_id: str) -> bool:
        return self._registry.delete(job_id)

    def get_service_statistics(self) -> ServiceStatistics:
        jobs = self._registry.memory_jobs()
        memory_stats = MemoryJobStatistics(
            total_jobs=len(jobs),
            completed_jobs=_count(jobs, JobStatus.COMPLETED),
            failed_jobs=_count(jobs, JobStatus.FAILED),
            processing_jobs=_count(jobs, JobStatus.PROCESSING),
        )
        return ServiceStatistics(
            database=self._manifest_repo.get_statistics(),
            memory_jobs=memory_stats,
            timestamp=utc_now_iso(),
        )


def _count(jobs: list[JobView], status: JobStatus) -> int:
    return sum(1 for job in jobs if job.status is status)


def statistics_to_dict(stats: ServiceStatistics) -> dict[str, Any]:
    db = stats.database
    return {
        "database_stats": {
            "manifests": {
                "total_manifests": db.total_manifests,
                "unique_dates": db.unique_dates,
                "unique_drivers": db.unique_drivers,
                "total_deliveries": db.total_deliveries,
                "avg_deliveries_per_manifest": db.avg_deliveries_per_manifest,
            },
            "recent_activity": {
                "recent_manifests": db.recent_manifests,
                "last_processed": db.last_processed.isoformat() if db.last_processed else None,
            },
            "batch_processing": {
                "total_batch_jobs": db.total_batch_jobs,
                "completed_jobs": db.completed_jobs,
                "failed_jobs": db.failed_jobs,
                "processing_jobs": db.processing_jobs,
            },
        },
        "memory_batch_jobs": {
            "total_jobs": stats.memory_jobs.total_jobs,
            "completed_jobs": stats.memory_jobs.completed_jobs,
            "failed_jobs": stats.memory_jobs.failed_jobs,
            "processing_jobs": stats.memory_jobs.processing_jobs,
            "success_rate": stats.memory_jobs.success_rate,
        },
        "timestamp": stats.timestamp,
    }
