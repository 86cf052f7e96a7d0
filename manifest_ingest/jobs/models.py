from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


class JobStatus(StrEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


class JobSource(StrEnum):
    MEMORY = "memory"
    DATABASE = "database"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ItemError:
    """An item that failed extraction; recorded against its job."""

    filename: str
    error: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, str]:
        return {"filename": self.filename, "error": self.error, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ItemError":
        return cls(
            filename=str(raw.get("filename", "")),
            error=str(raw.get("error", "")),
            timestamp=str(raw.get("timestamp", "")),
        )


@dataclass(frozen=True)
class ItemOutcome:
    """Result of processing one item: exactly one of result or error is set."""

    filename: str
    result: dict[str, Any] | None = None
    error: ItemError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class JobSummary:
    """Aggregate figures written alongside a terminal status."""

    successful_files: int
    failed_files: int
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: list[ItemError] = field(default_factory=list)
    error_message: str | None = None


@dataclass
class JobView:
    """What callers see of a job, whichever store answered."""

    job_id: str
    status: JobStatus
    total_files: int
    processed_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: list[ItemError] = field(default_factory=list)
    started_at: str | None = None
    completed_at: str | None = None
    failed_at: str | None = None
    error_message: str | None = None
    store_in_db: bool = True
    source: JobSource = JobSource.MEMORY

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "total_files": self.total_files,
            "processed_files": self.processed_files,
            "successful_files": self.successful_files,
            "failed_files": self.failed_files,
            "results": list(self.results),
            "errors": [e.to_dict() for e in self.errors],
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "failed_at": self.failed_at,
            "error_message": self.error_message,
            "store_in_db": self.store_in_db,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class JobResults:
    """Results and summary of a completed job."""

    job_id: str
    results: list[dict[str, Any]]
    total_files: int
    successful: int
    failed: int
    errors: list[ItemError]
    source: JobSource

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "results": list(self.results),
            "summary": {
                "total_files": self.total_files,
                "successful": self.successful,
                "failed": self.failed,
                "errors": [e.to_dict() for e in self.errors],
            },
            "source": self.source.value,
        }
