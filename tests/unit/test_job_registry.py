from unittest.mock import MagicMock

import pytest

from manifest_ingest.database.exceptions import StorageError
from manifest_ingest.jobs.durable_registry import DurableJobRegistry
from manifest_ingest.jobs.exceptions import JobNotCompletedError
from manifest_ingest.jobs.memory_registry import InMemoryJobRegistry
from manifest_ingest.jobs.models import (
    ItemOutcome,
    JobSource,
    JobStatus,
    JobSummary,
    JobView,
)
from manifest_ingest.jobs.registry import JobRegistry


def _make_registry() -> tuple[JobRegistry, InMemoryJobRegistry, MagicMock]:
    memory = InMemoryJobRegistry()
    durable = MagicMock(spec=DurableJobRegistry)
    return JobRegistry(memory, durable), memory, durable


class TestWrites:
    def test_create_writes_both_stores(self) -> None:
        registry, memory, durable = _make_registry()

        registry.create("job-1", 2)

        assert memory.get("job-1") is not None
        durable.create.assert_called_once_with("job-1", 2)

    def test_unstored_job_skips_database(self) -> None:
        registry, memory, durable = _make_registry()

        registry.create("job-1", 1, store_in_db=False)
        registry.record_item_outcome(
            "job-1", ItemOutcome(filename="a.pdf", result={}), store_in_db=False
        )
        registry.finalize("job-1", JobStatus.COMPLETED, JobSummary(1, 0), store_in_db=False)

        durable.create.assert_not_called()
        durable.record_item_outcome.assert_not_called()
        durable.finalize.assert_not_called()
        job = memory.get("job-1")
        assert job is not None
        assert job.status is JobStatus.COMPLETED

    def test_durable_failure_does_not_block_memory(self) -> None:
        registry, memory, durable = _make_registry()
        durable.create.side_effect = StorageError("db down")
        durable.record_item_outcome.side_effect = StorageError("db down")
        durable.finalize.side_effect = StorageError("db down")

        registry.create("job-1", 1)
        registry.record_item_outcome("job-1", ItemOutcome(filename="a.pdf", result={}))
        registry.finalize("job-1", JobStatus.COMPLETED, JobSummary(1, 0))

        job = memory.get("job-1")
        assert job is not None
        assert job.processed_files == 1
        assert job.status is JobStatus.COMPLETED

    def test_link_manifest_missing_row_is_tolerated(self) -> None:
        registry, _memory, durable = _make_registry()
        durable.link_manifest.return_value = False

        registry.link_manifest("job-1", "m-1", 1)

        durable.link_manifest.assert_called_once_with("job-1", "m-1", 1)

    def test_link_manifest_error_is_swallowed(self) -> None:
        registry, _memory, durable = _make_registry()
        durable.link_manifest.side_effect = StorageError("fk violation")

        registry.link_manifest("job-1", "m-1", 1)

    def test_without_durable_store(self) -> None:
        registry = JobRegistry(InMemoryJobRegistry())
        registry.create("job-1", 1)
        registry.link_manifest("job-1", "m-1", 1)
        assert registry.get("job-1") is not None


class TestReads:
    def test_memory_copy_wins(self) -> None:
        registry, _memory, durable = _make_registry()
        registry.create("job-1", 1)

        job = registry.get("job-1")

        assert job is not None
        assert job.source is JobSource.MEMORY
        durable.get.assert_not_called()

    def test_falls_back_to_database(self) -> None:
        registry, _memory, durable = _make_registry()
        durable.get.return_value = JobView(
            job_id="old-job",
            status=JobStatus.COMPLETED,
            total_files=1,
            source=JobSource.DATABASE,
        )

        job = registry.get("old-job")

        assert job is not None
        assert job.source is JobSource.DATABASE

    def test_database_error_reads_as_absent(self) -> None:
        registry, _memory, durable = _make_registry()
        durable.get.side_effect = StorageError("down")

        assert registry.get("old-job") is None

    def test_delete_is_memory_only(self) -> None:
        registry, _memory, durable = _make_registry()
        registry.create("job-1", 1)

        assert registry.delete("job-1") is True
        assert registry.delete("job-1") is False
        durable.get.return_value = None
        assert registry.get("job-1") is None


class TestGetResults:
    def test_unknown_job(self) -> None:
        registry, _memory, durable = _make_registry()
        durable.get.return_value = None
        assert registry.get_results("nope") is None

    def test_running_job_is_rejected(self) -> None:
        registry, _memory, _durable = _make_registry()
        registry.create("job-1", 1)

        with pytest.raises(JobNotCompletedError, match="Current status: processing"):
            registry.get_results("job-1")

    def test_failed_job_is_rejected(self) -> None:
        registry, _memory, _durable = _make_registry()
        registry.create("job-1", 1)
        registry.finalize("job-1", JobStatus.FAILED, JobSummary(0, 0, error_message="x"))

        with pytest.raises(JobNotCompletedError):
            registry.get_results("job-1")

    def test_completed_job_summary(self) -> None:
        registry, _memory, _durable = _make_registry()
        registry.create("job-1", 1)
        registry.record_item_outcome(
            "job-1", ItemOutcome(filename="a.pdf", result={"manifest_id": "A"})
        )
        registry.finalize("job-1", JobStatus.COMPLETED, JobSummary(1, 0))

        results = registry.get_results("job-1")

        assert results is not None
        payload = results.to_dict()
        assert payload["results"] == [{"manifest_id": "A"}]
        assert payload["summary"]["total_files"] == 1
        assert payload["summary"]["successful"] == 1
        assert payload["source"] == "memory"
