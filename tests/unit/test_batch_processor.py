import threading
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from manifest_ingest.database.exceptions import DatabaseUnavailableError, StorageError
from manifest_ingest.database.repositories.manifest_repository import ManifestRepository
from manifest_ingest.extraction.exceptions import ExtractionError
from manifest_ingest.extraction.models import ExtractedManifest
from manifest_ingest.extraction.validator import validate_and_build
from manifest_ingest.jobs.durable_registry import DurableJobRegistry
from manifest_ingest.jobs.memory_registry import InMemoryJobRegistry
from manifest_ingest.jobs.models import JobStatus
from manifest_ingest.jobs.registry import JobRegistry
from manifest_ingest.processor.batch_processor import BatchProcessor
from manifest_ingest.processor.exceptions import BatchValidationError, ItemTooLargeError
from manifest_ingest.processor.file_loader import FileLoader
from manifest_ingest.processor.models import BatchItem


def _items(tmp_path: Path, names: list[str], *, temporary: bool = False) -> list[BatchItem]:
    items = []
    for name in names:
        path = tmp_path / name
        path.write_bytes(b"%PDF-1.4 fake " + name.encode())
        items.append(BatchItem.from_path(path, temporary=temporary))
    return items


def _make_processor(
    manifest: ExtractedManifest,
    *,
    store_in_db: bool = True,
    max_size_bytes: int | None = None,
) -> tuple[BatchProcessor, MagicMock, MagicMock, JobRegistry, MagicMock]:
    extractor = MagicMock()
    extractor.extract.return_value = manifest
    manifest_repo = MagicMock(spec=ManifestRepository)
    manifest_repo.store_manifest.return_value = "m-1"
    durable = MagicMock(spec=DurableJobRegistry)
    durable.link_manifest.return_value = True
    registry = JobRegistry(InMemoryJobRegistry(), durable)
    processor = BatchProcessor(
        extractor=extractor,
        manifest_repo=manifest_repo,
        registry=registry,
        file_loader=FileLoader(max_size_bytes=max_size_bytes),
        store_in_db=store_in_db,
    )
    return processor, extractor, manifest_repo, registry, durable


@pytest.fixture()
def manifest(manifest_payload: dict[str, Any]) -> ExtractedManifest:
    return validate_and_build(manifest_payload)


class TestRun:
    def test_failing_item_does_not_stop_the_batch(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, extractor, manifest_repo, registry, durable = _make_processor(manifest)
        extractor.extract.side_effect = [manifest, ExtractionError("unreadable"), manifest]
        manifest_repo.store_manifest.side_effect = ["m-1", "m-3"]
        items = _items(tmp_path, ["a.pdf", "b.pdf", "c.pdf"])
        registry.create("job-1", len(items))

        status = processor.run("job-1", items, store_in_db=True)

        assert status is JobStatus.COMPLETED
        job = registry.get("job-1")
        assert job is not None
        assert job.status is JobStatus.COMPLETED
        assert job.processed_files == 3
        assert job.successful_files == 2
        assert job.failed_files == 1
        assert len(job.results) == 2
        assert [e.filename for e in job.errors] == ["b.pdf"]
        assert "unreadable" in job.errors[0].error
        assert job.completed_at is not None

    def test_links_manifests_in_submission_order(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, extractor, manifest_repo, registry, durable = _make_processor(manifest)
        extractor.extract.side_effect = [manifest, ExtractionError("unreadable"), manifest]
        manifest_repo.store_manifest.side_effect = ["m-1", "m-3"]
        items = _items(tmp_path, ["a.pdf", "b.pdf", "c.pdf"])
        registry.create("job-1", len(items))

        processor.run("job-1", items, store_in_db=True)

        assert [c.args for c in durable.link_manifest.call_args_list] == [
            ("job-1", "m-1", 1),
            ("job-1", "m-3", 3),
        ]

    def test_result_carries_payload_and_processing_info(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, _extractor, _repo, registry, _durable = _make_processor(manifest)
        items = _items(tmp_path, ["a.pdf"])
        registry.create("job-1", 1)

        processor.run("job-1", items, store_in_db=True)

        job = registry.get("job-1")
        assert job is not None
        result = job.results[0]
        assert result["manifest_id"] == "MAN-1001"
        assert result["database_id"] == "m-1"
        assert result["processing_info"]["filename"] == "a.pdf"
        assert result["processing_info"]["delivery_count"] == 2
        assert result["processing_info"]["file_size_bytes"] == items[0].size_bytes

    def test_storage_error_is_annotated_not_fatal(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, _extractor, manifest_repo, registry, durable = _make_processor(manifest)
        manifest_repo.store_manifest.side_effect = StorageError("constraint violated")
        items = _items(tmp_path, ["a.pdf", "b.pdf"])
        registry.create("job-1", 2)

        status = processor.run("job-1", items, store_in_db=True)

        assert status is JobStatus.COMPLETED
        job = registry.get("job-1")
        assert job is not None
        assert job.successful_files == 2
        assert all("constraint violated" in r["database_error"] for r in job.results)
        assert all("database_id" not in r for r in job.results)
        durable.link_manifest.assert_not_called()

    def test_unavailable_database_fails_the_job(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, _extractor, manifest_repo, registry, _durable = _make_processor(manifest)
        manifest_repo.store_manifest.side_effect = DatabaseUnavailableError("pool is closed")
        items = _items(tmp_path, ["a.pdf", "b.pdf", "c.pdf"])
        registry.create("job-1", 3)

        status = processor.run("job-1", items, store_in_db=True)

        assert status is JobStatus.FAILED
        job = registry.get("job-1")
        assert job is not None
        assert job.status is JobStatus.FAILED
        assert job.failed_at is not None
        assert "pool is closed" in (job.error_message or "")
        assert job.processed_files == 0
        assert manifest_repo.store_manifest.call_count == 1

    def test_fatal_error_releases_remaining_temporary_items(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, _extractor, manifest_repo, registry, _durable = _make_processor(manifest)
        manifest_repo.store_manifest.side_effect = DatabaseUnavailableError("pool is closed")
        items = _items(tmp_path, ["a.pdf", "b.pdf", "c.pdf"], temporary=True)
        registry.create("job-1", 3)

        processor.run("job-1", items, store_in_db=True)

        assert not any(item.path.exists() for item in items)

    def test_temporary_items_released_after_processing(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, extractor, _repo, registry, _durable = _make_processor(manifest)
        extractor.extract.side_effect = [manifest, ExtractionError("bad")]
        items = _items(tmp_path, ["a.pdf", "b.pdf"], temporary=True)
        registry.create("job-1", 2)

        processor.run("job-1", items, store_in_db=True)

        assert not any(item.path.exists() for item in items)

    def test_caller_owned_items_are_kept(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, _extractor, _repo, registry, _durable = _make_processor(manifest)
        items = _items(tmp_path, ["a.pdf"])
        registry.create("job-1", 1)

        processor.run("job-1", items, store_in_db=True)

        assert items[0].path.exists()

    def test_oversized_item_is_an_item_error(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, extractor, _repo, registry, _durable = _make_processor(
            manifest, max_size_bytes=4
        )
        items = _items(tmp_path, ["a.pdf"])
        registry.create("job-1", 1)

        processor.run("job-1", items, store_in_db=True)

        job = registry.get("job-1")
        assert job is not None
        assert job.failed_files == 1
        assert "limit is 4 bytes" in job.errors[0].error
        extractor.extract.assert_not_called()

    def test_without_storing(self, tmp_path: Path, manifest: ExtractedManifest) -> None:
        processor, _extractor, manifest_repo, registry, durable = _make_processor(manifest)
        items = _items(tmp_path, ["a.pdf"])
        registry.create("job-1", 1, store_in_db=False)

        processor.run("job-1", items, store_in_db=False)

        manifest_repo.store_manifest.assert_not_called()
        durable.record_item_outcome.assert_not_called()
        job = registry.get("job-1")
        assert job is not None
        assert "database_id" not in job.results[0]

    def test_deleted_job_keeps_processing(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, _extractor, manifest_repo, registry, durable = _make_processor(manifest)
        items = _items(tmp_path, ["a.pdf", "b.pdf"])
        registry.create("job-1", 2)
        registry.delete("job-1")

        status = processor.run("job-1", items, store_in_db=True)

        assert status is JobStatus.COMPLETED
        assert manifest_repo.store_manifest.call_count == 2
        durable.finalize.assert_called_once()


class TestSubmit:
    def test_empty_submission_rejected(self, manifest: ExtractedManifest) -> None:
        processor, *_ = _make_processor(manifest)
        with pytest.raises(BatchValidationError, match="No PDF files provided"):
            processor.submit([])

    def test_registers_job_and_starts_worker(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, _extractor, _repo, registry, durable = _make_processor(manifest)
        items = _items(tmp_path, ["a.pdf", "b.pdf"])

        with patch("manifest_ingest.processor.batch_processor.threading.Thread") as thread_cls:
            job_id = processor.submit(items)

        job = registry.get(job_id)
        assert job is not None
        assert job.status is JobStatus.PROCESSING
        assert job.total_files == 2
        durable.create.assert_called_once_with(job_id, 2)
        kwargs = thread_cls.call_args.kwargs
        assert kwargs["daemon"] is True
        assert kwargs["args"][0] == job_id
        assert kwargs["args"][2] is True
        thread_cls.return_value.start.assert_called_once()

    def test_store_override(self, tmp_path: Path, manifest: ExtractedManifest) -> None:
        processor, _extractor, _repo, registry, durable = _make_processor(manifest)
        items = _items(tmp_path, ["a.pdf"])

        with patch("manifest_ingest.processor.batch_processor.threading.Thread") as thread_cls:
            job_id = processor.submit(items, store_in_db=False)

        durable.create.assert_not_called()
        job = registry.get(job_id)
        assert job is not None
        assert job.store_in_db is False
        assert thread_cls.call_args.kwargs["args"][2] is False

    def test_job_ids_are_unique(self, tmp_path: Path, manifest: ExtractedManifest) -> None:
        processor, *_ = _make_processor(manifest)
        items = _items(tmp_path, ["a.pdf"])

        with patch("manifest_ingest.processor.batch_processor.threading.Thread"):
            ids = {processor.submit(items) for _ in range(5)}

        assert len(ids) == 5

    def test_background_run_completes(self, tmp_path: Path, manifest: ExtractedManifest) -> None:
        processor, _extractor, _repo, registry, _durable = _make_processor(manifest)
        items = _items(tmp_path, ["a.pdf"])

        with patch("manifest_ingest.processor.batch_processor.threading.Thread") as thread_cls:
            job_id = processor.submit(items)
        kwargs = thread_cls.call_args.kwargs
        kwargs["target"](*kwargs["args"])

        job = registry.get(job_id)
        assert job is not None
        assert job.status is JobStatus.COMPLETED

    def test_join_waits_for_durable_finalize(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, _extractor, _repo, _registry, durable = _make_processor(manifest)
        durable.finalize.side_effect = lambda *args, **kwargs: threading.Event().wait(0.2)
        items = _items(tmp_path, ["a.pdf"])

        job_id = processor.submit(items)

        assert processor.join(job_id, timeout=5) is True
        durable.finalize.assert_called_once()
        assert not any(t.name == f"batch-{job_id[:8]}" for t in threading.enumerate())

    def test_join_unknown_job_returns_immediately(self, manifest: ExtractedManifest) -> None:
        processor, *_ = _make_processor(manifest)
        assert processor.join("nope") is True


class TestProcessSingle:
    def test_stores_and_returns_result(self, tmp_path: Path, manifest: ExtractedManifest) -> None:
        processor, _extractor, manifest_repo, _registry, durable = _make_processor(manifest)
        item = _items(tmp_path, ["a.pdf"])[0]

        result = processor.process_single(item)

        assert result["database_id"] == "m-1"
        assert result["processing_info"]["filename"] == "a.pdf"
        manifest_repo.store_manifest.assert_called_once()
        durable.link_manifest.assert_not_called()

    def test_skips_storage_when_disabled(self, tmp_path: Path, manifest: ExtractedManifest) -> None:
        processor, _extractor, manifest_repo, _registry, _durable = _make_processor(
            manifest, store_in_db=False
        )
        item = _items(tmp_path, ["a.pdf"])[0]

        result = processor.process_single(item)

        assert "database_id" not in result
        manifest_repo.store_manifest.assert_not_called()

    def test_unavailable_database_is_annotated(
        self, tmp_path: Path, manifest: ExtractedManifest
    ) -> None:
        processor, _extractor, manifest_repo, _registry, _durable = _make_processor(manifest)
        manifest_repo.store_manifest.side_effect = DatabaseUnavailableError("pool is closed")
        item = _items(tmp_path, ["a.pdf"])[0]

        result = processor.process_single(item)

        assert "pool is closed" in result["database_error"]

    def test_extraction_error_propagates(self, tmp_path: Path, manifest: ExtractedManifest) -> None:
        processor, extractor, _repo, _registry, _durable = _make_processor(manifest)
        extractor.extract.side_effect = ExtractionError("no text")
        item = _items(tmp_path, ["a.pdf"])[0]

        with pytest.raises(ExtractionError):
            processor.process_single(item)

    def test_oversized_item_rejected(self, tmp_path: Path, manifest: ExtractedManifest) -> None:
        processor, *_ = _make_processor(manifest, max_size_bytes=4)
        item = _items(tmp_path, ["a.pdf"])[0]

        with pytest.raises(ItemTooLargeError):
            processor.process_single(item)
