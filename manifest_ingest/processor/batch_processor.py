import threading
import uuid
from collections.abc import Sequence
from typing import Any

from manifest_ingest.database.exceptions import DatabaseUnavailableError, StorageError
from manifest_ingest.database.repositories.manifest_repository import ManifestRepository
from manifest_ingest.extraction.base import BaseManifestExtractor
from manifest_ingest.extraction.models import ExtractedManifest, ProcessingInfo
from manifest_ingest.jobs.models import (
    ItemError,
    ItemOutcome,
    JobStatus,
    JobSummary,
    utc_now_iso,
)
from manifest_ingest.jobs.registry import JobRegistry
from manifest_ingest.logging.logger import Log
from manifest_ingest.processor.exceptions import BatchValidationError, FatalBatchError
from manifest_ingest.processor.file_loader import FileLoader
from manifest_ingest.processor.models import BatchItem


class BatchProcessor:
    """Extracts and stores documents, one batch per background thread.

    Items of a batch run strictly one after another in submission order:
    extract, persist, link, record progress. A failing item is recorded and
    the batch moves on; only an error outside that isolation fails the job.
    """

    def __init__(
        self,
        *,
        extractor: BaseManifestExtractor,
        manifest_repo: ManifestRepository | None,
        registry: JobRegistry,
        file_loader: FileLoader,
        store_in_db: bool = True,
    ) -> None:
        self._extractor = extractor
        self._manifest_repo = manifest_repo
        self._registry = registry
        self._file_loader = file_loader
        self._store_in_db = store_in_db
        self._workers: dict[str, threading.Thread] = {}
        self._workers_lock = threading.Lock()

    def submit(self, items: Sequence[BatchItem], *, store_in_db: bool | None = None) -> str:
        """Register a job for the items and start processing it in the background.

        Returns as soon as the job exists; poll the registry for progress.

        Raises:
            BatchValidationError: if no items were supplied.
        """
        if not items:
            raise BatchValidationError("No PDF files provided")
        store = self._resolve_store(store_in_db)
        batch = list(items)
        job_id = str(uuid.uuid4())

        self._registry.create(job_id, len(batch), store_in_db=store)
        worker = threading.Thread(
            target=self._run_detached,
            args=(job_id, batch, store),
            name=f"batch-{job_id[:8]}",
            daemon=True,
        )
        with self._workers_lock:
            self._workers[job_id] = worker
        worker.start()
        Log.info(f"Batch job {job_id} started for {len(batch)} files (store_in_db={store})")
        return job_id

    def join(self, job_id: str, timeout: float | None = None) -> bool:
        """Wait for the background thread of a submitted job to exit.

        Returns False if it is still running when the timeout expires.
        """
        with self._workers_lock:
            worker = self._workers.get(job_id)
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def run(self, job_id: str, items: Sequence[BatchItem], store_in_db: bool) -> JobStatus:
        """Process every item of an already registered job and finalize it."""
        successful = 0
        failed = 0
        results: list[dict[str, Any]] = []
        errors: list[ItemError] = []
        position = 0

        try:
            for position, item in enumerate(items, start=1):
                outcome = self._process_item(job_id, item, position, store_in_db)
                if outcome.error is not None:
                    errors.append(outcome.error)
                    failed += 1
                else:
                    results.append(outcome.result or {})
                    successful += 1
                self._registry.record_item_outcome(job_id, outcome, store_in_db=store_in_db)
        except Exception as exc:
            fatal = exc if isinstance(exc, FatalBatchError) else FatalBatchError(str(exc))
            Log.exception(f"Batch job {job_id} failed: {fatal}")
            for remaining in items[position:]:
                self._file_loader.release(remaining)
            self._registry.finalize(
                job_id,
                JobStatus.FAILED,
                JobSummary(
                    successful_files=successful,
                    failed_files=failed,
                    results=results,
                    errors=errors,
                    error_message=str(fatal),
                ),
                store_in_db=store_in_db,
            )
            return JobStatus.FAILED

        self._registry.finalize(
            job_id,
            JobStatus.COMPLETED,
            JobSummary(
                successful_files=successful,
                failed_files=failed,
                results=results,
                errors=errors,
            ),
            store_in_db=store_in_db,
        )
        Log.info(f"Batch job {job_id} completed: {successful} successful, {failed} failed")
        return JobStatus.COMPLETED

    def process_single(self, item: BatchItem, *, store_in_db: bool | None = None) -> dict[str, Any]:
        """Extract one document synchronously and optionally store it.

        Raises:
            ExtractionError: if the document cannot be extracted.
            ProcessorError: if the item cannot be read.
        """
        extracted, info = self._extract(item)
        result = self._build_result(extracted, info)
        if self._resolve_store(store_in_db):
            try:
                self._persist(None, extracted, info, 0, result)
            except FatalBatchError as exc:
                result["database_error"] = str(exc)
        return result

    def _run_detached(self, job_id: str, items: list[BatchItem], store_in_db: bool) -> None:
        try:
            self.run(job_id, items, store_in_db)
        except Exception as exc:
            Log.exception(f"Batch job {job_id} could not be finalized: {exc}")
        finally:
            with self._workers_lock:
                self._workers.pop(job_id, None)

    def _process_item(
        self,
        job_id: str,
        item: BatchItem,
        order: int,
        store_in_db: bool,
    ) -> ItemOutcome:
        try:
            extracted, info = self._extract(item)
        except Exception as exc:
            Log.error(f"Error processing {item.filename}: {exc}")
            return ItemOutcome(
                filename=item.filename,
                error=ItemError(filename=item.filename, error=str(exc)),
            )

        result = self._build_result(extracted, info)
        if store_in_db:
            self._persist(job_id, extracted, info, order, result)
        return ItemOutcome(filename=item.filename, result=result)

    def _extract(self, item: BatchItem) -> tuple[ExtractedManifest, ProcessingInfo]:
        with self._file_loader.open(item) as pdf_bytes:
            extracted = self._extractor.extract(pdf_bytes)
        info = ProcessingInfo(
            filename=item.filename,
            file_size_bytes=item.size_bytes,
            processed_at=utc_now_iso(),
            delivery_count=extracted.delivery_count,
        )
        return extracted, info

    @staticmethod
    def _build_result(extracted: ExtractedManifest, info: ProcessingInfo) -> dict[str, Any]:
        result = dict(extracted.raw)
        result["processing_info"] = info.to_dict()
        return result

    def _persist(
        self,
        job_id: str | None,
        extracted: ExtractedManifest,
        info: ProcessingInfo,
        order: int,
        result: dict[str, Any],
    ) -> None:
        """Store the manifest, annotating result with database_id or database_error.

        Raises:
            FatalBatchError: if the database itself is gone.
        """
        if self._manifest_repo is None:
            result["database_error"] = "No manifest store configured"
            return
        try:
            manifest_id = self._manifest_repo.store_manifest(extracted, info)
        except StorageError as exc:
            Log.error(f"Failed to store manifest from {info.filename}: {exc}")
            result["database_error"] = str(exc)
            return
        except DatabaseUnavailableError as exc:
            raise FatalBatchError(str(exc)) from exc

        result["database_id"] = manifest_id
        if job_id is not None:
            self._registry.link_manifest(job_id, manifest_id, order)

    def _resolve_store(self, store_in_db: bool | None) -> bool:
        return self._store_in_db if store_in_db is None else store_in_db
