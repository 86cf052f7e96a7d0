import argparse
import json
import sys
import time
from collections.abc import Sequence
from dataclasses import asdict, dataclass, is_dataclass
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from pathlib import Path
from typing import Any

from manifest_ingest.config.settings import Settings
from manifest_ingest.database.connection import Database
from manifest_ingest.database.models import DeliveryFilters, ManifestFilters
from manifest_ingest.database.repositories.batch_job_repository import BatchJobRepository
from manifest_ingest.database.repositories.manifest_repository import ManifestRepository
from manifest_ingest.extraction.factory import ExtractorFactory
from manifest_ingest.jobs.durable_registry import DurableJobRegistry
from manifest_ingest.jobs.memory_registry import InMemoryJobRegistry
from manifest_ingest.jobs.registry import JobRegistry
from manifest_ingest.logging.logger import Log
from manifest_ingest.processor.batch_processor import BatchProcessor
from manifest_ingest.processor.file_loader import FileLoader
from manifest_ingest.processor.models import BatchItem
from manifest_ingest.query.facade import ManifestQueryService, statistics_to_dict


@dataclass(frozen=True)
class Services:
    processor: BatchProcessor
    queries: ManifestQueryService
    file_loader: FileLoader


def build_services(settings: Settings, db: Database) -> Services:
    """Wire repositories, registries, extractor and processor around one pool."""
    manifest_repo = ManifestRepository(db)
    registry = JobRegistry(
        InMemoryJobRegistry(),
        DurableJobRegistry(BatchJobRepository(db)),
    )
    file_loader = FileLoader(max_size_bytes=settings.max_upload_size_bytes)
    processor = BatchProcessor(
        extractor=ExtractorFactory.create(settings),
        manifest_repo=manifest_repo,
        registry=registry,
        file_loader=file_loader,
        store_in_db=settings.store_in_db,
    )
    return Services(
        processor=processor,
        queries=ManifestQueryService(manifest_repo, registry),
        file_loader=file_loader,
    )


def _json_default(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def _print(payload: Any) -> None:
    print(json.dumps(payload, default=_json_default, indent=2))


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {raw!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="manifest-ingest",
        description="Extract delivery manifests from PDFs and store them.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables and views")

    batch = sub.add_parser("batch", help="process several PDFs as one batch job")
    batch.add_argument("files", nargs="+", type=Path)
    batch.add_argument("--no-store", action="store_true", help="do not persist results")

    single = sub.add_parser("single", help="process one PDF synchronously")
    single.add_argument("file", type=Path)
    single.add_argument("--no-store", action="store_true", help="do not persist the result")

    show = sub.add_parser("show", help="show a manifest by id or manifest reference")
    show.add_argument("identifier")

    manifests = sub.add_parser("search-manifests", help="search stored manifests")
    manifests.add_argument("--date-from", type=_parse_date)
    manifests.add_argument("--date-to", type=_parse_date)
    manifests.add_argument("--driver")
    manifests.add_argument("--depot-postcode")
    manifests.add_argument("--limit", type=int, default=100)
    manifests.add_argument("--offset", type=int, default=0)

    deliveries = sub.add_parser("search-deliveries", help="search stored deliveries")
    deliveries.add_argument("--postcode")
    deliveries.add_argument("--contact-name")
    deliveries.add_argument("--booking-ref")
    deliveries.add_argument("--limit", type=int, default=100)
    deliveries.add_argument("--offset", type=int, default=0)

    sub.add_parser("stats", help="show store and job statistics")

    validate = sub.add_parser("validate", help="check that a file looks like a PDF")
    validate.add_argument("file", type=Path)

    return parser


def wait_for_job(services: Services, job_id: str, poll_interval: float) -> dict[str, Any]:
    while True:
        job = services.queries.get_job(job_id)
        if job is None:
            return {"job_id": job_id, "error": "Job ID not found"}
        if job.status.is_terminal:
            return job.to_dict()
        Log.debug(f"Job {job_id}: {job.processed_files}/{job.total_files} processed")
        time.sleep(poll_interval)


def run_command(args: argparse.Namespace, settings: Settings, services: Services, db: Database) -> int:
    if args.command == "init-db":
        db.apply_schema()
        _print({"schema": "applied"})
    elif args.command == "batch":
        items = [BatchItem.from_path(path) for path in args.files]
        job_id = services.processor.submit(items, store_in_db=not args.no_store)
        job = wait_for_job(services, job_id, settings.batch_poll_interval_seconds)
        # The worker still writes the durable terminal row; the pool closes after this.
        services.processor.join(job_id)
        _print(job)
    elif args.command == "single":
        item = BatchItem.from_path(args.file)
        _print(services.processor.process_single(item, store_in_db=not args.no_store))
    elif args.command == "show":
        manifest = services.queries.resolve(args.identifier)
        if manifest is None:
            _print({"error": "Manifest not found"})
            return 1
        _print(manifest)
    elif args.command == "search-manifests":
        filters = ManifestFilters(
            date_from=args.date_from,
            date_to=args.date_to,
            driver=args.driver,
            depot_postcode=args.depot_postcode,
        )
        results = services.queries.search_manifests(filters, args.limit, args.offset)
        _print({"manifests": results, "total_returned": len(results)})
    elif args.command == "search-deliveries":
        filters = DeliveryFilters(
            postcode=args.postcode,
            contact_name=args.contact_name,
            booking_ref=args.booking_ref,
        )
        results = services.queries.search_deliveries(filters, args.limit, args.offset)
        _print({"deliveries": results, "total_returned": len(results)})
    elif args.command == "stats":
        _print(statistics_to_dict(services.queries.get_service_statistics()))
    elif args.command == "validate":
        validation = services.file_loader.validate_pdf(BatchItem.from_path(args.file))
        _print(validation.to_dict())
        return 0 if validation.valid else 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point: settings -> pool -> services -> command."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)
    db = Database.open(settings)
    try:
        services = build_services(settings, db)
        return run_command(args, settings, services, db)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
