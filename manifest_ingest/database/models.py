from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any


@dataclass
class DeliveryRecord:
    """Represents a row from the deliveries table."""

    id: str
    manifest_id: str
    contact_name: str
    address: str
    postcode: str
    booking_ref: str
    arc_number: str
    delivery_order: int
    contact_phone: str | None = None
    est_weight_kg: Decimal = Decimal("0")
    total_cases: int = 0
    time_window_start: time | None = None
    time_window_end: time | None = None
    delivery_instructions: str = ""
    delivery_type: str = ""
    raw_delivery_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ManifestRecord:
    """Represents a row from the manifests table, with its deliveries when loaded."""

    id: str
    manifest_id: str
    planned_delivery_date: date | None
    vehicle_driver: str
    report_time_loading: time | None
    collection_depot_name: str
    collection_depot_postcode: str
    original_filename: str
    file_size_bytes: int
    delivery_count: int
    raw_manifest_data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    processed_at: datetime | None = None
    deliveries: list[DeliveryRecord] = field(default_factory=list)


@dataclass
class ManifestSummary:
    """Represents a row from the manifest_summary view."""

    id: str
    manifest_id: str
    planned_delivery_date: date | None
    vehicle_driver: str
    collection_depot_name: str
    collection_depot_postcode: str
    original_filename: str
    delivery_count: int
    total_weight_kg: Decimal = Decimal("0")
    total_cases: int = 0
    report_time_loading: time | None = None
    file_size_bytes: int = 0
    created_at: datetime | None = None
    processed_at: datetime | None = None


@dataclass
class DeliveryWithManifest:
    """Represents a row from the deliveries_with_manifest view."""

    id: str
    manifest_uuid: str
    manifest_ref: str
    contact_name: str
    address: str
    postcode: str
    booking_ref: str
    arc_number: str
    delivery_order: int
    planned_delivery_date: date | None = None
    vehicle_driver: str = ""
    collection_depot_name: str = ""
    collection_depot_postcode: str = ""
    contact_phone: str | None = None
    est_weight_kg: Decimal = Decimal("0")
    total_cases: int = 0
    time_window_start: time | None = None
    time_window_end: time | None = None
    delivery_instructions: str = ""
    delivery_type: str = ""
    manifest_created_at: datetime | None = None


@dataclass
class BatchJobRecord:
    """Represents a row from the batch_jobs table."""

    id: int
    job_id: str
    total_files: int
    processed_files: int
    successful_files: int
    failed_files: int
    status: str
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class ManifestFilters:
    date_from: date | None = None
    date_to: date | None = None
    driver: str | None = None
    depot_postcode: str | None = None


@dataclass(frozen=True)
class DeliveryFilters:
    postcode: str | None = None
    contact_name: str | None = None
    booking_ref: str | None = None


@dataclass
class StoreStatistics:
    """Aggregate counts over the durable store."""

    total_manifests: int = 0
    unique_dates: int = 0
    unique_drivers: int = 0
    total_deliveries: int = 0
    avg_deliveries_per_manifest: float = 0.0
    recent_manifests: int = 0
    last_processed: datetime | None = None
    total_batch_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    processing_jobs: int = 0
