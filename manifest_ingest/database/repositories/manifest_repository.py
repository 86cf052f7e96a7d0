import uuid
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from manifest_ingest.database.connection import Database
from manifest_ingest.database.exceptions import StorageError
from manifest_ingest.database.models import (
    DeliveryFilters,
    DeliveryRecord,
    DeliveryWithManifest,
    ManifestFilters,
    ManifestRecord,
    ManifestSummary,
    StoreStatistics,
)
from manifest_ingest.database.parsing import (
    coerce_cases,
    coerce_weight,
    normalize_time,
    parse_planned_date,
)
from manifest_ingest.extraction.models import ExtractedDelivery, ExtractedManifest, ProcessingInfo
from manifest_ingest.logging.logger import Log

DEFAULT_LIMIT = 100
AREA_POSTCODE_MAX_LENGTH = 4

_MANIFEST_COLUMNS = """
    id, manifest_id, planned_delivery_date, vehicle_driver, report_time_loading,
    collection_depot_name, collection_depot_postcode, original_filename,
    file_size_bytes, delivery_count, raw_manifest_data, created_at, processed_at
"""

_DELIVERY_COLUMNS = """
    id, manifest_id, contact_name, address, postcode, booking_ref, arc_number,
    contact_phone, est_weight_kg, total_cases, time_window_start, time_window_end,
    delivery_instructions, delivery_type, delivery_order, raw_delivery_data
"""


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ManifestRepository:
    """Database operations for manifests and their deliveries."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def store_manifest(self, extracted: ExtractedManifest, info: ProcessingInfo) -> str:
        """Insert a manifest and all of its deliveries in one transaction.

        Returns:
            The generated manifest id.

        Raises:
            StorageError: if any insert fails; nothing is committed.
        """
        depot = extracted.collection_depot
        with self._db.connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO manifests (
                            manifest_id, planned_delivery_date, vehicle_driver,
                            report_time_loading, collection_depot_name,
                            collection_depot_postcode, original_filename,
                            file_size_bytes, delivery_count, raw_manifest_data,
                            processed_at
                        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            extracted.manifest_id or "",
                            parse_planned_date(extracted.planned_delivery_date),
                            extracted.vehicle_driver or "",
                            normalize_time(extracted.report_time_loading),
                            depot.name or "",
                            depot.postcode or "",
                            info.filename or "",
                            info.file_size_bytes or 0,
                            extracted.delivery_count,
                            Jsonb(extracted.raw),
                            info.processed_at,
                        ),
                    )
                    row = cur.fetchone()
                    if row is None:
                        raise StorageError("Manifest insert returned no id")
                    manifest_id = str(row[0])

                    for order, delivery in enumerate(extracted.deliveries, start=1):
                        self._insert_delivery(cur, manifest_id, delivery, order)
                conn.commit()
            except Exception as exc:
                conn.rollback()
                Log.error(f"Error storing manifest {extracted.manifest_id!r}: {exc}")
                if isinstance(exc, StorageError):
                    raise
                raise StorageError(f"Failed to store manifest: {exc}") from exc

        Log.info(
            f"Stored manifest {extracted.manifest_id!r} as {manifest_id} "
            f"with {extracted.delivery_count} deliveries"
        )
        return manifest_id

    @staticmethod
    def _insert_delivery(
        cur: psycopg.Cursor[Any],
        manifest_id: str,
        delivery: ExtractedDelivery,
        order: int,
    ) -> None:
        cur.execute(
            """
            INSERT INTO deliveries (
                manifest_id, contact_name, address, postcode, booking_ref,
                arc_number, contact_phone, est_weight_kg, total_cases,
                time_window_start, time_window_end, delivery_instructions,
                delivery_type, delivery_order, raw_delivery_data
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                manifest_id,
                delivery.contact_name or "",
                delivery.address or "",
                delivery.postcode or "",
                delivery.booking_ref or "",
                delivery.arc_number or "",
                delivery.contact_phone or None,
                coerce_weight(delivery.est_weight_kg),
                coerce_cases(delivery.total_cases),
                normalize_time(delivery.time_window.start),
                normalize_time(delivery.time_window.end),
                delivery.delivery_instructions or "",
                delivery.delivery_type or "",
                order,
                Jsonb(delivery.raw),
            ),
        )

    def find_by_id(self, manifest_id: str) -> ManifestRecord | None:
        """Fetch a manifest and its deliveries by surrogate id. None when absent."""
        try:
            parsed = uuid.UUID(manifest_id)
        except ValueError:
            return None
        # uuid.UUID accepts spellings PostgreSQL rejects; bind the canonical form.
        return self._find_one(
            f"SELECT {_MANIFEST_COLUMNS} FROM manifests WHERE id = %s",
            (str(parsed),),
        )

    def find_by_ref(self, manifest_ref: str) -> ManifestRecord | None:
        """Fetch the most recently created manifest carrying this reference."""
        return self._find_one(
            f"""
            SELECT {_MANIFEST_COLUMNS} FROM manifests
            WHERE manifest_id = %s
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (manifest_ref,),
        )

    def _find_one(self, sql: str, params: tuple[Any, ...]) -> ManifestRecord | None:
        try:
            with self._db.connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(sql, params)
                    row = cur.fetchone()
                    if row is None:
                        return None
                    cur.execute(
                        f"""
                        SELECT {_DELIVERY_COLUMNS} FROM deliveries
                        WHERE manifest_id = %s
                        ORDER BY delivery_order
                        """,
                        (row["id"],),
                    )
                    delivery_rows = cur.fetchall()
        except psycopg.Error as exc:
            raise StorageError(f"Failed to read manifest: {exc}") from exc

        manifest = _manifest_from_row(row)
        manifest.deliveries = [_delivery_from_row(r) for r in delivery_rows]
        return manifest

    def search_manifests(
        self,
        filters: ManifestFilters,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> list[ManifestSummary]:
        """Search manifest summaries, newest planned date first."""
        conditions: list[str] = []
        params: list[Any] = []
        if filters.date_from is not None:
            conditions.append("planned_delivery_date >= %s")
            params.append(filters.date_from)
        if filters.date_to is not None:
            conditions.append("planned_delivery_date <= %s")
            params.append(filters.date_to)
        if filters.driver:
            conditions.append("vehicle_driver ILIKE %s")
            params.append(f"%{_escape_like(filters.driver)}%")
        if filters.depot_postcode:
            conditions.append("collection_depot_postcode = %s")
            params.append(filters.depot_postcode)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"""
            SELECT id, manifest_id, planned_delivery_date, vehicle_driver,
                   report_time_loading, collection_depot_name,
                   collection_depot_postcode, original_filename, file_size_bytes,
                   delivery_count, total_weight_kg, total_cases, created_at,
                   processed_at
            FROM manifest_summary
            {where}
            ORDER BY planned_delivery_date DESC NULLS LAST, created_at DESC
            LIMIT %s OFFSET %s
        """
        rows = self._fetch_all(sql, (*params, limit, offset))
        return [
            ManifestSummary(
                id=str(r["id"]),
                manifest_id=r["manifest_id"],
                planned_delivery_date=r["planned_delivery_date"],
                vehicle_driver=r["vehicle_driver"],
                report_time_loading=r["report_time_loading"],
                collection_depot_name=r["collection_depot_name"],
                collection_depot_postcode=r["collection_depot_postcode"],
                original_filename=r["original_filename"],
                file_size_bytes=r["file_size_bytes"],
                delivery_count=r["delivery_count"],
                total_weight_kg=r["total_weight_kg"],
                total_cases=int(r["total_cases"]),
                created_at=r["created_at"],
                processed_at=r["processed_at"],
            )
            for r in rows
        ]

    def search_deliveries(
        self,
        filters: DeliveryFilters,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> list[DeliveryWithManifest]:
        """Search deliveries joined with their manifest context.

        A postcode of four characters or fewer is an area prefix ("SW1"
        matches "SW1A 1AA"); anything longer must match exactly.
        """
        conditions: list[str] = []
        params: list[Any] = []
        if filters.postcode:
            if len(filters.postcode) <= AREA_POSTCODE_MAX_LENGTH:
                conditions.append("postcode LIKE %s")
                params.append(f"{_escape_like(filters.postcode)}%")
            else:
                conditions.append("postcode = %s")
                params.append(filters.postcode)
        if filters.contact_name:
            conditions.append("contact_name ILIKE %s")
            params.append(f"%{_escape_like(filters.contact_name)}%")
        if filters.booking_ref:
            conditions.append("booking_ref = %s")
            params.append(filters.booking_ref)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"""
            SELECT id, manifest_uuid, manifest_ref, contact_name, address, postcode,
                   booking_ref, arc_number, contact_phone, est_weight_kg, total_cases,
                   time_window_start, time_window_end, delivery_instructions,
                   delivery_type, delivery_order, planned_delivery_date,
                   vehicle_driver, collection_depot_name, collection_depot_postcode,
                   manifest_created_at
            FROM deliveries_with_manifest
            {where}
            ORDER BY planned_delivery_date DESC NULLS LAST,
                     manifest_created_at DESC,
                     delivery_order
            LIMIT %s OFFSET %s
        """
        rows = self._fetch_all(sql, (*params, limit, offset))
        return [
            DeliveryWithManifest(
                id=str(r["id"]),
                manifest_uuid=str(r["manifest_uuid"]),
                manifest_ref=r["manifest_ref"],
                contact_name=r["contact_name"],
                address=r["address"],
                postcode=r["postcode"],
                booking_ref=r["booking_ref"],
                arc_number=r["arc_number"],
                delivery_order=r["delivery_order"],
                planned_delivery_date=r["planned_delivery_date"],
                vehicle_driver=r["vehicle_driver"],
                collection_depot_name=r["collection_depot_name"],
                collection_depot_postcode=r["collection_depot_postcode"],
                contact_phone=r["contact_phone"],
                est_weight_kg=r["est_weight_kg"],
                total_cases=r["total_cases"],
                time_window_start=r["time_window_start"],
                time_window_end=r["time_window_end"],
                delivery_instructions=r["delivery_instructions"],
                delivery_type=r["delivery_type"],
                manifest_created_at=r["manifest_created_at"],
            )
            for r in rows
        ]

    def get_statistics(self) -> StoreStatistics:
        """Aggregate counts over manifests and batch jobs."""
        try:
            with self._db.connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(
                        """
                        SELECT
                            COUNT(*) AS total_manifests,
                            COUNT(DISTINCT planned_delivery_date) AS unique_dates,
                            COUNT(DISTINCT vehicle_driver) AS unique_drivers,
                            COALESCE(SUM(delivery_count), 0) AS total_deliveries,
                            COALESCE(AVG(delivery_count), 0) AS avg_deliveries_per_manifest
                        FROM manifests
                        WHERE planned_delivery_date IS NOT NULL
                        """
                    )
                    manifest_row = cur.fetchone()
                    cur.execute(
                        """
                        SELECT
                            COUNT(*) AS recent_manifests,
                            MAX(processed_at) AS last_processed
                        FROM manifests
                        WHERE processed_at > NOW() - INTERVAL '24 hours'
                        """
                    )
                    recent_row = cur.fetchone()
                    cur.execute(
                        """
                        SELECT
                            COUNT(*) AS total_batch_jobs,
                            COUNT(*) FILTER (WHERE status = 'completed') AS completed_jobs,
                            COUNT(*) FILTER (WHERE status = 'failed') AS failed_jobs,
                            COUNT(*) FILTER (WHERE status = 'processing') AS processing_jobs
                        FROM batch_jobs
                        """
                    )
                    batch_row = cur.fetchone()
        except psycopg.Error as exc:
            raise StorageError(f"Failed to read statistics: {exc}") from exc

        manifest_row = manifest_row or {}
        recent_row = recent_row or {}
        batch_row = batch_row or {}
        return StoreStatistics(
            total_manifests=int(manifest_row.get("total_manifests") or 0),
            unique_dates=int(manifest_row.get("unique_dates") or 0),
            unique_drivers=int(manifest_row.get("unique_drivers") or 0),
            total_deliveries=int(manifest_row.get("total_deliveries") or 0),
            avg_deliveries_per_manifest=float(
                manifest_row.get("avg_deliveries_per_manifest") or 0
            ),
            recent_manifests=int(recent_row.get("recent_manifests") or 0),
            last_processed=recent_row.get("last_processed"),
            total_batch_jobs=int(batch_row.get("total_batch_jobs") or 0),
            completed_jobs=int(batch_row.get("completed_jobs") or 0),
            failed_jobs=int(batch_row.get("failed_jobs") or 0),
            processing_jobs=int(batch_row.get("processing_jobs") or 0),
        )

    def _fetch_all(self, sql: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        try:
            with self._db.connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(sql, params)
                    return cur.fetchall()
        except psycopg.Error as exc:
            raise StorageError(f"Search failed: {exc}") from exc


def _manifest_from_row(row: dict[str, Any]) -> ManifestRecord:
    return ManifestRecord(
        id=str(row["id"]),
        manifest_id=row["manifest_id"],
        planned_delivery_date=row["planned_delivery_date"],
        vehicle_driver=row["vehicle_driver"],
        report_time_loading=row["report_time_loading"],
        collection_depot_name=row["collection_depot_name"],
        collection_depot_postcode=row["collection_depot_postcode"],
        original_filename=row["original_filename"],
        file_size_bytes=row["file_size_bytes"],
        delivery_count=row["delivery_count"],
        raw_manifest_data=row["raw_manifest_data"] or {},
        created_at=row["created_at"],
        processed_at=row["processed_at"],
    )


def _delivery_from_row(row: dict[str, Any]) -> DeliveryRecord:
    return DeliveryRecord(
        id=str(row["id"]),
        manifest_id=str(row["manifest_id"]),
        contact_name=row["contact_name"],
        address=row["address"],
        postcode=row["postcode"],
        booking_ref=row["booking_ref"],
        arc_number=row["arc_number"],
        delivery_order=row["delivery_order"],
        contact_phone=row["contact_phone"],
        est_weight_kg=row["est_weight_kg"],
        total_cases=row["total_cases"],
        time_window_start=row["time_window_start"],
        time_window_end=row["time_window_end"],
        delivery_instructions=row["delivery_instructions"],
        delivery_type=row["delivery_type"],
        raw_delivery_data=row["raw_delivery_data"] or {},
    )
