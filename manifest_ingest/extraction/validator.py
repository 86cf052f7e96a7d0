"""Structural checks on extractor output before it becomes an ExtractedManifest.

Only shape is enforced here. Field values are carried through untouched so that
the storage layer can apply its own lenient parsing.
"""

from typing import Any

from manifest_ingest.extraction.exceptions import ExtractionValidationError
from manifest_ingest.extraction.models import (
    CollectionDepot,
    ExtractedDelivery,
    ExtractedManifest,
    TimeWindow,
)


def validate_and_build(data: dict[str, Any]) -> ExtractedManifest:
    """Build an ExtractedManifest from parsed JSON.

    Raises:
        ExtractionValidationError: if the payload is not shaped like a manifest.
    """
    if not isinstance(data, dict):
        raise ExtractionValidationError("Manifest payload must be an object")
    deliveries_raw = data.get("deliveries", [])
    if deliveries_raw is None:
        deliveries_raw = []
    if not isinstance(deliveries_raw, list):
        raise ExtractionValidationError("'deliveries' must be a list")

    return ExtractedManifest(
        manifest_id=_text(data.get("manifest_id")),
        planned_delivery_date=_optional_text(data.get("planned_delivery_date")),
        vehicle_driver=_text(data.get("vehicle_driver")),
        report_time_loading=_optional_text(data.get("report_time_loading")),
        collection_depot=_build_depot(data.get("collection_depot")),
        deliveries=[_build_delivery(item, i) for i, item in enumerate(deliveries_raw)],
        raw=data,
    )


def _build_depot(raw: Any) -> CollectionDepot:
    if raw is None:
        return CollectionDepot()
    if not isinstance(raw, dict):
        raise ExtractionValidationError("'collection_depot' must be an object or null")
    return CollectionDepot(name=_text(raw.get("name")), postcode=_text(raw.get("postcode")))


def _build_delivery(raw: Any, index: int) -> ExtractedDelivery:
    if not isinstance(raw, dict):
        raise ExtractionValidationError(f"Delivery at index {index} must be an object")
    window = raw.get("time_window")
    if window is not None and not isinstance(window, dict):
        raise ExtractionValidationError(
            f"Delivery at index {index}: 'time_window' must be an object or null"
        )
    window = window or {}
    return ExtractedDelivery(
        contact_name=_text(raw.get("contact_name")),
        address=_text(raw.get("address")),
        postcode=_text(raw.get("postcode")),
        booking_ref=_text(raw.get("booking_ref")),
        arc_number=_text(raw.get("arc_number")),
        contact_phone=_optional_text(raw.get("contact_phone")),
        est_weight_kg=raw.get("est_weight_kg"),
        total_cases=raw.get("total_cases"),
        time_window=TimeWindow(
            start=_optional_text(window.get("start")),
            end=_optional_text(window.get("end")),
        ),
        delivery_instructions=_text(raw.get("delivery_instructions")),
        delivery_type=_text(raw.get("delivery_type")),
        raw=raw,
    )


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> str | None:
    text = _text(value)
    return text or None
