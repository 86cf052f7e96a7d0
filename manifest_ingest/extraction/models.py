from dataclasses import dataclass, field
from typing import Any

# Numeric fields arrive exactly as the extractor produced them; coercion is a storage concern.
RawNumber = float | int | str | None


@dataclass(frozen=True)
class CollectionDepot:
    name: str = ""
    postcode: str = ""


@dataclass(frozen=True)
class TimeWindow:
    start: str | None = None
    end: str | None = None


@dataclass(frozen=True)
class ExtractedDelivery:
    """One stop as produced by the extractor, before any coercion."""

    contact_name: str = ""
    address: str = ""
    postcode: str = ""
    booking_ref: str = ""
    arc_number: str = ""
    contact_phone: str | None = None
    est_weight_kg: RawNumber = None
    total_cases: RawNumber = None
    time_window: TimeWindow = field(default_factory=TimeWindow)
    delivery_instructions: str = ""
    delivery_type: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractedManifest:
    """Header data plus deliveries for one document.

    `raw` is the full payload exactly as the extractor returned it and is
    persisted verbatim.
    """

    manifest_id: str = ""
    planned_delivery_date: str | None = None
    vehicle_driver: str = ""
    report_time_loading: str | None = None
    collection_depot: CollectionDepot = field(default_factory=CollectionDepot)
    deliveries: list[ExtractedDelivery] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def delivery_count(self) -> int:
        return len(self.deliveries)


@dataclass(frozen=True)
class ProcessingInfo:
    """Metadata attached to an extraction once it has been produced."""

    filename: str
    file_size_bytes: int
    processed_at: str
    delivery_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "file_size_bytes": self.file_size_bytes,
            "processed_at": self.processed_at,
            "delivery_count": self.delivery_count,
        }
