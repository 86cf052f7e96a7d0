"""Offline extraction client.

Returns a fixed two-stop manifest without any network call. Used for local
development and tests, and as the template for new provider adapters.
"""

import json
from typing import ClassVar

from manifest_ingest.extraction.client_base import BaseExtractionClient


class ExampleClientAdapter(BaseExtractionClient):
    """Adapter that always answers with DEFAULT_RESPONSE."""

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {
        "manifest_id": "EXAMPLE-0001",
        "planned_delivery_date": "01/01/2025",
        "vehicle_driver": "Example Driver",
        "report_time_loading": "06:30",
        "collection_depot": {"name": "Example Depot", "postcode": "EX1 1AA"},
        "deliveries": [
            {
                "contact_name": "First Contact",
                "address": "1 Example Street, Exampleton",
                "postcode": "EX2 2BB",
                "booking_ref": "BK0001",
                "arc_number": "ARC0001",
                "contact_phone": None,
                "est_weight_kg": "120.5",
                "total_cases": "10",
                "time_window": {"start": "08:00", "end": "10:00"},
                "delivery_instructions": "",
                "delivery_type": "standard",
            },
            {
                "contact_name": "Second Contact",
                "address": "2 Example Road, Exampleton",
                "postcode": "EX3 3CC",
                "booking_ref": "BK0002",
                "arc_number": "ARC0002",
                "contact_phone": "01234 567890",
                "est_weight_kg": "80",
                "total_cases": "6",
                "time_window": {"start": "10:30", "end": "12:00"},
                "delivery_instructions": "Use rear entrance",
                "delivery_type": "standard",
            },
        ],
    }

    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, object],
    ) -> str:
        _ = model, temperature, system_prompt, user_prompt, json_schema
        return json.dumps(self.DEFAULT_RESPONSE)
