import io
from typing import Any

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas


def _pdf(lines_per_page: list[list[str]]) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    for lines in lines_per_page:
        y = 800
        for line in lines:
            c.drawString(50, y, line)
            y -= 16
        c.showPage()
    c.save()
    return buf.getvalue()


@pytest.fixture()
def manifest_pdf_bytes() -> bytes:
    """A one-page manifest with a header and two stops."""
    return _pdf([
        [
            "Manifest: MAN-1001",
            "Planned Delivery Date: 15/03/2025",
            "Driver: Jane Smith",
            "Report Time Loading: 06:30",
            "Collection Depot: Park Royal DC  NW10 7XX",
            "1  Acme Ltd  1 High St, London  SW1A 1AA  BK1  ARC1  120.5kg  10 cases",
            "2  Beta plc  2 Low Rd, London  SW1B 2BB  BK2  ARC2  80kg  6 cases",
        ]
    ])


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    return _pdf([["Page one content"], ["Page two content"]])


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """A valid PDF with a blank page."""
    return _pdf([[]])


@pytest.fixture()
def manifest_payload() -> dict[str, Any]:
    return {
        "manifest_id": "MAN-1001",
        "planned_delivery_date": "15/03/2025",
        "vehicle_driver": "Jane Smith",
        "report_time_loading": "06:30",
        "collection_depot": {"name": "Park Royal DC", "postcode": "NW10 7XX"},
        "deliveries": [
            {
                "contact_name": "Acme Ltd",
                "address": "1 High St, London",
                "postcode": "SW1A 1AA",
                "booking_ref": "BK1",
                "arc_number": "ARC1",
                "contact_phone": "020 7946 0000",
                "est_weight_kg": "120.5",
                "total_cases": "10",
                "time_window": {"start": "08:00", "end": "10:00"},
                "delivery_instructions": "Ring bell",
                "delivery_type": "standard",
            },
            {
                "contact_name": "Beta plc",
                "address": "2 Low Rd, London",
                "postcode": "SW1B 2BB",
                "booking_ref": "BK2",
                "arc_number": "ARC2",
                "contact_phone": None,
                "est_weight_kg": "n/a",
                "total_cases": "",
                "time_window": {"start": "10:30", "end": None},
                "delivery_instructions": "",
                "delivery_type": "timed",
            },
        ],
    }
