"""Lenient conversion of extracted field values into column values.

Nothing here raises: a malformed value degrades to NULL (dates, times) or 0
(numbers) so an otherwise valid delivery is still stored.
"""

import math
import re
from datetime import date, datetime

from manifest_ingest.logging.logger import Log

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

# Column bounds: deliveries.est_weight_kg NUMERIC(12, 3), deliveries.total_cases INTEGER.
WEIGHT_LIMIT_KG = 1_000_000_000
MAX_CASES = 2_147_483_647


def parse_planned_date(raw: str | None) -> date | None:
    """Parse a DD/MM/YYYY string; None when missing or unparsable."""
    if not raw:
        return None
    try:
        return datetime.strptime(raw.strip(), "%d/%m/%Y").date()
    except (ValueError, AttributeError):
        Log.warning(f"Could not parse planned delivery date: {raw!r}")
        return None


def normalize_time(raw: str | None) -> str | None:
    """Return HH:MM:SS for an HH:MM or HH:MM:SS string, else None."""
    if not raw:
        return None
    match = _TIME_RE.match(str(raw).strip())
    if match is None:
        Log.warning(f"Could not parse time value: {raw!r}")
        return None
    hours, minutes, seconds = match.group(1), match.group(2), match.group(3) or "00"
    if int(hours) > 23 or int(minutes) > 59 or int(seconds) > 59:
        Log.warning(f"Time value out of range: {raw!r}")
        return None
    return f"{int(hours):02d}:{minutes}:{seconds}"


def _to_finite_float(raw: object) -> float | None:
    try:
        value = float(str(raw).strip()) if isinstance(raw, str) else float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def coerce_weight(raw: object) -> float:
    """Weight in kg, or 0.0 when malformed or too large for the column."""
    if raw is None or isinstance(raw, bool):
        return 0.0
    value = _to_finite_float(raw)
    if value is None:
        return 0.0
    if abs(round(value, 3)) >= WEIGHT_LIMIT_KG:
        Log.warning(f"Weight out of range, storing 0: {raw!r}")
        return 0.0
    return value


def coerce_cases(raw: object) -> int:
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        cases = raw
    else:
        value = _to_finite_float(raw)
        if value is None:
            return 0
        cases = int(value)
    if abs(cases) > MAX_CASES:
        Log.warning(f"Case count out of range, storing 0: {raw!r}")
        return 0
    return cases
