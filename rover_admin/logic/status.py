"""Zeitraum und Status eines Fragebogens.

"Immer aktiv" wird als breiter Zeitraum 2000-01-01 bis 2099-12-31 gespeichert.
"""
from datetime import date, datetime
from typing import Any, Optional, Tuple

from ..errors import ValidationError

ALWAYS_ACTIVE_START = date(2000, 1, 1)
ALWAYS_ACTIVE_END = date(2099, 12, 31)

ACTIVE = "active"
SCHEDULED = "scheduled"
INACTIVE = "inactive"
STATUSES = (ACTIVE, SCHEDULED, INACTIVE)


def parse_date(value: Any, field: str = "date") -> Optional[date]:
    """Akzeptiert date/datetime, YYYY-MM-DD (auch mit Uhrzeit), DD.MM.YYYY und DD.MM.YY."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    for fmt in ("%Y-%m-%d", "%d.%m.%Y", "%d.%m.%y"):
        try:
            return datetime.strptime(text[:10] if fmt == "%Y-%m-%d" else text, fmt).date()
        except ValueError:
            continue
    raise ValidationError(f"{field} must be YYYY-MM-DD or DD.MM.YYYY")


def resolve_date_range(always_active: bool, start: Any, end: Any) -> Tuple[date, date]:
    if always_active:
        return ALWAYS_ACTIVE_START, ALWAYS_ACTIVE_END
    start_date = parse_date(start, "start_date")
    end_date = parse_date(end, "end_date")
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")
    return start_date, end_date


def derive_status(start: date, end: date, today: Optional[date] = None, archived: bool = False) -> str:
    if archived:
        return INACTIVE
    today = today or date.today()
    if end < today:
        return INACTIVE
    if start > today:
        return SCHEDULED
    return ACTIVE


def is_always_active(start: Optional[date], end: Optional[date]) -> bool:
    return start == ALWAYS_ACTIVE_START and end == ALWAYS_ACTIVE_END


def is_time_limited(start: Optional[date]) -> bool:
    return start != ALWAYS_ACTIVE_START
