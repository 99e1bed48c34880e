"""Uhrzeiten (HH:MM) der Zeiterfassung."""
import re
from typing import List, Optional

from ..errors import ValidationError

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


def parse_hhmm(value, field="time") -> Optional[int]:
    """Minuten seit Mitternacht oder None bei leerem Wert."""
    if value is None or str(value).strip() == "":
        return None
    match = _HHMM.match(str(value).strip())
    if not match:
        raise ValidationError(f"{field} must be HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"{field} must be a valid time of day")
    return hours * 60 + minutes


def normalize_hhmm(value, field="time") -> Optional[str]:
    """'7:05' und '07:05:00' werden zu '07:05'."""
    minutes = parse_hhmm(value, field)
    if minutes is None:
        return None
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def duration_minutes(start, end, field="time") -> Optional[int]:
    """Dauer von ``start`` bis ``end``; endet sie vor dem Start, lief sie über Mitternacht."""
    a, b = parse_hhmm(start, f"{field}_von"), parse_hhmm(end, f"{field}_bis")
    if a is None or b is None:
        return None
    diff = b - a
    if diff < 0:
        diff += 24 * 60
    return diff


def format_duration(minutes: Optional[int]) -> Optional[str]:
    """125 -> '2:05:00'"""
    if minutes is None:
        return None
    return f"{minutes // 60}:{minutes % 60:02d}:00"


def travel_minutes(day_start, visits, skip_first=False) -> List[Optional[int]]:
    """Fahrzeit vor jedem Besuch ``(start, ende)``: ab Tagesbeginn, danach ab Ende des vorigen Besuchs."""
    result = []
    origin = None if skip_first else day_start
    for start, end in visits:
        result.append(duration_minutes(origin, start, "fahrzeit") if origin and start else None)
        origin = end
    return result
