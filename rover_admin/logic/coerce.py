"""Normalisierung von Antwortwerten für den Regelvergleich."""
import math
import re
from typing import Any, Optional

_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def to_text(value: Any) -> str:
    """Antwort als String, so wie sie im Formular angezeigt wird ('3.0' -> '3', True -> 'true')."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(v) for v in value)
    return str(value)


def to_number(value: Any) -> Optional[float]:
    """Zahl oder None, wenn sich der Wert nicht als Zahl lesen lässt.

    Leere Strings zählen als None; Dezimalkomma ('3,5') wird akzeptiert.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        f = float(value)
        return None if math.isnan(f) else f
    s = str(value).strip()
    if not s:
        return None
    if "," in s and "." not in s:
        s = s.replace(",", ".")
    if not _NUMBER.match(s):
        return None
    return float(s)


def is_blank(value: Any) -> bool:
    """Pflichtfrage unbeantwortet? None, '' / Whitespace, leere Listen und Dicts."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False
