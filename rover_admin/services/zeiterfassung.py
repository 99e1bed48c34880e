"""Zeiterfassung der Gebietsleiter (Fahrzeit, Besuchszeit, Distanz) und Zusatzzeiten."""
import logging
from datetime import datetime, time, timedelta

from ..errors import ValidationError
from ..extensions import db
from ..logic.coerce import to_number
from ..logic.status import parse_date
from ..logic.timespan import duration_minutes, format_duration, normalize_hhmm
from ..models import ZeiterfassungEntry, ZusatzEntry
from .day_tracking import UNTERBRECHUNG, active_day, attach_visit, today
from .markets import get_market

logger = logging.getLogger(__name__)

TIME_FIELDS = (
    "fahrzeit_von", "fahrzeit_bis", "besuchszeit_von", "besuchszeit_bis", "market_start_time", "market_end_time",
)

# Gründe für Zusatzzeiten; eine Unterbrechung wird von der Arbeitszeit abgezogen
ZUSATZ_REASONS = {
    UNTERBRECHUNG: "Unterbrechung",
    "marktbesuch": "Marktbesuch",
    "arztbesuch": "Arztbesuch",
    "werkstatt": "Werkstatt/Autoreinigung",
    "homeoffice": "Homeoffice",
    "schulung": "Schulung",
    "lager": "Lager",
    "heimfahrt": "Heimfahrt",
    "hotel": "Hotelübernachtung",
}


def _percent(value):
    number = to_number(value)
    if value not in (None, "") and number is None:
        raise ValidationError("food_prozent must be a number")
    if number is None:
        return None
    if not 0 <= number <= 100:
        raise ValidationError("food_prozent must be between 0 and 100")
    return int(round(number))


def entry_dict(entry):
    data = entry.to_dict()
    data["fahrzeit_dauer"] = format_duration(entry.fahrzeit_diff)
    data["besuchszeit_dauer"] = format_duration(entry.besuchszeit_diff)
    return data


def create_entry(data):
    missing = [k for k in ("gebietsleiter_id", "market_id") if not data.get(k)]
    if missing:
        raise ValidationError(f"missing field(s): {', '.join(missing)}")
    market = get_market(data["market_id"])

    distanz = to_number(data.get("distanz_km"))
    if data.get("distanz_km") not in (None, "") and (distanz is None or distanz < 0):
        raise ValidationError("distanz_km must be a non-negative number")

    times = {field: normalize_hhmm(data.get(field), field) for field in TIME_FIELDS}
    entry = ZeiterfassungEntry(
        gebietsleiter_id=data["gebietsleiter_id"],
        market_id=market.id,
        fragebogen_id=data.get("fragebogen_id") or None,
        response_id=data.get("response_id") or None,
        fahrzeit_diff=duration_minutes(times["fahrzeit_von"], times["fahrzeit_bis"], "fahrzeit"),
        besuchszeit_diff=duration_minutes(times["besuchszeit_von"], times["besuchszeit_bis"], "besuchszeit"),
        distanz_km=distanz,
        kommentar=data.get("kommentar") or None,
        food_prozent=_percent(data.get("food_prozent")),
        **times,
    )
    # vor dem add: die bisherigen Besuche des Tages ohne diesen zählen
    attach_visit(entry)
    db.session.add(entry)
    db.session.commit()
    logger.info(f"Recorded zeiterfassung {entry.id} for GL {entry.gebietsleiter_id} in market {market.id}")
    return entry


def list_for_gebietsleiter(gebietsleiter_id, limit=50, offset=0):
    q = ZeiterfassungEntry.query.filter_by(gebietsleiter_id=gebietsleiter_id)
    return q.order_by(ZeiterfassungEntry.created_at.desc()).offset(offset).limit(limit).all()


def admin_list(start_date=None, end_date=None, gebietsleiter_id=None):
    q = ZeiterfassungEntry.query
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if start:
        q = q.filter(ZeiterfassungEntry.created_at >= datetime.combine(start, time.min))
    if end:
        q = q.filter(ZeiterfassungEntry.created_at < datetime.combine(end + timedelta(days=1), time.min))
    if gebietsleiter_id:
        q = q.filter(ZeiterfassungEntry.gebietsleiter_id == gebietsleiter_id)
    return q.order_by(ZeiterfassungEntry.created_at.desc()).all()


def day_summary(gebietsleiter_id, day):
    """Einträge eines GL an einem Tag mit Summen."""
    day = parse_date(day, "date")
    if day is None:
        raise ValidationError("date is required")
    entries = admin_list(day, day, gebietsleiter_id)
    fahrzeit = sum(e.fahrzeit_diff or 0 for e in entries)
    besuchszeit = sum(e.besuchszeit_diff or 0 for e in entries)
    return {
        "gebietsleiter_id": gebietsleiter_id,
        "date": day.isoformat(),
        "entries": [entry_dict(e) for e in entries],
        "market_count": len({e.market_id for e in entries}),
        "fahrzeit_minutes": fahrzeit,
        "besuchszeit_minutes": besuchszeit,
        "fahrzeit_total": format_duration(fahrzeit),
        "besuchszeit_total": format_duration(besuchszeit),
        "distanz_km": round(sum(e.distanz_km or 0 for e in entries), 2),
    }


def _zusatz_entry(gebietsleiter_id, item, record):
    reason = (item.get("reason") or "").strip().lower()
    if reason not in ZUSATZ_REASONS:
        raise ValidationError(f"unknown reason '{item.get('reason')}'")
    von = normalize_hhmm(item.get("von"), "von")
    bis = normalize_hhmm(item.get("bis"), "bis")
    if von is None or bis is None:
        raise ValidationError("von and bis are required")
    kommentar = (item.get("kommentar") or "").strip() or None
    if reason == UNTERBRECHUNG and kommentar is None:
        raise ValidationError("an Unterbrechung needs a kommentar")
    return ZusatzEntry(
        gebietsleiter_id=gebietsleiter_id,
        entry_date=today(),
        reason=reason,
        reason_label=item.get("reason_label") or item.get("reasonLabel") or ZUSATZ_REASONS[reason],
        zeit_von=von,
        zeit_bis=bis,
        zeit_diff=duration_minutes(von, bis, "zeit"),
        kommentar=kommentar,
        is_work_time_deduction=reason == UNTERBRECHUNG,
        day_tracking_id=record.id if record is not None else None,
    )


def create_zusatz(data):
    """Mehrere Zusatzzeiten eines GL für heute; alle oder keine."""
    gebietsleiter_id = data.get("gebietsleiter_id")
    entries = data.get("entries")
    if not gebietsleiter_id or not isinstance(entries, list) or not entries:
        raise ValidationError("gebietsleiter_id and a non-empty entries array are required")
    if not all(isinstance(item, dict) for item in entries):
        raise ValidationError("entries must be objects")
    record = active_day(gebietsleiter_id)
    rows = [_zusatz_entry(gebietsleiter_id, item, record) for item in entries]
    db.session.add_all(rows)
    db.session.commit()
    logger.info(f"Created {len(rows)} zusatz zeiterfassung entries for GL {gebietsleiter_id}")
    return rows


def zusatz_dict(entry):
    data = entry.to_dict()
    data["zeit_dauer"] = format_duration(entry.zeit_diff)
    return data


def list_zusatz(gebietsleiter_id=None, day=None, start_date=None, end_date=None):
    q = ZusatzEntry.query
    if gebietsleiter_id:
        q = q.filter(ZusatzEntry.gebietsleiter_id == gebietsleiter_id)
    day = parse_date(day, "date")
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if day:
        q = q.filter(ZusatzEntry.entry_date == day)
    if start:
        q = q.filter(ZusatzEntry.entry_date >= start)
    if end:
        q = q.filter(ZusatzEntry.entry_date <= end)
    return q.order_by(ZusatzEntry.created_at.desc()).all()
