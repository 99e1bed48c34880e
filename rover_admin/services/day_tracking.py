"""Tageserfassung der Gebietsleiter.

Ein Arbeitstag beginnt mit "Tag starten" und endet mit "Tag beenden". Dazwischen
liegen die Marktbesuche (``ZeiterfassungEntry``) in der Reihenfolge ihrer Erfassung.
Die Fahrzeit vor einem Besuch ergibt sich aus dem Tagesbeginn bzw. dem Ende des
vorigen Besuchs; beim Tagesende kommen Heimfahrt und Unterbrechungen dazu.
"""
import logging
from datetime import datetime, time, timedelta

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..logic.status import parse_date
from ..logic.timespan import duration_minutes, format_duration, normalize_hhmm, travel_minutes
from ..models import DayTracking, ZeiterfassungEntry, ZusatzEntry
from .markets import get_market

logger = logging.getLogger(__name__)

ACTIVE = "active"
COMPLETED = "completed"
FORCE_CLOSED = "force_closed"
UNTERBRECHUNG = "unterbrechung"


def today():
    # gleiche Tagesgrenze wie created_at der Einträge
    return datetime.utcnow().date()


def now_hhmm():
    return datetime.now().strftime("%H:%M")


def find_day(gebietsleiter_id, day=None):
    return DayTracking.query.filter_by(gebietsleiter_id=gebietsleiter_id, tracking_date=day or today()).first()


def active_day(gebietsleiter_id, day=None):
    record = find_day(gebietsleiter_id, day)
    if record is None or record.status != ACTIVE:
        return None
    return record


def visits(gebietsleiter_id, day):
    start = datetime.combine(day, time.min)
    return (
        ZeiterfassungEntry.query.filter(
            ZeiterfassungEntry.gebietsleiter_id == gebietsleiter_id,
            ZeiterfassungEntry.created_at >= start,
            ZeiterfassungEntry.created_at < start + timedelta(days=1),
        )
        .order_by(ZeiterfassungEntry.created_at)
        .all()
    )


def _spans(entries):
    return [(e.visit_start, e.visit_end) for e in entries]


def visit_dict(entry):
    data = entry.to_dict()
    data["market_name"] = entry.market.name if entry.market else "Unknown"
    data["calculated_fahrzeit_dauer"] = format_duration(entry.calculated_fahrzeit)
    return data


def _required(data, *fields):
    missing = [k for k in fields if not data.get(k)]
    if missing:
        raise ValidationError(f"missing field(s): {', '.join(missing)}")


def start_day(data):
    _required(data, "gebietsleiter_id")
    gebietsleiter_id = data["gebietsleiter_id"]
    start = normalize_hhmm(data.get("start_time"), "start_time") or now_hhmm()
    record = find_day(gebietsleiter_id)
    if record is not None and record.status == ACTIVE:
        raise ValidationError("day tracking already started for today")
    if record is None:
        record = DayTracking(gebietsleiter_id=gebietsleiter_id, tracking_date=today())
        db.session.add(record)

    # ein beendeter Tag darf neu gestartet werden, die Summen gelten dann nicht mehr
    record.day_start_time = start
    record.day_end_time = None
    record.skipped_first_fahrzeit = bool(data.get("skip_fahrzeit"))
    record.status = ACTIVE
    record.markets_visited = 0
    record.total_fahrzeit = record.total_besuchszeit = None
    record.total_unterbrechung = record.total_arbeitszeit = None
    db.session.commit()
    logger.info(f"Day tracking started for GL {gebietsleiter_id} at {start}")
    return record


def market_start(data):
    """Besuchsnummer und Fahrzeit für einen Markt, den der GL gerade betritt."""
    _required(data, "gebietsleiter_id", "market_id")
    gebietsleiter_id = data["gebietsleiter_id"]
    market = get_market(data["market_id"])
    record = active_day(gebietsleiter_id)
    if record is None:
        raise ValidationError("day tracking not started, start the day first")
    start = normalize_hhmm(data.get("start_time"), "start_time") or now_hhmm()

    previous = visits(gebietsleiter_id, record.tracking_date)
    travel = travel_minutes(
        record.day_start_time, _spans(previous) + [(start, None)], bool(record.skipped_first_fahrzeit)
    )[-1]
    return {
        "gebietsleiter_id": gebietsleiter_id,
        "market_id": market.id,
        "visit_order": len(previous) + 1,
        "market_start_time": start,
        "calculated_fahrzeit": travel,
        "calculated_fahrzeit_dauer": format_duration(travel),
    }


def attach_visit(entry):
    """Neuen Marktbesuch dem laufenden Tag zuordnen."""
    record = active_day(entry.gebietsleiter_id)
    if record is None:
        return None
    previous = visits(entry.gebietsleiter_id, record.tracking_date)
    entry.day_tracking_id = record.id
    entry.visit_order = len(previous) + 1
    entry.calculated_fahrzeit = travel_minutes(
        record.day_start_time, _spans(previous) + [(entry.visit_start, entry.visit_end)],
        bool(record.skipped_first_fahrzeit),
    )[-1]
    return record


def unterbrechung_minutes(gebietsleiter_id, day):
    rows = ZusatzEntry.query.filter_by(gebietsleiter_id=gebietsleiter_id, entry_date=day, reason=UNTERBRECHUNG)
    return sum(z.zeit_diff or 0 for z in rows)


def end_day(data):
    _required(data, "gebietsleiter_id", "end_time")
    gebietsleiter_id = data["gebietsleiter_id"]
    end = normalize_hhmm(data["end_time"], "end_time")
    record = active_day(gebietsleiter_id)
    if record is None:
        raise NotFound("no active day tracking found for today")

    entries = visits(gebietsleiter_id, record.tracking_date)
    travel = travel_minutes(record.day_start_time, _spans(entries), bool(record.skipped_first_fahrzeit))
    for entry, minutes in zip(entries, travel):
        entry.calculated_fahrzeit = minutes
    fahrzeit = sum(m for m in travel if m)
    if entries and entries[-1].visit_end:
        # Heimfahrt
        fahrzeit += duration_minutes(entries[-1].visit_end, end, "heimfahrt")

    pause = unterbrechung_minutes(gebietsleiter_id, record.tracking_date)
    record.day_end_time = end
    record.total_fahrzeit = fahrzeit
    record.total_besuchszeit = sum(e.besuchszeit_diff or 0 for e in entries)
    record.total_unterbrechung = pause
    record.total_arbeitszeit = max(duration_minutes(record.day_start_time, end, "arbeitszeit") - pause, 0)
    record.markets_visited = len(entries)
    record.status = FORCE_CLOSED if data.get("force_close") else COMPLETED
    db.session.commit()
    logger.info(f"Day tracking ended for GL {gebietsleiter_id} at {end} ({len(entries)} markets)")
    return record


def _day(value):
    day = parse_date(value, "date")
    if day is None:
        raise ValidationError("date is required")
    return day


def day_status(gebietsleiter_id, day=None):
    day = parse_date(day, "date") or today()
    record = find_day(gebietsleiter_id, day)
    if record is None:
        raise NotFound(f"no day tracking for GL {gebietsleiter_id} on {day.isoformat()}")
    return record


def day_visits(gebietsleiter_id, day):
    return [visit_dict(e) for e in visits(gebietsleiter_id, _day(day))]


def day_overview(gebietsleiter_id, day):
    """Tagesdatensatz, Besuche und Summen; vor dem Tagesende sind die Summen 0:00:00."""
    day = _day(day)
    record = find_day(gebietsleiter_id, day)
    entries = visits(gebietsleiter_id, day)

    def total(name):
        minutes = getattr(record, name) if record is not None else None
        return format_duration(minutes or 0)

    return {
        "gebietsleiter_id": gebietsleiter_id,
        "date": day.isoformat(),
        "day_tracking": record.to_dict() if record is not None else None,
        "market_visits": [visit_dict(e) for e in entries],
        "total_fahrzeit": total("total_fahrzeit"),
        "total_besuchszeit": total("total_besuchszeit"),
        "total_unterbrechung": total("total_unterbrechung"),
        "total_arbeitszeit": total("total_arbeitszeit"),
        "markets_visited": (record.markets_visited if record is not None else 0) or len(entries),
    }
