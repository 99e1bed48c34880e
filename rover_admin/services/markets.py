"""Märkte: Stammdaten, JSON-Import, Besuchszähler."""
import logging
import uuid
from datetime import date
from typing import Optional

from flask import current_app
from sqlalchemy import or_

from ..errors import ConflictError, NotFound, ValidationError
from ..extensions import db
from ..models import FragebogenMarket, Market, Response, ZeiterfassungEntry

logger = logging.getLogger(__name__)

# Spaltennamen aus Exporten (deutsch/englisch) -> Modellfeld
COL_MAP = {
    "id": "id",
    "market_id": "id",
    "internal_id": "internal_id",
    "interne_id": "internal_id",
    "name": "name",
    "marktname": "name",
    "chain": "chain",
    "handelskette": "chain",
    "kette": "chain",
    "banner": "banner",
    "address": "address",
    "adresse": "address",
    "strasse": "address",
    "city": "city",
    "ort": "city",
    "stadt": "city",
    "postal_code": "postal_code",
    "plz": "postal_code",
    "gebietsleiter": "gebietsleiter_name",
    "gebietsleiter_name": "gebietsleiter_name",
    "gebietsleiter_id": "gebietsleiter_id",
    "subgroup": "subgroup",
    "untergruppe": "subgroup",
    "frequency": "frequency",
    "frequenz": "frequency",
    "is_active": "is_active",
    "aktiv": "is_active",
}


def _standardize(row: dict) -> dict:
    out = {}
    for key, value in row.items():
        field = COL_MAP.get(str(key).strip().lower())
        if field is None:
            continue
        if isinstance(value, str):
            value = value.strip() or None
        out[field] = value
    return out


def _frequency(value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        raise ValidationError(f"frequency must be a number, got '{value}'")
    if number < 0:
        raise ValidationError("frequency must not be negative")
    return number


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "ja", "yes", "aktiv")
    return bool(value)


def _apply(market: Market, data: dict) -> Market:
    for field in Market.EDITABLE:
        if field not in data:
            continue
        value = data[field]
        if field == "frequency":
            value = _frequency(value)
            if value is None:
                continue
        elif field == "is_active":
            value = _flag(value)
        elif value is not None:
            value = str(value)
        setattr(market, field, value)
    if not (market.name or "").strip():
        raise ValidationError("name is required")
    return market


def get_market(market_id):
    market = db.session.get(Market, str(market_id))
    if market is None:
        raise NotFound(f"market {market_id} not found")
    return market


def list_markets(chain=None, postal_code=None, gebietsleiter=None, subgroup=None,
                 active=None, search=None, limit=None, offset=0):
    q = Market.query
    if chain:
        q = q.filter(Market.chain.in_(chain.split(",")))
    if postal_code:
        q = q.filter(Market.postal_code.like(f"{postal_code}%"))
    if gebietsleiter:
        q = q.filter(or_(Market.gebietsleiter_id == gebietsleiter, Market.gebietsleiter_name == gebietsleiter))
    if subgroup:
        q = q.filter(Market.subgroup == subgroup)
    if active is not None:
        q = q.filter(Market.is_active.is_(active))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(
            Market.name.ilike(like), Market.address.ilike(like), Market.city.ilike(like),
            Market.postal_code.ilike(like), Market.internal_id.ilike(like), Market.chain.ilike(like),
        ))
    total = q.count()
    limit = limit or current_app.config.get("MARKETS_PAGE_SIZE", 1000)
    markets = q.order_by(Market.name).offset(offset).limit(limit).all()
    return markets, total


def _internal_id_owner(internal_id, market_id):
    """ID des anderen Markts, der diese interne ID schon trägt."""
    if internal_id is None or str(internal_id).strip() == "":
        return None
    other = Market.query.filter(Market.internal_id == str(internal_id), Market.id != str(market_id)).first()
    return other.id if other else None


def _check_internal_id(data, market_id):
    owner = _internal_id_owner(data.get("internal_id"), market_id)
    if owner:
        raise ValidationError(f"internal_id {data['internal_id']} is already used by market {owner}")


def create_market(data):
    data = dict(data)
    market_id = str(data.get("id") or data.get("internal_id") or uuid.uuid4())
    if db.session.get(Market, market_id) is not None:
        raise ValidationError(f"market {market_id} already exists")
    _check_internal_id(data, market_id)
    market = _apply(Market(id=market_id, current_visits=0), data)
    db.session.add(market)
    db.session.commit()
    logger.info(f"Created market {market.id}")
    return market


def update_market(market_id, data):
    market = get_market(market_id)
    _check_internal_id(data, market.id)
    _apply(market, data)
    db.session.commit()
    logger.info(f"Updated market {market.id}")
    return market


def delete_market(market_id):
    market = get_market(market_id)
    if Response.query.filter_by(market_id=market.id).first():
        raise ConflictError("market has responses, deactivate it instead")
    if ZeiterfassungEntry.query.filter_by(market_id=market.id).first():
        raise ConflictError("market has time entries, deactivate it instead")
    FragebogenMarket.query.filter_by(market_id=market.id).delete()
    db.session.delete(market)
    db.session.commit()
    logger.info(f"Deleted market {market_id}")


def import_markets(rows):
    """Upsert über ``id`` bzw. ``internal_id``; fehlerhafte Zeilen werden gemeldet, nicht importiert."""
    if not isinstance(rows, list):
        raise ValidationError("expected a JSON array of markets")
    created = updated = 0
    errors = []
    for i, raw in enumerate(rows, start=1):
        if not isinstance(raw, dict):
            errors.append({"row": i, "error": "row must be an object"})
            continue
        data = _standardize(raw)
        market_id = data.get("id") or data.get("internal_id")
        if not market_id:
            errors.append({"row": i, "error": "id or internal_id is required"})
            continue
        market = db.session.get(Market, str(market_id))
        if market is None and data.get("internal_id"):
            market = Market.query.filter_by(internal_id=str(data["internal_id"])).first()
        is_new = market is None
        if not (data.get("name") or (market.name if market else None)):
            errors.append({"row": i, "id": str(market_id), "error": "name is required"})
            continue
        try:
            _frequency(data.get("frequency"))
        except ValidationError as e:
            errors.append({"row": i, "id": str(market_id), "error": e.message})
            continue
        owner = _internal_id_owner(data.get("internal_id"), market.id if market else market_id)
        if owner:
            errors.append({"row": i, "id": str(market_id), "error": f"internal_id is already used by market {owner}"})
            continue
        if is_new:
            market = Market(id=str(market_id), current_visits=0)
            db.session.add(market)
        _apply(market, data)
        db.session.flush()
        if is_new:
            created += 1
        else:
            updated += 1
    db.session.commit()
    logger.info(f"Imported markets: {created} created, {updated} updated, {len(errors)} rejected")
    return {"created": created, "updated": updated, "errors": errors}


def record_visit(market_id, today=None):
    """Zählt höchstens einen Besuch pro Tag."""
    market = get_market(market_id)
    today = today or date.today()
    if market.last_visit_date == today:
        return market, False
    market.current_visits = (market.current_visits or 0) + 1
    market.last_visit_date = today
    db.session.commit()
    logger.info(f"Recorded visit for market {market.id} ({market.current_visits}/{market.frequency})")
    return market, True
