"""Fragebögen: Anlage mit Marktkonflikten, Lebenszyklus, Ablauf für den GL."""
import logging
from datetime import date

from sqlalchemy import or_

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..logic.composer import conditions_from_rules
from ..logic.conflicts import Assignment, detect_conflicts, resolve_conflicts
from ..logic.status import ACTIVE, STATUSES, derive_status, is_always_active, resolve_date_range
from ..logic.visibility import VisibilityResolver
from ..models import (
    Fragebogen, FragebogenMarket, FragebogenModule, Market, Module, Response, ResponseAnswer,
    ZeiterfassungEntry,
)
from .modules import module_detail

logger = logging.getLogger(__name__)


def get_fragebogen(fragebogen_id):
    fb = db.session.get(Fragebogen, fragebogen_id)
    if fb is None:
        raise NotFound(f"fragebogen {fragebogen_id} not found")
    return fb


def current_status(fb, today=None):
    return derive_status(fb.start_date, fb.end_date, today=today, archived=bool(fb.archived))


def _unique(ids):
    return list(dict.fromkeys(str(i) for i in ids or []))


def _check_modules(module_ids):
    if not module_ids:
        raise ValidationError("at least one module is required")
    found = {m.id for m in Module.query.filter(Module.id.in_(module_ids)).all()}
    missing = [m for m in module_ids if m not in found]
    if missing:
        raise ValidationError(f"unknown module(s): {', '.join(missing)}")


def _check_markets(market_ids):
    if not market_ids:
        return
    found = {m.id for m in Market.query.filter(Market.id.in_(market_ids)).all()}
    missing = [m for m in market_ids if m not in found]
    if missing:
        raise ValidationError(f"unknown market(s): {', '.join(missing)}")


def _assignments():
    """Marktzuweisungen aller nicht archivierten Fragebögen."""
    rows = (
        db.session.query(Fragebogen, FragebogenMarket.market_id)
        .join(FragebogenMarket, FragebogenMarket.fragebogen_id == Fragebogen.id)
        .filter(Fragebogen.archived.is_(False))
        .order_by(Fragebogen.created_at)
        .all()
    )
    by_id = {}
    for fb, market_id in rows:
        a = by_id.setdefault(fb.id, Assignment(fb.id, fb.name, set(), fb.start_date, fb.end_date))
        a.market_ids.add(market_id)
    return list(by_id.values())


def _resolve_markets(market_ids, resolutions, editing_id=None):
    conflicts = detect_conflicts(market_ids, _assignments(), editing_id=editing_id)
    resolution = resolve_conflicts(market_ids, conflicts, resolutions)
    return resolution, conflicts


def _release(release):
    """``override``: Märkte aus den bisherigen Fragebögen entfernen."""
    for fragebogen_id, market_ids in release.items():
        FragebogenMarket.query.filter(
            FragebogenMarket.fragebogen_id == fragebogen_id,
            FragebogenMarket.market_id.in_(list(market_ids)),
        ).delete(synchronize_session=False)
        logger.info(f"Released {len(market_ids)} market(s) from fragebogen {fragebogen_id}")


def _set_modules(fb, module_ids):
    fb.module_links.clear()
    db.session.flush()
    for i, module_id in enumerate(module_ids):
        fb.module_links.append(FragebogenModule(module_id=module_id, order_index=i))


def _set_markets(fb, market_ids):
    fb.market_links.clear()
    db.session.flush()
    for market_id in market_ids:
        fb.market_links.append(FragebogenMarket(market_id=market_id))


def create_fragebogen(data):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    module_ids = _unique(data.get("module_ids"))
    market_ids = _unique(data.get("market_ids"))
    start, end = resolve_date_range(bool(data.get("always_active")), data.get("start_date"), data.get("end_date"))
    _check_modules(module_ids)
    _check_markets(market_ids)
    # alles geprüft, erst jetzt wird geschrieben
    resolution, conflicts = _resolve_markets(market_ids, data.get("conflict_resolutions"))

    fb = Fragebogen(name=name, description=data.get("description") or None, start_date=start, end_date=end)
    fb.status = current_status(fb)
    db.session.add(fb)
    _release(resolution.release)
    _set_modules(fb, module_ids)
    _set_markets(fb, resolution.market_ids)
    db.session.commit()
    logger.info(f"Created fragebogen {fb.id} ({len(module_ids)} modules, {len(resolution.market_ids)} markets)")
    return fb, conflicts


def update_fragebogen(fragebogen_id, data):
    fb = get_fragebogen(fragebogen_id)
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")
        fb.name = name
    if "description" in data:
        fb.description = data.get("description") or None

    if {"always_active", "start_date", "end_date"} & set(data):
        fb.start_date, fb.end_date = resolve_date_range(
            bool(data.get("always_active")), data.get("start_date", fb.start_date), data.get("end_date", fb.end_date)
        )

    module_ids = None
    if "module_ids" in data:
        module_ids = _unique(data.get("module_ids"))
        _check_modules(module_ids)

    conflicts = []
    resolution = None
    if "market_ids" in data:
        market_ids = _unique(data.get("market_ids"))
        _check_markets(market_ids)
        resolution, conflicts = _resolve_markets(market_ids, data.get("conflict_resolutions"), editing_id=fb.id)

    if module_ids is not None:
        _set_modules(fb, module_ids)
    if resolution is not None:
        _release(resolution.release)
        _set_markets(fb, resolution.market_ids)
    fb.status = current_status(fb)
    db.session.commit()
    logger.info(f"Updated fragebogen {fb.id}")
    return fb, conflicts


def archive_fragebogen(fragebogen_id, archived=True):
    fb = get_fragebogen(fragebogen_id)
    fb.archived = archived
    fb.status = current_status(fb)
    db.session.commit()
    logger.info(f"{'Archived' if archived else 'Restored'} fragebogen {fb.id}")
    return fb


def delete_fragebogen_permanently(fragebogen_id):
    """Löscht Fragebogen, Zuweisungen und Antworten; Module und Fragen bleiben."""
    fb = get_fragebogen(fragebogen_id)
    response_ids = [r.id for r in Response.query.filter_by(fragebogen_id=fb.id).all()]
    if response_ids:
        ZeiterfassungEntry.query.filter(ZeiterfassungEntry.response_id.in_(response_ids)).update(
            {"response_id": None}, synchronize_session=False
        )
        ResponseAnswer.query.filter(ResponseAnswer.response_id.in_(response_ids)).delete(synchronize_session=False)
        Response.query.filter(Response.id.in_(response_ids)).delete(synchronize_session=False)
    ZeiterfassungEntry.query.filter_by(fragebogen_id=fb.id).update({"fragebogen_id": None}, synchronize_session=False)
    db.session.delete(fb)
    db.session.commit()
    logger.info(f"Deleted fragebogen {fragebogen_id} permanently ({len(response_ids)} responses)")
    return {"deleted_fragebogen": fragebogen_id, "deleted_responses": len(response_ids)}


def fragebogen_summary(fb):
    data = fb.to_dict()
    data["status"] = current_status(fb)
    data["always_active"] = is_always_active(fb.start_date, fb.end_date)
    data["module_ids"] = fb.module_ids
    data["market_ids"] = fb.market_ids
    return data


def list_fragebogen(status=None, archived=False, search=None):
    q = Fragebogen.query
    if archived is not None:
        q = q.filter(Fragebogen.archived.is_(archived))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Fragebogen.name.ilike(like), Fragebogen.description.ilike(like)))
    if status and status not in STATUSES:
        raise ValidationError(f"invalid status '{status}'")
    result = [fragebogen_summary(fb) for fb in q.order_by(Fragebogen.created_at.desc()).all()]
    if status:
        result = [fb for fb in result if fb["status"] == status]
    return result


def fragebogen_detail(fb):
    data = fragebogen_summary(fb)
    data["modules"] = [dict(module_detail(link.module), order_index=link.order_index) for link in fb.module_links]
    markets = Market.query.filter(Market.id.in_(fb.market_ids)).order_by(Market.name).all() if fb.market_ids else []
    data["markets"] = [m.to_dict() for m in markets]
    return data


def fragebogen_stats(fragebogen_id):
    fb = get_fragebogen(fragebogen_id)
    responses = Response.query.filter_by(fragebogen_id=fb.id)
    completed = responses.filter(Response.status == "completed").count()
    total = responses.count()
    return {
        "fragebogen_id": fb.id,
        "module_count": len(fb.module_links),
        "market_count": len(fb.market_links),
        "response_count": total,
        "completed_count": completed,
        "in_progress_count": total - completed,
    }


def refresh_statuses(today=None):
    """Gespeicherten Status an den Zeitraum anpassen; liefert die Anzahl Änderungen."""
    changed = 0
    for fb in Fragebogen.query.all():
        status = current_status(fb, today)
        if fb.status != status:
            fb.status = status
            changed += 1
    db.session.commit()
    if changed:
        logger.info(f"Refreshed status of {changed} fragebogen")
    return changed


class Flow:
    """Fragenfolge eines Fragebogens über alle Module, Schlüssel ist die Fragen-ID."""

    def __init__(self, fb, cascade=False):
        self.fragebogen = fb
        self.entries = []  # (module_id, ModuleQuestion)
        conditions = []
        seen = set()
        for fb_link in fb.module_links:
            module = fb_link.module
            for link in module.links:
                # eine Frage in zwei Modulen erscheint nur einmal
                if link.question_id in seen:
                    continue
                seen.add(link.question_id)
                self.entries.append((module.id, link))
            local_to_id = {link.local_id: link.question_id for link in module.links}
            conditions.extend(conditions_from_rules([r.to_dict() for r in module.rules], local_to_id))
        self.resolver = VisibilityResolver([link.question_id for _, link in self.entries], conditions, cascade)

    def required(self):
        return [(module_id, link) for module_id, link in self.entries if link.required]

    def module_of(self, question_id):
        for module_id, link in self.entries:
            if link.question_id == question_id:
                return module_id
        return None

    def modules_of(self, question_id):
        """Alle Module des Fragebogens, die die Frage enthalten, in Reihenfolge."""
        found = []
        for fb_link in self.fragebogen.module_links:
            module = fb_link.module
            if any(link.question_id == question_id for link in module.links):
                found.append(module.id)
        return found


def visibility(fragebogen_id, data):
    fb = get_fragebogen(fragebogen_id)
    answers = data.get("answers") or {}
    if not isinstance(answers, dict):
        raise ValidationError("answers must be an object keyed by question id")
    flow = Flow(fb, cascade=bool(data.get("cascade", False)))
    resolver = flow.resolver
    result = {
        "fragebogen_id": fb.id,
        "hidden": sorted(resolver.hidden(answers)),
        "visible": resolver.visible_sequence(answers),
    }

    current = data.get("current")
    direction = data.get("direction", "next")
    if direction not in ("next", "previous"):
        raise ValidationError("direction must be 'next' or 'previous'")
    if current is None:
        index = resolver.first_visible(answers) if direction == "next" else resolver.last_visible(answers)
    else:
        try:
            position = resolver.index_of(current)
        except KeyError:
            raise ValidationError(f"question {current} is not part of this fragebogen") from None
        if direction == "next":
            index = resolver.next_visible(position, answers)
        else:
            index = resolver.previous_visible(position, answers)
    target = resolver.question_ids[index] if index is not None else None
    result.update({
        "current": current,
        "direction": direction,
        "question_id": target,
        "module_id": flow.module_of(target) if target else None,
        "finished": target is None and direction == "next",
    })
    return result


def active_for_market(market_id, today=None):
    today = today or date.today()
    rows = (
        Fragebogen.query.join(FragebogenMarket, FragebogenMarket.fragebogen_id == Fragebogen.id)
        .filter(FragebogenMarket.market_id == market_id, Fragebogen.archived.is_(False))
        .all()
    )
    return [fb for fb in rows if current_status(fb, today) == ACTIVE]
