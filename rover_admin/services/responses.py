"""Antworten der Gebietsleiter zu einem Fragebogen in einem Markt."""
import logging
from datetime import datetime

from sqlalchemy import func

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..logic.coerce import is_blank
from ..models import Market, Response, ResponseAnswer
from .fragebogen import Flow, get_fragebogen
from .markets import record_visit

logger = logging.getLogger(__name__)

IN_PROGRESS = "in_progress"
COMPLETED = "completed"


def get_response(response_id):
    response = db.session.get(Response, response_id)
    if response is None:
        raise NotFound(f"response {response_id} not found")
    return response


def start_response(data):
    """Legt die Antwort an oder liefert die bestehende (eine pro Fragebogen/GL/Markt)."""
    missing = [k for k in ("fragebogen_id", "gebietsleiter_id", "market_id") if not data.get(k)]
    if missing:
        raise ValidationError(f"missing field(s): {', '.join(missing)}")
    fb = get_fragebogen(data["fragebogen_id"])
    market_id = str(data["market_id"])
    if market_id not in fb.market_ids:
        raise ValidationError(f"market {market_id} is not assigned to fragebogen {fb.id}")

    response = Response.query.filter_by(
        fragebogen_id=fb.id, gebietsleiter_id=data["gebietsleiter_id"], market_id=market_id
    ).first()
    if response is not None:
        return response, False
    response = Response(fragebogen_id=fb.id, gebietsleiter_id=data["gebietsleiter_id"], market_id=market_id)
    db.session.add(response)
    db.session.commit()
    logger.info(f"Started response {response.id} for fragebogen {fb.id} in market {market_id}")
    return response, True


def _columns(item):
    """Antwortwert in die passende Spalte; Datei-URLs kommen explizit als ``file_url``."""
    columns = {"answer_text": None, "answer_numeric": None, "answer_json": None, "answer_file_url": None}
    if item.get("file_url"):
        columns["answer_file_url"] = str(item["file_url"])
        return columns
    value = item.get("value")
    if isinstance(value, bool):
        columns["answer_text"] = "true" if value else "false"
    elif isinstance(value, (int, float)):
        columns["answer_numeric"] = float(value)
    elif isinstance(value, (list, dict)):
        columns["answer_json"] = value
    elif value is not None:
        columns["answer_text"] = str(value)
    return columns


def _normalize(payload):
    answers = payload.get("answers")
    if isinstance(answers, dict):
        return [{"question_id": qid, "value": value} for qid, value in answers.items()]
    if isinstance(answers, list):
        return answers
    raise ValidationError("answers must be a list or an object keyed by question id")


def save_answers(response_id, payload):
    response = get_response(response_id)
    if response.status == COMPLETED:
        raise ValidationError("response is already completed")
    flow = Flow(get_fragebogen(response.fragebogen_id))
    items = _normalize(payload)

    rows = []
    for item in items:
        question_id = item.get("question_id")
        modules = flow.modules_of(question_id) if question_id else []
        if not modules:
            raise ValidationError(f"question {question_id} is not part of this fragebogen")
        module_id = item.get("module_id") or modules[0]
        if module_id not in modules:
            raise ValidationError(f"question {question_id} does not belong to module {module_id}")
        rows.append((question_id, module_id, _columns(item)))

    existing = {(a.question_id, a.module_id): a for a in response.answers}
    for question_id, module_id, columns in rows:
        answer = existing.get((question_id, module_id))
        if answer is None:
            answer = ResponseAnswer(response_id=response.id, question_id=question_id, module_id=module_id)
            db.session.add(answer)
            existing[(question_id, module_id)] = answer
        for key, value in columns.items():
            setattr(answer, key, value)
        answer.answered_at = datetime.utcnow()
    db.session.commit()
    logger.info(f"Saved {len(rows)} answer(s) for response {response.id}")
    return response


def answer_values(response):
    return {a.question_id: a.value for a in response.answers}


def complete_response(response_id):
    """Abschließen, wenn jede sichtbare Pflichtfrage beantwortet ist."""
    response = get_response(response_id)
    if response.status == COMPLETED:
        return response
    flow = Flow(get_fragebogen(response.fragebogen_id))
    answers = answer_values(response)
    hidden = flow.resolver.hidden(answers)
    missing = [
        link.question_id for _, link in flow.required()
        if link.question_id not in hidden and is_blank(answers.get(link.question_id))
    ]
    if missing:
        raise ValidationError(f"{len(missing)} required question(s) unanswered", {"missing": missing})

    response.status = COMPLETED
    response.completed_at = datetime.utcnow()
    db.session.commit()
    record_visit(response.market_id)
    logger.info(f"Completed response {response.id}")
    return response


def list_responses(fragebogen_id, status=None):
    get_fragebogen(fragebogen_id)
    q = Response.query.filter_by(fragebogen_id=fragebogen_id)
    if status:
        q = q.filter(Response.status == status)
    return q.order_by(Response.started_at.desc()).all()


def response_detail(response):
    data = response.to_dict()
    data["answers"] = [a.to_dict() for a in response.answers]
    return data


def market_stats(fragebogen_id):
    """Antworten pro Markt eines Fragebogens."""
    fb = get_fragebogen(fragebogen_id)
    rows = (
        db.session.query(Response.market_id, Response.status, func.count(Response.id))
        .filter(Response.fragebogen_id == fb.id)
        .group_by(Response.market_id, Response.status)
        .all()
    )
    stats = {}
    for market_id, status, count in rows:
        entry = stats.setdefault(market_id, {"market_id": market_id, "completed": 0, "in_progress": 0})
        entry[status] = entry.get(status, 0) + count
    names = dict(db.session.query(Market.id, Market.name).filter(Market.id.in_(fb.market_ids)).all()) \
        if fb.market_ids else {}
    for market_id in fb.market_ids:
        entry = stats.setdefault(market_id, {"market_id": market_id, "completed": 0, "in_progress": 0})
        entry["name"] = names.get(market_id)
    return sorted(stats.values(), key=lambda e: (e.get("name") or "", e["market_id"]))
