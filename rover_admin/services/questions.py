"""Fragenbibliothek: CRUD und Referenzzähler."""
import logging

from sqlalchemy import func, or_

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..logic.question_config import config_columns, parse_config
from ..models import Module, ModuleQuestion, Question, ResponseAnswer

logger = logging.getLogger(__name__)


def get_question(question_id):
    question = db.session.get(Question, question_id)
    if question is None:
        raise NotFound(f"question {question_id} not found")
    return question


def list_questions(question_type=None, is_template=None, archived=False, search=None):
    q = Question.query
    if question_type:
        q = q.filter(Question.type.in_(question_type.split(",")))
    if is_template is not None:
        q = q.filter(Question.is_template.is_(is_template))
    if archived is not None:
        q = q.filter(Question.archived.is_(archived))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Question.question_text.ilike(like), Question.instruction.ilike(like)))
    return q.order_by(Question.created_at.desc()).all()


def apply_content(question, data):
    """Text und typabhängige Konfiguration setzen; Typwechsel räumt alte Konfig ab."""
    qtype = data.get("type", question.type)
    text = (data.get("question_text", question.question_text) or "").strip()
    if not text:
        raise ValidationError("question_text is required")
    merged = question.content() if question.type == qtype else {}
    merged.update(data)
    columns = config_columns(parse_config(qtype, merged))
    question.type = qtype
    question.question_text = text
    question.instruction = data.get("instruction", question.instruction) or None
    for key, value in columns.items():
        setattr(question, key, value)
    return question


def create_question(data):
    question = apply_content(Question(), data)
    question.is_template = bool(data.get("is_template", False))
    db.session.add(question)
    db.session.commit()
    logger.info(f"Created question {question.id} ({question.type})")
    return question


def update_question(question_id, data):
    question = apply_content(get_question(question_id), data)
    if "is_template" in data:
        question.is_template = bool(data["is_template"])
    db.session.commit()
    logger.info(f"Updated question {question.id}")
    return question


def archive_question(question_id, archived=True):
    question = get_question(question_id)
    question.archived = archived
    db.session.commit()
    logger.info(f"{'Archived' if archived else 'Restored'} question {question.id}")
    return question


def module_counts(question_ids):
    """Anzahl Module pro Frage; Fragen ohne Modul fehlen im Ergebnis."""
    if not question_ids:
        return {}
    rows = (
        db.session.query(ModuleQuestion.question_id, func.count(ModuleQuestion.module_id))
        .filter(ModuleQuestion.question_id.in_(list(question_ids)))
        .group_by(ModuleQuestion.question_id)
        .all()
    )
    return {qid: count for qid, count in rows}


def module_count(question_id):
    get_question(question_id)
    return module_counts([question_id]).get(question_id, 0)


def question_stats(question_id):
    question = get_question(question_id)
    modules = (
        db.session.query(Module.id, Module.name)
        .join(ModuleQuestion, ModuleQuestion.module_id == Module.id)
        .filter(ModuleQuestion.question_id == question.id)
        .order_by(Module.name)
        .all()
    )
    answers = ResponseAnswer.query.filter_by(question_id=question.id).count()
    return {
        "question_id": question.id,
        "module_count": len(modules),
        "modules": [{"id": mid, "name": name} for mid, name in modules],
        "answer_count": answers,
    }
