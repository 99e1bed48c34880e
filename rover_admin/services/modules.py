"""Module speichern, duplizieren, löschen.

Beim Speichern entscheidet ``logic.composer.plan_save``, ob eine bearbeitete Frage an
Ort und Stelle geändert oder abgespalten wird; hier wird der Plan nur ausgeführt und
Verknüpfungen plus Regeln neu geschrieben.
"""
import logging

from sqlalchemy import func, or_

from ..errors import ConflictError, NotFound
from ..extensions import db
from ..logic.composer import (
    DraftQuestion, ModuleDraft, StoredQuestion, conditions_from_rules, draft_from_payload,
    duplicate_draft, is_temp_id, module_links, orphaned_questions, plan_save,
    serialize_rules, summarize_usage, validate_draft,
)
from ..logic.status import derive_status
from ..models import (
    Fragebogen, FragebogenModule, Module, ModuleQuestion, ModuleRule, Question, ResponseAnswer,
)
from .questions import module_counts

logger = logging.getLogger(__name__)


def get_module(module_id):
    module = db.session.get(Module, module_id)
    if module is None:
        raise NotFound(f"module {module_id} not found")
    return module


def load_draft(module):
    """Gespeichertes Modul als Entwurf; Regeln zeigen dann auf Fragen-IDs."""
    questions = []
    for link in module.links:
        data = link.question.content()
        data.update({"id": link.question_id, "required": link.required, "order": link.order_index})
        questions.append(DraftQuestion.from_dict(data, link.order_index))
    local_to_id = {link.local_id: link.question_id for link in module.links}
    return ModuleDraft(
        name=module.name,
        description=module.description,
        questions=questions,
        conditions=conditions_from_rules([r.to_dict() for r in module.rules], local_to_id),
        id=module.id,
    )


def draft_to_dict(draft):
    local = {q.id: f"q{i}" for i, q in enumerate(draft.ordered(), start=1)}
    return {
        "id": draft.id,
        "name": draft.name,
        "description": draft.description,
        "questions": [
            dict(q.content(), id=q.id, order=q.order, required=q.required, local_id=local[q.id])
            for q in draft.ordered()
        ],
        "rules": [c.to_dict() for c in draft.conditions],
    }


def module_detail(module):
    data = module.to_dict()
    data["questions"] = [
        dict(link.question.to_dict(), order=link.order_index, order_index=link.order_index,
             required=bool(link.required), local_id=link.local_id)
        for link in module.links
    ]
    data["rules"] = [r.to_dict() for r in module.rules]
    # dieselben Regeln auf Fragen-IDs, so wie der Editor sie zurückschickt
    data["conditions"] = [c.to_dict() for c in load_draft(module).conditions]
    return data


def _stored_questions(module, draft):
    existing = [q.id for q in draft.questions if not is_temp_id(q.id)]
    if not existing:
        return {}, {}
    rows = {q.id: q for q in Question.query.filter(Question.id.in_(existing)).all()}
    counts = module_counts(existing)
    linked = {link.question_id for link in module.links}
    stored = {
        qid: StoredQuestion(content=q.content(), module_count=counts.get(qid, 0), in_module=qid in linked)
        for qid, q in rows.items()
    }
    return rows, stored


def _save(module, draft):
    """Plan ausführen; gibt Modul und eine Zusammenfassung der Aktionen zurück."""
    validate_draft(draft)
    rows, stored = _stored_questions(module, draft)
    plan = plan_save(draft, stored)

    created = {}
    for dq in plan.to_create:
        question = Question(**dq.content())
        db.session.add(question)
        db.session.flush()
        created[dq.id] = question.id
    for dq in plan.to_update:
        question = rows[dq.id]
        for key, value in dq.content().items():
            setattr(question, key, value)

    final = plan.finalize(created)

    module.name = final.name
    module.description = final.description
    module.links.clear()
    module.rules.clear()
    # alte Verknüpfungen zuerst löschen, sonst kollidieren die Unique-Constraints
    db.session.flush()
    for link in module_links(final):
        module.links.append(ModuleQuestion(**link))
    for rule in serialize_rules(final):
        module.rules.append(ModuleRule(**rule))
    db.session.commit()

    summary = {action: 0 for action in ("keep", "update", "fork", "create")}
    for action in plan.actions.values():
        summary[action] += 1
    summary["id_map"] = created
    return module, summary


def create_module(data):
    draft = draft_from_payload(data)
    module = Module(name=draft.name, description=draft.description)
    db.session.add(module)
    module, summary = _save(module, draft)
    logger.info(f"Created module {module.id} with {len(module.links)} questions")
    return module, summary


def update_module(module_id, data):
    module = get_module(module_id)
    draft = draft_from_payload(data, module.id)
    module, summary = _save(module, draft)
    logger.info(
        f"Saved module {module.id}: {summary['update']} updated, "
        f"{summary['fork']} forked, {summary['create']} created"
    )
    return module, summary


def duplicate_module(module_id, name=None, draft_only=False):
    draft = duplicate_draft(load_draft(get_module(module_id)), name)
    if draft_only:
        return draft_to_dict(draft), None
    module = Module(name=draft.name, description=draft.description)
    db.session.add(module)
    module, summary = _save(module, draft)
    logger.info(f"Duplicated module {module_id} as {module.id}")
    return module, summary


def archive_module(module_id, archived=True):
    module = get_module(module_id)
    module.archived = archived
    db.session.commit()
    logger.info(f"{'Archived' if archived else 'Restored'} module {module.id}")
    return module


def _fragebogen_dict(fb):
    data = fb.to_dict()
    data["status"] = derive_status(fb.start_date, fb.end_date, archived=bool(fb.archived))
    return data


def module_usage(module_id):
    module = get_module(module_id)
    fragebogen = (
        Fragebogen.query.join(FragebogenModule, FragebogenModule.fragebogen_id == Fragebogen.id)
        .filter(FragebogenModule.module_id == module.id)
        .order_by(Fragebogen.name)
        .all()
    )
    usage = summarize_usage([_fragebogen_dict(fb) for fb in fragebogen])
    usage["module_id"] = module.id
    return usage


def delete_module_permanently(module_id, delete_questions=False, force=False):
    """Modul endgültig löschen, optional samt Fragen, die danach kein Modul mehr nutzt."""
    module = get_module(module_id)
    usage = module_usage(module_id)
    if usage["total_usage"] and not force:
        raise ConflictError(f"module is used by {usage['total_usage']} fragebogen", usage)

    question_ids = [link.question_id for link in module.links]
    detached = FragebogenModule.query.filter_by(module_id=module.id).delete()
    ResponseAnswer.query.filter_by(module_id=module.id).delete()
    db.session.delete(module)
    db.session.flush()

    deleted, kept = [], []
    if delete_questions:
        orphans = orphaned_questions(question_ids, module_counts(question_ids))
        for question in Question.query.filter(Question.id.in_(orphans)).all():
            # beantwortete Fragen bleiben für die Auswertung erhalten
            if ResponseAnswer.query.filter_by(question_id=question.id).first():
                kept.append(question.id)
                continue
            db.session.delete(question)
            deleted.append(question.id)
    db.session.commit()
    logger.info(
        f"Deleted module {module_id} permanently ({len(deleted)} orphaned questions removed, "
        f"{detached} fragebogen detached)"
    )
    return {
        "deleted_module": module_id,
        "deleted_questions": sorted(deleted),
        "kept_questions": sorted(kept),
        "detached_fragebogen": detached,
    }


def _counts(column, group_column):
    return dict(db.session.query(group_column, func.count(column)).group_by(group_column).all())


def list_modules(archived=False, search=None):
    q = Module.query
    if archived is not None:
        q = q.filter(Module.archived.is_(archived))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Module.name.ilike(like), Module.description.ilike(like)))
    modules = q.order_by(Module.name).all()

    questions = _counts(ModuleQuestion.id, ModuleQuestion.module_id)
    rules = _counts(ModuleRule.id, ModuleRule.module_id)
    usage = _counts(FragebogenModule.id, FragebogenModule.module_id)
    result = []
    for module in modules:
        data = module.to_dict()
        data.update({
            "question_count": questions.get(module.id, 0),
            "rule_count": rules.get(module.id, 0),
            "fragebogen_count": usage.get(module.id, 0),
        })
        result.append(data)
    return result


def module_stats(module_id):
    """Kennzahlen eines Moduls: Fragen, Regeln, Fragebögen, gegebene Antworten."""
    module = get_module(module_id)
    data = module.to_dict()
    data.update({
        "question_count": len(module.links),
        "rule_count": len(module.rules),
        "fragebogen_count": FragebogenModule.query.filter_by(module_id=module.id).count(),
        "answer_count": ResponseAnswer.query.filter_by(module_id=module.id).count(),
    })
    return data
