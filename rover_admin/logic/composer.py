"""Module zusammensetzen: lokale IDs, Copy-on-Write beim Speichern, Duplizieren, Löschen.

Die Funktionen hier arbeiten nur auf Entwürfen (``ModuleDraft``) und den Zählern, die
der Aufrufer aus der Datenbank liefert; geschrieben wird in ``services.modules``.

Regeln werden nie mit Datenbank-IDs gespeichert, sondern mit modul-lokalen IDs
(``q1``, ``q2``, ... in Anzeigereihenfolge), weil eine Frage bei jedem Speichern
eine neue Identität bekommen kann.
"""
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from ..errors import ValidationError
from .conditions import Condition, parse_conditions
from .question_config import QuestionConfig, config_columns, parse_config

TEMP_PREFIXES = ("q-", "temp-", "dup-")

KEEP = "keep"
UPDATE = "update"
FORK = "fork"
CREATE = "create"


def is_temp_id(question_id: str) -> bool:
    return str(question_id).startswith(TEMP_PREFIXES)


def new_temp_id(prefix: str = "temp-") -> str:
    return f"{prefix}{uuid.uuid4().hex}"


@dataclass
class DraftQuestion:
    id: str
    type: str
    question_text: str
    config: QuestionConfig
    instruction: Optional[str] = None
    required: bool = True
    order: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int) -> "DraftQuestion":
        qtype = data.get("type")
        text = (data.get("question_text") or "").strip()
        if not text:
            raise ValidationError(f"question {position}: question_text is required")
        order = data.get("order")
        if order is None:
            order = data.get("order_index", position)
        return cls(
            id=str(data.get("id") or new_temp_id()),
            type=qtype,
            question_text=text,
            config=parse_config(qtype, data),
            instruction=data.get("instruction") or None,
            required=bool(data.get("required", True)),
            order=int(order),
        )

    def content(self) -> Dict[str, Any]:
        """Gespeicherte Frage-Spalten (ohne Verknüpfungsfelder wie required/order)."""
        columns = {
            "type": self.type,
            "question_text": self.question_text,
            "instruction": self.instruction,
        }
        columns.update(config_columns(self.config))
        return columns


@dataclass
class ModuleDraft:
    name: str
    questions: List[DraftQuestion]
    conditions: List[Condition] = field(default_factory=list)
    description: Optional[str] = None
    id: Optional[str] = None

    def ordered(self) -> List[DraftQuestion]:
        return sorted(self.questions, key=lambda q: q.order)

    def question_ids(self) -> List[str]:
        return [q.id for q in self.ordered()]

    def remap(self, id_map: Mapping[str, str]) -> "ModuleDraft":
        """Neue Identitäten überall einsetzen, auch als Auslöser/Ziel von Bedingungen."""
        return replace(
            self,
            questions=[replace(q, id=id_map.get(q.id, q.id)) for q in self.questions],
            conditions=[c.remap(id_map) for c in self.conditions],
        )


def local_ids(draft: ModuleDraft) -> Dict[str, str]:
    return {q.id: f"q{i}" for i, q in enumerate(draft.ordered(), start=1)}


def validate_draft(draft: ModuleDraft) -> None:
    if not (draft.name or "").strip():
        raise ValidationError("name is required")
    if not draft.questions:
        raise ValidationError("a module needs at least one question")
    ids = [q.id for q in draft.questions]
    if len(set(ids)) != len(ids):
        raise ValidationError("question ids must be unique within a module")
    orders = [q.order for q in draft.questions]
    if len(set(orders)) != len(orders):
        raise ValidationError("question order must be unique within a module")

    order_of = {q.id: q.order for q in draft.questions}
    for condition in draft.conditions:
        unknown = [ref for ref in condition.references() if ref not in order_of]
        if unknown:
            raise ValidationError(f"condition references unknown question(s): {', '.join(unknown)}")
        trigger_order = order_of[condition.trigger]
        for target in condition.targets:
            # nur spätere Fragen dürfen Ziel sein
            if order_of[target] <= trigger_order:
                raise ValidationError(
                    f"condition target {target} must come after its trigger {condition.trigger}"
                )


def draft_from_payload(data: Mapping[str, Any], module_id: Optional[str] = None) -> ModuleDraft:
    questions = [DraftQuestion.from_dict(q, i) for i, q in enumerate(data.get("questions") or [], start=1)]
    conditions = parse_conditions(data.get("rules") or data.get("conditions"))
    # Bedingungen können auch an der Auslöser-Frage hängen (Editor-Format)
    for q in data.get("questions") or []:
        conditions.extend(parse_conditions(q.get("conditions")))
    draft = ModuleDraft(
        name=(data.get("name") or "").strip(),
        description=data.get("description") or None,
        questions=questions,
        conditions=conditions,
        id=module_id,
    )
    validate_draft(draft)
    return draft


def conditions_from_rules(rules: Iterable[Mapping[str, Any]], local_to_id: Mapping[str, str]) -> List[Condition]:
    """Gespeicherte Regeln (lokale IDs) zurück in Bedingungen auf Fragen-IDs."""
    conditions = []
    for rule in rules:
        trigger = local_to_id.get(rule["trigger_local_id"])
        targets = [local_to_id[t] for t in rule.get("target_local_ids") or [] if t in local_to_id]
        if trigger is None or not targets:
            # Regel zeigt auf eine Frage, die nicht mehr im Modul ist
            continue
        conditions.append(Condition(
            trigger=trigger,
            operator=rule.get("operator") or "equals",
            value=rule.get("trigger_answer"),
            value_max=rule.get("trigger_answer_max"),
            action=rule["action"],
            targets=targets,
            id=rule.get("id"),
        ))
    return conditions


def serialize_rules(draft: ModuleDraft) -> List[Dict[str, Any]]:
    mapping = local_ids(draft)
    rules = []
    for condition in draft.conditions:
        rules.append({
            "trigger_local_id": mapping[condition.trigger],
            "trigger_answer": "" if condition.value is None else str(condition.value),
            "operator": condition.operator.value,
            "trigger_answer_max": None if condition.value_max in (None, "") else str(condition.value_max),
            "action": condition.action.value,
            "target_local_ids": [mapping[t] for t in condition.targets],
        })
    return rules


def module_links(draft: ModuleDraft) -> List[Dict[str, Any]]:
    mapping = local_ids(draft)
    return [
        {"question_id": q.id, "order_index": i, "required": q.required, "local_id": mapping[q.id]}
        for i, q in enumerate(draft.ordered())
    ]


@dataclass
class StoredQuestion:
    """Was die Datenbank über eine bestehende Frage weiß."""

    content: Dict[str, Any]
    module_count: int
    in_module: bool = False

    @property
    def shared_elsewhere(self) -> bool:
        return self.module_count - (1 if self.in_module else 0) > 0


@dataclass
class SavePlan:
    draft: ModuleDraft
    actions: Dict[str, str]

    def questions_with(self, action: str) -> List[DraftQuestion]:
        return [q for q in self.draft.ordered() if self.actions[q.id] == action]

    @property
    def to_create(self) -> List[DraftQuestion]:
        """Neue Fragen und Abspaltungen geteilter Fragen."""
        return [q for q in self.draft.ordered() if self.actions[q.id] in (CREATE, FORK)]

    @property
    def to_update(self) -> List[DraftQuestion]:
        return self.questions_with(UPDATE)

    def finalize(self, created: Mapping[str, str]) -> ModuleDraft:
        missing = [q.id for q in self.to_create if q.id not in created]
        if missing:
            raise ValueError(f"no new identity for {missing}")
        return self.draft.remap(created)


def plan_save(draft: ModuleDraft, stored: Mapping[str, StoredQuestion]) -> SavePlan:
    """Entscheidet pro Frage: behalten, an Ort und Stelle ändern, abspalten oder neu anlegen.

    Geändert wird eine bestehende Frage nur, wenn kein anderes Modul sie verwendet;
    sonst entsteht eine neue Frage und das Original bleibt für die anderen Module unberührt.
    """
    actions: Dict[str, str] = {}
    for q in draft.questions:
        if is_temp_id(q.id):
            actions[q.id] = CREATE
            continue
        state = stored.get(q.id)
        if state is None:
            raise ValidationError(f"unknown question {q.id}")
        if _same_content(state.content, q.content()):
            actions[q.id] = KEEP
        elif state.shared_elsewhere:
            actions[q.id] = FORK
        else:
            actions[q.id] = UPDATE
    return SavePlan(draft=draft, actions=actions)


def _same_content(stored: Mapping[str, Any], edited: Mapping[str, Any]) -> bool:
    for key, value in edited.items():
        if (stored.get(key) or None) != (value or None):
            return False
    return True


def duplicate_draft(draft: ModuleDraft, name: Optional[str] = None) -> ModuleDraft:
    """Tiefe Kopie mit neuen (temporären) Fragen-IDs; Bedingungen zeigen nur auf die Kopien."""
    id_map = {q.id: new_temp_id("dup-") for q in draft.questions}
    copy = draft.remap(id_map)
    return replace(
        copy,
        id=None,
        name=name or f"Kopie von {draft.name}",
        conditions=[replace(c, id=None) for c in copy.conditions],
    )


def orphaned_questions(question_ids: Iterable[str], remaining_counts: Mapping[str, int]) -> Set[str]:
    """Fragen, die nach dem Entfernen eines Moduls von keinem Modul mehr verwendet werden."""
    return {qid for qid in question_ids if remaining_counts.get(qid, 0) == 0}


def summarize_usage(fragebogen: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    active, inactive = [], []
    for fb in fragebogen:
        if fb.get("status") == "active" and not fb.get("archived"):
            active.append(fb)
        else:
            inactive.append(fb)
    return {
        "active_fragebogen": active,
        "inactive_fragebogen": inactive,
        "active_count": len(active),
        "inactive_count": len(inactive),
        "total_usage": len(active) + len(inactive),
    }
