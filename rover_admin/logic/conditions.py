"""Bedingungen (Regeln / Bezüge) zwischen Fragen.

Eine Bedingung hängt an genau einer Auslöser-Frage, vergleicht deren Antwort per
Operator mit einem Wert (bei ``between`` mit zwei Werten) und blendet die Ziel-Fragen
ein (``show``) oder aus (``hide``).
"""
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from ..errors import ValidationError
from .coerce import to_number, to_text


class Operator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"
    CONTAINS = "contains"


class Action(str, Enum):
    SHOW = "show"
    HIDE = "hide"


def _numeric(compare: Callable[[float, float], bool]):
    def check(answer, value, _value_max) -> bool:
        a, v = to_number(answer), to_number(value)
        if a is None or v is None:
            return False
        return compare(a, v)
    return check


def _between(answer, value, value_max) -> bool:
    a, lo, hi = to_number(answer), to_number(value), to_number(value_max)
    if a is None or lo is None or hi is None:
        return False
    return lo <= a <= hi


_OPERATORS: Dict[Operator, Callable[[Any, Any, Any], bool]] = {
    Operator.EQUALS: lambda a, v, _m: to_text(a) == to_text(v),
    Operator.NOT_EQUALS: lambda a, v, _m: to_text(a) != to_text(v),
    Operator.GREATER_THAN: _numeric(lambda a, v: a > v),
    Operator.LESS_THAN: _numeric(lambda a, v: a < v),
    Operator.BETWEEN: _between,
    Operator.CONTAINS: lambda a, v, _m: to_text(v) in to_text(a),
}


def evaluate(operator: Operator, answer: Any, value: Any, value_max: Any = None) -> bool:
    return _OPERATORS[Operator(operator)](answer, value, value_max)


def _parse_enum(enum_cls, raw, label):
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"invalid {label} '{raw}' (allowed: {allowed})")


@dataclass(frozen=True)
class Condition:
    trigger: str
    operator: Operator
    value: Any
    action: Action
    targets: Tuple[str, ...]
    value_max: Any = None
    id: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "operator", _parse_enum(Operator, self.operator, "operator"))
        object.__setattr__(self, "action", _parse_enum(Action, self.action, "action"))
        object.__setattr__(self, "targets", tuple(self.targets))
        if not self.trigger:
            raise ValidationError("condition needs a trigger question")
        if not self.targets:
            raise ValidationError("condition needs at least one target question")
        if self.trigger in self.targets:
            raise ValidationError("a question cannot be the target of its own condition")
        if self.operator is Operator.BETWEEN and (self.value_max is None or self.value_max == ""):
            raise ValidationError("operator 'between' needs trigger_answer_max")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Condition":
        """Liest das Format des Modul-Editors (Fragen-IDs statt lokaler IDs)."""
        targets = data.get("target_question_ids") or data.get("targets") or []
        if isinstance(targets, str):
            targets = [targets]
        return cls(
            trigger=data.get("trigger_question_id") or data.get("trigger") or "",
            operator=data.get("operator") or Operator.EQUALS,
            value=data.get("trigger_answer", data.get("value")),
            value_max=data.get("trigger_answer_max", data.get("value_max")),
            action=data.get("action") or "",
            targets=targets,
            id=data.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "trigger_question_id": self.trigger,
            "operator": self.operator.value,
            "trigger_answer": self.value,
            "trigger_answer_max": self.value_max,
            "action": self.action.value,
            "target_question_ids": list(self.targets),
        }

    def is_met(self, answer: Any) -> bool:
        return evaluate(self.operator, answer, self.value, self.value_max)

    def hides(self, answer: Any) -> bool:
        """True, wenn diese Bedingung bei dieser Antwort ihre Ziele ausblendet."""
        met = self.is_met(answer)
        return met if self.action is Action.HIDE else not met

    def references(self) -> Tuple[str, ...]:
        return (self.trigger,) + self.targets

    def remap(self, id_map: Mapping[str, str]) -> "Condition":
        return dataclasses.replace(
            self,
            trigger=id_map.get(self.trigger, self.trigger),
            targets=tuple(id_map.get(t, t) for t in self.targets),
        )


def parse_conditions(items: Optional[Iterable[Mapping[str, Any]]]):
    return [Condition.from_dict(item) for item in (items or [])]
