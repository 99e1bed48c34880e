"""Welche Fragen sieht der GL gerade?

Eine Frage ist ausgeblendet, sobald mindestens eine Bedingung, die sie als Ziel hat,
bei der aktuellen Antwort ihres Auslösers "hide" ergibt (hide dominiert). Bedingungen,
deren Auslöser noch nicht beantwortet ist, wirken gar nicht.
"""
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from .conditions import Condition


def has_answer(answers: Mapping[str, Any], question_id: str) -> bool:
    return answers.get(question_id) is not None


class VisibilityResolver:
    """Sichtbarkeit über eine geordnete Fragenliste.

    ``cascade=False`` (Standard): ein ausgeblendeter Auslöser wirkt mit seiner zuletzt
    erfassten Antwort weiter. ``cascade=True``: Antworten ausgeblendeter Fragen gelten
    als nicht erfasst, bis sich die ausgeblendete Menge nicht mehr ändert.
    """

    def __init__(self, question_ids: Sequence[str], conditions: Iterable[Condition], cascade: bool = False):
        self.question_ids: List[str] = list(question_ids)
        self.conditions: List[Condition] = list(conditions)
        self.cascade = cascade
        self._by_target: Dict[str, List[Condition]] = defaultdict(list)
        for condition in self.conditions:
            for target in condition.targets:
                self._by_target[target].append(condition)

    def _hidden_by(self, question_id: str, answers: Mapping[str, Any]) -> bool:
        for condition in self._by_target.get(question_id, ()):
            if not has_answer(answers, condition.trigger):
                continue
            if condition.hides(answers[condition.trigger]):
                return True
        return False

    def hidden(self, answers: Mapping[str, Any]) -> Set[str]:
        hidden = {q for q in self.question_ids if self._hidden_by(q, answers)}
        if not self.cascade:
            return hidden
        # Fixpunkt: ohne Reihenfolge-Invariante kann eine Runde nicht reichen
        for _ in range(len(self.question_ids)):
            effective = {k: v for k, v in answers.items() if k not in hidden}
            again = {q for q in self.question_ids if self._hidden_by(q, effective)}
            if again == hidden:
                break
            hidden = again
        return hidden

    def is_hidden(self, question_id: str, answers: Mapping[str, Any]) -> bool:
        if not self.cascade:
            return self._hidden_by(question_id, answers)
        return question_id in self.hidden(answers)

    def visible_sequence(self, answers: Mapping[str, Any]) -> List[str]:
        hidden = self.hidden(answers)
        return [q for q in self.question_ids if q not in hidden]

    def next_visible(self, index: int, answers: Mapping[str, Any]) -> Optional[int]:
        """Index der nächsten sichtbaren Frage nach ``index`` oder None am Ende."""
        hidden = self.hidden(answers)
        for i in range(index + 1, len(self.question_ids)):
            if self.question_ids[i] not in hidden:
                return i
        return None

    def previous_visible(self, index: int, answers: Mapping[str, Any]) -> Optional[int]:
        hidden = self.hidden(answers)
        for i in range(min(index, len(self.question_ids)) - 1, -1, -1):
            if self.question_ids[i] not in hidden:
                return i
        return None

    def first_visible(self, answers: Mapping[str, Any]) -> Optional[int]:
        return self.next_visible(-1, answers)

    def last_visible(self, answers: Mapping[str, Any]) -> Optional[int]:
        return self.previous_visible(len(self.question_ids), answers)

    def index_of(self, question_id: str) -> int:
        try:
            return self.question_ids.index(question_id)
        except ValueError:
            raise KeyError(question_id) from None
