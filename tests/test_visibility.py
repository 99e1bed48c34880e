import pytest

from rover_admin.logic.conditions import Condition
from rover_admin.logic.visibility import VisibilityResolver


def _display_rule():
    return VisibilityResolver(["Q1", "Q2"], [Condition("Q1", "equals", "No", "hide", ["Q2"])])


def test_hide_when_condition_met():
    resolver = _display_rule()
    assert resolver.hidden({"Q1": "No"}) == {"Q2"}
    assert resolver.visible_sequence({"Q1": "No"}) == ["Q1"]
    assert resolver.next_visible(0, {"Q1": "No"}) is None


def test_visible_when_condition_not_met():
    resolver = _display_rule()
    assert resolver.visible_sequence({"Q1": "Yes"}) == ["Q1", "Q2"]
    assert resolver.next_visible(0, {"Q1": "Yes"}) == 1


def test_unanswered_trigger_has_no_effect():
    resolver = VisibilityResolver(["Q1", "Q2"], [Condition("Q1", "equals", "Yes", "show", ["Q2"])])
    assert resolver.hidden({}) == set()
    assert resolver.hidden({"Q1": None}) == set()
    assert resolver.hidden({"Q1": "No"}) == {"Q2"}
    assert resolver.hidden({"Q1": "Yes"}) == set()


def test_hide_dominates_over_show():
    resolver = VisibilityResolver(["Q1", "Q2", "Q3"], [
        Condition("Q1", "equals", "Yes", "show", ["Q3"]),
        Condition("Q2", "greater_than", "10", "hide", ["Q3"]),
    ])
    assert resolver.is_hidden("Q3", {"Q1": "Yes", "Q2": 11})
    assert not resolver.is_hidden("Q3", {"Q1": "Yes", "Q2": 10})


def test_navigation_skips_hidden_questions():
    resolver = VisibilityResolver(["Q1", "Q2", "Q3", "Q4"], [
        Condition("Q1", "equals", "Nein", "hide", ["Q2", "Q3"]),
    ])
    answers = {"Q1": "Nein"}
    assert resolver.next_visible(0, answers) == 3
    assert resolver.previous_visible(3, answers) == 0
    assert resolver.previous_visible(0, answers) is None
    assert resolver.first_visible(answers) == 0
    assert resolver.last_visible(answers) == 3


def test_hidden_trigger_keeps_last_answer_by_default():
    conditions = [
        Condition("Q1", "equals", "Nein", "hide", ["Q2"]),
        Condition("Q2", "equals", "leer", "hide", ["Q3"]),
    ]
    answers = {"Q1": "Nein", "Q2": "leer"}
    assert VisibilityResolver(["Q1", "Q2", "Q3"], conditions).hidden(answers) == {"Q2", "Q3"}
    # mit Kaskade gilt die Antwort der ausgeblendeten Q2 nicht mehr
    assert VisibilityResolver(["Q1", "Q2", "Q3"], conditions, cascade=True).hidden(answers) == {"Q2"}


def test_index_of_unknown_question():
    with pytest.raises(KeyError):
        _display_rule().index_of("Q9")
