"""Gemeinsame Fixtures: App mit TestingConfig (SQLite im Speicher) und kleine Fabriken."""
from datetime import date, timedelta

import pytest

from rover_admin import create_app
from rover_admin.extensions import db as _db
from rover_admin.models import Market


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    with app.app_context():
        yield _db


@pytest.fixture
def markets(app):
    """Drei aktive Märkte M1..M3."""
    rows = [
        Market(id=f"M{i}", internal_id=f"INT-{i}", name=f"Markt {i}", chain="BILLA",
               city="Wien", postal_code=f"10{i}0", frequency=12, current_visits=0)
        for i in range(1, 4)
    ]
    with app.app_context():
        _db.session.add_all(rows)
        _db.session.commit()
    return [f"M{i}" for i in range(1, 4)]


def question_payload(qid, text, order, qtype="open_text", **extra):
    data = {"id": qid, "type": qtype, "question_text": text, "order": order, "required": True}
    data.update(extra)
    return data


@pytest.fixture
def make_module(client):
    """Legt ein Modul über die API an und liefert das JSON zurück."""
    def _make(name="Platzierung", questions=None, rules=None):
        questions = questions or [
            question_payload("temp-1", "Ist das Display aufgebaut?", 0, "single_choice", options=["Ja", "Nein"]),
            question_payload("temp-2", "Warum nicht?", 1),
        ]
        resp = client.post("/api/fragebogen/modules", json={
            "name": name, "questions": questions, "rules": rules or [],
        })
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _make


@pytest.fixture
def make_fragebogen(client):
    def _make(module_ids, market_ids, name="Frühjahr", **extra):
        body = {
            "name": name,
            "module_ids": module_ids,
            "market_ids": market_ids,
            "start_date": (date.today() - timedelta(days=1)).isoformat(),
            "end_date": (date.today() + timedelta(days=30)).isoformat(),
        }
        body.update(extra)
        return client.post("/api/fragebogen/fragebogen", json=body)
    return _make
