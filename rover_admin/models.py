import uuid
from datetime import datetime

from .extensions import db


def _uuid():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


class Question(db.Model):
    __tablename__ = "fb_questions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    type = db.Column(db.String(30), nullable=False, index=True)
    question_text = db.Column(db.Text, nullable=False)
    instruction = db.Column(db.Text)
    is_template = db.Column(db.Boolean, default=False, index=True)

    # typabhängige Konfiguration, siehe logic/question_config.py
    options = db.Column(db.JSON)
    likert_scale = db.Column(db.JSON)
    matrix_config = db.Column(db.JSON)
    numeric_constraints = db.Column(db.JSON)
    slider_config = db.Column(db.JSON)

    archived = db.Column(db.Boolean, default=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def content(self):
        return {
            "type": self.type,
            "question_text": self.question_text,
            "instruction": self.instruction,
            "options": self.options,
            "likert_scale": self.likert_scale,
            "matrix_config": self.matrix_config,
            "numeric_constraints": self.numeric_constraints,
            "slider_config": self.slider_config,
        }

    def to_dict(self):
        data = self.content()
        data.update({
            "id": self.id,
            "is_template": bool(self.is_template),
            "archived": bool(self.archived),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        })
        return data


class Module(db.Model):
    __tablename__ = "fb_modules"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)
    archived = db.Column(db.Boolean, default=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    links = db.relationship(
        "ModuleQuestion", backref="module", lazy=True,
        order_by="ModuleQuestion.order_index", cascade="all, delete-orphan",
    )
    rules = db.relationship("ModuleRule", backref="module", lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "archived": bool(self.archived),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ModuleQuestion(db.Model):
    __tablename__ = "fb_module_questions"
    __table_args__ = (
        db.UniqueConstraint("module_id", "question_id", name="unique_module_question"),
        db.UniqueConstraint("module_id", "order_index", name="unique_module_order"),
        db.UniqueConstraint("module_id", "local_id", name="unique_module_local_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    module_id = db.Column(db.String(36), db.ForeignKey("fb_modules.id"), nullable=False, index=True)
    question_id = db.Column(db.String(36), db.ForeignKey("fb_questions.id"), nullable=False, index=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    required = db.Column(db.Boolean, default=True)
    local_id = db.Column(db.String(50), nullable=False)

    question = db.relationship("Question", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "order_index": self.order_index,
            "required": bool(self.required),
            "local_id": self.local_id,
            "question": self.question.to_dict() if self.question else None,
        }


class ModuleRule(db.Model):
    __tablename__ = "fb_module_rules"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    module_id = db.Column(db.String(36), db.ForeignKey("fb_modules.id"), nullable=False, index=True)
    trigger_local_id = db.Column(db.String(50), nullable=False)
    trigger_answer = db.Column(db.Text, nullable=False, default="")
    operator = db.Column(db.String(20), nullable=False, default="equals")
    trigger_answer_max = db.Column(db.Text)
    action = db.Column(db.String(10), nullable=False)
    target_local_ids = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "module_id": self.module_id,
            "trigger_local_id": self.trigger_local_id,
            "trigger_answer": self.trigger_answer,
            "operator": self.operator,
            "trigger_answer_max": self.trigger_answer_max,
            "action": self.action,
            "target_local_ids": list(self.target_local_ids or []),
        }


class Fragebogen(db.Model):
    __tablename__ = "fb_fragebogen"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="scheduled", index=True)
    archived = db.Column(db.Boolean, default=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    module_links = db.relationship(
        "FragebogenModule", backref="fragebogen", lazy=True,
        order_by="FragebogenModule.order_index", cascade="all, delete-orphan",
    )
    market_links = db.relationship("FragebogenMarket", backref="fragebogen", lazy=True, cascade="all, delete-orphan")

    @property
    def module_ids(self):
        return [link.module_id for link in self.module_links]

    @property
    def market_ids(self):
        return [link.market_id for link in self.market_links]

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "status": self.status,
            "archived": bool(self.archived),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class FragebogenModule(db.Model):
    __tablename__ = "fb_fragebogen_modules"
    __table_args__ = (
        db.UniqueConstraint("fragebogen_id", "module_id", name="unique_fragebogen_module"),
        db.UniqueConstraint("fragebogen_id", "order_index", name="unique_fragebogen_order"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    fragebogen_id = db.Column(db.String(36), db.ForeignKey("fb_fragebogen.id"), nullable=False, index=True)
    module_id = db.Column(db.String(36), db.ForeignKey("fb_modules.id"), nullable=False, index=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    module = db.relationship("Module", lazy="joined")


class FragebogenMarket(db.Model):
    __tablename__ = "fb_fragebogen_markets"
    __table_args__ = (
        db.UniqueConstraint("fragebogen_id", "market_id", name="unique_fragebogen_market"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    fragebogen_id = db.Column(db.String(36), db.ForeignKey("fb_fragebogen.id"), nullable=False, index=True)
    market_id = db.Column(db.String(50), db.ForeignKey("markets.id"), nullable=False, index=True)
    assigned_at = db.Column(db.DateTime, default=datetime.utcnow)


class Market(db.Model):
    __tablename__ = "markets"

    id = db.Column(db.String(50), primary_key=True)
    internal_id = db.Column(db.String(50), unique=True)
    name = db.Column(db.String(255), nullable=False)
    chain = db.Column(db.String(100), index=True)
    banner = db.Column(db.String(100))
    address = db.Column(db.String(255))
    city = db.Column(db.String(100), index=True)
    postal_code = db.Column(db.String(20))
    gebietsleiter_name = db.Column(db.String(100), index=True)
    gebietsleiter_id = db.Column(db.String(36), index=True)
    subgroup = db.Column(db.String(100), index=True)
    frequency = db.Column(db.Integer, default=12)
    current_visits = db.Column(db.Integer, default=0)
    last_visit_date = db.Column(db.Date)
    is_active = db.Column(db.Boolean, default=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    EDITABLE = (
        "internal_id", "name", "chain", "banner", "address", "city", "postal_code",
        "gebietsleiter_name", "gebietsleiter_id", "subgroup", "frequency", "is_active",
    )

    def to_dict(self):
        data = {k: getattr(self, k) for k in self.EDITABLE}
        data.update({
            "id": self.id,
            "current_visits": self.current_visits or 0,
            "last_visit_date": _iso(self.last_visit_date),
            "is_active": bool(self.is_active),
        })
        return data


class Response(db.Model):
    __tablename__ = "fb_responses"
    __table_args__ = (
        db.UniqueConstraint("fragebogen_id", "gebietsleiter_id", "market_id", name="unique_response"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    fragebogen_id = db.Column(db.String(36), db.ForeignKey("fb_fragebogen.id"), nullable=False, index=True)
    gebietsleiter_id = db.Column(db.String(36), nullable=False, index=True)
    market_id = db.Column(db.String(50), db.ForeignKey("markets.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="in_progress", index=True)
    started_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime)

    answers = db.relationship("ResponseAnswer", backref="response", lazy=True, cascade="all, delete-orphan")
    market = db.relationship("Market", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "fragebogen_id": self.fragebogen_id,
            "gebietsleiter_id": self.gebietsleiter_id,
            "market_id": self.market_id,
            "status": self.status,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "market": {"id": self.market.id, "name": self.market.name, "chain": self.market.chain}
            if self.market else None,
        }


class ResponseAnswer(db.Model):
    __tablename__ = "fb_response_answers"
    __table_args__ = (
        db.UniqueConstraint("response_id", "question_id", "module_id", name="unique_response_answer"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    response_id = db.Column(db.String(36), db.ForeignKey("fb_responses.id"), nullable=False, index=True)
    question_id = db.Column(db.String(36), db.ForeignKey("fb_questions.id"), nullable=False, index=True)
    module_id = db.Column(db.String(36), db.ForeignKey("fb_modules.id"), nullable=False, index=True)
    answer_text = db.Column(db.Text)
    answer_numeric = db.Column(db.Float)
    answer_json = db.Column(db.JSON)
    answer_file_url = db.Column(db.Text)
    answered_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def value(self):
        """Der eine belegte Antwortwert, in der Reihenfolge json > numeric > text > file."""
        for v in (self.answer_json, self.answer_numeric, self.answer_text, self.answer_file_url):
            if v is not None:
                return v
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "response_id": self.response_id,
            "question_id": self.question_id,
            "module_id": self.module_id,
            "answer_text": self.answer_text,
            "answer_numeric": self.answer_numeric,
            "answer_json": self.answer_json,
            "answer_file_url": self.answer_file_url,
            "answered_at": _iso(self.answered_at),
        }


class ZeiterfassungEntry(db.Model):
    __tablename__ = "fb_zeiterfassung_submissions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    response_id = db.Column(db.String(36), db.ForeignKey("fb_responses.id"))
    fragebogen_id = db.Column(db.String(36), db.ForeignKey("fb_fragebogen.id"))
    gebietsleiter_id = db.Column(db.String(36), nullable=False, index=True)
    market_id = db.Column(db.String(50), db.ForeignKey("markets.id"), nullable=False, index=True)
    fahrzeit_von = db.Column(db.String(5))
    fahrzeit_bis = db.Column(db.String(5))
    fahrzeit_diff = db.Column(db.Integer)  # Minuten
    besuchszeit_von = db.Column(db.String(5))
    besuchszeit_bis = db.Column(db.String(5))
    besuchszeit_diff = db.Column(db.Integer)  # Minuten
    distanz_km = db.Column(db.Float)
    kommentar = db.Column(db.Text)
    food_prozent = db.Column(db.Integer)
    # Tageserfassung: Besuchsfolge und daraus berechnete Fahrzeit
    day_tracking_id = db.Column(db.String(36), db.ForeignKey("fb_day_tracking.id"), index=True)
    visit_order = db.Column(db.Integer)
    market_start_time = db.Column(db.String(5))
    market_end_time = db.Column(db.String(5))
    calculated_fahrzeit = db.Column(db.Integer)  # Minuten
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    market = db.relationship("Market", lazy="joined")

    @property
    def visit_start(self):
        return self.market_start_time or self.besuchszeit_von

    @property
    def visit_end(self):
        return self.market_end_time or self.besuchszeit_bis

    def to_dict(self):
        return {
            "id": self.id,
            "response_id": self.response_id,
            "fragebogen_id": self.fragebogen_id,
            "gebietsleiter_id": self.gebietsleiter_id,
            "market_id": self.market_id,
            "fahrzeit_von": self.fahrzeit_von,
            "fahrzeit_bis": self.fahrzeit_bis,
            "fahrzeit_diff": self.fahrzeit_diff,
            "besuchszeit_von": self.besuchszeit_von,
            "besuchszeit_bis": self.besuchszeit_bis,
            "besuchszeit_diff": self.besuchszeit_diff,
            "distanz_km": self.distanz_km,
            "kommentar": self.kommentar,
            "food_prozent": self.food_prozent,
            "day_tracking_id": self.day_tracking_id,
            "visit_order": self.visit_order,
            "market_start_time": self.market_start_time,
            "market_end_time": self.market_end_time,
            "calculated_fahrzeit": self.calculated_fahrzeit,
            "created_at": _iso(self.created_at),
            "market": {"id": self.market.id, "name": self.market.name, "chain": self.market.chain}
            if self.market else None,
        }


class DayTracking(db.Model):
    """Arbeitstag eines GL, von "Tag starten" bis "Tag beenden"."""

    __tablename__ = "fb_day_tracking"
    __table_args__ = (
        db.UniqueConstraint("gebietsleiter_id", "tracking_date", name="unique_gl_tracking_date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    gebietsleiter_id = db.Column(db.String(36), nullable=False, index=True)
    tracking_date = db.Column(db.Date, nullable=False, index=True)
    day_start_time = db.Column(db.String(5))
    day_end_time = db.Column(db.String(5))
    skipped_first_fahrzeit = db.Column(db.Boolean, default=False)
    # Summen in Minuten, gesetzt beim Tagesende
    total_fahrzeit = db.Column(db.Integer)
    total_besuchszeit = db.Column(db.Integer)
    total_unterbrechung = db.Column(db.Integer)
    total_arbeitszeit = db.Column(db.Integer)
    markets_visited = db.Column(db.Integer, default=0)
    status = db.Column(db.String(20), default="active", index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "gebietsleiter_id": self.gebietsleiter_id,
            "tracking_date": _iso(self.tracking_date),
            "day_start_time": self.day_start_time,
            "day_end_time": self.day_end_time,
            "skipped_first_fahrzeit": bool(self.skipped_first_fahrzeit),
            "total_fahrzeit": self.total_fahrzeit,
            "total_besuchszeit": self.total_besuchszeit,
            "total_unterbrechung": self.total_unterbrechung,
            "total_arbeitszeit": self.total_arbeitszeit,
            "markets_visited": self.markets_visited or 0,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ZusatzEntry(db.Model):
    """Zeit außerhalb von Marktbesuchen (Werkstatt, Schulung, Unterbrechung, ...)."""

    __tablename__ = "fb_zusatz_zeiterfassung"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    gebietsleiter_id = db.Column(db.String(36), nullable=False, index=True)
    entry_date = db.Column(db.Date, nullable=False, index=True)
    reason = db.Column(db.String(50), nullable=False, index=True)
    reason_label = db.Column(db.String(100), nullable=False)
    zeit_von = db.Column(db.String(5), nullable=False)
    zeit_bis = db.Column(db.String(5), nullable=False)
    zeit_diff = db.Column(db.Integer)  # Minuten
    kommentar = db.Column(db.Text)
    is_work_time_deduction = db.Column(db.Boolean, default=False)
    day_tracking_id = db.Column(db.String(36), db.ForeignKey("fb_day_tracking.id"), index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "gebietsleiter_id": self.gebietsleiter_id,
            "entry_date": _iso(self.entry_date),
            "reason": self.reason,
            "reason_label": self.reason_label,
            "zeit_von": self.zeit_von,
            "zeit_bis": self.zeit_bis,
            "zeit_diff": self.zeit_diff,
            "kommentar": self.kommentar,
            "is_work_time_deduction": bool(self.is_work_time_deduction),
            "day_tracking_id": self.day_tracking_id,
            "created_at": _iso(self.created_at),
        }
