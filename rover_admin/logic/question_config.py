"""Typabhängige Konfiguration einer Frage.

Jeder Fragetyp trägt nur die Felder, die er braucht (Optionen, Likert-Skala, Matrix,
Zahlengrenzen, Slider). ``parse_config`` liest die Spalten-/API-Form
(``options``, ``likert_scale``, ``matrix_config``, ``numeric_constraints``,
``slider_config``), ``to_columns`` schreibt sie zurück.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ValidationError
from .coerce import to_number

QUESTION_TYPES = (
    "single_choice",
    "yesno",
    "likert",
    "multiple_choice",
    "photo_upload",
    "matrix",
    "open_text",
    "open_numeric",
    "slider",
    "barcode_scanner",
)

CONFIG_COLUMNS = ("options", "likert_scale", "matrix_config", "numeric_constraints", "slider_config")


def _labels(raw: Any, what: str) -> List[str]:
    if not isinstance(raw, (list, tuple)):
        raise ValidationError(f"{what} must be a list")
    items = [str(v).strip() for v in raw if v is not None and str(v).strip()]
    if not items:
        raise ValidationError(f"{what} must not be empty")
    return items


def _bound(raw: Mapping[str, Any], key: str, what: str, required: bool = True) -> Optional[float]:
    value = raw.get(key)
    if value is None or value == "":
        if required:
            raise ValidationError(f"{what}.{key} is required")
        return None
    number = to_number(value)
    if number is None:
        raise ValidationError(f"{what}.{key} must be a number")
    return number


def _plain(number: Optional[float]):
    if number is not None and float(number).is_integer():
        return int(number)
    return number


@dataclass
class QuestionConfig:
    question_type: str

    def to_columns(self) -> Dict[str, Any]:
        return {}


@dataclass
class NoConfig(QuestionConfig):
    """open_text, yesno, photo_upload, barcode_scanner"""


@dataclass
class ChoiceConfig(QuestionConfig):
    options: List[str] = field(default_factory=list)

    def to_columns(self):
        return {"options": list(self.options)}


@dataclass
class LikertConfig(QuestionConfig):
    min: int = 1
    max: int = 5
    min_label: str = ""
    max_label: str = ""

    def to_columns(self):
        return {"likert_scale": {
            "min": self.min, "max": self.max,
            "minLabel": self.min_label, "maxLabel": self.max_label,
        }}


@dataclass
class MatrixConfig(QuestionConfig):
    rows: List[str] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)

    def to_columns(self):
        return {"matrix_config": {"rows": list(self.rows), "columns": list(self.columns)}}


@dataclass
class NumericConfig(QuestionConfig):
    min: Optional[float] = None
    max: Optional[float] = None
    decimals: bool = False

    def to_columns(self):
        constraints: Dict[str, Any] = {"decimals": self.decimals}
        if self.min is not None:
            constraints["min"] = _plain(self.min)
        if self.max is not None:
            constraints["max"] = _plain(self.max)
        return {"numeric_constraints": constraints}


@dataclass
class SliderConfig(QuestionConfig):
    min: float = 0
    max: float = 100
    step: float = 1
    unit: Optional[str] = None

    def to_columns(self):
        slider = {"min": _plain(self.min), "max": _plain(self.max), "step": _plain(self.step)}
        if self.unit:
            slider["unit"] = self.unit
        return {"slider_config": slider}


def _choice(qtype, data):
    return ChoiceConfig(qtype, options=_labels(data.get("options"), "options"))


def _likert(qtype, data):
    raw = data.get("likert_scale")
    if not isinstance(raw, Mapping):
        raise ValidationError("likert_scale is required for likert questions")
    lo, hi = _bound(raw, "min", "likert_scale"), _bound(raw, "max", "likert_scale")
    if lo >= hi:
        raise ValidationError("likert_scale.min must be lower than likert_scale.max")
    return LikertConfig(
        qtype, min=int(lo), max=int(hi),
        min_label=str(raw.get("minLabel") or raw.get("min_label") or ""),
        max_label=str(raw.get("maxLabel") or raw.get("max_label") or ""),
    )


def _matrix(qtype, data):
    raw = data.get("matrix_config")
    if not isinstance(raw, Mapping):
        # Editor schickt Zeilen/Spalten teils flach
        raw = {"rows": data.get("matrix_rows"), "columns": data.get("matrix_columns")}
        if raw["rows"] is None and raw["columns"] is None:
            raise ValidationError("matrix_config is required for matrix questions")
    return MatrixConfig(
        qtype,
        rows=_labels(raw.get("rows"), "matrix_config.rows"),
        columns=_labels(raw.get("columns"), "matrix_config.columns"),
    )


def _numeric(qtype, data):
    raw = data.get("numeric_constraints") or {}
    if not isinstance(raw, Mapping):
        raise ValidationError("numeric_constraints must be an object")
    lo = _bound(raw, "min", "numeric_constraints", required=False)
    hi = _bound(raw, "max", "numeric_constraints", required=False)
    if lo is not None and hi is not None and lo > hi:
        raise ValidationError("numeric_constraints.min must not exceed numeric_constraints.max")
    return NumericConfig(qtype, min=lo, max=hi, decimals=bool(raw.get("decimals", False)))


def _slider(qtype, data):
    raw = data.get("slider_config")
    if raw is None:
        return SliderConfig(qtype)
    if not isinstance(raw, Mapping):
        raise ValidationError("slider_config must be an object")
    lo, hi = _bound(raw, "min", "slider_config"), _bound(raw, "max", "slider_config")
    step = _bound(raw, "step", "slider_config", required=False)
    step = 1 if step is None else step
    if lo >= hi:
        raise ValidationError("slider_config.min must be lower than slider_config.max")
    if step <= 0:
        raise ValidationError("slider_config.step must be positive")
    return SliderConfig(qtype, min=lo, max=hi, step=step, unit=raw.get("unit") or None)


_PARSERS = {
    "single_choice": _choice,
    "multiple_choice": _choice,
    "likert": _likert,
    "matrix": _matrix,
    "open_numeric": _numeric,
    "slider": _slider,
}


def parse_config(question_type: str, data: Mapping[str, Any]) -> QuestionConfig:
    if question_type not in QUESTION_TYPES:
        raise ValidationError(f"invalid question type '{question_type}'")
    parser = _PARSERS.get(question_type)
    if parser is None:
        return NoConfig(question_type)
    return parser(question_type, data)


def empty_columns() -> Dict[str, Any]:
    return {c: None for c in CONFIG_COLUMNS}


def config_columns(config: QuestionConfig) -> Dict[str, Any]:
    """Alle Konfig-Spalten, nicht benutzte auf None (Typwechsel räumt alte Werte ab)."""
    columns = empty_columns()
    columns.update(config.to_columns())
    return columns
