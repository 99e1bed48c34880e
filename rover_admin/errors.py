"""Fehlerklassen der Anwendung.

Services und die Regel-Logik werfen diese Fehler; ``create_app`` registriert einen
Handler, der sie als JSON ``{"error": ..., **payload}`` mit passendem Statuscode
ausliefert. Es gibt keine "fatale" Stufe: jeder Fehler lässt sich durch Wiederholen
der Aktion beheben.
"""
from typing import Any, Dict, Optional


class RoverError(Exception):
    status_code = 500

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self) -> Dict[str, Any]:
        body = dict(self.payload)
        body["error"] = self.message
        return body


class ValidationError(RoverError):
    """Ungültige Eingabe, erkannt bevor irgendetwas geschrieben wird."""

    status_code = 400


class NotFound(RoverError):
    status_code = 404


class ConflictError(RoverError):
    """Aktion braucht eine ausdrückliche Entscheidung (Marktkonflikte, Modulnutzung)."""

    status_code = 409
