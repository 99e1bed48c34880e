from flask import request

from ..errors import ValidationError

_TRUE = ("1", "true", "yes", "ja")
_FALSE = ("0", "false", "no", "nein")


def arg_bool(name, default=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value == "all":
        return None
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValidationError(f"query parameter '{name}' must be true or false")


def arg_int(name, default):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"query parameter '{name}' must be an integer")
    if value < 0:
        raise ValidationError(f"query parameter '{name}' must not be negative")
    return value


def json_body(kind=dict):
    data = request.get_json(silent=True)
    if data is None:
        data = kind()
    if not isinstance(data, kind):
        raise ValidationError(f"request body must be a JSON {'array' if kind is list else 'object'}")
    return data
