from flask import Blueprint, jsonify, request

from ..services import fragebogen as service
from ..services import responses as response_service
from .params import arg_bool, json_body

bp = Blueprint("fragebogen", __name__)


def _saved(fb, conflicts, status=200):
    data = service.fragebogen_detail(fb)
    data["resolved_conflicts"] = [c.to_dict() for c in conflicts]
    return jsonify(data), status


@bp.get("/")
def list_fragebogen():
    rows = service.list_fragebogen(
        status=request.args.get("status"),
        archived=arg_bool("archived", False),
        search=request.args.get("search"),
    )
    return jsonify(rows)


@bp.get("/<fragebogen_id>")
def get_fragebogen(fragebogen_id):
    return jsonify(service.fragebogen_detail(service.get_fragebogen(fragebogen_id)))


@bp.post("/")
def create_fragebogen():
    fb, conflicts = service.create_fragebogen(json_body())
    return _saved(fb, conflicts, 201)


@bp.put("/<fragebogen_id>")
def update_fragebogen(fragebogen_id):
    fb, conflicts = service.update_fragebogen(fragebogen_id, json_body())
    return _saved(fb, conflicts)


@bp.put("/<fragebogen_id>/archive")
def archive_fragebogen(fragebogen_id):
    archived = json_body().get("archived", True)
    return jsonify(service.fragebogen_summary(service.archive_fragebogen(fragebogen_id, bool(archived))))


@bp.delete("/<fragebogen_id>")
def delete_fragebogen(fragebogen_id):
    return jsonify(service.fragebogen_summary(service.archive_fragebogen(fragebogen_id, True)))


@bp.delete("/<fragebogen_id>/permanent")
def delete_fragebogen_permanently(fragebogen_id):
    return jsonify(service.delete_fragebogen_permanently(fragebogen_id))


@bp.get("/<fragebogen_id>/stats")
def fragebogen_stats(fragebogen_id):
    return jsonify(service.fragebogen_stats(fragebogen_id))


@bp.get("/<fragebogen_id>/markets/stats")
def market_stats(fragebogen_id):
    return jsonify(response_service.market_stats(fragebogen_id))


@bp.get("/<fragebogen_id>/responses")
def list_responses(fragebogen_id):
    rows = response_service.list_responses(fragebogen_id, status=request.args.get("status"))
    return jsonify([r.to_dict() for r in rows])


@bp.post("/<fragebogen_id>/visibility")
def visibility(fragebogen_id):
    return jsonify(service.visibility(fragebogen_id, json_body()))
