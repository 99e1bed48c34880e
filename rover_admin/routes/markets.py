from flask import Blueprint, jsonify, request

from ..services import fragebogen as fragebogen_service
from ..services import markets as service
from .params import arg_bool, arg_int, json_body

bp = Blueprint("markets", __name__)


@bp.get("/")
def list_markets():
    markets, total = service.list_markets(
        chain=request.args.get("chain"),
        postal_code=request.args.get("postal_code"),
        gebietsleiter=request.args.get("gebietsleiter"),
        subgroup=request.args.get("subgroup"),
        active=arg_bool("active"),
        search=request.args.get("search"),
        limit=arg_int("limit", None),
        offset=arg_int("offset", 0),
    )
    return jsonify({"total": total, "markets": [m.to_dict() for m in markets]})


@bp.get("/<market_id>")
def get_market(market_id):
    return jsonify(service.get_market(market_id).to_dict())


@bp.post("/")
def create_market():
    return jsonify(service.create_market(json_body()).to_dict()), 201


@bp.put("/<market_id>")
def update_market(market_id):
    return jsonify(service.update_market(market_id, json_body()).to_dict())


@bp.delete("/<market_id>")
def delete_market(market_id):
    service.delete_market(market_id)
    return jsonify({"deleted": market_id})


@bp.post("/import")
def import_markets():
    return jsonify(service.import_markets(json_body(list)))


@bp.post("/<market_id>/visit")
def record_visit(market_id):
    market, counted = service.record_visit(market_id)
    return jsonify({"market": market.to_dict(), "counted": counted})


@bp.get("/<market_id>/fragebogen")
def active_fragebogen(market_id):
    service.get_market(market_id)
    rows = fragebogen_service.active_for_market(market_id)
    return jsonify([fragebogen_service.fragebogen_summary(fb) for fb in rows])
