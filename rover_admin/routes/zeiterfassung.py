from flask import Blueprint, jsonify, request

from ..services import day_tracking
from ..services import zeiterfassung as service
from .params import arg_int, json_body

bp = Blueprint("zeiterfassung", __name__)


@bp.post("/")
def create_entry():
    return jsonify(service.entry_dict(service.create_entry(json_body()))), 201


@bp.get("/gebietsleiter/<gebietsleiter_id>")
def list_for_gebietsleiter(gebietsleiter_id):
    rows = service.list_for_gebietsleiter(gebietsleiter_id, limit=arg_int("limit", 50), offset=arg_int("offset", 0))
    return jsonify([service.entry_dict(e) for e in rows])


@bp.get("/gebietsleiter/<gebietsleiter_id>/day/<day>")
def day_summary(gebietsleiter_id, day):
    return jsonify(service.day_summary(gebietsleiter_id, day))


@bp.get("/admin")
def admin_list():
    rows = service.admin_list(
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        gebietsleiter_id=request.args.get("gebietsleiter_id"),
    )
    return jsonify([service.entry_dict(e) for e in rows])


# Zusatzzeiten

@bp.post("/zusatz")
def create_zusatz():
    rows = service.create_zusatz(json_body())
    return jsonify([service.zusatz_dict(z) for z in rows]), 201


@bp.get("/zusatz")
def list_zusatz():
    rows = service.list_zusatz(
        gebietsleiter_id=request.args.get("gebietsleiter_id"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
    )
    return jsonify([service.zusatz_dict(z) for z in rows])


@bp.get("/zusatz/gebietsleiter/<gebietsleiter_id>")
def list_zusatz_for_gebietsleiter(gebietsleiter_id):
    rows = service.list_zusatz(
        gebietsleiter_id=gebietsleiter_id,
        day=request.args.get("date"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
    )
    return jsonify([service.zusatz_dict(z) for z in rows])


# Tageserfassung

@bp.post("/day/start")
def start_day():
    return jsonify(day_tracking.start_day(json_body()).to_dict()), 201


@bp.post("/day/end")
def end_day():
    return jsonify(day_tracking.end_day(json_body()).to_dict())


@bp.post("/day/market-start")
def market_start():
    return jsonify(day_tracking.market_start(json_body()))


@bp.get("/day/<gebietsleiter_id>/status")
def day_status(gebietsleiter_id):
    return jsonify(day_tracking.day_status(gebietsleiter_id, request.args.get("date")).to_dict())


@bp.get("/day/<gebietsleiter_id>/<day>/visits")
def day_visits(gebietsleiter_id, day):
    return jsonify(day_tracking.day_visits(gebietsleiter_id, day))


@bp.get("/day/<gebietsleiter_id>/<day>/summary")
def day_overview(gebietsleiter_id, day):
    return jsonify(day_tracking.day_overview(gebietsleiter_id, day))
