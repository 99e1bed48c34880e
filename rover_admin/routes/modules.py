from flask import Blueprint, jsonify, request

from ..services import modules as service
from .params import arg_bool, json_body

bp = Blueprint("modules", __name__)


def _saved(module, summary, status=200):
    data = service.module_detail(module)
    data["save_summary"] = summary
    return jsonify(data), status


@bp.get("/")
def list_modules():
    return jsonify(service.list_modules(archived=arg_bool("archived", False), search=request.args.get("search")))


@bp.get("/<module_id>")
def get_module(module_id):
    return jsonify(service.module_detail(service.get_module(module_id)))


@bp.post("/")
def create_module():
    module, summary = service.create_module(json_body())
    return _saved(module, summary, 201)


@bp.put("/<module_id>")
def update_module(module_id):
    module, summary = service.update_module(module_id, json_body())
    return _saved(module, summary)


@bp.post("/<module_id>/duplicate")
def duplicate_module(module_id):
    body = json_body()
    if body.get("draft"):
        draft, _ = service.duplicate_module(module_id, body.get("name"), draft_only=True)
        return jsonify(draft)
    module, summary = service.duplicate_module(module_id, body.get("name"))
    return _saved(module, summary, 201)


@bp.put("/<module_id>/archive")
def archive_module(module_id):
    archived = json_body().get("archived", True)
    return jsonify(service.archive_module(module_id, bool(archived)).to_dict())


@bp.delete("/<module_id>")
def delete_module(module_id):
    # weiches Löschen: Modul verschwindet aus der Liste, bestehende Fragebögen bleiben gültig
    return jsonify(service.archive_module(module_id, True).to_dict())


@bp.get("/<module_id>/usage")
def module_usage(module_id):
    return jsonify(service.module_usage(module_id))


@bp.get("/<module_id>/stats")
def module_stats(module_id):
    return jsonify(service.module_stats(module_id))


@bp.delete("/<module_id>/permanent")
def delete_module_permanently(module_id):
    result = service.delete_module_permanently(
        module_id,
        delete_questions=bool(arg_bool("delete_questions", False)),
        force=bool(arg_bool("force", False)),
    )
    return jsonify(result)
