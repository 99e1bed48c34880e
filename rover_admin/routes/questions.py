from flask import Blueprint, jsonify, request

from ..services import questions as service
from .params import arg_bool, json_body

bp = Blueprint("questions", __name__)


@bp.get("/")
def list_questions():
    rows = service.list_questions(
        question_type=request.args.get("type"),
        is_template=arg_bool("is_template"),
        archived=arg_bool("archived", False),
        search=request.args.get("search"),
    )
    return jsonify([q.to_dict() for q in rows])


@bp.get("/<question_id>")
def get_question(question_id):
    return jsonify(service.get_question(question_id).to_dict())


@bp.post("/")
def create_question():
    question = service.create_question(json_body())
    return jsonify(question.to_dict()), 201


@bp.put("/<question_id>")
def update_question(question_id):
    return jsonify(service.update_question(question_id, json_body()).to_dict())


@bp.put("/<question_id>/archive")
def archive_question(question_id):
    archived = json_body().get("archived", True)
    return jsonify(service.archive_question(question_id, bool(archived)).to_dict())


@bp.get("/<question_id>/module-count")
def module_count(question_id):
    return jsonify({"question_id": question_id, "module_count": service.module_count(question_id)})


@bp.get("/<question_id>/stats")
def question_stats(question_id):
    return jsonify(service.question_stats(question_id))
