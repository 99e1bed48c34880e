from flask import Blueprint, jsonify

from ..services import responses as service
from .params import json_body

bp = Blueprint("responses", __name__)


@bp.post("/")
def start_response():
    response, created = service.start_response(json_body())
    return jsonify(service.response_detail(response)), 201 if created else 200


@bp.get("/<response_id>")
def get_response(response_id):
    return jsonify(service.response_detail(service.get_response(response_id)))


@bp.put("/<response_id>/answers")
def save_answers(response_id):
    response = service.save_answers(response_id, json_body())
    return jsonify(service.response_detail(response))


@bp.post("/<response_id>/complete")
def complete_response(response_id):
    return jsonify(service.response_detail(service.complete_response(response_id)))
