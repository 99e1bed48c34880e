# rover_admin/__init__.py
import logging
import os

from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .config import config
from .errors import RoverError
from .extensions import cors, db

logger = logging.getLogger(__name__)


def _register_blueprints(app):
    from .routes import fragebogen, markets, modules, questions, responses, zeiterfassung

    app.register_blueprint(questions.bp, url_prefix="/api/fragebogen/questions")
    app.register_blueprint(modules.bp, url_prefix="/api/fragebogen/modules")
    app.register_blueprint(fragebogen.bp, url_prefix="/api/fragebogen/fragebogen")
    app.register_blueprint(responses.bp, url_prefix="/api/fragebogen/responses")
    app.register_blueprint(markets.bp, url_prefix="/api/markets")
    app.register_blueprint(zeiterfassung.bp, url_prefix="/api/zeiterfassung")


def _register_error_handlers(app):
    @app.errorhandler(RoverError)
    def _rover_error(e):
        # nichts Halbfertiges stehen lassen
        db.session.rollback()
        if e.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def _db_error(e):
        db.session.rollback()
        logger.error(f"Database error on {request.method} {request.path}: {e}")
        return jsonify({"error": "database error"}), 500

    # alle /api/*-Fehler als JSON, nie als HTML-Seite
    @app.errorhandler(404)
    def _404(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": "not found", "path": request.path}), 404
        return e

    @app.errorhandler(405)
    def _405(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": "method not allowed", "path": request.path}), 405
        return e

    @app.errorhandler(413)
    def _413(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": "payload too large"}), 413
        return e


def create_app(config_name=None):
    config_name = config_name or os.getenv("ROVER_ENV", "default")
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    app.url_map.strict_slashes = False  # avoid 308 redirects on trailing slashes

    logging.basicConfig(level=app.config["LOG_LEVEL"])
    db.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})

    _register_blueprints(app)
    _register_error_handlers(app)

    @app.get("/api/v1/health")
    def health():
        return {"status": "ok"}

    with app.app_context():
        from . import models  # noqa: F401  (Tabellen registrieren)
        db.create_all()
    logger.info(f"Rover admin started with {config_name} config")
    return app
