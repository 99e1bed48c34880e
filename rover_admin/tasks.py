import logging

from celery import Celery
from celery.schedules import crontab

from . import create_app
from .services.fragebogen import refresh_statuses

logger = logging.getLogger(__name__)

app = create_app()

# Initialize Celery
celery = Celery(
    app.import_name,
    broker=app.config["CELERY_BROKER_URL"],
    backend=app.config["CELERY_RESULT_BACKEND"],
)


class ContextTask(celery.Task):
    """Make celery tasks work with Flask app context"""
    def __call__(self, *args, **kwargs):
        with app.app_context():
            return self.run(*args, **kwargs)


celery.Task = ContextTask


@celery.task(name="rover_admin.refresh_fragebogen_status")
def refresh_fragebogen_status():
    """Gespeicherten Fragebogen-Status an den heutigen Tag anpassen."""
    try:
        changed = refresh_statuses()
        return {"status": "success", "changed": changed}
    except Exception as e:
        logger.error(f"Status refresh failed: {e}")
        raise


celery.conf.beat_schedule = {
    # kurz nach Mitternacht, damit "scheduled" -> "active" am Starttag greift
    "refresh-fragebogen-status": {
        "task": "rover_admin.refresh_fragebogen_status",
        "schedule": crontab(hour=0, minute=5),
    },
}

celery.conf.timezone = app.config["TIMEZONE"]
