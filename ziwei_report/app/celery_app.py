"""
Module: celery_app.

But: Initialiser l'instance Celery de l'application et charger la config runtime.
Les tâches vivent sous `ziwei_report.tasks` (notifications de l'outbox).
"""

from celery import Celery

from ziwei_report.core.container import container

celery_app = Celery(
    "ziwei_report",
    broker=container.settings.CELERY_BROKER_URL,
    backend=container.settings.CELERY_RESULT_BACKEND,
    include=["ziwei_report.tasks.notify_tasks"],
)
# Load configuration from module (retries, timeouts, acks)
celery_app.config_from_object("ziwei_report.app.celeryconfig")
celery_app.conf.task_routes = {"ziwei_report.tasks.*": {"queue": "default"}}
celery_app.conf.beat_schedule = {
    "sweep-pending-notifications": {
        "task": "ziwei_report.tasks.sweep_pending_notifications",
        "schedule": float(container.settings.NOTIFY_SWEEP_INTERVAL_SECONDS),
    }
}

__all__ = ["celery_app"]
