"""
Tâches Celery de l'outbox de notification.

Envoie l'e-mail de rapport terminé pour un `report_id` dont la complétion a écrit
`notification_status = pending`. Rejouable: un rapport déjà notifié n'est jamais renvoyé.
"""

from __future__ import annotations

import structlog

from ziwei_report.app.celery_app import celery_app
from ziwei_report.core.container import container
from ziwei_report.domain.errors import NotFoundError, NotificationError
from ziwei_report.domain.notifications import deliver_report_notification

log = structlog.get_logger(__name__)


@celery_app.task(
    name="ziwei_report.tasks.send_report_email",
    bind=True,
    autoretry_for=(NotificationError,),
    retry_backoff=True,
    retry_backoff_max=60,
    max_retries=container.settings.NOTIFY_MAX_RETRIES,
)
def send_report_email_task(self, report_id: str) -> str:
    try:
        sent = deliver_report_notification(
            container.report_repo, container.notifier, report_id, raise_on_error=True
        )
    except NotFoundError:
        return "not_found"
    return "sent" if sent else "skipped"


@celery_app.task(name="ziwei_report.tasks.sweep_pending_notifications")
def sweep_pending_notifications_task() -> dict[str, int]:
    """Livre les notifications restées ``pending`` (envoi au broker perdu, worker tué)."""
    counts = {"sent": 0, "skipped": 0, "failed": 0}
    ids = container.report_repo.list_pending_notifications(container.settings.NOTIFY_SWEEP_BATCH)
    for report_id in ids:
        try:
            sent = deliver_report_notification(
                container.report_repo, container.notifier, report_id, raise_on_error=True
            )
        except NotificationError:
            counts["failed"] += 1
            continue
        except NotFoundError:
            counts["skipped"] += 1
            continue
        counts["sent" if sent else "skipped"] += 1
    if ids:
        log.info("notification_sweep_done", **counts)
    return counts
