"""Outbox de notification: livraison du lien de rapport après complétion.

La complétion écrit ``notification_status = pending``; ce module draine l'état, en ligne depuis le
service ou depuis la tâche Celery ``ziwei_report.tasks.send_report_email``. Un échec d'envoi ne
touche jamais au contenu du rapport.
"""

from __future__ import annotations

import structlog

from ziwei_report.app.metrics import NOTIFICATIONS_TOTAL
from ziwei_report.domain.errors import NotificationError

log = structlog.get_logger(__name__)


def deliver_report_notification(
    store, notifier, report_id: str, *, raise_on_error: bool = False
) -> bool:
    """Envoie la notification de `report_id` si elle est encore due.

    Args:
        store: Store d'état de génération.
        notifier: Client exposant `send_report(record)`.
        report_id: Rapport complété.
        raise_on_error: Relève la NotificationError (utilisé par la tâche pour réessayer).

    Returns:
        bool: True si le message est (ou était déjà) envoyé.
    """
    record = store.get(report_id)
    if record.notification_status == "sent":
        return True
    if record.notification_status == "none":
        # Pas de contenu généré, rien à annoncer
        return False
    try:
        notifier.send_report(record)
    except NotificationError as err:
        NOTIFICATIONS_TOTAL.labels(result="failed").inc()
        store.update(report_id, notification_status="failed")
        log.warning("report_notification_failed", report_id=report_id, error=err.message)
        if raise_on_error:
            raise
        return False
    store.update(report_id, notification_status="sent")
    NOTIFICATIONS_TOTAL.labels(result="sent").inc()
    return True
