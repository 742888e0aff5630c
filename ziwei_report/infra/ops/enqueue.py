"""Handoff API → workers pour les notifications de l'outbox.

L'écriture de complétion (``notification_status = pending``) est déjà persistée au moment où la
tâche est envoyée: un échec d'envoi au broker ne doit donc jamais casser la réponse API, l'état
``pending`` est repris par la tâche périodique
``ziwei_report.tasks.sweep_pending_notifications``.
"""

from __future__ import annotations

import structlog
from prometheus_client import Counter

ENQUEUE_TOTAL = Counter(
    "report_task_enqueue_total",
    "Task enqueue outcomes",
    ["result"],
)

log = structlog.get_logger(__name__)


def enqueue_task(
    task_name: str,
    *args,
    queue: str | None = None,
    countdown: int | None = None,
    **kwargs,
) -> bool:
    """Envoie une tâche Celery par son nom.

    Args:
        task_name: Nom pleinement qualifié de la tâche (ex: "ziwei_report.tasks.send_report_email").
        args: Arguments positionnels de la tâche.
        queue: Nom de la queue cible (optionnel).
        countdown: Délai (secondes) avant exécution (optionnel).
        kwargs: Arguments nommés de la tâche.

    Returns:
        bool: True si le broker a accepté la tâche.
    """
    # Import local: celery_app dépend du conteneur, qui dépend de ce module
    from ziwei_report.app.celery_app import celery_app

    opts: dict[str, object] = {}
    if queue:
        opts["queue"] = queue
    if countdown is not None:
        opts["countdown"] = countdown
    try:
        celery_app.send_task(task_name, args=args, kwargs=kwargs, **opts)
    except Exception as exc:
        ENQUEUE_TOTAL.labels(result="error").inc()
        log.warning("task_enqueue_failed", task=task_name, error=type(exc).__name__)
        return False
    ENQUEUE_TOTAL.labels(result="enqueued").inc()
    return True


def enqueue_report_email(report_id: str) -> bool:
    """Planifie l'envoi de l'e-mail de rapport terminé."""
    return enqueue_task("ziwei_report.tasks.send_report_email", report_id)
