"""Réutilisation gratuite et déduplication avant création d'un rapport.

Deux modes indépendants, évalués avant toute création de ReportRecord:

- ``pre_payment``: un rapport de même empreinte créé dans la fenêtre de dédup (24h) est renvoyé
  tel quel, payé ou non, pour éviter de recalculer le thème.
- ``post_payment``: un rapport de même empreinte dont le contenu a été généré (``paid_at``) dans
  la fenêtre de réutilisation gratuite (7 jours) est renvoyé avec le nombre de jours restants.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

import structlog

from ziwei_report.app.metrics import REPORT_REUSE_HITS
from ziwei_report.domain.entities import ReportRecord
from ziwei_report.domain.generation_policy import GenerationPolicy

ReuseMode = Literal["pre_payment", "post_payment"]

ONE_DAY = timedelta(days=1)

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReuseHit:
    record: ReportRecord
    mode: ReuseMode
    days_remaining: int | None = None


def days_remaining(paid_at: datetime, now: datetime, window: timedelta) -> int:
    """Jours pleins restants dans la fenêtre de réutilisation, jamais négatif."""
    remaining = window - (now - paid_at)
    return max(0, math.ceil(remaining / ONE_DAY))


def check_free_reuse_or_cache(
    store,
    fingerprint: str,
    mode: ReuseMode,
    now: datetime,
    policy: GenerationPolicy,
) -> ReuseHit | None:
    """Cherche un rapport réutilisable pour `fingerprint` selon `mode`.

    Args:
        store: Store d'état de génération (voir `ziwei_report.infra.repositories`).
        fingerprint: Empreinte de la requête.
        mode: ``pre_payment`` (dédup) ou ``post_payment`` (réutilisation gratuite).
        now: Instant de référence.
        policy: Fenêtres applicables.

    Returns:
        ReuseHit | None: Le rapport le plus récent éligible, sinon None.
    """
    if mode == "pre_payment":
        record = store.find_most_recent_by_fingerprint(
            fingerprint, now - policy.dedup_cache_window, by="created_at"
        )
        if record is None:
            return None
        REPORT_REUSE_HITS.labels(mode=mode).inc()
        log.info("report_dedup_hit", report_id=record.id)
        return ReuseHit(record=record, mode=mode)

    if mode == "post_payment":
        record = store.find_most_recent_by_fingerprint(
            fingerprint,
            now - policy.free_reuse_window,
            by="paid_at",
            require_content=True,
            min_content_length=policy.min_report_length,
        )
        if record is None or record.paid_at is None:
            return None
        remaining = days_remaining(record.paid_at, now, policy.free_reuse_window)
        REPORT_REUSE_HITS.labels(mode=mode).inc()
        log.info("report_free_reuse_hit", report_id=record.id, days_remaining=remaining)
        return ReuseHit(record=record, mode=mode, days_remaining=remaining)

    raise ValueError(f"unknown reuse mode: {mode}")
