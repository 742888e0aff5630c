"""Politique de décision du contrôleur de génération.

Fonction pure `decide()` partagée par le contrôleur et par les stores (qui la rejouent à l'intérieur
de leur écriture conditionnelle pour garantir un seul gagnant par fenêtre de retry).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from ziwei_report.domain.entities import ReportRecord, ReportState


class Decision(str, Enum):
    COMPLETED = "completed"
    WAIT = "wait"
    FAILED = "failed"
    ATTEMPT = "attempt"


@dataclass(frozen=True)
class GenerationPolicy:
    """Fenêtres et plafonds du contrôleur."""

    retry_window: timedelta = timedelta(minutes=10)
    max_retries: int = 3
    free_reuse_window: timedelta = timedelta(days=7)
    dedup_cache_window: timedelta = timedelta(hours=24)
    min_report_length: int = 100

    @classmethod
    def from_settings(cls, settings) -> GenerationPolicy:
        return cls(
            retry_window=settings.retry_window,
            max_retries=settings.GENERATION_MAX_RETRIES,
            free_reuse_window=settings.free_reuse_window,
            dedup_cache_window=settings.dedup_cache_window,
            min_report_length=settings.MIN_REPORT_LENGTH,
        )


@dataclass(frozen=True)
class Verdict:
    decision: Decision
    retry_after: timedelta | None = None

    @property
    def retry_after_seconds(self) -> int | None:
        if self.retry_after is None:
            return None
        return max(0, math.ceil(self.retry_after.total_seconds()))


def decide(record: ReportRecord, now: datetime, policy: GenerationPolicy) -> Verdict:
    """Décide du sort d'une demande de génération pour `record` à l'instant `now`.

    Ordre d'évaluation: rapport complété ou contenu existant, état terminal, fenêtre de retry,
    plafond de tentatives.
    Tout appelant qui observe un `api_called_at` récent prend la branche d'attente, ce qui borne
    les appels externes à un par fenêtre et par rapport.
    """
    if record.is_completed or record.has_content(policy.min_report_length):
        return Verdict(Decision.COMPLETED)
    if record.state == ReportState.FAILED:
        return Verdict(Decision.FAILED)
    if record.api_called_at is not None:
        elapsed = now - record.api_called_at
        if elapsed < policy.retry_window:
            return Verdict(Decision.WAIT, retry_after=policy.retry_window - elapsed)
        if record.api_retry_count >= policy.max_retries:
            return Verdict(Decision.FAILED)
    return Verdict(Decision.ATTEMPT)
