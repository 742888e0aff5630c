"""Contrôleur d'idempotence et de retry de la génération IA.

Le service est sans état: chaque requête est traitée par un worker isolé et le store d'état de
génération est le seul point de coordination. Le contrôleur:

1. renvoie le contenu déjà généré sans appel externe;
2. finalise un résultat brut déjà obtenu mais jamais écrit (pas de second appel facturé);
3. fait patienter tout appelant qui observe un ``api_called_at`` plus récent que la fenêtre de
   retry;
4. ferme définitivement un rapport après ``max_retries`` échecs;
5. sinon réclame la tentative dans le store (écriture conditionnelle) AVANT d'appeler le
   générateur, puis persiste le résultat.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from ziwei_report.app.metrics import (
    GENERATION_ATTEMPTS,
    GENERATION_DECISIONS,
    GENERATION_LATENCY,
)
from ziwei_report.domain.entities import (
    GeneratedReport,
    GenerationResult,
    GenerationStatus,
    ReportRecord,
    ReportState,
)
from ziwei_report.domain.errors import ExhaustedRetriesError, GenerationError
from ziwei_report.domain.generation_policy import Decision, GenerationPolicy, decide

log = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class GenerationController:
    """Orchestre `request_generation` autour d'un store et d'un invocateur de génération."""

    def __init__(
        self,
        store,
        generator,
        policy: GenerationPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialise le contrôleur.

        Paramètres:
        - store: store d'état de génération (voir `ziwei_report.infra.repositories`).
        - generator: invocateur exposant `generate(record) -> GeneratedReport`.
        - policy: fenêtres et plafonds (défauts: 10 min, 3 tentatives).
        - clock: source de temps UTC, injectable pour les tests.
        """
        self.store = store
        self.generator = generator
        self.policy = policy or GenerationPolicy()
        self.clock = clock

    def request_generation(self, report_id: str) -> GenerationResult:
        """Décide et, si permis, exécute une tentative de génération pour `report_id`.

        Raises:
            NotFoundError: rapport inconnu.
            GenerationError: la tentative courante a échoué (le rapport reste réessayable tant
                que le plafond n'est pas atteint).
        """
        now = self.clock()
        record = self.store.get(report_id)
        bound = log.bind(report_id=report_id)

        if record.is_completed or record.has_content(self.policy.min_report_length):
            GENERATION_DECISIONS.labels(decision="cached").inc()
            return self._completed(record, cached=True)

        staged = self.store.get_staged_result(report_id)
        if staged:
            GENERATION_DECISIONS.labels(decision="staged").inc()
            bound.info("generation_finalize_staged", attempt=staged.get("attempt"))
            report = GeneratedReport.model_validate(staged["payload"])
            return self._finalize(report_id, report, now)

        verdict = decide(record, now, self.policy)
        if verdict.decision == Decision.WAIT:
            GENERATION_DECISIONS.labels(decision="wait").inc()
            bound.info("generation_wait", retry_after=verdict.retry_after_seconds)
            return self._generating(record, verdict.retry_after_seconds)
        if verdict.decision == Decision.FAILED:
            GENERATION_DECISIONS.labels(decision="failed").inc()
            if record.state != ReportState.FAILED:
                self.store.update(report_id, state=ReportState.FAILED)
            return self._failed(record)

        try:
            claimed = self.store.claim_attempt(report_id, now, self.policy)
        except ExhaustedRetriesError:
            GENERATION_DECISIONS.labels(decision="failed").inc()
            return self._failed(record)
        if claimed is None:
            # Un autre worker a réclamé la tentative entre notre lecture et notre écriture
            GENERATION_DECISIONS.labels(decision="lost_race").inc()
            return self._after_lost_race(report_id, now)

        GENERATION_DECISIONS.labels(decision="attempt").inc()
        return self._attempt(claimed, now)

    # -------------------- Helpers internes --------------------

    def _attempt(self, record: ReportRecord, now: datetime) -> GenerationResult:
        attempt = record.api_retry_count
        bound = log.bind(report_id=record.id, attempt=attempt)
        bound.info("generation_attempt_started")
        start = time.perf_counter()
        try:
            report = self.generator.generate(record)
        except GenerationError as err:
            GENERATION_ATTEMPTS.labels(result="error").inc()
            terminal = attempt >= self.policy.max_retries
            self.store.update(
                record.id,
                last_error=err.message,
                state=ReportState.FAILED if terminal else ReportState.GENERATING,
            )
            bound.warning("generation_attempt_failed", error=err.message, terminal=terminal)
            raise
        finally:
            GENERATION_LATENCY.observe(time.perf_counter() - start)

        GENERATION_ATTEMPTS.labels(result="success").inc()
        self.store.stage_result(record.id, attempt, report.model_dump())
        return self._finalize(record.id, report, now)

    def _finalize(self, report_id: str, report: GeneratedReport, now: datetime) -> GenerationResult:
        """Écrit le contenu (paid_at marque "contenu disponible") puis purge le résultat brut."""
        record = self.store.update(
            report_id,
            generated_content=report.content,
            core_identity=report.core_identity,
            completed_at=now,
            paid_at=now,
            state=ReportState.COMPLETED,
            last_error=None,
            notification_status="pending",
        )
        self.store.clear_staged_result(report_id)
        log.info("generation_completed", report_id=report_id)
        return self._completed(record, cached=False)

    def _after_lost_race(self, report_id: str, now: datetime) -> GenerationResult:
        record = self.store.get(report_id)
        verdict = decide(record, now, self.policy)
        if verdict.decision == Decision.COMPLETED:
            return self._completed(record, cached=True)
        if verdict.decision == Decision.FAILED:
            return self._failed(record)
        retry_after = verdict.retry_after_seconds
        if retry_after is None:
            retry_after = int(self.policy.retry_window.total_seconds())
        return self._generating(record, retry_after)

    @staticmethod
    def _completed(record: ReportRecord, cached: bool) -> GenerationResult:
        return GenerationResult(
            status=GenerationStatus.COMPLETED,
            report_id=record.id,
            content=record.generated_content,
            core_identity=record.core_identity,
            cached=cached,
        )

    @staticmethod
    def _generating(record: ReportRecord, retry_after: int | None) -> GenerationResult:
        return GenerationResult(
            status=GenerationStatus.GENERATING, report_id=record.id, retry_after=retry_after
        )

    @staticmethod
    def _failed(record: ReportRecord) -> GenerationResult:
        return GenerationResult(status=GenerationStatus.FAILED, report_id=record.id)
