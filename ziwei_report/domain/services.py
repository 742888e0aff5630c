"""Service métier des rapports de thème Zi Wei Dou Shu.

Surface publique utilisée par l'API et par les tâches:
- `submit`: empreinte, réutilisation gratuite / dédup, localisation, temps solaire vrai, thème;
- `request_generation`: contrôleur d'idempotence puis notification de l'outbox;
- `get_report`: lecture d'un rapport.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime, time
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from ziwei_report.domain.entities import (
    BirthQuery,
    GenerationResult,
    GenerationStatus,
    ReportRecord,
    SubmitResult,
)
from ziwei_report.domain.errors import StoreError, ValidationError
from ziwei_report.domain.fingerprint import build_fingerprint
from ziwei_report.domain.generation import GenerationController
from ziwei_report.domain.generation_policy import GenerationPolicy
from ziwei_report.domain.longitude import infer_longitude_now
from ziwei_report.domain.notifications import deliver_report_notification
from ziwei_report.domain.reuse_policy import check_free_reuse_or_cache, days_remaining
from ziwei_report.domain.solar_time import DEFAULT_REFERENCE_MERIDIAN, normalize_solar_time

log = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReportService:
    """Orchestre la création et la génération des rapports.

    Responsabilités:
    - Court-circuiter les requêtes identiques (réutilisation gratuite 7 jours, dédup 24h).
    - Normaliser l'heure de naissance en temps solaire vrai avant le calcul du thème.
    - Déléguer la génération au `GenerationController` et drainer l'outbox de notification.
    """

    def __init__(
        self,
        store,
        chart_engine,
        gazetteer,
        generator,
        notifier=None,
        policy: GenerationPolicy | None = None,
        reference_meridian: float = DEFAULT_REFERENCE_MERIDIAN,
        reference_tz: str = "Asia/Shanghai",
        notify_async: bool = False,
        enqueue_notification: Callable[[str], Any] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialise le service avec ses dépendances.

        Paramètres:
        - store: store d'état de génération (InMemory ou Redis).
        - chart_engine: collaborateur de calcul de thème (`compute_chart`).
        - gazetteer: résolution des lieux de naissance par nom.
        - generator: invocateur de génération (`generate(record)`).
        - notifier: client d'e-mail (`send_report(record)`), optionnel.
        - notify_async / enqueue_notification: livraison via la tâche Celery au lieu d'en ligne.
        """
        self.store = store
        self.chart_engine = chart_engine
        self.gazetteer = gazetteer
        self.notifier = notifier
        self.policy = policy or GenerationPolicy()
        self.reference_meridian = reference_meridian
        self.reference_tz = reference_tz
        self.notify_async = notify_async
        self.enqueue_notification = enqueue_notification
        self.clock = clock
        self.controller = GenerationController(store, generator, self.policy, clock=clock)

    def submit(self, query: BirthQuery | dict[str, Any]) -> SubmitResult:
        """Crée un rapport (ou renvoie un rapport réutilisable) pour `query`.

        Raises:
            ValidationError: requête invalide ou lieu de naissance inconnu.
        """
        if not isinstance(query, BirthQuery):
            try:
                query = BirthQuery.model_validate(query)
            except PydanticValidationError as err:
                fields = [".".join(str(p) for p in e["loc"]) for e in err.errors()]
                raise ValidationError("invalid birth query", {"fields": fields}) from err

        now = self.clock()
        fingerprint = build_fingerprint(query)

        hit = check_free_reuse_or_cache(self.store, fingerprint, "post_payment", now, self.policy)
        if hit is not None:
            return SubmitResult(
                report_id=hit.record.id, free_reuse=True, days_remaining=hit.days_remaining
            )
        hit = check_free_reuse_or_cache(self.store, fingerprint, "pre_payment", now, self.policy)
        if hit is not None:
            return SubmitResult(report_id=hit.record.id, deduplicated=True)

        longitude, latitude, place = self._resolve_location(query)
        local_time = datetime.combine(query.birth_date, time(query.birth_hour, query.birth_minute))
        solar = normalize_solar_time(local_time, longitude, self.reference_meridian)
        chart = self.chart_engine.compute_chart(
            query.birth_date, solar.double_hour_index, query.gender, longitude, latitude
        )

        record = ReportRecord(
            id=uuid.uuid4().hex,
            fingerprint=fingerprint,
            created_at=now,
            email=query.email,
            gender=query.gender,
            birth_date=query.birth_date,
            birth_hour=query.birth_hour,
            birth_minute=query.birth_minute,
            birth_place=place,
            longitude=longitude,
            latitude=latitude,
            solar_time=solar.to_dict(),
            chart=chart,
        )
        self.store.create(record)
        log.info(
            "report_submitted",
            report_id=record.id,
            double_hour=solar.double_hour_index,
            adjustment_minutes=round(solar.total_adjustment_minutes, 2),
        )
        return SubmitResult(report_id=record.id)

    def request_generation(self, report_id: str) -> GenerationResult:
        """Génère (ou renvoie) le contenu de `report_id`; notifie après une complétion fraîche."""
        result = self.controller.request_generation(report_id)
        if result.status == GenerationStatus.COMPLETED and not result.cached:
            sent = self._dispatch_notification(report_id)
            result = result.model_copy(update={"email_sent": sent})
        return result

    def get_report(self, report_id: str) -> ReportRecord:
        """Retourne le rapport `report_id` (NotFoundError s'il est inconnu)."""
        return self.store.get(report_id)

    def reuse_days_remaining(self, record: ReportRecord) -> int | None:
        """Jours de réutilisation gratuite restants pour un rapport complété."""
        if record.paid_at is None:
            return None
        return days_remaining(record.paid_at, self.clock(), self.policy.free_reuse_window)

    # -------------------- Helpers internes --------------------

    def _resolve_location(self, query: BirthQuery) -> tuple[float, float, str]:
        """Longitude, latitude et libellé du lieu: brut, puis gazetteer, puis inférence."""
        if query.longitude is not None:
            return query.longitude, query.latitude or 0.0, query.location or ""
        if query.location is not None:
            city = self.gazetteer.get_city_by_name(query.location)
            if city is None:
                raise ValidationError(
                    f"unknown birth place: {query.location}", {"location": query.location}
                )
            return city.longitude, city.latitude, city.name
        longitude = infer_longitude_now(
            query.current_hour,
            query.current_minute or 0,
            reference_tz=self.reference_tz,
            reference_meridian=self.reference_meridian,
            clock=self.clock,
        )
        log.info("longitude_inferred", longitude=longitude)
        return longitude, 0.0, ""

    def _dispatch_notification(self, report_id: str) -> bool:
        if self.notifier is None:
            return False
        if self.notify_async and self.enqueue_notification is not None:
            if not self.enqueue_notification(report_id):
                log.error("report_notification_not_enqueued", report_id=report_id)
            return False
        try:
            return deliver_report_notification(self.store, self.notifier, report_id)
        except StoreError as err:
            # Le contenu est déjà écrit: l'outbox reste "pending"
            log.warning(
                "report_notification_state_not_saved", report_id=report_id, error=err.message
            )
            return False
        except Exception:
            # Un défaut du notificateur ne remonte jamais jusqu'au résultat de génération
            log.exception("report_notification_crashed", report_id=report_id)
            return False
