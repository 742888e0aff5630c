"""
Store d'état de génération des rapports.

Ce module fournit deux implémentations du même contrat, en mémoire (dev/tests) et Redis:

- ``create`` / ``get`` / ``update`` sur un ``ReportRecord``;
- ``find_most_recent_by_fingerprint`` pour la dédup et la réutilisation gratuite;
- ``claim_attempt``: écriture conditionnelle (compare-and-set) de ``api_called_at`` et
  ``api_retry_count`` avant l'appel externe, un seul gagnant par fenêtre de retry;
- ``stage_result`` / ``get_staged_result``: résultat brut conservé par tentative, pour finaliser
  sans rappeler le générateur si l'écriture finale a échoué.
- ``list_pending_notifications``: rapports dont la notification reste à livrer (balayage).
"""

from __future__ import annotations

import json
import threading
from datetime import datetime
from typing import Any, Literal

import redis
import structlog

from ziwei_report.domain.entities import ReportRecord, ReportState
from ziwei_report.domain.errors import ExhaustedRetriesError, NotFoundError, StoreError
from ziwei_report.domain.generation_policy import Decision, GenerationPolicy, decide

FingerprintField = Literal["created_at", "paid_at"]

# Champs modifiables après complétion (outbox de notification)
_POST_COMPLETION_FIELDS = frozenset({"notification_status"})

# État de l'outbox jamais tenté (un échec "failed" relève des retries de la tâche)
_UNDELIVERED = frozenset({"pending"})

log = structlog.get_logger(__name__)


def _merge(record: ReportRecord, fields: dict[str, Any]) -> ReportRecord:
    """Applique `fields` sur `record` avec validation, en refusant toute mutation post-complétion."""
    if record.completed_at is not None and set(fields) - _POST_COMPLETION_FIELDS:
        raise StoreError(
            f"Report {record.id} is completed and immutable",
            {"fields": sorted(set(fields) - _POST_COMPLETION_FIELDS)},
        )
    return ReportRecord.model_validate({**record.model_dump(), **fields})


def _claim(record: ReportRecord, now: datetime, policy: GenerationPolicy) -> ReportRecord | None:
    """Calcule la version réclamée de `record`, ou None si la tentative n'est plus permise.

    Lève ExhaustedRetriesError si le plafond est atteint (l'appelant persiste l'état terminal).
    """
    verdict = decide(record, now, policy)
    if verdict.decision == Decision.FAILED:
        raise ExhaustedRetriesError(record.id, record.api_retry_count)
    if verdict.decision != Decision.ATTEMPT:
        return None
    return _merge(
        record,
        {
            "api_called_at": now,
            "api_retry_count": record.api_retry_count + 1,
            "state": ReportState.GENERATING,
        },
    )


def _matches(
    record: ReportRecord,
    since: datetime,
    by: FingerprintField,
    require_content: bool,
    min_content_length: int,
) -> bool:
    stamp = getattr(record, by)
    if stamp is None or stamp < since:
        return False
    return not (require_content and not record.has_content(min_content_length))


class InMemoryReportRepo:
    """
    Store de rapports en mémoire (utilisé pour dev/tests).

    Toutes les écritures passent par un verrou: la réclamation d'une tentative est donc atomique
    à l'échelle du processus.
    """

    def __init__(self):
        """Initialise une base mémoire vide."""
        self._db: dict[str, ReportRecord] = {}
        self._staged: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create(self, record: ReportRecord) -> ReportRecord:
        """Enregistre un nouveau rapport et le renvoie."""
        with self._lock:
            self._db[record.id] = record
        return record

    def get(self, report_id: str) -> ReportRecord:
        """Retourne un rapport par id, ou lève NotFoundError."""
        record = self._db.get(report_id)
        if record is None:
            raise NotFoundError(report_id)
        return record

    def update(self, report_id: str, **fields: Any) -> ReportRecord:
        """Met à jour partiellement un rapport existant."""
        with self._lock:
            updated = _merge(self.get(report_id), fields)
            self._db[report_id] = updated
        return updated

    def find_most_recent_by_fingerprint(
        self,
        fingerprint: str,
        since: datetime,
        *,
        by: FingerprintField = "created_at",
        require_content: bool = False,
        min_content_length: int = 0,
    ) -> ReportRecord | None:
        """Rapport le plus récent (selon `by`) de même empreinte avec `by >= since`."""
        candidates = [
            r
            for r in self._db.values()
            if r.fingerprint == fingerprint
            and _matches(r, since, by, require_content, min_content_length)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda r: getattr(r, by))

    def claim_attempt(
        self, report_id: str, now: datetime, policy: GenerationPolicy
    ) -> ReportRecord | None:
        """Réclame atomiquement une tentative de génération."""
        with self._lock:
            record = self.get(report_id)
            try:
                claimed = _claim(record, now, policy)
            except ExhaustedRetriesError:
                if record.state != ReportState.FAILED:
                    self._db[report_id] = _merge(record, {"state": ReportState.FAILED})
                raise
            if claimed is not None:
                self._db[report_id] = claimed
            return claimed

    def stage_result(self, report_id: str, attempt: int, payload: dict[str, Any]) -> None:
        """Conserve le résultat brut d'une tentative avant l'écriture finale."""
        with self._lock:
            self._staged[report_id] = {"attempt": attempt, "payload": payload}

    def get_staged_result(self, report_id: str) -> dict[str, Any] | None:
        """Retourne le résultat brut en attente de finalisation, s'il existe."""
        return self._staged.get(report_id)

    def clear_staged_result(self, report_id: str) -> None:
        """Supprime le résultat brut une fois la finalisation écrite."""
        with self._lock:
            self._staged.pop(report_id, None)

    def list_pending_notifications(self, limit: int = 100) -> list[str]:
        """Ids des rapports complétés dont la notification n'a jamais été tentée."""
        ids = [r.id for r in list(self._db.values()) if r.notification_status in _UNDELIVERED]
        return ids[:limit]


class RedisReportRepo:
    """Store de rapports adossé à Redis.

    Clés:
    - ``report:{id}``: enregistrement JSON;
    - ``report:fp:{fingerprint}``: sorted set des ids, score = ``created_at``;
    - ``report:{id}:staged``: résultat brut d'une tentative (TTL).
    - ``report:notify:outbox``: set des ids dont la notification est ``pending``.

    Les écritures conditionnelles utilisent WATCH/MULTI: si l'enregistrement change entre la
    lecture et l'écriture, la transaction échoue et la réclamation est perdue.
    """

    def __init__(
        self, url: str | None = None, client=None, staged_ttl_seconds: int = 86400
    ):
        """Crée un client Redis à partir de l'URL fournie (ou utilise `client`)."""
        self.client = client or redis.Redis.from_url(url, decode_responses=True)
        self.staged_ttl_seconds = staged_ttl_seconds

    @staticmethod
    def _key(report_id: str) -> str:
        return f"report:{report_id}"

    @staticmethod
    def _fp_key(fingerprint: str) -> str:
        return f"report:fp:{fingerprint}"

    OUTBOX_KEY = "report:notify:outbox"

    @staticmethod
    def _staged_key(report_id: str) -> str:
        return f"report:{report_id}:staged"

    @staticmethod
    def _decode(raw: str | bytes | None) -> ReportRecord | None:
        return ReportRecord.model_validate_json(raw) if raw else None

    def create(self, record: ReportRecord) -> ReportRecord:
        """Sérialise le rapport et l'indexe par empreinte."""
        try:
            pipe = self.client.pipeline()
            pipe.set(self._key(record.id), record.model_dump_json())
            pipe.zadd(self._fp_key(record.fingerprint), {record.id: record.created_at.timestamp()})
            if record.notification_status in _UNDELIVERED:
                pipe.sadd(self.OUTBOX_KEY, record.id)
            pipe.execute()
        except redis.RedisError as err:
            raise StoreError("report store unavailable") from err
        return record

    def get(self, report_id: str) -> ReportRecord:
        """Charge et désérialise `report:{id}`, sinon NotFoundError."""
        try:
            raw = self.client.get(self._key(report_id))
        except redis.RedisError as err:
            raise StoreError("report store unavailable") from err
        record = self._decode(raw)
        if record is None:
            raise NotFoundError(report_id)
        return record

    def _transact(self, report_id: str, mutate, retries: int = 3) -> ReportRecord | None:
        """Lit, transforme et réécrit `report:{id}` sous WATCH.

        `mutate(record)` renvoie la nouvelle version, ou None pour ne rien écrire. Si `retries`
        vaut 0, un conflit renvoie None (réclamation perdue) au lieu de réessayer.
        """
        key = self._key(report_id)
        attempts = 0
        try:
            with self.client.pipeline() as pipe:
                while True:
                    try:
                        pipe.watch(key)
                        record = self._decode(pipe.get(key))
                        if record is None:
                            pipe.reset()
                            raise NotFoundError(report_id)
                        updated = mutate(record)
                        if updated is None:
                            pipe.reset()
                            return None
                        pipe.multi()
                        pipe.set(key, updated.model_dump_json())
                        if updated.notification_status in _UNDELIVERED:
                            pipe.sadd(self.OUTBOX_KEY, report_id)
                        else:
                            pipe.srem(self.OUTBOX_KEY, report_id)
                        pipe.execute()
                        return updated
                    except redis.WatchError:
                        attempts += 1
                        if attempts > retries:
                            log.info("report_store_conflict", report_id=report_id)
                            return None
        except redis.RedisError as err:
            raise StoreError("report store unavailable") from err

    def update(self, report_id: str, **fields: Any) -> ReportRecord:
        """Met à jour partiellement un rapport (transaction optimiste)."""
        updated = self._transact(report_id, lambda record: _merge(record, fields))
        if updated is None:
            raise StoreError(f"concurrent update conflict on report {report_id}")
        return updated

    def find_most_recent_by_fingerprint(
        self,
        fingerprint: str,
        since: datetime,
        *,
        by: FingerprintField = "created_at",
        require_content: bool = False,
        min_content_length: int = 0,
    ) -> ReportRecord | None:
        """Parcourt l'index d'empreinte du plus récent au plus ancien."""
        try:
            if by == "created_at":
                ids = self.client.zrevrangebyscore(
                    self._fp_key(fingerprint), "+inf", since.timestamp()
                )
            else:
                # paid_at >= created_at: un rapport ancien peut avoir été payé récemment
                ids = self.client.zrevrange(self._fp_key(fingerprint), 0, -1)
            if not ids:
                return None
            raws = self.client.mget([self._key(i) for i in ids])
        except redis.RedisError as err:
            raise StoreError("report store unavailable") from err
        records = [r for r in (self._decode(raw) for raw in raws) if r is not None]
        candidates = [
            r for r in records if _matches(r, since, by, require_content, min_content_length)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda r: getattr(r, by))

    def claim_attempt(
        self, report_id: str, now: datetime, policy: GenerationPolicy
    ) -> ReportRecord | None:
        """Réclame une tentative: un conflit WATCH signifie qu'un autre worker a gagné."""
        try:
            return self._transact(report_id, lambda record: _claim(record, now, policy), retries=0)
        except ExhaustedRetriesError:
            self._transact(
                report_id,
                lambda record: None
                if record.state == ReportState.FAILED
                else _merge(record, {"state": ReportState.FAILED}),
            )
            raise

    def stage_result(self, report_id: str, attempt: int, payload: dict[str, Any]) -> None:
        """Conserve le résultat brut d'une tentative avec TTL."""
        data = json.dumps({"attempt": attempt, "payload": payload})
        try:
            self.client.set(self._staged_key(report_id), data, ex=self.staged_ttl_seconds)
        except redis.RedisError as err:
            raise StoreError("report store unavailable") from err

    def get_staged_result(self, report_id: str) -> dict[str, Any] | None:
        """Retourne le résultat brut en attente, s'il existe."""
        try:
            raw = self.client.get(self._staged_key(report_id))
        except redis.RedisError as err:
            raise StoreError("report store unavailable") from err
        return json.loads(raw) if raw else None

    def clear_staged_result(self, report_id: str) -> None:
        """Supprime le résultat brut après finalisation."""
        try:
            self.client.delete(self._staged_key(report_id))
        except redis.RedisError as err:
            raise StoreError("report store unavailable") from err

    def list_pending_notifications(self, limit: int = 100) -> list[str]:
        """Ids de l'outbox encore à livrer (ordre quelconque)."""
        try:
            ids = self.client.smembers(self.OUTBOX_KEY)
        except redis.RedisError as err:
            raise StoreError("report store unavailable") from err
        return sorted(ids)[:limit]
