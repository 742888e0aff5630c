"""Taxonomie des erreurs métier du service de rapports.

Chaque erreur porte un `code` stable, repris tel quel par l'enveloppe d'erreur de l'API
(`ziwei_report.apigw.errors`).
"""

from __future__ import annotations

from typing import Any


class ReportError(Exception):
    """Erreur de base du domaine."""

    code = "REPORT_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ReportError):
    """Requête de naissance invalide (rejetée avant toute création d'état)."""

    code = "VALIDATION_ERROR"


class NotFoundError(ReportError):
    """Identifiant de rapport inconnu."""

    code = "NOT_FOUND"

    def __init__(self, report_id: str) -> None:
        super().__init__(f"Report {report_id} not found", {"report_id": report_id})
        self.report_id = report_id


class GenerationError(ReportError):
    """Échec transitoire de l'appel externe de génération (réessayable)."""

    code = "GENERATION_ERROR"


class ExhaustedRetriesError(ReportError):
    """Plafond de tentatives atteint: état terminal, jamais relancé automatiquement."""

    code = "GENERATION_FAILED"

    def __init__(self, report_id: str, attempts: int) -> None:
        super().__init__(
            f"Report {report_id} failed after {attempts} attempts",
            {"report_id": report_id, "attempts": attempts},
        )
        self.report_id = report_id
        self.attempts = attempts


class NotificationError(ReportError):
    """Échec d'envoi de notification (toujours non fatal)."""

    code = "NOTIFICATION_ERROR"


class StoreError(ReportError):
    """Le store d'état de génération est indisponible ou a refusé l'écriture."""

    code = "STORE_UNAVAILABLE"
