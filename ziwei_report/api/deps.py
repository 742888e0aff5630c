"""Dépendances partagées pour les routes de l'API.

Centralise l'accès aux instances du conteneur; les tests les remplacent via
`app.dependency_overrides`.
"""

from ziwei_report.core.container import container
from ziwei_report.domain.services import ReportService
from ziwei_report.infra.location.cities import CityGazetteer


def get_report_service() -> ReportService:
    return container.report_service


def get_gazetteer() -> CityGazetteer:
    return container.gazetteer


def get_reference_meridian() -> float:
    return container.settings.REFERENCE_MERIDIAN_DEG
