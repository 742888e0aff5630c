"""
Métriques Prometheus pour l'application.

Ce module définit les métriques HTTP et métier (décisions du contrôleur de génération, tentatives
externes, réutilisations, notifications) et expose `/metrics`.
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Contrôleur de génération
GENERATION_DECISIONS = Counter(
    "report_generation_decisions_total",
    "Decisions taken by the generation controller",
    ["decision"],
)
GENERATION_ATTEMPTS = Counter(
    "report_generation_attempts_total",
    "External generation attempts by outcome",
    ["result"],
)
GENERATION_LATENCY = Histogram(
    "report_generation_latency_seconds",
    "Latency of external generation calls",
    buckets=[1, 5, 10, 20, 30, 60, 120],
)

# Réutilisation / dédup
REPORT_REUSE_HITS = Counter(
    "report_reuse_hits_total",
    "Reports served from dedup cache or free-reuse window",
    ["mode"],
)

# Notifications
NOTIFICATIONS_TOTAL = Counter(
    "report_notifications_total",
    "Report notification outcomes",
    ["result"],
)


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Collecte les métriques de comptage des requêtes et de latence par route pour l'exposition
    Prometheus.
    """

    async def dispatch(self, request: Request, call_next):
        """
        Traite une requête HTTP et collecte les métriques.

        Args:
            request: Requête HTTP entrante.
            call_next: Fonction pour appeler le middleware suivant.

        Returns:
            Response: Réponse HTTP avec métriques collectées.
        """
        start = time.perf_counter()
        response: Response = await call_next(request)
        route_obj = request.scope.get("route")
        route = getattr(route_obj, "path", None) or request.scope.get("path", "unknown")
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route).observe(time.perf_counter() - start)
        return response
