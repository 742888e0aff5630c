"""
Application principale FastAPI.

Ce module assemble les composants du service de rapports: middlewares, routes, handlers d'erreurs
et métriques.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (request id, métriques, timing)
- Monter les routers (santé, rapports, métriques) et les handlers d'enveloppe d'erreur
"""

from __future__ import annotations

from fastapi import FastAPI

from ziwei_report.api.routes_health import router as health_router
from ziwei_report.api.routes_reports import router as reports_router
from ziwei_report.apigw.errors import register_error_handlers
from ziwei_report.app.metrics import PrometheusMiddleware, metrics_router
from ziwei_report.core.container import container
from ziwei_report.core.logging import setup_logging
from ziwei_report.middlewares.request_id import RequestIDMiddleware
from ziwei_report.middlewares.timing import TimingMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog)
    - Lit les paramètres d'exécution
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes de santé, de rapports et de métriques
    """
    setup_logging()
    settings = container.settings
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(reports_router)
    app.include_router(metrics_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=container.settings.APP_HOST, port=container.settings.APP_PORT)
