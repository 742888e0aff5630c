"""Middleware Starlette pour mesurer le temps de traitement des requêtes.

Ajoute l'en-tête X-Process-Time-ms et journalise les requêtes lentes (une génération IA peut
durer plusieurs dizaines de secondes).
"""

import time
from collections.abc import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

log = structlog.get_logger(__name__)


class TimingMiddleware(BaseHTTPMiddleware):
    """Middleware pour mesurer le temps de traitement des requêtes."""

    def __init__(
        self, app: ASGIApp, header_name: str = "X-Process-Time-ms", slow_ms: int = 5000
    ) -> None:
        """Initialise le middleware.

        Args:
            app: Application ASGI à wrapper.
            header_name: Nom de l'en-tête HTTP pour le temps de traitement.
            slow_ms: Seuil au-delà duquel la requête est journalisée.
        """
        super().__init__(app)
        self.header_name = header_name
        self.slow_ms = slow_ms

    async def dispatch(self, request, call_next: Callable):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers[self.header_name] = str(duration_ms)
        if duration_ms >= self.slow_ms:
            log.info("slow_request", path=request.url.path, duration_ms=duration_ms)
        return response
