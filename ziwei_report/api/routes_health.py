"""
Endpoint de santé pour vérifier la disponibilité de l'API et du store d'état de génération.

Expose `/health` pour signaler l'état général de l'application et du stockage.
"""


from fastapi import APIRouter

from ziwei_report.core.container import container

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Vérifie la disponibilité de l'API, le backend de stockage et la configuration LLM."""
    return {
        "status": "ok",
        "storage": getattr(container, "storage_backend", "unknown"),
        "redis_url": bool(getattr(container.settings, "REDIS_URL", None)),
        "llm_configured": bool(getattr(container.settings, "LLM_API_KEY", None)),
    }
