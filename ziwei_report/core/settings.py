"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
- Exposer les fenêtres temporelles du contrôleur de génération (retry, free reuse, dedup)
"""

import os
from datetime import timedelta
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "ziwei-report"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000

    REDIS_URL: str | None = None
    REQUIRE_REDIS: bool = False

    # Horloge civile de référence (Beijing = UTC+8 = 120°E)
    REFERENCE_MERIDIAN_DEG: float = 120.0
    REFERENCE_TZ: str = "Asia/Shanghai"

    # Contrôleur de génération
    GENERATION_RETRY_WINDOW_SECONDS: int = 600
    GENERATION_MAX_RETRIES: int = 3
    FREE_REUSE_DAYS: int = 7
    DEDUP_CACHE_HOURS: int = 24
    MIN_REPORT_LENGTH: int = 100
    STAGED_RESULT_TTL_SECONDS: int = 86400

    # LLM (API compatible OpenAI, ex: Doubao/Ark)
    LLM_API_KEY: str | None = None
    LLM_BASE_URL: str | None = "https://ark.cn-beijing.volces.com/api/v3"
    LLM_MODEL: str = "doubao-pro-32k-241215"
    LLM_TIMEOUT_SECONDS: float = 60.0
    LLM_SDK_MAX_RETRIES: int = 2
    LLM_MAX_TOKENS: int = 4096
    LLM_TEMPERATURE: float = 0.7

    # Notifications e-mail (Resend)
    RESEND_API_KEY: str | None = None
    RESEND_API_URL: str = "https://api.resend.com"
    EMAIL_FROM: str = "reports@example.com"
    PUBLIC_BASE_URL: str = "http://localhost:3000"
    NOTIFY_ASYNC: bool = False
    NOTIFY_MAX_RETRIES: int = 5
    NOTIFY_SWEEP_INTERVAL_SECONDS: int = 300
    NOTIFY_SWEEP_BATCH: int = 100

    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/1"

    @property
    def retry_window(self) -> timedelta:
        return timedelta(seconds=self.GENERATION_RETRY_WINDOW_SECONDS)

    @property
    def free_reuse_window(self) -> timedelta:
        return timedelta(days=self.FREE_REUSE_DAYS)

    @property
    def dedup_cache_window(self) -> timedelta:
        return timedelta(hours=self.DEDUP_CACHE_HOURS)


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
