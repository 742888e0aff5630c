"""
Tests pour la résolution des variables d'environnement.

Ce module teste le chargement des settings à partir de fichiers .env personnalisés et les fenêtres
temporelles dérivées.
"""

from __future__ import annotations

import importlib
from datetime import timedelta
from pathlib import Path


def test_settings_reads_env_file(tmp_path: Path, monkeypatch) -> None:
    """Les variables d'un fichier désigné par ENV_FILE sont appliquées aux settings."""
    env = tmp_path / ".env.custom"
    env.write_text(
        "GENERATION_MAX_RETRIES=5\nFREE_REUSE_DAYS=3\nGENERATION_RETRY_WINDOW_SECONDS=90\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("ENV_FILE", str(env))
    monkeypatch.delenv("GENERATION_MAX_RETRIES", raising=False)

    # Reload settings module to pick up new ENV_FILE
    settings_mod = importlib.import_module("ziwei_report.core.settings")
    importlib.reload(settings_mod)
    s = settings_mod.get_settings()

    assert s.GENERATION_MAX_RETRIES == 5
    assert s.free_reuse_window == timedelta(days=3)
    assert s.retry_window == timedelta(seconds=90)
    assert s.dedup_cache_window == timedelta(hours=24)


def test_defaults(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ENV_FILE", str(tmp_path / "absent.env"))
    settings_mod = importlib.import_module("ziwei_report.core.settings")
    importlib.reload(settings_mod)
    s = settings_mod.get_settings()

    assert s.REFERENCE_MERIDIAN_DEG == 120.0
    assert s.REFERENCE_TZ == "Asia/Shanghai"
    assert s.retry_window == timedelta(minutes=10)
    assert s.MIN_REPORT_LENGTH == 100
