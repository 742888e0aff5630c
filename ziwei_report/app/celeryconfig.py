"""Configuration centralisée Celery pour les tâches asynchrones.

Ce module définit la configuration globale de Celery incluant les politiques de retry, timeouts et
limites de connexion au broker.
"""

# ============================================================
# Module : ziwei_report/app/celeryconfig.py
# Objet  : Configuration centralisée Celery (retries, timeouts).
# ============================================================

from __future__ import annotations

# Retries & acks
task_acks_late = True
task_reject_on_worker_lost = True
worker_prefetch_multiplier = 1
task_time_limit = 120  # secondes
broker_pool_limit = 10
task_serializer = "json"
accept_content = ["json"]
