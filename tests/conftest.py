"""Configuration de test pour pytest avec gestion des chemins.

Ce module configure pytest pour résoudre les imports `ziwei_report` en ajoutant la racine du projet
au sys.path, et neutralise toute connexion Redis réelle.
"""

import os
import sys
from unittest.mock import Mock, patch

import pytest

# Ensure project root is on sys.path so that
# imports like `from ziwei_report...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tests.fakes import FixedClock  # noqa: E402
from ziwei_report.infra.repositories import InMemoryReportRepo  # noqa: E402


@pytest.fixture(autouse=True)
def mock_redis_connection():
    """Mock Redis connections pour éviter les erreurs de connexion dans les tests."""
    with patch("redis.Redis") as mock_redis:
        mock_redis_instance = Mock()
        mock_redis_instance.ping.return_value = True
        mock_redis_instance.get.return_value = None
        mock_redis_instance.set.return_value = True
        mock_redis_instance.delete.return_value = 1
        mock_redis.return_value = mock_redis_instance
        mock_redis.from_url.return_value = mock_redis_instance
        yield mock_redis_instance


@pytest.fixture
def clock() -> FixedClock:
    """Horloge figée au 2024-06-01 12:00 UTC, avançable via `clock.advance(...)`."""
    return FixedClock()


@pytest.fixture
def store() -> InMemoryReportRepo:
    return InMemoryReportRepo()
