# ============================================================
# Module : ziwei_report/domain/fingerprint.py
# Objet  : Empreinte stable d'une requête de naissance (dédup + free reuse).
# ============================================================

from __future__ import annotations

import hashlib
import json
from datetime import date, datetime
from typing import Any

from ziwei_report.domain.entities import BirthQuery

FINGERPRINT_FIELDS = ("email", "gender", "birth_date", "birth_hour")


def _normalize_for_json(value: Any) -> Any:
    """Normalise les valeurs complexes pour un JSON canonique (dates, chaînes)."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip().lower()
    return value


def fingerprint_payload(payload: dict[str, Any]) -> str:
    """Construit l'empreinte à partir des seuls champs significatifs du payload.

    Args:
        payload: dictionnaire d'entrée (champs absents traités comme chaîne vide).
    Returns:
        Empreinte hexadécimale SHA-256 stable, indépendante de l'ordre des champs.
    """
    significant = {f: _normalize_for_json(payload.get(f, "")) for f in FINGERPRINT_FIELDS}
    raw = json.dumps(significant, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def build_fingerprint(query: BirthQuery) -> str:
    """Empreinte d'une BirthQuery: minute et localisation sont volontairement ignorées."""
    return fingerprint_payload(query.model_dump(include=set(FINGERPRINT_FIELDS)))
