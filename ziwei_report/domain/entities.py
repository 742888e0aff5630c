"""
Entités du domaine métier.

Ce module définit la requête de naissance, l'enregistrement de rapport (propriété du store d'état de
génération) et les résultats renvoyés par le service.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

Gender = Literal["male", "female"]
NotificationStatus = Literal["none", "pending", "sent", "failed"]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ReportState(str, Enum):
    """États explicites du cycle de vie d'un rapport."""

    EMPTY = "empty"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationStatus(str, Enum):
    """Statut renvoyé par `request_generation`."""

    COMPLETED = "completed"
    GENERATING = "generating"
    FAILED = "failed"


class BirthQuery(BaseModel):
    """Données de naissance soumises par l'utilisateur.

    La localisation provient, par ordre de priorité, de `longitude`, de `location` (résolue par le
    gazetteer) ou de l'heure courante déclarée (`current_hour`/`current_minute`).
    """

    email: str
    gender: Gender
    birth_date: date
    birth_hour: int = Field(..., ge=0, le=23)
    birth_minute: int = Field(0, ge=0, le=59)
    location: str | None = None
    longitude: float | None = Field(None, ge=-180.0, le=180.0)
    latitude: float | None = Field(None, ge=-90.0, le=90.0)
    current_hour: int | None = Field(None, ge=0, le=23)
    current_minute: int | None = Field(None, ge=0, le=59)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        email = value.strip().lower()
        if not _EMAIL_RE.match(email):
            raise ValueError("invalid email address")
        return email

    @field_validator("location")
    @classmethod
    def _strip_location(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def _require_location_source(self) -> BirthQuery:
        if self.longitude is None and self.location is None and self.current_hour is None:
            raise ValueError("one of longitude, location or current_hour is required")
        return self


class ReportRecord(BaseModel):
    """Enregistrement persistant d'un rapport.

    `paid_at` sert aussi de marqueur "contenu IA disponible" pour la réutilisation gratuite.
    """

    id: str
    fingerprint: str
    state: ReportState = ReportState.EMPTY
    created_at: datetime
    paid_at: datetime | None = None
    api_called_at: datetime | None = None
    api_retry_count: int = Field(0, ge=0)
    completed_at: datetime | None = None
    generated_content: str | None = None
    core_identity: str | None = None
    last_error: str | None = None
    notification_status: NotificationStatus = "none"

    email: str
    gender: Gender
    birth_date: date
    birth_hour: int
    birth_minute: int = 0
    birth_place: str = ""
    longitude: float
    latitude: float = 0.0
    solar_time: dict[str, Any] = Field(default_factory=dict)
    chart: dict[str, Any] = Field(default_factory=dict)

    def has_content(self, min_length: int) -> bool:
        """Vrai si un contenu non trivial a déjà été généré."""
        return bool(self.generated_content) and len(self.generated_content or "") > min_length

    @property
    def is_completed(self) -> bool:
        """Vrai une fois `completed_at` posé: le rapport n'est plus que lu."""
        return self.completed_at is not None or self.state == ReportState.COMPLETED


class GeneratedReport(BaseModel):
    """Sortie de l'invocateur de génération."""

    content: str
    core_identity: str
    usage: dict[str, int] = Field(default_factory=dict)


class GenerationResult(BaseModel):
    """Réponse de `request_generation`."""

    status: GenerationStatus
    report_id: str
    content: str | None = None
    core_identity: str | None = None
    retry_after: int | None = None
    cached: bool = False
    email_sent: bool = False


class SubmitResult(BaseModel):
    """Réponse de `submit`."""

    report_id: str
    free_reuse: bool = False
    days_remaining: int | None = None
    deduplicated: bool = False
