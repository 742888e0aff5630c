# Schémas Pydantic exposés par l'API (requêtes et réponses).

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from ziwei_report.domain.entities import ReportRecord


class SolarTimeRequest(BaseModel):
    """Requête de l'utilitaire de temps solaire vrai.

    Champs:
    - birth_date: date civile (YYYY-MM-DD)
    - hour / minute: heure civile sur l'horloge du méridien de référence
    - longitude: degrés, Est positif (prioritaire)
    - location: nom de ville résolu par le gazetteer
    """

    birth_date: date
    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(0, ge=0, le=59)
    longitude: float | None = Field(None, ge=-180.0, le=180.0)
    location: str | None = None


class SolarTimeResponse(BaseModel):
    true_solar_time: datetime
    double_hour_index: int
    double_hour: dict[str, str]
    longitude: float
    longitude_adjustment_minutes: float
    equation_of_time_minutes: float
    total_adjustment_minutes: float


class CityResponse(BaseModel):
    name: str
    pinyin: str
    province: str
    longitude: float
    latitude: float


class ReportView(BaseModel):
    """Vue publique d'un rapport (sans e-mail ni détails internes de retry).

    Champs:
    - state: empty | generating | completed | failed
    - content / core_identity: présents une fois la génération terminée
    - free_reuse_days_remaining: jours restants de réutilisation gratuite
    """

    id: str
    state: str
    created_at: datetime
    completed_at: datetime | None = None
    gender: str
    birth_date: date
    birth_hour: int
    birth_minute: int
    birth_place: str
    longitude: float
    latitude: float
    solar_time: dict[str, Any]
    chart: dict[str, Any]
    content: str | None = None
    core_identity: str | None = None
    free_reuse_days_remaining: int | None = None

    @classmethod
    def from_record(cls, record: ReportRecord, days_remaining: int | None) -> ReportView:
        return cls(
            id=record.id,
            state=record.state.value,
            created_at=record.created_at,
            completed_at=record.completed_at,
            gender=record.gender,
            birth_date=record.birth_date,
            birth_hour=record.birth_hour,
            birth_minute=record.birth_minute,
            birth_place=record.birth_place,
            longitude=record.longitude,
            latitude=record.latitude,
            solar_time=record.solar_time,
            chart=record.chart,
            content=record.generated_content,
            core_identity=record.core_identity,
            free_reuse_days_remaining=days_remaining,
        )
