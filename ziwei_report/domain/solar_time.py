"""Calcul du temps solaire vrai et du double-heure (shichen).

Le temps civil est supposé calé sur un méridien de référence (120°E pour l'heure de Pékin).
La correction totale combine:

- l'écart de longitude (4 minutes par degré, la Terre tournant de 360° en 1440 minutes);
- l'équation du temps, approximation NOAA (lisse, valable aussi les années bissextiles).

Les fonctions sont pures; la longitude doit être bornée à [-180, 180] par l'appelant.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any

DEFAULT_REFERENCE_MERIDIAN = 120.0
MINUTES_PER_DEGREE = 4.0

# (pinyin, branche terrestre, plage horaire civile, animal)
DOUBLE_HOURS: tuple[tuple[str, str, str, str], ...] = (
    ("Zi", "子", "23:00-01:00", "Rat"),
    ("Chou", "丑", "01:00-03:00", "Ox"),
    ("Yin", "寅", "03:00-05:00", "Tiger"),
    ("Mao", "卯", "05:00-07:00", "Rabbit"),
    ("Chen", "辰", "07:00-09:00", "Dragon"),
    ("Si", "巳", "09:00-11:00", "Snake"),
    ("Wu", "午", "11:00-13:00", "Horse"),
    ("Wei", "未", "13:00-15:00", "Goat"),
    ("Shen", "申", "15:00-17:00", "Monkey"),
    ("You", "酉", "17:00-19:00", "Rooster"),
    ("Xu", "戌", "19:00-21:00", "Dog"),
    ("Hai", "亥", "21:00-23:00", "Pig"),
)


@dataclass(frozen=True)
class SolarTimeResult:
    """Résultat de la normalisation en temps solaire vrai."""

    true_solar_time: datetime
    double_hour_index: int
    longitude_adjustment_minutes: float
    equation_of_time_minutes: float
    total_adjustment_minutes: float

    @property
    def double_hour_name(self) -> str:
        return double_hour_info(self.double_hour_index)["branch"]

    def to_dict(self) -> dict[str, Any]:
        """Instantané sérialisable (stocké dans le ReportRecord)."""
        data = asdict(self)
        data["true_solar_time"] = self.true_solar_time.isoformat()
        data["double_hour_name"] = self.double_hour_name
        return data


def longitude_adjustment_minutes(
    longitude: float, reference_meridian: float = DEFAULT_REFERENCE_MERIDIAN
) -> float:
    """Écart en minutes entre le méridien local et le méridien de référence."""
    return (longitude - reference_meridian) * MINUTES_PER_DEGREE


def equation_of_time_minutes(moment: datetime) -> float:
    """Équation du temps (minutes) selon l'approximation NOAA."""
    day_of_year = moment.timetuple().tm_yday
    gamma = 2 * math.pi * (day_of_year - 1) / 365
    return 229.18 * (
        0.000075
        + 0.001868 * math.cos(gamma)
        - 0.032077 * math.sin(gamma)
        - 0.014615 * math.cos(2 * gamma)
        - 0.040849 * math.sin(2 * gamma)
    )


def double_hour_index(hour: int) -> int:
    """Index du double-heure (0-11); 23h ouvre le double-heure Zi qui enjambe minuit."""
    if hour == 23:
        return 0
    return ((hour + 1) // 2) % 12


def double_hour_info(index: int) -> dict[str, str]:
    """Retourne nom, branche, plage horaire et animal; entrée neutre si l'index est inconnu."""
    if 0 <= index < len(DOUBLE_HOURS):
        name, branch, time_range, animal = DOUBLE_HOURS[index]
        return {"name": name, "branch": branch, "time_range": time_range, "animal": animal}
    return {"name": "unknown", "branch": "?", "time_range": "", "animal": ""}


def normalize_solar_time(
    local_time: datetime,
    longitude: float,
    reference_meridian: float = DEFAULT_REFERENCE_MERIDIAN,
) -> SolarTimeResult:
    """Convertit une heure civile locale en temps solaire vrai.

    Args:
        local_time: Heure civile (naïve) lue sur l'horloge du méridien de référence.
        longitude: Longitude en degrés, Est positif, déjà bornée à [-180, 180].
        reference_meridian: Méridien sur lequel l'horloge civile est calée.

    Returns:
        SolarTimeResult: Heure corrigée, double-heure et décomposition de la correction.
    """
    lon_adj = longitude_adjustment_minutes(longitude, reference_meridian)
    eot = equation_of_time_minutes(local_time)
    total = lon_adj + eot
    true_solar = local_time + timedelta(minutes=total)
    return SolarTimeResult(
        true_solar_time=true_solar,
        double_hour_index=double_hour_index(true_solar.hour),
        longitude_adjustment_minutes=lon_adj,
        equation_of_time_minutes=eot,
        total_adjustment_minutes=total,
    )
