"""Inférence approximative de la longitude à partir de l'heure déclarée par l'utilisateur.

Utilisé uniquement en repli, quand aucune localisation fiable n'est fournie: l'écart entre l'heure
locale de l'utilisateur et l'horloge du méridien de référence donne ~1 degré par 4 minutes. Ce
n'est pas une résolution de fuseau horaire.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from ziwei_report.domain.solar_time import DEFAULT_REFERENCE_MERIDIAN, MINUTES_PER_DEGREE

MINUTES_PER_DAY = 1440
HALF_DAY_MINUTES = 720


def clamp_longitude(value: float) -> float:
    """Borne une longitude à [-180, 180]."""
    return max(-180.0, min(180.0, value))


def clock_offset_minutes(
    user_hour: int, user_minute: int, reference_hour: int, reference_minute: int
) -> int:
    """Écart horloge utilisateur − horloge de référence, ramené à une demi-journée."""
    diff = (user_hour * 60 + user_minute) - (reference_hour * 60 + reference_minute)
    if diff > HALF_DAY_MINUTES:
        diff -= MINUTES_PER_DAY
    elif diff < -HALF_DAY_MINUTES:
        diff += MINUTES_PER_DAY
    return diff


def infer_longitude(
    user_hour: int,
    user_minute: int,
    reference_hour: int,
    reference_minute: int,
    reference_meridian: float = DEFAULT_REFERENCE_MERIDIAN,
) -> float:
    """Déduit une longitude de l'écart entre deux horloges.

    Exemple: 23:30 côté utilisateur contre 00:10 à Pékin donne un écart brut de 1400 minutes,
    corrigé à -40, soit 10° à l'ouest du méridien de référence.
    """
    diff = clock_offset_minutes(user_hour, user_minute, reference_hour, reference_minute)
    return clamp_longitude(reference_meridian + diff / MINUTES_PER_DEGREE)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def infer_longitude_now(
    user_hour: int,
    user_minute: int,
    reference_tz: str = "Asia/Shanghai",
    reference_meridian: float = DEFAULT_REFERENCE_MERIDIAN,
    clock: Callable[[], datetime] = _utcnow,
) -> float:
    """Variante lisant l'heure courante du méridien de référence au moment de l'appel."""
    ref_now = clock().astimezone(ZoneInfo(reference_tz))
    return infer_longitude(
        user_hour, user_minute, ref_now.hour, ref_now.minute, reference_meridian
    )
