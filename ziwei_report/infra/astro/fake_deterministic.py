"""Moteur de thème déterministe pour les tests et le développement.

Le calcul réel du thème (palais, étoiles, classe des cinq éléments) est un collaborateur externe
opaque. Ce module en fournit un substitut déterministe: mêmes entrées, même jeu de données, sans
dépendance externe.
"""

from __future__ import annotations

import hashlib
import random
from datetime import date
from typing import Any, Protocol

from ziwei_report.domain.solar_time import double_hour_info

PALACES = (
    "Life",
    "Siblings",
    "Spouse",
    "Children",
    "Wealth",
    "Health",
    "Travel",
    "Friends",
    "Career",
    "Property",
    "Fortune",
    "Parents",
)
BRANCHES = ("子", "丑", "寅", "卯", "辰", "巳", "午", "未", "申", "酉", "戌", "亥")
STEMS = ("甲", "乙", "丙", "丁", "戊", "己", "庚", "辛", "壬", "癸")
MAJOR_STARS = (
    "Zi Wei",
    "Tian Ji",
    "Tai Yang",
    "Wu Qu",
    "Tian Tong",
    "Lian Zhen",
    "Tian Fu",
    "Tai Yin",
    "Tan Lang",
    "Ju Men",
    "Tian Xiang",
    "Tian Liang",
    "Qi Sha",
    "Po Jun",
)
MINOR_STARS = (
    "Zuo Fu",
    "You Bi",
    "Wen Chang",
    "Wen Qu",
    "Tian Kui",
    "Tian Yue",
    "Lu Cun",
    "Tian Ma",
    "Qing Yang",
    "Tuo Luo",
    "Huo Xing",
    "Ling Xing",
)
FIVE_ELEMENT_CLASSES = ("Water 2", "Wood 3", "Metal 4", "Earth 5", "Fire 6")
ANIMALS = (
    "Rat",
    "Ox",
    "Tiger",
    "Rabbit",
    "Dragon",
    "Snake",
    "Horse",
    "Goat",
    "Monkey",
    "Rooster",
    "Dog",
    "Pig",
)
# (mois, jour de début, signe) dans l'ordre de l'année
_ZODIAC_STARTS = (
    (1, 20, "Aquarius"),
    (2, 19, "Pisces"),
    (3, 21, "Aries"),
    (4, 20, "Taurus"),
    (5, 21, "Gemini"),
    (6, 21, "Cancer"),
    (7, 23, "Leo"),
    (8, 23, "Virgo"),
    (9, 23, "Libra"),
    (10, 23, "Scorpio"),
    (11, 22, "Sagittarius"),
    (12, 22, "Capricorn"),
)


class ChartEngine(Protocol):
    """Contrat du collaborateur de calcul de thème."""

    def compute_chart(
        self,
        birth_date: date,
        double_hour_index: int,
        gender: str,
        longitude: float,
        latitude: float,
    ) -> dict[str, Any]: ...


def western_zodiac(day: date) -> str:
    """Signe tropical simplifié (bornes fixes)."""
    sign = "Capricorn"
    for month, start, name in _ZODIAC_STARTS:
        if (day.month, day.day) >= (month, start):
            sign = name
    return sign


def _pillar(index: int) -> str:
    return f"{STEMS[index % 10]}{BRANCHES[index % 12]}"


class FakeDeterministicChartEngine:
    """Moteur de thème factice déterministe.

    La graine dérive des seules entrées significatives (date, double-heure, genre); la longitude
    n'intervient qu'au travers du double-heure déjà normalisé.
    """

    def compute_chart(
        self,
        birth_date: date,
        double_hour_index: int,
        gender: str,
        longitude: float,
        latitude: float,
    ) -> dict[str, Any]:
        """Calculate a fake deterministic chart.

        Args:
            birth_date: Date civile de naissance.
            double_hour_index: Double-heure en temps solaire vrai (0-11).
            gender: ``male`` ou ``female``.
            longitude: Longitude retenue (informative).
            latitude: Latitude retenue (informative).

        Returns:
            dict[str, Any]: Palais, étoiles, classe des cinq éléments, piliers et signes.
        """
        seed_src = f"{birth_date.isoformat()}|{double_hour_index}|{gender}"
        rng = random.Random(int(hashlib.sha256(seed_src.encode("utf-8")).hexdigest()[:16], 16))

        majors = list(MAJOR_STARS)
        rng.shuffle(majors)
        life_branch = rng.randrange(12)
        palaces = []
        for i, name in enumerate(PALACES):
            major = majors[i : i + 1] if i < len(majors) and rng.random() > 0.25 else []
            minor = sorted(rng.sample(MINOR_STARS, k=rng.randint(0, 2)))
            palaces.append(
                {
                    "name": name,
                    "earthly_branch": BRANCHES[(life_branch + i) % 12],
                    "major_stars": major,
                    "minor_stars": minor,
                    "is_empty": not major,
                }
            )

        year_index = birth_date.year - 4
        day_index = birth_date.toordinal()
        return {
            "palaces": palaces,
            "life_palace": palaces[0],
            "five_element_class": rng.choice(FIVE_ELEMENT_CLASSES),
            "chinese_zodiac": ANIMALS[year_index % 12],
            "zodiac": western_zodiac(birth_date),
            "four_pillars": {
                "year": _pillar(year_index),
                "month": _pillar(year_index * 12 + birth_date.month + 1),
                "day": _pillar(day_index + 49),
                "hour": _pillar(day_index * 12 + double_hour_index),
            },
            "double_hour": double_hour_info(double_hour_index),
            "gender": gender,
            "coordinates": {"longitude": longitude, "latitude": latitude},
        }
