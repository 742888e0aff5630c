"""Construction du prompt de lecture de thème et extraction de l'identité centrale."""

from __future__ import annotations

import re
from typing import Any

from ziwei_report.domain.entities import ReportRecord
from ziwei_report.domain.solar_time import double_hour_info

SYSTEM = """You are a master of Zi Wei Dou Shu (Purple Star Astrology), writing for a global \
audience that may be unfamiliar with Chinese metaphysics.

- Use both Chinese terms and English explanations, e.g. "命宫 Ming Gong (Life Palace)".
- Be empowering: focus on guidance and potential, balance destiny with personal agency.
- Be specific and practical; end each section with actionable advice.

Structure the reading as: Core Identity, Your Cosmic Blueprint, Life Path & Destiny,
Career & Wealth, Relationships & Love, Health & Wellbeing, Key Life Phases, Guidance & Wisdom.
Use Markdown headers."""

CORE_IDENTITY_MAX_LEN = 100

_CORE_IDENTITY_RE = re.compile(r"(?:Core Identity|核心身份)\s*[:：]\s*([^\n]+)", re.IGNORECASE)


def _stars(palace: dict[str, Any]) -> str:
    stars = list(palace.get("major_stars") or []) + list(palace.get("minor_stars") or [])
    return ", ".join(stars) or "no major star"


def format_palaces(palaces: list[dict[str, Any]]) -> str:
    return "\n".join(f"- {p.get('name', '?')}: {_stars(p)}" for p in palaces)


def life_palace_stars(chart: dict[str, Any]) -> str:
    """Étoiles majeures du palais de vie, ou "Empty Palace"."""
    majors = (chart.get("life_palace") or {}).get("major_stars") or []
    return " · ".join(majors) or "Empty Palace"


def build_messages(record: ReportRecord) -> list[dict[str, str]]:
    """Messages system/user pour la lecture du thème stocké dans `record`."""
    chart = record.chart
    hour = double_hour_info(int(record.solar_time.get("double_hour_index", -1)))
    pillars = chart.get("four_pillars") or {}
    place = record.birth_place or f"{record.longitude:.1f}°"
    user = f"""Please create a comprehensive Zi Wei Dou Shu reading for this person.

## Basic Information

| Field | Value |
|-------|-------|
| Gender | {record.gender} |
| Birth Date | {record.birth_date.isoformat()} |
| Birth Hour | {hour['name']} {hour['branch']} ({hour['time_range']}) |
| Birth Place | {place} |

## Four Pillars

| Year | Month | Day | Hour |
|------|-------|-----|------|
| {pillars.get('year', '')} | {pillars.get('month', '')} | {pillars.get('day', '')} | {pillars.get('hour', '')} |

## Chart Core

- Life Palace stars: {life_palace_stars(chart)}
- Five Elements class: {chart.get('five_element_class', '')}
- Chinese Zodiac: {chart.get('chinese_zodiac', '')}
- Western Zodiac: {chart.get('zodiac', '')}

## 12 Palaces

{format_palaces(chart.get('palaces') or [])}

Start with a line "Core Identity: ..." summarising this person in one sentence, then write the
full reading."""
    return [
        {"role": "system", "content": SYSTEM},
        {"role": "user", "content": user},
    ]


def extract_core_identity(content: str, fallback: str) -> str:
    """Identité centrale: ligne marquée, sinon premier paragraphe tronqué, sinon `fallback`."""
    match = _CORE_IDENTITY_RE.search(content)
    if match and match.group(1).strip():
        return match.group(1).strip()
    first = content.strip().split("\n\n")[0].strip()
    return first[:CORE_IDENTITY_MAX_LEN] or fallback
