"""Invocateur de génération: thème stocké → prompt → LLM → rapport.

Frontière avec le collaborateur externe facturé. Toute erreur sort en `GenerationError`.
"""

from __future__ import annotations

import structlog

from ziwei_report.domain.entities import GeneratedReport, ReportRecord
from ziwei_report.domain.errors import GenerationError
from ziwei_report.domain.prompts import build_messages, extract_core_identity, life_palace_stars

log = structlog.get_logger(__name__)


class ReportGenerator:
    """Génère le texte d'interprétation d'un rapport via un client `LLM`."""

    def __init__(
        self, llm, max_tokens: int = 4096, temperature: float = 0.7, min_length: int = 100
    ):
        self.llm = llm
        self.min_length = min_length
        self.max_tokens = max_tokens
        self.temperature = temperature

    def generate(self, record: ReportRecord) -> GeneratedReport:
        """Appelle le LLM pour `record` et extrait l'identité centrale.

        Raises:
            GenerationError: échec réseau, statut non 2xx, contenu vide ou trop court (un rapport
                de `min_length` caractères ou moins compte comme une tentative ratée).
        """
        messages = build_messages(record)
        text, usage = self.llm.generate(
            messages,
            with_usage=True,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if not text or not text.strip():
            raise GenerationError("LLM returned empty content")
        if len(text.strip()) <= self.min_length:
            raise GenerationError(
                "LLM returned a truncated report", {"length": len(text.strip())}
            )
        core_identity = extract_core_identity(text, life_palace_stars(record.chart))
        log.debug("report_generated", report_id=record.id, usage=usage)
        return GeneratedReport(content=text, core_identity=core_identity, usage=usage)
