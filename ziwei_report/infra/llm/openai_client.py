"""
Client LLM basé sur le SDK OpenAI (API compatible, ex: Doubao/Ark) avec fallback déterministe.

Implémente l'interface LLM:
- chat.completions (SDK OpenAI, `base_url` configurable)
- fallback local déterministe quand aucune clé n'est configurée (tests/dev)

Toute erreur d'appel (réseau, timeout, statut non 2xx, contenu vide) est convertie en
`GenerationError`, seule erreur que voit le contrôleur de génération.
"""

from __future__ import annotations

from typing import Any, Literal, overload

import openai
import structlog
from openai import OpenAI

from ziwei_report.domain.errors import GenerationError
from ziwei_report.infra.llm.base import LLM

log = structlog.get_logger(__name__)


class OpenAILLM(LLM):
    """
    LLM basé sur OpenAI avec fallback.

    Utilise l'API si une clé est disponible, sinon renvoie un rapport factice déterministe.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 2,
    ) -> None:
        """Initialize the OpenAILLM client."""
        self.model = model
        if api_key:
            self.client = OpenAI(
                api_key=api_key, base_url=base_url, timeout=timeout, max_retries=max_retries
            )
        else:
            self.client = None  # type: ignore[assignment]

    # ---- Overloads pour coller à l'interface de base ----
    @overload
    def generate(
        self,
        messages: list[dict[str, str]],
        *,
        with_usage: Literal[True],
        **kwargs: Any,
    ) -> tuple[str, dict[str, int]]: ...

    @overload
    def generate(
        self,
        messages: list[dict[str, str]],
        *,
        with_usage: Literal[False] = False,
        **kwargs: Any,
    ) -> str: ...

    def generate(
        self,
        messages: list[dict[str, str]],
        *,
        with_usage: bool = False,
        **kwargs: Any,
    ) -> str | tuple[str, dict[str, int]]:
        """
        Génère du texte (et éventuellement les métriques d'usage).

        - with_usage=False (défaut) -> str
        - with_usage=True -> (str, dict[str, int])
        """
        # Pas de client → fallback
        if not self.client:
            text, usage = self._fallback_response(messages)
        else:
            text, usage = self._chat_completions(messages, **kwargs)
        return (text, usage) if with_usage else text

    # -------------------- Helpers internes --------------------

    def _fallback_response(
        self, messages: list[dict[str, str]]
    ) -> tuple[str, dict[str, int]]:
        """Rapport déterministe (utile pour tests/dev), usage vide."""
        last = messages[-1]["content"] if messages else ""
        excerpt = " ".join(last.split())[:160]
        text = (
            "# Zi Wei Dou Shu Destiny Reading\n\n"
            "Core Identity: A steady mind guided by intuition, ready to lead when the time is right.\n\n"
            "## Your Cosmic Blueprint\n\n"
            f"This reading was prepared offline from the following chart summary: {excerpt}\n\n"
            "## Guidance & Wisdom\n\n"
            "Build patiently, keep your word, and let your strengths compound over the years."
        )
        return text, {}

    def _chat_completions(
        self, messages: list[dict[str, str]], **kwargs: Any
    ) -> tuple[str, dict[str, int]]:
        """Appelle chat.completions et convertit les échecs en GenerationError."""
        try:
            resp = self.client.chat.completions.create(  # type: ignore[union-attr]
                model=self.model,
                messages=messages,
                **kwargs,
            )
        except openai.APIStatusError as err:
            log.warning("llm_status_error", model=self.model, status=err.status_code)
            raise GenerationError(
                f"LLM returned status {err.status_code}", {"status": err.status_code}
            ) from err
        except openai.APIError as err:
            log.warning("llm_call_failed", model=self.model, error=type(err).__name__)
            raise GenerationError(f"LLM call failed: {type(err).__name__}") from err

        choices = getattr(resp, "choices", None) or []
        content = getattr(getattr(choices[0], "message", None), "content", None) if choices else None
        if not content or not str(content).strip():
            log.warning("llm_empty_content", model=self.model)
            raise GenerationError("LLM returned empty content")
        return str(content), self._extract_usage_dict(resp)

    def _extract_usage_dict(self, resp: Any) -> dict[str, int]:
        """
        Extrait les infos d'usage depuis la réponse OpenAI.

        Toujours un dict.
        """
        usage = getattr(resp, "usage", None)
        if not usage:
            return {}
        return {
            "prompt_tokens": int(getattr(usage, "prompt_tokens", 0) or 0),
            "completion_tokens": int(getattr(usage, "completion_tokens", 0) or 0),
            "total_tokens": int(getattr(usage, "total_tokens", 0) or 0),
        }
