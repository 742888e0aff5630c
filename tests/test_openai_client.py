"""Tests du client LLM OpenAI (fallback et conversion des erreurs)."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock

import httpx
import openai
import pytest

from ziwei_report.domain.errors import GenerationError
from ziwei_report.infra.llm.openai_client import OpenAILLM

MESSAGES = [{"role": "user", "content": "chart summary"}]


def _llm_with(create) -> OpenAILLM:
    llm = OpenAILLM(api_key=None, model="test-model")
    llm.client = Mock()
    llm.client.chat.completions.create = create
    return llm


def test_fallback_without_key_is_deterministic():
    llm = OpenAILLM(api_key=None)
    text, usage = llm.generate(MESSAGES, with_usage=True)
    assert text == llm.generate(MESSAGES)
    assert "Core Identity:" in text
    assert len(text) > 100
    assert usage == {}


def test_completion_content_and_usage():
    resp = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="Core Identity: ok"))],
        usage=SimpleNamespace(prompt_tokens=3, completion_tokens=4, total_tokens=7),
    )
    create = Mock(return_value=resp)
    llm = _llm_with(create)

    text, usage = llm.generate(MESSAGES, with_usage=True, max_tokens=50)
    assert text == "Core Identity: ok"
    assert usage == {"prompt_tokens": 3, "completion_tokens": 4, "total_tokens": 7}
    assert create.call_args.kwargs["model"] == "test-model"
    assert create.call_args.kwargs["max_tokens"] == 50


def test_empty_content_is_generation_error():
    resp = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="  "))])
    with pytest.raises(GenerationError):
        _llm_with(Mock(return_value=resp)).generate(MESSAGES)


def test_status_error_is_generation_error():
    request = httpx.Request("POST", "https://llm.test/chat/completions")
    response = httpx.Response(429, request=request)
    err = openai.RateLimitError("slow down", response=response, body=None)
    with pytest.raises(GenerationError) as exc:
        _llm_with(Mock(side_effect=err)).generate(MESSAGES)
    assert exc.value.details == {"status": 429}


def test_timeout_is_generation_error():
    request = httpx.Request("POST", "https://llm.test/chat/completions")
    err = openai.APITimeoutError(request=request)
    with pytest.raises(GenerationError):
        _llm_with(Mock(side_effect=err)).generate(MESSAGES)
