"""Tests du contrôleur d'idempotence et de retry de la génération."""

from __future__ import annotations

import pytest

from tests.fakes import REPORT_TEXT, FailingLLM, FakeLLM, make_record
from ziwei_report.domain.entities import GenerationStatus, ReportState
from ziwei_report.domain.errors import GenerationError, NotFoundError, StoreError
from ziwei_report.domain.generation import GenerationController
from ziwei_report.domain.report_generator import ReportGenerator


def _controller(store, llm, clock) -> GenerationController:
    return GenerationController(store, ReportGenerator(llm), clock=clock)


def test_fresh_record_generates_and_completes(store, clock):
    store.create(make_record())
    llm = FakeLLM()
    result = _controller(store, llm, clock).request_generation("r1")

    assert result.status == GenerationStatus.COMPLETED
    assert result.cached is False
    assert result.core_identity.startswith("A calm strategist")
    record = store.get("r1")
    assert record.state == ReportState.COMPLETED
    assert record.paid_at == clock.now
    assert record.completed_at == clock.now
    assert record.api_retry_count == 1
    assert record.notification_status == "pending"
    assert store.get_staged_result("r1") is None
    assert llm.calls == 1


def test_completed_record_is_served_from_cache(store, clock):
    store.create(make_record())
    llm = FakeLLM()
    controller = _controller(store, llm, clock)
    controller.request_generation("r1")
    clock.advance(hours=5)

    result = controller.request_generation("r1")
    assert result.status == GenerationStatus.COMPLETED
    assert result.cached is True
    assert llm.calls == 1


def test_two_calls_within_window_make_one_external_call(store, clock):
    store.create(make_record())
    llm = FailingLLM()
    controller = _controller(store, llm, clock)

    with pytest.raises(GenerationError):
        controller.request_generation("r1")
    clock.advance(minutes=3)
    result = controller.request_generation("r1")

    assert result.status == GenerationStatus.GENERATING
    assert result.retry_after == 7 * 60
    assert llm.calls == 1
    assert store.get("r1").last_error == "upstream timeout"


def test_failed_attempt_is_retried_after_window(store, clock):
    store.create(make_record())
    llm = FailingLLM(failures=1)
    controller = _controller(store, llm, clock)

    with pytest.raises(GenerationError):
        controller.request_generation("r1")
    clock.advance(minutes=11)
    result = controller.request_generation("r1")

    assert result.status == GenerationStatus.COMPLETED
    assert llm.calls == 2
    assert store.get("r1").api_retry_count == 2


def test_max_retries_is_terminal(store, clock):
    store.create(make_record())
    llm = FailingLLM()
    controller = _controller(store, llm, clock)

    for _ in range(3):
        with pytest.raises(GenerationError):
            controller.request_generation("r1")
        clock.advance(minutes=11)

    assert store.get("r1").state == ReportState.FAILED
    for _ in range(3):
        assert controller.request_generation("r1").status == GenerationStatus.FAILED
        clock.advance(days=2)
    assert llm.calls == 3


def test_exhausted_count_without_terminal_state_fails(store, clock):
    store.create(make_record(api_called_at=clock.now, api_retry_count=3))
    clock.advance(minutes=30)
    llm = FakeLLM()

    result = _controller(store, llm, clock).request_generation("r1")
    assert result.status == GenerationStatus.FAILED
    assert store.get("r1").state == ReportState.FAILED
    assert llm.calls == 0


def test_unknown_report_raises(store, clock):
    with pytest.raises(NotFoundError):
        _controller(store, FakeLLM(), clock).request_generation("missing")


class _FlakyFinalWriteStore:
    """Délègue au store réel mais refuse la première écriture de complétion."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.fail_completion = True

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def update(self, report_id, **fields):
        if "generated_content" in fields and self.fail_completion:
            self.fail_completion = False
            raise StoreError("report store unavailable")
        return self.inner.update(report_id, **fields)


def test_staged_result_is_finalized_without_second_call(store, clock):
    store.create(make_record())
    flaky = _FlakyFinalWriteStore(store)
    llm = FakeLLM()
    controller = _controller(flaky, llm, clock)

    with pytest.raises(StoreError):
        controller.request_generation("r1")
    assert store.get_staged_result("r1")["attempt"] == 1

    clock.advance(minutes=1)
    result = controller.request_generation("r1")
    assert result.status == GenerationStatus.COMPLETED
    assert result.cached is False
    assert llm.calls == 1
    assert store.get("r1").state == ReportState.COMPLETED
    assert store.get_staged_result("r1") is None


class _LosingRaceStore:
    """Simule un autre worker qui réclame la tentative juste avant nous."""

    def __init__(self, inner, clock) -> None:
        self.inner = inner
        self.clock = clock

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def claim_attempt(self, report_id, now, policy):
        self.inner.claim_attempt(report_id, now, policy)
        return None


def test_lost_claim_answers_generating(store, clock):
    store.create(make_record())
    llm = FakeLLM()
    controller = _controller(_LosingRaceStore(store, clock), llm, clock)

    result = controller.request_generation("r1")
    assert result.status == GenerationStatus.GENERATING
    assert result.retry_after == 600
    assert llm.calls == 0
    assert store.get("r1").api_retry_count == 1


def test_short_reply_counts_as_failed_attempt(store, clock):
    store.create(make_record())
    llm = FakeLLM(text="Core Identity: brief reading.")
    controller = _controller(store, llm, clock)

    with pytest.raises(GenerationError):
        controller.request_generation("r1")
    record = store.get("r1")
    assert record.state == ReportState.GENERATING
    assert record.completed_at is None
    assert record.generated_content is None

    clock.advance(minutes=1)
    assert controller.request_generation("r1").status == GenerationStatus.GENERATING

    llm.text = REPORT_TEXT
    clock.advance(minutes=11)
    result = controller.request_generation("r1")
    assert result.status == GenerationStatus.COMPLETED
    assert llm.calls == 2


def test_completed_record_is_read_only_whatever_its_length(store, clock):
    store.create(
        make_record(
            state=ReportState.COMPLETED,
            generated_content="Core Identity: brief reading.",
            completed_at=clock.now,
            paid_at=clock.now,
            api_called_at=clock.now,
            api_retry_count=1,
        )
    )
    llm = FakeLLM()
    controller = _controller(store, llm, clock)

    for minutes in (1, 11, 60 * 24):
        clock.advance(minutes=minutes)
        result = controller.request_generation("r1")
        assert result.status == GenerationStatus.COMPLETED
        assert result.cached is True
    assert llm.calls == 0
    assert store.get("r1").api_retry_count == 1
