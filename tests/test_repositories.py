"""Tests des stores d'état de génération (mémoire et Redis)."""

from __future__ import annotations

import json
import threading
from datetime import timedelta
from unittest.mock import Mock

import pytest
import redis

from tests.fakes import FakeRedis, make_record
from ziwei_report.domain.entities import ReportState
from ziwei_report.domain.errors import ExhaustedRetriesError, NotFoundError, StoreError
from ziwei_report.domain.generation_policy import GenerationPolicy
from ziwei_report.infra.repositories import InMemoryReportRepo, RedisReportRepo

POLICY = GenerationPolicy()


@pytest.fixture(params=["memory", "redis"])
def repo(request):
    if request.param == "memory":
        return InMemoryReportRepo()
    return RedisReportRepo(client=FakeRedis())


def test_create_get_update(repo):
    repo.create(make_record())
    updated = repo.update("r1", last_error="boom")
    assert updated.last_error == "boom"
    assert repo.get("r1").last_error == "boom"


def test_missing_report_raises(repo):
    with pytest.raises(NotFoundError):
        repo.get("nope")
    with pytest.raises(NotFoundError):
        repo.update("nope", last_error="x")


def test_completed_record_is_immutable(repo, clock):
    repo.create(make_record(completed_at=clock.now, generated_content="x" * 200))
    with pytest.raises(StoreError):
        repo.update("r1", generated_content="other")
    # seul l'état de l'outbox reste modifiable
    assert repo.update("r1", notification_status="sent").notification_status == "sent"


def test_find_by_created_at_and_paid_at(repo, clock):
    repo.create(make_record(id="a", created_at=clock.now - timedelta(days=20)))
    repo.create(
        make_record(
            id="b",
            created_at=clock.now - timedelta(days=10),
            paid_at=clock.now - timedelta(days=2),
            generated_content="x" * 200,
        )
    )
    since_day = clock.now - timedelta(days=1)
    assert repo.find_most_recent_by_fingerprint("fp1", since_day) is None
    hit = repo.find_most_recent_by_fingerprint(
        "fp1", clock.now - timedelta(days=7), by="paid_at", require_content=True
    )
    assert hit.id == "b"
    assert repo.find_most_recent_by_fingerprint("fp1", clock.now - timedelta(days=15)).id == "b"
    assert repo.find_most_recent_by_fingerprint("other", clock.now - timedelta(days=99)) is None


def test_require_content_uses_minimum_length(repo, clock):
    repo.create(make_record(id="short", paid_at=clock.now, generated_content="tiny"))
    since = clock.now - timedelta(days=7)
    hit = repo.find_most_recent_by_fingerprint("fp1", since, by="paid_at", require_content=True)
    assert hit.id == "short"
    assert (
        repo.find_most_recent_by_fingerprint(
            "fp1", since, by="paid_at", require_content=True, min_content_length=100
        )
        is None
    )


def test_pending_notifications_are_listed(repo, clock):
    repo.create(make_record(id="a"))
    repo.create(make_record(id="b", notification_status="pending", completed_at=clock.now))
    repo.create(make_record(id="c"))
    repo.update("c", notification_status="pending")
    assert sorted(repo.list_pending_notifications()) == ["b", "c"]

    repo.update("b", notification_status="sent")
    repo.update("c", notification_status="failed")
    assert repo.list_pending_notifications() == []


def test_claim_attempt_writes_before_call(repo, clock):
    repo.create(make_record())
    claimed = repo.claim_attempt("r1", clock.now, POLICY)
    assert claimed.api_called_at == clock.now
    assert claimed.api_retry_count == 1
    assert claimed.state == ReportState.GENERATING
    # deuxième réclamation dans la fenêtre: perdue
    assert repo.claim_attempt("r1", clock.now + timedelta(minutes=1), POLICY) is None
    assert repo.get("r1").api_retry_count == 1


def test_claim_attempt_exhausted_marks_failed(repo, clock):
    repo.create(make_record(api_called_at=clock.now - timedelta(hours=1), api_retry_count=3))
    with pytest.raises(ExhaustedRetriesError):
        repo.claim_attempt("r1", clock.now, POLICY)
    assert repo.get("r1").state == ReportState.FAILED


def test_staged_result_roundtrip(repo):
    repo.create(make_record())
    repo.stage_result("r1", 2, {"content": "c", "core_identity": "i", "usage": {}})
    assert repo.get_staged_result("r1") == {
        "attempt": 2,
        "payload": {"content": "c", "core_identity": "i", "usage": {}},
    }
    repo.clear_staged_result("r1")
    assert repo.get_staged_result("r1") is None


def test_memory_claim_has_single_winner_under_threads(clock):
    repo = InMemoryReportRepo()
    repo.create(make_record())
    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(repo.claim_attempt("r1", clock.now, POLICY))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sum(1 for r in results if r is not None) == 1
    assert repo.get("r1").api_retry_count == 1


def test_redis_claim_conflict_is_lost_race(clock):
    client = FakeRedis()
    repo = RedisReportRepo(client=client)
    repo.create(make_record())
    client.watch_conflicts = 1

    assert repo.claim_attempt("r1", clock.now, POLICY) is None
    assert repo.get("r1").api_retry_count == 0


def test_redis_update_retries_on_conflict():
    client = FakeRedis()
    repo = RedisReportRepo(client=client)
    repo.create(make_record())
    client.watch_conflicts = 2

    assert repo.update("r1", last_error="x").last_error == "x"


def test_redis_update_gives_up_after_repeated_conflicts():
    client = FakeRedis()
    repo = RedisReportRepo(client=client)
    repo.create(make_record())
    client.watch_conflicts = 10

    with pytest.raises(StoreError):
        repo.update("r1", last_error="x")


def test_redis_layout_and_staged_ttl():
    client = FakeRedis()
    repo = RedisReportRepo(client=client, staged_ttl_seconds=120)
    record = make_record()
    repo.create(record)
    repo.stage_result("r1", 1, {"content": "c"})

    assert json.loads(client.data["report:r1"])["fingerprint"] == "fp1"
    assert client.zsets["report:fp:fp1"] == {"r1": record.created_at.timestamp()}
    assert client.ttls["report:r1:staged"] == 120


def test_redis_errors_become_store_errors():
    client = Mock()
    client.get.side_effect = redis.ConnectionError("down")
    repo = RedisReportRepo(client=client)
    with pytest.raises(StoreError):
        repo.get("r1")
