"""Tests de la réutilisation gratuite (post-paiement) et de la dédup (pré-paiement)."""

from datetime import timedelta

import pytest

from tests.fakes import make_record
from ziwei_report.domain.generation_policy import GenerationPolicy
from ziwei_report.domain.reuse_policy import check_free_reuse_or_cache, days_remaining

POLICY = GenerationPolicy()
CONTENT = "x" * 200


def test_pre_payment_hit_within_dedup_window(store, clock):
    store.create(make_record(created_at=clock.now - timedelta(hours=23)))
    hit = check_free_reuse_or_cache(store, "fp1", "pre_payment", clock.now, POLICY)
    assert hit is not None
    assert hit.record.id == "r1"
    assert hit.days_remaining is None


def test_pre_payment_window_bound_is_inclusive(store, clock):
    store.create(make_record(created_at=clock.now - timedelta(hours=24)))
    assert check_free_reuse_or_cache(store, "fp1", "pre_payment", clock.now, POLICY) is not None


def test_pre_payment_miss_after_window(store, clock):
    store.create(make_record(created_at=clock.now - timedelta(hours=24, seconds=1)))
    assert check_free_reuse_or_cache(store, "fp1", "pre_payment", clock.now, POLICY) is None


def test_pre_payment_returns_most_recent(store, clock):
    store.create(make_record(id="old", created_at=clock.now - timedelta(hours=10)))
    store.create(make_record(id="new", created_at=clock.now - timedelta(hours=1)))
    store.create(make_record(id="other", fingerprint="fp2", created_at=clock.now))
    hit = check_free_reuse_or_cache(store, "fp1", "pre_payment", clock.now, POLICY)
    assert hit.record.id == "new"


def test_post_payment_requires_content(store, clock):
    store.create(make_record(paid_at=clock.now - timedelta(days=1)))
    assert check_free_reuse_or_cache(store, "fp1", "post_payment", clock.now, POLICY) is None


def test_post_payment_reports_days_remaining(store, clock):
    store.create(
        make_record(
            created_at=clock.now - timedelta(days=30),
            paid_at=clock.now - timedelta(days=6, hours=12),
            generated_content=CONTENT,
        )
    )
    hit = check_free_reuse_or_cache(store, "fp1", "post_payment", clock.now, POLICY)
    assert hit is not None
    assert hit.days_remaining == 1


def test_post_payment_zero_days_at_window_end(store, clock):
    store.create(make_record(paid_at=clock.now - timedelta(days=7), generated_content=CONTENT))
    hit = check_free_reuse_or_cache(store, "fp1", "post_payment", clock.now, POLICY)
    assert hit is not None
    assert hit.days_remaining == 0


def test_post_payment_miss_after_window(store, clock):
    store.create(
        make_record(paid_at=clock.now - timedelta(days=7, seconds=1), generated_content=CONTENT)
    )
    assert check_free_reuse_or_cache(store, "fp1", "post_payment", clock.now, POLICY) is None


def test_days_remaining_is_never_negative(clock):
    assert days_remaining(clock.now, clock.now, timedelta(days=7)) == 7
    assert days_remaining(clock.now - timedelta(days=9), clock.now, timedelta(days=7)) == 0


def test_unknown_mode_rejected(store, clock):
    with pytest.raises(ValueError):
        check_free_reuse_or_cache(store, "fp1", "later", clock.now, POLICY)
