"""Tests de la tâche Celery de notification et de l'envoi au broker."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from tests.fakes import FakeNotifier, make_record
from ziwei_report.app.celery_app import celery_app
from ziwei_report.core.container import container
from ziwei_report.domain.errors import NotificationError
from ziwei_report.infra.ops.enqueue import enqueue_report_email
from ziwei_report.tasks.notify_tasks import (
    send_report_email_task,
    sweep_pending_notifications_task,
)


@pytest.fixture
def wired(monkeypatch, store):
    notifier = FakeNotifier()
    monkeypatch.setattr(container, "report_repo", store)
    monkeypatch.setattr(container, "notifier", notifier)
    return store, notifier


def test_task_sends_pending_notification(wired, clock):
    store, notifier = wired
    store.create(make_record(notification_status="pending", completed_at=clock.now))

    assert send_report_email_task.run("r1") == "sent"
    assert store.get("r1").notification_status == "sent"
    assert notifier.sent == ["r1"]


def test_task_is_replay_safe(wired, clock):
    store, notifier = wired
    store.create(make_record(notification_status="sent", completed_at=clock.now))

    assert send_report_email_task.run("r1") == "sent"
    assert notifier.sent == []


def test_task_skips_reports_without_content(wired):
    store, notifier = wired
    store.create(make_record())
    assert send_report_email_task.run("r1") == "skipped"


def test_task_unknown_report(wired):
    assert send_report_email_task.run("missing") == "not_found"


def test_task_failure_is_raised_for_retry(wired, clock):
    store, notifier = wired
    notifier.fail = True
    store.create(make_record(notification_status="pending", completed_at=clock.now))

    with pytest.raises(NotificationError):
        send_report_email_task.run("r1")
    assert store.get("r1").notification_status == "failed"


def test_enqueue_report_email(monkeypatch):
    send_task = Mock()
    monkeypatch.setattr(celery_app, "send_task", send_task)
    assert enqueue_report_email("r9") is True
    send_task.assert_called_once_with(
        "ziwei_report.tasks.send_report_email", args=("r9",), kwargs={}
    )


def test_enqueue_failure_is_reported(monkeypatch):
    monkeypatch.setattr(celery_app, "send_task", Mock(side_effect=ConnectionError("no broker")))
    assert enqueue_report_email("r9") is False


def test_sweep_delivers_pending_reports(wired, clock):
    store, notifier = wired
    store.create(make_record(id="a", notification_status="pending", completed_at=clock.now))
    store.create(make_record(id="b", notification_status="sent", completed_at=clock.now))
    store.create(make_record(id="c"))

    assert sweep_pending_notifications_task.run() == {"sent": 1, "skipped": 0, "failed": 0}
    assert notifier.sent == ["a"]
    assert store.list_pending_notifications() == []


def test_sweep_counts_failures_and_continues(wired, clock):
    store, notifier = wired
    notifier.fail = True
    store.create(make_record(id="a", notification_status="pending", completed_at=clock.now))
    store.create(make_record(id="b", notification_status="pending", completed_at=clock.now))

    assert sweep_pending_notifications_task.run() == {"sent": 0, "skipped": 0, "failed": 2}
    assert store.get("a").notification_status == "failed"


def test_sweep_is_scheduled():
    entry = celery_app.conf.beat_schedule["sweep-pending-notifications"]
    assert entry["task"] == "ziwei_report.tasks.sweep_pending_notifications"
