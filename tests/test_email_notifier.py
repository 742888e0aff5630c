"""Tests du client e-mail Resend (httpx)."""

from __future__ import annotations

import json

import httpx
import pytest

from tests.fakes import make_record
from ziwei_report.domain.errors import NotificationError
from ziwei_report.infra.notify.email import EmailNotifier


def _notifier(handler) -> EmailNotifier:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return EmailNotifier(
        api_key="re_test",
        sender="reports@example.com",
        public_base_url="https://ziwei.example/",
        client=client,
    )


def test_send_report_posts_message():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "msg_1"})

    record = make_record(core_identity="<b>Bold</b> leader")
    assert _notifier(handler).send_report(record) == "msg_1"
    assert seen["url"] == "https://api.resend.com/emails"
    assert seen["body"]["to"] == ["user@example.com"]
    assert "https://ziwei.example/result/r1" in seen["body"]["html"]
    assert "&lt;b&gt;Bold&lt;/b&gt;" in seen["body"]["html"]


def test_accepted_message_with_unreadable_body():
    notifier = _notifier(lambda request: httpx.Response(200, text="OK"))
    assert notifier.send_report(make_record()) == ""


def test_provider_rejection_raises():
    notifier = _notifier(lambda request: httpx.Response(422, json={"message": "bad"}))
    with pytest.raises(NotificationError) as exc:
        notifier.send_report(make_record())
    assert exc.value.details == {"status_code": 422}


def test_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(NotificationError):
        _notifier(handler).send_report(make_record())


def test_disabled_without_key():
    notifier = EmailNotifier(api_key=None, sender="a@b.co", public_base_url="http://x")
    assert notifier.enabled is False
    with pytest.raises(NotificationError):
        notifier.send_report(make_record())
