import logging

import pytest
import requests

from dispatch.exceptions import NotificationError
from dispatch.notifications import (
    InMemoryAnalyticsRecorder,
    WebhookNotificationDispatcher,
    safe_notify_assignment,
    safe_track,
)
from orders.models import RIDER_ASSIGNED
from riders.models import RiderStatus

from conftest import CENTER, make_order, make_rider


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code


class FakeSession:
    def __init__(self, status_code=200, error=None):
        self.status_code = status_code
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.error:
            raise self.error
        return FakeResponse(self.status_code)


def test_webhook_posts_assignment_payload():
    session = FakeSession()
    notifier = WebhookNotificationDispatcher("https://hooks.test/dispatch", timeout=3, session=session)

    notifier.send_rider_assignment(make_rider("r1"), "ORD-1", (-17.8, 31.0))

    assert session.calls == [{
        "url": "https://hooks.test/dispatch",
        "json": {
            "event": "rider_assignment",
            "riderId": "r1",
            "orderId": "ORD-1",
            "pickup": {"lat": -17.8, "lon": 31.0},
        },
        "timeout": 3,
    }]


def test_webhook_posts_status_update():
    session = FakeSession()
    notifier = WebhookNotificationDispatcher("https://hooks.test/dispatch", session=session)

    notifier.send_order_status_update(make_order(assigned_rider_id="r1"), "picked_up", "on the way")

    payload = session.calls[0]["json"]
    assert payload == {
        "event": "order_status_update",
        "orderId": "ORD-1",
        "riderId": "r1",
        "status": "picked_up",
        "notes": "on the way",
    }


def test_webhook_non_2xx_raises():
    notifier = WebhookNotificationDispatcher("https://hooks.test/dispatch", session=FakeSession(status_code=502))

    with pytest.raises(NotificationError):
        notifier.send_rider_assignment(make_rider("r1"), "ORD-1", (-17.8, 31.0))


def test_webhook_connection_error_raises():
    session = FakeSession(error=requests.ConnectionError("refused"))
    notifier = WebhookNotificationDispatcher("https://hooks.test/dispatch", session=session)

    with pytest.raises(NotificationError):
        notifier.send_rider_assignment(make_rider("r1"), "ORD-1", (-17.8, 31.0))


def test_webhook_requires_url(monkeypatch):
    monkeypatch.delenv("NOTIFICATION_WEBHOOK_URL", raising=False)
    with pytest.raises(ValueError):
        WebhookNotificationDispatcher(session=FakeSession())


def test_webhook_url_from_environment(monkeypatch):
    monkeypatch.setenv("NOTIFICATION_WEBHOOK_URL", "https://hooks.test/from-env")
    assert WebhookNotificationDispatcher(session=FakeSession()).url == "https://hooks.test/from-env"


def test_safe_helpers_swallow_and_log(caplog):
    notifier = WebhookNotificationDispatcher("https://hooks.test/dispatch", session=FakeSession(status_code=500))

    with caplog.at_level(logging.ERROR, logger="dispatch.notifications"):
        assert safe_notify_assignment(notifier, make_rider("r1"), "ORD-1", (-17.8, 31.0)) is False

    assert "Failed to notify rider r1" in caplog.text
    assert safe_notify_assignment(None, make_rider("r1"), "ORD-1", (-17.8, 31.0)) is False


def test_safe_track_records_event():
    analytics = InMemoryAnalyticsRecorder()
    assert safe_track(analytics, "rider_assigned", {"orderId": "ORD-1"}) is True
    assert analytics.named("rider_assigned") == [{"orderId": "ORD-1"}]


def test_engine_assigns_even_when_webhook_fails(build_engine):
    notifier = WebhookNotificationDispatcher("https://hooks.test/dispatch", session=FakeSession(status_code=503))
    engine, riders, orders = build_engine([make_rider("near", north_km=1)], [make_order()], notifier=notifier)

    result = engine.assign("ORD-1")

    assert result.rider.id == "near"
    assert riders.get_by_id("near").status == RiderStatus.BUSY
    assert orders.get_by_id("ORD-1").status == RIDER_ASSIGNED
    assert notifier.session.calls[0]["json"]["pickup"] == {"lat": CENTER[0], "lon": CENTER[1]}
