#Purpose: Side-effect adapters (rider notifications + analytics events).
#Everything here is best-effort: a failed notification never undoes an assignment.
#Implementations raise NotificationError; the safe_* helpers at the bottom are what
#the engine calls, and they log and swallow.
#Webhook target is read from the environment, e.g. in .env:
#NOTIFICATION_WEBHOOK_URL=https://hooks.example.com/dispatch

import logging
import os
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

import requests
from dotenv import load_dotenv

from .exceptions import NotificationError

load_dotenv()

logger = logging.getLogger(__name__)

LatLon = Tuple[float, float]


class NotificationDispatcher(Protocol):
    def send_rider_assignment(self, rider, order_id: str, pickup: LatLon) -> None: ...

    def send_order_status_update(self, order, status: str, notes: str = "") -> None: ...


class AnalyticsRecorder(Protocol):
    def track_event(self, name: str, payload: Dict[str, Any]) -> None: ...


class LoggingNotificationDispatcher:
    """Writes notifications to the log instead of delivering them (local runs, tests)."""

    def send_rider_assignment(self, rider, order_id: str, pickup: LatLon) -> None:
        logger.info("Notify rider %s: assigned to order %s, pickup at %s", rider.id, order_id, pickup)

    def send_order_status_update(self, order, status: str, notes: str = "") -> None:
        logger.info("Order %s status update: %s %s", order.id, status, notes)


class WebhookNotificationDispatcher:
    """
    POSTs a JSON payload per notification to one webhook URL.

    Payloads:
        {"event": "rider_assignment", "riderId", "orderId", "pickup": {"lat", "lon"}}
        {"event": "order_status_update", "orderId", "riderId", "status", "notes"}
    """

    def __init__(self, url: Optional[str] = None, timeout: int = 5, session: Optional[requests.Session] = None):
        self.url = url or os.getenv("NOTIFICATION_WEBHOOK_URL")
        self.timeout = timeout
        self.session = session or requests.Session()

        if not self.url:
            raise ValueError("Notification webhook URL not set. Please set NOTIFICATION_WEBHOOK_URL in the .env file.")

    def send_rider_assignment(self, rider, order_id: str, pickup: LatLon) -> None:
        lat, lon = pickup
        self._post(
            {
                "event": "rider_assignment",
                "riderId": rider.id,
                "orderId": order_id,
                "pickup": {"lat": lat, "lon": lon},
            }
        )

    def send_order_status_update(self, order, status: str, notes: str = "") -> None:
        self._post(
            {
                "event": "order_status_update",
                "orderId": order.id,
                "riderId": order.assigned_rider_id,
                "status": status,
                "notes": notes,
            }
        )

    def _post(self, payload: Dict[str, Any]) -> None:
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as error:
            raise NotificationError(f"Webhook request failed: {error}") from error

        if not 200 <= response.status_code < 300:
            raise NotificationError(f"Webhook returned HTTP {response.status_code} for {payload['event']}")


class LoggingAnalyticsRecorder:
    def track_event(self, name: str, payload: Dict[str, Any]) -> None:
        logger.info("analytics event %s %s", name, payload)


class InMemoryAnalyticsRecorder:
    """Keeps (name, payload, recorded_at) tuples; used by tests and the simulation script."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any], datetime]] = []
        self._lock = threading.Lock()

    def track_event(self, name: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.events.append((name, dict(payload), datetime.now()))

    def named(self, name: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [payload for event, payload, _ in self.events if event == name]


#----------------
# Best-effort wrappers used by the engine
#----------------

def safe_notify_assignment(notifier: Optional[NotificationDispatcher], rider, order_id: str, pickup: LatLon) -> bool:
    if notifier is None:
        return False
    try:
        notifier.send_rider_assignment(rider, order_id, pickup)
        return True
    except Exception:
        logger.exception("Failed to notify rider %s about order %s", rider.id, order_id)
        return False


def safe_notify_status(notifier: Optional[NotificationDispatcher], order, status: str, notes: str = "") -> bool:
    if notifier is None:
        return False
    try:
        notifier.send_order_status_update(order, status, notes)
        return True
    except Exception:
        logger.exception("Failed to send status update for order %s", order.id)
        return False


def safe_track(analytics: Optional[AnalyticsRecorder], name: str, payload: Dict[str, Any]) -> bool:
    if analytics is None:
        return False
    try:
        analytics.track_event(name, payload)
        return True
    except Exception:
        logger.exception("Failed to record analytics event %s", name)
        return False
