"""Notification collaborator.

Delivery itself lives outside the engine. ``notify`` is fire-and-forget:
whatever goes wrong is logged and never reaches the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

from ..core.config import settings
from ..utils.dt_utils import utcnow

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, event: str, payload: dict[str, Any]) -> None: ...


class LoggingNotifier:
    def send(self, event: str, payload: dict[str, Any]) -> None:
        logger.info(f"notification {event}: {payload}")


class WebhookNotifier:
    def __init__(self, url: str, timeout: float = 5.0) -> None:
        self.url = url
        self.timeout = timeout

    def send(self, event: str, payload: dict[str, Any]) -> None:
        body = {"event": event, "sent_at": utcnow().isoformat(), "payload": payload}
        response = requests.post(self.url, json=body, timeout=self.timeout)
        response.raise_for_status()


def _default_notifier() -> Notifier:
    if settings.NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(settings.NOTIFY_WEBHOOK_URL, timeout=settings.NOTIFY_TIMEOUT_SECONDS)
    return LoggingNotifier()


_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = _default_notifier()
    return _notifier


def set_notifier(notifier: Notifier | None) -> None:
    """Swap the collaborator (None restores the configured default)."""
    global _notifier
    _notifier = notifier


def notify(event: str, **payload: Any) -> None:
    try:
        get_notifier().send(event, payload)
    except Exception as e:
        logger.warning(f"Notification {event} failed: {e}")
