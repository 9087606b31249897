"""Client notification adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when a notification could not be handed off."""


class Notifier(ABC):
    @abstractmethod
    def notify(self, event: str, payload: dict[str, Any]) -> None:
        """Hand a notification to the delivery channel."""


class NullNotifier(Notifier):
    """Used when no delivery channel is configured."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.debug("notify.skipped event=%s reason=not_configured", event)


class WebhookNotifier(Notifier):
    """Posts ``{"event", ...payload}`` to a messaging webhook."""

    def __init__(self, *, url: str, timeout_seconds: float, client: httpx.Client | None = None) -> None:
        self._url = url
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        try:
            response = self._client.post(self._url, json={"event": event, **payload})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Notification {event} failed") from exc


__all__ = ["NotificationError", "Notifier", "NullNotifier", "WebhookNotifier"]
