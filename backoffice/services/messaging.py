"""Outbound messaging through an n8n webhook (email, WhatsApp, calendar)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from ..config import CONFIG


logger = logging.getLogger(__name__)


class MessagingError(RuntimeError):
    """Raised when an outbound message could not be delivered."""


class WebhookMessagingGateway:
    """Posts channel messages as JSON to the configured n8n webhook.

    The workflow on the other side owns the transport (Gmail/Outlook,
    WhatsApp, Google Calendar); this gateway only hands over the payload.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.webhook_url = webhook_url or CONFIG.n8n_webhook_url
        self.api_key = api_key or CONFIG.n8n_api_key
        self.timeout = timeout or CONFIG.outbound_http_timeout

    def _post(self, channel: str, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.webhook_url:
            raise MessagingError(f"No webhook configured for {channel} messages")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {"channel": channel, "userId": user_id, "payload": payload}

        try:
            response = requests.post(self.webhook_url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise MessagingError(f"{channel} webhook request failed: {exc}") from exc

        if response.status_code >= 400:
            raise MessagingError(
                f"{channel} webhook returned {response.status_code}: {(response.text or '')[:200]}"
            )

        logger.info("Delivered %s message for user %s", channel, user_id)
        try:
            return response.json() or {}
        except ValueError:
            return {}

    def send_email(self, user_id: str, *, to: str, subject: str, body: str) -> Dict[str, Any]:
        if not to:
            raise MessagingError("Email recipient is missing")
        return self._post("email", user_id, {"to": to, "subject": subject, "body": body})

    def send_whatsapp(self, user_id: str, *, to: str, message: str) -> Dict[str, Any]:
        if not to:
            raise MessagingError("WhatsApp recipient is missing")
        return self._post("whatsapp", user_id, {"to": to, "message": message})

    def create_calendar_event(
        self,
        user_id: str,
        *,
        title: str,
        start: str,
        end: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._post(
            "calendar",
            user_id,
            {"title": title, "start": start, "end": end, "description": description},
        )


__all__ = ["MessagingError", "WebhookMessagingGateway"]
