"""
Outbound WhatsApp notifier with provider abstraction.

Supports the WhatsApp Cloud API and a log-only provider for development.
Provider is selected via configuration.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TypedDict

import httpx
import structlog

from academy.config import Settings
from academy.exceptions import NotificationError

logger = structlog.get_logger()

MESSAGE_TYPES = ("fee_reminder", "payment_received", "attendance_alert", "general")


class NotificationResult(TypedDict):
    success: bool
    message_id: str


def normalize_phone(phone: str) -> str:
    """Strip everything but digits, as the Cloud API expects."""
    return re.sub(r"[^0-9]", "", phone)


class BaseNotifier(ABC):
    """Abstract base class for message delivery providers."""

    @abstractmethod
    async def send(self, to: str, message: str, type: str = "general") -> NotificationResult:  # noqa: A002
        """Deliver a message. Raises NotificationError on failure."""
        ...


class WhatsAppNotifier(BaseNotifier):
    """Send text messages via the WhatsApp Business Cloud API."""

    def __init__(
        self,
        token: str,
        phone_number_id: str,
        base_url: str = "https://graph.facebook.com/v18.0",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.phone_number_id = phone_number_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def send(self, to: str, message: str, type: str = "general") -> NotificationResult:  # noqa: A002
        if not self.token or not self.phone_number_id:
            raise NotificationError(
                "WhatsApp API not configured: set ACADEMY_WHATSAPP_TOKEN and ACADEMY_WHATSAPP_PHONE_NUMBER_ID"
            )

        payload = {
            "messaging_product": "whatsapp",
            "to": normalize_phone(to),
            "type": "text",
            "text": {"body": message},
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/{self.phone_number_id}/messages",
                    headers={
                        "Authorization": f"Bearer {self.token}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.warning("whatsapp_send_failed", to=to, message_type=type, error=str(exc))
            raise NotificationError(f"WhatsApp request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            error = (body.get("error") or {}).get("message") or "Unknown error"
            logger.warning("whatsapp_send_failed", to=to, message_type=type, status=response.status_code, error=error)
            raise NotificationError(f"WhatsApp API error: {error}")

        messages = body.get("messages") or [{}]
        message_id = messages[0].get("id") or ""
        logger.info("whatsapp_sent", to=to, message_type=type, message_id=message_id)
        return {"success": True, "message_id": message_id}


class LogNotifier(BaseNotifier):
    """Log messages instead of sending them (development default)."""

    def __init__(self) -> None:
        self._counter = 0

    async def send(self, to: str, message: str, type: str = "general") -> NotificationResult:  # noqa: A002
        self._counter += 1
        message_id = f"log_{self._counter}"
        logger.info("notification_logged", to=to, message_type=type, message_id=message_id, length=len(message))
        return {"success": True, "message_id": message_id}


def get_notifier(settings: Settings) -> BaseNotifier:
    """Build the configured notifier."""
    provider = settings.notifier_provider.lower()
    if provider == "whatsapp":
        return WhatsAppNotifier(
            token=settings.whatsapp_token,
            phone_number_id=settings.whatsapp_phone_number_id,
            base_url=settings.whatsapp_api_base_url,
            timeout=settings.whatsapp_timeout_seconds,
        )
    if provider == "log":
        return LogNotifier()
    msg = f"Unknown notifier provider: {settings.notifier_provider!r}"
    raise ValueError(msg)
