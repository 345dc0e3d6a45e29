from __future__ import annotations

import html
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from job_pilot.config import settings

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class Mailer(ABC):
    @abstractmethod
    async def send(self, sender: str, to: str, subject: str, html_body: str) -> DeliveryResult:
        """Deliver one message. Transport problems come back as a failed result."""


class BrevoMailer(Mailer):
    """Transactional email through the Brevo HTTP API."""

    def __init__(self, api_key: str, api_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.api_url = api_url or settings.brevo_api_url
        self._client = client

    async def send(self, sender: str, to: str, subject: str, html_body: str) -> DeliveryResult:
        payload = {
            "sender": {"email": sender},
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": html_body,
        }
        headers = {"api-key": self.api_key, "accept": "application/json"}
        try:
            if self._client is not None:
                resp = await self._client.post(self.api_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=settings.send_timeout_seconds) as client:
                    resp = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Brevo request failed for {to}: {e}")
            return DeliveryResult(success=False, error=f"Delivery request failed: {e}")

        if resp.status_code >= 400:
            detail = resp.text[:300]
            logger.error(f"Brevo rejected message to {to}: HTTP {resp.status_code} {detail}")
            return DeliveryResult(success=False, error=f"HTTP {resp.status_code}: {detail}")

        message_id = None
        try:
            message_id = resp.json().get("messageId")
        except ValueError:
            pass
        logger.info(f"Email sent to {to} | subject={subject}")
        return DeliveryResult(success=True, message_id=message_id)


class LogMailer(Mailer):
    """Suppressed delivery: logs the message and reports success."""

    def __init__(self):
        self.sent: list[dict] = []

    async def send(self, sender: str, to: str, subject: str, html_body: str) -> DeliveryResult:
        logger.info(f"[MAIL_SUPPRESS_SEND] would send: {sender} -> {to} | {subject}")
        self.sent.append({"sender": sender, "to": to, "subject": subject, "html": html_body})
        return DeliveryResult(success=True, message_id=f"suppressed-{uuid.uuid4().hex[:12]}")


def text_to_html(body: str) -> str:
    paragraphs = [p.strip() for p in (body or "").split("\n\n") if p.strip()]
    return "".join(f"<p>{html.escape(p).replace(chr(10), '<br>')}</p>" for p in paragraphs)


def get_mailer() -> Mailer:
    if settings.mail_suppress_send or not settings.brevo_api_key:
        if not settings.mail_suppress_send:
            logger.warning("No Brevo API key configured; outgoing mail is only logged")
        return LogMailer()
    return BrevoMailer(settings.brevo_api_key)
