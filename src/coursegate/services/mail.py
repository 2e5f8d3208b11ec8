"""Outgoing mail with a provider abstraction.

Learn: Only one message leaves the platform today (the password reset
link), so the service is small: a provider interface, a development
provider that logs instead of sending, and the Resend HTTP API for
production. Providers report success as a bool; delivery failures are
logged and never surface to the HTTP caller.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from coursegate.config import settings

logger = structlog.get_logger()


class MailProvider(ABC):
    @abstractmethod
    async def send(self, to_email: str, subject: str, text_body: str) -> bool:
        """Send a plain-text message. Returns True on success."""


class LogMailProvider(MailProvider):
    """Development provider: writes the message to the log."""

    def __init__(self):
        self.outbox: list[dict] = []

    async def send(self, to_email: str, subject: str, text_body: str) -> bool:
        self.outbox.append({"to": to_email, "subject": subject, "body": text_body})
        logger.info("mail.logged", to=to_email, subject=subject, body=text_body)
        return True


class ResendMailProvider(MailProvider):
    """Send through the Resend HTTP API."""

    def __init__(self, api_key: str, from_address: str, from_name: str):
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name

    async def send(self, to_email: str, subject: str, text_body: str) -> bool:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    "https://api.resend.com/emails",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": f"{self.from_name} <{self.from_address}>",
                        "to": [to_email],
                        "subject": subject,
                        "text": text_body,
                    },
                    timeout=10.0,
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("mail.send_failed", to=to_email, provider="resend", error=str(e))
            return False
        logger.info("mail.sent", to=to_email, subject=subject, provider="resend")
        return True


def _create_provider() -> MailProvider:
    name = settings.mail_provider.lower()
    if name == "log":
        return LogMailProvider()
    if name == "resend":
        return ResendMailProvider(
            api_key=settings.resend_api_key,
            from_address=settings.mail_from,
            from_name=settings.mail_from_name,
        )
    raise ValueError(f"Unsupported mail provider: {name}")


_provider: Optional[MailProvider] = None


def get_mail_provider() -> MailProvider:
    """Get or create the process-wide provider (FastAPI dependency)."""
    global _provider
    if _provider is None:
        _provider = _create_provider()
    return _provider


def password_reset_message(reset_url: str) -> tuple[str, str]:
    subject = "Reset your password"
    body = (
        "We received a request to reset your password.\n\n"
        f"Open this link within the next hour to choose a new one:\n{reset_url}\n\n"
        "If you did not ask for this, you can ignore this message."
    )
    return subject, body
