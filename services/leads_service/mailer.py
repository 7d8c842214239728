import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

from shared.utils import Settings

logger = logging.getLogger("leads-service")


class MailerError(Exception):
    pass


@dataclass
class EmailMessage:
    to: List[str]
    subject: str
    html: str


class ResendMailer:
    """Sends transactional e-mail through the Resend REST API."""

    def __init__(self, api_key: Optional[str], api_url: str, from_name: str, from_address: str,
                 transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 10.0):
        self.api_key = api_key
        self.api_url = api_url
        self.sender = f"{from_name} <{from_address}>"
        self.transport = transport
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ResendMailer":
        return cls(
            api_key=settings.RESEND_API_KEY,
            api_url=settings.RESEND_API_URL,
            from_name=settings.RESEND_FROM_NAME,
            from_address=settings.RESEND_FROM_ADDRESS,
            transport=transport,
        )

    async def send(self, message: EmailMessage) -> str:
        if not self.api_key:
            raise MailerError("RESEND_API_KEY is not configured")

        payload = {"from": self.sender, "to": message.to, "subject": message.subject, "html": message.html}
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            try:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
                return response.json().get("id", "")
            except httpx.HTTPStatusError as e:
                raise MailerError(f"Resend rejected the message: HTTP {e.response.status_code}")
            except httpx.HTTPError as e:
                raise MailerError(f"Resend request failed: {e}")
            except ValueError:
                raise MailerError("Resend returned non-JSON response")

    async def send_all(self, messages: List[EmailMessage]) -> int:
        """Send each message, logging failures. Returns how many were accepted."""
        sent = 0
        for message in messages:
            try:
                await self.send(message)
                sent += 1
            except MailerError as e:
                logger.error(f"Email send failed: {message.subject}", extra={"error": str(e)})
        return sent
