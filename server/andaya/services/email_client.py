"""Transactional email through the Resend HTTP API."""

import logging
from typing import List, Optional

import httpx
from andaya.config import settings
from andaya.errors import UpstreamError

logger = logging.getLogger(__name__)


class EmailService:
    """Sends HTML emails. A missing API key disables sending (logged, not raised)."""

    def __init__(
        self,
        api_key: str = None,
        api_url: str = None,
        sender: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.sender = sender or settings.EMAIL_FROM
        self._client = httpx.AsyncClient(
            base_url=(api_url or settings.RESEND_API_URL).rstrip("/"),
            timeout=settings.HTTP_TIMEOUT,
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def close(self):
        await self._client.aclose()

    async def send(self, to: List[str], subject: str, html: str) -> Optional[str]:
        """
        Send an email.

        Returns:
            Provider message id, or None when sending is disabled

        Raises:
            UpstreamError: If the provider rejects the message or is unreachable
        """
        recipients = [address for address in to if address]
        if not recipients:
            raise UpstreamError("Email has no recipients")

        if not self.enabled:
            logger.warning(f"RESEND_API_KEY not set, skipping email '{subject}' to {recipients}")
            return None

        try:
            response = await self._client.post(
                "/emails",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": recipients, "subject": subject, "html": html},
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Email provider unreachable: {e}") from e

        if response.status_code >= 400:
            raise UpstreamError(
                f"Email provider returned {response.status_code}: {response.text[:200]}"
            )

        message_id = response.json().get("id")
        logger.info(f"Email '{subject}' sent to {recipients} (id={message_id})")
        return message_id

    async def send_best_effort(self, to: List[str], subject: str, html: str) -> Optional[str]:
        """Send without failing the caller; errors are logged."""
        try:
            return await self.send(to, subject, html)
        except UpstreamError as e:
            logger.error(f"Failed to send email '{subject}': {e.message}")
            return None


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Shared service instance (FastAPI dependency)."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


async def close_email_service():
    global _email_service
    if _email_service is not None:
        await _email_service.close()
        _email_service = None
