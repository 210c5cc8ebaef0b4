"""Out-of-band delivery of password reset tokens."""

import logging

import httpx

from novelhub.core.config import Settings

logger = logging.getLogger(__name__)


class ResetTokenDelivery:
    """Posts reset tokens to a trusted webhook (e.g. a mail relay).

    Delivery failures are logged and never raised, so the forgot-password
    response does not reveal whether delivery succeeded.
    """

    def __init__(self, webhook_url: str, client: httpx.AsyncClient | None = None) -> None:
        self.webhook_url = webhook_url
        self._client = client or httpx.AsyncClient(timeout=10)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResetTokenDelivery":
        return cls(settings.password_reset_webhook_url)

    async def deliver(self, email: str, token: str) -> bool:
        """Send the reset token for ``email``; returns True on success."""
        if not self.webhook_url:
            logger.warning("No password reset delivery channel configured; token for %s not sent", email)
            return False
        try:
            response = await self._client.post(
                self.webhook_url,
                json={"type": "password_reset", "email": email, "token": token},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Password reset delivery failed for %s: %s", email, e)
            return False
        logger.info("Password reset token delivered for %s", email)
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
