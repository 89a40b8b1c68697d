"""
Notification sinks telling a signer that a document awaits their signature.
"""
import logging
from typing import List, Optional, Tuple

import httpx

from .base import NotificationSink
from ..core.logging_config import mask_token

logger = logging.getLogger(__name__)


class LoggingNotificationSink(NotificationSink):
    """Logs the notification and keeps it in memory"""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    async def notify(self, signer_email: str, token: str) -> None:
        self.sent.append((signer_email, token))
        logger.info(f"Notification sent to {signer_email} (token {mask_token(token)})")


class WebhookNotificationSink(NotificationSink):
    """POSTs the signing invitation to an external mailer/webhook"""

    def __init__(self, url: str, sign_base_url: str, timeout: float = 5.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.sign_base_url = sign_base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def notify(self, signer_email: str, token: str) -> None:
        payload = {
            "email": signer_email,
            "token": token,
            "sign_url": f"{self.sign_base_url}/{token}",
        }
        if self._client is not None:
            response = await self._client.post(self.url, json=payload, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
        response.raise_for_status()
        logger.info(f"Webhook notification delivered for {signer_email}")
