"""
Audit event notifications

Events are one-way: delivery failures are logged by the caller's boundary
and never affect the audit run.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from core.config import get_settings
from core.exceptions import ExternalAPIError
from core.logging import get_logger

logger = get_logger(__name__, domain="d9")


def build_payload(account_id: Optional[str], event: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "accountId": account_id,
        "sentAt": datetime.now(timezone.utc).isoformat(),
        **event,
    }


class LogNotifier:
    """Writes events to the application log"""

    async def notify(self, account_id: Optional[str], event: Dict[str, Any]) -> None:
        logger.info(
            f"Notification {event.get('type')} for account {account_id}",
            extra={"event": build_payload(account_id, event)},
        )


class WebhookNotifier:
    """POSTs each event as JSON to a configured URL"""

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.url = url
        self.client = client
        self.timeout = timeout

    async def notify(self, account_id: Optional[str], event: Dict[str, Any]) -> None:
        """
        Raises:
            ExternalAPIError: when the webhook is unreachable or answers with an error status
        """
        payload = build_payload(account_id, event)
        try:
            if self.client is not None:
                response = await self.client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise ExternalAPIError(provider="webhook", message=str(e)) from e

        if response.status_code >= 400:
            raise ExternalAPIError(
                provider="webhook",
                message=f"HTTP {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )
        logger.info(f"Delivered {event.get('type')} notification to webhook")


def build_notifier():
    """Webhook notifier when a URL is configured, log notifier otherwise"""
    url = get_settings().notification_webhook_url
    return WebhookNotifier(url) if url else LogNotifier()
