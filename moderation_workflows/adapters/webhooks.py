from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

from ..models import WebhookEventType
from .http import HTTPProviderAdapter

logger = structlog.get_logger(__name__)


class WebhookSender(HTTPProviderAdapter):
    """Publishes events to an organization's registered endpoint through the webhook relay."""

    provider = "webhooks"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            client=client,
        )

    async def send_webhook(
        self,
        endpoint_id: str,
        event: WebhookEventType,
        payload: dict[str, Any],
        *,
        idempotency_key: Optional[str] = None,
    ) -> dict[str, Any]:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        logger.info("webhook_send", endpoint_id=endpoint_id, webhook_event=event.value)
        return await self.post(
            f"/endpoints/{endpoint_id}/messages",
            json={"event": event.value, "payload": payload},
            headers=headers,
        )
