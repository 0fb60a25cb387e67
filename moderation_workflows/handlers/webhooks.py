from __future__ import annotations

import structlog

from ..adapters.webhooks import WebhookSender
from ..errors import NotFound, ValidationError
from ..models import StatusChangeEvent, UserActionStatus, WebhookEndpoint, WebhookEventType
from ..steps.executor import StepExecutor
from ..storage.base import UserStore, WebhookRegistry
from .base import WorkflowHandler, fetch_user

logger = structlog.get_logger(__name__)


def webhook_event_for(status: UserActionStatus) -> WebhookEventType:
    match status:
        case UserActionStatus.COMPLIANT:
            return WebhookEventType.USER_COMPLIANT
        case UserActionStatus.SUSPENDED:
            return WebhookEventType.USER_SUSPENDED
        case UserActionStatus.BANNED:
            return WebhookEventType.USER_BANNED
        case _:
            raise ValidationError(f"Unexpected status: {status!r}")


class WebhookNotificationHandler(WorkflowHandler):
    handler_id = "send-user-action-webhook"

    def __init__(self, users: UserStore, webhooks: WebhookRegistry, sender: WebhookSender) -> None:
        self._users = users
        self._webhooks = webhooks
        self._sender = sender

    async def handle(self, event: StatusChangeEvent, step: StepExecutor) -> None:
        user = await fetch_user(step, self._users, event)

        async def load_endpoint() -> WebhookEndpoint:
            endpoint = await self._webhooks.get_webhook_endpoint(event.organization_id)
            if endpoint is None:
                raise NotFound(f"No webhook configured for organization {event.organization_id}")
            return endpoint

        endpoint = await step.run("fetch-webhook-endpoint", load_endpoint, result_type=WebhookEndpoint)
        event_type = webhook_event_for(event.status)

        async def send() -> None:
            await self._sender.send_webhook(
                endpoint.id,
                event_type,
                {"clientId": user.client_id},
                idempotency_key=step.idempotency_key("send-webhook"),
            )

        await step.run("send-webhook", send)
        logger.info("webhook_delivered", endpoint_id=endpoint.id, webhook_event=event_type.value)
