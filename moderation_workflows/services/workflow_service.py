from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional, Union

import structlog

from ..adapters.email import EmailSender
from ..adapters.payments import PaymentGatewayClient
from ..adapters.webhooks import WebhookSender
from ..config import WorkflowSettings
from ..emails.renderer import TemplateRenderer
from ..handlers.appeals import AppealResolutionHandler
from ..handlers.base import WorkflowHandler
from ..handlers.emails import EmailNotificationHandler
from ..handlers.payments import PaymentGateHandler
from ..handlers.webhooks import WebhookNotificationHandler
from ..logging.events import configure_from_settings
from ..models import HandlerOutcome, StatusChangeEvent
from ..scheduler.dispatcher import WorkflowDispatcher
from ..scheduler.runner import HandlerRunner
from ..security.appeal_tokens import AppealTokenSigner
from ..security.secrets import SecretBox
from ..storage.base import StorageGateway
from ..storage.sqlite import SQLiteStorage

logger = structlog.get_logger(__name__)


class WorkflowCoordinator:
    """Builds the stores, provider clients and handlers from settings and dispatches events."""

    def __init__(
        self,
        settings: WorkflowSettings,
        *,
        storage: Optional[StorageGateway] = None,
        gateway: Optional[PaymentGatewayClient] = None,
        webhook_sender: Optional[WebhookSender] = None,
        email_sender: Optional[EmailSender] = None,
    ) -> None:
        configure_from_settings(settings.logging)
        self._settings = settings
        self._storage = storage or SQLiteStorage(settings.storage.sqlite_path)
        self._gateway = gateway or PaymentGatewayClient(
            base_url=settings.payments.base_url,
            timeout=settings.payments.timeout_seconds,
        )
        self._webhook_sender = webhook_sender or WebhookSender(
            settings.webhooks.api_key,
            base_url=settings.webhooks.base_url,
            timeout=settings.webhooks.timeout_seconds,
        )
        self._email_sender = email_sender or EmailSender(
            self._storage,
            settings.email.api_key,
            from_address=settings.email.from_address,
            base_url=settings.email.base_url,
            timeout=settings.email.timeout_seconds,
        )
        secrets = SecretBox(settings.security.encryption_key)
        signer = AppealTokenSigner(
            settings.security.appeal_token_secret,
            ttl=timedelta(hours=settings.security.appeal_token_ttl_hours),
        )
        handlers: list[WorkflowHandler] = [
            PaymentGateHandler(self._storage, self._storage, self._gateway, secrets),
            WebhookNotificationHandler(self._storage, self._storage, self._webhook_sender),
            EmailNotificationHandler(
                self._storage,
                self._storage,
                TemplateRenderer(),
                self._email_sender,
                signer,
                public_base_url=settings.public_base_url,
            ),
            AppealResolutionHandler(self._storage),
        ]
        self._dispatcher = WorkflowDispatcher(handlers, HandlerRunner(self._storage, settings.retry))

    @property
    def storage(self) -> StorageGateway:
        return self._storage

    async def start(self) -> None:
        await self._storage.connect()
        logger.info("workflow_coordinator_started")

    async def shutdown(self) -> None:
        await self._gateway.close()
        await self._webhook_sender.close()
        await self._email_sender.close()
        await self._storage.disconnect()
        logger.info("workflow_coordinator_stopped")

    async def __aenter__(self) -> "WorkflowCoordinator":
        await self.start()
        return self

    async def __aexit__(self, *_) -> None:
        await self.shutdown()

    async def handle_event(self, event: Union[StatusChangeEvent, dict[str, Any]]) -> list[HandlerOutcome]:
        if not isinstance(event, StatusChangeEvent):
            event = StatusChangeEvent.from_payload(event)
        return await self._dispatcher.dispatch(event)
