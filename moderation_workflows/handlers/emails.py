from __future__ import annotations

from typing import Optional
from uuid import uuid4

import structlog

from ..adapters.email import EmailRequest, EmailSender
from ..emails.renderer import TemplateRenderer
from ..models import (
    Message,
    MessageType,
    OrganizationSettings,
    RenderedTemplate,
    StatusChangeEvent,
    UserActionStatus,
)
from ..security.appeal_tokens import AppealTokenSigner
from ..steps.executor import StepExecutor
from ..storage.base import MessageLog, OrganizationSettingsStore
from .base import WorkflowHandler

logger = structlog.get_logger(__name__)


class EmailNotificationHandler(WorkflowHandler):
    handler_id = "send-user-action-email"

    def __init__(
        self,
        organizations: OrganizationSettingsStore,
        messages: MessageLog,
        renderer: TemplateRenderer,
        sender: EmailSender,
        signer: AppealTokenSigner,
        *,
        public_base_url: str,
    ) -> None:
        self._organizations = organizations
        self._messages = messages
        self._renderer = renderer
        self._sender = sender
        self._signer = signer
        self._public_base_url = public_base_url

    async def handle(self, event: StatusChangeEvent, step: StepExecutor) -> None:
        settings = await step.run(
            "fetch-organization-settings",
            lambda: self._organizations.find_or_create_organization_settings(event.organization_id),
            result_type=OrganizationSettings,
        )
        if not settings.emails_enabled:
            logger.info("email_skipped", reason="emails_disabled", organization_id=event.organization_id)
            return

        template = await step.run(
            "get-template",
            lambda: self._select_template(event, settings),
            result_type=Optional[RenderedTemplate],
        )
        if template is None:
            logger.info(
                "email_skipped",
                reason="no_template",
                status=event.status,
                previous_status=event.previous_status,
            )
            return

        await step.run(
            "create-message",
            lambda: self._messages.create_message(
                Message(
                    id=str(uuid4()),
                    organization_id=event.organization_id,
                    user_action_id=event.user_action_id,
                    type=MessageType.OUTBOUND,
                    recipient_id=event.user_id,
                    subject=template.subject,
                    text=template.body,
                ),
                dedupe_key=step.idempotency_key("create-message"),
            ),
            result_type=Message,
        )

        async def send() -> None:
            await self._sender.send_email(
                EmailRequest(
                    organization_id=event.organization_id,
                    user_id=event.user_id,
                    subject=template.subject,
                    html=template.html,
                    text=template.body,
                ),
                idempotency_key=step.idempotency_key("send-email"),
            )

        await step.run("send-email", send)

    async def _select_template(
        self, event: StatusChangeEvent, settings: OrganizationSettings
    ) -> Optional[RenderedTemplate]:
        match event.status:
            case UserActionStatus.COMPLIANT:
                # Only a reinstatement from suspension warrants an email.
                if event.previous_status != UserActionStatus.SUSPENDED:
                    return None
                return await self._renderer.render(
                    organization_id=event.organization_id, template="Compliant"
                )
            case UserActionStatus.SUSPENDED:
                appeal_url = (
                    self._signer.appeal_url(self._public_base_url, event.user_id)
                    if settings.appeals_enabled
                    else None
                )
                return await self._renderer.render(
                    organization_id=event.organization_id,
                    template="Suspended",
                    appeal_url=appeal_url,
                )
            case UserActionStatus.BANNED:
                return await self._renderer.render(organization_id=event.organization_id, template="Banned")
            case _:
                return None
