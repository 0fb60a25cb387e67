from __future__ import annotations

from typing import Optional

import structlog

from ..adapters.payments import PaymentGatewayClient
from ..errors import NotFound
from ..models import OrganizationSettings, StatusChangeEvent, User, UserActionStatus
from ..security.secrets import SecretBox
from ..steps.executor import StepExecutor
from ..storage.base import OrganizationSettingsStore, UserStore
from .base import WorkflowHandler, fetch_user

logger = structlog.get_logger(__name__)


class PaymentGateHandler(WorkflowHandler):
    handler_id = "update-payments-payouts"

    def __init__(
        self,
        users: UserStore,
        organizations: OrganizationSettingsStore,
        gateway: PaymentGatewayClient,
        secrets: SecretBox,
    ) -> None:
        self._users = users
        self._organizations = organizations
        self._gateway = gateway
        self._secrets = secrets

    async def handle(self, event: StatusChangeEvent, step: StepExecutor) -> None:
        user = await fetch_user(step, self._users, event)

        async def load_settings() -> OrganizationSettings:
            settings = await self._organizations.get_organization_settings(event.organization_id)
            if settings is None:
                raise NotFound(f"Organization settings not found: {event.organization_id}")
            return settings

        settings = await step.run(
            "fetch-organization-settings", load_settings, result_type=OrganizationSettings
        )
        key = step.idempotency_key("update-payment-gate")
        await step.run(
            "update-payment-gate",
            lambda: self._update_gate(event, user, settings, key),
            result_type=Optional[str],
        )

    async def _update_gate(
        self,
        event: StatusChangeEvent,
        user: User,
        settings: OrganizationSettings,
        idempotency_key: str,
    ) -> Optional[str]:
        if not settings.payment_api_key or not user.payment_account_id:
            logger.info(
                "payment_gate_skipped",
                user_id=user.id,
                has_api_key=bool(settings.payment_api_key),
                has_account=bool(user.payment_account_id),
            )
            return None

        match event.status:
            case UserActionStatus.SUSPENDED | UserActionStatus.BANNED:
                api_key = self._secrets.decrypt(settings.payment_api_key)
                await self._gateway.pause_payments_and_payouts(
                    api_key, user.payment_account_id, idempotency_key=idempotency_key
                )
                return "paused"
            case UserActionStatus.COMPLIANT:
                api_key = self._secrets.decrypt(settings.payment_api_key)
                await self._gateway.resume_payments_and_payouts(
                    api_key, user.payment_account_id, idempotency_key=idempotency_key
                )
                return "resumed"
            case _:
                logger.info("payment_gate_skipped", reason="unknown_status", status=event.status)
                return None
