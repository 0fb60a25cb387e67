from __future__ import annotations

from typing import Optional

import httpx
import structlog

from .http import HTTPProviderAdapter

logger = structlog.get_logger(__name__)


class PaymentGatewayClient(HTTPProviderAdapter):
    """Stripe-style connected-account API.

    Pausing moves the account's payout schedule to manual and flags payments
    as paused; resuming restores the daily schedule. Both calls are safe to
    repeat and carry an idempotency key.
    """

    provider = "payments"

    def __init__(
        self,
        *,
        base_url: str = "https://api.stripe.com",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(base_url=base_url, timeout=timeout, client=client)

    async def pause_payments_and_payouts(
        self, api_key: str, account_id: str, *, idempotency_key: Optional[str] = None
    ) -> None:
        logger.info("payments_pause", account_id=account_id)
        await self._update_account(api_key, account_id, paused=True, idempotency_key=idempotency_key)

    async def resume_payments_and_payouts(
        self, api_key: str, account_id: str, *, idempotency_key: Optional[str] = None
    ) -> None:
        logger.info("payments_resume", account_id=account_id)
        await self._update_account(api_key, account_id, paused=False, idempotency_key=idempotency_key)

    async def _update_account(
        self,
        api_key: str,
        account_id: str,
        *,
        paused: bool,
        idempotency_key: Optional[str],
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = f"{idempotency_key}:{'pause' if paused else 'resume'}"
        await self.post(
            f"/v1/accounts/{account_id}",
            data={
                "settings[payouts][schedule][interval]": "manual" if paused else "daily",
                "metadata[payments_paused]": "true" if paused else "false",
            },
            headers=headers,
        )
