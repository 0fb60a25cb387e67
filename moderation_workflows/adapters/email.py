from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from ..errors import NotFound, PermanentProviderError
from ..storage.base import UserStore
from .http import HTTPProviderAdapter

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class EmailRequest:
    organization_id: str
    user_id: str
    subject: str
    html: str
    text: str


class EmailSender(HTTPProviderAdapter):
    """Sends transactional email to a platform user, resolving the address from the user store."""

    provider = "email"

    def __init__(
        self,
        users: UserStore,
        api_key: str,
        *,
        from_address: str,
        base_url: str = "https://api.resend.com",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            client=client,
        )
        self._users = users
        self._from_address = from_address

    async def send_email(self, request: EmailRequest, *, idempotency_key: Optional[str] = None) -> dict[str, Any]:
        user = await self._users.get_user(request.organization_id, request.user_id)
        if user is None:
            raise NotFound(f"User not found: {request.user_id}")
        if not user.email:
            raise PermanentProviderError(
                f"User {request.user_id} has no email address", provider=self.provider
            )
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        logger.info("email_send", user_id=request.user_id, subject=request.subject)
        return await self.post(
            "/emails",
            json={
                "from": self._from_address,
                "to": [user.email],
                "subject": request.subject,
                "html": request.html,
                "text": request.text,
                "tags": [{"name": "organization_id", "value": request.organization_id}],
            },
            headers=headers,
        )
