from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

import structlog
from jose import JWTError, jwt

logger = structlog.get_logger(__name__)

ALGORITHM = "HS256"
TOKEN_PURPOSE = "appeal"


class AppealTokenSigner:
    """Issues user-bound tokens embedded in appeal links."""

    def __init__(self, secret: str, *, ttl: timedelta = timedelta(days=30)) -> None:
        self._secret = secret
        self._ttl = ttl

    def generate_appeal_token(self, user_id: str) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": user_id,
            "purpose": TOKEN_PURPOSE,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify_appeal_token(self, token: str) -> Optional[str]:
        """Return the user id the token was issued for, or None if it is invalid."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except JWTError as exc:
            logger.warning("appeal_token_rejected", error=str(exc))
            return None
        if payload.get("purpose") != TOKEN_PURPOSE:
            return None
        return payload.get("sub")

    def appeal_url(self, base_url: str, user_id: str) -> str:
        query = urlencode({"token": self.generate_appeal_token(user_id)})
        return f"{base_url.rstrip('/')}/appeal?{query}"
