from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import PermanentProviderError, TransientProviderError

logger = structlog.get_logger(__name__)

RETRYABLE_TRANSPORT_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


class HTTPProviderAdapter:
    """Shared request plumbing for provider clients.

    Network faults are retried a few times in-process; whatever is left is
    mapped onto the provider error hierarchy: 429/5xx and exhausted network
    retries are transient, any other 4xx is permanent.
    """

    provider = "http"

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 10.0,
        headers: Optional[dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_network_attempts: int = 3,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            headers=headers or {},
        )
        self._owns_client = client is None
        self._max_network_attempts = max_network_attempts

    async def post(
        self,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        retry = AsyncRetrying(
            wait=wait_exponential(multiplier=0.2, min=0.2, max=2.0),
            stop=stop_after_attempt(self._max_network_attempts),
            retry=retry_if_exception_type(RETRYABLE_TRANSPORT_ERRORS),
            reraise=True,
        )
        try:
            async for attempt in retry:
                with attempt:
                    logger.debug(
                        "provider_request",
                        provider=self.provider,
                        path=path,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    response = await self._client.post(path, json=json, data=data, headers=headers)
        except RETRYABLE_TRANSPORT_ERRORS as exc:
            raise TransientProviderError(
                f"{self.provider} unreachable: {exc.__class__.__name__}",
                provider=self.provider,
            ) from exc

        logger.debug("provider_response", provider=self.provider, path=path, status=response.status_code)
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientProviderError(
                f"{self.provider} error: {response.status_code} {response.text}",
                provider=self.provider,
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise PermanentProviderError(
                f"{self.provider} rejected request: {response.status_code} {response.text}",
                provider=self.provider,
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            # A 2xx with a plain-text acknowledgement is still a delivered request.
            logger.debug("provider_non_json_response", provider=self.provider, path=path)
            return {"raw": response.text}

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
