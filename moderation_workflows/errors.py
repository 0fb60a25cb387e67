"""Error kinds raised by stores, providers and handlers.

Every error carries a ``retryable`` flag that the handler runner uses to decide
whether a failed handler run is re-invoked:

- NotFound: a required entity is absent; it may appear shortly, so retry.
- ValidationError: the event itself is malformed; never retried.
- TransientProviderError: a downstream call failed on network/5xx; retry.
- PermanentProviderError: a downstream call was rejected (4xx, bad key); fatal.
"""

from __future__ import annotations

from typing import Any, Optional


class WorkflowError(Exception):
    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        retryable: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable
        self.metadata = metadata or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }


class NotFound(WorkflowError):
    retryable = True


class ValidationError(WorkflowError):
    retryable = False


class ProviderError(WorkflowError):
    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(
            message,
            retryable=retryable,
            metadata={"provider": provider, "status_code": status_code},
        )
        self.provider = provider
        self.status_code = status_code


class TransientProviderError(ProviderError):
    retryable = True


class PermanentProviderError(ProviderError):
    retryable = False


def is_retryable(exc: BaseException) -> bool:
    """Unknown exceptions are treated like a crashed step and retried."""
    if isinstance(exc, WorkflowError):
        return exc.retryable
    return isinstance(exc, Exception)


__all__ = [
    "NotFound",
    "PermanentProviderError",
    "ProviderError",
    "TransientProviderError",
    "ValidationError",
    "WorkflowError",
    "is_retryable",
]
