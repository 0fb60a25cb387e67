from __future__ import annotations

import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..config import RetrySettings
from ..errors import is_retryable
from ..handlers.base import WorkflowHandler
from ..models import HandlerOutcome, StatusChangeEvent
from ..steps.executor import StepExecutor
from ..storage.base import StepLog

logger = structlog.get_logger(__name__)


class HandlerRunner:
    """Re-invokes a handler with backoff until it succeeds, fails fatally, or runs out of attempts.

    Every attempt gets a fresh StepExecutor bound to the same instance id, so
    steps that completed on an earlier attempt are replayed from the log.
    """

    def __init__(self, step_log: StepLog, retry: RetrySettings | None = None) -> None:
        self._log = step_log
        self._retry = retry or RetrySettings()

    async def run(self, handler: WorkflowHandler, event: StatusChangeEvent) -> HandlerOutcome:
        instance_id = handler.instance_id(event)
        attempts = 0
        retrying = AsyncRetrying(
            wait=wait_exponential(
                multiplier=self._retry.backoff_min_seconds,
                min=self._retry.backoff_min_seconds,
                max=self._retry.backoff_max_seconds,
            ),
            stop=stop_after_attempt(self._retry.max_attempts),
            retry=retry_if_exception(is_retryable),
            reraise=True,
        )
        with structlog.contextvars.bound_contextvars(handler=handler.handler_id, instance_id=instance_id):
            try:
                async for attempt in retrying:
                    with attempt:
                        attempts = attempt.retry_state.attempt_number
                        if attempts > 1:
                            logger.info("handler_retry", attempt=attempts)
                        await handler.handle(event, StepExecutor(instance_id, self._log))
            except Exception as exc:  # pylint: disable=broad-except
                retryable = is_retryable(exc)
                logger.error(
                    "handler_failed",
                    attempts=attempts,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                    exhausted=retryable,
                )
                return HandlerOutcome(
                    handler_id=handler.handler_id,
                    instance_id=instance_id,
                    succeeded=False,
                    attempts=attempts,
                    error=str(exc),
                    retryable=retryable,
                )
            logger.info("handler_completed", attempts=attempts)
        return HandlerOutcome(
            handler_id=handler.handler_id,
            instance_id=instance_id,
            succeeded=True,
            attempts=attempts,
        )
