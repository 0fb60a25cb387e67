from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from pydantic import TypeAdapter

from ..models import StepRecord
from ..storage.base import StepLog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_ADAPTERS: dict[Any, TypeAdapter] = {}


def _adapter(result_type: Any) -> TypeAdapter:
    adapter = _ADAPTERS.get(result_type)
    if adapter is None:
        adapter = TypeAdapter(result_type)
        _ADAPTERS[result_type] = adapter
    return adapter


class StepExecutor:
    """Runs named steps at most once per workflow instance.

    A completed step's result is serialized into the step log. When the
    enclosing handler is re-invoked for the same instance, completed steps
    return the recorded result instead of running again, while failed or
    never-run steps are attempted. ``result_type`` drives JSON serialization
    and restores the same Python type on replay.
    """

    def __init__(self, instance_id: str, log: StepLog) -> None:
        self.instance_id = instance_id
        self._log = log
        self._seen: set[str] = set()
        self.executed: list[str] = []
        self.replayed: list[str] = []

    def idempotency_key(self, step_name: str) -> str:
        return f"{self.instance_id}:{step_name}"

    async def run(
        self,
        step_name: str,
        work: Callable[[], Awaitable[T]],
        *,
        result_type: Any = None,
    ) -> T:
        if step_name in self._seen:
            raise ValueError(f"Step {step_name!r} already ran in instance {self.instance_id}")
        self._seen.add(step_name)

        adapter = _adapter(result_type if result_type is not None else Optional[Any])
        previous = await self._log.get_step(self.instance_id, step_name)
        if previous is not None and previous.completed:
            logger.debug("step_replayed", instance_id=self.instance_id, step=step_name)
            self.replayed.append(step_name)
            return adapter.validate_python(previous.result)

        attempts = previous.attempts + 1 if previous is not None else 1
        logger.debug(
            "step_started",
            instance_id=self.instance_id,
            step=step_name,
            attempt=attempts,
        )
        try:
            result = await work()
        except Exception as exc:
            await self._log.record_step(
                StepRecord(
                    instance_id=self.instance_id,
                    step_name=step_name,
                    status="failed",
                    error=f"{exc.__class__.__name__}: {exc}",
                    attempts=attempts,
                )
            )
            logger.warning(
                "step_failed",
                instance_id=self.instance_id,
                step=step_name,
                attempt=attempts,
                error=str(exc),
            )
            raise

        await self._log.record_step(
            StepRecord(
                instance_id=self.instance_id,
                step_name=step_name,
                status="completed",
                result=adapter.dump_python(result, mode="json"),
                attempts=attempts,
            )
        )
        self.executed.append(step_name)
        logger.debug("step_completed", instance_id=self.instance_id, step=step_name)
        return result
