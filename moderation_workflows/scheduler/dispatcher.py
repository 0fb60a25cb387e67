from __future__ import annotations

import asyncio
from typing import Iterable, Sequence

import structlog

from ..handlers.base import WorkflowHandler
from ..models import STATUS_CHANGED_EVENT, HandlerOutcome, StatusChangeEvent
from .runner import HandlerRunner

logger = structlog.get_logger(__name__)


class WorkflowDispatcher:
    """Fans one status-change event out to every handler.

    Handler runs are concurrent and isolated: a failure in one is reported in
    its own outcome and never cancels or blocks the others.
    """

    def __init__(self, handlers: Iterable[WorkflowHandler], runner: HandlerRunner) -> None:
        self.handlers: Sequence[WorkflowHandler] = tuple(handlers)
        foreign = [h.handler_id for h in self.handlers if h.event_name != STATUS_CHANGED_EVENT]
        if foreign:
            raise ValueError(f"Handlers not subscribed to {STATUS_CHANGED_EVENT}: {foreign}")
        self._runner = runner
        logger.info("dispatcher_initialized", handlers=[handler.handler_id for handler in self.handlers])

    async def dispatch(self, event: StatusChangeEvent) -> list[HandlerOutcome]:
        logger.info(
            "dispatch_start",
            event_name=STATUS_CHANGED_EVENT,
            user_action_id=event.user_action_id,
            user_id=event.user_id,
            status=event.status,
            previous_status=event.previous_status,
        )
        outcomes = await asyncio.gather(*(self._runner.run(handler, event) for handler in self.handlers))
        failed = [outcome.handler_id for outcome in outcomes if not outcome.succeeded]
        logger.info(
            "dispatch_complete",
            user_action_id=event.user_action_id,
            succeeded=len(outcomes) - len(failed),
            failed=failed,
        )
        return list(outcomes)
