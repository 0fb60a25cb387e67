from __future__ import annotations

from typing import Optional

import structlog

from ..models import (
    Appeal,
    AppealAction,
    AppealActionStatus,
    AppealActionVia,
    StatusChangeEvent,
    UserActionStatus,
)
from ..steps.executor import StepExecutor
from ..storage.base import AppealStore
from .base import WorkflowHandler

logger = structlog.get_logger(__name__)


class AppealResolutionHandler(WorkflowHandler):
    handler_id = "update-appeals-after-user-action"

    def __init__(self, appeals: AppealStore) -> None:
        self._appeals = appeals

    async def handle(self, event: StatusChangeEvent, step: StepExecutor) -> None:
        match event.status:
            case UserActionStatus.SUSPENDED:
                logger.debug("appeals_untouched", reason="suspended", user_id=event.user_id)
                return
            case UserActionStatus.COMPLIANT:
                resolution, verb = AppealActionStatus.APPROVED, "approve"
            case UserActionStatus.BANNED:
                resolution, verb = AppealActionStatus.REJECTED, "reject"
            case _:
                logger.info("appeals_untouched", reason="unknown_status", status=event.status)
                return

        appeals = await step.run(
            "fetch-open-appeals",
            lambda: self._appeals.list_open_appeals(event.organization_id, event.user_id),
            result_type=list[Appeal],
        )
        for appeal in appeals:
            await step.run(
                f"{verb}-appeal:{appeal.id}",
                lambda appeal_id=appeal.id: self._appeals.create_appeal_action(
                    event.organization_id,
                    appeal_id,
                    resolution,
                    AppealActionVia.AUTOMATION,
                ),
                result_type=Optional[AppealAction],
            )
        logger.info("appeals_resolved", count=len(appeals), resolution=resolution.value, user_id=event.user_id)
