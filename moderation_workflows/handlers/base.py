from __future__ import annotations

import abc

from ..errors import NotFound
from ..models import STATUS_CHANGED_EVENT, StatusChangeEvent, User
from ..steps.executor import StepExecutor
from ..storage.base import UserStore


class WorkflowHandler(abc.ABC):
    """One independent consumer of a status-change event."""

    handler_id: str
    event_name: str = STATUS_CHANGED_EVENT

    def instance_id(self, event: StatusChangeEvent) -> str:
        return f"{self.handler_id}:{event.user_action_id}"

    @abc.abstractmethod
    async def handle(self, event: StatusChangeEvent, step: StepExecutor) -> None:
        ...


async def fetch_user(step: StepExecutor, users: UserStore, event: StatusChangeEvent) -> User:
    async def load() -> User:
        user = await users.get_user(event.organization_id, event.user_id)
        if user is None:
            raise NotFound(f"User not found: {event.user_id}")
        return user

    return await step.run("fetch-user", load, result_type=User)
