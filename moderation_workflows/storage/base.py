from __future__ import annotations

import abc
from typing import Optional

from ..models import (
    Appeal,
    AppealAction,
    AppealActionStatus,
    AppealActionVia,
    Message,
    OrganizationSettings,
    StepRecord,
    User,
    UserActionStatus,
    WebhookEndpoint,
)


class UserStore(abc.ABC):
    @abc.abstractmethod
    async def get_user(self, organization_id: str, user_id: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    async def upsert_user(self, user: User) -> None:
        ...


class OrganizationSettingsStore(abc.ABC):
    @abc.abstractmethod
    async def get_organization_settings(self, organization_id: str) -> Optional[OrganizationSettings]:
        ...

    @abc.abstractmethod
    async def find_or_create_organization_settings(self, organization_id: str) -> OrganizationSettings:
        """Return the organization's settings, creating the default row once if absent."""

    @abc.abstractmethod
    async def upsert_organization_settings(self, settings: OrganizationSettings) -> None:
        ...


class WebhookRegistry(abc.ABC):
    @abc.abstractmethod
    async def get_webhook_endpoint(self, organization_id: str) -> Optional[WebhookEndpoint]:
        ...

    @abc.abstractmethod
    async def add_webhook_endpoint(self, endpoint: WebhookEndpoint) -> None:
        ...


class AppealStore(abc.ABC):
    @abc.abstractmethod
    async def record_user_action(
        self,
        organization_id: str,
        user_action_id: str,
        user_id: str,
        status: UserActionStatus,
    ) -> None:
        ...

    @abc.abstractmethod
    async def create_appeal(self, appeal: Appeal) -> None:
        ...

    @abc.abstractmethod
    async def get_appeal(self, appeal_id: str) -> Optional[Appeal]:
        ...

    @abc.abstractmethod
    async def list_open_appeals(self, organization_id: str, user_id: str) -> list[Appeal]:
        """Open appeals attached to any of the user's actions within the organization."""

    @abc.abstractmethod
    async def create_appeal_action(
        self,
        organization_id: str,
        appeal_id: str,
        status: AppealActionStatus,
        via: AppealActionVia,
    ) -> Optional[AppealAction]:
        """Append an audit action and move the appeal to ``status``.

        Returns None without writing when the appeal is no longer open.
        """

    @abc.abstractmethod
    async def list_appeal_actions(self, appeal_id: str) -> list[AppealAction]:
        ...


class MessageLog(abc.ABC):
    @abc.abstractmethod
    async def create_message(self, message: Message, *, dedupe_key: Optional[str] = None) -> Message:
        """Append a message; a repeated ``dedupe_key`` returns the first message instead."""

    @abc.abstractmethod
    async def list_messages(self, organization_id: str, user_action_id: str) -> list[Message]:
        ...


class StepLog(abc.ABC):
    @abc.abstractmethod
    async def get_step(self, instance_id: str, step_name: str) -> Optional[StepRecord]:
        ...

    @abc.abstractmethod
    async def record_step(self, record: StepRecord) -> None:
        ...


class StorageGateway(
    UserStore,
    OrganizationSettingsStore,
    WebhookRegistry,
    AppealStore,
    MessageLog,
    StepLog,
    abc.ABC,
):
    """Combined repository interface for convenience."""

    @abc.abstractmethod
    async def connect(self) -> None:
        ...

    @abc.abstractmethod
    async def disconnect(self) -> None:
        ...
