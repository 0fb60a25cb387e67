from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from .errors import ValidationError

STATUS_CHANGED_EVENT = "user-action/status-changed"


class UserActionStatus(str, Enum):
    COMPLIANT = "Compliant"
    SUSPENDED = "Suspended"
    BANNED = "Banned"


class AppealActionStatus(str, Enum):
    OPEN = "Open"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class AppealActionVia(str, Enum):
    AUTOMATION = "Automation"
    MANUAL = "Manual"


class MessageType(str, Enum):
    OUTBOUND = "Outbound"
    INBOUND = "Inbound"


class WebhookEventType(str, Enum):
    USER_COMPLIANT = "user.compliant"
    USER_SUSPENDED = "user.suspended"
    USER_BANNED = "user.banned"


TemplateType = Literal["Compliant", "Suspended", "Banned"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_status(value: Any) -> UserActionStatus:
    if isinstance(value, UserActionStatus):
        return value
    try:
        return UserActionStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unexpected status: {value!r}") from exc


@dataclass(slots=True, frozen=True)
class StatusChangeEvent:
    organization_id: str
    user_action_id: str
    user_id: str
    status: UserActionStatus
    previous_status: Optional[UserActionStatus] = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "StatusChangeEvent":
        """Build an event from its wire form (camelCase keys)."""
        if not isinstance(data, dict):
            raise ValidationError(f"Event must be a JSON object, got {type(data).__name__}")
        try:
            organization_id = data["organizationId"]
            user_action_id = data.get("userActionId") or data["id"]
            user_id = data["userId"]
            raw_status = data["status"]
        except KeyError as exc:
            raise ValidationError(f"Event is missing field {exc.args[0]!r}") from exc
        raw_previous = data.get("previousStatus") or data.get("lastStatus")
        return cls(
            organization_id=organization_id,
            user_action_id=user_action_id,
            user_id=user_id,
            status=parse_status(raw_status),
            previous_status=parse_status(raw_previous) if raw_previous is not None else None,
        )


@dataclass(slots=True)
class User:
    id: str
    organization_id: str
    client_id: str
    payment_account_id: Optional[str] = None
    email: Optional[str] = None


@dataclass(slots=True)
class OrganizationSettings:
    organization_id: str
    payment_api_key: Optional[str] = None
    emails_enabled: bool = False
    appeals_enabled: bool = False


@dataclass(slots=True)
class WebhookEndpoint:
    id: str
    organization_id: str
    url: str
    secret: Optional[str] = None


@dataclass(slots=True)
class Appeal:
    id: str
    organization_id: str
    user_action_id: str
    action_status: AppealActionStatus = AppealActionStatus.OPEN


@dataclass(slots=True)
class AppealAction:
    id: str
    organization_id: str
    appeal_id: str
    status: AppealActionStatus
    via: AppealActionVia
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class Message:
    id: str
    organization_id: str
    user_action_id: str
    recipient_id: str
    subject: str
    text: str
    type: MessageType = MessageType.OUTBOUND
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class RenderedTemplate:
    subject: str
    html: str
    body: str


StepStatus = Literal["completed", "failed"]


@dataclass(slots=True)
class StepRecord:
    instance_id: str
    step_name: str
    status: StepStatus
    result: Any = None
    error: Optional[str] = None
    attempts: int = 1
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def completed(self) -> bool:
        return self.status == "completed"


@dataclass(slots=True)
class HandlerOutcome:
    handler_id: str
    instance_id: str
    succeeded: bool
    attempts: int
    error: Optional[str] = None
    retryable: Optional[bool] = None


__all__ = [
    "STATUS_CHANGED_EVENT",
    "Appeal",
    "AppealAction",
    "AppealActionStatus",
    "AppealActionVia",
    "HandlerOutcome",
    "Message",
    "MessageType",
    "OrganizationSettings",
    "RenderedTemplate",
    "StatusChangeEvent",
    "StepRecord",
    "StepStatus",
    "TemplateType",
    "User",
    "UserActionStatus",
    "WebhookEndpoint",
    "WebhookEventType",
    "parse_status",
]
