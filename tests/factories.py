from __future__ import annotations

from typing import Optional

from moderation_workflows.models import (
    Appeal,
    AppealActionStatus,
    OrganizationSettings,
    StatusChangeEvent,
    User,
    UserActionStatus,
    WebhookEndpoint,
)

ORG_ID = "org_1"
USER_ID = "user_1"


def make_event(
    status: UserActionStatus | str = UserActionStatus.BANNED,
    previous_status: Optional[UserActionStatus] = UserActionStatus.COMPLIANT,
    *,
    organization_id: str = ORG_ID,
    user_action_id: str = "action_1",
    user_id: str = USER_ID,
) -> StatusChangeEvent:
    return StatusChangeEvent(
        organization_id=organization_id,
        user_action_id=user_action_id,
        user_id=user_id,
        status=status,
        previous_status=previous_status,
    )


def make_user(
    *,
    user_id: str = USER_ID,
    organization_id: str = ORG_ID,
    client_id: str = "client_abc",
    payment_account_id: Optional[str] = "acct_123",
    email: Optional[str] = "user@example.com",
) -> User:
    return User(
        id=user_id,
        organization_id=organization_id,
        client_id=client_id,
        payment_account_id=payment_account_id,
        email=email,
    )


def make_settings(
    *,
    organization_id: str = ORG_ID,
    payment_api_key: Optional[str] = None,
    emails_enabled: bool = True,
    appeals_enabled: bool = True,
) -> OrganizationSettings:
    return OrganizationSettings(
        organization_id=organization_id,
        payment_api_key=payment_api_key,
        emails_enabled=emails_enabled,
        appeals_enabled=appeals_enabled,
    )


def make_endpoint(*, endpoint_id: str = "wh_1", organization_id: str = ORG_ID) -> WebhookEndpoint:
    return WebhookEndpoint(
        id=endpoint_id,
        organization_id=organization_id,
        url="https://integrator.example.com/hooks",
    )


def make_appeal(
    appeal_id: str = "appeal_1",
    *,
    organization_id: str = ORG_ID,
    user_action_id: str = "action_0",
    action_status: AppealActionStatus = AppealActionStatus.OPEN,
) -> Appeal:
    return Appeal(
        id=appeal_id,
        organization_id=organization_id,
        user_action_id=user_action_id,
        action_status=action_status,
    )
