from __future__ import annotations

from uuid import uuid4

import pytest
import pytest_asyncio

from moderation_workflows.models import (
    AppealActionStatus,
    AppealActionVia,
    Message,
    StepRecord,
    UserActionStatus,
)
from moderation_workflows.storage.sqlite import SQLiteStorage
from tests.factories import ORG_ID, USER_ID, make_appeal, make_endpoint, make_settings, make_user


@pytest_asyncio.fixture
async def storage(tmp_path):
    store = SQLiteStorage(tmp_path / "workflows.db")
    await store.connect()
    yield store
    await store.disconnect()


def make_message(text: str = "hello") -> Message:
    return Message(
        id=str(uuid4()),
        organization_id=ORG_ID,
        user_action_id="action_1",
        recipient_id=USER_ID,
        subject="Subject",
        text=text,
    )


@pytest.mark.asyncio
async def test_user_upsert_and_lookup(storage: SQLiteStorage) -> None:
    await storage.upsert_user(make_user(payment_account_id=None))
    await storage.upsert_user(make_user(payment_account_id="acct_new"))

    user = await storage.get_user(ORG_ID, USER_ID)

    assert user is not None and user.payment_account_id == "acct_new"
    assert await storage.get_user("other_org", USER_ID) is None


@pytest.mark.asyncio
async def test_find_or_create_settings_is_stable(storage: SQLiteStorage) -> None:
    created = await storage.find_or_create_organization_settings(ORG_ID)
    await storage.upsert_organization_settings(make_settings(emails_enabled=True, appeals_enabled=False))
    found = await storage.find_or_create_organization_settings(ORG_ID)

    assert created.emails_enabled is False and created.appeals_enabled is False
    assert found.emails_enabled is True


@pytest.mark.asyncio
async def test_webhook_endpoint_lookup(storage: SQLiteStorage) -> None:
    assert await storage.get_webhook_endpoint(ORG_ID) is None

    await storage.add_webhook_endpoint(make_endpoint())

    endpoint = await storage.get_webhook_endpoint(ORG_ID)
    assert endpoint is not None and endpoint.id == "wh_1"


@pytest.mark.asyncio
async def test_open_appeals_are_scoped_to_user_and_organization(storage: SQLiteStorage) -> None:
    await storage.record_user_action(ORG_ID, "action_0", USER_ID, UserActionStatus.SUSPENDED)
    await storage.record_user_action(ORG_ID, "action_x", "user_2", UserActionStatus.SUSPENDED)
    await storage.create_appeal(make_appeal("appeal_1"))
    await storage.create_appeal(make_appeal("appeal_2", action_status=AppealActionStatus.APPROVED))
    await storage.create_appeal(make_appeal("appeal_3", user_action_id="action_x"))

    appeals = await storage.list_open_appeals(ORG_ID, USER_ID)

    assert [a.id for a in appeals] == ["appeal_1"]


@pytest.mark.asyncio
async def test_appeal_action_closes_appeal_once(storage: SQLiteStorage) -> None:
    await storage.record_user_action(ORG_ID, "action_0", USER_ID, UserActionStatus.SUSPENDED)
    await storage.create_appeal(make_appeal("appeal_1"))

    first = await storage.create_appeal_action(
        ORG_ID, "appeal_1", AppealActionStatus.REJECTED, AppealActionVia.AUTOMATION
    )
    second = await storage.create_appeal_action(
        ORG_ID, "appeal_1", AppealActionStatus.APPROVED, AppealActionVia.AUTOMATION
    )

    assert first is not None and first.status == AppealActionStatus.REJECTED
    assert second is None
    appeal = await storage.get_appeal("appeal_1")
    assert appeal is not None and appeal.action_status == AppealActionStatus.REJECTED
    actions = await storage.list_appeal_actions("appeal_1")
    assert [a.id for a in actions] == [first.id]
    assert actions[0].via == AppealActionVia.AUTOMATION


@pytest.mark.asyncio
async def test_message_dedupe_key_returns_first_message(storage: SQLiteStorage) -> None:
    original = await storage.create_message(make_message("first"), dedupe_key="inst:create-message")
    repeat = await storage.create_message(make_message("second"), dedupe_key="inst:create-message")
    await storage.create_message(make_message("unkeyed"))

    assert repeat.id == original.id
    assert repeat.text == "first"
    texts = sorted(m.text for m in await storage.list_messages(ORG_ID, "action_1"))
    assert texts == ["first", "unkeyed"]


@pytest.mark.asyncio
async def test_step_records_upsert_and_survive_reconnect(tmp_path) -> None:
    path = tmp_path / "steps.db"
    store = SQLiteStorage(path)
    await store.connect()
    await store.record_step(StepRecord("inst", "fetch-user", "failed", error="NotFound: x"))
    await store.record_step(
        StepRecord("inst", "fetch-user", "completed", result={"id": "user_1", "tags": [1, 2]}, attempts=2)
    )
    await store.disconnect()

    reopened = SQLiteStorage(path)
    await reopened.connect()
    try:
        record = await reopened.get_step("inst", "fetch-user")
        assert record is not None
        assert record.completed
        assert record.attempts == 2
        assert record.error is None
        assert record.result == {"id": "user_1", "tags": [1, 2]}
        assert await reopened.get_step("inst", "send-email") is None
    finally:
        await reopened.disconnect()
