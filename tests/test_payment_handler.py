from __future__ import annotations

import pytest

from moderation_workflows.errors import NotFound, TransientProviderError
from moderation_workflows.handlers.payments import PaymentGateHandler
from moderation_workflows.models import UserActionStatus
from moderation_workflows.security.secrets import SecretBox
from moderation_workflows.steps.executor import StepExecutor
from tests.factories import ORG_ID, USER_ID, make_event, make_settings, make_user
from tests.fakes import FakePaymentGateway, InMemoryStorage

SECRETS = SecretBox(SecretBox.generate_key())


def build(storage: InMemoryStorage, gateway: FakePaymentGateway) -> PaymentGateHandler:
    return PaymentGateHandler(storage, storage, gateway, SECRETS)


async def seeded(*, payment_account_id="acct_123", api_key="sk_live_secret") -> InMemoryStorage:
    storage = InMemoryStorage()
    await storage.upsert_user(make_user(payment_account_id=payment_account_id))
    encrypted = SECRETS.encrypt(api_key) if api_key else None
    await storage.upsert_organization_settings(make_settings(payment_api_key=encrypted))
    return storage


async def run(handler: PaymentGateHandler, storage: InMemoryStorage, event) -> StepExecutor:
    executor = StepExecutor(handler.instance_id(event), storage)
    await handler.handle(event, executor)
    return executor


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [UserActionStatus.SUSPENDED, UserActionStatus.BANNED])
async def test_suspension_and_ban_pause_payments(status: UserActionStatus) -> None:
    storage = await seeded()
    gateway = FakePaymentGateway()
    handler = build(storage, gateway)
    event = make_event(status)

    await run(handler, storage, event)

    assert len(gateway.calls) == 1
    action, api_key, account, key = gateway.calls[0]
    assert (action, api_key, account) == ("pause", "sk_live_secret", "acct_123")
    assert key == f"update-payments-payouts:{event.user_action_id}:update-payment-gate"


@pytest.mark.asyncio
async def test_compliant_resumes_payments() -> None:
    storage = await seeded()
    gateway = FakePaymentGateway()

    await run(build(storage, gateway), storage, make_event(UserActionStatus.COMPLIANT, UserActionStatus.BANNED))

    assert [call[0] for call in gateway.calls] == ["resume"]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", list(UserActionStatus))
async def test_missing_payment_account_is_a_silent_noop(status: UserActionStatus) -> None:
    storage = await seeded(payment_account_id=None)
    gateway = FakePaymentGateway()

    executor = await run(build(storage, gateway), storage, make_event(status))

    assert gateway.calls == []
    assert "update-payment-gate" in executor.executed


@pytest.mark.asyncio
async def test_missing_api_key_is_a_silent_noop() -> None:
    storage = await seeded(api_key=None)
    gateway = FakePaymentGateway()

    await run(build(storage, gateway), storage, make_event(UserActionStatus.BANNED))

    assert gateway.calls == []


@pytest.mark.asyncio
async def test_missing_user_raises_not_found() -> None:
    storage = InMemoryStorage()
    await storage.upsert_organization_settings(make_settings())

    with pytest.raises(NotFound):
        await run(build(storage, FakePaymentGateway()), storage, make_event())


@pytest.mark.asyncio
async def test_missing_settings_raises_not_found() -> None:
    storage = InMemoryStorage()
    await storage.upsert_user(make_user())

    with pytest.raises(NotFound):
        await run(build(storage, FakePaymentGateway()), storage, make_event())


@pytest.mark.asyncio
async def test_retry_replays_fetched_user_and_settings() -> None:
    storage = await seeded()
    gateway = FakePaymentGateway()
    gateway.failures.append(TransientProviderError("503", provider="payments"))
    handler = build(storage, gateway)
    event = make_event(UserActionStatus.SUSPENDED)

    with pytest.raises(TransientProviderError):
        await run(handler, storage, event)

    # The retry must not need the stores again: both reads were recorded.
    storage.users.pop((ORG_ID, USER_ID))
    storage.settings.pop(ORG_ID)
    executor = await run(handler, storage, event)

    assert executor.replayed == ["fetch-user", "fetch-organization-settings"]
    assert [call[0] for call in gateway.calls] == ["pause"]


@pytest.mark.asyncio
async def test_unrecognized_status_is_a_silent_noop_even_with_credentials() -> None:
    storage = await seeded()
    gateway = FakePaymentGateway()

    executor = await run(build(storage, gateway), storage, make_event("Shadowbanned"))

    assert gateway.calls == []
    assert "update-payment-gate" in executor.executed
    record = storage.steps[(executor.instance_id, "update-payment-gate")]
    assert record.completed and record.result is None
