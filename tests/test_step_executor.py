from __future__ import annotations

from typing import Optional

import pytest

from moderation_workflows.errors import TransientProviderError
from moderation_workflows.models import Appeal, AppealActionStatus, RenderedTemplate, User
from moderation_workflows.steps.executor import StepExecutor
from tests.factories import make_appeal, make_user
from tests.fakes import InMemoryStorage


@pytest.mark.asyncio
async def test_completed_step_is_replayed_without_running_again() -> None:
    log = InMemoryStorage()
    calls = 0

    async def work() -> User:
        nonlocal calls
        calls += 1
        return make_user()

    first = await StepExecutor("wf:1", log).run("fetch-user", work, result_type=User)
    second = await StepExecutor("wf:1", log).run("fetch-user", work, result_type=User)

    assert calls == 1
    assert isinstance(second, User)
    assert second == first


@pytest.mark.asyncio
async def test_failed_step_is_retried_and_counts_attempts() -> None:
    log = InMemoryStorage()
    outcomes: list = [TransientProviderError("boom", provider="test"), "ok"]

    async def work() -> str:
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    with pytest.raises(TransientProviderError):
        await StepExecutor("wf:2", log).run("send", work, result_type=str)
    assert log.steps[("wf:2", "send")].status == "failed"
    assert "boom" in log.steps[("wf:2", "send")].error

    result = await StepExecutor("wf:2", log).run("send", work, result_type=str)

    assert result == "ok"
    record = log.steps[("wf:2", "send")]
    assert record.completed
    assert record.attempts == 2


@pytest.mark.asyncio
async def test_steps_are_scoped_to_their_instance() -> None:
    log = InMemoryStorage()
    calls: list[str] = []

    async def work() -> None:
        calls.append("run")

    await StepExecutor("wf:a", log).run("step", work)
    await StepExecutor("wf:b", log).run("step", work)

    assert calls == ["run", "run"]


@pytest.mark.asyncio
async def test_duplicate_step_name_in_one_run_is_rejected() -> None:
    executor = StepExecutor("wf:3", InMemoryStorage())

    async def work() -> None:
        return None

    await executor.run("same", work)
    with pytest.raises(ValueError):
        await executor.run("same", work)


@pytest.mark.asyncio
async def test_replay_restores_nested_and_optional_types() -> None:
    log = InMemoryStorage()

    async def appeals() -> list[Appeal]:
        return [make_appeal("a1"), make_appeal("a2")]

    async def no_template() -> Optional[RenderedTemplate]:
        return None

    await StepExecutor("wf:4", log).run("fetch", appeals, result_type=list[Appeal])
    await StepExecutor("wf:4", log).run("template", no_template, result_type=Optional[RenderedTemplate])

    replay = StepExecutor("wf:4", log)
    restored = await replay.run("fetch", appeals, result_type=list[Appeal])
    template = await replay.run("template", no_template, result_type=Optional[RenderedTemplate])

    assert [appeal.id for appeal in restored] == ["a1", "a2"]
    assert restored[0].action_status is AppealActionStatus.OPEN
    assert template is None
    assert replay.replayed == ["fetch", "template"]
    assert replay.executed == []


def test_idempotency_key_is_stable_per_instance_and_step() -> None:
    log = InMemoryStorage()
    assert StepExecutor("wf:5", log).idempotency_key("send-email") == "wf:5:send-email"
    assert StepExecutor("wf:5", log).idempotency_key("send-email") == StepExecutor(
        "wf:5", log
    ).idempotency_key("send-email")
