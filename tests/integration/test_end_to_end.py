# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
End-to-end tests for ResourceScheduler.

These wire a real AccountRateLimiter, RetryExecutor and RequestQueue
together. The limiter and retry sleeps run on the fake clock fixture;
the queue runs on the event loop with a zero adaptive delay.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from quota_scheduler import (
    AccountRateLimiter,
    AdaptiveDelayConfig,
    AuthenticationError,
    ConfigurationError,
    PauseReason,
    QueueConfig,
    QueueEventType,
    QueuePhase,
    QuotaExhaustedError,
    RateLimiterConfig,
    ResourceScheduler,
    RetryExecutor,
    RetryPolicy,
    TransientError,
    WorkItem,
    WorkItemStatus,
    create_scheduler,
)
from quota_scheduler.scheduler.resource import REQUEST_RETRY_POLICY

KEY = "3515012934"


def fast_queue_config() -> QueueConfig:
    return QueueConfig(
        adaptive=AdaptiveDelayConfig(min_delay=0.0, max_delay=0.01, initial_delay=0.0)
    )


def make_items(*names: str) -> list[WorkItem]:
    return [WorkItem(subject_id=name, subject_name=name) for name in names]


@pytest.fixture
def limiter(fake_clock):
    return AccountRateLimiter(clock=fake_clock, sleep=fake_clock.sleep)


@pytest.fixture
def scheduler(limiter, fake_clock):
    executor = RetryExecutor(
        RetryPolicy(
            max_retries=2,
            base_delay=1.0,
            jitter_ratio=0.0,
            retryable_errors=REQUEST_RETRY_POLICY.retryable_errors,
        ),
        sleep=fake_clock.sleep,
    )
    return ResourceScheduler(
        KEY,
        limiter=limiter,
        queue_config=fast_queue_config(),
        retry_executor=executor,
    )


async def wait_until_paused(scheduler: ResourceScheduler) -> None:
    paused = asyncio.Event()
    scheduler.subscribe(
        lambda event: paused.set() if event.type is QueueEventType.PAUSED else None
    )
    await asyncio.wait_for(paused.wait(), timeout=1.0)


class TestHappyPath:
    async def test_every_call_is_paced_through_limiter(self, scheduler, fake_clock):
        calls = []

        async def request(item, token):
            calls.append((item.subject_name, fake_clock.now))

        scheduler.enqueue_all(make_items("a", "b", "c"))
        await scheduler.run(request)

        assert [name for name, _ in calls] == ["a", "b", "c"]
        gaps = [later - earlier for (_, earlier), (_, later) in zip(calls, calls[1:])]
        assert all(gap >= 1.1 - 1e-9 for gap in gaps)
        assert scheduler.limiter.get_status(KEY).request_count == 3
        assert scheduler.get_progress().phase is QueuePhase.COMPLETED

    async def test_queue_config_takes_resource_key(self, scheduler):
        assert scheduler.queue.config.resource_key == KEY

    async def test_transient_failures_absorbed_by_executor(self, scheduler, fake_clock):
        attempts = 0

        async def request(item, token):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise TransientError("503 Service Unavailable")

        items = make_items("a")
        scheduler.enqueue_all(items)
        await scheduler.run(request)

        assert items[0].status is WorkItemStatus.COMPLETED
        assert items[0].retry_count == 0
        assert attempts == 2
        assert 1.0 in fake_clock.sleeps
        assert scheduler.limiter.get_status(KEY).request_count == 2

    async def test_auth_failure_is_terminal(self, scheduler):
        async def request(item, token):
            if item.subject_name == "b":
                raise AuthenticationError("invalid_grant")

        items = make_items("a", "b", "c")
        scheduler.enqueue_all(items)
        await scheduler.run(request)

        assert [i.status for i in items] == [
            WorkItemStatus.COMPLETED,
            WorkItemStatus.FAILED,
            WorkItemStatus.COMPLETED,
        ]
        assert items[1].retry_count == 0


class TestQuotaHandling:
    async def test_api_quota_error_marks_key_and_pauses(self, scheduler):
        async def request(item, token):
            if item.subject_name == "b":
                raise QuotaExhaustedError("RESOURCE_EXHAUSTED")

        items = make_items("a", "b", "c")
        scheduler.enqueue_all(items)
        task = scheduler.start(request)
        await wait_until_paused(scheduler)

        assert scheduler.limiter.is_exhausted(KEY)
        progress = scheduler.get_progress()
        assert progress.pause_reason is PauseReason.QUOTA_EXHAUSTED
        assert [i.status for i in items] == [
            WorkItemStatus.COMPLETED,
            WorkItemStatus.PENDING,
            WorkItemStatus.PENDING,
        ]

        await scheduler.stop()
        assert task.done()
        assert items[2].status is WorkItemStatus.CANCELLED

    async def test_quota_message_marks_key(self, scheduler):
        async def request(item, token):
            raise RuntimeError("RESOURCE_EXHAUSTED: quota for basic access exceeded")

        scheduler.enqueue_all(make_items("a"))
        scheduler.start(request)
        await wait_until_paused(scheduler)

        status = scheduler.limiter.get_status(KEY)
        assert status.quota_exhausted
        assert status.quota_reset_in == pytest.approx(300.0)

        await scheduler.stop()

    async def test_exhausted_key_denied_without_calling_api(self, scheduler):
        scheduler.limiter.mark_exhausted(KEY, 5)
        calls = []

        async def request(item, token):
            calls.append(item)

        scheduler.enqueue_all(make_items("a"))
        scheduler.start(request)
        await wait_until_paused(scheduler)

        assert calls == []
        expected = datetime.now(timezone.utc) + timedelta(minutes=5)
        resume_at = scheduler.get_progress().resume_at
        assert abs((resume_at - expected).total_seconds()) < 5

        await scheduler.stop()

    async def test_resumes_after_cooldown(self):
        limiter = AccountRateLimiter(RateLimiterConfig(min_interval=0.0))
        scheduler = ResourceScheduler(
            KEY, limiter=limiter, queue_config=fast_queue_config()
        )
        attempts = 0

        async def request(item, token):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise QuotaExhaustedError(retry_after=0.05)

        items = make_items("a", "b")
        scheduler.enqueue_all(items)
        await asyncio.wait_for(scheduler.run(request), timeout=2.0)

        assert [i.status for i in items] == [WorkItemStatus.COMPLETED] * 2
        assert items[0].retry_count == 0
        assert not limiter.is_exhausted(KEY)


class TestSharedLimiter:
    async def test_independent_keys_share_one_limiter(self, limiter):
        first = create_scheduler("account-a", limiter=limiter, queue_config=fast_queue_config())
        second = create_scheduler("account-b", limiter=limiter, queue_config=fast_queue_config())

        async def request(item, token):
            await asyncio.sleep(0)

        first.enqueue_all(make_items("a1", "a2"))
        second.enqueue_all(make_items("b1"))
        await asyncio.gather(first.run(request), second.run(request))

        statuses = {s.resource_key: s.request_count for s in limiter.get_all_statuses()}
        assert statuses == {"account-a": 2, "account-b": 1}

    async def test_exhaustion_of_one_key_does_not_block_other(self, limiter):
        limiter.mark_exhausted("account-a")
        other = create_scheduler("account-b", limiter=limiter, queue_config=fast_queue_config())

        async def request(item, token):
            pass

        items = make_items("b1")
        other.enqueue_all(items)
        await other.run(request)

        assert items[0].status is WorkItemStatus.COMPLETED


class TestLifecycle:
    async def test_context_manager_stops_background_run(self, scheduler):
        release = asyncio.Event()

        async def request(item, token):
            await release.wait()

        items = make_items("a", "b")
        async with scheduler:
            scheduler.enqueue_all(items)
            task = scheduler.start(request)
            assert scheduler.start(request) is task
            await asyncio.sleep(0)
            scheduler.cancel()
            release.set()

        assert task.done()
        assert [i.status for i in items] == [WorkItemStatus.CANCELLED] * 2

    async def test_event_stream(self, scheduler):
        async def request(item, token):
            pass

        scheduler.enqueue_all(make_items("a"))
        stream = scheduler.events()
        scheduler.start(request)

        types = [event.type async for event in stream]

        assert QueueEventType.REQUEST_COMPLETE in types
        assert types[-1] is QueueEventType.COMPLETED
        await scheduler.stop()


class TestFactory:
    def test_builds_limiter_from_config(self):
        scheduler = create_scheduler(KEY, limiter_config=RateLimiterConfig(min_interval=2.0))

        assert scheduler.resource_key == KEY
        assert scheduler.limiter.config.min_interval == 2.0
        assert scheduler.retry_executor.policy is REQUEST_RETRY_POLICY

    def test_empty_key_rejected(self):
        with pytest.raises(ConfigurationError):
            create_scheduler("")

    def test_limiter_and_config_are_exclusive(self, limiter):
        with pytest.raises(ConfigurationError):
            create_scheduler(KEY, limiter=limiter, limiter_config=RateLimiterConfig())

    def test_request_policy_does_not_retry_quota(self):
        assert not REQUEST_RETRY_POLICY.is_retryable(RuntimeError("RESOURCE_EXHAUSTED"))
        assert REQUEST_RETRY_POLICY.is_retryable(TransientError("timeout"))
