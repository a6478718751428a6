import asyncio

import pytest

from gateway.config import Settings
from gateway.jobs import JobQueue, JobQueues, QueueClosedError


def test_jobs_run_with_entity_id():
    async def scenario():
        seen = []

        async def handler(entity_id):
            seen.append(entity_id)

        queue = JobQueue("test")
        queue.start(handler, concurrency=2)
        await queue.enqueue("a")
        await queue.enqueue("b")
        await queue.drain(timeout=5)
        await queue.close()
        return seen, queue.stats()

    seen, stats = asyncio.run(scenario())
    assert sorted(seen) == ["a", "b"]
    assert stats["completed"] == 2
    assert stats["failed"] == 0
    assert stats["pending"] == 0


def test_jobs_enqueued_before_start_are_buffered():
    async def scenario():
        seen = []

        async def handler(entity_id):
            seen.append(entity_id)

        queue = JobQueue("test")
        await queue.enqueue("early")
        assert queue.stats()["pending"] == 1
        queue.start(handler)
        await queue.drain(timeout=5)
        await queue.close()
        return seen

    assert asyncio.run(scenario()) == ["early"]


def test_failed_job_is_retried_until_it_succeeds():
    async def scenario():
        calls = []

        async def flaky(entity_id):
            calls.append(entity_id)
            if len(calls) < 3:
                raise RuntimeError("store unavailable")

        queue = JobQueue("test", max_attempts=5, backoff_seconds=0)
        queue.start(flaky)
        await queue.enqueue("pay_1")
        await queue.drain(timeout=5)
        await queue.close()
        return calls, queue.stats()

    calls, stats = asyncio.run(scenario())
    assert calls == ["pay_1"] * 3
    assert stats["completed"] == 1
    assert stats["failed"] == 0


def test_job_gives_up_after_max_attempts():
    async def scenario():
        calls = []

        async def broken(entity_id):
            calls.append(entity_id)
            raise RuntimeError("boom")

        queue = JobQueue("test", max_attempts=3, backoff_seconds=0)
        queue.start(broken)
        await queue.enqueue("pay_1")
        await queue.drain(timeout=5)
        await queue.close()
        return calls, queue.stats()

    calls, stats = asyncio.run(scenario())
    assert len(calls) == 3
    assert stats["failed"] == 1
    assert stats["completed"] == 0


def test_delayed_job_waits():
    async def scenario():
        loop = asyncio.get_running_loop()
        ran_at = []

        async def handler(entity_id):
            ran_at.append(loop.time())

        queue = JobQueue("test")
        queue.start(handler)
        started = loop.time()
        await queue.enqueue("x", delay=0.2)
        assert not queue.idle
        await queue.drain(timeout=5)
        await queue.close()
        return ran_at[0] - started

    assert asyncio.run(scenario()) >= 0.19


def test_same_entity_never_runs_concurrently():
    async def scenario():
        running = {"now": 0, "max": 0}

        async def handler(entity_id):
            running["now"] += 1
            running["max"] = max(running["max"], running["now"])
            await asyncio.sleep(0.01)
            running["now"] -= 1

        queue = JobQueue("test")
        queue.start(handler, concurrency=4)
        for _ in range(4):
            await queue.enqueue("pay_same")
        await queue.drain(timeout=5)
        await queue.close()
        return running["max"]

    assert asyncio.run(scenario()) == 1


def test_closed_queue_rejects_jobs():
    async def scenario():
        queue = JobQueue("test")
        await queue.close()
        with pytest.raises(QueueClosedError):
            await queue.enqueue("x")

    asyncio.run(scenario())


def test_queue_set_from_settings():
    async def scenario():
        queues = JobQueues.from_settings(Settings(job_max_attempts=5, job_backoff_seconds=2))
        try:
            return [(q.name, q.max_attempts, q.backoff_seconds) for q in queues]
        finally:
            await queues.close()

    assert asyncio.run(scenario()) == [
        ("payments", 5, 2),
        ("refunds", 5, 2),
        ("webhooks", 1, 0.0),
    ]
