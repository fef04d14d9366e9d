import asyncio

import pytest

from ghsync.cache import InFlightCoalescer
from ghsync.metric import coalescer_request_count


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_producer():
    coalescer = InFlightCoalescer("test")
    gate = asyncio.Event()
    calls = []

    async def producer():
        calls.append(1)
        await gate.wait()
        return {"value": 42}

    waiters = [asyncio.ensure_future(coalescer.run("k", producer)) for _ in range(5)]
    await asyncio.sleep(0)
    assert coalescer.in_flight("k")

    gate.set()
    results = await asyncio.gather(*waiters)

    assert len(calls) == 1
    assert all(r is results[0] for r in results)
    assert not coalescer.in_flight("k")
    assert len(coalescer) == 0


@pytest.mark.asyncio
async def test_concurrent_callers_see_the_same_error():
    coalescer = InFlightCoalescer("test")
    gate = asyncio.Event()
    calls = []
    error = RuntimeError("backend down")

    async def producer():
        calls.append(1)
        await gate.wait()
        raise error

    waiters = [asyncio.ensure_future(coalescer.run("k", producer)) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert len(calls) == 1
    assert all(r is error for r in results)
    assert not coalescer.in_flight("k")


@pytest.mark.asyncio
async def test_distinct_keys_run_independently():
    coalescer = InFlightCoalescer("test")
    calls = []

    async def producer(key):
        calls.append(key)
        await asyncio.sleep(0)
        return key

    results = await asyncio.gather(
        coalescer.run(1, lambda: producer(1)),
        coalescer.run(2, lambda: producer(2)),
        coalescer.run(1, lambda: producer(1)),
    )

    assert results == [1, 2, 1]
    assert sorted(calls) == [1, 2]


@pytest.mark.asyncio
async def test_sequential_calls_run_again():
    coalescer = InFlightCoalescer("test")
    calls = []

    async def producer():
        calls.append(1)
        return len(calls)

    assert await coalescer.run("k", producer) == 1
    assert await coalescer.run("k", producer) == 2


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_task():
    coalescer = InFlightCoalescer("test")
    gate = asyncio.Event()

    async def producer():
        await gate.wait()
        return "done"

    first = asyncio.ensure_future(coalescer.run("k", producer))
    second = asyncio.ensure_future(coalescer.run("k", producer))
    await asyncio.sleep(0)

    first.cancel()
    await asyncio.sleep(0)
    gate.set()

    assert await second == "done"
    assert first.cancelled()
    assert not coalescer.in_flight("k")


@pytest.mark.asyncio
async def test_clear_does_not_drop_newer_registration():
    coalescer = InFlightCoalescer("test")
    old_gate = asyncio.Event()
    new_gate = asyncio.Event()

    async def old():
        await old_gate.wait()
        return "old"

    async def new():
        await new_gate.wait()
        return "new"

    first = asyncio.ensure_future(coalescer.run("k", old))
    await asyncio.sleep(0)
    coalescer.clear()
    second = asyncio.ensure_future(coalescer.run("k", new))
    await asyncio.sleep(0)

    old_gate.set()
    assert await first == "old"
    assert coalescer.in_flight("k")

    new_gate.set()
    assert await second == "new"
    assert not coalescer.in_flight("k")


@pytest.mark.asyncio
async def test_join_is_counted():
    coalescer = InFlightCoalescer("metric-test")
    joined = coalescer_request_count.labels(coalescer="metric-test", result="joined")
    before = joined._value.get()

    async def producer():
        await asyncio.sleep(0)
        return 1

    await asyncio.gather(*(coalescer.run("k", producer) for _ in range(3)))

    assert joined._value.get() == before + 2


@pytest.mark.asyncio
async def test_fresh_call_does_not_join_running_producer():
    coalescer = InFlightCoalescer("test")
    gate = asyncio.Event()
    version = ["old"]
    calls = []

    async def producer():
        seen = version[0]
        calls.append(seen)
        await gate.wait()
        return seen

    first = asyncio.ensure_future(coalescer.run("k", producer))
    await asyncio.sleep(0)
    assert calls == ["old"]

    version[0] = "new"
    second = asyncio.ensure_future(coalescer.run("k", producer, fresh=True))
    joined = asyncio.ensure_future(coalescer.run("k", producer))
    await asyncio.sleep(0)
    assert calls == ["old"]

    gate.set()
    assert await first == "old"
    assert await second == "new"
    assert await joined == "new"
    assert calls == ["old", "new"]
    assert not coalescer.in_flight("k")


@pytest.mark.asyncio
async def test_fresh_calls_share_a_producer_that_has_not_started():
    coalescer = InFlightCoalescer("test")
    calls = []

    async def producer():
        calls.append(1)
        await asyncio.sleep(0)
        return len(calls)

    results = await asyncio.gather(
        *(coalescer.run("k", producer, fresh=True) for _ in range(3))
    )

    assert results == [1, 1, 1]
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_failure_without_waiters_is_retrieved(caplog):
    coalescer = InFlightCoalescer("test")
    gate = asyncio.Event()

    async def producer():
        await gate.wait()
        raise RuntimeError("backend down")

    waiter = asyncio.ensure_future(coalescer.run("k", producer))
    await asyncio.sleep(0)
    task = coalescer._in_flight["k"]
    waiter.cancel()
    await asyncio.sleep(0)

    with caplog.at_level("DEBUG", logger="ghsync"):
        gate.set()
        await asyncio.wait([task])
        await asyncio.sleep(0)

    assert waiter.cancelled()
    assert "Shared request failed" in caplog.text
