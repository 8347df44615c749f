"""
Tests for the per-session lock registry.
"""
import asyncio

import pytest

from intake_bot.session import SessionLockRegistry


@pytest.mark.unit
@pytest.mark.asyncio
async def test_same_key_is_serialized(locks):
    events = []

    async def worker(name: str):
        async with locks.lock("oc_1"):
            events.append(f"{name}:start")
            await asyncio.sleep(0.01)
            events.append(f"{name}:end")

    await asyncio.gather(worker("w1"), worker("w2"), worker("w3"))

    # No interleaving: every start is immediately followed by its own end
    for i in range(0, len(events), 2):
        assert events[i].split(":")[0] == events[i + 1].split(":")[0]
        assert events[i].endswith("start") and events[i + 1].endswith("end")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_waiters_served_in_acquire_order(locks):
    order = []
    first = await locks.acquire("oc_1")

    async def waiter(n: int):
        async with locks.lock("oc_1"):
            order.append(n)

    tasks = [asyncio.create_task(waiter(n)) for n in range(5)]
    await asyncio.sleep(0)
    first.release()
    await asyncio.gather(*tasks)

    assert order == [0, 1, 2, 3, 4]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_different_keys_do_not_block(locks):
    held = await locks.acquire("oc_1")

    # Would time out if oc_2 waited on oc_1
    other = await asyncio.wait_for(locks.acquire("oc_2"), timeout=1.0)

    assert locks.is_locked("oc_1")
    assert locks.is_locked("oc_2")
    other.release()
    held.release()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_idle_locks_move_out_of_active_map(locks):
    async with locks.lock("oc_1"):
        assert locks.active_count == 1

    assert locks.active_count == 0
    assert locks.idle_count == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_idle_locks_expire(clock):
    registry = SessionLockRegistry(idle_ttl_seconds=60, max_idle=10, timer=clock)

    async with registry.lock("oc_1"):
        pass
    assert registry.idle_count == 1

    clock.advance(61)
    assert registry.idle_count == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_held_lock_never_evicted(clock):
    registry = SessionLockRegistry(idle_ttl_seconds=1, max_idle=1, timer=clock)

    held = await registry.acquire("oc_1")
    clock.advance(100)

    # Churn through other keys to pressure the idle cache
    for n in range(5):
        async with registry.lock(f"oc_other_{n}"):
            pass

    waiter = asyncio.create_task(registry.acquire("oc_1"))
    await asyncio.sleep(0)
    assert not waiter.done()

    held.release()
    handle = await asyncio.wait_for(waiter, timeout=1.0)
    handle.release()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_double_release_rejected(locks):
    handle = await locks.acquire("oc_1")
    handle.release()

    with pytest.raises(RuntimeError):
        handle.release()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_leak(locks):
    held = await locks.acquire("oc_1")
    waiter = asyncio.create_task(locks.acquire("oc_1"))
    await asyncio.sleep(0)

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    held.release()
    assert locks.active_count == 0
