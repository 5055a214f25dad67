"""Keyed lock table tests."""

from __future__ import annotations

import asyncio

import pytest

from stakeidx.indexing.locks import GLOBAL_KEY, KeyedLocks, token_key, user_key


def test_shard_is_stable():
    locks = KeyedLocks(16)
    assert locks.shard_of("token:5") == locks.shard_of("token:5")
    assert 0 <= locks.shard_of(user_key("0xabc")) < 16


def test_rejects_zero_shards():
    with pytest.raises(ValueError):
        KeyedLocks(0)


def test_key_helpers():
    assert token_key(5) == "token:5"
    assert user_key("0xabc") == "user:0xabc"
    assert GLOBAL_KEY == "global"


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = KeyedLocks(8)
    order: list[str] = []

    async def writer(name: str) -> None:
        async with locks.hold([token_key(1)]):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(writer("a"), writer("b"))
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_overlapping_key_sets_do_not_deadlock():
    locks = KeyedLocks(64)
    keys_a = [token_key(1), user_key("0xaa"), GLOBAL_KEY]
    keys_b = [GLOBAL_KEY, user_key("0xaa"), token_key(1)]

    async def writer(keys: list[str]) -> None:
        for _ in range(20):
            async with locks.hold(keys):
                await asyncio.sleep(0)

    await asyncio.wait_for(asyncio.gather(writer(keys_a), writer(keys_b)), timeout=2)


@pytest.mark.asyncio
async def test_hold_all_excludes_every_key():
    locks = KeyedLocks(4)
    entered = asyncio.Event()
    release = asyncio.Event()

    async def reveal() -> None:
        async with locks.hold(None):
            entered.set()
            await release.wait()

    task = asyncio.create_task(reveal())
    await entered.wait()

    blocked = asyncio.create_task(_hold_once(locks, token_key(9)))
    await asyncio.sleep(0.01)
    assert not blocked.done()

    release.set()
    await asyncio.wait_for(blocked, timeout=1)
    await task


@pytest.mark.asyncio
async def test_locks_released_on_error():
    locks = KeyedLocks(4)
    with pytest.raises(RuntimeError):
        async with locks.hold([token_key(1)]):
            raise RuntimeError("boom")
    await asyncio.wait_for(_hold_once(locks, token_key(1)), timeout=1)


async def _hold_once(locks: KeyedLocks, key: str) -> None:
    async with locks.hold([key]):
        pass
