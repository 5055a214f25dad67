"""Sharded per-key locks serializing writes across contract streams.

Keys are entity ids such as ``token:5``, ``user:0xabc...`` or ``global``.
Each key hashes to one of a fixed number of asyncio locks; a writer holding
several keys acquires their shards in ascending order so two writers can
never wait on each other in a cycle.
"""

from __future__ import annotations

import asyncio
import zlib
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager


class KeyedLocks:
    """Fixed pool of asyncio locks addressed by entity key."""

    def __init__(self, shards: int = 64) -> None:
        if shards < 1:
            msg = "shards must be >= 1"
            raise ValueError(msg)
        self._locks = [asyncio.Lock() for _ in range(shards)]

    def shard_of(self, key: str) -> int:
        # crc32 rather than hash(): stable across processes
        return zlib.crc32(key.encode()) % len(self._locks)

    @asynccontextmanager
    async def hold(self, keys: Iterable[str] | None) -> AsyncIterator[None]:
        """Hold the locks for ``keys``; ``None`` holds every shard."""
        if keys is None:
            shards = list(range(len(self._locks)))
        else:
            shards = sorted({self.shard_of(k) for k in keys})

        acquired: list[asyncio.Lock] = []
        try:
            for idx in shards:
                lock = self._locks[idx]
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def token_key(token_id: int) -> str:
    return f"token:{token_id}"


def user_key(address: str) -> str:
    return f"user:{address}"


GLOBAL_KEY = "global"
