import asyncio
from contextlib import asynccontextmanager


class KeyedLock:
    """
    A family of asyncio locks indexed by key.

    Holders of different keys never wait on each other. A lock entry
    only exists while at least one coroutine holds or waits for it, so
    the table does not grow with the number of keys ever seen.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                # last holder drops the entry
                del self._waiters[key]
                del self._locks[key]
