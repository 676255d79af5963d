import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import AsyncIterator

from feedlease.core.helpers.utils import increment_key
from feedlease.infra.lmdb_storage.backend import LMDBBackend


class LMDBStorage:
    """
    Storage implementation over an LMDB environment.

    LMDB is fully synchronous; reads and writes are offloaded to two
    thread pools so the event loop is never blocked. A single writer
    thread is enough since LMDB serializes write transactions anyway.
    """

    def __init__(
        self,
        path: str,
        map_size: int = 1 << 30,
        max_dbs: int = 8,
        readahead: bool = True,
        writemap: bool = False,
        sync: bool = True,
        lock: bool = True,
        max_readers: int = 4,
        max_writers: int = 1,
    ) -> None:
        self._backend = LMDBBackend(
            path=path,
            map_size=map_size,
            max_dbs=max_dbs,
            readahead=readahead,
            writemap=writemap,
            sync=sync,
            lock=lock,
        )
        self._read_pool = ThreadPoolExecutor(max_workers=max_readers)
        self._write_pool = ThreadPoolExecutor(max_workers=max_writers)

    @classmethod
    def open(cls, data_dir: Path, **kwargs) -> "LMDBStorage":
        data_dir.mkdir(parents=True, exist_ok=True)
        return cls(path=str(data_dir), **kwargs)

    async def get(self, keyspace: bytes, key: bytes) -> bytes | None:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._read_pool, self._backend.get, keyspace, key
        )

    async def delete(self, keyspace: bytes, key: bytes) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            self._write_pool, self._backend.delete, keyspace, key
        )

    async def compare_and_set(
        self,
        keyspace: bytes,
        key: bytes,
        expected: bytes | None,
        value: bytes | None,
    ) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._write_pool, self._backend.compare_and_set, keyspace, key, expected, value
        )

    async def iter(
        self,
        keyspace: bytes,
        prefix: bytes | None = None,
        batch_size: int = 1024,
    ) -> AsyncIterator[tuple[bytes, bytes]]:
        loop = asyncio.get_running_loop()
        next_key = None

        while True:
            batch: list[tuple[bytes, bytes]] = await loop.run_in_executor(
                self._read_pool,
                self._backend.scan,
                keyspace,
                prefix,
                next_key,
                batch_size,
            )

            for key, value in batch:
                yield key, value

            if len(batch) < batch_size:
                break

            next_key = increment_key(batch[-1][0])

    async def close(self) -> None:
        def shutdown() -> None:
            self._backend.close()
            self._read_pool.shutdown(wait=True)
            self._write_pool.shutdown(wait=True)

        await asyncio.to_thread(shutdown)
