import threading

import lmdb


class LMDBBackend:
    """
    Synchronous LMDB access used by LMDBStorage from worker threads.

    Each keyspace maps to a named LMDB database (DBI) of one environment.
    Every method opens its own short transaction. LMDB serializes write
    transactions across threads and processes, which is what makes
    `compare_and_set` atomic for every host sharing the environment.
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
    ) -> None:
        self._env = lmdb.open(
            path,
            map_size=map_size,
            max_dbs=max_dbs,
            lock=lock,
            writemap=writemap,
            sync=sync,
            readahead=readahead,
        )
        self._dbis: dict[bytes, object] = {}
        self._dbis_lock = threading.Lock()

    def get(self, db_name: bytes, key: bytes) -> bytes | None:
        dbi = self._get_dbi(db_name)
        with self._env.begin(db=dbi, write=False) as txn:
            return txn.get(key)

    def delete(self, db_name: bytes, key: bytes) -> bool:
        dbi = self._get_dbi(db_name)
        with self._env.begin(db=dbi, write=True) as txn:
            return txn.delete(key)

    def compare_and_set(
        self,
        db_name: bytes,
        key: bytes,
        expected: bytes | None,
        value: bytes | None,
    ) -> bool:
        dbi = self._get_dbi(db_name)
        with self._env.begin(db=dbi, write=True) as txn:
            current = txn.get(key)
            if current != expected:
                return False

            if value is None:
                txn.delete(key)
            else:
                txn.put(key, value)
            return True

    def scan(
        self,
        db_name: bytes,
        prefix: bytes | None = None,
        start: bytes | None = None,
        limit: int | None = None,
    ) -> list[tuple[bytes, bytes]]:
        """
        Return up to `limit` items of the DBI in ascending key order.

        `start` is an inclusive lower bound used for pagination; `prefix`
        is a hard filter: the scan stops at the first key outside of it.
        The scan begins at the greater of `start` and `prefix`, or at the
        first key when neither is given.
        """
        if limit is not None and limit <= 0:
            return []

        dbi = self._get_dbi(db_name)
        items: list[tuple[bytes, bytes]] = []

        with self._env.begin(write=False) as txn:
            with txn.cursor(db=dbi) as cursor:
                first = start if start is not None else prefix
                if start is not None and prefix is not None and start < prefix:
                    first = prefix
                positioned = cursor.set_range(first) if first is not None else cursor.first()
                if not positioned:
                    return []

                while True:
                    key = cursor.key()

                    if prefix is not None and not key.startswith(prefix):
                        break

                    items.append((key, cursor.value()))
                    if limit is not None and len(items) >= limit:
                        break

                    if not cursor.next():
                        break

        return items

    def close(self) -> None:
        self._dbis.clear()
        self._env.close()

    def _get_dbi(self, name: bytes) -> object:
        with self._dbis_lock:
            dbi = self._dbis.get(name)
            if dbi is None:
                dbi = self._env.open_db(name)
                self._dbis[name] = dbi
            return dbi
