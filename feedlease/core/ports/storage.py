from typing import Protocol, AsyncIterator


class Storage(Protocol):
    """
    Minimal asynchronous interface for a keyspaced key–value backend.
    A Storage implementation exposes a simple byte-oriented KV store
    where multiple logical datasets coexist via keyspaces.

    The only multi-step guarantee callers may rely on is the atomicity
    of `compare_and_set`; everything else is a single-key operation.
    """

    async def get(self, keyspace: bytes, key: bytes) -> bytes | None:
        """
        Retrieve the value associated with `key` inside the given
        keyspace. Returns None if the key does not exist.

        Implementations must not raise exceptions for missing keys.
        """

    async def delete(self, keyspace: bytes, key: bytes) -> None:
        """
        Remove the entry associated with `key` inside the keyspace.
        If the key does not exist, the method must succeed silently.
        """

    async def compare_and_set(
        self,
        keyspace: bytes,
        key: bytes,
        expected: bytes | None,
        value: bytes | None,
    ) -> bool:
        """
        Atomically replace the value under `key` with `value` if, and only
        if, the current value equals `expected`.

        `expected=None` means the key must be absent; `value=None` deletes
        the key. Returns False without writing anything when the current
        value does not match. The comparison and the write happen in one
        transaction, which makes this the building block of optimistic
        concurrency for callers sharing the same backend.
        """

    async def close(self) -> None:
        """
        Release all underlying resources associated with this Storage
        instance. After calling close(), the instance must not be used again.
        """

    def iter(
        self,
        keyspace: bytes,
        prefix: bytes | None = None,
        batch_size: int = 1024,
    ) -> AsyncIterator[tuple[bytes, bytes]]:
        """
        Asynchronously stream key–value pairs from the given keyspace,
        in lexicographic key order, optionally restricted to a prefix.

        The scan progresses in short batches so that no transaction is
        held across yields; keys are neither skipped nor duplicated
        between batches.
        """
