import logging
from typing import Callable

from feedlease.core.exceptions import LeaseConflictError, LeaseLostError, LeaseStoreError
from feedlease.core.helpers.utils import now
from feedlease.core.models.lease import Lease
from feedlease.core.ports.codec import LeaseCodec
from feedlease.core.ports.storage import Storage


class StorageLeaseStore:
    """
    Lease container and lease manager backed by a Storage keyspace.

    Each lease is one record keyed by its token. Every write is a
    compare-and-set against the exact bytes that were read, so two hosts
    sharing the same backend can never both believe they won a race: the
    loser's write is rejected and surfaces as a LeaseConflictError (for
    acquisition) or is retried against the fresh record (for writes made
    by the current owner).

    Acquisition is the only operation checked against the caller's
    `version`. Renewals, checkpoints and property updates only require
    this host to still be the owner, because the owner's own background
    writes legitimately move the version forward.
    """
    KEYSPACE = b"leases"
    _MAX_ATTEMPTS = 5

    def __init__(
        self,
        storage: Storage,
        codec: LeaseCodec,
        host_name: str,
        expiration: float,
        clock: Callable[[], float] = now,
    ) -> None:
        self._storage = storage
        self._codec = codec
        self._host_name = host_name
        self._expiration = expiration
        self._clock = clock
        self._logger = logging.getLogger("core.service.leases")

    @property
    def host_name(self) -> str:
        return self._host_name

    async def get_all_leases(self) -> list[Lease]:
        leases = []
        async for _, raw in self._storage.iter(self.KEYSPACE):
            leases.append(self._codec.decode(raw))
        return leases

    async def get_owned_leases(self) -> list[Lease]:
        return [
            lease
            for lease in await self.get_all_leases()
            if lease.is_owned_by(self._host_name)
        ]

    async def get_lease(self, lease_token: str) -> Lease | None:
        raw = await self._storage.get(self.KEYSPACE, lease_token.encode())
        return None if raw is None else self._codec.decode(raw)

    async def create_lease_if_not_exist(
        self,
        lease_token: str,
        continuation_token: str | None
    ) -> Lease | None:
        lease = Lease(
            lease_token=lease_token,
            continuation_token=continuation_token,
            version=1,
            timestamp=self._clock(),
        )
        created = await self._storage.compare_and_set(
            self.KEYSPACE, lease_token.encode(), None, self._codec.encode(lease)
        )
        if not created:
            self._logger.debug(f"Lease {lease_token} already exists, skip creation.")
            return None

        self._logger.info(f"Created lease {lease_token}.")
        return lease

    async def acquire(self, lease: Lease) -> Lease | None:
        key = lease.lease_token.encode()
        raw = await self._storage.get(self.KEYSPACE, key)
        if raw is None:
            return None

        stored = self._codec.decode(raw)
        if stored.version != lease.version:
            raise LeaseConflictError(
                lease.lease_token,
                f"version {lease.version} is stale, store has {stored.version}"
            )

        now_ = self._clock()
        if (
            stored.owner
            and not stored.is_owned_by(self._host_name)
            and not stored.is_expired(now_, self._expiration)
        ):
            raise LeaseConflictError(lease.lease_token, f"owned by {stored.owner}")

        acquired = Lease(
            lease_token=stored.lease_token,
            owner=self._host_name,
            continuation_token=stored.continuation_token,
            properties=dict(lease.properties or stored.properties),
            version=stored.version + 1,
            timestamp=now_,
        )
        if not await self._storage.compare_and_set(self.KEYSPACE, key, raw, self._codec.encode(acquired)):
            raise LeaseConflictError(lease.lease_token, "changed while being acquired")

        return acquired

    async def renew(self, lease: Lease) -> Lease:
        return await self._update_owned(lease, lambda stored: None)

    async def release(self, lease: Lease) -> None:
        key = lease.lease_token.encode()

        for _ in range(self._MAX_ATTEMPTS):
            raw = await self._storage.get(self.KEYSPACE, key)
            if raw is None:
                return

            stored = self._codec.decode(raw)
            if not stored.owner:
                return
            if not stored.is_owned_by(self._host_name):
                raise LeaseLostError(lease.lease_token, f"owned by {stored.owner}")

            stored.owner = ""
            stored.version += 1
            stored.timestamp = self._clock()
            if await self._storage.compare_and_set(self.KEYSPACE, key, raw, self._codec.encode(stored)):
                return

        raise LeaseStoreError(lease.lease_token, "too many concurrent writes on release")

    async def update_properties(self, lease: Lease) -> Lease:
        properties = dict(lease.properties)

        def apply(stored: Lease) -> None:
            stored.properties = properties

        return await self._update_owned(lease, apply)

    async def checkpoint(self, lease: Lease, continuation_token: str) -> Lease:
        def apply(stored: Lease) -> None:
            stored.continuation_token = continuation_token

        return await self._update_owned(lease, apply)

    async def delete(self, lease: Lease) -> None:
        await self._storage.delete(self.KEYSPACE, lease.lease_token.encode())

    async def _update_owned(self, lease: Lease, apply: Callable[[Lease], None]) -> Lease:
        key = lease.lease_token.encode()

        for _ in range(self._MAX_ATTEMPTS):
            raw = await self._storage.get(self.KEYSPACE, key)
            if raw is None:
                raise LeaseLostError(lease.lease_token, "lease no longer exists")

            stored = self._codec.decode(raw)
            if not stored.is_owned_by(self._host_name):
                raise LeaseLostError(lease.lease_token, f"owned by {stored.owner or 'nobody'}")

            apply(stored)
            stored.version += 1
            stored.timestamp = self._clock()
            if await self._storage.compare_and_set(self.KEYSPACE, key, raw, self._codec.encode(stored)):
                return stored

            self._logger.debug(f"Lease {lease.lease_token} changed concurrently, retrying update.")

        raise LeaseStoreError(lease.lease_token, "too many concurrent writes")
