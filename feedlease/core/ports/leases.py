from typing import Protocol

from feedlease.core.models.lease import Lease


class LeaseContainer(Protocol):
    """
    Read side of the lease store: enumerates persisted leases.
    Returned sequences are finite snapshots; they may be empty.
    """

    async def get_all_leases(self) -> list[Lease]:
        """Return every lease known to the store, whoever owns it."""

    async def get_owned_leases(self) -> list[Lease]:
        """
        Return the leases currently marked as owned by this host, for
        example after a restart or a crash.
        """


class LeaseManager(Protocol):
    """
    Write side of the lease store.

    Every mutating call receives the lease as last read by the caller,
    including its `version`, and returns the lease as written. Mutual
    exclusion across hosts relies entirely on the store rejecting writes
    made against a stale version.
    """

    async def create_lease_if_not_exist(
        self,
        lease_token: str,
        continuation_token: str | None
    ) -> Lease | None:
        """
        Create an unowned lease for `lease_token`. Returns None if a lease
        already exists for that token.
        """

    async def acquire(self, lease: Lease) -> Lease | None:
        """
        Claim `lease` for this host. Returns None when the store holds no
        such lease. Raises LeaseConflictError when another host owns it
        or the stored version differs from `lease.version`.
        """

    async def renew(self, lease: Lease) -> Lease:
        """
        Refresh the lease timestamp so it does not expire. Raises
        LeaseLostError if this host is no longer the owner.
        """

    async def release(self, lease: Lease) -> None:
        """
        Give the lease up. Releasing a lease that no longer exists
        succeeds silently.
        """

    async def update_properties(self, lease: Lease) -> Lease:
        """Persist `lease.properties` on a lease owned by this host."""

    async def checkpoint(self, lease: Lease, continuation_token: str) -> Lease:
        """Persist a new continuation token on a lease owned by this host."""

    async def delete(self, lease: Lease) -> None:
        """Remove the lease from the store. Deleting twice is not an error."""
