from typing import Protocol

from feedlease.core.helpers.cancellation import CancellationToken
from feedlease.core.models.lease import Lease
from feedlease.core.models.outcome import Outcome


class PartitionSupervisor(Protocol):
    """
    Runs the processing of one partition until it ends.

    The supervisor must observe `token` and return promptly once it is
    cancelled. It reports how the loop ended through the returned
    Outcome instead of raising.
    """

    async def run(self, token: CancellationToken) -> Outcome:
        ...


class PartitionSupervisorFactory(Protocol):
    def create(self, lease: Lease) -> PartitionSupervisor:
        """Build a supervisor for an owned lease. Pure construction, no I/O."""


class PartitionSynchronizer(Protocol):
    async def create_missing_leases(self) -> int:
        """
        Make sure every partition of the feed has a lease. Returns the
        number of leases created.
        """

    async def split_partition(self, lease: Lease) -> list[Lease]:
        """
        Create the leases of the children of a split partition. At least
        two children are returned and together they cover the range of
        the parent.
        """


class PartitionCheckpointer(Protocol):
    async def checkpoint(self, continuation_token: str) -> None:
        ...


class PartitionProcessor(Protocol):
    """
    The user read loop for one partition: pulls changes from the feed
    starting at the lease checkpoint and hands them to user code.

    A partition that no longer exists because it was split must be
    reported with Outcome.split carrying the last continuation token
    that was fully processed.
    """

    async def run(self, token: CancellationToken) -> Outcome:
        ...


class PartitionProcessorFactory(Protocol):
    def create(self, lease: Lease, checkpointer: PartitionCheckpointer) -> PartitionProcessor:
        ...


class PartitionTopology(Protocol):
    """
    View of the partition layout of the monitored feed.
    """

    async def get_partitions(self) -> list[str]:
        """Return the tokens of every live partition."""

    async def get_child_partitions(self, lease_token: str) -> list[str]:
        """Return the tokens of the partitions a split partition became."""
