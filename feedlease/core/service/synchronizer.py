import asyncio
import logging

from feedlease.core.exceptions import PartitionTopologyError
from feedlease.core.models.lease import Lease
from feedlease.core.ports.leases import LeaseContainer, LeaseManager
from feedlease.core.ports.partition import PartitionTopology


class PartitionSynchronizerImpl:
    """
    Keeps the set of leases aligned with the partition layout of the feed.
    """

    def __init__(
        self,
        topology: PartitionTopology,
        lease_container: LeaseContainer,
        lease_manager: LeaseManager,
    ) -> None:
        self._topology = topology
        self._lease_container = lease_container
        self._lease_manager = lease_manager
        self._logger = logging.getLogger("core.service.synchronizer")

    async def create_missing_leases(self) -> int:
        partitions = await self._topology.get_partitions()
        existing = {
            lease.lease_token
            for lease in await self._lease_container.get_all_leases()
        }
        missing = [token for token in partitions if token not in existing]
        if not missing:
            return 0

        self._logger.info(f"Creating leases for {len(missing)} partitions.")
        created = await asyncio.gather(*(
            self._lease_manager.create_lease_if_not_exist(token, None)
            for token in missing
        ))
        return sum(1 for lease in created if lease is not None)

    async def split_partition(self, lease: Lease) -> list[Lease]:
        """
        Create the leases of the partitions `lease` was split into.

        Children start from the parent's continuation token. A child lease
        that already exists, e.g. created by another host handling the same
        split, is not returned: it will be picked up by discovery.
        """
        token = lease.lease_token
        children = await self._topology.get_child_partitions(token)
        if len(children) < 2:
            raise PartitionTopologyError(
                f"Partition {token} split into {len(children)} partitions, expected at least 2"
            )

        self._logger.info(f"Partition {token} split into {', '.join(children)}.")

        created = await asyncio.gather(*(
            self._lease_manager.create_lease_if_not_exist(child, lease.continuation_token)
            for child in children
        ))
        return [child for child in created if child is not None]
