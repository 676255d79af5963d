import asyncio
import logging
from typing import Callable

from feedlease.core.controller import PartitionController
from feedlease.core.exceptions import AcquisitionError
from feedlease.core.helpers.utils import now
from feedlease.core.models.config import HostConfig
from feedlease.core.ports.leases import LeaseContainer
from feedlease.core.ports.partition import PartitionSynchronizer


class PartitionHost:
    """
    Drives a PartitionController for the lifetime of a host.

    On start the host makes sure every partition has a lease and resumes
    the leases it already owns. It then periodically offers every free or
    expired lease to the controller until the stop event is set, and
    finally shuts the controller down and drains its workers.

    Discovery is greedy: a host claims whatever is available. Leases
    owned by live peers are left alone; the lease store arbitrates races.
    """

    def __init__(
        self,
        config: HostConfig,
        controller: PartitionController,
        lease_container: LeaseContainer,
        synchronizer: PartitionSynchronizer,
        clock: Callable[[], float] = now,
    ) -> None:
        self._config = config
        self._controller = controller
        self._lease_container = lease_container
        self._synchronizer = synchronizer
        self._clock = clock
        self._logger = logging.getLogger("core.service.host")

    @property
    def controller(self) -> PartitionController:
        return self._controller

    async def run(self, stop_event: asyncio.Event) -> None:
        created = await self._synchronizer.create_missing_leases()
        if created:
            self._logger.info(f"Created {created} missing leases.")

        await self._controller.initialize()
        self._logger.info(f"Host {self._config.host_name} started.")

        try:
            await self.discovery_loop(stop_event)
        finally:
            await self.stop()

    async def discovery_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.discover()
            except Exception as ex:
                self._logger.warning("Lease discovery failed.", exc_info=ex)

            try:
                await asyncio.wait_for(
                    stop_event.wait(), timeout=self._config.discovery_interval
                )
            except asyncio.TimeoutError:
                pass

    async def discover(self) -> int:
        """
        Offer every available lease to the controller. Returns the number
        of leases acquired during this pass.
        """
        owned = self._controller.owned_partitions
        now_ = self._clock()
        candidates = [
            lease
            for lease in await self._lease_container.get_all_leases()
            if lease.lease_token not in owned
            and lease.is_available(now_, self._config.expiration)
        ]

        acquired = 0
        for lease in candidates:
            try:
                await self._controller.add_or_update_lease(lease)
            except AcquisitionError as ex:
                self._logger.debug(
                    f"Partition {lease.lease_token}: not acquired ({ex.__cause__})."
                )
            else:
                acquired += 1

        if acquired:
            self._logger.info(f"Acquired {acquired} leases during discovery.")
        return acquired

    async def stop(self) -> None:
        self._logger.info(f"Stopping host {self._config.host_name}.")
        remaining = await self._controller.drain(self._config.drain_timeout)
        if remaining:
            self._logger.warning(f"Abandoning {remaining} partition workers.")
        else:
            self._logger.info("All partition workers stopped.")
