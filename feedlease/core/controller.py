import asyncio
import logging
from functools import partial

from feedlease.core.exceptions import AcquisitionError, LeaseStoreError
from feedlease.core.helpers.cancellation import CancellationSource, CancellationToken
from feedlease.core.helpers.lock import KeyedLock
from feedlease.core.helpers.spawn import TaskSpawner
from feedlease.core.models.lease import Lease
from feedlease.core.models.outcome import Outcome, OutcomeKind
from feedlease.core.models.worker import WorkerState, WorkerTask
from feedlease.core.ports.leases import LeaseContainer, LeaseManager
from feedlease.core.ports.partition import (
    PartitionSupervisor,
    PartitionSupervisorFactory,
    PartitionSynchronizer,
)


class PartitionController:
    """
    Owns the partitions processed by this host.

    The controller keeps one worker task per owned lease, keyed by lease
    token, and decides when a lease must be acquired, merely updated,
    released, or replaced by its children after a split. Ownership across
    hosts is arbitrated by the lease store; the controller only guarantees
    that, within this host, a lease token maps to at most one worker.

    Calls for the same token are serialized around the "is this partition
    already mine" decision; no lock is held while talking to the store.
    """

    def __init__(
        self,
        lease_container: LeaseContainer,
        lease_manager: LeaseManager,
        supervisor_factory: PartitionSupervisorFactory,
        synchronizer: PartitionSynchronizer,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._lease_container = lease_container
        self._lease_manager = lease_manager
        self._supervisor_factory = supervisor_factory
        self._synchronizer = synchronizer

        self._spawner = TaskSpawner(loop=loop)
        self._owned: dict[str, WorkerTask] = {}
        self._locks = KeyedLock()
        self._shutdown_source: CancellationSource | None = None
        self._logger = logging.getLogger("core.controller")

    @property
    def owned_partitions(self) -> dict[str, WorkerTask]:
        """Snapshot of the owned-partitions map."""
        return dict(self._owned)

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_source is not None and self._shutdown_source.cancelled

    async def initialize(self) -> None:
        """
        Start a new controller lifetime and resume the leases this host
        already owns in the store.

        A lease that cannot be taken back is logged and skipped; the
        load pass itself never fails because of one partition.
        """
        self._shutdown_source = CancellationSource()

        self._logger.debug("Starting renew leases assigned to this host on initialize.")
        leases = await self._lease_container.get_owned_leases()
        await asyncio.gather(*(self._load_lease(lease) for lease in leases))

    async def add_or_update_lease(self, lease: Lease) -> Lease:
        """
        Make sure `lease` is being processed by this host.

        If a worker already exists for the token, only the lease
        properties are refreshed in the store. Otherwise the lease is
        acquired and a new worker is spawned for it. When acquisition
        fails, any trace of the token is removed and AcquisitionError is
        raised, chained to the store failure.
        """
        source = self._root_source()
        token = lease.lease_token

        async with self._locks.hold(token):
            worker = self._owned.get(token)
            if worker is not None and worker.state != WorkerState.completed:
                reserved = None
            else:
                reserved = WorkerTask(lease, source.create_child())
                self._owned[token] = reserved

        if reserved is None:
            return await self._update_properties(lease)

        try:
            acquired = await self._lease_manager.acquire(lease)
            if acquired is None:
                # first claim: nothing stored yet for this partition
                acquired = lease
            supervisor = self._supervisor_factory.create(acquired)
        except Exception as ex:
            if self._owned.get(token) is reserved:
                await self.remove_lease(lease)
            else:
                await self._release(lease)
            raise AcquisitionError(token) from ex
        except BaseException:
            # cancelled mid-acquisition: drop the reservation now, release in the background
            if self._owned.get(token) is reserved:
                del self._owned[token]
                reserved.interrupt()
            self._spawner.spawn(self._release(lease), name=f"release-{token}")
            raise

        if self._owned.get(token) is not reserved:
            self._logger.info(f"Partition {token}: removed while being acquired.")
            await self._release(acquired)
            raise AcquisitionError(token)

        self._logger.info(f"Partition {token}: acquired.")
        reserved.lease = acquired
        reserved.start(self._spawner, partial(self._process_partition, reserved, supervisor, acquired))
        return acquired

    async def remove_lease(self, lease: Lease) -> None:
        """
        Stop processing `lease` and release it in the store.

        Best effort: a failed release is logged, the store expiry takes
        care of it eventually. Unknown tokens are accepted.
        """
        token = lease.lease_token
        worker = self._owned.pop(token, None)

        if worker is not None:
            if worker.state != WorkerState.completed:
                worker.interrupt()
            self._logger.info(f"Partition {token}: released.")

        await self._release(lease)

    async def shutdown(self) -> None:
        """
        Signal every worker to stop and return immediately.

        Workers are not awaited and the owned-partitions map is left as
        is: each worker removes its own entry once it observes the
        cancellation. Use `drain` to wait for them.
        """
        if self._shutdown_source is not None:
            self._shutdown_source.cancel()

    async def drain(self, timeout: float | None = None) -> int:
        """
        Shut down, then wait up to `timeout` seconds for every worker to
        complete. Returns the number of workers still running.
        """
        await self.shutdown()
        remaining = await self._spawner.join(timeout)
        if remaining:
            self._logger.warning(f"{remaining} partition workers still running after drain.")
        return remaining

    async def handle_split(self, lease: Lease, continuation_token: str | None) -> None:
        """
        Replace a split parent lease with the leases of its children.

        The children start from the parent's last continuation token and
        inherit its properties. The parent is deleted once every child
        has been offered to `add_or_update_lease`. Nothing here is
        retried: a failure is logged and the remaining steps are skipped.
        """
        lease.continuation_token = continuation_token

        try:
            children = await self._synchronizer.split_partition(lease)
            await asyncio.gather(*(self._add_child(lease, child) for child in children))
            await self._lease_manager.delete(lease)
        except Exception as ex:
            self._logger.warning(f"Partition {lease.lease_token}: failed to split.", exc_info=ex)
            return

        self._logger.info(
            f"Partition {lease.lease_token}: split into "
            f"{', '.join(child.lease_token for child in children)}."
        )

    async def _release(self, lease: Lease) -> None:
        try:
            await self._lease_manager.release(lease)
        except Exception as ex:
            self._logger.warning(f"Partition {lease.lease_token}: failed to remove lease.", exc_info=ex)
        else:
            self._logger.info(f"Partition {lease.lease_token}: successfully removed lease.")

    def _root_source(self) -> CancellationSource:
        if self._shutdown_source is None:
            raise RuntimeError("PartitionController is not initialized")
        return self._shutdown_source

    async def _load_lease(self, lease: Lease) -> None:
        self._logger.info(f"Acquired lease for partition {lease.lease_token} on startup.")
        try:
            await self.add_or_update_lease(lease)
        except AcquisitionError as ex:
            self._logger.warning(
                f"Partition {lease.lease_token}: failed to resume on startup.",
                exc_info=ex
            )

    async def _update_properties(self, lease: Lease) -> Lease:
        try:
            updated = await self._lease_manager.update_properties(lease)
        except LeaseStoreError as ex:
            self._logger.warning(
                f"Partition {lease.lease_token}: failed to update properties.",
                exc_info=ex
            )
            return lease

        self._logger.debug(f"Partition {updated.lease_token}: updated.")
        return updated

    async def _add_child(self, parent: Lease, child: Lease) -> None:
        child.properties = dict(parent.properties)
        try:
            await self.add_or_update_lease(child)
        except AcquisitionError as ex:
            # left unacquired, the next discovery pass picks it up
            self._logger.warning(
                f"Partition {child.lease_token}: failed to acquire after split "
                f"of {parent.lease_token}.",
                exc_info=ex
            )

    async def _process_partition(
        self,
        worker: WorkerTask,
        supervisor: PartitionSupervisor,
        lease: Lease,
        token: CancellationToken,
    ) -> None:
        try:
            try:
                outcome = await supervisor.run(token)
            except Exception as ex:
                outcome = Outcome.failed(ex)

            match outcome.kind:
                case OutcomeKind.split:
                    await self.handle_split(lease, outcome.continuation_token)
                case OutcomeKind.cancelled:
                    self._logger.debug(f"Partition {lease.lease_token}: processing canceled.")
                case OutcomeKind.error:
                    self._logger.warning(
                        f"Partition {lease.lease_token}: processing failed.",
                        exc_info=outcome.error
                    )
                case _:
                    self._logger.info(f"Partition {lease.lease_token}: processing completed.")
        finally:
            # a newer worker may have taken the token over after an external removal
            current = self._owned.get(lease.lease_token)
            if current is None or current is worker:
                await self.remove_lease(lease)
