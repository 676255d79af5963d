import asyncio
import logging

from feedlease.core.exceptions import LeaseLostError
from feedlease.core.helpers.cancellation import CancellationToken
from feedlease.core.models.lease import Lease
from feedlease.core.models.outcome import Outcome
from feedlease.core.ports.leases import LeaseManager
from feedlease.core.ports.partition import PartitionProcessor, PartitionProcessorFactory


class PartitionCheckpointer:
    """
    Persists the progress of one partition into its lease.

    The checkpointer keeps the last lease returned by the store so the
    processor never has to deal with versions itself.
    """

    def __init__(self, lease_manager: LeaseManager, lease: Lease) -> None:
        self._lease_manager = lease_manager
        self._lease = lease

    @property
    def lease(self) -> Lease:
        return self._lease

    async def checkpoint(self, continuation_token: str) -> None:
        self._lease = await self._lease_manager.checkpoint(self._lease, continuation_token)


class LeaseRenewer:
    """
    Keeps an owned lease alive while its partition is processed.

    The lease is renewed every `renew_interval` seconds. Losing the lease
    ends the renewer with an error outcome, which in turn stops the
    processor: another host has taken the partition over.
    """

    def __init__(self, lease_manager: LeaseManager, lease: Lease, renew_interval: float) -> None:
        self._lease_manager = lease_manager
        self._lease = lease
        self._renew_interval = renew_interval
        self._logger = logging.getLogger("core.service.renewer")

    @property
    def lease(self) -> Lease:
        return self._lease

    async def run(self, token: CancellationToken) -> Outcome:
        while not token.cancelled:
            try:
                await asyncio.wait_for(token.wait(), timeout=self._renew_interval)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                self._lease = await self._lease_manager.renew(self._lease)
            except LeaseLostError as ex:
                self._logger.info(f"Partition {self._lease.lease_token}: lease lost, stop renewing.")
                return Outcome.failed(ex)
            except Exception as ex:
                # a transient failure is retried on the next tick, expiry is the limit
                self._logger.warning(
                    f"Partition {self._lease.lease_token}: failed to renew lease.",
                    exc_info=ex
                )
            else:
                self._logger.debug(f"Partition {self._lease.lease_token}: renewed.")

        return Outcome.cancelled()


class PartitionSupervisorImpl:
    """
    Runs the processor of a partition next to its lease renewer.

    Both run under a cancellation source derived from the controller's
    token. Whichever finishes first decides the outcome; the other one is
    then cancelled and awaited, so nothing outlives `run`.
    """

    def __init__(self, lease: Lease, processor: PartitionProcessor, renewer: LeaseRenewer) -> None:
        self._lease = lease
        self._processor = processor
        self._renewer = renewer
        self._logger = logging.getLogger("core.service.supervisor")

    async def run(self, token: CancellationToken) -> Outcome:
        source = token.derive()

        processor_task = asyncio.create_task(self._guard(self._processor.run(source.token)))
        renewer_task = asyncio.create_task(self._guard(self._renewer.run(source.token)))

        tasks = [processor_task, renewer_task]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            source.cancel()
            # both observe the derived token, wait for them even when run is cancelled
            await asyncio.gather(*tasks, return_exceptions=True)

        processor_outcome = processor_task.result()
        renewer_outcome = renewer_task.result()

        if token.cancelled:
            return Outcome.cancelled()

        if processor_task in done:
            return processor_outcome

        self._logger.debug(f"Partition {self._lease.lease_token}: renewer stopped processing.")
        return renewer_outcome

    async def _guard(self, coro) -> Outcome:
        try:
            return await coro
        except Exception as ex:
            return Outcome.failed(ex)


class PartitionSupervisorFactoryImpl:
    def __init__(
        self,
        lease_manager: LeaseManager,
        processor_factory: PartitionProcessorFactory,
        renew_interval: float,
    ) -> None:
        self._lease_manager = lease_manager
        self._processor_factory = processor_factory
        self._renew_interval = renew_interval

    def create(self, lease: Lease) -> PartitionSupervisorImpl:
        checkpointer = PartitionCheckpointer(self._lease_manager, lease)
        processor = self._processor_factory.create(lease, checkpointer)
        renewer = LeaseRenewer(self._lease_manager, lease, self._renew_interval)
        return PartitionSupervisorImpl(lease, processor, renewer)

