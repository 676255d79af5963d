import asyncio
from enum import StrEnum
from typing import Any, Callable, Coroutine

from feedlease.core.helpers.cancellation import CancellationSource, CancellationToken
from feedlease.core.helpers.spawn import TaskSpawner
from feedlease.core.models.lease import Lease


class WorkerState(StrEnum):
    created = "created"
    running = "running"
    completed = "completed"


class WorkerTask:
    """
    The controller's handle on one supervised partition loop.

    A worker binds exactly one lease to one cancellation source derived
    from the controller's root source. It is created when the controller
    decides to own the partition, becomes running once its coroutine is
    submitted to the spawner, and completes when that coroutine returns,
    whatever the reason.
    """

    def __init__(self, lease: Lease, source: CancellationSource) -> None:
        self._lease = lease
        self._source = source
        self._state = WorkerState.created
        self._task: asyncio.Task[Any] | None = None

    @property
    def lease_token(self) -> str:
        return self._lease.lease_token

    @property
    def lease(self) -> Lease:
        return self._lease

    @lease.setter
    def lease(self, lease: Lease) -> None:
        if lease.lease_token != self._lease.lease_token:
            raise ValueError(f"Worker for {self.lease_token} cannot take lease {lease.lease_token}")
        self._lease = lease

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def token(self) -> CancellationToken:
        return self._source.token

    @property
    def task(self) -> asyncio.Task[Any] | None:
        return self._task

    def is_running(self) -> bool:
        return self._state == WorkerState.running

    def start(
        self,
        spawner: TaskSpawner,
        work: Callable[[CancellationToken], Coroutine[Any, Any, None]],
    ) -> asyncio.Task[Any]:
        """
        Submit `work` to the spawner. The coroutine receives the worker's
        own token; the worker is marked completed when it returns.
        """
        if self._state != WorkerState.created:
            raise RuntimeError(
                f"Worker for {self.lease_token} cannot start from state {self._state}"
            )

        self._task = spawner.spawn(
            work(self._source.token),
            name=f"partition-{self.lease_token}",
        )
        self._state = WorkerState.running
        self._task.add_done_callback(self._on_done)
        return self._task

    def interrupt(self) -> None:
        """Signal the worker's token. Cooperative only: nothing is cancelled by force."""
        self._source.cancel()

    def _on_done(self, _: asyncio.Task[Any]) -> None:
        self._state = WorkerState.completed
        self._source.detach()

    def __repr__(self) -> str:
        return f"WorkerTask(lease_token={self.lease_token!r}, state={self._state})"
