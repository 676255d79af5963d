import asyncio
import logging
from typing import Any, Coroutine


class TaskSpawner:
    """
    A lightweight helper for spawning and tracking background asyncio tasks.

    This utility centralizes task creation, error reporting, and lifecycle
    management. It ensures that:
    - all spawned tasks are tracked until completion
    - unhandled exceptions inside tasks are logged
    - completed tasks are automatically removed from the internal registry

    The spawner is the execution substrate of the partition controller:
    each worker task is one spawned coroutine.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = logging.getLogger("core.helpers.spawn")

    @property
    def remaining_tasks(self) -> int:
        """
        Return the number of tasks currently being tracked.

        This reflects tasks that have been spawned but have not yet completed.
        """
        return len(self._tasks)

    def on_done(self, task: asyncio.Task[Any]) -> None:
        """
        Callback executed when a spawned task completes.

        If the task raised an exception, it is logged. The task is then removed
        from the internal tracking set.
        """
        if not task.cancelled() and (ex := task.exception()):
            self._logger.error(
                f"Error occurred in task {task.get_name()}: {str(ex)}",
                exc_info=ex
            )

        self._tasks.discard(task)

    def spawn(
        self,
        coro: Coroutine[Any, Any, None],
        name: str | None = None
    ) -> asyncio.Task[Any]:
        """
        Spawn a coroutine as a background task and track its lifecycle.

        Without an explicit loop, the task is scheduled on the running one.
        """
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(coro, name=name)
        task.add_done_callback(self.on_done)
        self._tasks.add(task)
        return task

    async def join(self, timeout: float | None = None) -> int:
        """
        Wait for every tracked task to finish, at most `timeout` seconds.

        Tasks spawned while waiting are waited for as well. Returns the
        number of tasks still pending when the wait ended.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                break
            await asyncio.wait(set(self._tasks), timeout=remaining)
            # let done callbacks run before looking at the registry again
            await asyncio.sleep(0)

        return len(self._tasks)
