import asyncio


class CancellationToken:
    """
    Read-only view over a CancellationSource.

    A token never cancels anything by itself: it only lets the holder
    observe the state of the source it was issued by. Supervised loops are
    expected to poll `cancelled` between work units, or to race their own
    awaitables against `wait()`.
    """

    __slots__ = ("_source",)

    def __init__(self, source: "CancellationSource") -> None:
        self._source = source

    @property
    def cancelled(self) -> bool:
        return self._source.cancelled

    async def wait(self) -> None:
        """Block until the underlying source is cancelled."""
        await self._source.wait()

    def derive(self) -> "CancellationSource":
        """
        Create a new source cancelled together with this token's source.
        The new source can be cancelled on its own without affecting the
        token it was derived from.
        """
        return self._source.create_child()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


class CancellationSource:
    """
    The owned signalling side of a cooperative cancellation tree.

    A source may be created as a child of another one. Cancelling a
    source cancels all of its descendants; cancelling a child never
    affects its parent or siblings. A child created from an already
    cancelled parent starts cancelled.
    """

    def __init__(self, parent: "CancellationSource | None" = None) -> None:
        self._event = asyncio.Event()
        self._parent = parent
        self._children: set[CancellationSource] = set()

        if parent is not None:
            if parent.cancelled:
                self._event.set()
            else:
                parent._children.add(self)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def token(self) -> CancellationToken:
        return CancellationToken(self)

    def create_child(self) -> "CancellationSource":
        return CancellationSource(parent=self)

    def cancel(self) -> None:
        if self._event.is_set():
            return

        self._event.set()
        children, self._children = self._children, set()
        for child in children:
            child.cancel()

        # detach so a long-lived parent does not keep finished children alive
        if self._parent is not None:
            self._parent._children.discard(self)

    async def wait(self) -> None:
        await self._event.wait()

    def detach(self) -> None:
        """
        Unlink this source from its parent without cancelling it.

        Used once the owner of a child source is done with it, so that a
        root source living for the whole controller lifetime does not
        accumulate finished children.
        """
        if self._parent is not None:
            self._parent._children.discard(self)
            self._parent = None
