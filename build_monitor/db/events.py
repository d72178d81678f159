"""Change notification bus decoupling store writes from the views that watch them."""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import Any

from build_monitor.db.models import ALL_COLLECTIONS

logger = logging.getLogger(__name__)


class Subscription:
    """Re-runs a query and hands the fresh result to ``on_change`` after relevant writes.

    Deliveries are coalesced: any number of writes landing before the next
    delivery runs produce a single re-query.
    """

    def __init__(
        self,
        bus: "ChangeBus",
        collections: frozenset[str],
        query_fn: Callable[[], Awaitable[Any]],
        on_change: Callable[[Any], Any],
    ):
        self._bus = bus
        self.collections = collections
        self._query_fn = query_fn
        self._on_change = on_change
        self._pending: asyncio.Task | None = None
        self._dirty = False
        self.active = True

    def schedule(self) -> None:
        self._dirty = True
        if not self.active or (self._pending is not None and not self._pending.done()):
            return
        self._pending = asyncio.get_running_loop().create_task(self._deliver())
        self._bus._track(self._pending)

    async def _deliver(self) -> None:
        # Writes landing while a delivery runs mark us dirty again and cause one more pass
        while self._dirty and self.active:
            # Let the writer that triggered us finish its burst of writes first
            await asyncio.sleep(0)
            self._dirty = False
            try:
                result = await self._query_fn()
                outcome = self._on_change(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Subscriber failed while handling a change on %s", sorted(self.collections))

    def unsubscribe(self) -> None:
        self.active = False
        self._bus._subscriptions.discard(self)


class ChangeBus:
    def __init__(self):
        self._subscriptions: set[Subscription] = set()
        self._listeners: set[tuple[frozenset[str], asyncio.Queue]] = set()
        self._tasks: set[asyncio.Task] = set()

    def subscribe(
        self,
        query_fn: Callable[[], Awaitable[Any]],
        on_change: Callable[[Any], Any],
        collections: Iterable[str] = ALL_COLLECTIONS,
    ) -> Subscription:
        """Register ``on_change`` and deliver the current result once."""
        subscription = Subscription(self, frozenset(collections), query_fn, on_change)
        self._subscriptions.add(subscription)
        subscription.schedule()
        return subscription

    def publish(self, collections: Iterable[str]) -> None:
        changed = frozenset(collections)
        if not changed:
            return
        for subscription in list(self._subscriptions):
            if subscription.collections & changed:
                subscription.schedule()
        for watched, queue in list(self._listeners):
            if watched & changed:
                queue.put_nowait(changed & watched)

    async def listen(self, collections: Iterable[str] = ALL_COLLECTIONS) -> AsyncIterator[frozenset[str]]:
        """Yield the set of watched collections touched by each write."""
        entry = (frozenset(collections), asyncio.Queue())
        self._listeners.add(entry)
        try:
            while True:
                yield await entry[1].get()
        finally:
            self._listeners.discard(entry)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def drain(self) -> None:
        """Wait until every scheduled delivery has run."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
