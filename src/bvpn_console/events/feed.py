"""In-process change feed for store documents.

Services stage a ``ChangeEvent`` on the session that performed the write.
Staged events are published only after that session commits, so
subscribers never observe a change that was rolled back. Each subscriber
gets its own queue; events for a single document arrive in commit order.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Union

from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import AsyncSession

from bvpn_console.common.logging import get_logger
from bvpn_console.common.models import utcnow

logger = get_logger("events")

_STAGED_KEY = "bvpn_staged_changes"
_HOOKED_KEY = "bvpn_feed_hooked"

ChangeFilter = Union[Callable[["ChangeEvent"], bool], dict[str, Any], None]


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    document_id: str
    operation: str = "update"  # create | update | delete
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


_CLOSED = object()


class Subscription:
    """A cancellable async stream of change events."""

    def __init__(
        self,
        feed: "ChangeFeed",
        collection: str,
        filter: ChangeFilter = None,
        document_id: Optional[str] = None,
    ):
        self._feed = feed
        self.collection = collection
        self.document_id = document_id
        self._filter = filter
        self._queue: asyncio.Queue = asyncio.Queue()
        self.cancelled = False

    def matches(self, event: ChangeEvent) -> bool:
        if event.collection != self.collection:
            return False
        if self.document_id is not None and event.document_id != self.document_id:
            return False
        if self._filter is None:
            return True
        if callable(self._filter):
            return bool(self._filter(event))
        return all(event.data.get(k) == v for k, v in self._filter.items())

    def _deliver(self, event: ChangeEvent) -> None:
        if not self.cancelled:
            self._queue.put_nowait(event)

    def pending(self) -> int:
        return self._queue.qsize()

    async def get(self, timeout: float | None = None) -> Optional[ChangeEvent]:
        """Wait for the next event. Returns None once cancelled and drained."""
        if self.cancelled and self._queue.empty():
            return None
        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            return None
        return item

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._feed._remove(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        item = await self.get()
        if item is None:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.cancel()


class ChangeFeed:
    """Fan-out of committed store changes to subscribers."""

    def __init__(self):
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        collection: str,
        filter: ChangeFilter = None,
        document_id: Optional[str] = None,
    ) -> Subscription:
        sub = Subscription(self, collection, filter=filter, document_id=document_id)
        self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to every matching subscriber. Returns the fan-out count."""
        delivered = 0
        for sub in list(self._subscriptions):
            if sub.matches(event):
                sub._deliver(event)
                delivered += 1
        logger.debug(
            "change published",
            extra={"collection": event.collection, "document_id": event.document_id,
                   "subscribers": delivered},
        )
        return delivered

    # ── Transactional staging ──

    def stage(self, session: AsyncSession, event: ChangeEvent) -> None:
        """Queue an event to be published when ``session`` commits."""
        session.info.setdefault(_STAGED_KEY, []).append(event)
        if not session.info.get(_HOOKED_KEY):
            sync_session = session.sync_session
            sa_event.listen(sync_session, "after_commit", self._after_commit)
            sa_event.listen(sync_session, "after_rollback", self._after_rollback)
            session.info[_HOOKED_KEY] = True

    def _after_commit(self, sync_session) -> None:
        staged = sync_session.info.pop(_STAGED_KEY, [])
        for ev in staged:
            self.publish(ev)

    @staticmethod
    def _after_rollback(sync_session) -> None:
        sync_session.info.pop(_STAGED_KEY, None)
