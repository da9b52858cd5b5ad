"""Presence monitor — keep effective statuses current from events and a clock tick."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bvpn_console.common.logging import get_logger
from bvpn_console.common.models import utcnow
from bvpn_console.accounts.models import AccountModel
from bvpn_console.events.feed import ChangeEvent, ChangeFeed, Subscription
from bvpn_console.presence.resolver import (
    STALENESS_WINDOW,
    EffectiveStatus,
    resolve_presence,
)

logger = get_logger("presence")


@dataclass(frozen=True)
class PresenceChange:
    account_id: str
    previous: Optional[EffectiveStatus]
    current: EffectiveStatus
    at: datetime


class PresenceMonitor:
    """Tracks effective status per account without ever writing it back.

    Accounts that stop heartbeating produce no events, so a periodic tick
    re-evaluates everything and ages them out of ``online``.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        window: timedelta = STALENESS_WINDOW,
        tick_seconds: float = 60,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.feed = feed
        self.window = window
        self.tick_seconds = tick_seconds
        self._clock = clock
        self._heartbeats: dict[str, tuple[Optional[str], Optional[datetime]]] = {}
        self._effective: dict[str, EffectiveStatus] = {}
        self._listeners: list[Callable[[PresenceChange], Any]] = []
        self._subscription: Subscription | None = None
        self._tasks: list[asyncio.Task] = []

    # ── Listeners ──

    def add_listener(self, listener: Callable[[PresenceChange], Any]) -> None:
        self._listeners.append(listener)

    def _emit(self, change: PresenceChange) -> None:
        for listener in self._listeners:
            try:
                listener(change)
            except Exception:
                logger.exception("presence listener failed", extra={"account_id": change.account_id})

    # ── State ──

    async def load(self, session: AsyncSession) -> int:
        """Seed heartbeats from the store. Returns the number of accounts loaded."""
        rows = await session.execute(
            select(AccountModel.id, AccountModel.status, AccountModel.last_seen)
        )
        for account_id, status, last_seen in rows.all():
            self._heartbeats[account_id] = (status, last_seen)
        self.evaluate_all()
        return len(self._heartbeats)

    def effective_status(self, account_id: str) -> Optional[EffectiveStatus]:
        return self._effective.get(account_id)

    def snapshot(self) -> dict[str, EffectiveStatus]:
        return dict(self._effective)

    def apply_event(self, event: ChangeEvent, now: datetime | None = None) -> Optional[PresenceChange]:
        if event.collection != "accounts":
            return None
        if event.operation == "delete":
            self._heartbeats.pop(event.document_id, None)
            self._effective.pop(event.document_id, None)
            return None
        self._heartbeats[event.document_id] = (
            event.data.get("status"),
            event.data.get("last_seen"),
        )
        return self._evaluate(event.document_id, now or self._clock())

    def evaluate_all(self, now: datetime | None = None) -> list[PresenceChange]:
        now = now or self._clock()
        changes = []
        for account_id in list(self._heartbeats):
            change = self._evaluate(account_id, now)
            if change:
                changes.append(change)
        return changes

    def _evaluate(self, account_id: str, now: datetime) -> Optional[PresenceChange]:
        status, last_seen = self._heartbeats[account_id]
        current = resolve_presence(status, last_seen, now, self.window)
        previous = self._effective.get(account_id)
        if previous == current:
            return None
        self._effective[account_id] = current
        change = PresenceChange(account_id, previous, current, now)
        self._emit(change)
        return change

    # ── Lifecycle ──

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        if self._tasks:
            return
        self._subscription = self.feed.subscribe("accounts")
        self._tasks = [
            asyncio.create_task(self._consume(self._subscription)),
            asyncio.create_task(self._tick()),
        ]
        logger.info("presence monitor started", extra={"tick_seconds": self.tick_seconds})

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            self.apply_event(event)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            self.evaluate_all()
