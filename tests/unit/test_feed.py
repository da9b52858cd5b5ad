"""Tests for the in-process change feed."""

import asyncio

import pytest

from bvpn_console.common.config import ConsoleSettings
from bvpn_console.common.database import DatabaseManager
from bvpn_console.accounts.models import AccountModel
from bvpn_console.events.feed import ChangeEvent, ChangeFeed


def make_settings(**overrides) -> ConsoleSettings:
    defaults = {"db_url": "sqlite+aiosqlite://"}
    defaults.update(overrides)
    return ConsoleSettings(**defaults)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def feed():
    return ChangeFeed()


def _event(doc_id="dev-1", collection="accounts", **data):
    return ChangeEvent(collection=collection, document_id=doc_id, data=data)


class TestSubscribe:
    async def test_publish_reaches_subscriber(self, feed):
        sub = feed.subscribe("accounts")
        assert feed.publish(_event(balance=10)) == 1
        event = await sub.get(timeout=1)
        assert event.document_id == "dev-1"
        assert event.data["balance"] == 10

    async def test_other_collection_ignored(self, feed):
        sub = feed.subscribe("withdrawals")
        assert feed.publish(_event()) == 0
        assert sub.pending() == 0

    async def test_dict_filter(self, feed):
        sub = feed.subscribe("withdrawals", filter={"status": "pending"})
        feed.publish(_event("w-1", "withdrawals", status="approved"))
        feed.publish(_event("w-2", "withdrawals", status="pending"))
        event = await sub.get(timeout=1)
        assert event.document_id == "w-2"
        assert sub.pending() == 0

    async def test_callable_filter(self, feed):
        sub = feed.subscribe("accounts", filter=lambda e: e.data.get("balance", 0) > 100)
        feed.publish(_event(balance=5))
        feed.publish(_event(balance=500))
        event = await sub.get(timeout=1)
        assert event.data["balance"] == 500

    async def test_document_subscription(self, feed):
        sub = feed.subscribe("accounts", document_id="dev-2")
        feed.publish(_event("dev-1"))
        feed.publish(_event("dev-2"))
        event = await sub.get(timeout=1)
        assert event.document_id == "dev-2"

    async def test_per_document_order(self, feed):
        sub = feed.subscribe("accounts")
        for balance in (1, 2, 3):
            feed.publish(_event(balance=balance))
        got = [(await sub.get(timeout=1)).data["balance"] for _ in range(3)]
        assert got == [1, 2, 3]

    async def test_fan_out(self, feed):
        first = feed.subscribe("accounts")
        second = feed.subscribe("accounts")
        assert feed.publish(_event()) == 2
        assert first.pending() == 1
        assert second.pending() == 1


class TestCancel:
    async def test_cancel_removes_subscription(self, feed):
        sub = feed.subscribe("accounts")
        assert feed.subscriber_count == 1
        sub.cancel()
        assert feed.subscriber_count == 0
        assert feed.publish(_event()) == 0

    async def test_iteration_ends_on_cancel(self, feed):
        sub = feed.subscribe("accounts")
        feed.publish(_event(balance=1))
        sub.cancel()
        got = [e async for e in sub]
        assert [e.data["balance"] for e in got] == [1]

    async def test_cancel_wakes_waiter(self, feed):
        sub = feed.subscribe("accounts")
        waiter = asyncio.create_task(sub.get())
        await asyncio.sleep(0)
        sub.cancel()
        assert await asyncio.wait_for(waiter, 1) is None

    async def test_context_manager_cancels(self, feed):
        async with feed.subscribe("accounts") as sub:
            assert not sub.cancelled
        assert sub.cancelled
        assert feed.subscriber_count == 0

    async def test_cancel_twice_is_noop(self, feed):
        sub = feed.subscribe("accounts")
        sub.cancel()
        sub.cancel()
        assert await sub.get() is None


class TestStaging:
    async def test_published_after_commit(self, db, feed):
        sub = feed.subscribe("accounts")
        async with db.get_session() as session:
            session.add(AccountModel(id="dev-1", balance=0, vpn_remaining_seconds=0))
            await session.flush()
            feed.stage(session, _event(balance=0))
            assert sub.pending() == 0
        assert sub.pending() == 1

    async def test_dropped_on_rollback(self, db, feed):
        sub = feed.subscribe("accounts")
        with pytest.raises(RuntimeError):
            async with db.get_session() as session:
                session.add(AccountModel(id="dev-1", balance=0, vpn_remaining_seconds=0))
                await session.flush()
                feed.stage(session, _event(balance=0))
                raise RuntimeError("boom")
        assert sub.pending() == 0

    async def test_multiple_staged_in_order(self, db, feed):
        sub = feed.subscribe("accounts")
        async with db.get_session() as session:
            session.add(AccountModel(id="dev-1", balance=0, vpn_remaining_seconds=0))
            await session.flush()
            feed.stage(session, _event(balance=1))
            feed.stage(session, _event(balance=2))
        got = [(await sub.get(timeout=1)).data["balance"] for _ in range(2)]
        assert got == [1, 2]
