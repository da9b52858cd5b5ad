"""Account service — device records, heartbeats, bans and dashboard stats."""

from collections import Counter
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bvpn_console.common.config import ConsoleSettings
from bvpn_console.common.exceptions import AccountNotFoundError, ValidationError
from bvpn_console.common.logging import get_logger
from bvpn_console.common.models import utcnow
from bvpn_console.accounts.models import AccountModel
from bvpn_console.activity.models import ActivityLogModel
from bvpn_console.events.feed import ChangeEvent
from bvpn_console.presence.resolver import resolve_presence
from bvpn_console.withdrawals.models import WithdrawalModel
from bvpn_console.withdrawals.service import pending_summary

logger = get_logger("accounts")

# Statuses a device may report about itself; ``banned`` is admin-only.
DEVICE_STATUSES: frozenset[str] = frozenset({"online", "offline", "vpn_connected"})


class AccountService:
    """Device account operations."""

    def __init__(self, settings: ConsoleSettings, feed=None):
        self.settings = settings
        self.feed = feed

    def _stage(self, session: AsyncSession, account: AccountModel, operation: str = "update") -> None:
        if self.feed:
            self.feed.stage(session, ChangeEvent(
                collection="accounts",
                document_id=account.id,
                operation=operation,
                data=account.to_document(),
            ))

    # ── Lookup ──

    async def get(self, session: AsyncSession, account_id: str) -> AccountModel | None:
        return await session.get(AccountModel, account_id)

    async def require(self, session: AsyncSession, account_id: str) -> AccountModel:
        account = await self.get(session, account_id)
        if account is None:
            raise AccountNotFoundError(f"Account '{account_id}' not found")
        return account

    async def list_accounts(
        self,
        session: AsyncSession,
        status: str | None = None,
        limit: int = 100,
    ) -> list[AccountModel]:
        """Accounts ordered by most recent heartbeat; ``status`` filters the stored label."""
        query = select(AccountModel)
        if status:
            query = query.where(AccountModel.status == status)
        query = query.order_by(AccountModel.last_seen.desc()).limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())

    # ── Device-side ──

    async def check_in(
        self,
        session: AsyncSession,
        device_id: str,
        device_model: str,
        app_version: str = "",
        platform: str = "",
        now: datetime | None = None,
    ) -> tuple[AccountModel, bool]:
        """Create the account on first contact, else refresh its heartbeat.

        Returns (account, created).
        """
        if not device_id or not device_model:
            raise ValidationError("deviceId and deviceModel are required")
        now = now or utcnow()
        account = await self.get(session, device_id)
        if account is None:
            account = AccountModel(
                id=device_id,
                device_model=device_model,
                app_version=app_version,
                platform=platform or "unknown",
                balance=0,
                vpn_remaining_seconds=0,
                status="online",
                data_usage=0,
                last_seen=now,
            )
            session.add(account)
            await session.flush()
            self._stage(session, account, "create")
            logger.info("account created", extra={"device_id": device_id})
            return account, True

        if app_version:
            account.app_version = app_version
        account.last_seen = now
        if account.status != "banned":
            account.status = "online"
        await session.flush()
        self._stage(session, account)
        return account, False

    async def report_status(
        self,
        session: AsyncSession,
        device_id: str,
        status: str,
        ip_address: str | None = None,
        country: str | None = None,
        now: datetime | None = None,
    ) -> AccountModel:
        """Record a heartbeat. A banned account keeps its ``banned`` label."""
        if status not in DEVICE_STATUSES:
            raise ValidationError(f"Invalid device status '{status}'")
        account = await self.require(session, device_id)
        account.last_seen = now or utcnow()
        if account.status != "banned":
            account.status = status
        if ip_address:
            account.ip_address = ip_address
        if country:
            account.country = country
        await session.flush()
        self._stage(session, account)
        return account

    async def record_data_usage(
        self, session: AsyncSession, device_id: str, bytes_used: int,
    ) -> int:
        """Atomically add to the device's byte counter. Returns the new total."""
        if bytes_used < 0:
            raise ValidationError("bytesUsed must be non-negative")
        result = await session.execute(
            update(AccountModel)
            .where(AccountModel.id == device_id)
            .values(data_usage=AccountModel.data_usage + bytes_used)
        )
        if result.rowcount == 0:
            raise AccountNotFoundError(f"Account '{device_id}' not found")
        account = await self.require(session, device_id)
        await session.refresh(account)
        self._stage(session, account)
        return account.data_usage

    # ── Operator ──

    async def ban(
        self, session: AsyncSession, account_id: str, reason: str | None = None,
    ) -> AccountModel:
        account = await self.require(session, account_id)
        if account.status != "banned":
            account.status = "banned"
            account.banned_at = utcnow()
            logger.info("account banned", extra={"device_id": account_id, "reason": reason})
        account.ban_reason = (reason or "").strip() or account.ban_reason or "Banned by admin"
        await session.flush()
        self._stage(session, account)
        return account

    async def unban(self, session: AsyncSession, account_id: str) -> AccountModel:
        account = await self.require(session, account_id)
        if account.status == "banned":
            account.status = "offline"
            account.ban_reason = None
            account.banned_at = None
            await session.flush()
            self._stage(session, account)
            logger.info("account unbanned", extra={"device_id": account_id})
        return account

    async def delete_account(self, session: AsyncSession, account_id: str) -> bool:
        """Explicit operator cleanup of an account with no ledger history.

        Activity entries and withdrawals are the audit record, so an account
        that has either is refused rather than cascaded.
        """
        account = await self.get(session, account_id)
        if account is None:
            return False
        for model in (ActivityLogModel, WithdrawalModel):
            count = await session.execute(
                select(func.count()).select_from(model)
                .where(model.device_id == account_id)
            )
            if count.scalar_one():
                raise ValidationError(
                    "Account has ledger history and cannot be deleted"
                )
        self._stage(session, account, "delete")
        await session.delete(account)
        await session.flush()
        logger.warning("account deleted", extra={"device_id": account_id})
        return True

    # ── Stats ──

    async def dashboard_stats(
        self, session: AsyncSession, now: datetime | None = None,
    ) -> dict[str, Any]:
        now = now or utcnow()
        rows = await session.execute(select(AccountModel.status, AccountModel.last_seen))
        by_status = Counter(
            resolve_presence(status, last_seen, now, self.settings.presence_window).value
            for status, last_seen in rows.all()
        )
        return {
            "total_accounts": sum(by_status.values()),
            "online": by_status.get("online", 0),
            "vpn_connected": by_status.get("vpn_connected", 0),
            "offline": by_status.get("offline", 0),
            "banned": by_status.get("banned", 0),
            **await pending_summary(session),
        }
