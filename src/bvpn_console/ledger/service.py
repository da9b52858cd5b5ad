"""Ledger service — balance and VPN-time mutations with their audit entries.

Every mutation is a single SQL-side UPDATE on the account row followed by an
activity log append in the same transaction. Balances are never computed
from a cached read, so concurrent adjustments on one account compose.
"""

from typing import Any

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from bvpn_console.common.config import ConsoleSettings
from bvpn_console.common.exceptions import (
    AccountBannedError,
    AccountNotFoundError,
    InsufficientBalanceError,
    InvalidReasonError,
    ValidationError,
)
from bvpn_console.common.logging import get_logger
from bvpn_console.common.models import utcnow
from bvpn_console.accounts.models import AccountModel
from bvpn_console.activity.service import ActivityLogService
from bvpn_console.events.feed import ChangeEvent

logger = get_logger("ledger")

VPN_MODES: frozenset[str] = frozenset({"add", "deduct", "set"})


def _require_reason(reason: str | None) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise InvalidReasonError()
    return reason


def _require_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    return value


def format_duration(seconds: int) -> str:
    hours, rem = divmod(seconds, 3600)
    return f"{hours}h {rem // 60}m"


class LedgerService:
    """Point balance and VPN quota mutations."""

    def __init__(self, settings: ConsoleSettings, activity: ActivityLogService, feed=None):
        self.settings = settings
        self.activity = activity
        self.feed = feed

    # ── Operator adjustments ──

    async def adjust_balance(
        self,
        session: AsyncSession,
        account_id: str,
        amount: int,
        reason: str,
        idempotency_key: str | None = None,
        actor: str = "admin",
    ) -> int:
        """Apply a signed point delta. Returns the new balance."""
        reason = _require_reason(reason)
        amount = _require_int(amount, "amount")
        if amount == 0:
            raise ValidationError("amount must be non-zero")

        replayed = await self._replay(session, account_id, idempotency_key)
        if replayed is not None:
            return replayed.balance

        account = await self.post_entry(
            session, account_id, amount, "admin_adjustment", reason,
            idempotency_key=idempotency_key,
            actor=actor,
        )
        return account.balance

    async def adjust_vpn_time(
        self,
        session: AsyncSession,
        account_id: str,
        mode: str,
        minutes: int,
        reason: str,
        idempotency_key: str | None = None,
        actor: str = "admin",
    ) -> int:
        """Add, deduct (floored at zero) or set the VPN quota. Returns new seconds."""
        reason = _require_reason(reason)
        if mode not in VPN_MODES:
            raise ValidationError(f"mode must be one of {sorted(VPN_MODES)}")
        minutes = _require_int(minutes, "minutes")
        if minutes < 0:
            raise ValidationError("minutes must be non-negative")

        replayed = await self._replay(session, account_id, idempotency_key)
        if replayed is not None:
            return replayed.vpn_remaining_seconds

        seconds = minutes * 60
        quota = AccountModel.vpn_remaining_seconds
        if mode == "add":
            new_value = quota + seconds
        elif mode == "deduct":
            new_value = case((quota > seconds, quota - seconds), else_=0)
        else:
            new_value = seconds

        result = await session.execute(
            update(AccountModel)
            .where(AccountModel.id == account_id)
            .values(vpn_remaining_seconds=new_value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AccountNotFoundError(f"Account '{account_id}' not found")

        await self.activity.append(
            session, account_id, "admin_adjustment",
            f"VPN time {mode} {format_duration(seconds)} - {reason}",
            0,
            idempotency_key=idempotency_key,
        )
        account = await self._reload(session, account_id)
        logger.info(
            "vpn time adjusted",
            extra={"device_id": account_id, "mode": mode, "seconds": seconds,
                   "actor": actor,
                   "vpn_remaining_seconds": account.vpn_remaining_seconds},
        )
        return account.vpn_remaining_seconds

    # ── Collaborator credits ──

    async def credit_ad_reward(
        self, session: AsyncSession, account_id: str, ad_type: str | None = None,
    ) -> int:
        """Credit the per-ad reward to a device. Returns the new balance."""
        account = await session.get(AccountModel, account_id)
        if account is None:
            raise AccountNotFoundError(f"Account '{account_id}' not found")
        if account.status == "banned":
            raise AccountBannedError()
        # Flushed first so the staged account snapshot carries it
        account.last_seen = utcnow()
        await session.flush()
        account = await self.post_entry(
            session, account_id, self.settings.ad_reward_points, "ad_reward",
            f"Watched {ad_type or 'Reward'} Ad",
            actor="device",
        )
        return account.balance

    # ── Core posting ──

    async def post_entry(
        self,
        session: AsyncSession,
        account_id: str,
        amount: int,
        type: str,
        description: str,
        idempotency_key: str | None = None,
        actor: str = "system",
    ) -> AccountModel:
        """Atomically move the balance by ``amount`` and record it.

        Debits are guarded in SQL so the balance never goes negative.
        Returns the refreshed account.
        """
        stmt = update(AccountModel).where(AccountModel.id == account_id)
        if amount < 0:
            stmt = stmt.where(AccountModel.balance + amount >= 0)
        result = await session.execute(
            stmt.values(balance=AccountModel.balance + amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            if await session.get(AccountModel, account_id) is None:
                raise AccountNotFoundError(f"Account '{account_id}' not found")
            logger.warning(
                "debit refused",
                extra={"device_id": account_id, "amount": amount, "type": type},
            )
            raise InsufficientBalanceError()

        await self.activity.append(
            session, account_id, type, description, amount,
            idempotency_key=idempotency_key,
        )
        account = await self._reload(session, account_id)
        logger.info(
            "balance adjusted",
            extra={"device_id": account_id, "amount": amount, "type": type,
                   "balance": account.balance, "actor": actor},
        )
        return account

    # ── Verification ──

    async def verify_ledger(self, session: AsyncSession, account_id: str) -> dict[str, Any]:
        """Check the activity chain and that the balance equals the sum of deltas."""
        account = await session.get(AccountModel, account_id)
        if account is None:
            raise AccountNotFoundError(f"Account '{account_id}' not found")
        chain = await self.activity.verify_chain(session, account_id)
        ledger_total = await self.activity.total_amount(session, account_id)
        return {
            "device_id": account_id,
            "chain_valid": chain["valid"],
            "entries_checked": chain["entries_checked"],
            "break_at": chain["break_at"],
            "balance": account.balance,
            "ledger_total": ledger_total,
            "balanced": account.balance == ledger_total,
            "valid": chain["valid"] and account.balance == ledger_total,
        }

    # ── Internal helpers ──

    async def _replay(
        self, session: AsyncSession, account_id: str, idempotency_key: str | None,
    ) -> AccountModel | None:
        """Return the account when ``idempotency_key`` was already applied to it."""
        if not idempotency_key:
            return None
        entry = await self.activity.find_by_idempotency_key(session, idempotency_key)
        if entry is None:
            return None
        if entry.device_id != account_id:
            raise ValidationError("Idempotency key already used for another account")
        logger.info(
            "idempotent replay",
            extra={"device_id": account_id, "idempotency_key": idempotency_key},
        )
        return await self._reload(session, account_id, stage=False)

    async def _reload(
        self, session: AsyncSession, account_id: str, stage: bool = True,
    ) -> AccountModel:
        account = await session.get(AccountModel, account_id)
        if account is None:
            raise AccountNotFoundError(f"Account '{account_id}' not found")
        await session.refresh(account)
        if stage and self.feed:
            self.feed.stage(session, ChangeEvent(
                collection="accounts",
                document_id=account.id,
                data=account.to_document(),
            ))
        return account
