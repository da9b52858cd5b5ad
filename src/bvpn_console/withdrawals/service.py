"""Withdrawal service — device submission and the one-shot operator decision.

Points leave the balance when a request is submitted (debit now). Approving
a request only confirms the payout happened; rejecting it only records
why. Neither operator decision touches the ledger. A device cancelling its
own pending request is the one path that refunds.
"""

from typing import Any, Mapping

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bvpn_console.common.config import ConsoleSettings
from bvpn_console.common.exceptions import (
    AccountBannedError,
    AccountNotFoundError,
    InvalidTransitionError,
    MissingReasonError,
    MissingReceiptError,
    NotWithdrawalOwnerError,
    StoreUnavailableError,
    ValidationError,
    WithdrawalNotFoundError,
)
from bvpn_console.common.logging import get_logger
from bvpn_console.common.models import utcnow
from bvpn_console.accounts.models import AccountModel
from bvpn_console.events.feed import ChangeEvent
from bvpn_console.ledger.service import LedgerService
from bvpn_console.withdrawals.models import (
    APPROVED,
    PENDING,
    REJECTED,
    WITHDRAWAL_STATUSES,
    WithdrawalModel,
)
from bvpn_console.withdrawals.txid import generate_transaction_id

logger = get_logger("withdrawals")

ACTIONS: dict[str, str] = {
    "approve": APPROVED,
    "approved": APPROVED,
    "reject": REJECTED,
    "rejected": REJECTED,
}
CURRENCIES: frozenset[str] = frozenset({"MMK", "USD"})
CANCEL_REASON = "Cancelled by user"
_TXID_ATTEMPTS = 3


def _text(value: Any) -> str:
    """Stripped string, or empty for anything that is not a string."""
    return value.strip() if isinstance(value, str) else ""


async def pending_summary(session: AsyncSession) -> dict[str, int]:
    """Count and point total of requests still awaiting a decision."""
    result = await session.execute(
        select(func.count(), func.coalesce(func.sum(WithdrawalModel.points), 0))
        .where(WithdrawalModel.status == PENDING)
    )
    count, points = result.one()
    return {"pending_withdrawals": int(count), "total_pending_points": int(points)}


class WithdrawalService:
    """Cash-out request lifecycle: pending → approved | rejected."""

    def __init__(self, settings: ConsoleSettings, ledger: LedgerService, feed=None):
        self.settings = settings
        self.ledger = ledger
        self.feed = feed

    def _stage(self, session: AsyncSession, withdrawal: WithdrawalModel, operation: str = "update") -> None:
        if self.feed:
            self.feed.stage(session, ChangeEvent(
                collection="withdrawals",
                document_id=withdrawal.id,
                operation=operation,
                data=withdrawal.to_document(),
            ))

    # ── Read ──

    async def get(self, session: AsyncSession, withdrawal_id: str) -> WithdrawalModel | None:
        return await session.get(WithdrawalModel, withdrawal_id)

    async def require(self, session: AsyncSession, withdrawal_id: str) -> WithdrawalModel:
        withdrawal = await self.get(session, withdrawal_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError(f"Withdrawal '{withdrawal_id}' not found")
        return withdrawal

    async def list_withdrawals(
        self,
        session: AsyncSession,
        status: str | None = None,
        device_id: str | None = None,
        limit: int = 100,
    ) -> list[WithdrawalModel]:
        """Newest first."""
        query = select(WithdrawalModel)
        if status:
            if status not in WITHDRAWAL_STATUSES:
                raise ValidationError(f"Unknown withdrawal status '{status}'")
            query = query.where(WithdrawalModel.status == status)
        if device_id:
            query = query.where(WithdrawalModel.device_id == device_id)
        query = query.order_by(WithdrawalModel.created_at.desc()).limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def withdrawal_stats(self, session: AsyncSession) -> dict[str, int]:
        return await pending_summary(session)

    # ── Device-side submission ──

    async def submit_withdrawal(
        self,
        session: AsyncSession,
        device_id: str,
        amount: int,
        method: str,
        account_number: str,
        account_name: str,
        currency: str = "MMK",
    ) -> WithdrawalModel:
        """Debit the points and open a pending request in one transaction."""
        if not all([device_id, amount, method, account_number, account_name]):
            raise ValidationError("All fields are required")
        if currency not in CURRENCIES:
            raise ValidationError(f"Unsupported currency '{currency}'")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("amount must be a positive integer")
        if method not in self.settings.payment_methods:
            raise ValidationError(f"Unsupported payment method '{method}'")

        minimum = (
            self.settings.min_withdraw_usd if currency == "USD"
            else self.settings.min_withdraw_mmk
        )
        if amount < minimum:
            raise ValidationError(f"Minimum withdrawal is {minimum} {currency}")

        account = await session.get(AccountModel, device_id)
        if account is None:
            raise AccountNotFoundError(f"Account '{device_id}' not found")
        if account.status == "banned":
            raise AccountBannedError()

        points = amount * self.settings.points_per_usd if currency == "USD" else amount

        await self.ledger.post_entry(
            session, device_id, -points, "withdrawal", f"Withdrawal Request ({method})",
            actor="device",
        )
        withdrawal = WithdrawalModel(
            device_id=device_id,
            points=points,
            amount=amount,
            currency=currency,
            method=method,
            account_number=account_number,
            account_name=account_name,
            status=PENDING,
        )
        session.add(withdrawal)
        await session.flush()
        self._stage(session, withdrawal, "create")
        logger.info(
            "withdrawal submitted",
            extra={"withdrawal_id": withdrawal.id, "device_id": device_id, "points": points},
        )
        return withdrawal

    # ── Operator decision ──

    async def process_withdrawal(
        self,
        session: AsyncSession,
        withdrawal_id: str,
        action: str,
        payload: Mapping[str, Any] | None = None,
        actor: str = "admin",
    ) -> WithdrawalModel:
        """Approve or reject a pending request.

        Approval requires ``receipt_reference``; rejection requires a
        non-blank ``rejection_reason``. A request that is no longer pending
        is never overwritten.
        """
        target = ACTIONS.get(action)
        if target is None:
            raise ValidationError(f"Invalid action '{action}'")
        payload = payload or {}

        withdrawal = await self.require(session, withdrawal_id)
        if withdrawal.status != PENDING:
            logger.warning(
                "withdrawal already processed",
                extra={"withdrawal_id": withdrawal_id, "status": withdrawal.status},
            )
            raise InvalidTransitionError(
                f"Withdrawal '{withdrawal_id}' is already {withdrawal.status}"
            )

        values: dict[str, Any] = {
            "status": target,
            "processed_at": utcnow(),
            "processed_by": actor,
        }
        if target == APPROVED:
            receipt = _text(payload.get("receipt_reference"))
            if not receipt:
                raise MissingReceiptError()
            values["receipt_reference"] = receipt
            values["transaction_id"] = await self._new_transaction_id(session)
        else:
            reason = _text(payload.get("rejection_reason"))
            if not reason:
                raise MissingReasonError()
            values["rejection_reason"] = reason

        # Compare-and-set on status so a concurrent decision cannot be overwritten
        result = await session.execute(
            update(WithdrawalModel)
            .where(WithdrawalModel.id == withdrawal_id, WithdrawalModel.status == PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(f"Withdrawal '{withdrawal_id}' is already processed")

        await session.refresh(withdrawal)
        self._stage(session, withdrawal)
        logger.info(
            "withdrawal processed",
            extra={"withdrawal_id": withdrawal_id, "status": target, "actor": actor,
                   "transaction_id": withdrawal.transaction_id},
        )
        return withdrawal

    # ── Device-side cancellation ──

    async def cancel_withdrawal(
        self, session: AsyncSession, device_id: str, withdrawal_id: str,
    ) -> WithdrawalModel:
        """Withdraw a still-pending request and refund its points.

        The request ends ``rejected`` with the cancellation reason, and the
        refund is logged in the same transaction.
        """
        if not device_id or not withdrawal_id:
            raise ValidationError("device_id and withdrawal_id are required")

        withdrawal = await self.require(session, withdrawal_id)
        if withdrawal.device_id != device_id:
            raise NotWithdrawalOwnerError()
        if withdrawal.status != PENDING:
            raise InvalidTransitionError("Only pending withdrawals can be cancelled")

        result = await session.execute(
            update(WithdrawalModel)
            .where(WithdrawalModel.id == withdrawal_id, WithdrawalModel.status == PENDING)
            .values(
                status=REJECTED,
                rejection_reason=CANCEL_REASON,
                processed_at=utcnow(),
                processed_by=device_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError("Only pending withdrawals can be cancelled")

        await self.ledger.post_entry(
            session, device_id, withdrawal.points, "admin_adjustment",
            "Withdrawal Cancelled - Refund",
            actor="device",
        )
        await session.refresh(withdrawal)
        self._stage(session, withdrawal)
        logger.info(
            "withdrawal cancelled",
            extra={"withdrawal_id": withdrawal_id, "device_id": device_id,
                   "points": withdrawal.points},
        )
        return withdrawal

    async def _new_transaction_id(self, session: AsyncSession) -> str:
        prefix = self.settings.transaction_id_prefix
        for _ in range(_TXID_ATTEMPTS):
            candidate = generate_transaction_id(prefix)
            taken = await session.execute(
                select(WithdrawalModel.id).where(WithdrawalModel.transaction_id == candidate)
            )
            if taken.scalar_one_or_none() is None:
                return candidate
        raise StoreUnavailableError("Could not allocate a unique transaction id")
