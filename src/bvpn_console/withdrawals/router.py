"""Withdrawal API router."""

from fastapi import APIRouter, Depends, Query

from bvpn_console.common.schemas import resolve_limit
from bvpn_console.common.security import operator_name, require_api_key
from bvpn_console.withdrawals.schemas import (
    CancelWithdrawalRequest,
    CancelWithdrawalResponse,
    ProcessWithdrawalRequest,
    SubmitWithdrawalRequest,
    SubmitWithdrawalResponse,
    WithdrawalResponse,
)

router = APIRouter()


def _get_service():
    from bvpn_console.deps import get_withdrawal_service
    return get_withdrawal_service()


def _get_accounts():
    from bvpn_console.deps import get_account_service
    return get_account_service()


def _get_db():
    from bvpn_console.deps import get_db
    return get_db()


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
async def list_withdrawals(
    status: str | None = Query(None),
    device_id: str | None = Query(None),
    limit: int | None = Query(None, ge=1),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        withdrawals = await svc.list_withdrawals(
            session, status=status, device_id=device_id, limit=resolve_limit(limit),
        )
        return [WithdrawalResponse.model_validate(w) for w in withdrawals]


@router.get("/withdrawals/{withdrawal_id}", response_model=WithdrawalResponse)
async def get_withdrawal(withdrawal_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        withdrawal = await svc.require(session, withdrawal_id)
        return WithdrawalResponse.model_validate(withdrawal)


@router.post("/withdrawals/{withdrawal_id}/process", response_model=WithdrawalResponse)
async def process_withdrawal(
    withdrawal_id: str,
    body: ProcessWithdrawalRequest,
    actor: str = Depends(operator_name),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        withdrawal = await svc.process_withdrawal(
            session, withdrawal_id, body.action,
            body.model_dump(exclude={"action"}),
            actor=actor,
        )
    return WithdrawalResponse.model_validate(withdrawal)


@router.post("/devices/withdrawals", response_model=SubmitWithdrawalResponse, status_code=201)
async def submit_withdrawal(body: SubmitWithdrawalRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        withdrawal = await svc.submit_withdrawal(
            session,
            body.device_id,
            body.amount,
            body.method,
            body.account_number,
            body.account_name,
            currency=body.currency,
        )
        account = await _get_accounts().require(session, body.device_id)
    return SubmitWithdrawalResponse(
        withdrawal_id=withdrawal.id,
        points_deducted=withdrawal.points,
        new_balance=account.balance,
    )



@router.post("/devices/withdrawals/{withdrawal_id}/cancel", response_model=CancelWithdrawalResponse)
async def cancel_withdrawal(withdrawal_id: str, body: CancelWithdrawalRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        withdrawal = await svc.cancel_withdrawal(session, body.device_id, withdrawal_id)
        account = await _get_accounts().require(session, body.device_id)
    return CancelWithdrawalResponse(
        withdrawal_id=withdrawal.id,
        points_refunded=withdrawal.points,
        new_balance=account.balance,
    )
