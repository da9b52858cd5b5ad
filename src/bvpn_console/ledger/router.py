"""Ledger API router."""

from fastapi import APIRouter, Depends

from bvpn_console.common.security import operator_name, require_api_key
from bvpn_console.ledger.schemas import (
    AdRewardRequest,
    AdRewardResponse,
    BalanceAdjustRequest,
    BalanceAdjustResponse,
    LedgerVerification,
    VpnTimeAdjustRequest,
    VpnTimeAdjustResponse,
)

router = APIRouter()


def _get_service():
    from bvpn_console.deps import get_ledger_service
    return get_ledger_service()


def _get_db():
    from bvpn_console.deps import get_db
    return get_db()


@router.post("/accounts/{account_id}/balance", response_model=BalanceAdjustResponse)
async def adjust_balance(
    account_id: str,
    body: BalanceAdjustRequest,
    actor: str = Depends(operator_name),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        new_balance = await svc.adjust_balance(
            session, account_id, body.amount, body.reason,
            idempotency_key=body.idempotency_key,
            actor=actor,
        )
    return BalanceAdjustResponse(device_id=account_id, new_balance=new_balance)


@router.post("/accounts/{account_id}/vpn-time", response_model=VpnTimeAdjustResponse)
async def adjust_vpn_time(
    account_id: str,
    body: VpnTimeAdjustRequest,
    actor: str = Depends(operator_name),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        new_seconds = await svc.adjust_vpn_time(
            session, account_id, body.mode, body.minutes, body.reason,
            idempotency_key=body.idempotency_key,
            actor=actor,
        )
    return VpnTimeAdjustResponse(device_id=account_id, new_vpn_seconds=new_seconds)


@router.get("/accounts/{account_id}/ledger/verify", response_model=LedgerVerification)
async def verify_ledger(account_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return LedgerVerification(**await svc.verify_ledger(session, account_id))


@router.post("/devices/ad-reward", response_model=AdRewardResponse)
async def ad_reward(body: AdRewardRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        new_balance = await svc.credit_ad_reward(session, body.device_id, body.ad_type)
    points = svc.settings.ad_reward_points
    return AdRewardResponse(
        new_balance=new_balance,
        points_earned=points,
        message=f"+{points} Points Earned!",
    )
