"""Account API router — operator views, bans, cleanup, and device check-ins."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from bvpn_console.common.models import utcnow
from bvpn_console.common.schemas import resolve_limit
from bvpn_console.common.security import require_api_key
from bvpn_console.accounts.models import AccountModel
from bvpn_console.accounts.schemas import (
    AccountResponse,
    BanRequest,
    CheckInRequest,
    CheckInResponse,
    DataUsageReport,
    DataUsageResponse,
    StatsResponse,
    StatusReport,
)
from bvpn_console.presence.resolver import resolve_presence

router = APIRouter()


def _get_service():
    from bvpn_console.deps import get_account_service
    return get_account_service()


def _get_db():
    from bvpn_console.deps import get_db
    return get_db()


def _to_response(account: AccountModel, now: datetime) -> AccountResponse:
    window = _get_service().settings.presence_window
    return AccountResponse(
        id=account.id,
        balance=account.balance,
        vpn_remaining_seconds=account.vpn_remaining_seconds,
        status=account.status,
        effective_status=resolve_presence(account.status, account.last_seen, now, window).value,
        last_seen=account.last_seen,
        data_usage=account.data_usage,
        device_model=account.device_model,
        app_version=account.app_version,
        platform=account.platform,
        country=account.country,
        ip_address=account.ip_address,
        ban_reason=account.ban_reason,
        banned_at=account.banned_at,
        created_at=account.created_at,
    )


# ── Operator ──

@router.get("/accounts", response_model=list[AccountResponse])
async def list_accounts(
    status: str | None = Query(None),
    limit: int | None = Query(None, ge=1),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        accounts = await svc.list_accounts(session, status=status, limit=resolve_limit(limit))
        now = utcnow()
        return [_to_response(a, now) for a in accounts]


@router.get("/accounts/{account_id}", response_model=AccountResponse)
async def get_account(account_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.require(session, account_id)
        return _to_response(account, utcnow())


@router.post("/accounts/{account_id}/ban", response_model=AccountResponse)
async def ban_account(account_id: str, body: BanRequest, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.ban(session, account_id, body.reason)
        return _to_response(account, utcnow())


@router.post("/accounts/{account_id}/unban", response_model=AccountResponse)
async def unban_account(account_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.unban(session, account_id)
        return _to_response(account, utcnow())


@router.delete("/accounts/{account_id}", status_code=204)
async def delete_account(account_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        deleted = await svc.delete_account(session, account_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="Account not found")


@router.get("/stats", response_model=StatsResponse)
async def dashboard_stats(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return StatsResponse(**await svc.dashboard_stats(session))


# ── Device-side ──

@router.post("/devices/check-in", response_model=CheckInResponse)
async def check_in(body: CheckInRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        _, created = await svc.check_in(
            session,
            body.device_id,
            body.device_model,
            app_version=body.app_version,
            platform=body.platform,
        )
        return CheckInResponse(
            is_new_device=created,
            message="Device registered successfully" if created else "Device updated successfully",
        )


@router.post("/devices/status", response_model=AccountResponse)
async def report_status(body: StatusReport):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.report_status(
            session, body.device_id, body.status,
            ip_address=body.ip_address, country=body.country,
        )
        return _to_response(account, utcnow())


@router.post("/devices/data-usage", response_model=DataUsageResponse)
async def report_data_usage(body: DataUsageReport):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        total = await svc.record_data_usage(session, body.device_id, body.bytes_used)
        return DataUsageResponse(data_usage=total)
