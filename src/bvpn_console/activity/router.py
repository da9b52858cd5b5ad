"""Activity log API router."""

from fastapi import APIRouter, Depends, Query

from bvpn_console.common.schemas import resolve_limit
from bvpn_console.common.security import require_api_key
from bvpn_console.activity.schemas import ActivityEntryResponse

router = APIRouter()


def _get_service():
    from bvpn_console.deps import get_activity_service
    return get_activity_service()


def _get_accounts():
    from bvpn_console.deps import get_account_service
    return get_account_service()


def _get_db():
    from bvpn_console.deps import get_db
    return get_db()


@router.get("/accounts/{account_id}/activity", response_model=list[ActivityEntryResponse])
async def get_activity_log(
    account_id: str,
    type: str | None = Query(None),
    limit: int | None = Query(None, ge=1),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await _get_accounts().require(session, account_id)
        entries = await svc.get_entries(session, account_id, type=type, limit=resolve_limit(limit))
        return [ActivityEntryResponse.model_validate(e) for e in entries]
