"""API key authentication dependencies."""

import hmac

from fastapi import Header, HTTPException


async def require_api_key(
    x_console_api_key: str = Header(..., alias="X-Console-Api-Key"),
) -> str:
    """FastAPI dependency that validates the operator API key from header."""
    from bvpn_console.common.config import get_settings

    settings = get_settings()
    if not hmac.compare_digest(x_console_api_key, settings.api_key):
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_console_api_key


async def operator_name(
    x_operator: str = Header("admin", alias="X-Operator"),
) -> str:
    """Operator identity recorded on processed withdrawals."""
    return x_operator.strip() or "admin"
