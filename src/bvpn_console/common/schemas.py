"""Shared Pydantic schemas for BVPN Console."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "bvpn-console"


class ErrorResponse(BaseModel):
    error: str
    code: str
    detail: str = ""


def resolve_limit(limit: int | None) -> int:
    """Apply the configured default page size and cap."""
    from bvpn_console.common.config import get_settings

    settings = get_settings()
    return min(limit or settings.default_page_size, settings.max_page_size)
