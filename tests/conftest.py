"""Shared test fixtures for BVPN Console."""

import os
import pytest
from httpx import ASGITransport, AsyncClient


SIGNING_KEY = "test-ledger-key-for-unit-tests"
API_KEY = "test-admin-api-key"


@pytest.fixture
def signing_key():
    return SIGNING_KEY


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["BVPN_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["BVPN_LEDGER_SIGNING_KEY"] = SIGNING_KEY
    os.environ["BVPN_API_KEY"] = API_KEY
    os.environ["BVPN_PRESENCE_MONITOR_ENABLED"] = "false"

    # Clear caches and singletons so new env vars take effect
    from bvpn_console.common.config import get_settings
    get_settings.cache_clear()

    from bvpn_console.deps import reset_singletons
    reset_singletons()

    from bvpn_console.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from bvpn_console.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-Console-Api-Key": API_KEY}
