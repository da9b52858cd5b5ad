"""Async database manager for BVPN Console (single-DB)."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bvpn_console.common.config import ConsoleSettings, get_settings
from bvpn_console.common.exceptions import StoreUnavailableError, ValidationError
from bvpn_console.common.logging import get_logger
from bvpn_console.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import bvpn_console.accounts.models  # noqa: F401
import bvpn_console.activity.models  # noqa: F401
import bvpn_console.withdrawals.models  # noqa: F401

logger = get_logger("database")


class DatabaseManager:
    """Manages a single async database engine."""

    def __init__(self, settings: ConsoleSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.db_url
        self.engine = create_async_engine(url, echo=False)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """One unit of work: commit on success, roll back on any failure.

        Driver-level failures and timeouts are reported as
        ``StoreUnavailableError``. The write may still have landed on the
        server side, so callers must not assume it did not. Unique
        constraint violations are reported as a ``WRITE_CONFLICT`` validation
        error instead.
        """
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as exc:
                # A concurrent write claimed the same unique key first
                await self._safe_rollback(session)
                logger.warning("store rejected conflicting write", extra={"error": str(exc.orig)})
                raise ValidationError(
                    "Conflicting write rejected by the store", code="WRITE_CONFLICT"
                ) from exc
            except (DBAPIError, asyncio.TimeoutError) as exc:
                await self._safe_rollback(session)
                logger.error("store write failed", exc_info=exc)
                raise StoreUnavailableError(
                    f"Account store unavailable: {exc.__class__.__name__}"
                ) from exc
            except Exception:
                await self._safe_rollback(session)
                raise

    @staticmethod
    async def _safe_rollback(session: AsyncSession) -> None:
        try:
            await session.rollback()
        except DBAPIError:
            logger.warning("rollback failed after store error")

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
