"""FastAPI application factory for BVPN Console."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bvpn_console.common.config import get_settings
from bvpn_console.common.exceptions import ConsoleError
from bvpn_console.common.logging import get_logger, setup_logging
from bvpn_console.common.schemas import ErrorResponse, HealthResponse

logger = get_logger("app")

ERROR_STATUS = {
    "not_found": 404,
    "validation": 422,
    "invalid_transition": 409,
    "store_unavailable": 503,
}


def _log_presence_change(change) -> None:
    logger.info(
        "presence changed",
        extra={
            "account_id": change.account_id,
            "previous": change.previous.value if change.previous else None,
            "current": change.current.value,
        },
    )


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from bvpn_console.deps import get_db, get_presence_monitor
        db = get_db()
        await db.init()
        await db.create_all()
        monitor = get_presence_monitor()
        if settings.presence_monitor_enabled:
            async with db.get_session() as session:
                await monitor.load(session)
            monitor.add_listener(_log_presence_change)
            await monitor.start()
        yield
        # Shutdown
        await monitor.stop()
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ConsoleError)
    async def console_error_handler(request: Request, exc: ConsoleError):
        status_code = ERROR_STATUS.get(exc.kind, 400)
        if status_code >= 500:
            logger.error("request failed", extra={"path": request.url.path, "code": exc.code})
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=exc.message, code=exc.code, detail=exc.kind).model_dump(),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from bvpn_console.accounts.router import router as accounts_router
    from bvpn_console.activity.router import router as activity_router
    from bvpn_console.ledger.router import router as ledger_router
    from bvpn_console.withdrawals.router import router as withdrawals_router

    prefix = settings.api_prefix
    app.include_router(accounts_router, prefix=prefix, tags=["accounts"])
    app.include_router(ledger_router, prefix=prefix, tags=["ledger"])
    app.include_router(activity_router, prefix=prefix, tags=["activity"])
    app.include_router(withdrawals_router, prefix=prefix, tags=["withdrawals"])

    return app
