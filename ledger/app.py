"""
FastAPI application factory for the ledger service.

This module wires together:
- Logging configuration (file-based under LOG_DIR)
- The store (SQLAlchemy by default) and the services built on it
- CORS, request logging and the LedgerError handler
- Routers under ledger/api/ (transfers, accounts, admin)

Run with: uvicorn ledger.app:create_app --factory --port 8001
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from ledger import __version__
from ledger.api.accounts import router as accounts_router
from ledger.api.admin import router as admin_router
from ledger.api.transfers import router as transfers_router
from ledger.config import Settings, load_settings
from ledger.errors import LedgerError
from ledger.logging_config import get_logger, setup_logging
from ledger.services import BalanceQueryService, RecipientResolver, TransferEngine
from ledger.store.base import LedgerStore
from ledger.store.sql import SqlLedgerStore

logger = get_logger("ledger")


def create_app(settings: Optional[Settings] = None, store: Optional[LedgerStore] = None) -> FastAPI:
    """
    Build the app. A store passed in is owned by the caller and not closed
    on shutdown; otherwise a SqlLedgerStore is created from settings.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level, settings.log_dir)

    owns_store = store is None
    if store is None:
        store = SqlLedgerStore.from_url(settings.database_url, echo=settings.db_echo)

    app = FastAPI(title="Ledger API", version=__version__)
    app.state.settings = settings
    app.state.store = store
    app.state.transfer_engine = TransferEngine(store)
    app.state.balance_service = BalanceQueryService(store, page_size=settings.history_page_size)
    app.state.recipient_resolver = RecipientResolver(
        store, limit=settings.search_result_limit, min_length=settings.search_min_length
    )

    # CORS (open for the web client)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Lightweight request logger. Bodies are not logged; they carry amounts and tax ids.
        """
        logger.info(
            "HTTP %s %s from %s",
            request.method,
            request.url.path,
            request.client.host if request.client else "?",
        )
        response = await call_next(request)
        logger.info("HTTP %s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/api/health")
    async def health():
        """
        Simple health check endpoint.
        """
        return {"status": "healthy"}

    app.include_router(transfers_router, prefix="/api")
    app.include_router(accounts_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    @app.on_event("startup")
    async def on_startup():
        if settings.create_schema:
            await store.init_schema()
        logger.info("Ledger starting up")

    @app.on_event("shutdown")
    async def on_shutdown():
        if owns_store:
            try:
                await store.close()
            except Exception:
                logger.exception("Error closing store on shutdown")
        logger.info("Ledger shutting down")

    return app
