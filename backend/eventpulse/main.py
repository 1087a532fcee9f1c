"""FastAPI application entry point."""
import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eventpulse.config import settings
from eventpulse.container import Services, build_services
from eventpulse.database import Base, SessionLocal, engine
from eventpulse.exceptions import (
    DirectoryUnavailable,
    DuplicateRecord,
    MalformedRecord,
    PermissionDenied,
    RecordNotFound,
    StoreUnavailable,
    VerificationIncomplete,
)
from eventpulse.routers import admin, events, notifications, posts, users
from eventpulse.services.document_store import DocumentStore, SqlDocumentStore

logger = logging.getLogger(__name__)

# Domain error -> HTTP status
ERROR_STATUS = {
    RecordNotFound: 404,
    PermissionDenied: 403,
    DuplicateRecord: 409,
    MalformedRecord: 422,
    DirectoryUnavailable: 503,
    VerificationIncomplete: 503,
    StoreUnavailable: 503,
}


def install_error_handlers(app: FastAPI) -> None:
    for exc_class, status_code in ERROR_STATUS.items():
        app.add_exception_handler(exc_class, _handler_for(status_code))


def _handler_for(status_code: int):
    async def handler(request: Request, exc: Exception):
        if status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app(
    store: Optional[DocumentStore] = None,
    services: Optional[Services] = None,
    start_worker: Optional[bool] = None,
) -> FastAPI:
    """Build the API around a store handle.

    Tests pass their own store (or fully wired services) and usually disable
    the background outbox worker so tasks can be driven with ``run_once``.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Only the default store is backed by the module-level engine
    create_tables = store is None and services is None and settings.DATABASE_URL.startswith("sqlite")
    if services is None:
        services = build_services(store or SqlDocumentStore(SessionLocal))
    if start_worker is None:
        start_worker = settings.OUTBOX_WORKER_ENABLED

    app = FastAPI(
        title=settings.APP_NAME,
        description="Event announcements fanned out to every user, with delivery verification and repair tools",
        version="0.1.0",
    )
    app.state.services = services

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    # Register routers
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(events.router, prefix="/api/events", tags=["Events"])
    app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
    app.include_router(posts.router, prefix="/api/posts", tags=["Posts"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

    @app.on_event("startup")
    async def on_startup():
        """Create database tables (SQLite dev mode) and start the outbox worker."""
        if create_tables:
            Base.metadata.create_all(bind=engine)
        app.state.worker_stop = asyncio.Event()
        app.state.worker_task = None
        if start_worker:
            app.state.worker_task = asyncio.create_task(
                services.worker.run_forever(app.state.worker_stop)
            )
            logger.info("Outbox worker started")

    @app.on_event("shutdown")
    async def on_shutdown():
        app.state.worker_stop.set()
        if app.state.worker_task is not None:
            await app.state.worker_task

    @app.get("/api/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
