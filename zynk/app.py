"""FastAPI application factory — entry point for the API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zynk.config import get_settings
from zynk.errors import STATUS_CODES, InternalError, LockedError, ServiceError
from zynk.routers import chef, deliveries, notifications, payments, subscriptions, webhooks
from zynk.utils import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # Auto-create tables for SQLite (dev mode); PostgreSQL uses Alembic
    from zynk.db.session import engine
    from zynk.models import Base

    settings = get_settings()
    if settings.is_sqlite:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    # Initialize third-party API keys once at startup
    if settings.stripe_secret_key:
        from zynk.services.payment_service import init_stripe
        init_stripe()
    if settings.resend_api_key:
        import resend
        resend.api_key = settings.resend_api_key

    yield

    await engine.dispose()


def error_body(exc: ServiceError) -> dict:
    """Uniform failure shape: {success: false, message, ...extra}."""
    body = {"success": False, "message": exc.message, **exc.extra}
    if isinstance(exc, LockedError):
        body["nextAvailableAt"] = exc.next_available_at
    return jsonable_encoder(body)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(verbose=settings.debug)

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )
    app.state.settings = settings

    # --- Error handlers ---
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        status_code = STATUS_CODES.get(exc.kind, 500)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({exc.kind}): {exc.message}")
        return JSONResponse(error_body(exc), status_code=status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {
                "success": False,
                "message": "Invalid request",
                "details": jsonable_encoder(exc.errors(), exclude={"ctx", "input", "url"}),
            },
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail
        if exc.status_code == 404 and message == "Not Found":
            message = f"Route not found: {request.method} {request.url.path}"
        return JSONResponse({"success": False, "message": message}, status_code=exc.status_code)

    @app.exception_handler(500)
    async def server_error_handler(request: Request, exc):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(error_body(InternalError()), status_code=500)

    # --- Routers ---
    app.include_router(subscriptions.router)
    app.include_router(payments.router)
    app.include_router(deliveries.router)
    app.include_router(chef.router)
    app.include_router(notifications.router)
    app.include_router(webhooks.router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"success": True, "status": "ok"}

    return app


app = create_app()
