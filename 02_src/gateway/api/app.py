"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..app import Application
from ..config import GatewayConfig
from ..errors import AccessGuardError, AuthenticationError, ValidationError
from ..logging_config import get_logger
from .routes import internal, webhooks

logger = get_logger(__name__)


# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application(GatewayConfig.from_env())
    return _app


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="Webhook Gateway API",
        description="Verifies, deduplicates and relays signed webhooks",
        version="0.1.0",
        lifespan=lifespan,
    )

    @fastapi_app.exception_handler(AuthenticationError)
    async def authentication_error(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=401,
            content={"error": {"message": str(exc), "reason": exc.reason}},
        )

    @fastapi_app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": {"message": str(exc)}})

    @fastapi_app.exception_handler(AccessGuardError)
    async def access_guard_error(request: Request, exc: AccessGuardError):
        return JSONResponse(status_code=403, content={"error": {"message": "Forbidden"}})

    @fastapi_app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=500, content={"error": {"message": "Internal server error"}}
        )

    # Include routers
    fastapi_app.include_router(webhooks.create_webhook_router(application))
    fastapi_app.include_router(internal.create_internal_router(application))

    return fastapi_app
