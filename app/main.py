"""
Mini App Auth Backend - FastAPI Application
Main entry point for the Mini App authentication backend.
Validates Telegram Mini App init data and synchronizes user profiles.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from app.api.deps.user_store import create_user_store
from app.api.middleware.http_middleware import (
    OriginGuardMiddleware,
    RequestLoggingMiddleware,
)
from app.core.config import get_bot_token, is_development, is_production, settings
from app.core.exceptions import (
    ConfigurationError,
    MiniAppAuthException,
    build_error_content,
    get_exception_status_code,
)
from app.core.logging import get_logger, log_error, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Fails fast when the bot token is missing, then opens the user store.
    """
    # Startup
    setup_logging()
    if not get_bot_token():
        logger.error("CRITICAL: TELEGRAM_BOT_TOKEN is not configured")
        raise ConfigurationError("TELEGRAM_BOT_TOKEN is not configured")

    app.state.user_store = await create_user_store()
    yield
    # Shutdown
    await app.state.user_store.close()


async def miniapp_exception_handler(request: Request, exc: MiniAppAuthException) -> JSONResponse:
    """Render application exceptions as {"message", "error"} bodies."""
    status_code = get_exception_status_code(exc)
    if status_code >= 500:
        log_error(exc, {"path": request.url.path, "error_code": exc.error_code, **exc.details})
    return JSONResponse(status_code=status_code, content=build_error_content(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler; details stay in the server logs."""
    log_error(exc, {"path": request.url.path})
    return JSONResponse(status_code=500, content={"message": "Something broke on the server!"})


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Telegram Mini App authentication backend - init data validation and user profile sync",
        version="1.0.0",
        docs_url="/docs" if not is_production() else None,
        redoc_url="/redoc" if not is_production() else None,
        openapi_url="/openapi.json" if not is_production() else None,
        lifespan=lifespan,
    )

    cors_origins = settings.get_effective_cors_origins()
    logger.info(f"CORS configured with origins: {cors_origins}")

    # Middleware added last runs first: logging -> trusted host -> CORS -> origin guard
    app.add_middleware(
        OriginGuardMiddleware,
        allowed_origins=cors_origins,
        allow_missing_origin=settings.ALLOW_REQUESTS_WITHOUT_ORIGIN,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Trusted host middleware
    if is_production():
        logger.info(
            f"TrustedHost middleware enabled with hosts: {settings.ALLOWED_HOSTS}"
        )
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.ALLOWED_HOSTS,
        )
    else:
        logger.info("TrustedHost middleware disabled (development mode)")

    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(MiniAppAuthException, miniapp_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    from app.api.routers import auth_router

    app.include_router(auth_router.router, prefix="/api/auth", tags=["Auth"])

    @app.get("/api")
    async def root():
        """Root endpoint."""
        return {"message": f"Hello from {settings.APP_NAME}!"}

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "user_store": settings.USER_STORE_BACKEND,
            "bot_token_configured": bool(get_bot_token()),
        }

    return app


# Create the FastAPI app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=is_development(),
        log_level="info",
    )
