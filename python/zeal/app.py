"""FastAPI application creation and configuration.

Registers exception handlers, auth middleware, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Lifespan:
- Installs the rate limiter (Redis when REDIS_URL is set, in-memory otherwise)
- Runs the periodic sweep of expired in-memory rate-limit windows
"""

import asyncio
import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zeal.api.routes import create_api_router
from zeal.auth.middleware import AuthMiddleware
from zeal.auth.verifier import HmacTokenVerifier, TokenVerifier
from zeal.config import get_settings
from zeal.errors import ApiError, ApiErrorCode
from zeal.logging import configure_logging, get_logger
from zeal.middleware.request_id import RequestIDMiddleware
from zeal.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from zeal.services.rate_limit import RateLimiter, build_rate_limiter, set_rate_limiter
from zeal.storage import StorageClientBase

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_token_verifier() -> HmacTokenVerifier:
    settings = get_settings()
    return HmacTokenVerifier(
        secret=settings.effective_jwt_secret,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
    )


async def sweep_rate_limits(limiter: RateLimiter, interval_s: float) -> None:
    """Drop expired rate-limit windows every interval_s seconds until cancelled."""
    while True:
        await asyncio.sleep(interval_s)
        removed = limiter.sweep()
        if removed:
            logger.info("rate_limit_windows_swept", removed=removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    limiter = getattr(app.state, "rate_limiter", None)
    if limiter is None:
        limiter = build_rate_limiter(settings)
        app.state.rate_limiter = limiter
    set_rate_limiter(limiter)

    sweeper = asyncio.create_task(
        sweep_rate_limits(limiter, settings.rate_limit_sweep_interval_s)
    )
    logger.info("rate_limiter_initialized", backend=type(limiter).__name__)

    yield

    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    set_rate_limiter(None)


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
    storage: StorageClientBase | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        storage: Storage client override; defaults to get_storage_client().
        rate_limiter: Rate limiter override; defaults to one built from settings.
    """
    settings = get_settings()

    app = FastAPI(
        title="Zeal API",
        description="Backend API for Zeal - short-video and social content platform",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.storage = storage
    app.state.rate_limiter = rate_limiter

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body"),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        app.add_middleware(AuthMiddleware, verifier=token_verifier or create_token_verifier())
        logger.info("auth_middleware_enabled", env=settings.zeal_env.value)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    Call AFTER all other middleware is added, so it runs FIRST.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
