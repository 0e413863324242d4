"""FastAPI application entry point.

Creates the application: security headers, CORS, error envelopes, rate
limiting, the /api/v1 router, and the process-wide credential store that
lives on app.state for the life of the process.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from temple.api.deps import CredentialStoreDep
from temple.api.v1.router import router as v1_router
from temple.core.config import settings
from temple.core.errors import APIError
from temple.core.rate_limiting import limiter, rate_limit_exceeded_handler
from temple.core.responses import ErrorDetail, ErrorResponse
from temple.credentials.store import create_credential_store

logger = structlog.get_logger()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response.

    API responses are never cached (they carry donor PII) and never render
    as documents.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"

        # HTTPS terminates at the reverse proxy in production
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Render an APIError as its error envelope and status code."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
            )
        ).model_dump(),
    )


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Map FastAPI request validation failures to a 400 VALIDATION_ERROR."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="VALIDATION_ERROR",
                message="Request validation failed",
                details=[
                    {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                    for e in exc.errors()
                ],
            )
        ).model_dump(),
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the stack trace, return a generic 500."""
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred",
            )
        ).model_dump(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the credential store on startup and close it on shutdown."""
    store = await create_credential_store(settings)
    app.state.credential_store = store
    logger.info(
        "Credential store ready",
        enabled=store.enabled,
        backend=settings.credential_store_backend if store.enabled else "disabled",
    )
    try:
        yield
    finally:
        await store.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Temple API",
        version="1.0.0",
        description="Temple donations and credential services",
        lifespan=lifespan,
    )

    # Starlette runs the last-added middleware first; CORS must see preflights
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization", "X-Request-ID"],
    )

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.state.limiter = limiter

    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health")
    def health_check(store: CredentialStoreDep) -> dict:
        """Liveness plus credential store availability.

        A disabled or unreachable store does not make the service unhealthy;
        credential features degrade while donations keep working.
        """
        return {
            "status": "healthy",
            "credential_store": (
                "available" if store.is_available() else "unavailable"
            ),
        }

    return app


# Used by uvicorn: uvicorn temple.main:app
app = create_app()
