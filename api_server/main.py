import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings, get_settings
from .database import DatabaseClient
from .errors import InvoiceAPIError
from .middleware import BodySizeLimitMiddleware
from .models import ErrorResponse
from .routers.invoices import router as invoices_router

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}


def _error_response(status_code: int, headers: Optional[dict] = None, **content) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=ErrorResponse(**content).model_dump(exclude_none=True)
    )


def create_app(settings: Optional[Settings] = None, store: Optional[DatabaseClient] = None) -> FastAPI:
    """Build the API application.

    ``store`` defaults to a Supabase-backed ``DatabaseClient``; it is
    connected once at startup and closed at shutdown.
    """
    settings = settings or get_settings()
    store = store or DatabaseClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.connect()
        logger.info("Invoice API started (%s)", settings.ENVIRONMENT)
        try:
            yield
        finally:
            await store.close()
            logger.info("Invoice API stopped")

    app = FastAPI(
        title="QRIS Invoice Generator API",
        description="Backend API for managing QRIS invoices",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.store = store
    app.state.started_at = time.monotonic()

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.MAX_BODY_BYTES)

    # Rate limiting
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.RATE_LIMIT],
        enabled=settings.RATE_LIMIT_ENABLED
    )
    app.add_middleware(SlowAPIMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    app.include_router(invoices_router)

    @app.get("/api/health")
    async def health_check():
        return {
            "status": "OK",
            "message": "QRIS Invoice Backend API is running!",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": time.monotonic() - app.state.started_at
        }

    @app.get("/api")
    async def api_info():
        return {
            "name": "QRIS Invoice Generator API",
            "version": __version__,
            "description": "Backend API for managing QRIS invoices",
            "endpoints": {
                "health": "GET /api/health",
                "invoices": {
                    "create": "POST /api/invoices",
                    "getByNumber": "GET /api/invoices/:invoiceNumber",
                    "getAll": "GET /api/invoices",
                    "delete": "DELETE /api/invoices/:invoiceNumber"
                }
            },
            "author": "PayInvoicely Team"
        }

    # Error handlers
    def _details(exc: InvoiceAPIError) -> Optional[str]:
        if exc.status_code < 500 or not settings.is_production:
            return exc.details
        return "Internal server error"

    @app.exception_handler(InvoiceAPIError)
    async def invoice_error_handler(request: Request, exc: InvoiceAPIError):
        return _error_response(exc.status_code, error=exc.error, details=_details(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error_response(
            400,
            error="Invalid request body",
            details="; ".join(str(err.get("msg")) for err in exc.errors())
        )

    # slowapi's middleware only calls synchronous handlers
    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning("Rate limit exceeded for %s", get_remote_address(request))
        return _error_response(429, error="Too many requests from this IP, please try again later.")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unknown paths and unsupported methods both count as a missing endpoint
        if exc.status_code in (404, 405):
            return _error_response(
                404,
                error="Endpoint not found",
                message=f"Cannot {request.method} {request.url.path}"
            )
        return _error_response(
            exc.status_code,
            error=str(exc.detail),
            details=f"Status Code: {exc.status_code}"
        )

    # Rendered by ServerErrorMiddleware, outside the header middleware
    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error_response(
            500,
            headers=SECURITY_HEADERS,
            error="Internal server error",
            details="Something went wrong" if settings.is_production else str(exc)
        )

    return app


app = create_app()
