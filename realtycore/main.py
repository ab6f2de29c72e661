"""
RealtyCore - entitlements, usage caps and lead distribution for real-estate teams.
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from realtycore.config import get_settings
from realtycore.api.router import api_router
from realtycore.database import dispose_engine
from realtycore.utils.errors import (
    CapExceeded,
    FeatureNotAvailable,
    InvalidTransition,
    LeadAlreadyAssigned,
    MembershipConflict,
    NotFoundError,
    StorageConflict,
    StorageError,
)
from realtycore.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("realtycore")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("RealtyCore starting up (env=%s)", settings.app_env)

    # Initialize Sentry if configured
    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    yield

    await dispose_engine()
    logger.info("RealtyCore shutdown complete")


# === ERROR HANDLERS ===

async def cap_exceeded_handler(request: Request, exc: CapExceeded) -> JSONResponse:
    body = exc.to_dict()
    body["detail"] = str(exc)
    body["upgrade_required"] = True
    return JSONResponse(status_code=402, content=body)


async def feature_not_available_handler(request: Request, exc: FeatureNotAvailable) -> JSONResponse:
    return JSONResponse(status_code=403, content={
        "error": "feature_not_available",
        "feature": exc.feature,
        "role": exc.role,
        "detail": str(exc),
    })


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "not_found", "detail": str(exc)})


async def conflict_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={
        "error": type(exc).__name__,
        "detail": str(exc),
    })


async def storage_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Storage failure on %s: %s", request.url.path, str(exc))
    return JSONResponse(
        status_code=503,
        content={"error": "storage_unavailable", "detail": "Please retry the request"},
        headers={"Retry-After": "1"},
    )


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    # Configure structured JSON logging with correlation IDs
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="RealtyCore",
        description="Entitlements, usage caps and lead distribution for real-estate teams",
        version="1.0.0",
        lifespan=lifespan,
    )

    origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    if settings.app_env == "development":
        origins += ["http://localhost:3000", "http://localhost:5173"]

    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    application.add_exception_handler(CapExceeded, cap_exceeded_handler)
    application.add_exception_handler(FeatureNotAvailable, feature_not_available_handler)
    application.add_exception_handler(NotFoundError, not_found_handler)
    for exc_class in (LeadAlreadyAssigned, InvalidTransition, MembershipConflict):
        application.add_exception_handler(exc_class, conflict_handler)
    for exc_class in (StorageConflict, StorageError):
        application.add_exception_handler(exc_class, storage_handler)

    application.include_router(api_router)

    return application


app = create_app()
