import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from rendezvous.api.router import api_router
from rendezvous.core.config import settings
from rendezvous.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ScheduleValidationError,
    ServiceError,
    StaleWriteError,
    StoreUnavailableError,
    UnauthenticatedError,
)
from rendezvous.core.limiter import limiter
from rendezvous.core.logging import configure_logging
from rendezvous.db import init_db
from rendezvous.services.redis_pubsub import redis_pubsub

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match decides the status code
ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (ScheduleValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (StaleWriteError, status.HTTP_409_CONFLICT),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: ServiceError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    try:
        await redis_pubsub.connect()
    except Exception as e:
        # Real-time delivery is optional; the API works without Redis
        logger.warning(f"Real-time delivery disabled: {e}")
    yield
    await redis_pubsub.disconnect()


def create_application(use_lifespan: bool = True) -> FastAPI:
    configure_logging()
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan if use_lifespan else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(ServiceError)
    async def service_exception_handler(request: Request, exc: ServiceError):
        code = status_for(exc)
        content = {"detail": str(exc)}
        if isinstance(exc, ScheduleValidationError) and exc.field:
            content["field"] = exc.field
        if code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {code}: {exc}")
        headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
        return JSONResponse(status_code=code, content=content, headers=headers)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
        detail = "Internal server error"
        if settings.ENVIRONMENT != "production":
            detail = f"Internal server error: {exc}"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": detail},
        )

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_application()
