# Essential imports
import time
import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from routers import orders, locations

# Import all models so the metadata knows every table
import models  # noqa: F401

# Rate limiter imports
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging
from middleware import RequestIDMiddleware, get_request_id, install_log_record_factory
from utils.logger import get_logger

from core.config import settings
from core.database import Database
from core.exceptions import ServiceError
from services.courier_service import CourierAssignmentCoordinator, CourierClient
from services.location_service import LocationRelay
from services.notification_service import NotificationDispatcher

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)
install_log_record_factory()

logger = get_logger(__name__)


def error_body(error_code: str, message: str, details=None) -> dict:
    body = {"success": False, "detail": message, "errorCode": error_code}
    # Internals only leave the service outside production
    if details and settings.ENV != "production":
        body["details"] = details
    return body


async def service_error_handler(request: Request, exc: ServiceError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.kind.value}: {exc.message}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_code": exc.error_code,
            "status_code": exc.status_code
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.error_code, exc.message, exc.details)
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    # Anything wrong inside the items array is reported as an item format problem
    item_error = any("items" in [str(part) for part in error.get("loc", ())] for error in errors)
    error_code = "INVALID_ITEM_FORMAT" if item_error else "INVALID_INPUT"
    details = ", ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}" for error in errors
    )

    logger.warning(
        "Request validation failed",
        extra={"path": request.url.path, "error_code": error_code}
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(error_code, "Invalid order input" if item_error else "Invalid input", details)
    )


HTTP_ERROR_CODES = {
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Framework-level errors (unknown route, wrong method) in the same
    envelope as everything else.
    """
    error_code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    logger.warning(
        f"HTTP {exc.status_code}: {exc.detail}",
        extra={"path": request.url.path, "method": request.method, "error_code": error_code}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(error_code, str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_body("RATE_LIMIT_EXCEEDED", "Too many requests", str(exc.detail))
    )


async def global_exception_handler(request: Request, exc: Exception):
    """
    Last resort for anything the service did not anticipate. The full
    stack goes to the logs; the client only sees a generic 500.
    """
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            # RequestIDMiddleware has already unwound here, so the record factory stamps None
            "failed_request_id": get_request_id(request)
        },
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_SERVER_ERROR", "Internal server error", type(exc).__name__)
    )


def create_app() -> FastAPI:
    """
    Build the application and the handles it shares across requests.

    The database, outbound HTTP clients and location relay are created
    here, hung off ``app.state`` and reached by routes through the
    dependencies in ``utils.deps``.
    """
    database = Database(settings.DATABASE_URL)
    courier_http = httpx.Client(
        base_url=settings.COURIER_SERVICE_URL,
        timeout=settings.DEPENDENCY_TIMEOUT_SECONDS
    )
    notification_http = httpx.Client(
        base_url=settings.NOTIFICATION_SERVICE_URL,
        timeout=settings.DEPENDENCY_TIMEOUT_SECONDS
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.create_all()
        logger.info("Application startup complete", extra={"event": "startup"})
        yield
        courier_http.close()
        notification_http.close()
        database.dispose()
        logger.info("Application shutting down", extra={"event": "shutdown"})

    app = FastAPI(
        title="Order Service",
        description="Order lifecycle, courier assignment and live delivery tracking",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.database = database
    app.state.courier_coordinator = CourierAssignmentCoordinator(CourierClient(courier_http))
    app.state.notification_dispatcher = NotificationDispatcher(
        notification_http,
        enabled=settings.ENV != "testing",
        max_retries=settings.NOTIFICATION_MAX_RETRIES,
        backoff_seconds=settings.NOTIFICATION_RETRY_BACKOFF_SECONDS
    )
    app.state.location_relay = LocationRelay(
        persistence_enabled=settings.LOCATION_PERSISTENCE_ENABLED,
        history_limit=settings.LOCATION_HISTORY_LIMIT
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Log method, path, status code and duration of every request.
        """
        start_time = time.time()
        response = await call_next(request)
        duration = (time.time() - start_time) * 1000

        client_ip = request.client.host if request.client else "unknown"
        logger.info(
            f'{client_ip} - "{request.method} {request.url.path} HTTP/1.1" {response.status_code}',
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration, 2),
                "client_ip": client_ip
            }
        )
        return response

    # Added last so it wraps everything above and every log line gets the id
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    async def health_check():
        logger.debug("Health check requested")
        return {"status": "Healthy"}

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(orders.router)
    app.include_router(locations.router)

    app.state.limiter = limiter
    return app


app = create_app()
