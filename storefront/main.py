import logging
import uuid
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import (
    DatabaseError,
    DBAPIError,
    IntegrityError,
    OperationalError,
)
from sqlalchemy.exc import (
    TimeoutError as SQLAlchemyTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.db.connection import dispose_engine
from storefront.db.connection import get_database_type as _connection_get_database_type
from storefront.db.connection import get_database_url as _connection_get_database_url
from storefront.db.connection import get_engine as _connection_get_engine
from storefront.settings import AppSettings, get_settings

from .api import products
from .schemas.error import ErrorType, ValidationErrorDetail
from .services.image_host import ImageHostError
from .services.product_service import ProductNotFoundError
from .utils.error_responses import (
    build_error_response,
    build_validation_error_response,
)
from .utils.request_context import get_request_id, set_request_id

# Load environment variables from .env file
load_dotenv()

logging.basicConfig(
    level=get_settings().log_level_numeric,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _validate_environment(active_settings: AppSettings | None = None) -> None:
    """Log a warning for each unset optional configuration value."""
    warnings = (active_settings or get_settings()).optional_config_warnings()
    if warnings:
        logger.warning("Environment Configuration Warnings:")
        for warning in warnings:
            logger.warning("  - %s", warning)


def validate_environment() -> None:
    """Public wrapper so CLI tools can trigger configuration validation."""

    _validate_environment()


def _sanitize_database_url(url: str) -> str:
    """Hide the password portion of a database URL before logging it."""
    if "://" not in url:
        return url

    scheme, rest = url.split("://", 1)
    if "@" in rest:
        auth, host_db = rest.split("@", 1)
        if ":" in auth:
            user, _ = auth.split(":", 1)
            return f"{scheme}://{user}:***@{host_db}"
        return f"{scheme}://{auth}@{host_db}"

    return url


def get_database_type() -> str:
    """Module-level proxy that tests patch to simulate other databases."""

    return _connection_get_database_type()


def get_database_url() -> str:
    return _connection_get_database_url()


def get_engine() -> AsyncEngine:
    return _connection_get_engine()


async def _create_sqlite_schema(engine: AsyncEngine) -> None:
    """Create tables for the local SQLite fallback, which has no migrations."""
    from storefront.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    validate_environment()

    db_type = get_database_type()
    logger.info("Storefront API - Database Preflight Check")
    logger.info("Database Type: %s", db_type.upper())
    logger.info("Database URL: %s", _sanitize_database_url(get_database_url()))

    if db_type == "sqlite":
        logger.info("SQLite mode - creating tables if missing")
        await _create_sqlite_schema(get_engine())
    else:
        logger.info("PostgreSQL mode - using Alembic migrations")
        logger.info("Ensure migrations are up to date (run: alembic upgrade head)")

    from storefront.warmup import warmup_all

    await warmup_all(resolve_engine=get_engine)

    yield

    from storefront.cache import close_redis

    logger.info("Shutting down Storefront API")
    await close_redis()
    await dispose_engine()


app = FastAPI(
    title="Storefront API",
    version="0.1.0",
    description="REST API serving the product catalog and featured listings.",
    lifespan=lifespan,
    redirect_slashes=False,
)


def _default_origins() -> list[str]:
    ports = list(range(3000, 3011)) + [5173]
    origins = []
    for host in ("localhost", "127.0.0.1"):
        origins.extend([f"http://{host}:{port}" for port in ports])
    return origins


def _combine_origins(*origin_groups: list[str]) -> list[str]:
    """Merge origins preserving order and removing duplicates."""
    seen: set[str] = set()
    combined: list[str] = []
    for group in origin_groups:
        for origin in group:
            normalized = origin.rstrip("/")
            if normalized and normalized not in seen:
                seen.add(normalized)
                combined.append(normalized)
    return combined


allow_origins = _combine_origins(_default_origins(), get_settings().cors_allow_origins)
cors_origin_regex = get_settings().cors_allow_origin_regex or None

logger.info("Configured CORS allow_origins: %s", ", ".join(allow_origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_origin_regex=cors_origin_regex,
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID to each request for tracking."""
    request_id = str(uuid.uuid4())
    set_request_id(request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _validation_details(errors: list[dict]) -> list[ValidationErrorDetail]:
    return [
        ValidationErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input"),
        )
        for error in errors
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors."""
    errors = _validation_details(exc.errors())

    logger.warning(
        "Validation error for request %s to %s: %s errors",
        get_request_id(),
        request.url.path,
        len(errors),
    )

    error_response = build_validation_error_response(
        message="Request validation failed",
        detail=f"{len(errors)} validation error(s)",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        path=str(request.url.path),
        errors=errors,
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(ValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: ValidationError):
    """Handle Pydantic validation errors raised outside request parsing."""
    errors = _validation_details(exc.errors())

    logger.warning(
        "Pydantic validation error for request %s to %s: %s errors",
        get_request_id(),
        request.url.path,
        len(errors),
    )

    error_response = build_validation_error_response(
        message="Data validation failed",
        detail=f"{len(errors)} validation error(s)",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        path=str(request.url.path),
        errors=errors,
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.model_dump(mode="json"),
    )


_HTTP_ERROR_TYPES: dict[int, tuple[ErrorType, str]] = {
    status.HTTP_401_UNAUTHORIZED: (ErrorType.AUTHENTICATION_ERROR, "Authentication required"),
    status.HTTP_403_FORBIDDEN: (ErrorType.AUTHORIZATION_ERROR, "Access denied"),
    status.HTTP_404_NOT_FOUND: (ErrorType.NOT_FOUND, "Resource not found"),
}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render ``HTTPException`` (auth guards, unknown routes) as an ``ErrorResponse``."""
    error_type, message = _HTTP_ERROR_TYPES.get(
        exc.status_code, (ErrorType.HTTP_ERROR, "Request failed")
    )

    logger.info(
        "HTTP %s for request %s to %s: %s",
        exc.status_code,
        get_request_id(),
        request.url.path,
        exc.detail,
    )

    error_response = build_error_response(
        error_type=error_type,
        message=message,
        detail=str(exc.detail) if exc.detail is not None else None,
        status_code=exc.status_code,
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json"),
        headers=exc.headers,
    )


@app.exception_handler(ProductNotFoundError)
async def product_not_found_exception_handler(request: Request, exc: ProductNotFoundError):
    """Translate missing products into 404 responses."""
    logger.info(
        "Product %s not found for request %s to %s",
        exc.product_id,
        get_request_id(),
        request.url.path,
    )

    error_response = build_error_response(
        error_type=ErrorType.NOT_FOUND,
        message="Product not found",
        detail=str(exc),
        status_code=status.HTTP_404_NOT_FOUND,
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(ImageHostError)
async def image_host_exception_handler(request: Request, exc: ImageHostError):
    """Handle image host failures that abort a request (uploads)."""
    logger.error(
        "Image host error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    error_response = build_error_response(
        error_type=ErrorType.UPSTREAM_ERROR,
        message="Image host request failed",
        detail=str(exc),
        status_code=status.HTTP_502_BAD_GATEWAY,
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(OperationalError)
@app.exception_handler(DBAPIError)
async def database_connection_exception_handler(request: Request, exc: Exception):
    """Handle database connection errors."""
    logger.error(
        "Database connection error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    error_response = build_error_response(
        error_type=ErrorType.DATABASE_ERROR,
        message="Database connection failed",
        detail="Unable to connect to the database. Please try again later.",
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        path=str(request.url.path),
        retry_after=5,
    )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(SQLAlchemyTimeoutError)
async def database_timeout_exception_handler(request: Request, exc: SQLAlchemyTimeoutError):
    """Handle database pool or query timeouts."""
    logger.error(
        "Database timeout error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    error_response = build_error_response(
        error_type=ErrorType.TIMEOUT_ERROR,
        message="Database query timeout",
        detail="The database query took too long to complete. Please try again.",
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        path=str(request.url.path),
        retry_after=3,
    )

    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(IntegrityError)
async def database_integrity_exception_handler(request: Request, exc: IntegrityError):
    """Handle database integrity constraint errors."""
    logger.error(
        "Database integrity error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    error_response = build_error_response(
        error_type=ErrorType.DATABASE_ERROR,
        message="Data integrity constraint violation",
        detail="The operation would violate a database constraint.",
        status_code=status.HTTP_409_CONFLICT,
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(DatabaseError)
async def database_generic_exception_handler(request: Request, exc: DatabaseError):
    """Handle generic database errors."""
    logger.error(
        "Database error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    error_response = build_error_response(
        error_type=ErrorType.DATABASE_ERROR,
        message="Server error",
        detail="An error occurred while accessing the database. Please try again.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        path=str(request.url.path),
        retry_after=3,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle all other unhandled exceptions."""
    logger.exception(
        "Unhandled exception for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        type(exc).__name__,
    )

    error_response = build_error_response(
        error_type=ErrorType.INTERNAL_ERROR,
        message="Server error",
        detail=f"An unexpected error occurred: {type(exc).__name__}",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json"),
    )


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    """Simple health endpoint for readiness checks."""
    return {"status": "ok"}


app.include_router(products.router, prefix="/products", tags=["products"])
