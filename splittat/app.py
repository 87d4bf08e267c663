"""
Splittat API - Main FastAPI Application.

Wires configuration, logging, metrics, middleware, exception handlers and
the routers together.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import settings
from .database import init_db
from .domain.exceptions import SplittatError, ValidationFailed
from .logging_config import get_logger, setup_logging
from .metrics import metrics_endpoint, track_request_metrics
from .metrics_middleware import PrometheusMiddleware
from .middleware import RequestLoggingMiddleware
from .routers import auth_router, group_router, health_router, receipt_router, split_router
from .schemas import ErrorResponse

setup_logging(log_level=settings.LOG_LEVEL, service_name="splittat-api", use_json=settings.LOG_JSON)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Creates missing database tables on startup.
    """
    logger.info("Starting Splittat API", version=__version__, debug=settings.DEBUG)

    try:
        init_db()
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise

    yield

    logger.info("Shutting down Splittat API")


app = FastAPI(
    title=settings.APP_NAME,
    description="Receipt scanning and bill splitting API",
    version=__version__,
    docs_url=f"{settings.API_PREFIX}/docs" if settings.DEBUG else None,
    redoc_url=f"{settings.API_PREFIX}/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(PrometheusMiddleware, track_func=track_request_metrics)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


def _error_response(
    status_code: int,
    error: str,
    message: str,
    errors: Optional[Dict[str, List[str]]] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=error, message=message, errors=errors or None, request_id=request_id
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@app.exception_handler(SplittatError)
async def splittat_error_handler(request: Request, exc: SplittatError) -> JSONResponse:
    """Map domain errors onto their HTTP status."""
    if exc.status_code >= 500:
        logger.error("Request failed", error=exc.message, code=exc.code)
    else:
        logger.info(
            "Request rejected",
            status_code=exc.status_code,
            code=exc.code,
            error=exc.message,
        )
    errors = exc.errors if isinstance(exc, ValidationFailed) else None
    return _error_response(exc.status_code, exc.code, exc.message, errors)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report body and parameter validation errors as 400 with per-field messages."""
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        location = [
            str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")
        ]
        field = ".".join(location) or "request"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))

    return _error_response(
        status.HTTP_400_BAD_REQUEST, "validation_error", "Validation failed", errors
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and hide their details from the client."""
    request_id = getattr(request.state, "request_id", None)
    logger.exception(
        "Unhandled error",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
    )
    response = _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        "An unexpected error occurred",
        request_id=request_id,
    )
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    return await metrics_endpoint()


app.include_router(health_router.router, prefix=settings.API_PREFIX)
app.include_router(auth_router.router, prefix=settings.API_PREFIX)
app.include_router(receipt_router.router, prefix=settings.API_PREFIX)
app.include_router(group_router.router, prefix=settings.API_PREFIX)
app.include_router(split_router.router, prefix=settings.API_PREFIX)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "splittat.app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
