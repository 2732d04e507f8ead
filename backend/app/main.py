import logging
import uuid
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.router import api_router
from app.core.config import settings, setup_logging
from app.core.exceptions import NoValidEventsError, RequestShapeError, SinkWriteError
from app.core.limiter import limiter
from app.core.providers import UserAgentsParser, create_geo_provider
from app.core.sink import EventSink, create_engine_from_settings
from app.services.event_enricher import EventEnricher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup - an unreachable store aborts startup
    setup_logging()
    sink = EventSink(create_engine_from_settings())
    await sink.initialize()
    geo_provider = create_geo_provider(settings.GEOIP_DATABASE_PATH)
    app.state.sink = sink
    app.state.enricher = EventEnricher(geo_provider, UserAgentsParser())
    logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    yield
    # Shutdown
    geo_provider.close()
    await sink.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    lifespan=lifespan,
)

# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

# CORS
if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def add_security_headers(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Add security headers to all responses."""
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


def _failure(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


@app.exception_handler(RequestShapeError)
async def request_shape_error_handler(request: Request, exc: RequestShapeError) -> JSONResponse:
    return _failure(status.HTTP_400_BAD_REQUEST, exc.message)


@app.exception_handler(NoValidEventsError)
async def no_valid_events_handler(request: Request, exc: NoValidEventsError) -> JSONResponse:
    return _failure(
        status.HTTP_400_BAD_REQUEST,
        "No valid events to process",
        validation_errors=exc.rejections,
    )


@app.exception_handler(SinkWriteError)
async def sink_write_error_handler(request: Request, exc: SinkWriteError) -> JSONResponse:
    return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, "Failed to store events")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    """Body errors get the ingest failure shape; query/path errors keep FastAPI's 422."""
    if any(err.get("loc", ())[:1] == ("body",) for err in exc.errors()):
        return _failure(status.HTTP_400_BAD_REQUEST, "Malformed request body")
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    logger.exception("Unhandled error (request_id=%s)", request_id)
    extra: dict[str, Any] = {"request_id": request_id}
    if not settings.is_production:
        extra["details"] = str(exc)
    return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", **extra)


# Routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": f"{settings.PROJECT_NAME} is running"}
