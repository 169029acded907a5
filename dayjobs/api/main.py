"""dayjobs API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from dayjobs import __version__
from dayjobs.errors import (
    AuthorizationError,
    ConflictError,
    DuplicateError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
    ValidationError,
)

from .config import get_settings
from .database import get_marketplace
from .logging_config import configure_logging, get_logger
from .rate_limit import configure_limiter
from .routes import applications_router, events_router, jobs_router, maintenance_router

logger = get_logger("dayjobs.api")

API_PREFIX = "/api/v1"

# First match wins
ERROR_STATUS_CODES: list[tuple[type[MarketplaceError], int]] = [
    (ValidationError, 422),
    (InvalidStateError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (DuplicateError, 409),
    (ConflictError, 409),
]


def status_code_for(exc: MarketplaceError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return 500


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Map engine errors onto HTTP responses."""
    code = status_code_for(exc)
    if code >= 500:
        logger.error(f"Unhandled marketplace error on {request.url.path}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {code} ({type(exc).__name__}: {exc})")
    return JSONResponse(status_code=code, content={"detail": str(exc), "error": type(exc).__name__})


def _resolve_marketplace(app: FastAPI):
    """The marketplace routes will see, honoring dependency overrides."""
    return app.dependency_overrides.get(get_marketplace, get_marketplace)()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging(settings.debug)
    logger.info(f"Starting dayjobs API (debug={settings.debug})")

    market = _resolve_marketplace(app)
    if settings.sweeper_enabled:
        market.sweeper.start()
    yield
    logger.info("Shutting down dayjobs API")
    await market.shutdown()


app = FastAPI(
    title="dayjobs API",
    description="Single-day job marketplace",
    version=__version__,
    lifespan=lifespan,
)

settings = get_settings()

# Rate limiting
app.state.limiter = configure_limiter(settings)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(MarketplaceError, marketplace_error_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(jobs_router, prefix=API_PREFIX)
app.include_router(applications_router, prefix=API_PREFIX)
app.include_router(events_router, prefix=API_PREFIX)
app.include_router(maintenance_router, prefix=API_PREFIX)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "dayjobs",
        "version": __version__,
        "status": "ok",
    }
