"""
Main FastAPI application for the Resolve AI backend.
Handles CORS, request logging middleware, lifespan events, error mapping and
router registration.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resolve.config import settings
from resolve.database import close_db, init_db
from resolve.errors import ResolveError
from resolve.routers import (
    admin,
    applications,
    billing,
    cases,
    contracts,
    documents,
    health,
    insights,
    notifications,
    users,
)
from resolve.utils.helpers import utcnow

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> bool:
    """Initialise DB tables and verify the connection.  Returns True on success."""
    try:
        await init_db()
        logger.info("Database connection OK")
        return True
    except Exception as exc:
        logger.error("Database connection failed: %s", exc)
        raise


def _report_integrations() -> None:
    """Log which optional integrations are configured.  Never raises."""
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        logger.warning("SUPABASE_SERVICE_ROLE_KEY not set; document storage calls will fail")
    if settings.llm_enabled:
        logger.info("Language model: %s", settings.OPENAI_MODEL)
    else:
        logger.warning("OPENAI_API_KEY not set; dashboard insights will use fallback content")
    if not settings.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY not set; checkout will return 503")
    if not settings.smtp_configured:
        logger.warning("SMTP not configured; emails will be logged instead of sent")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("Starting Resolve AI backend")

    # Database (required; raises on failure)
    await _check_database()

    # External services (optional; logs warnings but continues)
    _report_integrations()

    logger.info("Resolve AI backend ready on http://%s:%d", settings.HOST, settings.PORT)

    yield

    logger.info("Shutting down Resolve AI backend")
    await close_db()
    logger.info("Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Resolve AI API",
    description=(
        "**Resolve AI**: legal support for Australian tradespeople.\n\n"
        "Track payment disputes and contracts, keep evidence in one place, and "
        "get personalised legal insights.\n\n"
        "Key endpoints:\n"
        "- `POST /api/cases` open a case (spends a strategy pack)\n"
        "- `POST /api/documents/upload` upload evidence\n"
        "- `GET  /api/insights` dashboard insights\n"
        "- `POST /api/create-payment-intent` buy strategy packs\n"
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip noisy health-check polling from the frontend
    if request.url.path not in ("/api/health", "/api/health/", "/"):
        logger.info(
            "%s %s -> %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(ResolveError)
async def resolve_error_handler(request: Request, exc: ResolveError):
    """Map domain errors onto their status code with a ``detail`` message."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "path": str(request.url.path),
            "timestamp": utcnow().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,     prefix="/api/health",    tags=["Health"])
app.include_router(users.router,      prefix="/api",           tags=["Users"])
app.include_router(cases.router,      prefix="/api/cases",     tags=["Cases"])
app.include_router(contracts.router,  prefix="/api/contracts", tags=["Contracts"])
app.include_router(documents.router,  prefix="/api/documents", tags=["Documents"])
app.include_router(insights.router,   prefix="/api/insights",  tags=["Insights"])
app.include_router(applications.router, prefix="/api/applications", tags=["Applications"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(billing.router,    prefix="/api",           tags=["Billing"])
app.include_router(admin.router,      prefix="/api/admin",     tags=["Admin"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root: basic service info."""
    return {
        "name": "Resolve AI API",
        "version": "0.1.0",
        "description": "Legal support backend for Australian tradespeople",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "cases": "/api/cases",
            "contracts": "/api/contracts",
            "documents": "/api/documents",
            "insights": "/api/insights",
            "admin": "/api/admin",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "resolve.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
