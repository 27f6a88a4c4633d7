"""
SmartPick Reservation API
FastAPI application entry point

- Expiry sweeper started as a background task with heartbeat metrics
- Rate limiting with SlowAPI
- Error sanitization middleware and `{error}` envelopes
- Health endpoint with DB ping
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.responses import JSONResponse

from smartpick import __version__
from smartpick.api.routes import api_router
from smartpick.core.config import settings
from smartpick.core.database import AsyncSessionLocal
from smartpick.core.error_handler import ErrorSanitizationMiddleware, register_exception_handlers
from smartpick.core.rate_limit import limiter, rate_limit_exceeded_handler
from smartpick.jobs.expiry_sweeper import expiry_sweep_scheduler, sweeper_heartbeat

logger = logging.getLogger(__name__)

_expiry_sweep_task: Optional[asyncio.Task] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the expiry sweeper on startup, stop it on shutdown."""
    global _expiry_sweep_task

    if settings.EXPIRY_SWEEP_ENABLED:
        _expiry_sweep_task = asyncio.create_task(expiry_sweep_scheduler())
        logger.info("Expiry sweep scheduler ENABLED")
    else:
        logger.info("Expiry sweep scheduler DISABLED via config")

    yield

    if _expiry_sweep_task and not _expiry_sweep_task.done():
        _expiry_sweep_task.cancel()
        try:
            await _expiry_sweep_task
        except asyncio.CancelledError:
            logger.info("Expiry sweep scheduler cancelled")


app = FastAPI(
    lifespan=lifespan,
    title="SmartPick API",
    description="""
## SmartPick Reservation API

Surplus-food marketplace: partners list discounted products, customers
reserve units for a 30 minute pickup window and redeem them with a
6-digit code.

### Authentication
Bearer JWT issued by the identity service (`sub` = user id).

### Rate Limits
- Reservation mutations: 20 requests/minute
- General: 100 requests/minute
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check and monitoring endpoints"},
        {"name": "reservations", "description": "Reserve, cancel, redeem and list reservations"},
        {"name": "products", "description": "Partner listings and the public catalogue"},
    ],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# `{error}` envelopes for domain, validation and HTTP errors
register_exception_handlers(app)

# Catches unhandled exceptions
app.add_middleware(ErrorSanitizationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(api_router)


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "SmartPick API",
        "version": __version__,
        "status": "operational"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with an actual DB ping and the sweeper heartbeat.
    Returns 503 if the database is unreachable.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "expiry_sweeper": sweeper_heartbeat,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["database"] = f"error: {type(e).__name__}: {str(e)[:100]}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
